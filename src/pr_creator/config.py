"""Pull request creator configuration using pydantic-settings.

This module defines the PRCreatorSettings class that reads configuration
from environment variables with the PR_CREATOR_ prefix. Only transport
and credential settings live here; the race retry ceiling and backoff
bounds are constants of the retry module.
"""

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class PRCreatorSettings(BaseSettings):
    """Pull request creator configuration from environment variables.

    All environment variables are prefixed with PR_CREATOR_
    (e.g., PR_CREATOR_GITHUB_TOKEN).

    Required fields (must be set via environment variables):
    - github_token: GitHub API token used for the REST API and git smart HTTP
    """

    model_config = SettingsConfigDict(
        env_prefix="PR_CREATOR_",
        case_sensitive=False,
    )

    # -------------------------------------------------------------------------
    # GitHub Configuration
    # -------------------------------------------------------------------------
    # GitHub API token for trees, commits, refs and pull requests
    github_token: str

    # Base URL for GitHub API (supports GitHub Enterprise)
    github_base_url: str = "https://api.github.com"

    # Host serving git smart HTTP (info/refs) for branch probing
    github_hostname: str = "github.com"

    # -------------------------------------------------------------------------
    # Transport Configuration
    # -------------------------------------------------------------------------
    # Timeout in seconds for a single HTTP request
    request_timeout_seconds: float = 30.0

    # Retries for timeouts, rate limits and 5xx responses
    max_transport_retries: int = 3

    # -------------------------------------------------------------------------
    # Validators
    # -------------------------------------------------------------------------
    @field_validator("github_token")
    @classmethod
    def validate_github_token(cls, v: str) -> str:
        """Validate that GitHub token is not empty."""
        if not v or not v.strip():
            raise ValueError("github_token cannot be empty")
        return v

    @field_validator("github_base_url")
    @classmethod
    def validate_base_url(cls, v: str) -> str:
        """Validate that the API base URL is an http(s) URL."""
        if not v.startswith(("http://", "https://")):
            raise ValueError("github_base_url must start with http:// or https://")
        return v.rstrip("/")

    @field_validator("github_hostname")
    @classmethod
    def validate_hostname(cls, v: str) -> str:
        """Validate that the hostname is a bare host."""
        if not v or "/" in v:
            raise ValueError("github_hostname must be a bare host name")
        return v

    @field_validator("request_timeout_seconds")
    @classmethod
    def validate_timeout(cls, v: float) -> float:
        """Validate that the request timeout is positive."""
        if v <= 0:
            raise ValueError("request_timeout_seconds must be positive")
        return v

    @field_validator("max_transport_retries")
    @classmethod
    def validate_transport_retries(cls, v: int) -> int:
        if v < 0:
            raise ValueError("max_transport_retries cannot be negative")
        return v


def get_settings() -> PRCreatorSettings:
    """Create and return PRCreatorSettings instance.

    Returns:
        PRCreatorSettings: Configured settings instance.

    Raises:
        pydantic.ValidationError: If required fields are missing or invalid.
    """
    return PRCreatorSettings()
