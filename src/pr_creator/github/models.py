"""Data models for GitHub git-data and pull request responses.

This module defines Pydantic models for the objects returned by the
GitHub REST API that the pull request workflow depends on:
- GitTree / GitCommit: git objects created through the git data API
- GitRef: a branch reference
- Repository: repository metadata (default branch)
- PullRequest: an open or closed pull request

Only the fields the workflow reads are modelled; everything else in the
response payload is ignored.
"""

from typing import Any, Dict

from pydantic import BaseModel, ConfigDict, Field


class GitTree(BaseModel):
    """A tree object created through the git data API."""

    model_config = ConfigDict(frozen=True)

    sha: str = Field(..., description="SHA of the created tree")

    @classmethod
    def from_github_response(cls, data: Dict[str, Any]) -> "GitTree":
        return cls(sha=data["sha"])


class GitCommit(BaseModel):
    """A commit object created through the git data API."""

    model_config = ConfigDict(frozen=True)

    sha: str = Field(..., description="SHA of the created commit")

    @classmethod
    def from_github_response(cls, data: Dict[str, Any]) -> "GitCommit":
        return cls(sha=data["sha"])


class GitRef(BaseModel):
    """A git reference such as ``refs/heads/main``."""

    model_config = ConfigDict(frozen=True)

    ref: str = Field(..., description="Fully qualified reference name")
    sha: str = Field(..., description="SHA of the object the ref points at")

    @classmethod
    def from_github_response(cls, data: Dict[str, Any]) -> "GitRef":
        target = data.get("object") or {}
        return cls(ref=data["ref"], sha=target.get("sha", ""))


class Repository(BaseModel):
    """Repository metadata."""

    model_config = ConfigDict(frozen=True)

    full_name: str
    default_branch: str

    @classmethod
    def from_github_response(cls, data: Dict[str, Any]) -> "Repository":
        return cls(
            full_name=data["full_name"],
            default_branch=data["default_branch"],
        )


class PullRequest(BaseModel):
    """A pull request as returned by the pulls API.

    Attributes:
        number: Pull request number (shared with the issues API).
        html_url: Browser URL of the pull request.
        state: "open" or "closed".
    """

    model_config = ConfigDict(frozen=True)

    number: int = Field(..., ge=1)
    html_url: str
    state: str = "open"

    @classmethod
    def from_github_response(cls, data: Dict[str, Any]) -> "PullRequest":
        return cls(
            number=data["number"],
            html_url=data["html_url"],
            state=data.get("state", "open"),
        )
