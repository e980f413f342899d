"""GitHub API client for git data and pull request interactions.

This module provides an async wrapper around the GitHub REST API for:
- Reading repository metadata
- Creating trees, commits and branch references
- Listing and creating pull requests
- Labelling, requesting reviewers, assigning users and setting milestones

Includes rate limiting and retry logic for transport-level resilience.
Failed requests raise a GitHubAPIError subclass selected by status code so
that callers can tell not-found, forbidden, unprocessable and server
errors apart.

Source:
- src/pr_creator/github/models.py (GitTree, GitCommit, GitRef, PullRequest)
- src/pr_creator/config.py (github_token, github_base_url)
"""

import asyncio
import logging
import random
import time
from typing import Any, Dict, Iterable, List, Optional

import httpx

from src.pr_creator.config import PRCreatorSettings
from src.pr_creator.github.models import (
    GitCommit,
    GitRef,
    GitTree,
    PullRequest,
    Repository,
)
from src.pr_creator.models import CommitSpec, PullRequestRequest


logger = logging.getLogger(__name__)


class GitHubAPIError(Exception):
    """Raised when a GitHub API request fails.

    Attributes:
        message: Human-readable error description, including the API
                 message and the error summary returned by GitHub.
        status_code: HTTP status code from the response.
        response_body: Response body from GitHub API.
        request_url: The URL that was requested.
    """

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        response_body: Optional[str] = None,
        request_url: Optional[str] = None,
    ):
        self.message = message
        self.status_code = status_code
        self.response_body = response_body
        self.request_url = request_url
        super().__init__(message)


class NotFoundError(GitHubAPIError):
    """Raised on HTTP 404."""


class ForbiddenError(GitHubAPIError):
    """Raised on HTTP 403 that is not a rate limit."""


class UnprocessableEntityError(GitHubAPIError):
    """Raised on HTTP 409 and 422 validation or conflict failures."""


class ServerError(GitHubAPIError):
    """Raised on HTTP 5xx once transport retries are exhausted."""


class RateLimitError(GitHubAPIError):
    """Raised when GitHub API rate limit is exceeded.

    Attributes:
        reset_at: Unix timestamp when the rate limit resets.
        retry_after: Seconds to wait before retrying.
    """

    def __init__(
        self,
        message: str,
        reset_at: Optional[int] = None,
        retry_after: Optional[int] = None,
        **kwargs: Any,
    ):
        super().__init__(message, **kwargs)
        self.reset_at = reset_at
        self.retry_after = retry_after


def _error_class_for_status(status_code: int) -> type:
    if status_code == 404:
        return NotFoundError
    if status_code == 403:
        return ForbiddenError
    if status_code in (409, 422):
        return UnprocessableEntityError
    if status_code >= 500:
        return ServerError
    return GitHubAPIError


def build_error_message(
    method: str,
    url: str,
    status_code: int,
    body: Any,
) -> str:
    """Render an error response the way GitHub documents its failures.

    The result reads ``"POST <url>: 422 - <message> // See: <docs>"``
    followed by an ``Error summary`` block with one entry per item in the
    response's ``errors`` array. Callers match on phrases in this text.

    Args:
        method: HTTP method of the failed request.
        url: URL of the failed request.
        status_code: HTTP status code of the response.
        body: Decoded JSON body, or the raw text when it is not JSON.

    Returns:
        Formatted error message.
    """
    if not isinstance(body, dict):
        text = str(body or "").strip()
        return f"{method} {url}: {status_code} - {text}"

    message = f"{method} {url}: {status_code} - {body.get('message', '')}"
    documentation_url = body.get("documentation_url")
    if documentation_url:
        message += f" // See: {documentation_url}"
    errors = body.get("errors") or []
    if errors:
        lines = ["Error summary:"]
        for error in errors:
            if isinstance(error, dict):
                lines.extend(f"  {key}: {value}" for key, value in error.items())
            else:
                lines.append(f"  {error}")
        message += "\n" + "\n".join(lines)
    return message


class GitHubClient:
    """Async GitHub API client with rate limiting and retry logic.

    This client provides the remote operations the pull request workflow
    is composed of. It implements:

    - Automatic retry with exponential backoff for transient failures
    - Rate limit handling by respecting X-RateLimit-* headers
    - Support for both github.com and GitHub Enterprise Server
    - Typed errors by status code

    Attributes:
        token: GitHub API token (PAT or GitHub App token).
        base_url: Base URL for GitHub API (default: https://api.github.com).
        max_retries: Maximum number of retry attempts for transient failures.
        base_delay: Base delay in seconds for exponential backoff.
        max_delay: Maximum delay in seconds between retries.
        timeout: Request timeout in seconds.

    Example:
        >>> client = GitHubClient(token="ghp_xxx")
        >>> async with client:
        ...     await client.get_repository("owner/repo")
    """

    # HTTP status codes that should trigger a retry
    RETRYABLE_STATUS_CODES = {408, 429, 500, 502, 503, 504}

    def __init__(
        self,
        token: str,
        base_url: str = "https://api.github.com",
        max_retries: int = 3,
        base_delay: float = 1.0,
        max_delay: float = 60.0,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """Initialize the GitHub client.

        Args:
            token: GitHub API token for authentication.
            base_url: Base URL for GitHub API. Use this to support
                      GitHub Enterprise Server endpoints.
            max_retries: Maximum number of retry attempts.
            base_delay: Base delay in seconds for exponential backoff.
            max_delay: Maximum delay in seconds between retries.
            timeout: Request timeout in seconds.
            transport: Optional httpx transport (used by tests).
        """
        self.token = token
        self.base_url = base_url.rstrip("/")
        self.max_retries = max_retries
        self.base_delay = base_delay
        self.max_delay = max_delay
        self.timeout = timeout
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    @classmethod
    def from_settings(cls, settings: PRCreatorSettings) -> "GitHubClient":
        """Build a client from environment-derived settings."""
        return cls(
            token=settings.github_token,
            base_url=settings.github_base_url,
            max_retries=settings.max_transport_retries,
            timeout=settings.request_timeout_seconds,
        )

    @property
    def client(self) -> httpx.AsyncClient:
        """Get the HTTP client, creating it if necessary."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                headers=self._default_headers(),
                timeout=self.timeout,
                transport=self._transport,
            )
        return self._client

    def _default_headers(self) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {self.token}",
            "Accept": "application/vnd.github+json",
            "X-GitHub-Api-Version": "2022-11-28",
            "User-Agent": "pr-creator/1.0",
        }

    async def close(self) -> None:
        """Close the HTTP client and release resources."""
        if self._client is not None and not self._client.is_closed:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> "GitHubClient":
        return self

    async def __aexit__(
        self,
        exc_type: Any,
        exc_val: Any,
        exc_tb: Any,
    ) -> None:
        await self.close()

    def _calculate_backoff(self, attempt: int) -> float:
        """Calculate backoff delay with full jitter.

        Args:
            attempt: The current retry attempt (0-indexed).

        Returns:
            Delay in seconds before the next retry.
        """
        exponential_delay = self.base_delay * (2 ** attempt)
        capped_delay = min(exponential_delay, self.max_delay)
        return random.uniform(0, capped_delay)

    def _parse_int_header(
        self,
        headers: httpx.Headers,
        name: str,
    ) -> Optional[int]:
        value = headers.get(name)
        if value is not None:
            try:
                return int(value)
            except ValueError:
                pass
        return None

    def _handle_rate_limit(self, response: httpx.Response) -> None:
        """Raise a RateLimitError describing when to retry.

        Raises:
            RateLimitError: Always.
        """
        reset_at = self._parse_int_header(response.headers, "x-ratelimit-reset")

        retry_after = None
        if reset_at is not None:
            retry_after = max(0, reset_at - int(time.time()))

        retry_after_header = self._parse_int_header(response.headers, "retry-after")
        if retry_after_header is not None:
            retry_after = retry_after_header

        logger.warning(
            "GitHub API rate limit exceeded",
            extra={
                "reset_at": reset_at,
                "retry_after": retry_after,
                "limit": self._parse_int_header(response.headers, "x-ratelimit-limit"),
                "used": self._parse_int_header(response.headers, "x-ratelimit-used"),
            },
        )

        raise RateLimitError(
            message="GitHub API rate limit exceeded",
            status_code=response.status_code,
            reset_at=reset_at,
            retry_after=retry_after,
            request_url=str(response.url),
        )

    def _raise_for_error(self, method: str, response: httpx.Response) -> None:
        """Raise the typed error matching the response status."""
        try:
            body: Any = response.json()
        except ValueError:
            body = response.text

        error_cls = _error_class_for_status(response.status_code)
        message = build_error_message(
            method, str(response.url), response.status_code, body
        )
        logger.error(
            "GitHub API error",
            extra={
                "status_code": response.status_code,
                "path": response.url.path,
                "method": method,
                "response_body": response.text[:500],
            },
        )
        raise error_cls(
            message=message,
            status_code=response.status_code,
            response_body=response.text,
            request_url=str(response.url),
        )

    async def _request(
        self,
        method: str,
        path: str,
        json_data: Optional[Dict[str, Any]] = None,
        params: Optional[Dict[str, Any]] = None,
        headers: Optional[Dict[str, str]] = None,
    ) -> httpx.Response:
        """Make an HTTP request with retry logic.

        Retries timeouts, transport errors and retryable status codes with
        exponential backoff. Any other error response raises immediately.

        Args:
            method: HTTP method (GET, POST, PATCH, ...).
            path: API path (e.g., /repos/owner/repo/git/trees).
            json_data: Optional JSON body for the request.
            params: Optional query parameters.
            headers: Optional extra headers for this request only.

        Returns:
            The HTTP response from GitHub.

        Raises:
            GitHubAPIError: If the request fails after all retries.
            RateLimitError: If rate limit is exceeded.
        """
        last_exception: Optional[Exception] = None

        for attempt in range(self.max_retries + 1):
            try:
                response = await self.client.request(
                    method=method,
                    url=path,
                    json=json_data,
                    params=params,
                    headers=headers,
                )
            except httpx.TimeoutException as e:
                last_exception = e
                reason = "Request timeout, retrying"
            except httpx.RequestError as e:
                last_exception = e
                reason = "Request error, retrying"
            else:
                if response.status_code == 403:
                    remaining = self._parse_int_header(
                        response.headers,
                        "x-ratelimit-remaining",
                    )
                    if remaining == 0:
                        self._handle_rate_limit(response)

                if response.status_code == 429:
                    self._handle_rate_limit(response)

                if (
                    response.status_code in self.RETRYABLE_STATUS_CODES
                    and attempt < self.max_retries
                ):
                    last_exception = None
                    reason = "Retryable error from GitHub API"
                else:
                    if response.status_code >= 400:
                        self._raise_for_error(method, response)
                    return response

            if attempt < self.max_retries:
                delay = self._calculate_backoff(attempt)
                logger.warning(
                    reason,
                    extra={
                        "error": str(last_exception) if last_exception else None,
                        "attempt": attempt + 1,
                        "max_retries": self.max_retries,
                        "delay": delay,
                        "path": path,
                    },
                )
                await asyncio.sleep(delay)

        logger.error(
            "GitHub API request failed after all retries",
            extra={
                "path": path,
                "method": method,
                "max_retries": self.max_retries,
                "last_error": str(last_exception),
            },
        )
        raise GitHubAPIError(
            message=f"Request failed after {self.max_retries} retries: {last_exception}",
            request_url=f"{self.base_url}{path}",
        )

    # ------------------------------------------------------------------
    # Repositories
    # ------------------------------------------------------------------

    async def get_repository(self, repo: str) -> Repository:
        """Get repository metadata.

        Args:
            repo: Repository path in format "{owner}/{name}".

        Raises:
            NotFoundError: If the repository does not exist or is hidden.
        """
        response = await self._request(method="GET", path=f"/repos/{repo}")
        return Repository.from_github_response(response.json())

    async def repository_exists(self, repo: str) -> bool:
        """Probe whether a repository exists and is visible to the token."""
        try:
            await self.get_repository(repo)
        except NotFoundError:
            return False
        return True

    # ------------------------------------------------------------------
    # Git data
    # ------------------------------------------------------------------

    async def create_tree(
        self,
        repo: str,
        entries: List[Dict[str, str]],
        base_tree: Optional[str] = None,
    ) -> GitTree:
        """Create a tree object.

        Args:
            repo: Repository path in format "{owner}/{name}".
            entries: Tree entries with path, mode, type and sha or content.
            base_tree: SHA of the tree (or commit) the entries are layered on.

        Returns:
            The created tree.
        """
        payload: Dict[str, Any] = {"tree": entries}
        if base_tree is not None:
            payload["base_tree"] = base_tree

        logger.info(
            "Creating tree",
            extra={"repo": repo, "entries": len(entries), "base_tree": base_tree},
        )

        response = await self._request(
            method="POST",
            path=f"/repos/{repo}/git/trees",
            json_data=payload,
        )
        return GitTree.from_github_response(response.json())

    async def create_commit(self, repo: str, spec: CommitSpec) -> GitCommit:
        """Create a commit object from a CommitSpec."""
        payload: Dict[str, Any] = {
            "message": spec.message,
            "tree": spec.tree_sha,
            "parents": [spec.parent_sha],
        }
        if spec.author is not None:
            payload["author"] = spec.author.to_github()
        if spec.signature is not None:
            payload["signature"] = spec.signature

        logger.info(
            "Creating commit",
            extra={
                "repo": repo,
                "tree_sha": spec.tree_sha,
                "parent_sha": spec.parent_sha,
                "signed": spec.signature is not None,
            },
        )

        response = await self._request(
            method="POST",
            path=f"/repos/{repo}/git/commits",
            json_data=payload,
        )
        return GitCommit.from_github_response(response.json())

    async def create_ref(self, repo: str, ref: str, sha: str) -> GitRef:
        """Create a reference.

        Args:
            repo: Repository path in format "{owner}/{name}".
            ref: Reference name without the ``refs/`` prefix
                 (e.g. "heads/my-branch").
            sha: SHA the new reference points at.
        """
        logger.info(
            "Creating reference",
            extra={"repo": repo, "ref": ref, "sha": sha},
        )
        response = await self._request(
            method="POST",
            path=f"/repos/{repo}/git/refs",
            json_data={"ref": f"refs/{ref}", "sha": sha},
        )
        return GitRef.from_github_response(response.json())

    async def update_ref(
        self,
        repo: str,
        ref: str,
        sha: str,
        force: bool = False,
    ) -> GitRef:
        """Move an existing reference, optionally without a fast-forward check."""
        logger.info(
            "Updating reference",
            extra={"repo": repo, "ref": ref, "sha": sha, "force": force},
        )
        response = await self._request(
            method="PATCH",
            path=f"/repos/{repo}/git/refs/{ref}",
            json_data={"sha": sha, "force": force},
        )
        return GitRef.from_github_response(response.json())

    # ------------------------------------------------------------------
    # Pull requests
    # ------------------------------------------------------------------

    async def list_pull_requests(
        self,
        repo: str,
        head: str,
        state: str = "open",
    ) -> List[PullRequest]:
        """List pull requests from a head branch.

        Args:
            repo: Repository path in format "{owner}/{name}".
            head: Head filter in format "{owner}:{branch}".
            state: "open", "closed" or "all".
        """
        response = await self._request(
            method="GET",
            path=f"/repos/{repo}/pulls",
            params={"head": head, "state": state},
        )
        return [PullRequest.from_github_response(pr) for pr in response.json()]

    async def create_pull_request(
        self,
        repo: str,
        request: PullRequestRequest,
    ) -> PullRequest:
        """Create a pull request.

        Args:
            repo: Repository path in format "{owner}/{name}".
            request: Pull request creation request with title, body,
                     branches and custom headers.

        Returns:
            The created pull request.
        """
        logger.info(
            "Creating pull request",
            extra={
                "repo": repo,
                "title": request.title,
                "head": request.head_branch,
                "base": request.base_branch,
            },
        )

        response = await self._request(
            method="POST",
            path=f"/repos/{repo}/pulls",
            json_data={
                "title": request.title,
                "body": request.body,
                "head": request.head_branch,
                "base": request.base_branch,
            },
            headers=dict(request.extra_headers) or None,
        )

        result = PullRequest.from_github_response(response.json())
        logger.info(
            "Pull request created successfully",
            extra={
                "repo": repo,
                "pr_number": result.number,
                "pr_url": result.html_url,
            },
        )
        return result

    async def add_labels(
        self,
        repo: str,
        number: int,
        labels: Iterable[str],
    ) -> None:
        """Add labels to a pull request.

        PRs use the issues API for labels since PRs are a type of issue.
        """
        labels = sorted(labels)
        logger.info(
            "Adding labels to pull request",
            extra={"repo": repo, "pr_number": number, "labels": labels},
        )
        await self._request(
            method="POST",
            path=f"/repos/{repo}/issues/{number}/labels",
            json_data={"labels": labels},
        )

    async def request_reviewers(
        self,
        repo: str,
        number: int,
        reviewers: Iterable[str] = (),
        team_reviewers: Iterable[str] = (),
    ) -> None:
        """Request user and team reviews for a pull request."""
        reviewers = list(reviewers)
        team_reviewers = list(team_reviewers)
        logger.info(
            "Requesting reviewers for pull request",
            extra={
                "repo": repo,
                "pr_number": number,
                "reviewers": reviewers,
                "team_reviewers": team_reviewers,
            },
        )
        await self._request(
            method="POST",
            path=f"/repos/{repo}/pulls/{number}/requested_reviewers",
            json_data={"reviewers": reviewers, "team_reviewers": team_reviewers},
        )

    async def add_assignees(
        self,
        repo: str,
        number: int,
        assignees: Iterable[str],
    ) -> None:
        """Assign users to a pull request."""
        assignees = sorted(assignees)
        logger.info(
            "Adding assignees to pull request",
            extra={"repo": repo, "pr_number": number, "assignees": assignees},
        )
        await self._request(
            method="POST",
            path=f"/repos/{repo}/issues/{number}/assignees",
            json_data={"assignees": assignees},
        )

    async def update_issue_milestone(
        self,
        repo: str,
        number: int,
        milestone: int,
    ) -> None:
        """Attach a milestone to a pull request."""
        logger.info(
            "Setting milestone on pull request",
            extra={"repo": repo, "pr_number": number, "milestone": milestone},
        )
        await self._request(
            method="PATCH",
            path=f"/repos/{repo}/issues/{number}",
            json_data={"milestone": milestone},
        )
