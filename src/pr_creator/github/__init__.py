"""GitHub API access for pull request creation.

This module provides the remote operations the workflow is built from:
- The async REST client (git data, pulls, issues)
- Ref discovery over git smart HTTP
- Response models

Includes rate limiting and retry logic for API resilience.
"""

from src.pr_creator.github.client import (
    ForbiddenError,
    GitHubAPIError,
    GitHubClient,
    NotFoundError,
    RateLimitError,
    ServerError,
    UnprocessableEntityError,
)
from src.pr_creator.github.git_metadata import GitMetadataFetcher, GitUnreachable
from src.pr_creator.github.models import (
    GitCommit,
    GitRef,
    GitTree,
    PullRequest,
    Repository,
)

__all__ = [
    "ForbiddenError",
    "GitCommit",
    "GitHubAPIError",
    "GitHubClient",
    "GitMetadataFetcher",
    "GitRef",
    "GitTree",
    "GitUnreachable",
    "NotFoundError",
    "PullRequest",
    "RateLimitError",
    "Repository",
    "ServerError",
    "UnprocessableEntityError",
]
