"""Post-creation enrichment of a pull request.

Labels, reviewers, assignees and the milestone are applied in that order
once the pull request exists. Each step tolerates its own known-benign
failure; any other failure propagates, but the pull request is never
rolled back.
"""

import logging
from typing import Callable

from src.pr_creator.classifier import (
    is_invalid_assignee,
    is_invalid_milestone,
    is_unknown_reviewer,
)
from src.pr_creator.github.client import GitHubAPIError, GitHubClient
from src.pr_creator.github.models import PullRequest
from src.pr_creator.models import Annotations, RemoteRepoIdentity


logger = logging.getLogger(__name__)


class AnnotationApplier:
    """Applies Annotations to a created pull request."""

    def __init__(self, client: GitHubClient, identity: RemoteRepoIdentity):
        self.client = client
        self.identity = identity

    async def apply(self, pull_request: PullRequest, annotations: Annotations) -> None:
        if annotations.labels:
            await self.client.add_labels(
                self.identity.repo, pull_request.number, annotations.labels
            )
        if annotations.reviewers:
            await self.add_reviewers(pull_request, annotations)
        if annotations.assignees:
            await self.add_assignees(pull_request, annotations)
        if annotations.milestone is not None:
            await self.add_milestone(pull_request, annotations)

    async def add_reviewers(
        self, pull_request: PullRequest, annotations: Annotations
    ) -> None:
        try:
            await self.client.request_reviewers(
                self.identity.repo,
                pull_request.number,
                reviewers=annotations.reviewers.users,
                team_reviewers=annotations.reviewers.teams,
            )
        except GitHubAPIError as e:
            self._skip_if(e, is_unknown_reviewer, pull_request, "reviewers")

    async def add_assignees(
        self, pull_request: PullRequest, annotations: Annotations
    ) -> None:
        try:
            await self.client.add_assignees(
                self.identity.repo, pull_request.number, annotations.assignees
            )
        except GitHubAPIError as e:
            self._skip_if(e, is_invalid_assignee, pull_request, "assignees")

    async def add_milestone(
        self, pull_request: PullRequest, annotations: Annotations
    ) -> None:
        try:
            await self.client.update_issue_milestone(
                self.identity.repo, pull_request.number, annotations.milestone
            )
        except GitHubAPIError as e:
            self._skip_if(e, is_invalid_milestone, pull_request, "milestone")

    def _skip_if(
        self,
        error: GitHubAPIError,
        is_benign: Callable[[Exception], bool],
        pull_request: PullRequest,
        annotation: str,
    ) -> None:
        """Re-raise ``error`` unless ``is_benign`` accepts it."""
        if not is_benign(error):
            raise error
        logger.debug(
            "Skipped pull request annotation",
            extra={
                "repo": self.identity.repo,
                "pr_number": pull_request.number,
                "annotation": annotation,
                "error": error.message,
            },
        )
