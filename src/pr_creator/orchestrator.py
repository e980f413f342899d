"""Pull request orchestrator connecting all steps of the creation workflow.

Drives one pull request through:
existence checks → tree/commit → branch → pull request → annotations.

The workflow is idempotent across invocations rather than atomic: every
step either completes, detects that a concurrent actor already did the
equivalent work and stops with ``None``, or fails with a single
classified error. Partial remote state (a dangling commit, a moved
branch) is picked up by the next invocation's existence checks.

Source:
- src/pr_creator/commit_builder.py (CommitBuilder)
- src/pr_creator/branch.py (BranchReconciler)
- src/pr_creator/annotations.py (AnnotationApplier)
- src/pr_creator/classifier.py (ErrorClassifier)
"""

import logging
from typing import Dict, Optional

from src.pr_creator.annotations import AnnotationApplier
from src.pr_creator.branch import BranchReconciler
from src.pr_creator.classifier import (
    ErrorClassifier,
    is_invalid_base,
    is_pull_request_already_exists,
)
from src.pr_creator.commit_builder import CommitBuilder
from src.pr_creator.github.client import GitHubAPIError, GitHubClient, ServerError
from src.pr_creator.github.git_metadata import GitMetadataFetcher
from src.pr_creator.github.models import PullRequest
from src.pr_creator.models import (
    Annotations,
    ChangeSet,
    CommitAuthor,
    PullRequestRequest,
    RemoteRepoIdentity,
)
from src.pr_creator.retry import ConflictRetrier
from src.pr_creator.signing import CommitSigner

logger = logging.getLogger(__name__)


class PullRequestCreator:
    """Creates one pull request for a change set, safely under races.

    Accepts its collaborators via constructor injection and builds the
    step components from them; a shared retrier may be supplied.

    Attributes:
        client: GitHub API client.
        identity: Target repository (and optional base branch).
        branch_name: Requested head branch name.
        base_commit: SHA the new commit is built on.
        changeset: Files to commit.
        commit_message: Message of the new commit.
        pr_title: Pull request title.
        pr_body: Pull request description.
        author: Optional commit author.
        signer: Optional commit signer, used only with an author.
        custom_headers: Extra headers sent with the create-PR request.
        annotations: Labels, reviewers, assignees and milestone.
    """

    def __init__(
        self,
        client: GitHubClient,
        identity: RemoteRepoIdentity,
        git_metadata: GitMetadataFetcher,
        branch_name: str,
        base_commit: str,
        changeset: ChangeSet,
        commit_message: str,
        pr_title: str,
        pr_body: str = "",
        author: Optional[CommitAuthor] = None,
        signer: Optional[CommitSigner] = None,
        custom_headers: Optional[Dict[str, str]] = None,
        annotations: Optional[Annotations] = None,
        retrier: Optional[ConflictRetrier] = None,
    ):
        self.client = client
        self.identity = identity
        self.branch_name = branch_name
        self.base_commit = base_commit
        self.changeset = changeset
        self.commit_message = commit_message
        self.pr_title = pr_title
        self.pr_body = pr_body
        self.author = author
        self.signer = signer
        self.custom_headers = custom_headers or {}
        self.annotations = annotations or Annotations()

        retrier = retrier or ConflictRetrier()
        self.classifier = ErrorClassifier(client, identity)
        self.commit_builder = CommitBuilder(client, identity, retrier)
        self.branches = BranchReconciler(client, identity, git_metadata, retrier)
        self.annotator = AnnotationApplier(client, identity)

    async def create(self) -> Optional[PullRequest]:
        """Run the workflow.

        Returns:
            The created pull request, or None when the work was already
            done or a concurrent actor completed it first.

        Raises:
            RepoNotFound: The repository does not exist.
            RepoArchived: The repository is archived.
            NoHistoryInCommon: The base commit is unrelated to the target.
            RepeatedOperationFailure: A racing step never settled.
            GitHubAPIError: Any other remote failure, unchanged.
        """
        try:
            return await self._create()
        except GitHubAPIError as e:
            classified = await self.classifier.classify(e)
            if classified is e:
                raise
            raise classified from e

    async def _create(self) -> Optional[PullRequest]:
        if await self.branches.branch_exists(self.branch_name) and (
            await self.pull_request_exists()
        ):
            logger.info(
                "Branch and pull request already exist",
                extra={"repo": self.identity.repo, "branch": self.branch_name},
            )
            return None

        commit = await self.commit_builder.build_commit(
            self.changeset,
            self.base_commit,
            self.commit_message,
            author=self.author,
            signer=self.signer,
        )

        branch = await self.branches.reconcile(self.branch_name, commit)
        if branch is None:
            return None

        pull_request = await self.create_pull_request(branch.name)
        if pull_request is None:
            return None

        await self.annotator.apply(pull_request, self.annotations)
        return pull_request

    async def pull_request_exists(self) -> bool:
        """Check for an open or closed pull request from the branch."""
        head = f"{self.identity.owner}:{self.branch_name}"
        try:
            pulls = await self.client.list_pull_requests(
                self.identity.repo, head=head, state="all"
            )
        except ServerError:
            # The combined state filter intermittently fails server-side.
            logger.warning(
                "Listing pull requests with state=all failed, querying states separately",
                extra={"repo": self.identity.repo, "head": head},
            )
            pulls = []
            for state in ("open", "closed"):
                pulls.extend(
                    await self.client.list_pull_requests(
                        self.identity.repo, head=head, state=state
                    )
                )
        return bool(pulls)

    async def base_branch(self) -> str:
        if self.identity.branch:
            return self.identity.branch
        repository = await self.client.get_repository(self.identity.repo)
        return repository.default_branch

    async def create_pull_request(self, head_branch: str) -> Optional[PullRequest]:
        """Open the pull request, absorbing lost races and a deleted base."""
        request = PullRequestRequest(
            base_branch=await self.base_branch(),
            head_branch=head_branch,
            title=self.pr_title,
            body=self.pr_body,
            extra_headers=self.custom_headers,
        )
        try:
            return await self.client.create_pull_request(self.identity.repo, request)
        except GitHubAPIError as e:
            if is_pull_request_already_exists(e):
                logger.warning(
                    "Pull request created concurrently by another actor",
                    extra={"repo": self.identity.repo, "head": head_branch},
                )
                return None
            if (
                is_invalid_base(e)
                and self.identity.branch
                and not await self.branches.branch_exists(self.identity.branch)
            ):
                logger.warning(
                    "Base branch was deleted before the pull request was opened",
                    extra={"repo": self.identity.repo, "base": self.identity.branch},
                )
                return None
            raise
