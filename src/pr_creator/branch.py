"""Branch reconciliation for concurrent pull request creators.

Points a branch at a new commit, creating the branch when it is absent
and force-moving it when it exists. Several creators may race for the
same branch name; the reconciler treats a lost creation race as a
no-op and retries ref updates that collide with another writer.

State flow:
    probe → create (absent) → done | lost race | collision → create again
    probe → update (present) → done
"""

import logging
import secrets
from typing import List, Optional

from src.pr_creator.classifier import (
    is_ref_name_collision,
    is_reference_already_exists,
    is_reference_update_failed,
)
from src.pr_creator.errors import RepoNotFound
from src.pr_creator.github.client import GitHubAPIError, GitHubClient
from src.pr_creator.github.git_metadata import GitMetadataFetcher, GitUnreachable
from src.pr_creator.github.models import GitCommit
from src.pr_creator.models import BranchTarget, RemoteRepoIdentity
from src.pr_creator.retry import ConflictRetrier


logger = logging.getLogger(__name__)

# Probes after the first that may hit an unreachable git endpoint.
MAX_PROBE_RETRIES = 1

# Creation attempts with a prefixed name after a name collision.
MAX_COLLISION_RETRIES = 1


def collision_free_name(branch_name: str) -> str:
    """Prefix the branch with four random hex characters."""
    return secrets.token_hex(2) + branch_name


class BranchReconciler:
    """Creates or fast-forwards a branch, tolerating concurrent creators.

    Attributes:
        client: GitHub API client.
        identity: Repository the branch lives in.
        git_metadata: Source of the advertised ref names.
        retrier: Executor absorbing concurrent ref updates.
    """

    def __init__(
        self,
        client: GitHubClient,
        identity: RemoteRepoIdentity,
        git_metadata: GitMetadataFetcher,
        retrier: Optional[ConflictRetrier] = None,
    ):
        self.client = client
        self.identity = identity
        self.git_metadata = git_metadata
        self.retrier = retrier or ConflictRetrier()

    async def ref_names(self) -> List[str]:
        """Fetch advertised ref names, retrying one unreachable response.

        Raises:
            RepoNotFound: If the git endpoint is unreachable because the
                          repository no longer exists.
            GitUnreachable: If the endpoint stays unreachable for an
                            existing repository.
        """
        attempt = 0
        while True:
            attempt += 1
            try:
                return await self.git_metadata.ref_names()
            except GitUnreachable as e:
                if not await self.client.repository_exists(self.identity.repo):
                    raise RepoNotFound(self.identity.url) from e
                if attempt > MAX_PROBE_RETRIES:
                    raise
                logger.warning(
                    "Git metadata unreachable for existing repository, retrying",
                    extra={"repo": self.identity.repo, "attempt": attempt},
                )

    async def branch_exists(self, branch_name: str) -> bool:
        return branch_name in await self.ref_names()

    async def reconcile(
        self,
        branch_name: str,
        commit: GitCommit,
    ) -> Optional[BranchTarget]:
        """Point ``branch_name`` at ``commit``.

        Returns:
            The branch as it now exists, carrying the effective name, or
            None when another actor created the branch first.

        Raises:
            RepeatedOperationFailure: If ref updates keep racing.
            GitHubAPIError: On any failure that is not a handled race.
        """
        return await self.retrier.run(
            lambda: self._create_or_update(branch_name, commit),
            is_reference_update_failed,
            operation="create or update branch",
            target=f"{branch_name} with commit {commit.sha}",
        )

    async def _create_or_update(
        self,
        branch_name: str,
        commit: GitCommit,
    ) -> Optional[BranchTarget]:
        if await self.branch_exists(branch_name):
            return await self.update(branch_name, commit)
        return await self.create(branch_name, commit)

    async def update(self, branch_name: str, commit: GitCommit) -> BranchTarget:
        target = BranchTarget(name=branch_name, head_sha=commit.sha)
        await self.client.update_ref(
            self.identity.repo, target.ref, commit.sha, force=True
        )
        logger.info(
            "Branch updated",
            extra={"repo": self.identity.repo, "branch": branch_name, "sha": commit.sha},
        )
        return target

    async def create(
        self,
        branch_name: str,
        commit: GitCommit,
    ) -> Optional[BranchTarget]:
        """Create the branch, falling back to a prefixed name on collision."""
        name = branch_name
        collisions = 0
        while True:
            target = BranchTarget(name=name, head_sha=commit.sha)
            try:
                await self.client.create_ref(self.identity.repo, target.ref, commit.sha)
            except GitHubAPIError as e:
                if is_reference_already_exists(e):
                    logger.warning(
                        "Branch created concurrently by another actor",
                        extra={"repo": self.identity.repo, "branch": name},
                    )
                    return None
                if not is_ref_name_collision(e) or collisions >= MAX_COLLISION_RETRIES:
                    raise
                collisions += 1
                name = collision_free_name(branch_name)
                logger.warning(
                    "Branch name collides with an existing ref, using a prefixed name",
                    extra={
                        "repo": self.identity.repo,
                        "branch": branch_name,
                        "effective_branch": name,
                    },
                )
                continue

            logger.info(
                "Branch created",
                extra={"repo": self.identity.repo, "branch": name, "sha": commit.sha},
            )
            return target
