"""Turns a ChangeSet into a tree and a commit on top of a base commit."""

import logging
from datetime import datetime, timezone
from typing import Dict, List, Optional

from src.pr_creator.classifier import is_tree_not_found
from src.pr_creator.github.client import GitHubClient
from src.pr_creator.github.models import GitCommit, GitTree
from src.pr_creator.models import (
    ChangeSet,
    CommitAuthor,
    CommitSpec,
    FileKind,
    RemoteRepoIdentity,
)
from src.pr_creator.retry import ConflictRetrier
from src.pr_creator.signing import CommitSigner, build_commit_payload


logger = logging.getLogger(__name__)

BLOB_MODE = "100644"
SUBMODULE_MODE = "160000"


def build_tree_entries(changeset: ChangeSet) -> List[Dict[str, str]]:
    """Convert file changes into git data API tree entries.

    Submodules become gitlinks pointing at the commit SHA held in their
    content; regular files are uploaded inline as blobs.
    """
    entries = []
    for change in changeset.files:
        if change.kind is FileKind.SUBMODULE:
            entries.append(
                {
                    "path": change.path,
                    "mode": SUBMODULE_MODE,
                    "type": "commit",
                    "sha": change.content,
                }
            )
        else:
            entries.append(
                {
                    "path": change.path,
                    "mode": BLOB_MODE,
                    "type": "blob",
                    "content": change.content,
                }
            )
    return entries


class CommitBuilder:
    """Creates the tree and commit objects for a change set.

    Attributes:
        client: GitHub API client.
        identity: Repository the objects are created in.
        retrier: Executor absorbing tree visibility races.
    """

    def __init__(
        self,
        client: GitHubClient,
        identity: RemoteRepoIdentity,
        retrier: Optional[ConflictRetrier] = None,
    ):
        self.client = client
        self.identity = identity
        self.retrier = retrier or ConflictRetrier()

    async def create_tree(self, changeset: ChangeSet, base_commit: str) -> GitTree:
        return await self.client.create_tree(
            self.identity.repo,
            build_tree_entries(changeset),
            base_tree=base_commit,
        )

    def commit_spec(
        self,
        tree: GitTree,
        base_commit: str,
        message: str,
        author: Optional[CommitAuthor] = None,
        signer: Optional[CommitSigner] = None,
    ) -> CommitSpec:
        """Assemble the commit, signing it when an author and signer are given.

        Signing pins the author date, since the signature covers it.
        """
        signature = None
        if author is not None and signer is not None:
            author = author.model_copy(
                update={"date": datetime.now(timezone.utc).isoformat(timespec="seconds")}
            )
            signature = signer.sign(
                build_commit_payload(author, message, tree.sha, base_commit)
            )

        return CommitSpec(
            message=message,
            tree_sha=tree.sha,
            parent_sha=base_commit,
            author=author,
            signature=signature,
        )

    async def build_commit(
        self,
        changeset: ChangeSet,
        base_commit: str,
        message: str,
        author: Optional[CommitAuthor] = None,
        signer: Optional[CommitSigner] = None,
    ) -> GitCommit:
        """Create a tree anchored at ``base_commit`` and a commit on top of it.

        Args:
            changeset: Files to write.
            base_commit: SHA of the parent commit (also the base tree).
            message: Commit message.
            author: Optional author identity.
            signer: Optional signer; only used together with ``author``.

        Returns:
            The created commit.
        """
        tree = await self.create_tree(changeset, base_commit)
        spec = self.commit_spec(tree, base_commit, message, author, signer)

        commit = await self.retrier.run(
            lambda: self.client.create_commit(self.identity.repo, spec),
            is_tree_not_found,
            operation="create commit for tree",
            target=tree.sha,
        )

        logger.info(
            "Commit created",
            extra={
                "repo": self.identity.repo,
                "commit_sha": commit.sha,
                "files": len(changeset.files),
            },
        )
        return commit
