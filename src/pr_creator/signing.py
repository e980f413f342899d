"""Commit signing boundary.

Signing cryptography is supplied by the caller through the CommitSigner
protocol. This module only renders the raw git commit object that the
signature has to cover, which must match byte for byte what GitHub
reconstructs from the create-commit request.
"""

from datetime import datetime
from typing import Protocol, runtime_checkable

from src.pr_creator.models import CommitAuthor


@runtime_checkable
class CommitSigner(Protocol):
    """Produces an ASCII-armored detached signature for a payload."""

    def sign(self, payload: str) -> str:
        ...


def _git_timestamp(iso_date: str) -> str:
    moment = datetime.fromisoformat(iso_date.replace("Z", "+00:00"))
    offset = moment.strftime("%z") or "+0000"
    return f"{int(moment.timestamp())} {offset}"


def build_commit_payload(
    author: CommitAuthor,
    message: str,
    tree_sha: str,
    parent_sha: str,
) -> str:
    """Render the git commit object text for signing.

    The author is also used as committer. ``author.date`` must be set.
    """
    if author.date is None:
        raise ValueError("author date must be set before signing")

    identity = f"{author.name} <{author.email}> {_git_timestamp(author.date)}"
    return (
        f"tree {tree_sha}\n"
        f"parent {parent_sha}\n"
        f"author {identity}\n"
        f"committer {identity}\n"
        f"\n"
        f"{message}"
    )
