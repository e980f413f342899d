"""Classification of GitHub failures into domain errors and race signals.

GitHub does not return machine-readable codes for the failures this
workflow cares about, so every decision here is substring matching over
the formatted error message (see ``build_error_message``). The matching
is kept in this module so that the rest of the package depends only on
the predicates and the typed errors they produce. A wording change on
GitHub's side breaks the predicate, not the call sites.
"""

import logging

from src.pr_creator.errors import NoHistoryInCommon, RepoArchived, RepoNotFound
from src.pr_creator.github.client import (
    ForbiddenError,
    GitHubAPIError,
    GitHubClient,
    NotFoundError,
    ServerError,
    UnprocessableEntityError,
)
from src.pr_creator.models import RemoteRepoIdentity


logger = logging.getLogger(__name__)

ARCHIVED_MARKER = "Repository was archived"
NO_HISTORY_MARKER = "no history in common"
TREE_MISSING_MARKER = "Tree SHA does not exist"
REF_UPDATE_FAILED_MARKER = "Reference update failed"
REF_EXISTS_MARKER = "reference already exists"
PR_EXISTS_MARKER = "pull request already exists"
INVALID_BASE_MARKER = "field: base"
NOT_COLLABORATOR_MARKER = "not a collaborator"
UNRESOLVED_NODE_MARKER = "Could not resolve to a node"
INVALID_VALUE_MARKER = "code: invalid"


def _unprocessable_with(error: Exception, marker: str) -> bool:
    return isinstance(error, UnprocessableEntityError) and marker in error.message


# ----------------------------------------------------------------------
# Conflict predicates
# ----------------------------------------------------------------------


def is_tree_not_found(error: Exception) -> bool:
    """The new tree is not yet visible to the commit endpoint."""
    return _unprocessable_with(error, TREE_MISSING_MARKER)


def is_reference_update_failed(error: Exception) -> bool:
    """Another actor moved the ref while we were writing it."""
    return _unprocessable_with(error, REF_UPDATE_FAILED_MARKER)


def is_reference_already_exists(error: Exception) -> bool:
    """Another actor created the branch first."""
    return (
        isinstance(error, UnprocessableEntityError)
        and REF_EXISTS_MARKER in error.message.lower()
    )


def is_ref_name_collision(error: Exception) -> bool:
    """Ref creation was refused for a reason other than the ref existing.

    GitHub reports a branch whose name is a path prefix of an existing
    branch (``deps`` vs ``deps/update``) as a plain validation failure.
    """
    return isinstance(
        error, UnprocessableEntityError
    ) and not is_reference_already_exists(error)


def is_pull_request_already_exists(error: Exception) -> bool:
    """Another actor opened the same pull request first."""
    return _unprocessable_with(error, PR_EXISTS_MARKER)


def is_invalid_base(error: Exception) -> bool:
    """Pull request creation rejected the base branch."""
    return _unprocessable_with(error, INVALID_BASE_MARKER)


def is_unknown_reviewer(error: Exception) -> bool:
    """A requested reviewer is not a collaborator or does not exist."""
    return _unprocessable_with(error, NOT_COLLABORATOR_MARKER) or _unprocessable_with(
        error, UNRESOLVED_NODE_MARKER
    )


def is_invalid_assignee(error: Exception) -> bool:
    """An assignee login no longer names a user (e.g. became an org)."""
    return isinstance(error, NotFoundError)


def is_invalid_milestone(error: Exception) -> bool:
    return _unprocessable_with(error, INVALID_VALUE_MARKER)


def is_server_error(error: Exception) -> bool:
    return isinstance(error, ServerError)


# ----------------------------------------------------------------------
# Domain classification
# ----------------------------------------------------------------------


class ErrorClassifier:
    """Maps a GitHub failure onto the domain error taxonomy.

    Attributes:
        client: GitHub client used to re-probe repository existence.
        identity: The repository the failing call was addressed to.
    """

    def __init__(self, client: GitHubClient, identity: RemoteRepoIdentity):
        self.client = client
        self.identity = identity

    async def classify(self, error: GitHubAPIError) -> Exception:
        """Return the exception to raise in place of ``error``.

        The original error is returned unchanged when it does not match
        any domain condition.
        """
        if isinstance(error, ForbiddenError):
            if ARCHIVED_MARKER in error.message:
                return RepoArchived(error.message)
            return error

        if isinstance(error, NotFoundError):
            if await self.client.repository_exists(self.identity.repo):
                logger.warning(
                    "Resource not found in an existing repository",
                    extra={"repo": self.identity.repo, "url": error.request_url},
                )
                return error
            return RepoNotFound(self.identity.url)

        if _unprocessable_with(error, NO_HISTORY_MARKER):
            return NoHistoryInCommon(error.message)

        return error
