"""Typed errors surfaced to callers of the pull request creator.

Every condition the workflow absorbs (races, transient visibility gaps,
duplicate-state detections) is handled where it occurs. What remains is
raised once as one of the errors below, or as the original
``GitHubAPIError`` when it could not be classified. There is no separate
"unclassified" wrapper: an unchanged ``GitHubAPIError`` is that case.
"""


class PullRequestCreatorError(Exception):
    """Base class for domain errors raised by the pull request creator."""


class RepoNotFound(PullRequestCreatorError):
    """Raised when the target repository does not exist or is inaccessible.

    Attributes:
        target: URL of the repository that could not be found.
    """

    def __init__(self, target: str):
        self.target = target
        super().__init__(f"Repository not found: {target}")


class RepoArchived(PullRequestCreatorError):
    """Raised when the repository is archived and refuses mutation."""

    def __init__(self, detail: str):
        self.detail = detail
        super().__init__(detail)


class NoHistoryInCommon(PullRequestCreatorError):
    """Raised when the base commit shares no history with the target."""

    def __init__(self, detail: str):
        self.detail = detail
        super().__init__(detail)


class RepeatedOperationFailure(PullRequestCreatorError):
    """Raised when a racing step keeps conflicting past the retry ceiling.

    Attributes:
        operation: Name of the step that kept failing.
        target: What the step operated on (branch, tree SHA, ...).
        attempts: Number of attempts made before giving up.
    """

    def __init__(self, operation: str, target: str, attempts: int = 0):
        self.operation = operation
        self.target = target
        self.attempts = attempts
        super().__init__(
            f"Repeatedly failed to {operation} {target} "
            f"after {attempts} attempts"
        )
