"""Input models for a single pull request creation.

This module defines the records an orchestration is built from:
- FileKind / FileChange / ChangeSet: the logical file changes to commit
- CommitAuthor / CommitSpec: the commit object to create
- BranchTarget: the desired (and finally effective) state of a branch
- PullRequestRequest: the pull request to open
- ReviewerSet / Annotations: post-creation enrichment
- RemoteRepoIdentity: the repository every remote call is addressed to

All models are frozen. They are constructed once per invocation and
discarded afterwards; only the remote state they describe persists.
"""

from enum import Enum
from typing import Dict, FrozenSet, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, ValidationInfo, field_validator


class FileKind(str, Enum):
    """How a file change is represented in the git tree.

    Attributes:
        REGULAR: A blob whose content is uploaded inline.
        SUBMODULE: A gitlink; the content is the target commit SHA.
    """

    REGULAR = "regular"
    SUBMODULE = "submodule"


class FileChange(BaseModel):
    """A single file to write into the new tree."""

    model_config = ConfigDict(frozen=True)

    path: str = Field(..., description="Repository-relative path")
    content: str = Field(
        ...,
        description="File content, or the commit SHA for submodules",
    )
    kind: FileKind = FileKind.REGULAR

    @field_validator("path")
    @classmethod
    def strip_leading_separator(cls, v: str) -> str:
        """Make the path repository-relative."""
        path = v.lstrip("/")
        if not path:
            raise ValueError("path cannot be empty")
        return path


class ChangeSet(BaseModel):
    """Ordered, immutable collection of file changes."""

    model_config = ConfigDict(frozen=True)

    files: Tuple[FileChange, ...] = Field(..., min_length=1)

    @property
    def paths(self) -> Tuple[str, ...]:
        return tuple(change.path for change in self.files)


class CommitAuthor(BaseModel):
    """Author identity attached to the commit."""

    model_config = ConfigDict(frozen=True)

    name: str
    email: str
    date: Optional[str] = Field(
        default=None,
        description="ISO-8601 UTC timestamp; stamped when the commit is signed",
    )

    def to_github(self) -> Dict[str, str]:
        data = {"name": self.name, "email": self.email}
        if self.date is not None:
            data["date"] = self.date
        return data


class CommitSpec(BaseModel):
    """Everything needed to create one commit object.

    The signature is derived by the commit builder from the author and
    a signer; it is only present when an author is present too.
    """

    model_config = ConfigDict(frozen=True)

    message: str
    tree_sha: str
    parent_sha: str
    author: Optional[CommitAuthor] = None
    signature: Optional[str] = None

    @field_validator("signature")
    @classmethod
    def signature_requires_author(
        cls, v: Optional[str], info: ValidationInfo
    ) -> Optional[str]:
        if v is not None and info.data.get("author") is None:
            raise ValueError("signature requires an author")
        return v


class BranchTarget(BaseModel):
    """A branch and the commit it should point at.

    When returned by the branch reconciler, ``name`` is the name that was
    actually used, which differs from the requested one after a name
    collision.
    """

    model_config = ConfigDict(frozen=True)

    name: str
    head_sha: str

    @property
    def ref(self) -> str:
        return f"heads/{self.name}"


class PullRequestRequest(BaseModel):
    """Parameters for opening a pull request."""

    model_config = ConfigDict(frozen=True)

    base_branch: str
    head_branch: str
    title: str
    body: str = ""
    extra_headers: Dict[str, str] = Field(default_factory=dict)


class ReviewerSet(BaseModel):
    """Users and teams to request reviews from."""

    model_config = ConfigDict(frozen=True)

    users: Tuple[str, ...] = ()
    teams: Tuple[str, ...] = ()

    def __bool__(self) -> bool:
        return bool(self.users or self.teams)


class Annotations(BaseModel):
    """Metadata applied to a pull request after it is created."""

    model_config = ConfigDict(frozen=True)

    labels: FrozenSet[str] = frozenset()
    reviewers: ReviewerSet = Field(default_factory=ReviewerSet)
    assignees: FrozenSet[str] = frozenset()
    milestone: Optional[int] = None


class RemoteRepoIdentity(BaseModel):
    """The repository a pull request is created against.

    Attributes:
        repo: Repository path in format "{owner}/{name}".
        api_endpoint: Base URL of the REST API.
        hostname: Host serving the git smart HTTP endpoints.
        branch: Base branch for the pull request; the repository's
                default branch is used when unset.
    """

    model_config = ConfigDict(frozen=True)

    repo: str
    api_endpoint: str = "https://api.github.com"
    hostname: str = "github.com"
    branch: Optional[str] = None

    @field_validator("repo")
    @classmethod
    def validate_repo(cls, v: str) -> str:
        parts = v.strip("/").split("/")
        if len(parts) != 2 or not all(parts):
            raise ValueError("repo must be in the form owner/name")
        return "/".join(parts)

    @property
    def owner(self) -> str:
        return self.repo.split("/")[0]

    @property
    def url(self) -> str:
        return f"https://{self.hostname}/{self.repo}"
