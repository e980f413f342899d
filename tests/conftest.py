"""Pytest configuration and shared fixtures for all tests."""

from unittest.mock import AsyncMock

import pytest

from src.pr_creator.github.models import (
    GitCommit,
    GitRef,
    GitTree,
    PullRequest,
    Repository,
)
from src.pr_creator.models import RemoteRepoIdentity
from src.pr_creator.retry import ConflictRetrier


@pytest.fixture
def identity() -> RemoteRepoIdentity:
    return RemoteRepoIdentity(repo="acme/widgets")


@pytest.fixture
def client():
    """A GitHub client whose every call succeeds."""
    client = AsyncMock()
    client.repository_exists.return_value = True
    client.get_repository.return_value = Repository(
        full_name="acme/widgets", default_branch="main"
    )
    client.create_tree.return_value = GitTree(sha="tree-sha")
    client.create_commit.return_value = GitCommit(sha="commit-sha", tree_sha="tree-sha")
    client.create_ref.return_value = GitRef(
        ref="refs/heads/dep/update", sha="commit-sha"
    )
    client.update_ref.return_value = GitRef(
        ref="refs/heads/dep/update", sha="commit-sha"
    )
    client.list_pull_requests.return_value = []
    client.create_pull_request.return_value = PullRequest(
        number=7,
        html_url="https://github.com/acme/widgets/pull/7",
    )
    return client


@pytest.fixture
def git_metadata():
    """Ref advertisement with only the default branch."""
    fetcher = AsyncMock()
    fetcher.ref_names.return_value = ["main"]
    return fetcher


@pytest.fixture
def sleep() -> AsyncMock:
    return AsyncMock()


@pytest.fixture
def retrier(sleep) -> ConflictRetrier:
    """A retrier that never actually waits."""
    return ConflictRetrier(sleep=sleep)
