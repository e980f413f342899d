"""Property-based tests for the PullRequestCreator orchestration.

Verifies idempotence and race absorption across randomized branch names,
change sets and pre-existing remote state.

Testing Configuration:
- Library: Hypothesis (Python)
- Minimum iterations: 100 per property test
"""

import asyncio
from unittest.mock import AsyncMock

from hypothesis import given, settings, strategies as st

from src.pr_creator.github.client import UnprocessableEntityError
from src.pr_creator.github.models import GitCommit, GitTree, PullRequest, Repository
from src.pr_creator.models import ChangeSet, FileChange, FileKind, RemoteRepoIdentity
from src.pr_creator.orchestrator import PullRequestCreator
from src.pr_creator.retry import ConflictRetrier


def run_async(coro):
    return asyncio.run(coro)


MUTATING_CALLS = {
    "create_tree",
    "create_commit",
    "create_ref",
    "update_ref",
    "create_pull_request",
}

branch_name_strategy = st.from_regex(
    r"[a-z][a-z0-9_-]{0,15}(/[a-z0-9_-]{1,15}){0,2}", fullmatch=True
)

file_change_strategy = st.builds(
    FileChange,
    path=st.from_regex(r"/?[a-z][a-z0-9_/]{0,20}\.[a-z]{1,4}", fullmatch=True),
    content=st.text(max_size=50),
    kind=st.sampled_from(list(FileKind)),
)

changeset_strategy = st.builds(
    ChangeSet,
    files=st.lists(file_change_strategy, min_size=1, max_size=5).map(tuple),
)

pr_state_strategy = st.lists(st.sampled_from(["open", "closed"]), min_size=1, max_size=3)


def _make_client(existing_states):
    client = AsyncMock()
    client.repository_exists.return_value = True
    client.get_repository.return_value = Repository(
        full_name="acme/widgets", default_branch="main"
    )
    client.create_tree.return_value = GitTree(sha="t")
    client.create_commit.return_value = GitCommit(sha="c")
    client.list_pull_requests.return_value = [
        PullRequest(
            number=i + 1,
            html_url=f"https://github.com/acme/widgets/pull/{i + 1}",
            state=s,
        )
        for i, s in enumerate(existing_states)
    ]
    client.create_pull_request.return_value = PullRequest(
        number=99, html_url="https://github.com/acme/widgets/pull/99"
    )
    return client


def _make_creator(client, refs, branch_name, changeset):
    git_metadata = AsyncMock()
    git_metadata.ref_names.return_value = refs
    return PullRequestCreator(
        client=client,
        identity=RemoteRepoIdentity(repo="acme/widgets"),
        git_metadata=git_metadata,
        branch_name=branch_name,
        base_commit="abc",
        changeset=changeset,
        commit_message="msg",
        pr_title="title",
        retrier=ConflictRetrier(sleep=AsyncMock()),
    )


class TestIdempotenceProperty:
    """Property: existing branch + existing PR means no mutation at all."""

    @given(
        branch_name=branch_name_strategy,
        changeset=changeset_strategy,
        states=pr_state_strategy,
    )
    @settings(max_examples=100)
    def test_reinvocation_is_a_noop(self, branch_name, changeset, states):
        client = _make_client(states)
        creator = _make_creator(client, ["main", branch_name], branch_name, changeset)

        assert run_async(creator.create()) is None

        mutations = [name for name, _, _ in client.mock_calls if name in MUTATING_CALLS]
        assert mutations == []


class TestTreeEntriesProperty:
    """Property: every change becomes exactly one repository-relative tree entry."""

    @given(branch_name=branch_name_strategy, changeset=changeset_strategy)
    @settings(max_examples=100)
    def test_tree_mirrors_changeset(self, branch_name, changeset):
        client = _make_client([])
        client.list_pull_requests.return_value = []
        creator = _make_creator(client, ["main"], branch_name, changeset)

        result = run_async(creator.create())

        assert result is not None
        entries = client.create_tree.call_args.args[1]
        assert [e["path"] for e in entries] == list(changeset.paths)
        assert all(not e["path"].startswith("/") for e in entries)
        for entry, change in zip(entries, changeset.files):
            if change.kind is FileKind.SUBMODULE:
                assert entry["sha"] == change.content
            else:
                assert entry["content"] == change.content


class TestLostRaceProperty:
    """Property: losing the branch creation race never opens a pull request."""

    @given(branch_name=branch_name_strategy, changeset=changeset_strategy)
    @settings(max_examples=100)
    def test_lost_race_returns_none(self, branch_name, changeset):
        client = _make_client([])
        client.create_ref.side_effect = UnprocessableEntityError(
            message="POST url: 422 - Reference already exists", status_code=422
        )
        creator = _make_creator(client, [], branch_name, changeset)

        assert run_async(creator.create()) is None
        client.create_pull_request.assert_not_awaited()
