"""Unit and property tests for the conflict retrier."""

import asyncio
from unittest.mock import AsyncMock

import pytest
from hypothesis import given, settings, strategies as st

from src.pr_creator.errors import RepeatedOperationFailure
from src.pr_creator.github.client import ServerError, UnprocessableEntityError
from src.pr_creator.retry import (
    MAX_RACE_BACKOFF,
    MAX_RACE_RETRIES,
    MIN_RACE_BACKOFF,
    ConflictRetrier,
)


def run_async(coro):
    return asyncio.run(coro)


def _conflict() -> UnprocessableEntityError:
    return UnprocessableEntityError(message="422 - Tree SHA does not exist", status_code=422)


def _is_conflict(error: Exception) -> bool:
    return "Tree SHA does not exist" in str(error)


class TestConflictRetrier:
    def test_returns_first_success(self, retrier, sleep):
        action = AsyncMock(return_value="ok")

        result = run_async(retrier.run(action, _is_conflict, "step", "target"))

        assert result == "ok"
        action.assert_awaited_once()
        sleep.assert_not_awaited()

    def test_retries_conflicts_then_succeeds(self, retrier, sleep):
        action = AsyncMock(side_effect=[_conflict(), _conflict(), "ok"])

        result = run_async(retrier.run(action, _is_conflict, "step", "target"))

        assert result == "ok"
        assert action.await_count == 3
        assert sleep.await_count == 2

    def test_ceiling_is_ten_retries(self, retrier, sleep):
        action = AsyncMock(side_effect=_conflict())

        with pytest.raises(RepeatedOperationFailure) as exc_info:
            run_async(retrier.run(action, _is_conflict, "create commit", "tree-sha"))

        assert action.await_count == MAX_RACE_RETRIES + 1
        assert sleep.await_count == MAX_RACE_RETRIES
        assert exc_info.value.operation == "create commit"
        assert exc_info.value.target == "tree-sha"
        assert isinstance(exc_info.value.__cause__, UnprocessableEntityError)

    def test_non_conflict_propagates_immediately(self, retrier, sleep):
        error = ServerError(message="500", status_code=500)
        action = AsyncMock(side_effect=error)

        with pytest.raises(ServerError):
            run_async(retrier.run(action, _is_conflict, "step", "target"))

        action.assert_awaited_once()
        sleep.assert_not_awaited()

    def test_non_api_errors_are_not_retried(self, retrier):
        action = AsyncMock(side_effect=ValueError("boom"))

        with pytest.raises(ValueError):
            run_async(retrier.run(action, lambda e: True, "step", "target"))

        action.assert_awaited_once()

    def test_backoff_is_within_bounds(self, sleep):
        retrier = ConflictRetrier(sleep=sleep)
        action = AsyncMock(side_effect=[_conflict(), _conflict(), _conflict(), "ok"])

        run_async(retrier.run(action, _is_conflict, "step", "target"))

        for call in sleep.await_args_list:
            (delay,) = call.args
            assert MIN_RACE_BACKOFF <= delay <= MAX_RACE_BACKOFF


class TestRetryCeilingProperty:
    """Property: a step conflicting N times is attempted N+1 times, up to the ceiling."""

    @given(
        conflicts=st.integers(min_value=0, max_value=15),
        ceiling=st.integers(min_value=0, max_value=12),
    )
    @settings(max_examples=100)
    def test_attempts_never_exceed_ceiling(self, conflicts, ceiling):
        sleep = AsyncMock()
        retrier = ConflictRetrier(max_retries=ceiling, sleep=sleep)
        action = AsyncMock(side_effect=[_conflict()] * conflicts + ["ok"])

        if conflicts > ceiling:
            with pytest.raises(RepeatedOperationFailure):
                run_async(retrier.run(action, _is_conflict, "step", "target"))
            assert action.await_count == ceiling + 1
        else:
            assert run_async(retrier.run(action, _is_conflict, "step", "target")) == "ok"
            assert action.await_count == conflicts + 1

        assert sleep.await_count == min(conflicts, ceiling)
