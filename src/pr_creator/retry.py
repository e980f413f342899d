"""Retry of mutating steps that lose races against GitHub's own replicas.

Objects created by one API call are not always visible to the next call
a few hundred milliseconds later, and refs can be moved by other actors
mid-update. Such failures succeed on a blind retry, so each mutating
step runs through ConflictRetrier with a predicate naming the failure
that is safe to retry.
"""

import asyncio
import logging
import random
from typing import Awaitable, Callable, Optional, TypeVar

from src.pr_creator.errors import RepeatedOperationFailure
from src.pr_creator.github.client import GitHubAPIError


logger = logging.getLogger(__name__)

T = TypeVar("T")

# Retries after the first attempt before giving up.
MAX_RACE_RETRIES = 10

# Bounds of the uniformly random delay between attempts, in seconds.
MIN_RACE_BACKOFF = 1.0
MAX_RACE_BACKOFF = 2.0


class ConflictRetrier:
    """Runs an action, retrying while its failure matches a conflict predicate.

    Attributes:
        max_retries: Retries allowed after the first attempt.
        min_delay: Lower bound of the backoff delay in seconds.
        max_delay: Upper bound of the backoff delay in seconds.
    """

    def __init__(
        self,
        max_retries: int = MAX_RACE_RETRIES,
        min_delay: float = MIN_RACE_BACKOFF,
        max_delay: float = MAX_RACE_BACKOFF,
        sleep: Optional[Callable[[float], Awaitable[None]]] = None,
    ):
        self.max_retries = max_retries
        self.min_delay = min_delay
        self.max_delay = max_delay
        self._sleep = sleep or asyncio.sleep

    def backoff(self) -> float:
        return random.uniform(self.min_delay, self.max_delay)

    async def run(
        self,
        action: Callable[[], Awaitable[T]],
        is_conflict: Callable[[Exception], bool],
        operation: str,
        target: str,
    ) -> T:
        """Run ``action`` until it succeeds or stops conflicting.

        Args:
            action: Zero-argument coroutine function performing the step.
            is_conflict: Predicate selecting errors that are safe to retry.
            operation: Step name used in logs and the final error.
            target: What the step operates on.

        Returns:
            Whatever ``action`` returns.

        Raises:
            RepeatedOperationFailure: If every attempt conflicted.
            GitHubAPIError: Any failure that is not a conflict.
        """
        attempt = 0
        while True:
            attempt += 1
            try:
                return await action()
            except GitHubAPIError as e:
                if not is_conflict(e):
                    raise
                if attempt > self.max_retries:
                    logger.error(
                        "Giving up on conflicting operation",
                        extra={
                            "operation": operation,
                            "target": target,
                            "attempts": attempt,
                        },
                    )
                    raise RepeatedOperationFailure(operation, target, attempt) from e

                delay = self.backoff()
                logger.warning(
                    "Operation lost a race, retrying",
                    extra={
                        "operation": operation,
                        "target": target,
                        "attempt": attempt,
                        "max_retries": self.max_retries,
                        "delay": delay,
                    },
                )
                await self._sleep(delay)
