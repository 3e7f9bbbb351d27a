"""Retry policy object and a generic async retry combinator (tenacity based)."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import TYPE_CHECKING, TypeVar

import structlog
from tenacity import (
    AsyncRetrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from satledger.constants import DEFAULT_PAGE_RETRY_ATTEMPTS, DEFAULT_PAGE_RETRY_DELAY_SECONDS

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    from tenacity import RetryCallState

logger = structlog.get_logger()

T = TypeVar("T")


@dataclass(frozen=True)
class RetryPolicy:
    """
    How often and how patiently to retry an operation.

    Attributes:
        max_attempts: Total attempts, the first one included.
        delay_seconds: Wait before the first retry.
        backoff: Multiplier applied to the wait after each further failure (1.0 = fixed delay).
    """

    max_attempts: int = DEFAULT_PAGE_RETRY_ATTEMPTS
    delay_seconds: float = DEFAULT_PAGE_RETRY_DELAY_SECONDS
    backoff: float = 1.0

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")
        if self.delay_seconds < 0:
            raise ValueError("delay_seconds must be >= 0")
        if self.backoff < 1:
            raise ValueError("backoff must be >= 1")

    @classmethod
    def no_retry(cls) -> RetryPolicy:
        return cls(max_attempts=1, delay_seconds=0.0)

    def delay_for(self, retry_number: int) -> float:
        """Wait before retry `retry_number` (1-based)."""
        return self.delay_seconds * self.backoff ** (retry_number - 1)


def _log_before_sleep(retry_state: RetryCallState) -> None:
    outcome = retry_state.outcome
    error = outcome.exception() if outcome is not None else None
    logger.warning(
        "Retrying after failure",
        attempt=retry_state.attempt_number,
        wait_seconds=retry_state.next_action.sleep if retry_state.next_action else None,
        error=str(error) if error is not None else None,
    )


async def retry_async(
    policy: RetryPolicy,
    operation: Callable[[], Awaitable[T]],
    *,
    retry_on: type[BaseException] | tuple[type[BaseException], ...] = Exception,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> T:
    """
    Run `operation` until it succeeds or the policy's attempt budget is spent.

    The last exception is re-raised once the budget is exhausted. Exceptions outside
    `retry_on` propagate immediately.
    """
    async for attempt in AsyncRetrying(
        retry=retry_if_exception_type(retry_on),
        stop=stop_after_attempt(policy.max_attempts),
        wait=wait_exponential(
            multiplier=policy.delay_seconds,
            exp_base=policy.backoff,
            min=0,
        ),
        sleep=sleep,
        before_sleep=_log_before_sleep,
        reraise=True,
    ):
        with attempt:
            return await operation()

    raise AssertionError("AsyncRetrying should have returned or raised")  # pragma: no cover
