"""Tests for the retry policy and combinator."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

import pytest

from satledger.importer.retry import RetryPolicy, retry_async

if TYPE_CHECKING:
    from collections.abc import Callable


class Flaky:
    def __init__(self, failures: int, exc: type[Exception] = RuntimeError) -> None:
        self.failures = failures
        self.exc = exc
        self.calls = 0

    async def __call__(self) -> str:
        self.calls += 1
        if self.calls <= self.failures:
            raise self.exc(f"failure {self.calls}")
        return "ok"


class TestRetryPolicy:
    def test_defaults(self) -> None:
        policy = RetryPolicy()
        assert policy.max_attempts == 3
        assert policy.delay_seconds == 1.0

    def test_delay_for_backoff(self) -> None:
        policy = RetryPolicy(max_attempts=4, delay_seconds=0.5, backoff=2.0)
        assert [policy.delay_for(n) for n in (1, 2, 3)] == [0.5, 1.0, 2.0]

    def test_no_retry(self) -> None:
        assert RetryPolicy.no_retry().max_attempts == 1

    @pytest.mark.parametrize(
        "kwargs",
        [{"max_attempts": 0}, {"delay_seconds": -1}, {"backoff": 0.5}],
    )
    def test_invalid(self, kwargs: dict[str, Any]) -> None:
        with pytest.raises(ValueError):
            RetryPolicy(**kwargs)


class TestRetryAsync:
    @pytest.mark.asyncio
    async def test_succeeds_after_failures(self, no_sleep: Callable[[float], Any]) -> None:
        operation = Flaky(failures=2)

        result = await retry_async(RetryPolicy(max_attempts=3), operation, sleep=no_sleep)

        assert result == "ok"
        assert operation.calls == 3
        assert no_sleep.delays == [1.0, 1.0]  # type: ignore[attr-defined]

    @pytest.mark.asyncio
    async def test_reraises_last_error(self, no_sleep: Callable[[float], Any]) -> None:
        operation = Flaky(failures=5)

        with pytest.raises(RuntimeError, match="failure 3"):
            await retry_async(RetryPolicy(max_attempts=3), operation, sleep=no_sleep)
        assert operation.calls == 3

    @pytest.mark.asyncio
    async def test_unlisted_exception_not_retried(
        self, no_sleep: Callable[[float], Any]
    ) -> None:
        operation = Flaky(failures=1, exc=KeyError)

        with pytest.raises(KeyError):
            await retry_async(
                RetryPolicy(max_attempts=3), operation, retry_on=ValueError, sleep=no_sleep
            )
        assert operation.calls == 1
        assert no_sleep.delays == []  # type: ignore[attr-defined]

    @pytest.mark.asyncio
    async def test_single_attempt_policy(self, no_sleep: Callable[[float], Any]) -> None:
        operation = Flaky(failures=1)

        with pytest.raises(RuntimeError):
            await retry_async(RetryPolicy.no_retry(), operation, sleep=no_sleep)
        assert operation.calls == 1
