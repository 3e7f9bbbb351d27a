"""
Shared test fixtures.

PHILOSOPHY: Use REAL objects wherever possible. Only mock at system boundaries.
- Real Pydantic models (not dicts pretending to be models)
- Real in-memory storage and a real ReportStore for store/importer tests
- respx ONLY for HTTP boundary
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

import pytest

from satledger.store import InMemoryStorage, ReportStore

if TYPE_CHECKING:
    from collections.abc import Callable


# ============================================================================
# Store Fixtures (REAL store over in-memory storage, not mocks)
# ============================================================================
@pytest.fixture
def storage() -> InMemoryStorage:
    """Empty in-memory storage backend."""
    return InMemoryStorage()


@pytest.fixture
def store(storage: InMemoryStorage) -> ReportStore:
    """Loaded store with the initial report."""
    report_store = ReportStore(storage)
    report_store.load()
    return report_store


@pytest.fixture
def no_sleep() -> Callable[[float], Any]:
    """Async sleep replacement that records requested delays without waiting."""
    delays: list[float] = []

    async def _sleep(seconds: float) -> None:
        delays.append(seconds)

    _sleep.delays = delays  # type: ignore[attr-defined]
    return _sleep


# ============================================================================
# Upstream Record Builders (dicts matching LN Markets API response structure)
# ============================================================================
@pytest.fixture
def make_trade() -> Callable[..., dict[str, Any]]:
    """Factory for closed futures trades."""

    def _make(trade_id: str = "t1", pl: float = 100, **overrides: Any) -> dict[str, Any]:
        trade: dict[str, Any] = {
            "id": trade_id,
            "type": "m",
            "side": "b",
            "pl": pl,
            "closed": True,
            "closed_ts": 1_704_067_200_000,  # 2024-01-01T00:00:00Z
            "creation_ts": 1_703_980_800_000,
        }
        trade.update(overrides)
        return trade

    return _make


@pytest.fixture
def make_deposit() -> Callable[..., dict[str, Any]]:
    """Factory for confirmed deposits."""

    def _make(deposit_id: str = "d1", amount: float = 50_000, **overrides: Any) -> dict[str, Any]:
        deposit: dict[str, Any] = {
            "id": deposit_id,
            "amount": amount,
            "success": True,
            "created_at": "2024-01-02T10:00:00.000Z",
        }
        deposit.update(overrides)
        return deposit

    return _make


@pytest.fixture
def make_withdrawal() -> Callable[..., dict[str, Any]]:
    """Factory for withdrawals."""

    def _make(
        withdrawal_id: str = "w1", amount: float = 20_000, **overrides: Any
    ) -> dict[str, Any]:
        withdrawal: dict[str, Any] = {
            "id": withdrawal_id,
            "amount": amount,
            "fees": 150,
            "withdrawal_type": "ln",
            "status": "done",
            "created_at": "2024-01-03T12:00:00.000Z",
        }
        withdrawal.update(overrides)
        return withdrawal

    return _make
