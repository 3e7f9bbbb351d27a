"""Pydantic models for reports and their transaction records.

Serialized field names are camelCase (the persisted JSON shape); Python attributes are
snake_case. `populate_by_name` lets callers build models with either spelling.
"""

from __future__ import annotations

import random
import time
import uuid
from datetime import UTC, datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from satledger.constants import SATS_PER_BTC, SCHEMA_VERSION

_BASE36 = "0123456789abcdefghijklmnopqrstuvwxyz"

REPORT_COLORS = (
    "#8844ee",
    "#6633cc",
    "#aa66ff",
    "#4488dd",
    "#22aacc",
    "#ff6644",
    "#ffaa22",
    "#44bb88",
)


class CurrencyUnit(str, Enum):
    """Unit a record amount is expressed in."""

    BTC = "BTC"
    SATS = "SATS"


class RecordKind(str, Enum):
    """Category of record stored inside a report."""

    INVESTMENT = "investment"
    PROFIT = "profit"
    WITHDRAWAL = "withdrawal"

    @property
    def collection_field(self) -> str:
        """Name of the report attribute holding records of this kind."""
        return {
            RecordKind.INVESTMENT: "investments",
            RecordKind.PROFIT: "profits",
            RecordKind.WITHDRAWAL: "withdrawals",
        }[self]


class WithdrawalType(str, Enum):
    """Settlement rail of a withdrawal."""

    ONCHAIN = "onchain"
    LIGHTNING = "lightning"


class WithdrawalDestination(str, Enum):
    """Where withdrawn funds went."""

    WALLET = "wallet"
    EXCHANGE = "exchange"


def utc_now_iso() -> str:
    """Current UTC time as an ISO-8601 string."""
    return datetime.now(UTC).isoformat()


def _to_base36(value: int) -> str:
    if value == 0:
        return "0"
    digits: list[str] = []
    while value:
        value, rem = divmod(value, 36)
        digits.append(_BASE36[rem])
    return "".join(reversed(digits))


def generate_id() -> str:
    """Locally unique id: base36 millisecond timestamp plus a random suffix."""
    return _to_base36(int(time.time() * 1000)) + uuid.uuid4().hex[:7]


class _CamelModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
    )

    def to_dict(self) -> dict[str, Any]:
        """Convert to the persisted (camelCase) dictionary shape."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class TransactionRecord(_CamelModel):
    """Fields shared by investments, profit/loss records and withdrawals."""

    id: str
    original_id: str | None = None
    """Upstream identifier when imported (distinct from the local `id`)."""

    date: str
    """ISO date (YYYY-MM-DD)."""

    amount: float = Field(ge=0)
    """Always non-negative; direction comes from the record kind or `is_profit`."""

    unit: CurrencyUnit = CurrencyUnit.SATS

    source_config_id: str | None = None
    source_config_name: str | None = None
    imported_at: str | None = None

    @property
    def amount_sats(self) -> float:
        if self.unit == CurrencyUnit.BTC:
            return self.amount * SATS_PER_BTC
        return self.amount

    @property
    def amount_btc(self) -> float:
        if self.unit == CurrencyUnit.SATS:
            return self.amount / SATS_PER_BTC
        return self.amount

    @property
    def settled_value(self) -> float:
        """Signed value in sats used for composite duplicate keys."""
        return self.amount_sats


class Investment(TransactionRecord):
    """A contribution (deposit) into the tracked position."""


class ProfitRecord(TransactionRecord):
    """A realized profit or loss event."""

    is_profit: bool

    @property
    def settled_value(self) -> float:
        return self.amount_sats if self.is_profit else -self.amount_sats


class WithdrawalRecord(TransactionRecord):
    """Funds taken out of the tracked position."""

    fee: float | None = Field(default=None, ge=0)
    type: WithdrawalType | None = None
    txid: str | None = None
    destination: WithdrawalDestination | None = None


RECORD_MODELS: dict[RecordKind, type[TransactionRecord]] = {
    RecordKind.INVESTMENT: Investment,
    RecordKind.PROFIT: ProfitRecord,
    RecordKind.WITHDRAWAL: WithdrawalRecord,
}


class Report(_CamelModel):
    """A named, independent collection of investment/profit/withdrawal records."""

    id: str
    name: str
    description: str | None = None
    created_at: str
    updated_at: str
    investments: list[Investment] = Field(default_factory=list)
    profits: list[ProfitRecord] = Field(default_factory=list)
    withdrawals: list[WithdrawalRecord] = Field(default_factory=list)
    color: str | None = None
    is_active: bool = False
    associated_ln_markets_config_ids: list[str] = Field(
        default_factory=list, alias="associatedLNMarketsConfigIds"
    )
    last_used_config_id: str | None = None
    revision: int = 0
    """Mutation counter; bumped on every change to this report."""

    def records(self, kind: RecordKind) -> list[Any]:
        """Return the record list for a kind."""
        records: list[Any] = getattr(self, kind.collection_field)
        return records


class ReportCollection(_CamelModel):
    """The unit of durable persistence: every report plus the active pointer."""

    reports: list[Report] = Field(default_factory=list)
    active_report_id: str | None = None
    last_updated: str = Field(default_factory=utc_now_iso)
    version: str = SCHEMA_VERSION

    def find(self, report_id: str) -> Report | None:
        """Find a report by id."""
        return next((r for r in self.reports if r.id == report_id), None)


def create_new_report(name: str, description: str | None = None) -> Report:
    """Create an empty report (marked active; callers re-derive flags on save)."""
    now = utc_now_iso()
    return Report(
        id=generate_id(),
        name=name,
        description=description,
        created_at=now,
        updated_at=now,
        color=random.choice(REPORT_COLORS),  # noqa: S311 - cosmetic only
        is_active=True,
    )
