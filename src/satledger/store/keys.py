"""Record identity helpers shared by the importer and the store's duplicate guard.

Upstream ids are presented inconsistently (bare, `trade_` prefixed, `lnm_trade_` prefixed).
They are normalized to one canonical prefix per record kind, and combined with the rounded
settled value to form the composite key that identifies one logical event.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from satledger.constants import SETTLED_VALUE_DECIMALS
from satledger.store.models import RecordKind

if TYPE_CHECKING:
    from satledger.store.models import TransactionRecord

# Ids starting with this prefix are deterministic import ids and are preserved on merge.
DETERMINISTIC_ID_PREFIX = "lnm_"

CANONICAL_PREFIXES: dict[RecordKind, str] = {
    RecordKind.PROFIT: "lnm_trade_",
    RecordKind.INVESTMENT: "lnm_deposit_",
    RecordKind.WITHDRAWAL: "lnm_withdrawal_",
}

# Longest first so `lnm_trade_` is stripped before `trade_`.
_KNOWN_PREFIXES = (
    "lnm_withdrawal_",
    "lnm_deposit_",
    "lnm_trade_",
    "withdrawal_",
    "deposit_",
    "trade_",
)


def normalize_record_id(raw_id: object, kind: RecordKind) -> str:
    """Map an upstream id to its canonical, kind-prefixed form."""
    value = str(raw_id).strip()
    for prefix in _KNOWN_PREFIXES:
        if value.startswith(prefix):
            value = value[len(prefix) :]
            break
    return CANONICAL_PREFIXES[kind] + value


def round_settled_value(value: float) -> str:
    """Round a settled value (sats) to absorb floating-point noise."""
    rounded = round(float(value), SETTLED_VALUE_DECIMALS)
    if rounded == 0:
        rounded = 0.0  # avoid "-0.00"
    return f"{rounded:.{SETTLED_VALUE_DECIMALS}f}"


def composite_key(normalized_id: str, settled_value: float) -> str:
    """`normalizedId|roundedSettledValue`."""
    return f"{normalized_id}|{round_settled_value(settled_value)}"


def record_composite_key(record: TransactionRecord, kind: RecordKind) -> str | None:
    """Composite key of a stored record, or None for records without an upstream id."""
    if not record.original_id:
        return None
    return composite_key(normalize_record_id(record.original_id, kind), record.settled_value)
