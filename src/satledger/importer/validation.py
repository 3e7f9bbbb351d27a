"""Record validator: decides whether a raw upstream record is a completed transaction.

Pure functions, no state. Rejections are not errors; the importer counts them as filtered.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Any

from satledger.store.models import RecordKind

if TYPE_CHECKING:
    from collections.abc import Mapping


class SourceKind(str, Enum):
    """Upstream record kind as exposed by the trading API."""

    TRADE = "trade"
    DEPOSIT = "deposit"
    WITHDRAWAL = "withdrawal"

    @property
    def record_kind(self) -> RecordKind:
        """Store record kind an accepted upstream record becomes."""
        return {
            SourceKind.TRADE: RecordKind.PROFIT,
            SourceKind.DEPOSIT: RecordKind.INVESTMENT,
            SourceKind.WITHDRAWAL: RecordKind.WITHDRAWAL,
        }[self]


TRADE_ID_FIELDS = ("id", "trade_id")
TRADE_CLOSED_STATUSES = frozenset({"closed", "done"})

DEPOSIT_CONFIRMATION_FIELDS = ("confirmed", "is_confirmed", "success")
DEPOSIT_FAILURE_STATUSES = frozenset(
    {"failed", "failure", "error", "cancelled", "canceled", "rejected", "expired"}
)
DEPOSIT_SUCCESS_STATUSES = frozenset(
    {"confirmed", "success", "succeeded", "completed", "done", "paid", "settled"}
)
DEPOSIT_TXID_FIELDS = ("txid", "tx_id")
DEPOSIT_CONFIRMED_AT_FIELDS = ("confirmed_at", "confirmedAt", "confirmation_ts")


@dataclass(frozen=True)
class ValidationResult:
    """Accept/reject decision with a short machine-readable reason."""

    accepted: bool
    reason: str

    @classmethod
    def accept(cls, reason: str = "ok") -> ValidationResult:
        return cls(True, reason)

    @classmethod
    def reject(cls, reason: str) -> ValidationResult:
        return cls(False, reason)


def is_truthy_flag(value: Any) -> bool:
    """`True`, `"true"`, `1` and `"1"` count as set; everything else does not."""
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return value == 1
    if isinstance(value, str):
        return value.strip().lower() in {"true", "1"}
    return False


def is_falsy_flag(value: Any) -> bool:
    """Explicit negative encodings (`False`, `"false"`, `0`, `"0"`). `None` is not explicit."""
    if isinstance(value, bool):
        return not value
    if isinstance(value, (int, float)):
        return value == 0
    if isinstance(value, str):
        return value.strip().lower() in {"false", "0"}
    return False


def parse_number(value: Any) -> float | None:
    """Parse an upstream numeric field, returning None when it is not a finite number."""
    if value is None or isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    if number != number or number in (float("inf"), float("-inf")):
        return None
    return number


def _status(raw: Mapping[str, Any]) -> str:
    status = raw.get("status")
    return status.strip().lower() if isinstance(status, str) else ""


def trade_id(raw: Mapping[str, Any]) -> str | None:
    """Upstream trade id from either id field."""
    for field_name in TRADE_ID_FIELDS:
        value = raw.get(field_name)
        if value is not None and str(value).strip():
            return str(value).strip()
    return None


def is_trade_closed(raw: Mapping[str, Any]) -> bool:
    return is_truthy_flag(raw.get("closed")) or _status(raw) in TRADE_CLOSED_STATUSES


def validate_trade(raw: Mapping[str, Any]) -> ValidationResult:
    if trade_id(raw) is None:
        return ValidationResult.reject("missing-id")
    if is_trade_closed(raw):
        return ValidationResult.accept("closed")

    pl = parse_number(raw.get("pl"))
    if pl is not None and pl != 0:
        return ValidationResult.accept("non-zero-pl")
    return ValidationResult.reject("not-closed")


def validate_deposit(raw: Mapping[str, Any]) -> ValidationResult:
    """
    Accept unless an explicit failure signal is present.

    Any single positive signal is enough; with no signal at all the deposit is still
    accepted (inclusive by default).
    """
    amount = parse_number(raw.get("amount"))
    if amount is None or amount <= 0:
        return ValidationResult.reject("invalid-amount")

    status = _status(raw)
    if status in DEPOSIT_FAILURE_STATUSES:
        return ValidationResult.reject("failed-status")

    if any(is_truthy_flag(raw.get(f)) for f in DEPOSIT_CONFIRMATION_FIELDS):
        return ValidationResult.accept("confirmed-flag")
    if status in DEPOSIT_SUCCESS_STATUSES:
        return ValidationResult.accept("success-status")
    if any(raw.get(f) for f in DEPOSIT_TXID_FIELDS):
        return ValidationResult.accept("has-txid")
    if any(raw.get(f) for f in DEPOSIT_CONFIRMED_AT_FIELDS):
        return ValidationResult.accept("has-confirmation-ts")

    present = [f for f in DEPOSIT_CONFIRMATION_FIELDS if raw.get(f) is not None]
    if present and all(is_falsy_flag(raw.get(f)) for f in present):
        return ValidationResult.reject("not-confirmed")

    return ValidationResult.accept("no-failure-signal")


def validate_withdrawal(raw: Mapping[str, Any]) -> ValidationResult:
    # Withdrawal history is always imported.
    return ValidationResult.accept("withdrawal")


_VALIDATORS = {
    SourceKind.TRADE: validate_trade,
    SourceKind.DEPOSIT: validate_deposit,
    SourceKind.WITHDRAWAL: validate_withdrawal,
}


def validate_record(raw: Mapping[str, Any], kind: SourceKind) -> ValidationResult:
    """Validate one raw upstream record of the declared kind."""
    return _VALIDATORS[kind](raw)
