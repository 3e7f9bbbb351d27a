"""Convert accepted upstream records into store record payloads."""

from __future__ import annotations

from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

from satledger.importer.validation import SourceKind, parse_number, trade_id
from satledger.store.keys import CANONICAL_PREFIXES, normalize_record_id, round_settled_value
from satledger.store.models import CurrencyUnit, WithdrawalType, generate_id, utc_now_iso

if TYPE_CHECKING:
    from collections.abc import Mapping

TRADE_DATE_FIELDS = (
    "closed_ts",
    "closed_at",
    "updated_ts",
    "updated_at",
    "creation_ts",
    "created_at",
)
TRANSFER_DATE_FIELDS = ("confirmed_at", "created_at", "creation_ts", "ts")


def to_iso_date(value: Any) -> str | None:
    """
    Parse an upstream timestamp into `YYYY-MM-DD` (UTC).

    Accepts epoch milliseconds or seconds (int/float/numeric string) and ISO-8601 strings.
    """
    if value is None or isinstance(value, bool):
        return None

    number = parse_number(value)
    if number is not None:
        # Heuristic: anything past 1e11 is milliseconds (year 5138 in seconds).
        seconds = number / 1000 if abs(number) >= 1e11 else number
        try:
            return datetime.fromtimestamp(seconds, tz=UTC).date().isoformat()
        except (OverflowError, OSError, ValueError):
            return None

    if isinstance(value, str):
        text = value.strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError:
            return None
        if parsed.tzinfo is not None:
            parsed = parsed.astimezone(UTC)
        return parsed.date().isoformat()
    return None


def _first_date(raw: Mapping[str, Any], fields: tuple[str, ...]) -> str:
    for field_name in fields:
        date = to_iso_date(raw.get(field_name))
        if date is not None:
            return date
    return datetime.now(UTC).date().isoformat()


def upstream_id(raw: Mapping[str, Any], kind: SourceKind) -> str | None:
    """Raw upstream identifier of a record."""
    if kind == SourceKind.TRADE:
        return trade_id(raw)
    value = raw.get("id")
    if value is None or not str(value).strip():
        return None
    return str(value).strip()


def settled_value(raw: Mapping[str, Any], kind: SourceKind) -> float:
    """Signed settled value in sats: trade P&L, or the transferred amount."""
    field_name = "pl" if kind == SourceKind.TRADE else "amount"
    return parse_number(raw.get(field_name)) or 0.0


def fallback_identity(raw: Mapping[str, Any], kind: SourceKind) -> str:
    """
    Identity for a transfer that carries no upstream id.

    The on-chain txid when present, else `auto:<date>:<amount>:<fee>`. Look-alike records
    share the `auto:` form; the duplicate detector numbers them in arrival order.
    """
    for field_name in ("txid", "tx_id"):
        value = raw.get(field_name)
        if value is not None and str(value).strip():
            return f"tx:{str(value).strip()}"

    date = "undated"
    for field_name in TRANSFER_DATE_FIELDS:
        parsed = to_iso_date(raw.get(field_name))
        if parsed is not None:
            date = parsed
            break
    fee = parse_number(raw.get("fees", raw.get("fee"))) or 0.0
    amount = round_settled_value(abs(settled_value(raw, kind)))
    return f"auto:{date}:{amount}:{round_settled_value(abs(fee))}"


def _source_fields(config_id: str | None, config_name: str | None) -> dict[str, Any]:
    fields: dict[str, Any] = {"importedAt": utc_now_iso()}
    if config_id is not None:
        fields["sourceConfigId"] = config_id
    if config_name is not None:
        fields["sourceConfigName"] = config_name
    return fields


def convert_trade(
    raw: Mapping[str, Any],
    *,
    config_id: str | None = None,
    config_name: str | None = None,
) -> dict[str, Any]:
    """
    Trade -> profit/loss record.

    The id is deterministic (`lnm_trade_<id>_<roundedPl>`) so re-imports stay idempotent
    while corrections with a different P&L remain distinct records.
    """
    raw_id = upstream_id(raw, SourceKind.TRADE) or ""
    pl = settled_value(raw, SourceKind.TRADE)
    bare_id = normalize_record_id(raw_id, SourceKind.TRADE.record_kind)[
        len(CANONICAL_PREFIXES[SourceKind.TRADE.record_kind]) :
    ]
    return {
        "id": f"lnm_trade_{bare_id}_{round_settled_value(pl)}",
        "originalId": raw_id,
        "date": _first_date(raw, TRADE_DATE_FIELDS),
        "amount": abs(pl),
        "unit": CurrencyUnit.SATS.value,
        "isProfit": pl > 0,
        **_source_fields(config_id, config_name),
    }


def convert_deposit(
    raw: Mapping[str, Any],
    *,
    config_id: str | None = None,
    config_name: str | None = None,
) -> dict[str, Any]:
    """Deposit -> investment record."""
    return {
        "id": generate_id(),
        "originalId": upstream_id(raw, SourceKind.DEPOSIT),
        "date": _first_date(raw, TRANSFER_DATE_FIELDS),
        "amount": abs(settled_value(raw, SourceKind.DEPOSIT)),
        "unit": CurrencyUnit.SATS.value,
        **_source_fields(config_id, config_name),
    }


def convert_withdrawal(
    raw: Mapping[str, Any],
    *,
    config_id: str | None = None,
    config_name: str | None = None,
) -> dict[str, Any]:
    """Withdrawal -> withdrawal record (`ln` rail maps to lightning, anything else on-chain)."""
    rail = raw.get("withdrawal_type", raw.get("type"))
    fee = parse_number(raw.get("fees", raw.get("fee")))
    payload: dict[str, Any] = {
        "id": generate_id(),
        "originalId": upstream_id(raw, SourceKind.WITHDRAWAL),
        "date": _first_date(raw, TRANSFER_DATE_FIELDS),
        "amount": abs(settled_value(raw, SourceKind.WITHDRAWAL)),
        "unit": CurrencyUnit.SATS.value,
        "fee": abs(fee) if fee is not None else 0.0,
        "type": (
            WithdrawalType.LIGHTNING.value
            if str(rail).lower() in {"ln", "lightning"}
            else WithdrawalType.ONCHAIN.value
        ),
        **_source_fields(config_id, config_name),
    }
    if raw.get("txid"):
        payload["txid"] = str(raw["txid"])
    return payload


_CONVERTERS = {
    SourceKind.TRADE: convert_trade,
    SourceKind.DEPOSIT: convert_deposit,
    SourceKind.WITHDRAWAL: convert_withdrawal,
}


def convert_record(
    raw: Mapping[str, Any],
    kind: SourceKind,
    *,
    config_id: str | None = None,
    config_name: str | None = None,
) -> dict[str, Any]:
    """Convert one validated upstream record into a store payload (camelCase keys)."""
    return _CONVERTERS[kind](raw, config_id=config_id, config_name=config_name)
