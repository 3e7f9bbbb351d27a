"""Tests for upstream record conversion."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

import pytest

from satledger.importer.converters import convert_record, to_iso_date
from satledger.importer.validation import SourceKind
from satledger.store.models import Investment, ProfitRecord, WithdrawalRecord

if TYPE_CHECKING:
    from collections.abc import Callable


@pytest.mark.parametrize(
    ("value", "expected"),
    [
        (1_704_067_200_000, "2024-01-01"),
        (1_704_067_200, "2024-01-01"),
        ("1704067200000", "2024-01-01"),
        ("2024-03-05T23:30:00Z", "2024-03-05"),
        ("2024-03-05T23:30:00-03:00", "2024-03-06"),
        ("2024-03-05", "2024-03-05"),
        ("garbage", None),
        (None, None),
        (True, None),
    ],
)
def test_to_iso_date(value: Any, expected: str | None) -> None:
    assert to_iso_date(value) == expected


class TestTradeConversion:
    def test_profit(self, make_trade: Callable[..., dict[str, Any]]) -> None:
        payload = convert_record(
            make_trade("t1", pl=1234.5), SourceKind.TRADE, config_id="c1", config_name="Main"
        )
        record = ProfitRecord.model_validate(payload)

        assert record.id == "lnm_trade_t1_1234.50"
        assert record.original_id == "t1"
        assert record.date == "2024-01-01"
        assert record.amount == 1234.5
        assert record.is_profit is True
        assert record.source_config_id == "c1"
        assert record.source_config_name == "Main"
        assert record.imported_at is not None

    def test_loss_amount_is_absolute(self, make_trade: Callable[..., dict[str, Any]]) -> None:
        payload = convert_record(make_trade("t2", pl=-50), SourceKind.TRADE)

        assert payload["amount"] == 50
        assert payload["isProfit"] is False
        assert payload["id"] == "lnm_trade_t2_-50.00"

    def test_prefixed_upstream_id_normalized(
        self, make_trade: Callable[..., dict[str, Any]]
    ) -> None:
        payload = convert_record(make_trade("trade_t3", pl=1), SourceKind.TRADE)
        assert payload["id"] == "lnm_trade_t3_1.00"


def test_deposit_conversion(make_deposit: Callable[..., dict[str, Any]]) -> None:
    payload = convert_record(make_deposit("d1", amount=75_000), SourceKind.DEPOSIT)
    record = Investment.model_validate(payload)

    assert record.original_id == "d1"
    assert record.amount == 75_000
    assert record.date == "2024-01-02"
    assert not record.id.startswith("lnm_")


class TestWithdrawalConversion:
    def test_lightning(self, make_withdrawal: Callable[..., dict[str, Any]]) -> None:
        payload = convert_record(make_withdrawal("w1", txid="abc"), SourceKind.WITHDRAWAL)
        record = WithdrawalRecord.model_validate(payload)

        assert record.type is not None
        assert record.type.value == "lightning"
        assert record.fee == 150
        assert record.txid == "abc"
        assert record.date == "2024-01-03"

    def test_onchain_and_missing_fee(self, make_withdrawal: Callable[..., dict[str, Any]]) -> None:
        raw = make_withdrawal("w2", withdrawal_type="bitcoin")
        raw.pop("fees")

        payload = convert_record(raw, SourceKind.WITHDRAWAL)

        assert payload["type"] == "onchain"
        assert payload["fee"] == 0.0
        assert "txid" not in payload
