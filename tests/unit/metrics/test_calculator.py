"""Tests for metric aggregation over real reports."""

from __future__ import annotations

from datetime import date
from typing import TYPE_CHECKING

import pytest

from satledger.metrics.calculator import (
    HistoryPeriod,
    MetricsCalculator,
    MetricsFilter,
    annualized_roi,
)
from satledger.store import RecordKind

if TYPE_CHECKING:
    from satledger.store import Report, ReportStore

AS_OF = date(2025, 1, 1)


@pytest.fixture
def report(store: ReportStore) -> Report:
    store.add_record(RecordKind.INVESTMENT, {"date": "2024-01-01", "amount": 1, "unit": "BTC"})
    store.add_record(
        RecordKind.PROFIT, {"date": "2024-06-01", "amount": 10_000_000, "isProfit": True}
    )
    store.add_record(
        RecordKind.PROFIT, {"date": "2024-12-20", "amount": 5_000_000, "isProfit": False}
    )
    store.add_record(RecordKind.WITHDRAWAL, {"date": "2024-12-25", "amount": 20_000_000})
    active = store.active_report
    assert active is not None
    return active


class TestMetricsCalculator:
    def test_totals_all_time(self, report: Report) -> None:
        metrics = MetricsCalculator(as_of=AS_OF).calculate([report])

        assert metrics.total_investments_btc == pytest.approx(1.0)
        assert metrics.total_profits_btc == pytest.approx(0.05)
        assert metrics.total_withdrawals_btc == pytest.approx(0.2)
        assert metrics.final_balance_btc == pytest.approx(0.85)
        assert metrics.roi_percent == pytest.approx(5.0)
        assert metrics.success_rate_percent == pytest.approx(50.0)
        assert metrics.efficiency_percent == pytest.approx(6.25)
        assert metrics.gain_count == 1
        assert metrics.loss_count == 1
        assert metrics.days_active == 366
        assert metrics.first_investment_date == "2024-01-01"
        assert metrics.annualized_roi_percent == pytest.approx(
            (1.05 ** (365 / 366) - 1) * 100
        )

    def test_one_month_window(self, report: Report) -> None:
        metrics = MetricsCalculator(as_of=AS_OF).calculate(
            [report], MetricsFilter(HistoryPeriod.ONE_MONTH)
        )

        assert metrics.investment_count == 0
        assert metrics.profit_count == 1
        assert metrics.total_profits_btc == pytest.approx(-0.05)
        assert metrics.withdrawal_count == 1
        assert metrics.roi_percent == 0.0
        assert metrics.success_rate_percent == 0.0

    def test_custom_window_is_inclusive(self, report: Report) -> None:
        metrics_filter = MetricsFilter(
            HistoryPeriod.CUSTOM, start=date(2024, 1, 1), end=date(2024, 6, 1)
        )

        metrics = MetricsCalculator(as_of=AS_OF).calculate([report], metrics_filter)

        assert metrics.investment_count == 1
        assert metrics.profit_count == 1
        assert metrics.withdrawal_count == 0

    def test_multiple_reports_aggregate(self, store: ReportStore, report: Report) -> None:
        other = store.add_report("Second")
        store.add_record(RecordKind.INVESTMENT, {"date": "2024-02-01", "amount": 50_000_000})

        metrics = MetricsCalculator(as_of=AS_OF).calculate(
            [report, store.get_report(other.id)]
        )

        assert metrics.total_investments_btc == pytest.approx(1.5)
        assert metrics.investment_count == 2

    def test_empty_reports(self) -> None:
        metrics = MetricsCalculator(as_of=AS_OF).calculate([])

        assert metrics.final_balance_btc == 0
        assert metrics.roi_percent == 0.0
        assert metrics.days_active == 0
        assert metrics.first_investment_date is None

    def test_default_as_of_is_today(self) -> None:
        assert isinstance(MetricsCalculator().as_of, date)


class TestMetricsFilter:
    def test_custom_requires_dates(self) -> None:
        with pytest.raises(ValueError, match="requires start and end"):
            MetricsFilter(HistoryPeriod.CUSTOM, start=date(2024, 1, 1))

    def test_custom_rejects_inverted_range(self) -> None:
        with pytest.raises(ValueError, match="must not be after"):
            MetricsFilter(HistoryPeriod.CUSTOM, start=date(2024, 2, 1), end=date(2024, 1, 1))

    @pytest.mark.parametrize(
        ("period", "start"),
        [
            (HistoryPeriod.ONE_MONTH, date(2024, 12, 2)),
            (HistoryPeriod.THREE_MONTHS, date(2024, 10, 3)),
            (HistoryPeriod.SIX_MONTHS, date(2024, 7, 5)),
            (HistoryPeriod.ONE_YEAR, date(2024, 1, 2)),
        ],
    )
    def test_relative_bounds(self, period: HistoryPeriod, start: date) -> None:
        assert MetricsFilter(period).bounds(AS_OF) == (start, AS_OF)

    def test_all_is_unbounded(self) -> None:
        assert MetricsFilter().bounds(AS_OF) == (None, None)


@pytest.mark.parametrize(
    ("roi", "days", "expected"),
    [
        (0.1, 0, 0.0),
        (-1.0, 100, -100.0),
        (-2.0, 100, -100.0),
        (0.1, 365, 10.0),
    ],
)
def test_annualized_roi_edges(roi: float, days: int, expected: float) -> None:
    assert annualized_roi(roi, days) == pytest.approx(expected)
