"""Aggregate financial metrics over report records.

All totals are in BTC. Profits are signed by `is_profit`; withdrawals reduce the balance
but are not losses.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import UTC, date, datetime, timedelta
from enum import Enum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Iterable, Sequence

    from satledger.store.models import Report, TransactionRecord


class HistoryPeriod(str, Enum):
    """Date window applied to records before aggregation."""

    ONE_MONTH = "1m"
    THREE_MONTHS = "3m"
    SIX_MONTHS = "6m"
    ONE_YEAR = "1y"
    ALL = "all"
    CUSTOM = "custom"


class ViewMode(str, Enum):
    """Whether metrics cover the active report or every report."""

    ACTIVE = "active"
    ALL = "all"


_PERIOD_DAYS = {
    HistoryPeriod.ONE_MONTH: 30,
    HistoryPeriod.THREE_MONTHS: 90,
    HistoryPeriod.SIX_MONTHS: 180,
    HistoryPeriod.ONE_YEAR: 365,
}


@dataclass(frozen=True)
class MetricsFilter:
    """Period filter; `start`/`end` are only used (inclusive) for `CUSTOM`."""

    period: HistoryPeriod = HistoryPeriod.ALL
    start: date | None = None
    end: date | None = None

    def __post_init__(self) -> None:
        if self.period == HistoryPeriod.CUSTOM:
            if self.start is None or self.end is None:
                raise ValueError("Custom period requires start and end dates")
            if self.start > self.end:
                raise ValueError("Custom period start must not be after end")

    def bounds(self, as_of: date) -> tuple[date | None, date | None]:
        """Inclusive `(start, end)` window for this filter."""
        if self.period == HistoryPeriod.ALL:
            return None, None
        if self.period == HistoryPeriod.CUSTOM:
            return self.start, self.end
        return as_of - timedelta(days=_PERIOD_DAYS[self.period]), as_of

    def cache_token(self) -> tuple[str, str | None, str | None]:
        return (
            self.period.value,
            self.start.isoformat() if self.start else None,
            self.end.isoformat() if self.end else None,
        )


@dataclass(frozen=True)
class ReportMetrics:
    """Aggregates for one view."""

    total_investments_btc: float
    total_profits_btc: float
    total_withdrawals_btc: float
    final_balance_btc: float
    roi_percent: float
    annualized_roi_percent: float
    success_rate_percent: float
    efficiency_percent: float
    investment_count: int
    profit_count: int
    gain_count: int
    loss_count: int
    withdrawal_count: int
    days_active: int
    first_investment_date: str | None = None


def _parse_date(value: str) -> date | None:
    try:
        return date.fromisoformat(value[:10])
    except ValueError:
        return None


def filter_records(
    records: Iterable[TransactionRecord],
    start: date | None,
    end: date | None,
) -> list[TransactionRecord]:
    """Keep records whose date falls inside the inclusive window (unparseable dates dropped)."""
    if start is None and end is None:
        return list(records)

    kept: list[TransactionRecord] = []
    for record in records:
        record_date = _parse_date(record.date)
        if record_date is None:
            continue
        if start is not None and record_date < start:
            continue
        if end is not None and record_date > end:
            continue
        kept.append(record)
    return kept


def annualized_roi(roi_fraction: float, days: int) -> float:
    """
    Compound a total return over `days` to a yearly rate, in percent.

    Returns 0 when no time has passed and -100 on a total (or worse) loss.
    """
    if days <= 0:
        return 0.0
    if roi_fraction <= -1:
        return -100.0
    return ((1 + roi_fraction) ** (365 / days) - 1) * 100


class MetricsCalculator:
    """Compute `ReportMetrics` for one or many reports."""

    def __init__(self, as_of: date | None = None) -> None:
        self._as_of = as_of

    @property
    def as_of(self) -> date:
        return self._as_of or datetime.now(UTC).date()

    def calculate(
        self,
        reports: Sequence[Report],
        metrics_filter: MetricsFilter | None = None,
    ) -> ReportMetrics:
        metrics_filter = metrics_filter or MetricsFilter()
        start, end = metrics_filter.bounds(self.as_of)

        investments = [
            r for report in reports for r in filter_records(report.investments, start, end)
        ]
        profits = [r for report in reports for r in filter_records(report.profits, start, end)]
        withdrawals = [
            r for report in reports for r in filter_records(report.withdrawals, start, end)
        ]

        total_investments = sum(r.amount_btc for r in investments)
        total_profits = sum(r.amount_btc if r.is_profit else -r.amount_btc for r in profits)
        total_withdrawals = sum(r.amount_btc for r in withdrawals)

        gains = sum(1 for r in profits if r.is_profit)
        losses = len(profits) - gains

        roi_fraction = total_profits / total_investments if total_investments > 0 else 0.0

        investment_dates = sorted(d for d in (_parse_date(r.date) for r in investments) if d)
        first_date = investment_dates[0] if investment_dates else None
        days_active = (self.as_of - first_date).days if first_date else 0

        deployed = total_investments - total_withdrawals
        efficiency = total_profits / deployed * 100 if deployed > 0 else 0.0

        return ReportMetrics(
            total_investments_btc=total_investments,
            total_profits_btc=total_profits,
            total_withdrawals_btc=total_withdrawals,
            final_balance_btc=total_investments + total_profits - total_withdrawals,
            roi_percent=roi_fraction * 100,
            annualized_roi_percent=annualized_roi(roi_fraction, days_active),
            success_rate_percent=gains / len(profits) * 100 if profits else 0.0,
            efficiency_percent=efficiency,
            investment_count=len(investments),
            profit_count=len(profits),
            gain_count=gains,
            loss_count=losses,
            withdrawal_count=len(withdrawals),
            days_active=max(0, days_active),
            first_investment_date=first_date.isoformat() if first_date else None,
        )
