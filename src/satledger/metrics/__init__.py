"""Derived financial metrics (ROI, efficiency, success rate) and their cache."""

from satledger.metrics.cache import MetricsCache, MetricsCacheKey, MetricsService
from satledger.metrics.calculator import (
    HistoryPeriod,
    MetricsCalculator,
    MetricsFilter,
    ReportMetrics,
    ViewMode,
    annualized_roi,
)

__all__ = [
    "HistoryPeriod",
    "MetricsCache",
    "MetricsCacheKey",
    "MetricsCalculator",
    "MetricsFilter",
    "MetricsService",
    "ReportMetrics",
    "ViewMode",
    "annualized_roi",
]
