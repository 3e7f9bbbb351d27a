"""Derived-metrics cache and the cached metrics service."""

from __future__ import annotations

from collections import OrderedDict
from dataclasses import dataclass
from typing import TYPE_CHECKING, Generic, TypeVar

import structlog

from satledger.constants import DEFAULT_METRICS_CACHE_CAPACITY
from satledger.metrics.calculator import MetricsCalculator, MetricsFilter, ViewMode

if TYPE_CHECKING:
    from collections.abc import Callable, Hashable, Sequence

    from satledger.metrics.calculator import ReportMetrics
    from satledger.store.events import ReportEvent, ReportEventBus
    from satledger.store.models import Report
    from satledger.store.report_store import ReportStore

logger = structlog.get_logger()

V = TypeVar("V")


@dataclass(frozen=True)
class MetricsCacheKey:
    """View mode, filters, and the identity plus mutation stamp of every summarized report."""

    view_mode: ViewMode
    period: str
    start: str | None
    end: str | None
    as_of: str
    reports: tuple[tuple[str, int, str], ...]

    @classmethod
    def build(
        cls,
        view_mode: ViewMode,
        metrics_filter: MetricsFilter,
        reports: Sequence[Report],
        as_of: str,
    ) -> MetricsCacheKey:
        period, start, end = metrics_filter.cache_token()
        return cls(
            view_mode=view_mode,
            period=period,
            start=start,
            end=end,
            as_of=as_of,
            reports=tuple((r.id, r.revision, r.updated_at) for r in reports),
        )


class MetricsCache(Generic[V]):
    """
    Bounded memo table; oldest insertion is evicted first (not LRU).

    Any store event clears every entry once the cache is attached to a bus.
    """

    def __init__(self, capacity: int = DEFAULT_METRICS_CACHE_CAPACITY) -> None:
        if capacity < 1:
            raise ValueError("capacity must be >= 1")
        self.capacity = capacity
        self._entries: OrderedDict[Hashable, V] = OrderedDict()
        self.hits = 0
        self.misses = 0
        self._unsubscribe: Callable[[], None] | None = None

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: object) -> bool:
        return key in self._entries

    def get(self, key: Hashable) -> V | None:
        if key in self._entries:
            self.hits += 1
            return self._entries[key]
        self.misses += 1
        return None

    def put(self, key: Hashable, value: V) -> None:
        if key in self._entries:
            # Overwrite keeps the original insertion position.
            self._entries[key] = value
            return
        self._entries[key] = value
        while len(self._entries) > self.capacity:
            self._entries.popitem(last=False)

    def get_or_compute(self, key: Hashable, compute: Callable[[], V]) -> V:
        if key in self._entries:
            self.hits += 1
            return self._entries[key]
        self.misses += 1
        value = compute()
        self.put(key, value)
        return value

    def clear(self) -> int:
        """Drop every entry. Returns the number removed."""
        removed = len(self._entries)
        self._entries.clear()
        return removed

    def attach(self, bus: ReportEventBus) -> None:
        """Clear the cache on every event emitted by `bus`."""
        self.detach()
        self._unsubscribe = bus.subscribe(self._on_event)

    def detach(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None

    def _on_event(self, event: ReportEvent) -> None:
        removed = self.clear()
        if removed:
            logger.debug(
                "Metrics cache invalidated",
                event=event.type.value,
                report_id=event.report_id,
                removed=removed,
            )


class MetricsService:
    """
    Cached metrics for the active report or all reports.

    Usage:
        service = MetricsService(store)
        metrics = service.metrics(ViewMode.ACTIVE, MetricsFilter(HistoryPeriod.ONE_YEAR))
    """

    def __init__(
        self,
        store: ReportStore,
        *,
        cache: MetricsCache[ReportMetrics] | None = None,
        calculator: MetricsCalculator | None = None,
    ) -> None:
        self.store = store
        self.cache: MetricsCache[ReportMetrics] = cache if cache is not None else MetricsCache()
        self.calculator = calculator or MetricsCalculator()
        self.cache.attach(store.events)

    def _reports_for(self, view_mode: ViewMode) -> list[Report]:
        if view_mode == ViewMode.ALL:
            return self.store.reports
        active = self.store.active_report
        return [active] if active is not None else []

    def metrics(
        self,
        view_mode: ViewMode = ViewMode.ACTIVE,
        metrics_filter: MetricsFilter | None = None,
    ) -> ReportMetrics:
        metrics_filter = metrics_filter or MetricsFilter()
        reports = self._reports_for(view_mode)
        key = MetricsCacheKey.build(
            view_mode, metrics_filter, reports, self.calculator.as_of.isoformat()
        )
        return self.cache.get_or_compute(
            key, lambda: self.calculator.calculate(reports, metrics_filter)
        )

    def close(self) -> None:
        self.cache.detach()
