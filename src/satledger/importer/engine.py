"""Import engine: one paginated-fetch-to-merge run per record kind."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any

import structlog

from satledger.importer.controller import (
    FetchOutcome,
    ImportStats,
    PaginatedFetchController,
    PaginationLimits,
    StopReason,
)
from satledger.importer.converters import convert_record
from satledger.importer.dedup import DuplicateDetector
from satledger.importer.retry import RetryPolicy
from satledger.importer.sources import LNMarketsPageSource
from satledger.importer.validation import SourceKind
from satledger.store.events import ReportEventType
from satledger.store.exceptions import ReportNotFoundError

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable, Mapping

    from satledger.api.client import LNMarketsClient
    from satledger.importer.controller import ImportProgress
    from satledger.importer.sources import PageFetcher
    from satledger.store.report_store import AddResult, ReportStore

logger = structlog.get_logger()

_KIND_LABELS = {
    SourceKind.TRADE: "Trades",
    SourceKind.DEPOSIT: "Deposits",
    SourceKind.WITHDRAWAL: "Withdrawals",
}


class RunStatus(str, Enum):
    COMPLETE = "complete"
    ERROR = "error"


@dataclass
class ImportRunResult:
    """End-of-run summary returned to the caller; no intermediate state to track."""

    kind: SourceKind
    status: RunStatus
    report_id: str | None
    stats: ImportStats = field(default_factory=ImportStats)
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.status == RunStatus.COMPLETE

    @property
    def summary(self) -> str:
        label = _KIND_LABELS[self.kind]
        if self.status == RunStatus.ERROR:
            return f"{label} import failed: {self.error or 'unknown error'}"

        stats = self.stats
        reason = stats.stopped_reason.value if stats.stopped_reason else "unknown"
        return (
            f"{label}: {stats.imported} imported, {stats.duplicated} duplicates, "
            f"{stats.errors} errors, {stats.filtered} filtered "
            f"(stopped: {reason} after {stats.pages_searched} pages)"
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "kind": self.kind.value,
            "status": self.status.value,
            "reportId": self.report_id,
            "error": self.error,
            "stats": self.stats.to_dict(),
            "summary": self.summary,
        }


class ImportEngine:
    """
    Orchestrates import runs against a `ReportStore`.

    At most one run per report is in flight at a time (a per-report lock); runs against
    different reports are independent.
    """

    def __init__(
        self,
        store: ReportStore,
        *,
        limits: PaginationLimits | None = None,
        retry_policy: RetryPolicy | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self.store = store
        self.limits = limits or PaginationLimits()
        self.retry_policy = retry_policy or RetryPolicy()
        self._sleep = sleep
        self._locks: dict[str, asyncio.Lock] = {}

    def _lock_for(self, report_id: str) -> asyncio.Lock:
        lock = self._locks.get(report_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[report_id] = lock
        return lock

    def is_running(self, report_id: str) -> bool:
        lock = self._locks.get(report_id)
        return lock is not None and lock.locked()

    async def run(
        self,
        fetcher: PageFetcher,
        kind: SourceKind,
        *,
        report_id: str | None = None,
        config_id: str | None = None,
        config_name: str | None = None,
        progress: Callable[[ImportProgress], None] | None = None,
        cancel_event: asyncio.Event | None = None,
    ) -> ImportRunResult:
        """
        Import one record kind into a report (explicit id, else the active report).

        A first-page failure ends the run with status `error` and nothing merged; every
        other stop is `complete` with whatever was merged so far.
        """
        if report_id is None:
            target = self.store.active_report
        else:
            try:
                target = self.store.get_report(report_id)
            except ReportNotFoundError as e:
                return ImportRunResult(kind, RunStatus.ERROR, report_id, error=str(e))
        if target is None:
            return ImportRunResult(kind, RunStatus.ERROR, None, error="No report available")

        async with self._lock_for(target.id):
            # Re-read: the report may have changed while waiting for the lock.
            try:
                report = self.store.get_report(target.id)
            except ReportNotFoundError as e:
                return ImportRunResult(kind, RunStatus.ERROR, target.id, error=str(e))

            log = logger.bind(kind=kind.value, report_id=report.id)
            log.info("Import run started", config_id=config_id)

            record_kind = kind.record_kind

            def merge(raw: Mapping[str, Any]) -> AddResult:
                payload = convert_record(raw, kind, config_id=config_id, config_name=config_name)
                return self.store.add_record(record_kind, payload, report.id, notify=False)

            controller = PaginatedFetchController(
                fetcher,
                kind,
                DuplicateDetector.from_report(report, kind),
                merge,
                limits=self.limits,
                retry_policy=self.retry_policy,
                progress=progress,
                cancel_event=cancel_event,
                sleep=self._sleep,
            )
            outcome = await controller.run()
            return self._finish(kind, report.id, outcome, config_id)

    def _finish(
        self,
        kind: SourceKind,
        report_id: str,
        outcome: FetchOutcome,
        config_id: str | None,
    ) -> ImportRunResult:
        stats = outcome.stats
        if outcome.failed:
            return ImportRunResult(kind, RunStatus.ERROR, report_id, stats, outcome.error)

        if config_id is not None:
            try:
                self.store.associate_config(report_id, config_id)
            except ReportNotFoundError:
                logger.warning("Report deleted during import", report_id=report_id)

        events = self.store.events
        if stats.imported:
            events.emit(
                ReportEventType.DATA_IMPORTED,
                report_id,
                {"kind": kind.value, "imported": stats.imported},
            )
        events.emit(
            ReportEventType.BULK_OPERATION_COMPLETED,
            report_id,
            {"operation": "import", **stats.to_dict(), "kind": kind.value},
        )
        if stats.stopped_reason == StopReason.PAGE_ERROR:
            logger.warning("Import stopped early on page error", kind=kind.value)
        return ImportRunResult(kind, RunStatus.COMPLETE, report_id, stats)

    async def import_all(
        self,
        client: LNMarketsClient,
        *,
        report_id: str | None = None,
        kinds: tuple[SourceKind, ...] = tuple(SourceKind),
        user_id: str | None = None,
        config_id: str | None = None,
        config_name: str | None = None,
        progress: Callable[[SourceKind, ImportProgress], None] | None = None,
        cancel_event: asyncio.Event | None = None,
    ) -> dict[SourceKind, ImportRunResult]:
        """Run trades, deposits and withdrawals one after another against one account."""
        results: dict[SourceKind, ImportRunResult] = {}
        for kind in kinds:
            source = LNMarketsPageSource(client, kind, user_id=user_id, config_id=config_id)
            sink = None
            if progress is not None:
                sink = _bind_kind(progress, kind)
            results[kind] = await self.run(
                source,
                kind,
                report_id=report_id,
                config_id=config_id,
                config_name=config_name,
                progress=sink,
                cancel_event=cancel_event,
            )
        return results


def _bind_kind(
    progress: Callable[[SourceKind, ImportProgress], None],
    kind: SourceKind,
) -> Callable[[ImportProgress], None]:
    def _sink(update: ImportProgress) -> None:
        progress(kind, update)

    return _sink
