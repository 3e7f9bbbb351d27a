"""Paginated fetch controller.

Drives a page fetcher until one of several independent stop conditions holds:

* too many consecutive empty pages (upstream pagination gaps are common, so this is generous)
* too many consecutive unproductive pages (records returned, none accepted)
* the accepted-record ceiling or the page-offset ceiling is reached
* the API returns a short page (end of data)
* the first page fails (credentials or permissions; fatal, never retried)
* a later page keeps failing after its retry budget (soft stop, partial results kept)
* cancellation

Pages are strictly sequential and records are processed in upstream order, so the in-run
duplicate index always reflects every earlier page.
"""

from __future__ import annotations

import asyncio
import os
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any

import structlog

from satledger.constants import (
    DEFAULT_INTER_PAGE_DELAY_SECONDS,
    DEFAULT_MAX_EMPTY_PAGES,
    DEFAULT_MAX_OFFSET,
    DEFAULT_MAX_RECORDS,
    DEFAULT_MAX_UNPRODUCTIVE_PAGES,
    DEFAULT_PAGE_SIZE,
    MAX_PAGE_SIZE,
)
from satledger.importer.retry import RetryPolicy, retry_async
from satledger.importer.validation import validate_record
from satledger.store.report_store import AddStatus

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable, Mapping

    from satledger.importer.dedup import DuplicateDetector
    from satledger.importer.sources import FetchPage, PageFetcher
    from satledger.importer.validation import SourceKind
    from satledger.store.report_store import AddResult

logger = structlog.get_logger()


class StopReason(str, Enum):
    """Why a run stopped."""

    EMPTY_PAGES = "emptyPages"
    UNPRODUCTIVE_PAGES = "unproductivePages"
    MAX_RECORDS = "maxRecords"
    MAX_OFFSET = "maxOffset"
    API_END_OF_DATA = "apiEndOfData"
    FIRST_PAGE_ERROR = "firstPageError"
    PAGE_ERROR = "pageError"
    CANCELLED = "cancelled"


class ProgressStatus(str, Enum):
    IDLE = "idle"
    LOADING = "loading"
    COMPLETE = "complete"
    ERROR = "error"


@dataclass(frozen=True)
class ImportProgress:
    """Progress snapshot pushed to the progress sink. `total` is an evolving estimate."""

    current: int
    total: int
    percentage: float
    status: ProgressStatus
    message: str = ""


class PageFetchError(Exception):
    """A page request reported `success=False`."""


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None or not value.strip():
        return default
    try:
        parsed = int(value)
    except ValueError as e:
        raise ValueError(f"{name} must be an integer, got {value!r}") from e
    if parsed <= 0:
        raise ValueError(f"{name} must be positive, got {parsed}")
    return parsed


@dataclass(frozen=True)
class PaginationLimits:
    """Bounds for one import run."""

    page_size: int = DEFAULT_PAGE_SIZE
    max_empty_pages: int = DEFAULT_MAX_EMPTY_PAGES
    max_unproductive_pages: int = DEFAULT_MAX_UNPRODUCTIVE_PAGES
    max_records: int = DEFAULT_MAX_RECORDS
    max_offset: int = DEFAULT_MAX_OFFSET
    inter_page_delay: float = DEFAULT_INTER_PAGE_DELAY_SECONDS

    def __post_init__(self) -> None:
        for name in (
            "page_size",
            "max_empty_pages",
            "max_unproductive_pages",
            "max_records",
            "max_offset",
        ):
            if getattr(self, name) < 1:
                raise ValueError(f"{name} must be >= 1")
        if self.page_size > MAX_PAGE_SIZE:
            raise ValueError(f"page_size must be <= {MAX_PAGE_SIZE}, got {self.page_size}")
        if self.inter_page_delay < 0:
            raise ValueError("inter_page_delay must be >= 0")

    @property
    def max_pages(self) -> int:
        """Upper bound on pages fetched by one run."""
        return max(1, self.max_offset // self.page_size)

    @classmethod
    def from_env(cls) -> PaginationLimits:
        """Defaults overridden by `SATLEDGER_PAGE_SIZE`, `..._MAX_RECORDS`, `..._MAX_OFFSET`."""
        return cls(
            page_size=_env_int("SATLEDGER_PAGE_SIZE", DEFAULT_PAGE_SIZE),
            max_records=_env_int("SATLEDGER_MAX_RECORDS", DEFAULT_MAX_RECORDS),
            max_offset=_env_int("SATLEDGER_MAX_OFFSET", DEFAULT_MAX_OFFSET),
        )


@dataclass
class ImportStats:
    """Counters accumulated over one run."""

    total: int = 0
    """Raw records received from upstream."""
    processed: int = 0
    imported: int = 0
    duplicated: int = 0
    errors: int = 0
    filtered: int = 0
    pages_searched: int = 0
    stopped_reason: StopReason | None = None
    status_distribution: dict[str, int] = field(default_factory=dict)
    filter_reasons: dict[str, int] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "total": self.total,
            "processed": self.processed,
            "imported": self.imported,
            "duplicated": self.duplicated,
            "errors": self.errors,
            "filtered": self.filtered,
            "pagesSearched": self.pages_searched,
            "stoppedReason": self.stopped_reason.value if self.stopped_reason else None,
            "statusDistribution": dict(self.status_distribution),
        }


@dataclass
class FetchOutcome:
    """Result of one controller run."""

    stats: ImportStats
    accepted: list[dict[str, Any]] = field(default_factory=list)
    error: str | None = None

    @property
    def stop_reason(self) -> StopReason | None:
        return self.stats.stopped_reason

    @property
    def failed(self) -> bool:
        return self.stats.stopped_reason == StopReason.FIRST_PAGE_ERROR


@dataclass
class _RunState:
    offset: int = 0
    consecutive_empty: int = 0
    consecutive_unproductive: int = 0


class PaginatedFetchController:
    """
    Fetch, validate, deduplicate and merge one record kind page by page.

    Usage:
        controller = PaginatedFetchController(source, SourceKind.TRADE, detector, merge)
        outcome = await controller.run()

    `merge` receives each validated, non-duplicate raw record and returns the store's
    `AddResult`; the store performs the final duplicate guard against its current state.
    """

    def __init__(
        self,
        fetcher: PageFetcher,
        kind: SourceKind,
        detector: DuplicateDetector,
        merge: Callable[[Mapping[str, Any]], AddResult],
        *,
        limits: PaginationLimits | None = None,
        retry_policy: RetryPolicy | None = None,
        progress: Callable[[ImportProgress], None] | None = None,
        cancel_event: asyncio.Event | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self.fetcher = fetcher
        self.kind = kind
        self.detector = detector
        self.merge = merge
        self.limits = limits or PaginationLimits()
        self.retry_policy = retry_policy or RetryPolicy()
        self._progress = progress
        self._cancel_event = cancel_event
        self._sleep = sleep

    def _report(
        self,
        stats: ImportStats,
        status: ProgressStatus,
        message: str,
        *,
        has_more: bool = True,
    ) -> None:
        if self._progress is None:
            return
        current = stats.processed
        if status in (ProgressStatus.LOADING, ProgressStatus.IDLE):
            total = current + (self.limits.page_size if has_more else 0)
            percentage = min(99.0, current / total * 100) if total else 0.0
        else:
            total = current
            percentage = 100.0
        self._progress(
            ImportProgress(
                current=current,
                total=total,
                percentage=round(percentage, 1),
                status=status,
                message=message,
            )
        )

    async def _fetch_once(self, offset: int) -> FetchPage:
        page = await self.fetcher.fetch(limit=self.limits.page_size, offset=offset)
        if not page.success:
            raise PageFetchError(page.error or "page fetch failed")
        return page

    async def _fetch_page(self, offset: int, *, first: bool) -> FetchPage:
        if first:
            return await self._fetch_once(offset)
        return await retry_async(
            self.retry_policy,
            lambda: self._fetch_once(offset),
            retry_on=PageFetchError,
            sleep=self._sleep,
        )

    def _process_page(
        self,
        records: list[dict[str, Any]],
        stats: ImportStats,
        accepted: list[dict[str, Any]],
    ) -> int:
        """Validate, deduplicate and merge one page. Returns the number of records added."""
        added = 0
        for raw in records:
            if stats.imported >= self.limits.max_records:
                break
            stats.processed += 1
            status = raw.get("status")
            status_key = str(status).lower() if status is not None else "unknown"
            distribution = stats.status_distribution
            distribution[status_key] = distribution.get(status_key, 0) + 1

            verdict = validate_record(raw, self.kind)
            if not verdict.accepted:
                stats.filtered += 1
                reasons = stats.filter_reasons
                reasons[verdict.reason] = reasons.get(verdict.reason, 0) + 1
                continue

            check = self.detector.check(raw)
            if check.is_duplicate:
                stats.duplicated += 1
                continue

            record = check.identified(raw)
            result = self.merge(record)
            if result.status == AddStatus.ADDED:
                stats.imported += 1
                added += 1
                accepted.append(dict(record))
            elif result.status == AddStatus.DUPLICATE:
                stats.duplicated += 1
            else:
                stats.errors += 1
                self.detector.forget(check.composite_key)
                logger.warning(
                    "Record merge failed",
                    kind=self.kind.value,
                    key=check.composite_key,
                    reason=result.reason,
                )
        return added

    def _stop_reason(
        self, page_len: int, state: _RunState, stats: ImportStats
    ) -> StopReason | None:
        if stats.imported >= self.limits.max_records:
            return StopReason.MAX_RECORDS
        if 0 < page_len < self.limits.page_size:
            return StopReason.API_END_OF_DATA
        if state.consecutive_empty >= self.limits.max_empty_pages:
            return StopReason.EMPTY_PAGES
        if state.consecutive_unproductive >= self.limits.max_unproductive_pages:
            return StopReason.UNPRODUCTIVE_PAGES
        if state.offset + self.limits.page_size > self.limits.max_offset:
            return StopReason.MAX_OFFSET
        return None

    async def run(self) -> FetchOutcome:
        """Run until a stop condition holds. Never raises for fetch failures."""
        stats = ImportStats()
        accepted: list[dict[str, Any]] = []
        state = _RunState()
        log = logger.bind(kind=self.kind.value)

        self._report(stats, ProgressStatus.LOADING, f"Fetching {self.kind.value} records...")

        while True:
            if self._cancel_event is not None and self._cancel_event.is_set():
                stats.stopped_reason = StopReason.CANCELLED
                log.info("Import cancelled", offset=state.offset)
                break

            first = stats.pages_searched == 0
            try:
                page = await self._fetch_page(state.offset, first=first)
            except PageFetchError as e:
                if first:
                    stats.stopped_reason = StopReason.FIRST_PAGE_ERROR
                    log.error("First page failed", error=str(e))
                    self._report(stats, ProgressStatus.ERROR, f"Import failed: {e}")
                    return FetchOutcome(stats=stats, accepted=[], error=str(e))
                stats.stopped_reason = StopReason.PAGE_ERROR
                log.warning("Page failed after retries", offset=state.offset, error=str(e))
                break

            stats.pages_searched += 1
            records = page.data
            stats.total += len(records)

            if not records:
                state.consecutive_empty += 1
            else:
                state.consecutive_empty = 0
                added = self._process_page(records, stats, accepted)
                state.consecutive_unproductive = 0 if added else state.consecutive_unproductive + 1

            state.offset += self.limits.page_size
            log.debug(
                "Import page processed",
                offset=state.offset,
                records=len(records),
                imported=stats.imported,
                duplicated=stats.duplicated,
            )

            reason = self._stop_reason(len(records), state, stats)
            self._report(
                stats,
                ProgressStatus.LOADING,
                f"Page {stats.pages_searched}: {stats.imported} imported, "
                f"{stats.duplicated} duplicates",
                has_more=reason is None,
            )
            if reason is not None:
                stats.stopped_reason = reason
                break

            if self.limits.inter_page_delay:
                await self._sleep(self.limits.inter_page_delay)

        log.info(
            "Import run finished",
            stopped_reason=stats.stopped_reason.value if stats.stopped_reason else None,
            pages=stats.pages_searched,
            imported=stats.imported,
            duplicated=stats.duplicated,
            errors=stats.errors,
        )
        self._report(
            stats,
            ProgressStatus.COMPLETE,
            f"{stats.imported} imported, {stats.duplicated} duplicates, {stats.errors} errors",
        )
        return FetchOutcome(stats=stats, accepted=accepted)
