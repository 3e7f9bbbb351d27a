"""Incremental import: validation, deduplication, paginated fetching and merging."""

from satledger.importer.controller import (
    FetchOutcome,
    ImportProgress,
    ImportStats,
    PaginatedFetchController,
    PaginationLimits,
    ProgressStatus,
    StopReason,
)
from satledger.importer.dedup import DuplicateCheck, DuplicateDetector, DuplicateStatus
from satledger.importer.engine import ImportEngine, ImportRunResult, RunStatus
from satledger.importer.retry import RetryPolicy, retry_async
from satledger.importer.sources import (
    FetchPage,
    LNMarketsPageSource,
    PageFetcher,
    StaticPageSource,
)
from satledger.importer.validation import SourceKind, ValidationResult, validate_record

__all__ = [
    # Engine
    "ImportEngine",
    "ImportRunResult",
    "RunStatus",
    # Controller
    "FetchOutcome",
    "ImportProgress",
    "ImportStats",
    "PaginatedFetchController",
    "PaginationLimits",
    "ProgressStatus",
    "StopReason",
    # Sources
    "FetchPage",
    "LNMarketsPageSource",
    "PageFetcher",
    "StaticPageSource",
    # Building blocks
    "DuplicateCheck",
    "DuplicateDetector",
    "DuplicateStatus",
    "RetryPolicy",
    "SourceKind",
    "ValidationResult",
    "retry_async",
    "validate_record",
]
