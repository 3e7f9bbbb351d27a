"""Centralized policy constants for SatLedger.

Named constants for the policy-encoding literals used by the importer, the report store and
the metrics cache. Keeping them together makes the import heuristics easy to audit and tune.
"""

from __future__ import annotations

# =============================================================================
# Pagination & Fetch Limits
# =============================================================================

# Default page size for paginated LN Markets requests (trades, deposits, withdrawals).
#
# Used by:
# - importer/controller.py: PaginationLimits default
# - cli/imports.py: --page-size option default
DEFAULT_PAGE_SIZE: int = 100

# Largest page the LN Markets history endpoints serve. Larger requests are capped upstream,
# which would make a full page look short and end the run early.
#
# Used by:
# - api/client.py: request limit clamp
# - importer/controller.py: PaginationLimits validation
MAX_PAGE_SIZE: int = 1000

# Consecutive empty pages tolerated before an import run gives up.
#
# Upstream pagination gaps are common (a window with no records followed by more data),
# so this is deliberately generous.
DEFAULT_MAX_EMPTY_PAGES: int = 10

# Consecutive unproductive pages (records returned, none accepted) tolerated.
#
# Tracked separately from empty pages: a page full of duplicates means we have reached
# history that is already imported, not a pagination gap.
DEFAULT_MAX_UNPRODUCTIVE_PAGES: int = 5

# Hard ceiling on records accepted by a single run.
DEFAULT_MAX_RECORDS: int = 10_000

# Hard ceiling on the cumulative page offset of a single run.
#
# Bounds the number of pages fetched to DEFAULT_MAX_OFFSET / page_size.
DEFAULT_MAX_OFFSET: int = 50_000

# Fixed delay between successful page fetches (seconds).
DEFAULT_INTER_PAGE_DELAY_SECONDS: float = 0.2

# =============================================================================
# Retry Policy
# =============================================================================

# Attempts per page (first attempt included) before a page counts as failed.
DEFAULT_PAGE_RETRY_ATTEMPTS: int = 3

# Delay between page retry attempts (seconds). Multiplied by the policy backoff factor.
DEFAULT_PAGE_RETRY_DELAY_SECONDS: float = 1.0

# =============================================================================
# Deduplication
# =============================================================================

# Decimal places kept when rounding settled values for composite keys.
#
# Settled values are expressed in sats; rounding absorbs floating-point noise.
SETTLED_VALUE_DECIMALS: int = 2

SATS_PER_BTC: int = 100_000_000

# =============================================================================
# Persistence
# =============================================================================

# Storage key of the multi-report collection.
REPORTS_COLLECTION_KEY: str = "bitcoinReportsCollection"

# Storage keys of the legacy single-report format (migrated once on first load).
LEGACY_INVESTMENTS_KEY: str = "bitcoinInvestments"
LEGACY_PROFITS_KEY: str = "bitcoinProfits"

# Current schema version of the persisted collection.
#
# 1.0.0: original multi-report format
# 2.0.0: withdrawals list always present, multi-config association, revision counter
SCHEMA_VERSION: str = "2.0.0"

# =============================================================================
# Metrics Cache
# =============================================================================

# Maximum number of memoized metric computations (oldest evicted first).
DEFAULT_METRICS_CACHE_CAPACITY: int = 50
