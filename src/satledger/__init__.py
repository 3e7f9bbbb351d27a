"""
SatLedger.

Personal Bitcoin investment tracking with incremental LN Markets imports.
"""

__version__ = "0.1.0"

from satledger.api import LNMarketsClient
from satledger.api.config import Network

# Configure structlog once at import time (quiet by default).
from satledger.logging import configure_structlog
from satledger.store import ReportEventBus, ReportStore

configure_structlog()

__all__ = [
    "LNMarketsClient",
    "Network",
    "ReportEventBus",
    "ReportStore",
    "__version__",
]
