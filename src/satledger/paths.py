"""
Centralized path defaults for SatLedger.

All paths are expressed relative to the current working directory. Every path default can be
overridden via CLI options.
"""

from pathlib import Path

DEFAULT_DATA_DIR = Path("data")
DEFAULT_STORE_DIR = DEFAULT_DATA_DIR / "store"

__all__ = [
    "DEFAULT_DATA_DIR",
    "DEFAULT_STORE_DIR",
]
