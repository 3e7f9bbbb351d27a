"""LN Markets API client module."""

from satledger.api.auth import LNMarketsAuth
from satledger.api.client import LNMarketsClient
from satledger.api.config import APIConfig, LNMarketsCredentials, Network
from satledger.api.exceptions import (
    AuthenticationError,
    LNMarketsAPIError,
    LNMarketsError,
    RateLimitError,
)

__all__ = [
    # Clients
    "LNMarketsAuth",
    "LNMarketsClient",
    # Config
    "APIConfig",
    "LNMarketsCredentials",
    "Network",
    # Exceptions
    "AuthenticationError",
    "LNMarketsAPIError",
    "LNMarketsError",
    "RateLimitError",
]
