"""
Configuration for the LN Markets API client (network and credentials).
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from enum import Enum

from pydantic import BaseModel


class Network(str, Enum):
    """LN Markets networks."""

    MAINNET = "mainnet"
    TESTNET = "testnet"


class APIConfig(BaseModel):
    """Configuration for the LN Markets API client."""

    network: Network = Network.MAINNET

    @property
    def base_url(self) -> str:
        """REST API base URL."""
        if self.network == Network.TESTNET:
            return "https://api.testnet.lnmarkets.com"
        return "https://api.lnmarkets.com"

    @property
    def api_prefix(self) -> str:
        """Versioned path prefix (part of the signed path)."""
        return "/v2"


@dataclass(frozen=True)
class LNMarketsCredentials:
    """API key triple for one LN Markets account configuration."""

    key: str
    secret: str
    passphrase: str
    network: Network = Network.MAINNET

    @classmethod
    def from_env(cls) -> LNMarketsCredentials:
        """Load credentials from environment variables.

        Required:
            LNM_API_KEY, LNM_API_SECRET, LNM_API_PASSPHRASE

        Optional:
            LNM_NETWORK: mainnet or testnet (default: mainnet)
        """
        key = os.environ.get("LNM_API_KEY", "").strip()
        secret = os.environ.get("LNM_API_SECRET", "").strip()
        passphrase = os.environ.get("LNM_API_PASSPHRASE", "").strip()
        missing = [
            name
            for name, value in (
                ("LNM_API_KEY", key),
                ("LNM_API_SECRET", secret),
                ("LNM_API_PASSPHRASE", passphrase),
            )
            if not value
        ]
        if missing:
            raise ValueError(f"Missing LN Markets credentials: {', '.join(missing)}")

        network_raw = os.environ.get("LNM_NETWORK", Network.MAINNET.value).strip().lower()
        try:
            network = Network(network_raw)
        except ValueError:
            raise ValueError(
                f"Invalid LNM_NETWORK '{network_raw}'. Expected 'mainnet' or 'testnet'."
            ) from None

        return cls(key=key, secret=secret, passphrase=passphrase, network=network)
