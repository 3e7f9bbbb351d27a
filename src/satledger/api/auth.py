"""Authentication logic for the LN Markets API (HMAC-SHA256 signing)."""

from __future__ import annotations

import base64
import time

from cryptography.hazmat.primitives import hashes, hmac

from satledger.api.config import LNMarketsCredentials


class LNMarketsAuth:
    """
    Handles LN Markets API authentication (HMAC-SHA256 signing).
    """

    def __init__(self, credentials: LNMarketsCredentials) -> None:
        self.credentials = credentials

    def sign(self, payload: str) -> str:
        """Sign a payload with the API secret and return the base64 digest."""
        mac = hmac.HMAC(self.credentials.secret.encode("utf-8"), hashes.SHA256())
        mac.update(payload.encode("utf-8"))
        return base64.b64encode(mac.finalize()).decode("utf-8")

    def get_headers(self, method: str, path: str, query: str = "") -> dict[str, str]:
        """
        Generate authentication headers.

        Args:
            method: HTTP method (GET, POST, etc.)
            path: Full API path including the version prefix (e.g. /v2/user).
            query: Urlencoded query string for GET requests (without the leading `?`).
        """
        timestamp_str = str(int(time.time() * 1000))

        # Signature payload: timestamp + method + path + params
        msg_string = timestamp_str + method.upper() + path.split("?")[0] + query
        signature = self.sign(msg_string)

        return {
            "LNM-ACCESS-KEY": self.credentials.key,
            "LNM-ACCESS-SIGNATURE": signature,
            "LNM-ACCESS-PASSPHRASE": self.credentials.passphrase,
            "LNM-ACCESS-TIMESTAMP": timestamp_str,
        }
