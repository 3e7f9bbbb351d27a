"""Custom exceptions for LN Markets API errors."""

from __future__ import annotations


class LNMarketsError(Exception):
    """Base exception for LN Markets API errors."""


class LNMarketsAPIError(LNMarketsError):
    """HTTP API error with status code."""

    def __init__(self, status_code: int, message: str) -> None:
        self.status_code = status_code
        self.message = message
        super().__init__(f"API Error {status_code}: {message}")


class RateLimitError(LNMarketsAPIError):
    """Rate limit exceeded (HTTP 429)."""

    def __init__(
        self,
        message: str = "Rate limit exceeded",
        retry_after: int | None = None,
    ) -> None:
        super().__init__(429, message)
        self.retry_after = retry_after


class AuthenticationError(LNMarketsAPIError):
    """Credentials rejected (HTTP 401/403)."""

    def __init__(self, message: str = "Authentication failed", status_code: int = 401) -> None:
        super().__init__(status_code, message)
