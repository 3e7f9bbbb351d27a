"""LN Markets API client (authenticated, read-only history endpoints)."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

import httpx
import structlog
from tenacity import (
    AsyncRetrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from satledger.api.auth import LNMarketsAuth
from satledger.api.config import APIConfig
from satledger.api.exceptions import AuthenticationError, LNMarketsAPIError, RateLimitError
from satledger.constants import MAX_PAGE_SIZE

if TYPE_CHECKING:
    from tenacity import RetryCallState

    from satledger.api.config import LNMarketsCredentials


logger = structlog.get_logger()

_RETRY_WAIT = wait_exponential(multiplier=1, min=1, max=60)


def _wait_with_retry_after(retry_state: RetryCallState) -> float:
    """Wait using Retry-After header if available, else exponential backoff."""
    outcome = retry_state.outcome
    if outcome is not None:
        exc = outcome.exception()
        if isinstance(exc, RateLimitError) and exc.retry_after is not None:
            return float(exc.retry_after)
    return float(_RETRY_WAIT(retry_state))


def _extract_records(data: Any) -> list[dict[str, Any]]:
    """Normalize list payloads (bare list or `{"data": [...]}` envelope)."""
    if isinstance(data, dict):
        data = data.get("data", [])
    if not isinstance(data, list):
        return []
    return [item for item in data if isinstance(item, dict)]


class LNMarketsClient:
    """
    Authenticated client for the LN Markets history endpoints.

    IMPORTANT: the signature covers the FULL path including the /v2 prefix plus the
    urlencoded query string.
    """

    def __init__(
        self,
        credentials: LNMarketsCredentials,
        timeout: float = 30.0,
        max_retries: int = 5,
    ) -> None:
        config = APIConfig(network=credentials.network)
        self._api_prefix = config.api_prefix
        self._auth = LNMarketsAuth(credentials)
        self._max_retries = max_retries

        self._client = httpx.AsyncClient(
            base_url=config.base_url,
            timeout=timeout,
            headers={"Accept": "application/json"},
        )

    async def __aenter__(self) -> LNMarketsClient:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: Any,
    ) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        """Close the underlying HTTP client."""
        await self._client.aclose()

    async def _auth_get(self, path: str, params: dict[str, Any] | None = None) -> Any:
        """
        Authenticated GET request with retry.

        Returns:
            Decoded JSON payload (object or list).
        """
        full_path = self._api_prefix + path
        query = httpx.QueryParams(params or {})

        async for attempt in AsyncRetrying(
            retry=retry_if_exception_type(
                (
                    RateLimitError,
                    httpx.NetworkError,
                    httpx.TimeoutException,
                )
            ),
            stop=stop_after_attempt(self._max_retries),
            wait=_wait_with_retry_after,
            reraise=True,
        ):
            with attempt:
                # Re-sign on every attempt; the timestamp is part of the signature.
                headers = self._auth.get_headers("GET", full_path, str(query))
                response = await self._client.get(full_path, params=query, headers=headers)

                if response.status_code == 429:
                    retry_after: int | None = None
                    retry_after_header = response.headers.get("Retry-After")
                    if retry_after_header is not None:
                        try:
                            retry_after = int(retry_after_header)
                        except ValueError:
                            retry_after = None
                    raise RateLimitError(
                        message=response.text or "Rate limit exceeded",
                        retry_after=retry_after,
                    )

                if response.status_code in (401, 403):
                    raise AuthenticationError(
                        response.text or "Authentication failed",
                        status_code=response.status_code,
                    )

                if response.status_code >= 400:
                    raise LNMarketsAPIError(response.status_code, response.text)

                try:
                    return response.json()
                except ValueError as e:
                    raise LNMarketsAPIError(
                        response.status_code, "Invalid JSON response"
                    ) from e

        raise AssertionError("AsyncRetrying should have returned or raised")  # pragma: no cover

    async def get_user(self) -> dict[str, Any]:
        """Fetch the account profile (used to test credentials)."""
        data = await self._auth_get("/user")
        if not isinstance(data, dict):
            raise LNMarketsAPIError(200, "Unexpected /user response shape")
        return data

    async def get_trades(
        self,
        limit: int = 100,
        offset: int = 0,
        trade_type: str = "closed",
    ) -> list[dict[str, Any]]:
        """
        Fetch futures trade history.

        Args:
            limit: Number of results per page (max 1000)
            offset: Number of records to skip
            trade_type: `closed`, `open` or `running`
        """
        params: dict[str, Any] = {
            "type": trade_type,
            "limit": max(1, min(limit, MAX_PAGE_SIZE)),
            "offset": max(0, offset),
        }
        data = await self._auth_get("/futures/trades", params)
        records = _extract_records(data)
        logger.debug("Fetched trades", count=len(records), offset=offset, limit=limit)
        return records

    async def get_deposits(self, limit: int = 100, offset: int = 0) -> list[dict[str, Any]]:
        """Fetch deposit history (lightning and on-chain)."""
        params = {"limit": max(1, min(limit, MAX_PAGE_SIZE)), "offset": max(0, offset)}
        data = await self._auth_get("/user/deposits", params)
        records = _extract_records(data)
        logger.debug("Fetched deposits", count=len(records), offset=offset, limit=limit)
        return records

    async def get_withdrawals(self, limit: int = 100, offset: int = 0) -> list[dict[str, Any]]:
        """Fetch withdrawal history (lightning and on-chain)."""
        params = {"limit": max(1, min(limit, MAX_PAGE_SIZE)), "offset": max(0, offset)}
        data = await self._auth_get("/user/withdrawals", params)
        records = _extract_records(data)
        logger.debug("Fetched withdrawals", count=len(records), offset=offset, limit=limit)
        return records
