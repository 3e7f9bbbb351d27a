"""Page-fetch collaborators consumed by the paginated fetch controller."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Protocol

import httpx
import structlog

from satledger.api.exceptions import LNMarketsError
from satledger.importer.validation import SourceKind

if TYPE_CHECKING:
    from collections.abc import Sequence

    from satledger.api.client import LNMarketsClient

logger = structlog.get_logger()


@dataclass(frozen=True)
class FetchPage:
    """Result of one page request: `success=False` carries an error message instead of data."""

    success: bool
    data: list[dict[str, Any]] = field(default_factory=list)
    is_empty: bool = False
    error: str | None = None

    @classmethod
    def ok(cls, records: Sequence[dict[str, Any]]) -> FetchPage:
        data = list(records)
        return cls(success=True, data=data, is_empty=not data)

    @classmethod
    def failed(cls, error: str) -> FetchPage:
        return cls(success=False, error=error)


class PageFetcher(Protocol):
    """Anything that can fetch one page of raw upstream records."""

    async def fetch(self, *, limit: int, offset: int) -> FetchPage:
        """Fetch `limit` records starting at `offset`."""
        ...


class LNMarketsPageSource:
    """
    Page fetcher bound to one LN Markets account and record kind.

    Transport and API errors become `FetchPage.failed`; the controller decides whether
    a failure is fatal (first page) or a soft stop.
    """

    def __init__(
        self,
        client: LNMarketsClient,
        kind: SourceKind,
        *,
        user_id: str | None = None,
        config_id: str | None = None,
    ) -> None:
        self.client = client
        self.kind = kind
        self.user_id = user_id
        self.config_id = config_id

    async def fetch(self, *, limit: int, offset: int) -> FetchPage:
        try:
            if self.kind == SourceKind.TRADE:
                records = await self.client.get_trades(limit=limit, offset=offset)
            elif self.kind == SourceKind.DEPOSIT:
                records = await self.client.get_deposits(limit=limit, offset=offset)
            else:
                records = await self.client.get_withdrawals(limit=limit, offset=offset)
        except (LNMarketsError, httpx.HTTPError) as e:
            logger.warning(
                "Page fetch failed",
                kind=self.kind.value,
                offset=offset,
                user_id=self.user_id,
                config_id=self.config_id,
                error=str(e),
            )
            return FetchPage.failed(str(e) or type(e).__name__)
        return FetchPage.ok(records)


class StaticPageSource:
    """
    Serves pre-fetched records (file imports, replays) through the page-fetch contract.

    Usage:
        source = StaticPageSource(records)
        page = await source.fetch(limit=100, offset=0)
    """

    def __init__(self, records: Sequence[dict[str, Any]]) -> None:
        self._records = list(records)
        self.calls: list[tuple[int, int]] = []

    async def fetch(self, *, limit: int, offset: int) -> FetchPage:
        self.calls.append((limit, offset))
        return FetchPage.ok(self._records[offset : offset + limit])
