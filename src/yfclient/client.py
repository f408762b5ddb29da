"""Composition point wiring settings, transport and streaming together."""
from __future__ import annotations

from functools import lru_cache
from typing import Any, Iterable, Sequence
from urllib.parse import quote

from yfclient.config import ClientSettings, load_settings
from yfclient.stream import AsyncStreamBridge, StreamingClient
from yfclient.transport import Transport

QUERY1_URL = "https://query1.finance.yahoo.com"
QUERY2_URL = "https://query2.finance.yahoo.com"

DEFAULT_SUMMARY_MODULES: Sequence[str] = (
    "financialData",
    "quoteType",
    "defaultKeyStatistics",
    "assetProfile",
    "summaryDetail",
)


class YahooFinanceClient:
    """Raw-JSON accessors layered on a shared :class:`Transport`."""

    def __init__(self, settings: ClientSettings | None = None, *, transport: Transport | None = None) -> None:
        self._settings = settings or ClientSettings()
        self._transport = transport or Transport(self._settings.transport)

    @property
    def settings(self) -> ClientSettings:
        return self._settings

    @property
    def transport(self) -> Transport:
        return self._transport

    async def __aenter__(self) -> "YahooFinanceClient":
        return self

    async def __aexit__(self, *_) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._transport.aclose()

    async def quote_summary(self, symbol: str, modules: Iterable[str] = DEFAULT_SUMMARY_MODULES) -> dict[str, Any]:
        url = f"{QUERY1_URL}/v10/finance/quoteSummary/{quote(symbol.upper())}"
        params = {
            "modules": ",".join(modules),
            "corsDomain": "finance.yahoo.com",
            "formatted": "false",
        }
        return await self._transport.get_json(url, params=params)

    async def chart(self, symbol: str, *, range_: str = "1mo", interval: str = "1d") -> dict[str, Any]:
        url = f"{QUERY2_URL}/v8/finance/chart/{quote(symbol.upper())}"
        return await self._transport.get_json(url, params={"range": range_, "interval": interval})

    async def search(self, query: str, *, quotes_count: int = 10, news_count: int = 0) -> dict[str, Any]:
        params = {"q": query, "quotesCount": quotes_count, "newsCount": news_count}
        return await self._transport.get_json(f"{QUERY2_URL}/v1/finance/search", params=params)

    async def market_summary(self) -> dict[str, Any]:
        return await self._transport.get_json(f"{QUERY1_URL}/v6/finance/quote/marketSummary")

    def stream(self) -> AsyncStreamBridge:
        """Create a new pull-style stream bound to the configured endpoint."""

        return AsyncStreamBridge(StreamingClient(self._settings.stream))


@lru_cache(maxsize=1)
def get_default_client() -> YahooFinanceClient:
    """Process-wide client built from :func:`load_settings`."""

    return YahooFinanceClient(load_settings())


__all__ = ["DEFAULT_SUMMARY_MODULES", "YahooFinanceClient", "get_default_client"]
