"""Tests for the high-level client facade."""
from __future__ import annotations

import asyncio

import httpx

from yfclient import AsyncStreamBridge, ClientSettings, YahooFinanceClient
from yfclient.config import StreamSettings, TransportSettings
from yfclient.transport import AuthEndpoints, CookieStore, Transport

ENDPOINTS = AuthEndpoints()


async def no_sleep(delay):
    return None


def make_client(handler):
    settings = ClientSettings(
        transport=TransportSettings(pacing_delay=0.0, cookie_jar=False),
        stream=StreamSettings(url="wss://example.test/stream"),
    )
    http = httpx.AsyncClient(transport=httpx.MockTransport(handler), follow_redirects=False)
    transport = Transport(settings.transport, client=http, cookies=CookieStore(), sleep=no_sleep)
    return YahooFinanceClient(settings, transport=transport)


def test_quote_summary_requests_modules_with_crumb() -> None:
    seen = []

    def handler(request):
        url = f"{request.url.scheme}://{request.url.host}{request.url.path}".rstrip("/")
        if url == ENDPOINTS.bootstrap_url:
            return httpx.Response(404)
        if url == ENDPOINTS.crumb_url:
            return httpx.Response(200, text="abc")
        seen.append(request)
        return httpx.Response(200, json={"quoteSummary": {"result": [{"price": {}}], "error": None}})

    client = make_client(handler)
    payload = asyncio.run(client.quote_summary("aapl", modules=["price", "summaryDetail"]))

    assert payload["quoteSummary"]["error"] is None
    request = seen[0]
    assert request.url.path == "/v10/finance/quoteSummary/AAPL"
    assert request.url.params["modules"] == "price,summaryDetail"
    assert request.url.params["crumb"] == "abc"


def test_chart_and_search_use_public_endpoints() -> None:
    seen = []

    def handler(request):
        seen.append(request)
        return httpx.Response(200, json={})

    client = make_client(handler)

    async def scenario():
        await client.chart("msft", range_="5d", interval="1h")
        await client.search("apple", quotes_count=3)
        await client.aclose()

    asyncio.run(scenario())

    chart, search = seen
    assert chart.url.host == "query2.finance.yahoo.com"
    assert chart.url.path == "/v8/finance/chart/MSFT"
    assert chart.url.params["range"] == "5d"
    assert chart.url.params["interval"] == "1h"
    assert "crumb" not in chart.url.params
    assert search.url.path == "/v1/finance/search"
    assert search.url.params["q"] == "apple"
    assert search.url.params["quotesCount"] == "3"


def test_stream_returns_fresh_bridge_with_stream_settings() -> None:
    client = make_client(lambda request: httpx.Response(200))

    first = client.stream()
    second = client.stream()

    assert isinstance(first, AsyncStreamBridge)
    assert first is not second
    assert first.client.settings.url == "wss://example.test/stream"
    assert not first.is_connected()
