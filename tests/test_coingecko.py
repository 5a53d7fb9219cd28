from __future__ import annotations

import httpx
import pytest

from coinscope.services.asset_catalog import CatalogUnavailableError
from coinscope.services.batch_executor import RateLimitedBatchExecutor
from coinscope.tools import coingecko
from coinscope.tools.coingecko import CoinGeckoMarketData


class RecordingSleep:
    def __init__(self):
        self.delays: list[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


def row(coin_id: str, symbol: str, name: str, *, mcap: float = 1e9, volume: float = 1e7) -> dict:
    return {
        "id": coin_id,
        "symbol": symbol,
        "name": name,
        "market_cap": mcap,
        "total_volume": volume,
        "current_price": 1.5,
        "price_change_percentage_24h": -2.25,
        "high_24h": 1.6,
        "low_24h": 1.4,
    }


def market(handler, *, api_key: str = "", max_pages: int = 3, sleep=None) -> CoinGeckoMarketData:
    return CoinGeckoMarketData(
        api_key,
        max_pages=max_pages,
        min_market_cap=1_000_000,
        min_volume=10_000,
        timeout_s=5,
        executor=RateLimitedBatchExecutor(sleep=sleep or RecordingSleep()),
        transport=httpx.MockTransport(handler),
    )


@pytest.mark.asyncio
async def test_list_assets_paginates_filters_and_dedupes(monkeypatch):
    monkeypatch.setattr(coingecko, "PER_PAGE", 2)
    pages = {
        "1": [row("bitcoin", "BTC", "Bitcoin"), row("dust", "DST", "Dust", mcap=10, volume=10)],
        "2": [row("ethereum", "ETH", "Ethereum"), row("bitcoin", "BTC", "Bitcoin")],
        "3": [row("dogecoin", "DOGE", "Dogecoin")],
    }
    requested: list[str] = []

    def handler(request: httpx.Request) -> httpx.Response:
        page = request.url.params["page"]
        requested.append(page)
        assert request.url.host == "api.coingecko.com"
        assert "x-cg-pro-api-key" not in request.headers
        return httpx.Response(200, json=pages[page])

    sleep = RecordingSleep()
    entries = await market(handler, sleep=sleep).list_assets()

    assert [(e.id, e.symbol, e.name) for e in entries] == [
        ("bitcoin", "btc", "Bitcoin"),
        ("ethereum", "eth", "Ethereum"),
        ("dogecoin", "doge", "Dogecoin"),
    ]
    assert sorted(requested) == ["1", "2", "3"]
    assert sleep.delays == [coingecko.PAGE_BATCH_DELAY_S]


@pytest.mark.asyncio
async def test_list_assets_stops_at_short_page(monkeypatch):
    monkeypatch.setattr(coingecko, "PER_PAGE", 2)

    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.params["page"] == "1":
            return httpx.Response(200, json=[row("bitcoin", "btc", "Bitcoin")])
        return httpx.Response(200, json=[row("ethereum", "eth", "Ethereum")])

    entries = await market(handler, max_pages=2).list_assets()

    assert [e.id for e in entries] == ["bitcoin"]


@pytest.mark.asyncio
async def test_pro_key_switches_host_and_header():
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.host == "pro-api.coingecko.com"
        assert request.headers["x-cg-pro-api-key"] == "pro-key"
        return httpx.Response(200, json=[row("bitcoin", "btc", "Bitcoin")])

    entries = await market(handler, api_key="pro-key", max_pages=1).list_assets()

    assert [e.id for e in entries] == ["bitcoin"]


@pytest.mark.asyncio
async def test_first_page_failure_makes_catalog_unavailable():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(500, json={"error": "down"})

    with pytest.raises(CatalogUnavailableError):
        await market(handler, max_pages=2).list_assets()


@pytest.mark.asyncio
async def test_rate_limited_page_is_retried():
    attempts = {"count": 0}

    def handler(request: httpx.Request) -> httpx.Response:
        attempts["count"] += 1
        if attempts["count"] == 1:
            return httpx.Response(429, json={"status": "rate limited"})
        return httpx.Response(200, json=[row("bitcoin", "btc", "Bitcoin")])

    sleep = RecordingSleep()
    entries = await market(handler, max_pages=1, sleep=sleep).list_assets()

    assert [e.id for e in entries] == ["bitcoin"]
    assert sleep.delays == [1.0]


@pytest.mark.asyncio
async def test_get_quotes_maps_market_rows():
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.params["ids"] == "bitcoin,dogecoin"
        return httpx.Response(200, json=[row("bitcoin", "btc", "Bitcoin"), row("dogecoin", "doge", "Dogecoin")])

    quotes = await market(handler).get_quotes(["bitcoin", "dogecoin"])

    assert [q.symbol for q in quotes] == ["BTC", "DOGE"]
    assert quotes[0].current_price == 1.5
    assert quotes[0].price_change_24h == -2.25
    assert quotes[0].market_cap == 1e9


@pytest.mark.asyncio
async def test_get_quotes_failure_returns_empty():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(503)

    assert await market(handler).get_quotes(["bitcoin"]) == []
    assert await market(handler).get_quotes([]) == []
