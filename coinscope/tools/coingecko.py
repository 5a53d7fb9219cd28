from __future__ import annotations

from typing import Any

import httpx
from loguru import logger

from coinscope.config import settings
from coinscope.models.content import CatalogEntry, MarketQuote
from coinscope.services.asset_catalog import CatalogUnavailableError
from coinscope.services.batch_executor import RateLimitedBatchExecutor

PUBLIC_BASE_URL = "https://api.coingecko.com/api/v3"
PRO_BASE_URL = "https://pro-api.coingecko.com/api/v3"
PER_PAGE = 250
PAGE_BATCH_SIZE = 2
PAGE_BATCH_DELAY_S = 1.2
PAGE_MAX_RETRIES = 3


def _as_float(value: Any) -> float | None:
    if value is None:
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


class CoinGeckoMarketData:
    """CoinGecko ``/coins/markets`` as the asset catalog and quote source."""

    def __init__(
        self,
        api_key: str | None = None,
        *,
        max_pages: int | None = None,
        min_market_cap: float | None = None,
        min_volume: float | None = None,
        timeout_s: float | None = None,
        executor: RateLimitedBatchExecutor | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.api_key = (api_key if api_key is not None else settings.coingecko_api_key).strip()
        self.max_pages = max(int(max_pages or settings.coingecko_max_pages), 1)
        self.min_market_cap = (
            settings.catalog_min_market_cap if min_market_cap is None else min_market_cap
        )
        self.min_volume = settings.catalog_min_volume if min_volume is None else min_volume
        self.timeout_s = timeout_s or settings.coingecko_timeout_s
        self._executor = executor or RateLimitedBatchExecutor()
        self._transport = transport

    @property
    def base_url(self) -> str:
        return PRO_BASE_URL if self.api_key else PUBLIC_BASE_URL

    def _headers(self) -> dict[str, str]:
        headers = {"Accept": "application/json"}
        if self.api_key:
            headers["x-cg-pro-api-key"] = self.api_key
        return headers

    async def _get_markets(self, params: dict[str, Any]) -> list[dict[str, Any]]:
        async with httpx.AsyncClient(timeout=self.timeout_s, transport=self._transport) as client:
            response = await client.get(
                f"{self.base_url}/coins/markets",
                params=params,
                headers=self._headers(),
            )
            response.raise_for_status()
            payload = response.json()
        if not isinstance(payload, list):
            raise RuntimeError("Unexpected /coins/markets payload")
        return payload

    async def _fetch_page(self, page: int) -> list[dict[str, Any]]:
        return await self._get_markets(
            {
                "vs_currency": "usd",
                "order": "market_cap_desc",
                "per_page": PER_PAGE,
                "page": page,
                "sparkline": "false",
            }
        )

    async def list_assets(self) -> list[CatalogEntry]:
        pages = await self._executor.run(
            list(range(1, self.max_pages + 1)),
            PAGE_BATCH_SIZE,
            self._fetch_page,
            inter_batch_delay_s=PAGE_BATCH_DELAY_S,
            max_retries_per_item=PAGE_MAX_RETRIES,
            label="coingecko",
        )
        if not pages or pages[0] is None:
            raise CatalogUnavailableError("CoinGecko catalog unavailable (first page failed)")

        entries: list[CatalogEntry] = []
        seen: set[str] = set()
        for rows in pages:
            if rows is None:
                break
            for row in rows:
                coin_id = row.get("id")
                if not coin_id or coin_id in seen:
                    continue
                market_cap = _as_float(row.get("market_cap")) or 0.0
                volume = _as_float(row.get("total_volume")) or 0.0
                if market_cap < self.min_market_cap or volume < self.min_volume:
                    continue
                seen.add(coin_id)
                entries.append(
                    CatalogEntry(
                        id=coin_id,
                        symbol=str(row.get("symbol", "")).lower(),
                        name=str(row.get("name", "")),
                    )
                )
            if len(rows) < PER_PAGE:
                break
        return entries

    async def get_quotes(self, ids: list[str]) -> list[MarketQuote]:
        if not ids:
            return []
        try:
            rows = await self._get_markets({"vs_currency": "usd", "ids": ",".join(ids)})
        except Exception as exc:
            logger.warning(f"CoinGecko quotes unavailable for {ids}: {exc}")
            return []
        return [
            MarketQuote(
                id=row.get("id", ""),
                symbol=str(row.get("symbol", "")).upper(),
                name=row.get("name", ""),
                current_price=_as_float(row.get("current_price")),
                market_cap=_as_float(row.get("market_cap")),
                price_change_24h=_as_float(row.get("price_change_percentage_24h")),
                high_24h=_as_float(row.get("high_24h")),
                low_24h=_as_float(row.get("low_24h")),
            )
            for row in rows
        ]


def get_market_data() -> CoinGeckoMarketData | None:
    if settings.market_data_provider.lower().strip() != "coingecko":
        return None
    return CoinGeckoMarketData()
