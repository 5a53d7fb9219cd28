from __future__ import annotations

import asyncio
import time
from typing import Callable

from loguru import logger

from coinscope.models.content import CatalogEntry
from coinscope.models.interfaces import MarketData


class CatalogUnavailableError(RuntimeError):
    """The asset catalog could not be fetched."""


class AssetCatalogCache:
    """Lazily fetched asset catalog shared across runs, refreshed after ``ttl_seconds``."""

    def __init__(
        self,
        market_data: MarketData,
        *,
        ttl_seconds: float = 6 * 3600,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.market_data = market_data
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._entries: list[CatalogEntry] | None = None
        self._fetched_at: float | None = None
        self._lock = asyncio.Lock()

    @property
    def is_loaded(self) -> bool:
        return self._entries is not None

    def _is_fresh(self) -> bool:
        if self._entries is None or self._fetched_at is None:
            return False
        return (self._clock() - self._fetched_at) < self.ttl_seconds

    async def get(self) -> list[CatalogEntry]:
        if self._is_fresh():
            return self._entries  # type: ignore[return-value]
        async with self._lock:
            if self._is_fresh():
                return self._entries  # type: ignore[return-value]
            try:
                entries = await self.market_data.list_assets()
            except CatalogUnavailableError:
                raise
            except Exception as exc:
                raise CatalogUnavailableError(f"Asset catalog fetch failed: {exc}") from exc
            if not entries:
                raise CatalogUnavailableError("Asset catalog is empty")
            self._entries = entries
            self._fetched_at = self._clock()
            logger.info(f"Asset catalog loaded: {len(entries)} entries")
            return entries

    def invalidate(self) -> None:
        self._entries = None
        self._fetched_at = None
