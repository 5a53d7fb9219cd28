from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Iterable, Sequence

from loguru import logger

from coinscope.models.content import SearchHit, SearchQuery
from coinscope.models.interfaces import WebSearch
from coinscope.services.batch_executor import RateLimitedBatchExecutor
from coinscope.tools import web_utils

RESULTS_PER_QUERY = 3
MAX_TOTAL_RESULTS = 15
SEARCH_BATCH_SIZE = 5
SEARCH_BATCH_DELAY_S = 1.0
SEARCH_MAX_RETRIES = 4

UNKNOWN_DATE = datetime(1900, 1, 1, tzinfo=timezone.utc)


@dataclass(slots=True)
class SearchOutcome:
    hits: list[SearchHit] = field(default_factory=list)

    @property
    def urls(self) -> list[str]:
        return [hit.url for hit in self.hits]


def dedupe_hits(hits: Iterable[SearchHit]) -> list[SearchHit]:
    """Drop repeated URLs (normalized), keeping the first occurrence."""
    seen: set[str] = set()
    deduped: list[SearchHit] = []
    for hit in hits:
        if not web_utils.is_valid_url(hit.url):
            continue
        key = web_utils.normalize_url(hit.url)
        if key in seen:
            continue
        seen.add(key)
        deduped.append(hit)
    return deduped


def _hit_date(hit: SearchHit) -> datetime:
    return web_utils.parse_date(hit.published_date) or UNKNOWN_DATE


def sort_hits_by_date(hits: Iterable[SearchHit]) -> list[SearchHit]:
    """Newest first; hits without a usable date sort as 1900-01-01."""
    return sorted(hits, key=_hit_date, reverse=True)


def merge_hits(
    per_query: Iterable[Sequence[SearchHit]],
    *,
    limit: int = MAX_TOTAL_RESULTS,
) -> list[SearchHit]:
    flat = [hit for hits in per_query for hit in hits]
    return sort_hits_by_date(dedupe_hits(flat)[:limit])


class SearchOrchestrator:
    """Fans queries out to the web-search provider in rate-limited batches."""

    def __init__(
        self,
        web_search: WebSearch,
        *,
        executor: RateLimitedBatchExecutor | None = None,
    ):
        self.web_search = web_search
        self._executor = executor or RateLimitedBatchExecutor()

    async def _search_query(self, query: SearchQuery, result_count: int) -> list[SearchHit]:
        response = await self.web_search.search(query.text, result_count=result_count, summarize=True)
        return [
            SearchHit(
                url=result.url,
                title=result.title,
                source_query=query.text,
                published_date=result.published_date,
                summary=result.summary,
            )
            for result in response.results[:result_count]
        ]

    async def search(self, queries: Sequence[SearchQuery]) -> SearchOutcome:
        async def action(query: SearchQuery) -> list[SearchHit]:
            return await self._search_query(query, RESULTS_PER_QUERY)

        raw = await self._executor.run(
            list(queries),
            SEARCH_BATCH_SIZE,
            action,
            inter_batch_delay_s=SEARCH_BATCH_DELAY_S,
            max_retries_per_item=SEARCH_MAX_RETRIES,
            label="search",
        )
        per_query = [hits or [] for hits in raw]
        hits = merge_hits(per_query)
        logger.info(
            f"Search: {len(queries)} queries, {sum(len(h) for h in per_query)} raw hits, "
            f"{len(hits)} unique"
        )
        return SearchOutcome(hits=hits)

    async def search_one(self, query: str, result_count: int) -> list[SearchHit]:
        """Single query through the same executor; a failed search yields no hits."""
        search_query = SearchQuery(text=query)

        async def action(item: SearchQuery) -> list[SearchHit]:
            return await self._search_query(item, result_count)

        (hits,) = await self._executor.run(
            [search_query],
            1,
            action,
            inter_batch_delay_s=0,
            max_retries_per_item=SEARCH_MAX_RETRIES,
            label="search",
        )
        return hits or []
