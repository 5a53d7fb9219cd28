from __future__ import annotations

from typing import Any

from tavily import AsyncTavilyClient

from coinscope.config import settings
from coinscope.models.interfaces import SearchResponse, SearchResult


class TavilySearch:
    provider = "tavily"

    def __init__(self, api_key: str | None = None, *, client: Any | None = None):
        self.api_key = api_key if api_key is not None else settings.tavily_api_key
        self._client = client

    async def search(
        self,
        query: str,
        *,
        result_count: int,
        summarize: bool = True,
    ) -> SearchResponse:
        """Execute a Tavily news-topic search and return normalized results."""
        if self._client is None:
            if not self.api_key:
                raise RuntimeError("TAVILY_API_KEY is not configured")
            self._client = AsyncTavilyClient(api_key=self.api_key)

        response = await self._client.search(
            query=query,
            search_depth="advanced",
            max_results=result_count,
            topic="news",
            include_answer=False,
        )
        results = [
            SearchResult(
                url=r.get("url", ""),
                title=r.get("title", ""),
                published_date=r.get("published_date"),
                summary=(r.get("content") or None) if summarize else None,
            )
            for r in response.get("results", [])
            if r.get("url")
        ]
        return SearchResponse(results=results, provider=self.provider)
