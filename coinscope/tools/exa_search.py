from __future__ import annotations

from typing import Any

import httpx

from coinscope.config import settings
from coinscope.models.interfaces import SearchResponse, SearchResult

EXA_SEARCH_URL = "https://api.exa.ai/search"


class ExaSearch:
    """Exa neural search with per-result summaries."""

    provider = "exa"

    def __init__(
        self,
        api_key: str | None = None,
        *,
        timeout_s: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.api_key = api_key if api_key is not None else settings.exa_api_key
        self.timeout_s = timeout_s or settings.search_timeout_s
        self._transport = transport

    async def search(
        self,
        query: str,
        *,
        result_count: int,
        summarize: bool = True,
    ) -> SearchResponse:
        if not self.api_key:
            raise RuntimeError("EXA_API_KEY is not configured")

        payload: dict[str, Any] = {
            "query": query,
            "type": "auto",
            "numResults": max(1, min(int(result_count), 10)),
        }
        if summarize:
            payload["contents"] = {"summary": True}

        async with httpx.AsyncClient(timeout=self.timeout_s, transport=self._transport) as client:
            response = await client.post(
                EXA_SEARCH_URL,
                json=payload,
                headers={"x-api-key": self.api_key, "Content-Type": "application/json"},
            )
            response.raise_for_status()
            data = response.json()

        results = [
            SearchResult(
                url=item.get("url", ""),
                title=item.get("title") or "",
                published_date=item.get("publishedDate"),
                summary=item.get("summary"),
            )
            for item in data.get("results", [])
            if item.get("url")
        ]
        cost = (data.get("costDollars") or {}).get("total")
        return SearchResponse(results=results, provider=self.provider, cost=cost)
