from __future__ import annotations

from typing import Any

import httpx

from coinscope.config import settings
from coinscope.models.interfaces import SearchResponse, SearchResult

BRAVE_SEARCH_URL = "https://api.search.brave.com/res/v1/web/search"


class BraveSearch:
    provider = "brave"

    def __init__(
        self,
        api_key: str | None = None,
        *,
        timeout_s: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.api_key = api_key if api_key is not None else settings.brave_api_key
        self.timeout_s = timeout_s or settings.search_timeout_s
        self._transport = transport

    async def search(
        self,
        query: str,
        *,
        result_count: int,
        summarize: bool = True,
    ) -> SearchResponse:
        """Execute a Brave web search and normalize results."""
        if not self.api_key:
            raise RuntimeError("BRAVE_API_KEY is not configured")

        params: dict[str, Any] = {"q": query, "count": result_count}
        if summarize:
            params["extra_snippets"] = "true"

        async with httpx.AsyncClient(timeout=self.timeout_s, transport=self._transport) as client:
            response = await client.get(
                BRAVE_SEARCH_URL,
                params=params,
                headers={
                    "Accept": "application/json",
                    "X-Subscription-Token": self.api_key,
                },
            )
            response.raise_for_status()
            payload = response.json()

        mapped: list[SearchResult] = []
        for item in payload.get("web", {}).get("results", []):
            if not item.get("url"):
                continue
            snippets = item.get("extra_snippets", []) or []
            description = (item.get("description") or "").strip()
            mapped.append(
                SearchResult(
                    url=item["url"],
                    title=item.get("title", ""),
                    # Brave reports page age rather than a publish date.
                    published_date=item.get("page_age"),
                    summary=description or " ".join(snippets).strip() or None,
                )
            )
        return SearchResponse(results=mapped[:result_count], provider=self.provider)
