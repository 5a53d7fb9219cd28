from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Protocol

from coinscope.models.content import CatalogEntry, MarketQuote


@dataclass(slots=True)
class SearchResult:
    """Normalized result from any web search provider."""

    url: str
    title: str
    published_date: str | None = None
    summary: str | None = None


@dataclass(slots=True)
class SearchResponse:
    results: list[SearchResult]
    provider: str
    cost: float | None = None
    fallback_from: str | None = None
    fallback_reason: str | None = None


@dataclass(slots=True)
class ContextDocument:
    id: str
    text: str
    kind: str
    metadata: dict[str, Any] = field(default_factory=dict)


@dataclass(slots=True)
class ContextHit:
    document: ContextDocument
    score: float


class Generation(Protocol):
    async def generate(self, system_instruction: str, user_message: str) -> str: ...


class WebSearch(Protocol):
    async def search(
        self,
        query: str,
        *,
        result_count: int,
        summarize: bool = True,
    ) -> SearchResponse: ...


class MarketData(Protocol):
    async def list_assets(self) -> list[CatalogEntry]: ...
    async def get_quotes(self, ids: list[str]) -> list[MarketQuote]: ...


class ContextStore(Protocol):
    async def store(self, doc: ContextDocument) -> None: ...
    async def query_relevant(
        self,
        text: str,
        filters: dict[str, Any] | None = None,
        top_k: int = 3,
    ) -> list[ContextHit]: ...
