from __future__ import annotations

import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Literal

QueryOrigin = Literal["original", "synonym"]


@dataclass(frozen=True, slots=True)
class SearchQuery:
    text: str
    origin: QueryOrigin = "synonym"
    asset: str | None = None


@dataclass(slots=True)
class SearchHit:
    url: str
    title: str
    source_query: str
    published_date: str | None = None
    summary: str | None = None


@dataclass(frozen=True, slots=True)
class ScrapeMetadata:
    relevance_score: float
    word_count: int
    source_domain: str
    extraction_method: str
    publish_date: str | None = None


@dataclass(frozen=True, slots=True)
class ScrapedContent:
    """One successfully scraped page. Never mutated after the scraper builds it."""

    url: str
    title: str
    raw_text: str
    cleaned_text: str
    metadata: ScrapeMetadata
    tags: tuple[str, ...] = ()

    @property
    def searchable_text(self) -> str:
        return f"{self.title} {self.cleaned_text}"


class OutcomeStatus(str, Enum):
    OK = "ok"
    EMPTY = "empty"
    FAILED = "failed"


@dataclass(slots=True)
class StrategyOutcome:
    """Result of one extraction strategy: content, legitimately nothing, or an error."""

    method: str
    status: OutcomeStatus
    text: str = ""
    html: str = ""
    reason: str | None = None

    @classmethod
    def ok(cls, method: str, text: str, html: str) -> "StrategyOutcome":
        return cls(method=method, status=OutcomeStatus.OK, text=text, html=html)

    @classmethod
    def empty(cls, method: str, html: str = "") -> "StrategyOutcome":
        return cls(method=method, status=OutcomeStatus.EMPTY, html=html)

    @classmethod
    def failed(cls, method: str, reason: str) -> "StrategyOutcome":
        return cls(method=method, status=OutcomeStatus.FAILED, reason=reason)


@dataclass(frozen=True, slots=True)
class AssetToken:
    """An asset named by the user.

    Pattern-table tokens carry regexes and no canonical id. Catalog tokens carry the
    canonical id and symbol of exactly one catalog entry.
    """

    name: str
    patterns: tuple[re.Pattern[str], ...] = ()
    canonical_id: str | None = None
    symbol: str | None = None
    speculative: bool = False

    def matches(self, text: str) -> bool:
        if self.patterns:
            return any(pattern.search(text) for pattern in self.patterns)
        lowered = text.lower()
        if self.name and self.name.lower() in lowered:
            return True
        if self.symbol:
            return re.search(rf"\b{re.escape(self.symbol.lower())}\b", lowered) is not None
        return False

    def strip_mentions(self, text: str) -> str:
        """``text`` with every span this token matches blanked out."""
        if self.patterns:
            for pattern in self.patterns:
                text = pattern.sub(" ", text)
            return text
        if self.name:
            text = re.sub(re.escape(self.name), " ", text, flags=re.IGNORECASE)
        if self.symbol:
            text = re.sub(rf"\b{re.escape(self.symbol)}\b", " ", text, flags=re.IGNORECASE)
        return text


@dataclass(slots=True)
class AssetResolution:
    assets: list[AssetToken] = field(default_factory=list)
    unrecognized: list[str] = field(default_factory=list)


@dataclass(frozen=True, slots=True)
class CatalogEntry:
    id: str
    symbol: str
    name: str


@dataclass(slots=True)
class MarketQuote:
    id: str
    symbol: str
    name: str
    current_price: float | None = None
    market_cap: float | None = None
    price_change_24h: float | None = None
    high_24h: float | None = None
    low_24h: float | None = None


CoverageMap = dict[str, int]
