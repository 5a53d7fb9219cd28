from __future__ import annotations

import json
import re
import time
from dataclasses import dataclass, field
from datetime import date
from typing import Any, Sequence

from loguru import logger

from coinscope.agents.asset_detector import owning_assets
from coinscope.config import settings
from coinscope.models.content import AssetToken, SearchQuery
from coinscope.models.interfaces import Generation
from coinscope.services.prompt_store import get_prompt, render_prompt

REJECTION_RE = re.compile(r"sorry,?\s+please\s+ask\s+about\s+crypto", re.IGNORECASE)
MIN_QUERIES_PER_ASSET = 2


@dataclass(slots=True)
class ExpansionResult:
    original_query: str
    synonyms: list[str] = field(default_factory=list)
    rejected: bool = False
    fallback_used: bool = False
    model: str | None = None
    processing_ms: int = 0


def rejection_message() -> str:
    return get_prompt("query_expander.rejection")


def is_rejection(text: str) -> bool:
    return bool(REJECTION_RE.search(text or ""))


def _first_json_object(text: str) -> Any:
    start = text.find("{")
    if start < 0:
        return None
    try:
        obj, _ = json.JSONDecoder().raw_decode(text[start:])
    except ValueError:
        return None
    return obj


def parse_synonyms(text: str, original_query: str, max_synonyms: int = 12) -> list[str]:
    """String values of the first JSON object in ``text``, minus the original query."""
    obj = _first_json_object(text or "")
    if not isinstance(obj, dict):
        return []

    original_key = " ".join(original_query.split()).lower()
    seen: set[str] = set()
    synonyms: list[str] = []
    for value in obj.values():
        if not isinstance(value, str):
            continue
        cleaned = " ".join(value.split())
        key = cleaned.lower()
        if not cleaned or key == original_key or key in seen:
            continue
        seen.add(key)
        synonyms.append(cleaned)
        if len(synonyms) >= max_synonyms:
            break
    return synonyms


def fallback_synonyms(query: str) -> list[str]:
    q = " ".join(query.split())
    return [f"{q} analysis", f"{q} trends", f"{q} news"]


def asset_variants(asset: AssetToken) -> list[str]:
    return fallback_synonyms(asset.name)


def enforce_segmentation(
    queries: Sequence[SearchQuery],
    assets: Sequence[AssetToken],
) -> list[SearchQuery]:
    """Make every query address exactly one asset when two or more are named.

    Queries naming no asset or several assets are dropped. Each asset is then
    topped up with its own variants until it has at least two queries.
    """
    if len(assets) < 2:
        tagged: list[SearchQuery] = []
        for query in queries:
            owner = assets[0].name if assets and assets[0].matches(query.text) else None
            tagged.append(SearchQuery(text=query.text, origin=query.origin, asset=owner))
        return tagged

    kept: list[SearchQuery] = []
    for query in queries:
        matched = owning_assets(query.text, assets)
        if len(matched) != 1:
            logger.debug(f"Segmentation dropped {query.text!r} ({len(matched)} assets)")
            continue
        kept.append(SearchQuery(text=query.text, origin=query.origin, asset=matched[0].name))

    seen = {query.text.lower() for query in kept}
    for asset in assets:
        count = sum(1 for query in kept if query.asset == asset.name)
        for variant in asset_variants(asset):
            if count >= MIN_QUERIES_PER_ASSET:
                break
            owners = owning_assets(variant, assets)
            if owners != [asset] or variant.lower() in seen:
                continue
            kept.append(SearchQuery(text=variant, origin="synonym", asset=asset.name))
            seen.add(variant.lower())
            count += 1
    return kept


class QueryExpander:
    """Turns one question into several search-friendly, asset-focused queries."""

    def __init__(
        self,
        generation: Generation,
        *,
        max_synonyms: int | None = None,
        today: date | None = None,
    ):
        self.generation = generation
        self.max_synonyms = max_synonyms or settings.max_synonyms
        self._today = today

    def system_prompt(self) -> str:
        today = self._today or date.today()
        return render_prompt(
            "query_expander.system_prompt",
            today_full=today.strftime("%d %B %Y"),
            month_year=today.strftime("%B %Y"),
        )

    async def expand(self, user_query: str) -> ExpansionResult:
        started = time.monotonic()
        model = getattr(self.generation, "model", None)
        result = ExpansionResult(original_query=user_query, model=model)

        try:
            response = await self.generation.generate(
                self.system_prompt(),
                render_prompt("query_expander.user_message", query=user_query),
            )
        except Exception as exc:
            logger.warning(f"Query expansion failed, using fallback synonyms: {exc}")
            response = None

        if response is not None:
            synonyms = parse_synonyms(response, user_query, self.max_synonyms)
            if not synonyms and is_rejection(response):
                result.rejected = True
                result.processing_ms = int((time.monotonic() - started) * 1000)
                logger.info(f"Query rejected as not crypto-related: {user_query!r}")
                return result
            result.synonyms = synonyms

        if not result.synonyms:
            result.synonyms = fallback_synonyms(user_query)
            result.fallback_used = True

        result.processing_ms = int((time.monotonic() - started) * 1000)
        logger.info(
            f"Expanded {user_query!r} into {len(result.synonyms)} queries"
            + (" (fallback)" if result.fallback_used else "")
        )
        return result
