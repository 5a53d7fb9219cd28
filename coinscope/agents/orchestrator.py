from __future__ import annotations

import time
import uuid
from dataclasses import asdict, dataclass, field
from datetime import date
from typing import AsyncIterator, Literal

from loguru import logger

from coinscope.agents.asset_detector import (
    AssetResolver,
    build_resolver,
    compute_coverage,
    missing_assets,
)
from coinscope.agents.coverage import CoverageBackfill
from coinscope.agents.query_expander import (
    QueryExpander,
    enforce_segmentation,
    rejection_message,
)
from coinscope.agents.synthesis import ReportSynthesizer, build_analysis_prompt
from coinscope.config import Settings, settings as default_settings
from coinscope.llm_client import expansion_generation, synthesis_generation
from coinscope.models.content import (
    AssetToken,
    CoverageMap,
    MarketQuote,
    ScrapedContent,
    SearchHit,
    SearchQuery,
)
from coinscope.models.events import PipelineEvent
from coinscope.models.interfaces import ContextDocument, ContextStore, Generation, MarketData
from coinscope.research_core.scrape.service import ScrapeService
from coinscope.services import streaming
from coinscope.services.asset_catalog import AssetCatalogCache
from coinscope.services.context_store import NullContextStore, SafeContextStore, get_context_store
from coinscope.services.logger import log_pipeline_step
from coinscope.services.search_executor import SearchOrchestrator
from coinscope.tools.coingecko import get_market_data
from coinscope.tools.search_provider import get_web_search

RunStatus = Literal["completed", "rejected"]


@dataclass(slots=True)
class PipelineResult:
    status: RunStatus
    report: str
    original_query: str
    queries: list[SearchQuery] = field(default_factory=list)
    hits: list[SearchHit] = field(default_factory=list)
    contents: list[ScrapedContent] = field(default_factory=list)
    assets: list[AssetToken] = field(default_factory=list)
    unrecognized: list[str] = field(default_factory=list)
    coverage_before: CoverageMap = field(default_factory=dict)
    coverage_after: CoverageMap = field(default_factory=dict)
    backfilled: list[ScrapedContent] = field(default_factory=list)
    quotes: list[MarketQuote] = field(default_factory=list)
    all_assets_covered: bool = False


def _asset_summary(asset: AssetToken) -> dict:
    return {
        "name": asset.name,
        "id": asset.canonical_id,
        "symbol": asset.symbol,
        "speculative": asset.speculative,
    }


def _content_summary(content: ScrapedContent) -> dict:
    return {
        "url": content.url,
        "title": content.title,
        "source": content.metadata.source_domain,
        "relevance": content.metadata.relevance_score,
        "method": content.metadata.extraction_method,
    }


class CryptoResearchOrchestrator:
    """One research run: expand, search, scrape, reconcile coverage, synthesize."""

    def __init__(
        self,
        *,
        expansion: Generation,
        synthesis: Generation,
        searcher: SearchOrchestrator,
        scraper: ScrapeService,
        resolver: AssetResolver,
        market_data: MarketData | None = None,
        context_store: ContextStore | None = None,
        today: date | None = None,
    ):
        self.expander = QueryExpander(expansion, today=today)
        self.synthesizer = ReportSynthesizer(synthesis)
        self.searcher = searcher
        self.scraper = scraper
        self.resolver = resolver
        self.market_data = market_data
        self.context_store = (
            SafeContextStore(context_store) if context_store is not None else NullContextStore()
        )
        self.backfiller = CoverageBackfill(searcher, scraper, today=today)
        self._today = today
        self._result: PipelineResult | None = None

    @classmethod
    def from_settings(
        cls,
        config: Settings | None = None,
        *,
        catalog_cache: AssetCatalogCache | None = None,
        synthesis_model: str | None = None,
        resolver_mode: str | None = None,
    ) -> "CryptoResearchOrchestrator":
        config = config or default_settings
        market_data = get_market_data() if catalog_cache is None else catalog_cache.market_data
        resolver = build_resolver(
            resolver_mode or config.asset_resolver,
            market_data=market_data,
            cache=catalog_cache,
            ttl_seconds=config.catalog_ttl_seconds,
        )
        return cls(
            expansion=expansion_generation(),
            synthesis=synthesis_generation(model=synthesis_model),
            searcher=SearchOrchestrator(get_web_search(config)),
            scraper=ScrapeService(
                static_timeout_s=config.scrape_static_timeout_s,
                browser_timeout_ms=config.scrape_browser_timeout_ms,
                max_content_chars=config.scrape_max_content_chars,
                max_parallel=config.scrape_max_parallel,
            ),
            resolver=resolver,
            market_data=market_data,
            context_store=get_context_store(config),
        )

    async def run(self, query: str) -> PipelineResult:
        async for _ in self.research(query):
            pass
        if self._result is None:
            raise RuntimeError(f"Research run for {query!r} ended without a result")
        return self._result

    async def research(self, query: str) -> AsyncIterator[PipelineEvent]:
        started = time.monotonic()
        run_id = uuid.uuid4().hex[:12]
        self._result = None

        # Setup errors (catalog explicitly required but unreachable) surface here.
        await self.resolver.prepare()

        expansion = await self.expander.expand(query)
        if expansion.rejected:
            message = rejection_message()
            log_pipeline_step("expand", "rejected", {"query": query})
            self._result = PipelineResult(status="rejected", report=message, original_query=query)
            yield streaming.query_rejected(message)
            return
        yield streaming.query_expanded(
            query, expansion.synonyms, fallback_used=expansion.fallback_used
        )

        resolution = self.resolver.resolve(query)
        assets = resolution.assets
        log_pipeline_step(
            "detect_assets",
            "completed",
            {"resolver": self.resolver.name, "assets": [a.name for a in assets]},
        )
        yield streaming.assets_detected(
            [_asset_summary(a) for a in assets],
            resolution.unrecognized,
            resolver=self.resolver.name,
        )

        queries = enforce_segmentation(
            [SearchQuery(text=query, origin="original")]
            + [SearchQuery(text=s, origin="synonym") for s in expansion.synonyms],
            assets,
        )

        quotes: list[MarketQuote] = []
        ids = [a.canonical_id for a in assets if a.canonical_id]
        if self.market_data is not None and ids:
            quotes = await self.market_data.get_quotes(ids)

        outcome = await self.searcher.search(queries)
        yield streaming.search_completed(len(queries), [asdict(hit) for hit in outcome.hits])

        contents = await self.scraper.scrape_multiple(outcome.urls)
        yield streaming.scrape_completed(len(outcome.urls), len(contents))

        coverage_before = compute_coverage(assets, contents)
        yield streaming.coverage_computed(coverage_before, stage="initial")

        backfilled: list[ScrapedContent] = []
        missing = missing_assets(assets, coverage_before)
        if missing:
            yield streaming.backfill_started([a.name for a in missing])
            existing_urls = {content.url for content in contents} | set(outcome.urls)
            backfilled = await self.backfiller.backfill(missing, existing_urls, assets)
            yield streaming.backfill_completed([_content_summary(c) for c in backfilled])

        all_contents = contents + backfilled
        coverage_after = compute_coverage(assets, all_contents) if backfilled else dict(coverage_before)
        yield streaming.coverage_computed(coverage_after, stage="final")

        prior_context = await self.context_store.query_relevant(
            query, filters={"kind": "analysis"}, top_k=3
        )

        prompt = build_analysis_prompt(
            query,
            expansion.synonyms,
            all_contents,
            quotes=quotes,
            coverage=coverage_after,
            unrecognized=resolution.unrecognized,
            prior_context=prior_context,
            today=self._today,
        )
        yield streaming.synthesis_started(len(all_contents))
        try:
            report = await self.synthesizer.synthesize(prompt)
        except Exception as exc:
            logger.error(f"Synthesis failed: {exc}")
            yield streaming.error(str(exc), stage="synthesis")
            raise

        await self.context_store.store(
            ContextDocument(
                id=f"{run_id}:analysis",
                text=f"{query}\n{report}",
                kind="analysis",
                metadata={"query": query, "assets": [a.name for a in assets]},
            )
        )

        all_covered = (
            not resolution.unrecognized
            and all(count > 0 for count in coverage_after.values())
        )
        self._result = PipelineResult(
            status="completed",
            report=report,
            original_query=query,
            queries=queries,
            hits=outcome.hits,
            contents=all_contents,
            assets=assets,
            unrecognized=resolution.unrecognized,
            coverage_before=coverage_before,
            coverage_after=coverage_after,
            backfilled=backfilled,
            quotes=quotes,
            all_assets_covered=all_covered,
        )
        runtime_ms = int((time.monotonic() - started) * 1000)
        log_pipeline_step("research", "completed", {"runtime_ms": runtime_ms, "sources": len(all_contents)})
        yield streaming.research_complete(
            report,
            [_content_summary(c) for c in all_contents],
            all_assets_covered=all_covered,
            runtime_ms=runtime_ms,
        )

