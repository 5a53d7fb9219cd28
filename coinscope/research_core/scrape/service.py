from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Awaitable, Callable, Iterable, Sequence

import httpx
from loguru import logger

from coinscope.config import settings
from coinscope.models.content import (
    OutcomeStatus,
    ScrapedContent,
    ScrapeMetadata,
    StrategyOutcome,
)
from coinscope.research_core.extract.service import (
    Extractor,
    extract_publish_date,
    extract_readability,
    extract_selector,
    extract_tags,
    extract_title,
)
from coinscope.services.batch_executor import RateLimitedBatchExecutor
from coinscope.tools.web_utils import clean_content, extract_domain

BROWSER_HEADERS = {
    "User-Agent": (
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/124.0 Safari/537.36"
    ),
    "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
    "Accept-Language": "en-US,en;q=0.9",
}

WORDS_FOR_FULL_RELEVANCE = 800
MIN_RELEVANCE = 0.3
MAX_RELEVANCE = 0.9

Fetcher = Callable[[str], Awaitable[str]]


@dataclass(frozen=True, slots=True)
class ScrapeStrategy:
    name: str
    fetch_mode: str
    extractor: Extractor


DEFAULT_STRATEGIES: tuple[ScrapeStrategy, ...] = (
    ScrapeStrategy("static-selector", "static", extract_selector),
    ScrapeStrategy("browser-selector", "browser", extract_selector),
    ScrapeStrategy("static-readability", "static", extract_readability),
    ScrapeStrategy("browser-readability", "browser", extract_readability),
)


class AllStrategiesFailed(RuntimeError):
    """Every extraction strategy came back empty or failed for one URL."""

    def __init__(self, url: str, outcomes: Sequence[StrategyOutcome]):
        self.url = url
        self.outcomes = list(outcomes)
        summary = ", ".join(
            f"{o.method}={o.status.value}" + (f" ({o.reason})" if o.reason else "")
            for o in self.outcomes
        )
        super().__init__(f"All strategies failed for {url}: {summary}")


def select_best(outcomes: Iterable[StrategyOutcome]) -> StrategyOutcome | None:
    """Longest successful text wins; on a tie the earlier strategy is kept."""
    successful = [o for o in outcomes if o.status is OutcomeStatus.OK and o.text]
    if not successful:
        return None
    return max(successful, key=lambda o: len(o.text))


def relevance_from_word_count(word_count: int) -> float:
    if word_count <= 0:
        return 0.0
    return max(MIN_RELEVANCE, min(MAX_RELEVANCE, word_count / WORDS_FOR_FULL_RELEVANCE))


def build_scraped_content(
    url: str,
    outcome: StrategyOutcome,
    *,
    max_content_chars: int = 8000,
) -> ScrapedContent:
    cleaned = clean_content(outcome.text, max_content_chars)
    word_count = len(cleaned.split())
    title = extract_title(outcome.html)
    domain = extract_domain(url)
    if domain.startswith("www."):
        domain = domain[4:]
    return ScrapedContent(
        url=url,
        title=title,
        raw_text=outcome.text,
        cleaned_text=cleaned,
        metadata=ScrapeMetadata(
            relevance_score=relevance_from_word_count(word_count),
            word_count=word_count,
            source_domain=domain,
            extraction_method=outcome.method,
            publish_date=extract_publish_date(outcome.html, outcome.text),
        ),
        tags=extract_tags(cleaned, title),
    )


class ScrapeService:
    """Four-strategy scraper: static and headless fetches, each read two ways."""

    def __init__(
        self,
        *,
        static_timeout_s: float | None = None,
        browser_timeout_ms: int | None = None,
        max_content_chars: int | None = None,
        max_parallel: int | None = None,
        fetchers: dict[str, Fetcher] | None = None,
        strategies: Sequence[ScrapeStrategy] | None = None,
        executor: RateLimitedBatchExecutor | None = None,
    ):
        self.static_timeout_s = float(static_timeout_s or settings.scrape_static_timeout_s)
        self.browser_timeout_ms = int(browser_timeout_ms or settings.scrape_browser_timeout_ms)
        self.max_content_chars = int(max_content_chars or settings.scrape_max_content_chars)
        self.max_parallel = max(int(max_parallel or settings.scrape_max_parallel), 1)
        self.strategies = tuple(strategies or DEFAULT_STRATEGIES)
        self._fetchers: dict[str, Fetcher] = {
            "static": self._fetch_with_httpx,
            "browser": self._fetch_with_playwright,
        }
        if fetchers:
            self._fetchers.update(fetchers)
        self._executor = executor or RateLimitedBatchExecutor()

    async def scrape(self, url: str) -> ScrapedContent:
        # One fetch per mode, shared by the strategies that read it.
        fetches: dict[str, asyncio.Future[str]] = {}
        for strategy in self.strategies:
            if strategy.fetch_mode not in fetches:
                fetches[strategy.fetch_mode] = asyncio.ensure_future(
                    self._fetchers[strategy.fetch_mode](url)
                )

        raw = await asyncio.gather(
            *(self._run_strategy(strategy, fetches[strategy.fetch_mode]) for strategy in self.strategies),
            return_exceptions=True,
        )
        outcomes = [
            item
            if isinstance(item, StrategyOutcome)
            else StrategyOutcome.failed(strategy.name, str(item))
            for strategy, item in zip(self.strategies, raw)
        ]

        best = select_best(outcomes)
        if best is None:
            raise AllStrategiesFailed(url, outcomes)

        logger.debug(f"Scraped {url}: best={best.method} ({len(best.text)} chars)")
        return build_scraped_content(url, best, max_content_chars=self.max_content_chars)

    async def scrape_multiple(self, urls: Sequence[str]) -> list[ScrapedContent]:
        """Scrape with a concurrency cap, dropping URLs that fail."""
        results = await self._executor.run(
            list(urls),
            self.max_parallel,
            self.scrape,
            inter_batch_delay_s=0,
            max_retries_per_item=0,
            label="scrape",
        )
        contents = [item for item in results if item is not None]
        if len(contents) < len(urls):
            logger.info(f"Scraped {len(contents)}/{len(urls)} URLs")
        return contents

    async def _run_strategy(
        self,
        strategy: ScrapeStrategy,
        fetch: asyncio.Future[str],
    ) -> StrategyOutcome:
        try:
            html = await fetch
        except Exception as exc:
            return StrategyOutcome.failed(strategy.name, f"fetch: {exc}")
        try:
            text = strategy.extractor(html)
        except Exception as exc:
            return StrategyOutcome.failed(strategy.name, f"extract: {exc}")
        if not text or not text.strip():
            return StrategyOutcome.empty(strategy.name, html)
        return StrategyOutcome.ok(strategy.name, text, html)

    async def _fetch_with_httpx(self, url: str) -> str:
        async with httpx.AsyncClient(
            timeout=self.static_timeout_s,
            follow_redirects=True,
        ) as client:
            response = await client.get(url, headers=BROWSER_HEADERS)
            response.raise_for_status()
            return response.text

    async def _fetch_with_playwright(self, url: str) -> str:
        try:
            from playwright.async_api import async_playwright
        except Exception as exc:  # pragma: no cover - depends on browser install
            raise RuntimeError("Playwright is not installed") from exc

        async with async_playwright() as playwright:  # pragma: no cover - integration behavior
            browser = await playwright.chromium.launch(headless=True)
            try:
                context = await browser.new_context(user_agent=BROWSER_HEADERS["User-Agent"])
                page = await context.new_page()
                await page.goto(url, wait_until="networkidle", timeout=self.browser_timeout_ms)
                html = await page.content()
                await context.close()
                return html
            finally:
                await browser.close()
