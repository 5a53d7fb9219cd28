from __future__ import annotations

from datetime import date
from typing import Protocol, Sequence

from loguru import logger

from coinscope.agents.asset_detector import owning_assets
from coinscope.models.content import AssetToken, ScrapedContent, SearchHit
from coinscope.tools.web_utils import normalize_url

BACKFILL_RESULTS_PER_QUERY = 2


class SingleSearch(Protocol):
    async def search_one(self, query: str, result_count: int) -> list[SearchHit]: ...


class SingleScrape(Protocol):
    async def scrape(self, url: str) -> ScrapedContent: ...


def backfill_queries(asset_name: str, today: date | None = None) -> list[str]:
    today = today or date.today()
    month_year = today.strftime("%B %Y")
    return [
        f"{asset_name} cryptocurrency price analysis {month_year}",
        f"{asset_name} token market trends technical analysis",
        f"{asset_name} crypto price prediction {today.year}",
        f"{asset_name} digital asset trading signals",
        f"{asset_name} blockchain token analysis",
    ]


class CoverageBackfill:
    """Targeted search and scrape for assets the main pass did not cover.

    Runs sequentially over assets and templates, and stops for an asset as
    soon as one scraped page matches it.
    """

    def __init__(
        self,
        searcher: SingleSearch,
        scraper: SingleScrape,
        *,
        today: date | None = None,
    ):
        self.searcher = searcher
        self.scraper = scraper
        self._today = today

    async def backfill(
        self,
        missing: Sequence[AssetToken],
        existing_urls: set[str],
        assets: Sequence[AssetToken] | None = None,
    ) -> list[ScrapedContent]:
        """Return newly accepted documents. ``existing_urls`` is updated in place.

        ``assets`` is every asset of the run; a page is accepted for an asset only
        when it mentions that asset in its own right among them.
        """
        detected = list(assets) if assets else list(missing)
        seen = {normalize_url(url) for url in existing_urls}
        added: list[ScrapedContent] = []

        for asset in missing:
            covered = False
            for query in backfill_queries(asset.name, self._today):
                hits = await self.searcher.search_one(query, BACKFILL_RESULTS_PER_QUERY)
                for hit in hits:
                    key = normalize_url(hit.url)
                    if key in seen:
                        continue
                    seen.add(key)
                    try:
                        content = await self.scraper.scrape(hit.url)
                    except Exception as exc:
                        logger.warning(f"Backfill scrape failed for {hit.url}: {exc}")
                        continue
                    if asset not in owning_assets(content.searchable_text, detected):
                        logger.debug(f"Backfill page {hit.url} does not mention {asset.name}")
                        continue
                    added.append(content)
                    existing_urls.add(hit.url)
                    covered = True
                    break
                if covered:
                    break

            if covered:
                logger.info(f"Backfill covered {asset.name}")
            else:
                logger.warning(f"Backfill found nothing for {asset.name}")
        return added
