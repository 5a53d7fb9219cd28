from __future__ import annotations

from loguru import logger

from coinscope.config import Settings, settings as default_settings
from coinscope.models.interfaces import SearchResponse, WebSearch
from coinscope.tools.brave_search import BraveSearch
from coinscope.tools.exa_search import ExaSearch
from coinscope.tools.tavily_search import TavilySearch


class FallbackWebSearch:
    """Primary provider, switching to the fallback on error or zero results."""

    def __init__(self, primary: WebSearch, fallback: WebSearch):
        self.primary = primary
        self.fallback = fallback

    async def search(
        self,
        query: str,
        *,
        result_count: int,
        summarize: bool = True,
    ) -> SearchResponse:
        try:
            response = await self.primary.search(query, result_count=result_count, summarize=summarize)
            if response.results:
                return response
            reason = f"{response.provider} returned zero results"
            primary_name = response.provider
        except Exception as e:
            reason = str(e)
            primary_name = getattr(self.primary, "provider", "primary")

        logger.warning(f"Search fallback for {query!r}: {reason}")
        fallback_response = await self.fallback.search(
            query, result_count=result_count, summarize=summarize
        )
        fallback_response.fallback_from = primary_name
        fallback_response.fallback_reason = reason
        return fallback_response


def build_provider(name: str, config: Settings) -> WebSearch:
    provider = name.lower().strip()
    if provider == "exa":
        return ExaSearch(config.exa_api_key, timeout_s=config.search_timeout_s)
    if provider == "tavily":
        return TavilySearch(config.tavily_api_key)
    if provider == "brave":
        return BraveSearch(config.brave_api_key, timeout_s=config.search_timeout_s)
    raise ValueError(f"Unsupported SEARCH_PROVIDER: {name}")


def get_web_search(config: Settings | None = None) -> WebSearch:
    config = config or default_settings
    primary = build_provider(config.search_provider, config)
    fallback_name = config.search_fallback_provider.strip()
    if not fallback_name or fallback_name.lower() == config.search_provider.lower().strip():
        return primary
    return FallbackWebSearch(primary, build_provider(fallback_name, config))
