from __future__ import annotations

from datetime import date
from typing import Sequence

from loguru import logger

from coinscope.models.content import CoverageMap, MarketQuote, ScrapedContent
from coinscope.models.interfaces import ContextHit, Generation
from coinscope.research_core.ranking import (
    extract_key_insights,
    format_source,
    rank_contents,
    summarize_sources,
)
from coinscope.services.prompt_store import get_prompt, render_prompt

PRIOR_CONTEXT_CHARS = 600


def _money(value: float | None) -> str:
    if value is None:
        return "n/a"
    if abs(value) >= 1:
        return f"${value:,.2f}"
    return f"${value:.6f}"


def _percent(value: float | None) -> str:
    return "n/a" if value is None else f"{value:+.2f}%"


def format_quotes(quotes: Sequence[MarketQuote]) -> str:
    if not quotes:
        return "No live market data was available."
    lines = []
    for quote in quotes:
        market_cap = "n/a" if quote.market_cap is None else f"${quote.market_cap:,.0f}"
        lines.append(
            f"- **{quote.name} ({quote.symbol})**: price {_money(quote.current_price)}, "
            f"24h change {_percent(quote.price_change_24h)}, "
            f"24h range {_money(quote.low_24h)} - {_money(quote.high_24h)}, "
            f"market cap {market_cap}"
        )
    return "\n".join(lines)


def format_coverage(coverage: CoverageMap, unrecognized: Sequence[str]) -> str:
    if not coverage and not unrecognized:
        return "No specific assets were detected in the question."
    lines = [f"- {name}: {count} source(s)" for name, count in coverage.items()]
    missing = [name for name, count in coverage.items() if count == 0]
    if missing:
        lines.append(f"- No sources found for: {', '.join(missing)}")
    if unrecognized:
        lines.append(f"- Not recognized as listed assets: {', '.join(unrecognized)}")
    return "\n".join(lines)


def build_analysis_prompt(
    original_query: str,
    synonyms: Sequence[str],
    contents: Sequence[ScrapedContent],
    *,
    quotes: Sequence[MarketQuote] = (),
    coverage: CoverageMap | None = None,
    unrecognized: Sequence[str] = (),
    prior_context: Sequence[ContextHit] = (),
    today: date | None = None,
) -> str:
    """The context document handed to the synthesis model."""
    today = today or date.today()
    ranked = rank_contents(contents)

    sections = [
        "# Enhanced Multi-Query Cryptocurrency Analysis",
        f"**Original Query:** {original_query}",
        f"**Analysis Date:** {today.strftime('%d %B %Y')}",
        f"**Total Queries:** {len(synonyms) + 1}",
        f"**Unique Sources:** {len(ranked)}",
        "",
        "## Quantitative Data:",
        format_quotes(quotes),
        "",
        "## Query Variations:",
        f'- Original: "{original_query}"',
        *(f'- Synonym {i}: "{synonym}"' for i, synonym in enumerate(synonyms, start=1)),
        "",
        "## Asset Coverage:",
        format_coverage(coverage or {}, unrecognized),
        "",
    ]

    insights = extract_key_insights(ranked)
    if insights:
        sections += ["## Key Insights:", *(f"- {insight}" for insight in insights), ""]

    sections += ["## Source Summary:", summarize_sources(ranked), "", "## Source Analysis:", ""]
    for index, content in enumerate(ranked, start=1):
        sections += [f"### Source {index}", format_source(content), "", "---", ""]

    if prior_context:
        sections.append("## Prior Research Context:")
        for hit in prior_context:
            snippet = hit.document.text[:PRIOR_CONTEXT_CHARS]
            sections.append(f"- ({hit.document.kind}) {snippet}")
        sections.append("")

    sections.append(render_prompt("synthesis.instructions", query=original_query))
    return "\n".join(sections)


class ReportSynthesizer:
    def __init__(self, generation: Generation):
        self.generation = generation

    async def synthesize(self, prompt: str) -> str:
        logger.info(f"Synthesizing report from {len(prompt)} chars of context")
        report = await self.generation.generate(get_prompt("synthesis.system_prompt"), prompt)
        return report.strip()
