from __future__ import annotations

import re
from typing import Iterable

from coinscope.models.content import ScrapedContent
from coinscope.tools.web_utils import parse_date

MIN_RELEVANCE = 0.1
PROMPT_SOURCE_CHARS = 1500
MAX_INSIGHTS = 8

INSIGHT_RULES = (
    (re.compile(r"price.*(?:surge|jump|rally|pump|moon)"), "Reports significant price increases"),
    (re.compile(r"price.*(?:drop|crash|fall|dump|plummet)"), "Reports significant price decreases"),
    (re.compile(r"bull.*market|bullish.*sentiment"), "Indicates bullish market sentiment"),
    (re.compile(r"bear.*market|bearish.*sentiment"), "Indicates bearish market sentiment"),
    (re.compile(r"adoption|institutional|etf|regulation"), "Covers institutional/regulatory developments"),
    (re.compile(r"technical.*analysis|support|resistance|chart"), "Provides technical analysis perspective"),
)


def _timestamp(content: ScrapedContent) -> float:
    parsed = parse_date(content.metadata.publish_date)
    return parsed.timestamp() if parsed else 0.0


def sort_contents(contents: Iterable[ScrapedContent]) -> list[ScrapedContent]:
    """Relevance first, then newest publish date, then title."""
    return sorted(
        contents,
        key=lambda c: (-c.metadata.relevance_score, -_timestamp(c), c.title.lower()),
    )


def rank_contents(
    contents: Iterable[ScrapedContent],
    *,
    min_relevance: float = MIN_RELEVANCE,
) -> list[ScrapedContent]:
    return sort_contents(c for c in contents if c.metadata.relevance_score >= min_relevance)


def format_source(content: ScrapedContent, max_chars: int = PROMPT_SOURCE_CHARS) -> str:
    body = content.cleaned_text[:max_chars]
    if len(content.cleaned_text) > max_chars:
        body += "..."
    return (
        f"**{content.title}** ({content.metadata.source_domain})\n"
        f"Relevance: {content.metadata.relevance_score * 100:.0f}%\n"
        f"Content: {body}"
    )


def extract_key_insights(contents: Iterable[ScrapedContent]) -> list[str]:
    insights: list[str] = []
    for content in sort_contents(contents):
        text = content.cleaned_text.lower()
        for pattern, label in INSIGHT_RULES:
            if pattern.search(text):
                insights.append(f"{content.metadata.source_domain}: {label}")
    return list(dict.fromkeys(insights))[:MAX_INSIGHTS]


def summarize_sources(contents: Iterable[ScrapedContent]) -> str:
    ordered = sort_contents(contents)
    if not ordered:
        return "No sources were available."
    publishers = list(dict.fromkeys(c.metadata.source_domain for c in ordered))
    tags = list(dict.fromkeys(tag for c in ordered for tag in c.tags))
    avg_relevance = sum(c.metadata.relevance_score for c in ordered) / len(ordered)
    total_words = sum(c.metadata.word_count for c in ordered)
    return (
        f"Analysis based on {len(ordered)} sources from {len(publishers)} publishers "
        f"({', '.join(publishers)}).\n"
        f"Average relevance: {avg_relevance * 100:.0f}%. Total content: {total_words:,} words.\n"
        f"Key topics: {', '.join(tags) if tags else 'none'}"
    )
