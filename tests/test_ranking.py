from __future__ import annotations

from coinscope.models.content import ScrapedContent, ScrapeMetadata
from coinscope.research_core.ranking import (
    extract_key_insights,
    format_source,
    rank_contents,
    summarize_sources,
)


def make_content(
    title: str,
    *,
    relevance: float = 0.5,
    date: str | None = None,
    text: str = "plain text",
    domain: str = "example.com",
    tags: tuple[str, ...] = (),
) -> ScrapedContent:
    return ScrapedContent(
        url=f"https://{domain}/{title.replace(' ', '-').lower()}",
        title=title,
        raw_text=text,
        cleaned_text=text,
        metadata=ScrapeMetadata(
            relevance_score=relevance,
            word_count=len(text.split()),
            source_domain=domain,
            extraction_method="static-selector",
            publish_date=date,
        ),
        tags=tags,
    )


def test_rank_contents_orders_by_relevance_date_then_title():
    items = [
        make_content("b older", relevance=0.5, date="2024-01-01"),
        make_content("top", relevance=0.9),
        make_content("a newer", relevance=0.5, date="2024-06-01"),
        make_content("Zeta undated", relevance=0.5),
        make_content("alpha undated", relevance=0.5),
        make_content("noise", relevance=0.05),
    ]

    ranked = [c.title for c in rank_contents(items)]

    assert ranked == ["top", "a newer", "b older", "alpha undated", "Zeta undated"]


def test_format_source_truncates_long_content():
    content = make_content("long", text="x" * 2000)
    block = format_source(content)
    assert "x" * 1500 + "..." in block
    assert "x" * 1501 not in block
    assert "Relevance: 50%" in block


def test_key_insights_are_deduplicated_and_capped():
    items = [
        make_content(
            f"s{i}",
            domain=f"site{i}.com",
            text="price surge after ETF approval, bullish sentiment, support holds",
        )
        for i in range(5)
    ]
    insights = extract_key_insights(items)
    assert len(insights) == 8
    assert len(set(insights)) == 8
    assert insights[0].startswith("site0.com:")


def test_summarize_sources_reports_publishers_and_topics():
    items = [
        make_content("one", domain="coindesk.com", tags=("BTC",), text="a b c"),
        make_content("two", domain="decrypt.co", tags=("BTC", "BULLISH"), text="d e"),
    ]
    summary = summarize_sources(items)
    assert "2 sources from 2 publishers" in summary
    assert "Total content: 5 words" in summary
    assert "Key topics: BTC, BULLISH" in summary


def test_summarize_sources_with_nothing():
    assert summarize_sources([]) == "No sources were available."
