from __future__ import annotations

import pytest

from coinscope.models.content import OutcomeStatus, StrategyOutcome
from coinscope.research_core.scrape.service import (
    DEFAULT_STRATEGIES,
    AllStrategiesFailed,
    ScrapeService,
    ScrapeStrategy,
    relevance_from_word_count,
    select_best,
)

HTML = "<html><head><title>Page Title</title></head><body><h1>Headline</h1></body></html>"


def _strategies(outputs: dict[str, object]) -> list[ScrapeStrategy]:
    def make(name: str):
        def extractor(_html: str) -> str:
            value = outputs.get(name, "")
            if isinstance(value, Exception):
                raise value
            return str(value)

        return extractor

    return [ScrapeStrategy(s.name, s.fetch_mode, make(s.name)) for s in DEFAULT_STRATEGIES]


def _service(outputs: dict[str, object], *, static_html=HTML, browser_html=HTML, calls=None):
    calls = calls if calls is not None else {}

    async def static_fetch(url: str) -> str:
        calls["static"] = calls.get("static", 0) + 1
        if isinstance(static_html, Exception):
            raise static_html
        return static_html

    async def browser_fetch(url: str) -> str:
        calls["browser"] = calls.get("browser", 0) + 1
        if isinstance(browser_html, Exception):
            raise browser_html
        return browser_html

    return ScrapeService(
        fetchers={"static": static_fetch, "browser": browser_fetch},
        strategies=_strategies(outputs),
        max_content_chars=8000,
        max_parallel=4,
    )


@pytest.mark.asyncio
async def test_single_working_strategy_is_enough():
    service = _service(
        {
            "static-selector": "",
            "browser-selector": RuntimeError("parser crashed"),
            "static-readability": "   ",
            "browser-readability": "Dogecoin holds support near the weekly low.",
        }
    )

    content = await service.scrape("https://www.example.com/doge")

    assert content.metadata.extraction_method == "browser-readability"
    assert content.cleaned_text == "Dogecoin holds support near the weekly low."
    assert content.title == "Headline"
    assert content.metadata.source_domain == "example.com"


@pytest.mark.asyncio
async def test_all_empty_strategies_raise_all_strategies_failed():
    service = _service({})

    with pytest.raises(AllStrategiesFailed) as excinfo:
        await service.scrape("https://example.com/empty")

    assert excinfo.value.url == "https://example.com/empty"
    assert len(excinfo.value.outcomes) == 4
    assert all(o.status is OutcomeStatus.EMPTY for o in excinfo.value.outcomes)


@pytest.mark.asyncio
async def test_fetch_failures_become_failed_outcomes():
    service = _service(
        {name: "text" for name in ("static-selector", "browser-selector")},
        static_html=RuntimeError("timeout"),
        browser_html=RuntimeError("no browser"),
    )

    with pytest.raises(AllStrategiesFailed) as excinfo:
        await service.scrape("https://example.com/down")

    assert all(o.status is OutcomeStatus.FAILED for o in excinfo.value.outcomes)
    assert "timeout" in (excinfo.value.outcomes[0].reason or "")


@pytest.mark.asyncio
async def test_static_failure_still_uses_browser_strategies():
    service = _service(
        {"browser-selector": "short", "browser-readability": "a longer browser text"},
        static_html=RuntimeError("403"),
    )

    content = await service.scrape("https://example.com/js")

    assert content.metadata.extraction_method == "browser-readability"


@pytest.mark.asyncio
async def test_each_fetch_mode_runs_once_per_scrape():
    calls: dict[str, int] = {}
    service = _service({"static-selector": "text"}, calls=calls)

    await service.scrape("https://example.com/a")

    assert calls == {"static": 1, "browser": 1}


@pytest.mark.asyncio
async def test_longest_content_wins():
    service = _service(
        {
            "static-selector": "short text",
            "browser-selector": "much longer text from the rendered page",
            "static-readability": "medium sized text",
        }
    )

    content = await service.scrape("https://example.com/b")

    assert content.metadata.extraction_method == "browser-selector"


def test_select_best_tie_goes_to_earlier_strategy():
    outcomes = [
        StrategyOutcome.empty("static-selector"),
        StrategyOutcome.ok("browser-selector", "abcd", HTML),
        StrategyOutcome.ok("static-readability", "wxyz", HTML),
        StrategyOutcome.failed("browser-readability", "boom"),
    ]
    assert select_best(outcomes).method == "browser-selector"
    assert select_best([StrategyOutcome.failed("x", "y")]) is None


@pytest.mark.asyncio
async def test_cleaned_text_is_truncated_and_relevance_bounded():
    long_text = "bitcoin " * 5000
    service = _service({"static-selector": long_text})

    content = await service.scrape("https://example.com/long")

    assert len(content.cleaned_text) <= 8000
    assert content.raw_text == long_text
    assert content.metadata.word_count == len(content.cleaned_text.split())
    assert 0.3 <= content.metadata.relevance_score <= 0.9
    assert content.metadata.relevance_score == 0.9


def test_relevance_from_word_count_is_clamped():
    assert relevance_from_word_count(0) == 0.0
    assert relevance_from_word_count(10) == 0.3
    assert relevance_from_word_count(400) == 0.5
    assert relevance_from_word_count(5000) == 0.9


@pytest.mark.asyncio
async def test_scrape_multiple_drops_failed_urls():
    async def static_fetch(url: str) -> str:
        if "bad" in url:
            raise RuntimeError("connection reset")
        return f"<html><body><h1>{url}</h1></body></html>"

    async def browser_fetch(url: str) -> str:
        raise RuntimeError("no browser")

    def extractor(html: str) -> str:
        return "Ethereum staking news " * 10

    service = ScrapeService(
        fetchers={"static": static_fetch, "browser": browser_fetch},
        strategies=[ScrapeStrategy("static-selector", "static", extractor)],
        max_parallel=2,
    )

    urls = ["https://a.com/1", "https://bad.com/2", "https://c.com/3"]
    contents = await service.scrape_multiple(urls)

    assert [c.url for c in contents] == ["https://a.com/1", "https://c.com/3"]
