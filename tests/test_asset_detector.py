from __future__ import annotations

import pytest

from coinscope.agents.asset_detector import (
    AutoAssetResolver,
    CatalogAssetResolver,
    PatternAssetResolver,
    build_resolver,
    compute_coverage,
    extract_candidate_tokens,
    match_catalog,
    missing_assets,
    owning_assets,
    speculative_token,
)
from coinscope.models.content import CatalogEntry, ScrapedContent, ScrapeMetadata
from coinscope.services.asset_catalog import AssetCatalogCache, CatalogUnavailableError

CATALOG = [
    CatalogEntry(id="bitcoin", symbol="btc", name="Bitcoin"),
    CatalogEntry(id="ethereum", symbol="eth", name="Ethereum"),
    CatalogEntry(id="dogecoin", symbol="doge", name="Dogecoin"),
    CatalogEntry(id="shiba-inu", symbol="shib", name="Shiba Inu"),
    CatalogEntry(id="render-token", symbol="render", name="Render"),
    CatalogEntry(id="pepe", symbol="pepe", name="Pepe"),
]


class FakeMarketData:
    def __init__(self, entries=None, error: Exception | None = None):
        self.entries = entries if entries is not None else CATALOG
        self.error = error
        self.calls = 0

    async def list_assets(self):
        self.calls += 1
        if self.error:
            raise self.error
        return list(self.entries)

    async def get_quotes(self, ids):
        return []


def doc(title: str, text: str) -> ScrapedContent:
    return ScrapedContent(
        url=f"https://example.com/{title.lower().replace(' ', '-')}",
        title=title,
        raw_text=text,
        cleaned_text=text,
        metadata=ScrapeMetadata(
            relevance_score=0.5,
            word_count=len(text.split()),
            source_domain="example.com",
            extraction_method="static-selector",
        ),
    )


def test_pattern_resolver_detects_table_assets():
    resolution = PatternAssetResolver().resolve("I want Technical analysis on Shiba Inu and Dogecoin")
    assert [a.name for a in resolution.assets] == ["dogecoin", "shiba inu"]
    assert all(not a.speculative for a in resolution.assets)
    assert resolution.unrecognized == []


def test_pattern_resolver_matches_tickers_as_whole_words():
    names = [a.name for a in PatternAssetResolver().resolve("BTC vs ETH this week").assets]
    assert names == ["bitcoin", "ethereum"]
    assert "ethereum" not in [a.name for a in PatternAssetResolver().resolve("teeth whitening").assets]


def test_pattern_resolver_falls_back_to_speculative_tokens():
    resolution = PatternAssetResolver().resolve("Kaspa technical analysis")
    assert [a.name for a in resolution.assets] == ["kaspa"]
    token = resolution.assets[0]
    assert token.speculative
    assert token.matches("KASPAUSDT breaks out")
    assert token.matches("Kaspa crypto rally")
    assert not token.matches("nothing relevant")


def test_speculative_token_escapes_regex_characters():
    token = speculative_token("abc")
    assert token.matches("abc price")
    assert not token.matches("abcd price")


def test_extract_candidate_tokens_filters_stopwords_and_numbers():
    tokens = extract_candidate_tokens("What is the latest Pepe and Render price analysis for October 2026?")
    assert tokens == ["Pepe", "Render"]


def test_match_catalog_prefers_exact_symbol_or_name():
    resolution = match_catalog("BTC and doge outlook", CATALOG)
    assert [a.canonical_id for a in resolution.assets] == ["bitcoin", "dogecoin"]
    assert resolution.assets[0].symbol == "btc"
    assert resolution.assets[0].name == "Bitcoin"


def test_match_catalog_resolves_two_word_names_first():
    resolution = match_catalog("Shiba Inu technical analysis", CATALOG)
    assert [a.canonical_id for a in resolution.assets] == ["shiba-inu"]
    assert resolution.unrecognized == []


def test_match_catalog_partial_match_and_dedupe():
    resolution = match_catalog("Ethereum ether ethereum", CATALOG)
    assert [a.canonical_id for a in resolution.assets] == ["ethereum"]


def test_match_catalog_reports_unrecognized_tokens():
    resolution = match_catalog("Bitcoin and Zorblax outlook", CATALOG)
    assert [a.canonical_id for a in resolution.assets] == ["bitcoin"]
    assert resolution.unrecognized == ["Zorblax"]


def test_catalog_token_matches_name_or_whole_word_symbol():
    token = match_catalog("doge", CATALOG).assets[0]
    assert token.matches("Dogecoin jumps 10%")
    assert token.matches("DOGE/USDT chart")
    assert not token.matches("nothing here")


@pytest.mark.asyncio
async def test_catalog_resolver_requires_prepare():
    resolver = CatalogAssetResolver(AssetCatalogCache(FakeMarketData()))
    with pytest.raises(CatalogUnavailableError):
        resolver.resolve("bitcoin")
    await resolver.prepare()
    assert resolver.resolve("bitcoin").assets[0].canonical_id == "bitcoin"


@pytest.mark.asyncio
async def test_auto_resolver_degrades_to_patterns_when_catalog_fails():
    resolver = build_resolver("auto", market_data=FakeMarketData(error=RuntimeError("503")))
    assert isinstance(resolver, AutoAssetResolver)

    await resolver.prepare()

    assert resolver.name == "pattern"
    assert [a.name for a in resolver.resolve("bitcoin news").assets] == ["bitcoin"]


@pytest.mark.asyncio
async def test_auto_resolver_uses_catalog_when_available():
    resolver = build_resolver("auto", market_data=FakeMarketData())
    await resolver.prepare()
    assert resolver.name == "catalog"
    assert resolver.resolve("pepe").assets[0].canonical_id == "pepe"


@pytest.mark.asyncio
async def test_catalog_mode_failure_is_fatal():
    resolver = build_resolver("catalog", market_data=FakeMarketData(error=RuntimeError("503")))
    with pytest.raises(CatalogUnavailableError):
        await resolver.prepare()


def test_build_resolver_without_market_data():
    assert isinstance(build_resolver("auto"), PatternAssetResolver)
    assert isinstance(build_resolver("pattern", market_data=FakeMarketData()), PatternAssetResolver)
    with pytest.raises(CatalogUnavailableError):
        build_resolver("catalog")
    with pytest.raises(ValueError):
        build_resolver("magic")


def test_compute_coverage_counts_matching_documents():
    assets = PatternAssetResolver().resolve("bitcoin and solana").assets
    contents = [
        doc("Bitcoin ETF flows", "Inflows continue."),
        doc("Weekly wrap", "BTC held support while SOL lagged."),
        doc("Macro", "Rates and equities."),
    ]

    coverage = compute_coverage(assets, contents)

    assert coverage == {"bitcoin": 2, "solana": 1}
    assert missing_assets(assets, coverage) == []
    assert [a.name for a in missing_assets(assets, {"bitcoin": 2, "solana": 0})] == ["solana"]


ETHEREUM_FAMILY = CATALOG[:2] + [
    CatalogEntry(id="ethereum-classic", symbol="etc", name="Ethereum Classic"),
]


def test_match_catalog_keeps_single_word_name_repeated_inside_pair():
    resolution = match_catalog("Ethereum vs Ethereum Classic", ETHEREUM_FAMILY)

    assert [a.canonical_id for a in resolution.assets] == ["ethereum", "ethereum-classic"]
    assert resolution.unrecognized == []


def test_owning_assets_prefers_longest_name():
    assets = match_catalog("Ethereum vs Ethereum Classic", ETHEREUM_FAMILY).assets
    ethereum, classic = assets

    assert owning_assets("Ethereum Classic hard fork", assets) == [classic]
    assert owning_assets("ETC miners", assets) == [classic]
    assert owning_assets("Ethereum staking", assets) == [ethereum]
    assert owning_assets("Ethereum and Ethereum Classic diverge", assets) == [ethereum, classic]
    assert owning_assets("macro rates", assets) == []


def test_compute_coverage_credits_longer_name_only():
    assets = match_catalog("Ethereum vs Ethereum Classic", ETHEREUM_FAMILY).assets
    contents = [
        doc("Miner note", "Ethereum Classic hashrate recovered."),
        doc("Staking note", "Ethereum staking demand while ETC lagged."),
    ]

    assert compute_coverage(assets, contents) == {"Ethereum": 1, "Ethereum Classic": 2}
