from __future__ import annotations

import re
from typing import Iterable, Protocol, Sequence

from loguru import logger

from coinscope.models.content import (
    AssetResolution,
    AssetToken,
    CatalogEntry,
    CoverageMap,
    ScrapedContent,
)
from coinscope.models.interfaces import MarketData
from coinscope.services.asset_catalog import AssetCatalogCache, CatalogUnavailableError

# (name, full-name alternatives, ticker alternatives). Multi-word names accept
# space, hyphen or underscore separators.
ASSET_TABLE: tuple[tuple[str, tuple[str, ...], tuple[str, ...]], ...] = (
    ("bitcoin", ("bitcoin",), ("btc",)),
    ("ethereum", ("ethereum",), ("eth",)),
    ("solana", ("solana",), ("sol",)),
    ("cardano", ("cardano",), ("ada",)),
    ("polkadot", ("polkadot",), ("dot",)),
    ("chainlink", ("chainlink",), ("link",)),
    ("dogecoin", ("dogecoin",), ("doge",)),
    ("shiba inu", ("shiba inu",), ("shib",)),
    ("avalanche", ("avalanche",), ("avax",)),
    ("polygon", ("polygon",), ("matic",)),
    ("uniswap", ("uniswap",), ("uni",)),
    ("litecoin", ("litecoin",), ("ltc",)),
    ("binance coin", ("binance coin",), ("bnb",)),
    ("ripple", ("ripple",), ("xrp",)),
    ("stellar", ("stellar",), ("xlm",)),
    ("tron", ("tron",), ("trx",)),
    ("monero", ("monero",), ("xmr",)),
    ("zcash", ("zcash",), ("zec",)),
    ("dash", (), ("dash",)),
    ("algorand", ("algorand",), ("algo",)),
    ("cosmos", ("cosmos",), ("atom",)),
    ("tezos", ("tezos",), ("xtz",)),
    ("near", ("near protocol",), ("near",)),
    ("fantom", ("fantom",), ("ftm",)),
    ("harmony", ("harmony one", "harmony"), ()),
    ("elrond", ("elrond",), ("egld",)),
    ("terra", ("terra",), ("luna",)),
    ("internet computer", ("internet computer",), ("icp",)),
    ("flow", (), ("flow",)),
    ("hedera", ("hedera",), ("hbar",)),
    ("vechain", ("vechain",), ("vet",)),
    ("theta", (), ("theta",)),
    ("filecoin", ("filecoin",), ("fil",)),
    ("decentraland", ("decentraland",), ("mana",)),
    ("sandbox", ("sandbox",), ("sand",)),
    ("axie infinity", ("axie infinity",), ("axs",)),
    ("enjin", ("enjin",), ("enj",)),
    ("chiliz", ("chiliz",), ("chz",)),
    ("basic attention token", ("basic attention token",), ("bat",)),
    ("compound", ("compound",), ("comp",)),
    ("maker", ("maker",), ("mkr",)),
    ("aave", (), ("aave",)),
    ("sushiswap", ("sushiswap",), ("sushi",)),
    ("curve dao", ("curve dao",), ("crv",)),
    ("yearn finance", ("yearn finance",), ("yfi",)),
    ("synthetix", ("synthetix",), ("snx",)),
    ("iq", ("iq token", "everipedia", r"iq.*crypto"), ("iq",)),
    ("pear", ("pear protocol", "pear token", "pearusdt", r"pear.*crypto"), ("pear",)),
)

STOPWORDS = frozenset(
    {
        # domain words
        "analysis", "technical", "fundamental", "price", "prices", "token", "tokens",
        "coin", "coins", "crypto", "cryptocurrency", "cryptocurrencies", "vs", "versus",
        "comparison", "compare", "latest", "news", "market", "markets", "trends", "trend",
        "outlook", "forecast", "prediction", "predictions", "chart", "charts", "trading",
        "signals", "sentiment", "update", "updates", "report", "summary", "overview",
        "performance", "investment", "invest", "buy", "sell", "hold", "bullish", "bearish",
        "blockchain", "defi", "asset", "assets", "digital",
        # calendar
        "today", "week", "month", "year", "daily", "weekly", "monthly",
        "january", "february", "march", "april", "may", "june", "july", "august",
        "september", "october", "november", "december",
        # common english
        "the", "and", "for", "with", "what", "whats", "is", "are", "was", "were", "be",
        "about", "how", "why", "when", "where", "which", "who", "want", "need", "on",
        "of", "to", "in", "at", "by", "from", "me", "tell", "give", "show", "you",
        "my", "your", "it", "its", "this", "that", "these", "those", "will", "would",
        "should", "could", "can", "do", "does", "did", "now", "current", "currently",
        "next", "last", "between", "or", "please", "up", "down", "an", "as", "if",
        "any", "some", "all", "more", "most", "than", "then", "into", "over", "going",
        "happening", "think", "like", "get", "look", "looking", "explain", "provide",
    }
)

TOKEN_RE = re.compile(r"\b[a-zA-Z]{2,20}\b")
MIN_PARTIAL_MATCH_CHARS = 3


def _alternatives(names: Iterable[str]) -> list[str]:
    return [name.replace(" ", r"[\s\-_]?") for name in names]


def _compile_entry(names: tuple[str, ...], symbols: tuple[str, ...]) -> re.Pattern[str]:
    parts = [rf"\b(?:{alt})" for alt in _alternatives(names)]
    parts += [rf"\b{re.escape(symbol)}(?!\w)" for symbol in symbols]
    return re.compile("|".join(parts), re.IGNORECASE)


PATTERN_TABLE: tuple[AssetToken, ...] = tuple(
    AssetToken(name=name, patterns=(_compile_entry(names, symbols),))
    for name, names, symbols in ASSET_TABLE
)


def speculative_token(word: str) -> AssetToken:
    w = re.escape(word.lower())
    return AssetToken(
        name=word.lower(),
        patterns=(re.compile(rf"\b{w}\b|{w}usdt|{w}usd|{w}.*crypto", re.IGNORECASE),),
        speculative=True,
    )


def _words(text: str) -> list[str]:
    return TOKEN_RE.findall(text or "")


def extract_candidate_tokens(text: str) -> list[str]:
    """Alphabetic words of 2 to 20 letters that are not stopwords, deduplicated."""
    tokens: list[str] = []
    seen: set[str] = set()
    for word in _words(text):
        key = word.lower()
        if key in STOPWORDS or key in seen:
            continue
        seen.add(key)
        tokens.append(word)
    return tokens


def _candidate_bigrams(words: Sequence[str]) -> list[int]:
    """Start positions of adjacent word pairs with no stopword in them."""
    return [
        i
        for i in range(len(words) - 1)
        if words[i].lower() not in STOPWORDS and words[i + 1].lower() not in STOPWORDS
    ]


def _exact_match(token: str, catalog: Sequence[CatalogEntry]) -> CatalogEntry | None:
    lowered = token.lower()
    for entry in catalog:
        if entry.symbol.lower() == lowered or entry.name.lower() == lowered:
            return entry
    return None


def _partial_match(token: str, catalog: Sequence[CatalogEntry]) -> CatalogEntry | None:
    lowered = token.lower()
    if len(lowered) < MIN_PARTIAL_MATCH_CHARS:
        return None
    for entry in catalog:
        if lowered in entry.name.lower():
            return entry
    return None


def match_catalog(text: str, catalog: Sequence[CatalogEntry]) -> AssetResolution:
    """Resolve the assets named in ``text`` against the catalog.

    Adjacent word pairs are tried first and only as exact names; a matched
    pair consumes those two word positions. Remaining words resolve by exact
    symbol or name, then by the first catalog name containing the word.
    Assets are returned in order of first mention.
    """
    words = _words(text)
    found: list[tuple[int, CatalogEntry]] = []
    consumed: set[int] = set()

    for i in _candidate_bigrams(words):
        if i in consumed or i + 1 in consumed:
            continue
        phrase = f"{words[i]} {words[i + 1]}".lower()
        entry = next((e for e in catalog if e.name.lower() == phrase), None)
        if entry is not None:
            found.append((i, entry))
            consumed.update({i, i + 1})

    unrecognized: list[str] = []
    seen: set[str] = set()
    for i, word in enumerate(words):
        key = word.lower()
        if i in consumed or key in STOPWORDS or key in seen:
            continue
        seen.add(key)
        entry = _exact_match(word, catalog) or _partial_match(word, catalog)
        if entry is None:
            unrecognized.append(word)
            continue
        found.append((i, entry))

    resolution = AssetResolution(unrecognized=unrecognized)
    added: set[str] = set()
    for _, entry in sorted(found, key=lambda pair: pair[0]):
        if entry.id in added:
            continue
        added.add(entry.id)
        resolution.assets.append(
            AssetToken(name=entry.name, canonical_id=entry.id, symbol=entry.symbol)
        )
    return resolution


class AssetResolver(Protocol):
    name: str

    async def prepare(self) -> None: ...
    def resolve(self, text: str) -> AssetResolution: ...


class PatternAssetResolver:
    """Fixed regex table, with speculative tokens when nothing in the table matches."""

    name = "pattern"

    def __init__(self, table: Sequence[AssetToken] = PATTERN_TABLE):
        self.table = tuple(table)

    async def prepare(self) -> None:
        return None

    def resolve(self, text: str) -> AssetResolution:
        detected = [token for token in self.table if token.matches(text)]
        if detected:
            return AssetResolution(assets=detected)
        return AssetResolution(
            assets=[speculative_token(word) for word in extract_candidate_tokens(text)]
        )


class CatalogAssetResolver:
    """Resolves assets against the market-data catalog held in the shared cache."""

    name = "catalog"

    def __init__(self, cache: AssetCatalogCache):
        self.cache = cache
        self._catalog: list[CatalogEntry] | None = None

    async def prepare(self) -> None:
        self._catalog = await self.cache.get()

    def resolve(self, text: str) -> AssetResolution:
        if self._catalog is None:
            raise CatalogUnavailableError("Catalog resolver used before prepare()")
        return match_catalog(text, self._catalog)


class AutoAssetResolver:
    """Catalog resolution when the catalog loads, the pattern table otherwise."""

    def __init__(self, catalog: CatalogAssetResolver, fallback: PatternAssetResolver):
        self.catalog = catalog
        self.fallback = fallback
        self._active: AssetResolver = fallback

    @property
    def name(self) -> str:
        return self._active.name

    async def prepare(self) -> None:
        try:
            await self.catalog.prepare()
            self._active = self.catalog
        except CatalogUnavailableError as exc:
            logger.warning(f"Asset catalog unavailable, using pattern table: {exc}")
            self._active = self.fallback

    def resolve(self, text: str) -> AssetResolution:
        return self._active.resolve(text)


def build_resolver(
    mode: str,
    *,
    market_data: MarketData | None = None,
    cache: AssetCatalogCache | None = None,
    ttl_seconds: float = 6 * 3600,
) -> AssetResolver:
    mode = (mode or "auto").lower().strip()
    if mode not in {"auto", "pattern", "catalog"}:
        raise ValueError(f"Unsupported ASSET_RESOLVER: {mode}")
    if mode == "pattern":
        return PatternAssetResolver()
    if cache is None and market_data is not None:
        cache = AssetCatalogCache(market_data, ttl_seconds=ttl_seconds)
    if cache is None:
        if mode == "catalog":
            raise CatalogUnavailableError("ASSET_RESOLVER=catalog needs a market data provider")
        return PatternAssetResolver()
    catalog = CatalogAssetResolver(cache)
    if mode == "catalog":
        return catalog
    return AutoAssetResolver(catalog, PatternAssetResolver())


def owning_assets(text: str, assets: Sequence[AssetToken]) -> list[AssetToken]:
    """Assets mentioned in ``text`` in their own right, in ``assets`` order.

    Longer names are tested first and their mentions blanked out, so
    "Ethereum Classic" does not also count as a mention of "Ethereum".
    """
    remaining = text or ""
    owned: set[int] = set()
    by_length = sorted(range(len(assets)), key=lambda i: len(assets[i].name), reverse=True)
    for index in by_length:
        asset = assets[index]
        if asset.matches(remaining):
            owned.add(index)
            remaining = asset.strip_mentions(remaining)
    return [asset for index, asset in enumerate(assets) if index in owned]


def compute_coverage(
    assets: Sequence[AssetToken],
    contents: Sequence[ScrapedContent],
) -> CoverageMap:
    """Documents per asset whose title and cleaned text mention the asset."""
    coverage: CoverageMap = {asset.name: 0 for asset in assets}
    for content in contents:
        for asset in owning_assets(content.searchable_text, assets):
            coverage[asset.name] += 1
    return coverage


def missing_assets(assets: Sequence[AssetToken], coverage: CoverageMap) -> list[AssetToken]:
    return [asset for asset in assets if coverage.get(asset.name, 0) == 0]
