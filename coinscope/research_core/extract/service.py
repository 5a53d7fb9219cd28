from __future__ import annotations

import re
from typing import Callable

from bs4 import BeautifulSoup

from coinscope.tools.web_utils import parse_date

NOISE_SELECTORS = (
    "script, style, nav, header, footer, aside, noscript, iframe, "
    ".advertisement, .ad, .ads, .sidebar"
)

CONTENT_SELECTORS = (
    "article",
    "main",
    "[role=main]",
    ".article-content",
    ".post-content",
    ".entry-content",
    ".content",
    ".post",
    ".entry",
)

MIN_SELECTOR_CHARS = 200

DATE_SELECTORS = (
    "time[datetime]",
    "[datetime]",
    ".published-date",
    ".publish-date",
    ".date-published",
    ".article-date",
    ".post-date",
    ".entry-date",
    ".publication-date",
    ".timestamp",
    'meta[property="article:published_time"]',
    'meta[name="publishdate"]',
    'meta[name="date"]',
)

DATE_PATTERNS = (
    re.compile(r"Posted:\s*([A-Za-z]+ \d{1,2}, \d{4})", re.IGNORECASE),
    re.compile(r"Published:\s*([A-Za-z]+ \d{1,2}, \d{4})", re.IGNORECASE),
    re.compile(r"Date:\s*(\d{4}-\d{2}-\d{2})", re.IGNORECASE),
    re.compile(r"(\d{4}-\d{2}-\d{2}[ T]\d{2}:\d{2}:\d{2})"),
    re.compile(r"([A-Z][a-z]+ \d{1,2}, \d{4})"),
)

TAG_RULES = (
    ("BTC", re.compile(r"bitcoin")),
    ("ETH", re.compile(r"ethereum")),
    ("BULLISH", re.compile(r"bull|surge|rally")),
    ("BEARISH", re.compile(r"bear|crash|drop")),
)

Extractor = Callable[[str], str]


def _normalize_text(text: str) -> str:
    text = text.replace("\xa0", " ")
    text = re.sub(r"\r\n?", "\n", text)
    text = re.sub(r"[ \t]+", " ", text)
    text = re.sub(r"\n{3,}", "\n\n", text)
    return text.strip()


def extract_selector(raw_html: str) -> str:
    """Main-content text via a CSS selector cascade, after removing page chrome."""
    if not raw_html:
        return ""
    soup = BeautifulSoup(raw_html, "html.parser")
    for node in soup.select(NOISE_SELECTORS):
        node.decompose()

    for selector in CONTENT_SELECTORS:
        node = soup.select_one(selector)
        if node is None:
            continue
        text = _normalize_text(node.get_text("\n"))
        if len(text) >= MIN_SELECTOR_CHARS:
            return text

    body = soup.body or soup
    return _normalize_text(body.get_text("\n"))


def extract_readability(raw_html: str) -> str:
    """Article text as isolated by readability-lxml."""
    if not raw_html:
        return ""
    from readability import Document

    summary_html = Document(raw_html).summary(html_partial=True)
    soup = BeautifulSoup(summary_html, "html.parser")
    return _normalize_text(soup.get_text("\n"))


def extract_title(raw_html: str) -> str:
    if raw_html:
        soup = BeautifulSoup(raw_html, "html.parser")
        for selector in ("h1", "title"):
            node = soup.select_one(selector)
            if node is None:
                continue
            title = " ".join(node.get_text(" ").split())
            if title:
                return title
    return "No Title"


def extract_publish_date(raw_html: str, text: str) -> str | None:
    """First parseable publish date from markup, then from the article text, as ISO 8601."""
    if raw_html:
        soup = BeautifulSoup(raw_html, "html.parser")
        for selector in DATE_SELECTORS:
            node = soup.select_one(selector)
            if node is None:
                continue
            value = node.get("datetime") or node.get("content") or node.get_text(" ").strip()
            if isinstance(value, list):
                value = " ".join(value)
            parsed = parse_date(value)
            if parsed is not None:
                return parsed.isoformat()

    for pattern in DATE_PATTERNS:
        match = pattern.search(text or "")
        if not match:
            continue
        parsed = parse_date(match.group(1))
        if parsed is not None:
            return parsed.isoformat()
    return None


def extract_tags(text: str, title: str) -> tuple[str, ...]:
    haystack = f"{text} {title}".lower()
    return tuple(tag for tag, pattern in TAG_RULES if pattern.search(haystack))
