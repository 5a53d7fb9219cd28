from __future__ import annotations

from datetime import datetime, timezone

from coinscope.tools import web_utils


def test_normalize_url_drops_tracking_fragment_and_trailing_slash():
    a = web_utils.normalize_url("HTTPS://News.Example.com/btc/?utm_source=x&b=2&a=1#top")
    b = web_utils.normalize_url("https://news.example.com/btc?a=1&b=2")
    assert a == b == "https://news.example.com/btc?a=1&b=2"


def test_normalize_url_keeps_distinct_paths_apart():
    assert web_utils.normalize_url("https://a.com/x") != web_utils.normalize_url("https://a.com/y")


def test_clean_content_collapses_whitespace_and_caps_length():
    text = "word \n\n  " * 5000
    cleaned = web_utils.clean_content(text, 8000)
    assert len(cleaned) == 8000
    assert "  " not in cleaned
    assert not cleaned.endswith("...")


def test_extract_domain_returns_hostname():
    assert web_utils.extract_domain("https://www.coindesk.com/markets/2024") == "www.coindesk.com"


def test_is_valid_url():
    assert web_utils.is_valid_url("https://example.com/a")
    assert not web_utils.is_valid_url("ftp://example.com/a")
    assert not web_utils.is_valid_url("not a url")


def test_parse_date_handles_common_formats():
    assert web_utils.parse_date("2024-05-01T10:00:00Z") == datetime(2024, 5, 1, 10, tzinfo=timezone.utc)
    assert web_utils.parse_date("2024-05-01") == datetime(2024, 5, 1, tzinfo=timezone.utc)
    assert web_utils.parse_date("March 3, 2024") == datetime(2024, 3, 3, tzinfo=timezone.utc)
    assert web_utils.parse_date("Tue, 07 May 2024 08:00:00 GMT") == datetime(
        2024, 5, 7, 8, tzinfo=timezone.utc
    )


def test_parse_date_returns_none_for_garbage():
    assert web_utils.parse_date(None) is None
    assert web_utils.parse_date("") is None
    assert web_utils.parse_date("Unknown Date") is None
