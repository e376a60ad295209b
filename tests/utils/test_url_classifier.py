"""Tests for URL classification utilities."""

import pytest

from src.utils.url_classifier import (
    is_likely_article_url,
    matches_article_path,
)


class TestIsLikelyArticleUrl:
    @pytest.mark.parametrize(
        "url",
        [
            "https://decrypt.co/312345/bitcoin-etf-inflows",
            "https://www.coindesk.com/markets/2024/05/01/bitcoin-slides/",
            "https://cointelegraph.com/news/ethereum-upgrade-date",
            "/news/solana-outage",
        ],
    )
    def test_article_urls(self, url):
        assert is_likely_article_url(url) is True

    @pytest.mark.parametrize(
        "url",
        [
            "https://decrypt.co/",
            "https://cointelegraph.com/tags/bitcoin",
            "https://ambcrypto.com/category/news/",
            "https://beincrypto.com/author/jane-doe/",
            "https://cryptonews.com/news/page/3/",
            "https://www.coindesk.com/price/bitcoin/",
            "https://decrypt.co/privacy-policy",
            "https://watcher.guru/news/feed",
            "https://example.com/chart.png",
            "mailto:tips@example.com",
            "javascript:void(0)",
        ],
    )
    def test_non_article_urls(self, url):
        assert is_likely_article_url(url) is False


class TestMatchesArticlePath:
    def test_substring_pattern(self):
        assert matches_article_path("https://www.theblock.co/post/1/x") is True
        assert matches_article_path("https://www.theblock.co/data/x") is False

    def test_regex_pattern(self):
        patterns = (r"/\d{4}/\d{2}/\d{2}/",)
        assert matches_article_path("https://coindesk.com/policy/2024/05/01/sec", patterns)
        assert not matches_article_path("https://coindesk.com/policy/sec", patterns)

    def test_case_insensitive(self):
        assert matches_article_path("https://x.test/NEWS/abc", ("/news/",)) is True

