from __future__ import annotations

import pytest

from src.crawler.block_detection import BlockDetector, BlockReason
from tests.conftest import FakePage


def _listing(extra: str = "") -> str:
    cards = "".join(
        f'<article class="card"><a href="/news/story-{i}">Story number {i} about bitcoin markets</a>'
        f"<p>Short summary of story {i} with enough words to look real.</p></article>"
        for i in range(12)
    )
    return f"<html><body>{extra}{cards}</body></html>"


@pytest.fixture
def detector():
    return BlockDetector()


def test_normal_listing_is_not_blocked(detector):
    signal = detector.classify_html(_listing())

    assert signal.blocked is False
    assert signal.reason is BlockReason.NONE


def test_captcha_wins_over_other_signals(detector):
    html = _listing('<div class="g-recaptcha"></div><p>Access denied</p>')

    signal = detector.classify_html(html)

    assert signal.blocked is True
    assert signal.reason is BlockReason.CAPTCHA


@pytest.mark.parametrize(
    "message",
    ["Access Denied", "Sorry, you have been blocked", "Checking your browser before accessing"],
)
def test_block_messages_are_case_insensitive(detector, message):
    signal = detector.classify_html(_listing(f"<h1>{message}</h1>"))

    assert signal.blocked is True
    assert signal.reason is BlockReason.BLOCK_MESSAGE


def test_page_without_articles_or_links(detector):
    html = "<html><body>" + "<p>Loading</p>" * 200 + "</body></html>"

    signal = detector.classify_html(html)

    assert signal.reason is BlockReason.NO_CONTENT


def test_tiny_body_is_empty(detector):
    html = '<html><body><a href="/news/a">one</a></body></html>'

    signal = detector.classify_html(html)

    assert signal.blocked is True
    assert signal.reason is BlockReason.EMPTY_PAGE


def test_blank_document_is_blocked(detector):
    assert detector.classify_html("").blocked is True


def test_inspect_reads_page_content(detector):
    page = FakePage(default=_listing())
    assert detector.inspect(page).blocked is False


def test_inspect_unreadable_page_is_blocked(detector):
    class BrokenPage:
        def content(self):
            raise RuntimeError("target closed")

    signal = detector.inspect(BrokenPage())

    assert signal.blocked is True
    assert signal.reason is BlockReason.EMPTY_PAGE
