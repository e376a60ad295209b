"""Classify a loaded page as usable, blocked, or empty.

Checks run against a snapshot of the rendered DOM in a fixed order and the
first match wins:

1. CAPTCHA / challenge markers
2. known block-message phrases (case-insensitive)
3. structural emptiness: nothing that looks like an article or a link
4. size emptiness: almost no markup or no visible text

The detector only reads the page; it never clicks, scrolls or navigates.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum

from bs4 import BeautifulSoup
from soupsieve import SelectorSyntaxError

logger = logging.getLogger(__name__)

CAPTCHA_SELECTORS = (
    "[class*='captcha']",
    "[id*='captcha']",
    "iframe[src*='captcha']",
    "iframe[src*='recaptcha']",
    "iframe[src*='hcaptcha']",
    "[class*='g-recaptcha']",
    "[class*='h-captcha']",
    ".cf-challenge-form",
    "#challenge-form",
    "form[id*='captcha']",
)

BLOCK_MESSAGES = (
    "access denied",
    "sorry, you have been blocked",
    "403",
    "security check",
    "suspicious activity",
    "too many requests",
    "rate limit",
    "checking your browser",
)

CONTENT_SELECTORS = ("article", ".article", "a[href*='/']")

MIN_HTML_LENGTH = 1000


class BlockReason(str, Enum):
    CAPTCHA = "captcha"
    BLOCK_MESSAGE = "block-message"
    NO_CONTENT = "no-content"
    EMPTY_PAGE = "empty-page"
    NONE = "none"


@dataclass(frozen=True)
class BlockSignal:
    blocked: bool
    reason: BlockReason
    detail: str = ""

    @classmethod
    def clear(cls) -> "BlockSignal":
        return cls(False, BlockReason.NONE)


class BlockDetector:
    """Inspect a page (or raw HTML) for signs that scraping was refused."""

    def __init__(
        self,
        captcha_selectors: tuple[str, ...] = CAPTCHA_SELECTORS,
        block_messages: tuple[str, ...] = BLOCK_MESSAGES,
        content_selectors: tuple[str, ...] = CONTENT_SELECTORS,
        min_html_length: int = MIN_HTML_LENGTH,
    ):
        self.captcha_selectors = captcha_selectors
        self.block_messages = tuple(message.lower() for message in block_messages)
        self.content_selectors = content_selectors
        self.min_html_length = min_html_length

    def inspect(self, page) -> BlockSignal:
        """Classify the page currently loaded in ``page``."""
        try:
            html = page.content()
        except Exception as exc:
            logger.warning("Could not read page for block detection: %s", exc)
            return BlockSignal(True, BlockReason.EMPTY_PAGE, f"unreadable page: {exc}")

        signal = self.classify_html(html)
        if signal.blocked:
            logger.info("Block detected (%s): %s", signal.reason.value, signal.detail)
        return signal

    def classify_html(self, html: str | None) -> BlockSignal:
        soup = BeautifulSoup(html or "", "html.parser")

        for selector in self.captcha_selectors:
            if self._matches(soup, selector):
                return BlockSignal(True, BlockReason.CAPTCHA, selector)

        body = soup.body or soup
        text = body.get_text(" ", strip=True)
        lowered = text.lower()
        for message in self.block_messages:
            if message in lowered:
                return BlockSignal(True, BlockReason.BLOCK_MESSAGE, message)

        if not any(self._matches(soup, selector) for selector in self.content_selectors):
            return BlockSignal(True, BlockReason.NO_CONTENT, "no article or link elements")

        inner_length = len(body.decode_contents()) if soup.body else len(html or "")
        if not text or inner_length < self.min_html_length:
            return BlockSignal(
                True,
                BlockReason.EMPTY_PAGE,
                f"body markup {inner_length} chars",
            )

        return BlockSignal.clear()

    @staticmethod
    def _matches(soup: BeautifulSoup, selector: str) -> bool:
        try:
            return soup.select_one(selector) is not None
        except SelectorSyntaxError:
            logger.debug("Invalid block-detection selector: %s", selector)
            return False
