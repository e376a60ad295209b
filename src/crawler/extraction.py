"""Selector-driven extraction of listing candidates and article bodies.

One :class:`ExtractionEngine` serves every source. Page access is limited
to navigating, waiting and taking an HTML snapshot; all querying happens on
that snapshot with BeautifulSoup so the same code runs against live pages
and saved fixtures.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Iterable

from bs4 import BeautifulSoup, Tag
from soupsieve import SelectorSyntaxError

from src import config

from .adapters import SourceAdapter

logger = logging.getLogger(__name__)

_WHITESPACE_RE = re.compile(r"\s+")

BLOCK_TAGS = ("h1", "h2", "h3", "h4", "h5", "h6", "p", "ul", "ol", "blockquote", "pre")

# Stripped from every article body before serialization.
NOISE_SELECTORS = (
    "script",
    "style",
    "noscript",
    "iframe",
    "svg",
    "form",
    "button",
    "[class*='share']",
    "[class*='social']",
    "[class*='advert']",
    "[id*='advert']",
    ".ad",
    ".ads",
    "[class*='newsletter']",
    "[class*='related']",
)


@dataclass
class RawCandidate:
    title: str
    url: str
    description: str | None = None
    category: str | None = None
    author: str | None = None
    published: str | None = None
    image: str | None = None
    is_video: bool = False
    reading_time: str | None = None
    content_type: str | None = None


def element_text(element: Tag | None) -> str:
    if element is None:
        return ""
    return _WHITESPACE_RE.sub(" ", element.get_text(" ", strip=True)).strip()


def safe_select(node, selector: str) -> list[Tag]:
    if not selector:
        return []
    try:
        return node.select(selector)
    except SelectorSyntaxError as exc:
        logger.debug("Invalid selector %r: %s", selector, exc)
        return []


def safe_select_one(node, selector: str) -> Tag | None:
    matches = safe_select(node, selector)
    return matches[0] if matches else None


def _outermost(elements: Iterable[Tag]) -> list[Tag]:
    """Drop elements nested inside another element of the same selection."""
    chosen: list[Tag] = []
    chosen_ids: set[int] = set()
    for element in elements:
        if any(id(parent) in chosen_ids for parent in element.parents):
            continue
        if id(element) in chosen_ids:
            continue
        chosen.append(element)
        chosen_ids.add(id(element))
    return chosen


def _strip_noise(soup: BeautifulSoup, content: Tag, selectors: Iterable[str]) -> None:
    """Remove noise anywhere on the page, keeping ``content`` and its ancestors."""
    protected = {id(content)} | {id(parent) for parent in content.parents}
    for selector in selectors:
        matches = [node for node in safe_select(soup, selector) if id(node) not in protected]
        for node in _outermost(matches):
            node.decompose()


def html_to_text(html: str | None) -> str:
    """Serialize an HTML fragment the way article bodies are serialized."""
    soup = BeautifulSoup(html or "", "html.parser")
    blocks = [
        ExtractionEngine._render_block(element)
        for element in _outermost(soup.find_all(BLOCK_TAGS))
    ]
    blocks = [block for block in blocks if block]
    if not blocks:
        return element_text(soup)
    return "\n\n".join(blocks)


class ExtractionEngine:
    """Extract listing candidates and article bodies for any source."""

    def __init__(
        self,
        selector_timeout: float | None = None,
        detail_timeout: float | None = None,
        max_candidates: int | None = None,
    ):
        self.selector_timeout = selector_timeout or config.SELECTOR_TIMEOUT_SECONDS
        self.detail_timeout = detail_timeout or config.DETAIL_TIMEOUT_SECONDS
        self.max_candidates = max_candidates or config.MAX_CANDIDATES

    # Listing pages

    def extract_list(self, page, adapter: SourceAdapter) -> list[RawCandidate]:
        """Return up to ``max_candidates`` valid candidates from the loaded page."""
        container = adapter.listing.container
        if container and not page.wait_for_selector(container, self.selector_timeout):
            logger.warning(
                "[%s] container %r did not appear; scanning whole page",
                adapter.name,
                container,
            )

        candidates = self.parse_listing(page.content(), adapter)
        candidates = adapter.hook.post_process_candidates(candidates, adapter)
        if len(candidates) > self.max_candidates:
            logger.debug(
                "[%s] capping %d candidates at %d",
                adapter.name,
                len(candidates),
                self.max_candidates,
            )
        return candidates[: self.max_candidates]

    def parse_listing(self, html: str, adapter: SourceAdapter) -> list[RawCandidate]:
        """Parse every item on a listing page, dropping ones without title or URL."""
        listing = adapter.listing
        soup = BeautifulSoup(html or "", "html.parser")

        containers = safe_select(soup, listing.container) or [soup]
        items: list[Tag] = []
        seen: set[int] = set()
        for container in containers:
            for item in safe_select(container, listing.item):
                if id(item) not in seen:
                    seen.add(id(item))
                    items.append(item)

        candidates = []
        skipped = 0
        for item in items:
            candidate = self._parse_item(item, adapter)
            if candidate is None:
                skipped += 1
                continue
            candidates.append(candidate)

        logger.debug(
            "[%s] %d listing items, %d candidates, %d skipped",
            adapter.name,
            len(items),
            len(candidates),
            skipped,
        )
        return candidates

    def _parse_item(self, item: Tag, adapter: SourceAdapter) -> RawCandidate | None:
        listing = adapter.listing

        title = element_text(safe_select_one(item, listing.title))
        url = self._link_href(item, listing.link)
        if not title or not url:
            return None

        date_el = safe_select_one(item, listing.date)
        published = None
        if date_el is not None:
            published = date_el.get("datetime") or element_text(date_el) or None

        image_el = safe_select_one(item, listing.image)
        image = None
        if image_el is not None:
            image = image_el.get("src") or image_el.get("data-src") or None

        return RawCandidate(
            title=title,
            url=url,
            description=element_text(safe_select_one(item, listing.description)) or None,
            category=element_text(safe_select_one(item, listing.category)) or None,
            author=element_text(safe_select_one(item, listing.author)) or None,
            published=published,
            image=image,
            is_video=safe_select_one(item, listing.video_indicator) is not None,
            reading_time=element_text(safe_select_one(item, listing.reading_time)) or None,
            content_type=element_text(safe_select_one(item, listing.content_type)) or None,
        )

    @staticmethod
    def _link_href(item: Tag, selector: str) -> str:
        link = safe_select_one(item, selector)
        if link is None and item.name == "a":
            link = item
        if link is None:
            return ""
        href = link.get("href")
        if not href and link.name != "a":
            inner = link.find("a", href=True)
            href = inner.get("href") if inner is not None else ""
        return (href or "").strip()

    # Article pages

    def extract_detail(self, page, adapter: SourceAdapter, url: str) -> str:
        """Load ``url`` and return its serialized body, or "" if it never renders.

        :class:`~src.crawler.NavigationError` propagates so the caller can
        skip the candidate.
        """
        page.goto(url)
        if not page.wait_for_selector(adapter.detail.content, self.detail_timeout):
            logger.warning(
                "[%s] content %r not found on %s",
                adapter.name,
                adapter.detail.content,
                url,
            )
            return ""

        body = self.serialize_article(page.content(), adapter)
        return adapter.hook.post_process_detail(body, adapter)

    def serialize_article(self, html: str, adapter: SourceAdapter) -> str:
        """Render an article page as markdown-like plain text.

        Headings keep their level as ``#`` prefixes, list items become
        ``- `` or ``1. `` lines, blockquotes are prefixed with ``> `` and
        blocks are separated by blank lines.
        """
        detail = adapter.detail
        soup = BeautifulSoup(html or "", "html.parser")
        content = safe_select_one(soup, detail.content)
        if content is None:
            return ""

        title = element_text(safe_select_one(soup, detail.title))
        subtitle = element_text(safe_select_one(soup, detail.subtitle))
        author = element_text(safe_select_one(soup, detail.author))
        date_el = safe_select_one(soup, detail.date)
        date = ""
        if date_el is not None:
            date = element_text(date_el) or date_el.get("datetime", "")
        tags = []
        for tag_el in safe_select(soup, detail.tags):
            text = element_text(tag_el)
            if text and text not in tags:
                tags.append(text)

        _strip_noise(soup, content, NOISE_SELECTORS + tuple(detail.noise))

        blocks: list[str] = []
        seen: set[str] = set()

        def add(block: str) -> None:
            if block and block not in seen:
                seen.add(block)
                blocks.append(block)

        if title:
            add(f"# {title}")
        if subtitle and subtitle != title:
            add(subtitle)
        byline = " | ".join(part for part in (author, date) if part)
        if byline:
            add(f"By {byline}" if author else byline)

        seen.update({title, subtitle})
        header_count = len(blocks)
        for element in self._body_elements(soup, content, detail):
            add(self._render_block(element))

        if len(blocks) == header_count:
            # No block-level markup; keep the raw text.
            add(element_text(content))

        if tags:
            add("Tags: " + ", ".join(tags))
        return "\n\n".join(blocks)

    @staticmethod
    def _body_elements(soup: BeautifulSoup, content: Tag, detail) -> list[Tag]:
        explicit = [
            selector
            for selector in (
                detail.paragraphs,
                detail.headers,
                detail.lists,
                detail.blockquotes,
            )
            if selector
        ]
        if explicit:
            elements = safe_select(soup, ", ".join(explicit))
            if elements:
                return _outermost(elements)
        return _outermost(content.find_all(BLOCK_TAGS))

    @staticmethod
    def _render_block(element: Tag) -> str:
        name = element.name or ""
        if name in ("ul", "ol"):
            lines = []
            for index, item in enumerate(element.find_all("li", recursive=False), 1):
                text = element_text(item)
                if text:
                    lines.append(f"{index}. {text}" if name == "ol" else f"- {text}")
            return "\n".join(lines)

        text = element_text(element)
        if not text:
            return ""
        if len(name) == 2 and name[0] == "h" and name[1].isdigit():
            return f"{'#' * int(name[1])} {text}"
        if name == "li":
            return f"- {text}"
        if name == "blockquote":
            return f"> {text}"
        return text
