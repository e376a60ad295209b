"""Fallback chain used when a listing page is blocked or yields nothing.

Strategies run in order and the first one that returns records wins:

1. :class:`FeedStrategy` reads the site's RSS/Atom feed over plain HTTP.
2. :class:`DiscoveryStrategy` runs a site-scoped search-engine query.
3. :class:`EmergencyStrategy` scrapes article-looking anchors from whatever
   the listing page did render.

A strategy that raises is logged and skipped; it never aborts the chain.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from urllib.parse import parse_qs, quote_plus, urljoin, urlparse

import feedparser  # type: ignore[import]
import requests
from bs4 import BeautifulSoup

from src import config
from src.utils.url_classifier import matches_article_path

from .adapters import SourceAdapter
from .extraction import (
    RawCandidate,
    element_text,
    html_to_text,
    safe_select,
    safe_select_one,
)
from .normalization import NormalizedRecord, build_record, clean_text, resolve_url, utcnow
from .utils import same_site

try:
    import cloudscraper  # type: ignore[import]
except ImportError:
    cloudscraper = None

logger = logging.getLogger(__name__)

WELL_KNOWN_FEED_PATHS = (
    "/feed/",
    "/rss",
    "/rss.xml",
    "/feed.xml",
    "/news/feed/",
    "/atom.xml",
)

MAX_FALLBACK_RECORDS = 10
MIN_ANCHOR_TEXT_LENGTH = 20


@dataclass
class FallbackContext:
    adapter: SourceAdapter
    page: object | None = None
    listing_html: str = ""


class FallbackStrategy:
    name = "base"

    def fetch(self, context: FallbackContext) -> list[NormalizedRecord]:
        raise NotImplementedError


def looks_like_feed(text: str | None) -> bool:
    """True if ``text`` contains RSS or Atom markup with at least one entry."""
    if not text:
        return False
    lowered = text.lower()
    has_root = "<rss" in lowered or "<feed" in lowered
    has_entry = "<item" in lowered or "<entry" in lowered
    return has_root and has_entry


def parse_feed(
    text: str,
    adapter: SourceAdapter,
    now: datetime | None = None,
    limit: int = MAX_FALLBACK_RECORDS,
) -> list[NormalizedRecord]:
    """Convert feed entries into records for ``adapter``."""
    now = now or utcnow()
    feed = feedparser.parse(text)
    records = []

    for entry in feed.entries:
        title = clean_text(entry.get("title"))
        link = entry.get("link") or ""
        if not title or not link:
            continue

        description = clean_text(entry.get("summary") or entry.get("description"))
        categories = [
            tag.get("term") for tag in entry.get("tags", []) if tag.get("term")
        ]
        encoded = ""
        for content in entry.get("content", []):
            if content.get("value"):
                encoded = content["value"]
                break
        media = entry.get("media_content") or []
        image = media[0].get("url") if media else None

        candidate = RawCandidate(
            title=title,
            url=link,
            description=description or None,
            category=categories[0] if categories else None,
            author=entry.get("author") or None,
            published=entry.get("published") or entry.get("updated"),
            image=image,
        )
        full_content = html_to_text(encoded) if encoded else description
        records.append(build_record(candidate, adapter, full_content, now))
        if len(records) >= limit:
            break

    return records


class FeedStrategy(FallbackStrategy):
    """Probe known and well-known feed URLs over HTTP."""

    name = "feed"

    def __init__(self, http_session=None, timeout: int = 15):
        self.session = http_session or self._create_session()
        self.timeout = timeout

    @staticmethod
    def _create_session():
        if cloudscraper is not None:
            session = cloudscraper.create_scraper()
        else:
            session = requests.Session()
        session.headers.update(
            {
                "User-Agent": (
                    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) "
                    "AppleWebKit/537.36 (KHTML, like Gecko) "
                    "Chrome/120.0.0.0 Safari/537.36"
                ),
                "Accept": (
                    "application/rss+xml, application/atom+xml, "
                    "application/xml;q=0.9, */*;q=0.8"
                ),
            }
        )
        return session

    def candidate_urls(self, adapter: SourceAdapter) -> list[str]:
        urls: list[str] = []
        for url in list(adapter.feed_urls) + [
            urljoin(adapter.base_url, path) for path in WELL_KNOWN_FEED_PATHS
        ]:
            if url not in urls:
                urls.append(url)
        return urls

    def fetch(self, context: FallbackContext) -> list[NormalizedRecord]:
        adapter = context.adapter
        for feed_url in self.candidate_urls(adapter):
            logger.debug("[%s] trying feed %s", adapter.name, feed_url)
            try:
                response = self.session.get(feed_url, timeout=self.timeout)
            except requests.exceptions.Timeout:
                logger.warning(
                    "[%s] feed request timed out after %ds: %s",
                    adapter.name,
                    self.timeout,
                    feed_url,
                )
                continue
            except requests.exceptions.RequestException as e:
                logger.warning("[%s] feed request failed for %s: %s", adapter.name, feed_url, e)
                continue

            status = response.status_code
            if status == 404:
                logger.debug("[%s] feed not found (404): %s", adapter.name, feed_url)
                continue
            if status != 200:
                logger.debug("[%s] feed returned status %s: %s", adapter.name, status, feed_url)
                continue
            if not looks_like_feed(response.text):
                logger.debug("[%s] no feed markup at %s", adapter.name, feed_url)
                continue

            records = parse_feed(response.text, adapter)
            if records:
                logger.info(
                    "[%s] found feed with %d entries: %s",
                    adapter.name,
                    len(records),
                    feed_url,
                )
                return records
        return []


@dataclass(frozen=True)
class SearchEngineProfile:
    name: str
    url_template: str
    result: str
    title: str
    link: str
    snippet: str
    redirect_params: tuple[str, ...] = ()

    def search_url(self, query: str) -> str:
        return self.url_template.format(query=quote_plus(query))


DUCKDUCKGO = SearchEngineProfile(
    name="duckduckgo",
    url_template="https://html.duckduckgo.com/html/?q={query}",
    result=".result",
    title=".result__title",
    link="a.result__a",
    snippet=".result__snippet",
    redirect_params=("uddg",),
)

GOOGLE_NEWS = SearchEngineProfile(
    name="google",
    url_template="https://www.google.com/search?q={query}&tbm=nws",
    result=".g, .SoaBEf",
    title="h3, [role='heading']",
    link="a[href]",
    snippet=".st, .GI74Re",
    redirect_params=("q", "url"),
)

SEARCH_ENGINES = {profile.name: profile for profile in (DUCKDUCKGO, GOOGLE_NEWS)}


class DiscoveryStrategy(FallbackStrategy):
    """Harvest same-site links from a search engine result page."""

    name = "discovery"

    def __init__(self, engine: SearchEngineProfile | None = None):
        self.engine = engine or SEARCH_ENGINES.get(config.SEARCH_ENGINE, DUCKDUCKGO)

    def query_for(self, adapter: SourceAdapter) -> str:
        host = adapter.host
        if host.startswith("www."):
            host = host[4:]
        return f"site:{host} {adapter.search_query}".strip()

    def unwrap(self, href: str) -> str:
        """Resolve engine redirect links to the target URL."""
        engine_url = self.engine.url_template.split("?", 1)[0]
        absolute = urljoin(engine_url, href)
        params = parse_qs(urlparse(absolute).query)
        for name in self.engine.redirect_params:
            values = params.get(name)
            if values and values[0].startswith(("http://", "https://")):
                return values[0]
        return absolute

    def parse_results(
        self, html: str, adapter: SourceAdapter, now: datetime | None = None
    ) -> list[NormalizedRecord]:
        now = now or utcnow()
        soup = BeautifulSoup(html or "", "html.parser")
        records: list[NormalizedRecord] = []
        seen: set[str] = set()

        for result in safe_select(soup, self.engine.result):
            link = safe_select_one(result, self.engine.link)
            if link is None or not link.get("href"):
                continue
            url = self.unwrap(link["href"])
            if url in seen or not same_site(url, adapter.host):
                continue
            title = element_text(safe_select_one(result, self.engine.title)) or element_text(link)
            if not title:
                continue

            seen.add(url)
            snippet = element_text(safe_select_one(result, self.engine.snippet))
            candidate = RawCandidate(title=title, url=url, description=snippet or None)
            records.append(build_record(candidate, adapter, snippet, now))
            if len(records) >= MAX_FALLBACK_RECORDS:
                break
        return records

    def fetch(self, context: FallbackContext) -> list[NormalizedRecord]:
        if context.page is None:
            return []
        adapter = context.adapter
        search_url = self.engine.search_url(self.query_for(adapter))
        logger.info("[%s] searching %s for recent articles", adapter.name, self.engine.name)
        context.page.goto(search_url)
        return self.parse_results(context.page.content(), adapter)


class EmergencyStrategy(FallbackStrategy):
    """Scrape article-looking anchors from the degraded listing page."""

    name = "emergency"

    def __init__(self, min_text_length: int = MIN_ANCHOR_TEXT_LENGTH):
        self.min_text_length = min_text_length

    def parse_anchors(
        self, html: str, adapter: SourceAdapter, now: datetime | None = None
    ) -> list[NormalizedRecord]:
        now = now or utcnow()
        soup = BeautifulSoup(html or "", "html.parser")
        records: list[NormalizedRecord] = []
        seen: set[str] = set()

        for anchor in soup.find_all("a", href=True):
            title = element_text(anchor)
            if len(title) <= self.min_text_length:
                continue
            url = resolve_url(anchor["href"], adapter.base_url)
            if url in seen or not same_site(url, adapter.host):
                continue
            if not matches_article_path(url, adapter.article_path_patterns):
                continue

            seen.add(url)
            block = anchor.find_parent(["div", "article", "section"])
            description = element_text(block) if block is not None else ""
            if description == title:
                description = ""
            candidate = RawCandidate(title=title, url=url, description=description or None)
            records.append(build_record(candidate, adapter, description, now))
            if len(records) >= MAX_FALLBACK_RECORDS:
                break
        return records

    def fetch(self, context: FallbackContext) -> list[NormalizedRecord]:
        if not context.listing_html:
            return []
        return self.parse_anchors(context.listing_html, context.adapter)


class FallbackChain:
    """Try each strategy in order until one produces records."""

    def __init__(self, strategies: list[FallbackStrategy] | None = None):
        if strategies is None:
            strategies = [FeedStrategy(), DiscoveryStrategy(), EmergencyStrategy()]
        self.strategies = strategies
        self.last_strategy: str | None = None

    def resolve(self, adapter: SourceAdapter, page=None) -> list[NormalizedRecord]:
        self.last_strategy = None
        listing_html = ""
        if page is not None:
            # Snapshot before any strategy navigates the page elsewhere.
            try:
                listing_html = page.content()
            except Exception as e:
                logger.debug("[%s] could not snapshot listing page: %s", adapter.name, e)
        context = FallbackContext(adapter, page, listing_html)

        for strategy in self.strategies:
            try:
                records = strategy.fetch(context)
            except Exception as e:
                logger.warning("[%s] %s fallback failed: %s", adapter.name, strategy.name, e)
                continue

            if records:
                self.last_strategy = strategy.name
                logger.info(
                    "[%s] %s fallback produced %d record(s)",
                    adapter.name,
                    strategy.name,
                    len(records),
                )
                return records
            logger.info("[%s] %s fallback found nothing", adapter.name, strategy.name)

        logger.warning("[%s] all fallback strategies exhausted", adapter.name)
        return []
