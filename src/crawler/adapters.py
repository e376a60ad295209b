"""Declarative per-site configuration and the shipped source roster.

A :class:`SourceAdapter` is pure data: the listing URL plus selector maps
for the listing page and the article page. All sites share one extraction
engine; the rare site needing bespoke cleanup attaches an
:class:`~src.crawler.hooks.ExtractionHook`.

Only ``ListSelectors.title`` and ``ListSelectors.link`` are mandatory. Every
other selector is optional and an empty string means "not available".
"""

from __future__ import annotations

from dataclasses import dataclass, field
from urllib.parse import urlparse

from src.utils.url_classifier import DEFAULT_ARTICLE_PATH_PATTERNS

from .hooks import CandidateUrlFilterHook, ExtractionHook, TrailingSectionTrimHook


@dataclass(frozen=True)
class ListSelectors:
    item: str
    title: str
    link: str
    container: str = ""
    description: str = ""
    category: str = ""
    author: str = ""
    date: str = ""
    image: str = ""
    video_indicator: str = ""
    video_duration: str = ""
    reading_time: str = ""
    content_type: str = ""


@dataclass(frozen=True)
class DetailSelectors:
    content: str
    title: str = ""
    subtitle: str = ""
    author: str = ""
    date: str = ""
    tags: str = ""
    category: str = ""
    image: str = ""
    paragraphs: str = ""
    headers: str = ""
    lists: str = ""
    blockquotes: str = ""
    noise: tuple[str, ...] = ()


@dataclass(frozen=True)
class SourceAdapter:
    name: str
    url: str
    listing: ListSelectors
    detail: DetailSelectors
    feed_urls: tuple[str, ...] = ()
    article_path_patterns: tuple[str, ...] = DEFAULT_ARTICLE_PATH_PATTERNS
    search_query: str = "crypto news"
    content_type: str = "Article"
    hook: ExtractionHook = field(default_factory=ExtractionHook, compare=False)

    def __post_init__(self):
        if not self.listing.title.strip():
            raise ValueError(f"Source {self.name!r} requires a title selector")
        if not self.listing.link.strip():
            raise ValueError(f"Source {self.name!r} requires a link selector")
        if not self.listing.item.strip():
            raise ValueError(f"Source {self.name!r} requires an item selector")

    @property
    def base_url(self) -> str:
        parsed = urlparse(self.url)
        return f"{parsed.scheme}://{parsed.netloc}"

    @property
    def host(self) -> str:
        return urlparse(self.url).netloc.lower()


_GENERIC_DETAIL_NOISE = (".tags", ".related", ".newsletter")

SOURCES: dict[str, SourceAdapter] = {
    adapter.name: adapter
    for adapter in (
        SourceAdapter(
            name="cointelegraph",
            url="https://cointelegraph.com/tags/cryptocurrencies",
            listing=ListSelectors(
                container=".posts-listing__list",
                item=".post-card-inline",
                title=".post-card-inline__title",
                link="a.post-card-inline__title-link",
                description=".post-card-inline__text",
                category=".post-card-inline__badge",
                author=".post-card-inline__author",
                date="time",
                image=".lazy-image__img",
            ),
            detail=DetailSelectors(
                content=".post-content",
                title="h1.post__title, h1.post-title",
                subtitle=".post__lead, .post-lead",
                author=".post-meta__author-name, .post-author",
                date=".post-meta__publish-date, .post-date",
                tags=".tags-list__item",
            ),
            feed_urls=("https://cointelegraph.com/rss",),
        ),
        SourceAdapter(
            name="coindesk",
            url="https://www.coindesk.com/latest-crypto-news",
            listing=ListSelectors(
                container="main, .at-content-wrapper, .content-wrapper",
                item="article, .article, .story, .news-item",
                title="h2, h3, .headline, .title, a",
                link="a[href]",
                description=".description, .excerpt, .summary, p",
                category=".category, .tag, [class*='category']",
                author=".author, .byline, [class*='author']",
                date="time, .date, .timestamp",
                image="img",
            ),
            detail=DetailSelectors(
                content="article, .article-content, .article-body, main",
                title="h1, .article-title",
                subtitle=".subtitle, .description, .excerpt",
                author=".author, .byline, [class*='byline']",
                date="time, .date",
                tags=".tags a, a[href*='/tag/']",
                noise=_GENERIC_DETAIL_NOISE,
            ),
            feed_urls=("https://www.coindesk.com/arc/outboundfeeds/rss/",),
            article_path_patterns=(r"/\d{4}/\d{2}/\d{2}/",),
            hook=CandidateUrlFilterHook(),
        ),
        SourceAdapter(
            name="cryptonews",
            url="https://cryptonews.com/news/",
            listing=ListSelectors(
                container=".archive-template-latest-news-list",
                item=".archive-template-latest-news__item",
                title=".archive-template-latest-news__title",
                link="a.archive-template-latest-news__link",
                description=".archive-template-latest-news__text",
                category=".archive-template-latest-news__category",
                date=".archive-template-latest-news__time",
                image=".archive-template-latest-news__bg",
            ),
            detail=DetailSelectors(
                content=".article-single__content",
                title="h1",
                subtitle=".article-single__lead",
                author=".article-single__author-link",
                date=".article-single__date",
            ),
            feed_urls=("https://cryptonews.com/news/feed/",),
        ),
        SourceAdapter(
            name="decrypt",
            url="https://decrypt.co/news/cryptocurrencies",
            listing=ListSelectors(
                container="main, .content-wrapper, .posts-container",
                item="article, .article, .post, .card",
                title="h2, h3, .title, .headline",
                link="a[href]",
                description="p, .description, .excerpt",
                category=".category, .tag, .topic",
                author=".author, .byline",
                date="time, .date, [datetime]",
                image="img",
            ),
            detail=DetailSelectors(
                content=".article-content, .post-content, .entry-content, article",
                title="h1, .article-title, .headline",
                subtitle=".subtitle, .description, .excerpt",
                author=".author, .byline",
                date="time, .date",
                tags=".tags a, .topics a",
                noise=_GENERIC_DETAIL_NOISE,
            ),
            feed_urls=("https://decrypt.co/feed",),
            hook=CandidateUrlFilterHook(),
        ),
        SourceAdapter(
            name="theblock",
            url="https://www.theblock.co/latest",
            listing=ListSelectors(
                container="main, .content-wrapper, .articles-wrapper",
                item="article, .article, .post",
                title="h2, h3, .title, .headline",
                link="a[href]",
                description="p, .description, .excerpt, .summary",
                category=".category, .tag, .topic",
                author=".author, .byline",
                date="time, .date, .timestamp",
                image="img",
            ),
            detail=DetailSelectors(
                content=".article-content, .post-content, .entry-content, article",
                title="h1, .article-title, .post-title",
                subtitle=".subtitle, .description",
                author=".author, .byline",
                date="time, .date, .timestamp",
                tags=".tags a, .topics a",
                noise=_GENERIC_DETAIL_NOISE,
            ),
            feed_urls=("https://www.theblock.co/rss.xml",),
            article_path_patterns=("/post/", "/news/", "/article/"),
        ),
        SourceAdapter(
            name="ambcrypto",
            url="https://ambcrypto.com/category/new-news/",
            listing=ListSelectors(
                container=".main-content, .content-area, main",
                item="article, .post, .news-item, .card",
                title="h2, h3, .entry-title",
                link="a[href]",
                description=".excerpt, .description, p",
                category=".category, [class*='category']",
                author=".author, .byline",
                date="time, .date, [datetime]",
                image="img",
            ),
            detail=DetailSelectors(
                content=".entry-content, .article-content, .post-content, article",
                title="h1, .entry-title, .article-title",
                subtitle=".subtitle, [class*='subtitle']",
                author=".author, .byline",
                date="time, .date, [datetime]",
                tags=".tags a, .topics a, .categories a",
                noise=_GENERIC_DETAIL_NOISE,
            ),
            feed_urls=("https://ambcrypto.com/feed/",),
            hook=CandidateUrlFilterHook(),
        ),
        SourceAdapter(
            name="bitcoinmagazine",
            url="https://bitcoinmagazine.com/articles",
            listing=ListSelectors(
                container="#tdi_52.td_block_inner.td-mc1-wrap",
                item=".td_module_flex.td_module_flex_1.td_module_wrap",
                title=".entry-title.td-module-title a",
                link=".entry-title.td-module-title a[href]",
                description=".td-excerpt",
                category=".td-post-category",
                author=".td-post-author-name a",
                date=".td-post-date time",
                image=".td-module-thumb .entry-thumb",
                video_indicator=".td-video-play-ico",
                video_duration=".td-post-vid-time",
            ),
            detail=DetailSelectors(
                content=".tdb_single_content .tdb-block-inner",
                title="h1.tdb-title-text",
                subtitle=".tdb_single_subtitle p",
                author=".tdb-author-name",
                date=".tdb_single_date time",
                category=".tdb-category .tdb-entry-category",
                tags=".tdb_single_tags .tdb-tags a",
                image=".tdb_single_featured_image img",
                paragraphs=".tdb_single_content p",
                headers=".tdb_single_content h2, .tdb_single_content h3",
                lists=".tdb_single_content ul, .tdb_single_content ol",
                blockquotes=".tdb_single_content blockquote",
                noise=(".tdb-author-box", ".td_block_related_posts"),
            ),
            feed_urls=("https://bitcoinmagazine.com/feed",),
        ),
        SourceAdapter(
            name="bitcoincom",
            url="https://news.bitcoin.com/category/crypto-news/",
            listing=ListSelectors(
                container=".sc-htSjYp, .sc-cYxCiX, .sc-fGGoSf",
                item=".sc-jbVRWv, .sc-eXGYID, .sc-bCgkFR",
                title=".sc-hpRSGa, .sc-BoTHd, h5, h6",
                link=".sc-hnwOTO",
                description=".sc-eZiHJD, p",
                category=".category, .tag",
                author=".author, .byline",
                date=".sc-wrHXg",
                image="img",
            ),
            detail=DetailSelectors(
                content=".article__body",
                title="h1, .article__title",
                subtitle=".subtitle",
                author=".article__author-name",
                date="time.article__date",
                tags=".article__tags a",
            ),
            feed_urls=("https://news.bitcoin.com/feed/",),
        ),
        SourceAdapter(
            name="beincrypto",
            url="https://beincrypto.com/news/",
            listing=ListSelectors(
                container=".flex.flex-col.gap-y-6, .flex.flex-wrap.-mx-3",
                item="[data-el='bic-c-news-big'], .flex.flex-col.gap-y-2.pb-6",
                title="h5 a, h3.font-bold",
                link="h5 a, a.block",
                description=".text-sm.text-gray-500, p.mb-2",
                category="a[href*='/markets/'], a[href*='/analysis/']",
                author="[data-el='bic-author-meta'] a, .text-xs.text-gray-500 a",
                date="time.date, time.ago, time",
                image="img.object-cover, img.w-full",
                reading_time="[data-el='bic-reading-time']",
                content_type="[data-el='bic-article-type'], .tpw",
            ),
            detail=DetailSelectors(
                content=".entry-content-inner",
                title="h1.text-3xl",
                subtitle=".text-xl.text-gray-700",
                author="[data-el='bic-author-meta'] a",
                date="[data-el='bic-author-meta'] time",
                category=".flex.flex-wrap.gap-x-3 a",
                tags=".flex.flex-wrap.gap-x-3 a",
                image=".featured-images img",
                paragraphs=".entry-content-inner p",
                headers=".entry-content-inner h2, .entry-content-inner h3",
                lists=".entry-content-inner ul, .entry-content-inner ol",
                blockquotes=".entry-content-inner blockquote",
                noise=(".disclaimer",),
            ),
            feed_urls=(
                "https://beincrypto.com/feed/",
                "https://beincrypto.com/news/feed/",
                "https://beincrypto.com/rss",
            ),
            hook=TrailingSectionTrimHook(markers=("Disclaimer",)),
        ),
        SourceAdapter(
            name="watcherguru",
            url="https://watcher.guru/news/?c=2",
            listing=ListSelectors(
                container=".cnvs-block-posts .cs-posts-area",
                item="article.post",
                title=".cs-entry__title span",
                link=".cs-overlay-link",
                category=".cs-meta-category ul.post-categories li a",
                author=".cs-entry__author-meta a",
                date=".cs-meta-date",
                image=".cs-overlay-background img",
                reading_time=".cs-meta-reading-time",
            ),
            detail=DetailSelectors(
                content="#primary.cs-content-area, .cs-entry__content-wrap, .entry-content",
                title="h1.cs-entry__title span",
                author=".cs-entry__author-meta a",
                date=".cs-meta-date",
                category=".cs-meta-category a, .post-categories li a",
                tags=".cs-entry__tags a",
                image=".cs-entry__post-media img",
                paragraphs=".entry-content p",
                headers=".entry-content h2, .entry-content h3",
                lists=".entry-content ul, .entry-content ol",
                blockquotes=".entry-content blockquote",
                noise=(".pk-share-buttons-wrap", ".pk-share-buttons-items"),
            ),
            feed_urls=("https://watcher.guru/news/feed",),
        ),
    )
}

ROSTER: tuple[str, ...] = tuple(SOURCES)


def get_adapter(name: str) -> SourceAdapter:
    """Look up a shipped adapter by name (case-insensitive)."""
    try:
        return SOURCES[name.strip().lower()]
    except KeyError:
        known = ", ".join(ROSTER)
        raise KeyError(f"Unknown source {name!r}; expected one of: {known}") from None
