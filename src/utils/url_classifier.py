"""URL classification utilities for telling article links from site chrome.

Used by the emergency fallback (which only has raw anchors to go on) and by
hooks that prune loose listing selectors.
"""

import re
from urllib.parse import urlparse

# Paths that are never a single article on the news sites we crawl.
NON_ARTICLE_PATTERNS = [
    r"^/?$",
    r"/(category|categories|tag|tags|topic|topics)(/|$)",
    r"/(author|authors|people|team)(/|$)",
    r"/page/\d+/?$",
    r"/(price|prices|price-index|markets?/data)(/|$)",
    r"/(about|contact|privacy|terms|careers|advertise)(-[a-z]+)?/?$",
    r"/(login|signin|signup|subscribe|newsletters?)(/|$)",
    r"/(search)(/|$)",
    r"/(feed|rss)(/|\.xml|$)",
    r"\.(jpg|jpeg|png|gif|webp|svg|pdf|xml)$",
]

COMPILED_NON_ARTICLE_PATTERNS = [
    re.compile(pattern, re.IGNORECASE) for pattern in NON_ARTICLE_PATTERNS
]

# Default path fragments that mark an article link.
DEFAULT_ARTICLE_PATH_PATTERNS = ("/post/", "/news/", "/article/")


def is_likely_article_url(url: str) -> bool:
    """Check if a URL is likely to be an article page.

    Returns False for obvious non-article pages like category, tag, author,
    pagination and static pages. Returns True otherwise.

    Examples:
        >>> is_likely_article_url("https://example.com/news/bitcoin-hits-100k")
        True
        >>> is_likely_article_url("https://example.com/tag/bitcoin")
        False
    """
    parsed = urlparse(url)
    if parsed.scheme and parsed.scheme not in ("http", "https"):
        return False

    path = parsed.path.lower()
    for pattern in COMPILED_NON_ARTICLE_PATTERNS:
        if pattern.search(path):
            return False
    return True


def matches_article_path(url: str, patterns=DEFAULT_ARTICLE_PATH_PATTERNS) -> bool:
    """Return True if ``url``'s path contains one of ``patterns``.

    Patterns are plain substrings such as ``"/news/"``. A pattern holding a
    regex metacharacter (``r"/\\d{4}/\\d{2}/"``) is matched as a regex.
    """
    path = urlparse(url).path.lower()
    for pattern in patterns:
        if _is_regex(pattern):
            if re.search(pattern, path, re.IGNORECASE):
                return True
        elif pattern.lower() in path:
            return True
    return False


def _is_regex(pattern: str) -> bool:
    return any(char in pattern for char in "\\^$[]()+*?{}|")

