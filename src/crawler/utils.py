"""Logging and host helpers shared by the crawler modules."""

from __future__ import annotations

import logging
from urllib.parse import urlparse


class SourceLoggerAdapter(logging.LoggerAdapter):
    """Prefix every message with ``[<source>]`` so interleaved logs stay readable.

    Examples:
        >>> log = SourceLoggerAdapter(logging.getLogger("crawler"), "decrypt")
        >>> log.process("found 3 items", {})
        ('[decrypt] found 3 items', {'extra': {'source': 'decrypt'}})
    """

    def __init__(self, logger: logging.Logger, source: str):
        super().__init__(logger, {"source": source})

    def process(self, msg, kwargs):
        kwargs.setdefault("extra", {}).update(self.extra)
        return f"[{self.extra['source']}] {msg}", kwargs


def normalize_host(url_or_host: str | None) -> str:
    """Lower-cased host without a leading ``www.``.

    Accepts either a full URL or a bare host name.
    """
    if not url_or_host:
        return ""
    value = url_or_host.strip().lower()
    host = urlparse(value).netloc if "://" in value else value.split("/", 1)[0]
    host = host.split("@")[-1].split(":")[0]
    return host[4:] if host.startswith("www.") else host


def same_site(url: str, host: str) -> bool:
    """True if ``url`` is on ``host`` or one of its subdomains."""
    url_host = normalize_host(url)
    site = normalize_host(host)
    if not url_host or not site:
        return False
    return url_host == site or url_host.endswith("." + site)
