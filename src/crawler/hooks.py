"""Per-source post-processing hooks for the extraction engine.

Most sources need nothing beyond their selector maps. A source that needs
bespoke cleanup attaches one of these to its adapter instead of getting its
own extractor.
"""

from __future__ import annotations

import logging
import re
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .adapters import SourceAdapter
    from .extraction import RawCandidate

logger = logging.getLogger(__name__)


class ExtractionHook:
    """No-op hook; subclasses override what they need."""

    def post_process_candidates(
        self, candidates: list["RawCandidate"], adapter: "SourceAdapter"
    ) -> list["RawCandidate"]:
        return candidates

    def post_process_detail(self, body: str, adapter: "SourceAdapter") -> str:
        return body


class TrailingSectionTrimHook(ExtractionHook):
    """Cut a detail body at the first block that opens a boilerplate section.

    Publishers append disclaimers and promo blurbs after the article text;
    the block that starts with one of ``markers`` and everything after it
    is dropped.
    """

    def __init__(self, markers: tuple[str, ...] = ("Disclaimer",)):
        self.markers = tuple(markers)
        pattern = "|".join(re.escape(marker) for marker in self.markers)
        self._pattern = re.compile(rf"^(?:[#>\-\s]*)(?:{pattern})\b", re.IGNORECASE)

    def post_process_detail(self, body: str, adapter: "SourceAdapter") -> str:
        if not body or not self.markers:
            return body

        blocks = body.split("\n\n")
        for index, block in enumerate(blocks):
            if self._pattern.match(block.strip()):
                logger.debug(
                    "[%s] trimmed %d trailing block(s) from detail body",
                    adapter.name,
                    len(blocks) - index,
                )
                return "\n\n".join(blocks[:index]).strip()
        return body


class CandidateUrlFilterHook(ExtractionHook):
    """Drop listing candidates whose link does not look like an article.

    Used for sources whose loose item selectors also match navigation and
    tag links.
    """

    def __init__(self, min_title_length: int = 15):
        self.min_title_length = min_title_length

    def post_process_candidates(
        self, candidates: list["RawCandidate"], adapter: "SourceAdapter"
    ) -> list["RawCandidate"]:
        from src.utils.url_classifier import is_likely_article_url

        from .normalization import resolve_url

        kept = [
            candidate
            for candidate in candidates
            if len(candidate.title.strip()) >= self.min_title_length
            and is_likely_article_url(resolve_url(candidate.url, adapter.base_url))
        ]
        if len(kept) != len(candidates):
            logger.debug(
                "[%s] filtered %d non-article candidate(s)",
                adapter.name,
                len(candidates) - len(kept),
            )
        return kept
