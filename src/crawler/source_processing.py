"""Per-source crawl: listing, block check, fallback, details, persistence."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable

from src import config

from . import NavigationError
from .adapters import SourceAdapter
from .block_detection import BlockDetector, BlockSignal
from .extraction import ExtractionEngine, RawCandidate
from .fallback import FallbackChain
from .normalization import NormalizedRecord, build_record, resolve_url, utcnow
from .pacing import HumanPacing
from .persistence import PersistenceAdapter
from .session import BrowserPage, SessionManager
from .utils import SourceLoggerAdapter

logger = logging.getLogger(__name__)


@dataclass
class SourceResult:
    """Outcome of processing one source for one cycle."""

    source: str
    records: list[NormalizedRecord] = field(default_factory=list)
    candidates_found: int = 0
    candidates_skipped: int = 0
    navigation_failed: bool = False
    block_signal: BlockSignal | None = None
    fallback_strategy: str | None = None
    used_fallback: bool = False
    elapsed_seconds: float = 0.0


@dataclass
class SourceProcessor:
    """Coordinated crawl of a single source on a (possibly shared) browser."""

    adapter: SourceAdapter
    sessions: SessionManager
    engine: ExtractionEngine = field(default_factory=ExtractionEngine)
    detector: BlockDetector = field(default_factory=BlockDetector)
    fallback: FallbackChain = field(default_factory=FallbackChain)
    pacing: HumanPacing = field(default_factory=HumanPacing)
    persistence: PersistenceAdapter | None = None
    detail_delay_ms: tuple[int, int] = (
        config.DETAIL_DELAY_MIN_MS,
        config.DETAIL_DELAY_MAX_MS,
    )
    clock: Callable[[], datetime] = utcnow

    log: SourceLoggerAdapter = field(init=False)

    def __post_init__(self):
        self.log = SourceLoggerAdapter(logger, self.adapter.name)

    def process(self, shared=None) -> SourceResult:
        """Crawl the source; ``shared`` is a browser process or session to borrow."""
        start_time = time.time()
        result = SourceResult(source=self.adapter.name)
        self.log.info("Processing source (%s)", self.adapter.url)

        with self.sessions.session(shared) as session:
            page = session.page
            candidates = self._load_listing(page, result)
            result.candidates_found = len(candidates)

            if candidates:
                result.records = self._process_candidates(page, candidates, result)
            else:
                result.used_fallback = True
                result.records = self.fallback.resolve(self.adapter, page)
                result.fallback_strategy = self.fallback.last_strategy

        if result.records and self.persistence is not None:
            self.persistence.persist(self.adapter.name, result.records)

        result.elapsed_seconds = time.time() - start_time
        self.log.info(
            "Finished with %d record(s) in %.1fs%s",
            len(result.records),
            result.elapsed_seconds,
            f" via {result.fallback_strategy} fallback" if result.fallback_strategy else "",
        )
        return result

    # ------------------------------------------------------------------
    # Listing
    # ------------------------------------------------------------------
    def _load_listing(self, page: BrowserPage, result: SourceResult) -> list[RawCandidate]:
        try:
            page.goto(self.adapter.url)
        except NavigationError as exc:
            result.navigation_failed = True
            self.log.warning("Listing navigation failed: %s", exc)
            return []

        self.pacing.simulate(page)

        signal = self.detector.inspect(page)
        result.block_signal = signal
        if signal.blocked:
            self.log.warning(
                "Listing blocked (%s: %s); switching to fallbacks",
                signal.reason.value,
                signal.detail,
            )
            return []

        candidates = self.engine.extract_list(page, self.adapter)
        if not candidates:
            self.log.warning("No candidates on listing page; switching to fallbacks")
        else:
            self.log.info("Found %d candidate(s)", len(candidates))
        return candidates

    # ------------------------------------------------------------------
    # Detail pages
    # ------------------------------------------------------------------
    def _process_candidates(
        self,
        page: BrowserPage,
        candidates: list[RawCandidate],
        result: SourceResult,
    ) -> list[NormalizedRecord]:
        records: list[NormalizedRecord] = []
        total = len(candidates)

        for index, candidate in enumerate(candidates, 1):
            url = resolve_url(candidate.url, self.adapter.base_url)
            try:
                body = self.engine.extract_detail(page, self.adapter, url)
            except NavigationError as exc:
                result.candidates_skipped += 1
                self.log.warning("Skipping %s: %s", url, exc)
                body = None
            except Exception as exc:
                result.candidates_skipped += 1
                self.log.warning("Detail extraction failed for %s: %s", url, exc)
                body = None

            if body is not None:
                records.append(build_record(candidate, self.adapter, body, self.clock()))
                self.log.debug("Processed %d/%d: %s", index, total, candidate.title)

            if index < total:
                self.pacing.delay(*self.detail_delay_ms)

        return records
