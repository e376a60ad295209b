"""Build source processors and run one source, or the whole roster, on demand."""

from __future__ import annotations

import logging

from src import config

from .adapters import ROSTER, get_adapter
from .fallback import FallbackChain
from .normalization import NormalizedRecord
from .persistence import PersistenceAdapter
from .session import BrowserProcess, BrowserSession, SessionManager
from .source_processing import SourceProcessor

logger = logging.getLogger(__name__)

ALL_SOURCES = "all"


def resolve_source_names(source: str = ALL_SOURCES) -> list[str]:
    """Expand ``"all"`` into the enabled roster; validate a single name."""
    if source.strip().lower() == ALL_SOURCES:
        return config.resolve_enabled_sources(list(ROSTER))
    return [get_adapter(source).name]


def build_processor(
    name: str,
    sessions: SessionManager,
    persistence: PersistenceAdapter | None = None,
) -> SourceProcessor:
    return SourceProcessor(
        adapter=get_adapter(name),
        sessions=sessions,
        fallback=FallbackChain(),
        persistence=persistence,
    )


def run_sources(
    source: str = ALL_SOURCES,
    session: BrowserSession | BrowserProcess | None = None,
    headless: bool | None = None,
    persistence: PersistenceAdapter | None = None,
    sessions: SessionManager | None = None,
) -> list[NormalizedRecord]:
    """Crawl ``source`` (or every enabled source) and return its records.

    ``session`` lets a caller lend an already-running browser; it is never
    closed here. Without one, a browser is started for the call and shared
    by all requested sources.
    """
    names = resolve_source_names(source)
    sessions = sessions or SessionManager(headless=headless)

    shared = session
    owns_shared = False
    if shared is None and len(names) > 1:
        shared = sessions.launch_process()
        owns_shared = True

    records: list[NormalizedRecord] = []
    try:
        for name in names:
            processor = build_processor(name, sessions, persistence)
            try:
                result = processor.process(shared)
            except Exception as exc:
                logger.error("Source %s failed: %s", name, exc)
                continue
            records.extend(result.records)
    finally:
        if owns_shared:
            sessions.close_process(shared)

    return records
