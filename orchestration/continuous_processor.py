#!/usr/bin/env python3
"""Continuous crawler that walks the source roster on a fixed interval.

This service runs continuously and, every CHECK_INTERVAL_MINUTES:
1. Crawls each enabled source in roster order on one shared browser
2. Writes per-source JSON files and upserts records into the database
3. Regenerates the aggregate analytics files

The shared browser is recycled every BROWSER_RECYCLE_CYCLES cycles.
SIGINT, SIGTERM and SIGHUP stop the service after the current source.
"""

from __future__ import annotations

import logging
import sys

from src import config
from src.cli.context import LOG_FORMAT
from src.crawler import StartupError
from src.crawler.adapters import ROSTER
from src.crawler.factory import build_processor
from src.crawler.persistence import PersistenceAdapter
from src.crawler.scheduling import Scheduler
from src.crawler.session import SessionManager
from src.models.repository import NewsRepository
from src.reporting.analytics import export_repository_analytics

logging.basicConfig(
    level=getattr(logging, config.LOG_LEVEL.upper(), logging.INFO),
    format=LOG_FORMAT,
)
logger = logging.getLogger(__name__)


def build_scheduler(
    interval_minutes: float | None = None,
    headless: bool | None = None,
) -> Scheduler:
    """Wire sessions, persistence and reporting into a :class:`Scheduler`."""
    sessions = SessionManager(headless=headless)
    repository = NewsRepository()
    persistence = PersistenceAdapter(repository=repository)
    roster = config.resolve_enabled_sources(list(ROSTER))

    reporter = None
    if config.ENABLE_ANALYTICS:
        def reporter():
            export_repository_analytics(repository)

    interval = interval_minutes if interval_minutes is not None else config.CHECK_INTERVAL_MINUTES
    return Scheduler(
        sessions=sessions,
        roster=roster,
        processor_factory=lambda name: build_processor(name, sessions, persistence),
        reporter=reporter,
        interval_seconds=interval * 60,
        repository=repository,
    )


def _log_configuration(scheduler: Scheduler) -> None:
    logger.info("🚀 Starting continuous crawler")
    logger.info("Configuration:")
    logger.info("  - Check interval: %.1f minutes", scheduler.interval_seconds / 60)
    logger.info("  - Browser recycle: every %d cycle(s)", scheduler.recycle_threshold)
    logger.info("  - Headless: %s", "✅" if scheduler.sessions.headless else "❌")
    logger.info("  - Analytics: %s", "✅" if config.ENABLE_ANALYTICS else "❌")
    logger.info("  - Output directory: %s", config.OUTPUT_DIR)
    logger.info("Enabled sources (%d):", len(scheduler.roster))
    for name in scheduler.roster:
        logger.info("  - %s", name)

    if not scheduler.roster:
        logger.warning("⚠️  No sources are enabled! Crawler will be idle.")


def run(interval_minutes: float | None = None, headless: bool | None = None) -> int:
    """Run until a shutdown signal arrives; returns the process exit code."""
    scheduler = build_scheduler(interval_minutes, headless)
    _log_configuration(scheduler)
    scheduler.install_signal_handlers()

    try:
        scheduler.run_forever()
    except StartupError as exc:
        logger.error("💥 %s", exc)
        return 1
    except KeyboardInterrupt:
        logger.info("⏹️  Received interrupt signal, shutting down")
        scheduler.request_shutdown()

    logger.info("👋 Continuous crawler stopped after %d cycle(s)", scheduler.state.total_cycles)
    return 0


def main() -> None:
    sys.exit(run())


if __name__ == "__main__":
    main()
