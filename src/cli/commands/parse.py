"""Crawl one source, or every enabled source, once and print the records."""

from __future__ import annotations

import argparse
import json
import logging

logger = logging.getLogger(__name__)


def add_parse_parser(subparsers: argparse._SubParsersAction) -> argparse.ArgumentParser:
    parser = subparsers.add_parser(
        "parse", help="Crawl a source once and print its records as JSON"
    )
    parser.add_argument(
        "source",
        type=str,
        nargs="?",
        default="all",
        help="Source name (e.g. coindesk) or 'all' for every enabled source",
    )
    parser.add_argument(
        "--headful",
        dest="headless",
        action="store_false",
        default=None,
        help="Show the browser window instead of running headless",
    )
    parser.add_argument(
        "--no-save",
        dest="save",
        action="store_false",
        default=True,
        help="Print records without writing output files or the database",
    )
    parser.set_defaults(func=handle_parse_command)
    return parser


def handle_parse_command(args: argparse.Namespace) -> int:
    from src.crawler.factory import resolve_source_names, run_sources
    from src.crawler.normalization import sanitize
    from src.crawler.persistence import PersistenceAdapter

    try:
        resolve_source_names(args.source)
    except KeyError as exc:
        logger.error("%s", exc.args[0] if exc.args else exc)
        return 1

    persistence = None
    repository = None
    if getattr(args, "save", True):
        from src.models.repository import NewsRepository

        repository = NewsRepository()
        persistence = PersistenceAdapter(repository=repository)

    try:
        records = run_sources(
            args.source,
            headless=args.headless,
            persistence=persistence,
        )
    finally:
        if repository is not None:
            repository.close()

    print(json.dumps([sanitize(record) for record in records], indent=2, ensure_ascii=False))
    logger.info("Parsed %d record(s)", len(records))
    return 0
