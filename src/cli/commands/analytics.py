"""Regenerate the aggregate analytics files from the record store."""

from __future__ import annotations

import argparse
import logging

logger = logging.getLogger(__name__)


def add_analytics_parser(subparsers: argparse._SubParsersAction) -> argparse.ArgumentParser:
    parser = subparsers.add_parser(
        "analytics", help="Write source, volume and topic reports as JSON"
    )
    parser.add_argument(
        "--output-dir",
        dest="output_dir",
        default=None,
        help="Directory that receives the analytics/ folder",
    )
    parser.set_defaults(func=handle_analytics_command)
    return parser


def handle_analytics_command(args: argparse.Namespace) -> int:
    from src.models.repository import NewsRepository
    from src.reporting.analytics import export_repository_analytics

    repository = NewsRepository()
    try:
        paths = export_repository_analytics(repository, args.output_dir)
    except Exception as exc:
        logger.error("Failed to generate analytics: %s", exc)
        return 1
    finally:
        repository.close()

    for name, path in paths.items():
        print(f"{name}: {path}")
    return 0
