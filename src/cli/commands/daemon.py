"""Run the scheduler in the foreground until signalled."""

from __future__ import annotations

import argparse


def add_daemon_parser(subparsers: argparse._SubParsersAction) -> argparse.ArgumentParser:
    parser = subparsers.add_parser(
        "daemon", help="Crawl every enabled source on a fixed interval"
    )
    parser.add_argument(
        "--interval",
        type=float,
        default=None,
        help="Minutes between cycles (default: CHECK_INTERVAL_MINUTES)",
    )
    parser.add_argument(
        "--headful",
        dest="headless",
        action="store_false",
        default=None,
        help="Show the browser window instead of running headless",
    )
    parser.set_defaults(func=handle_daemon_command)
    return parser


def handle_daemon_command(args: argparse.Namespace) -> int:
    from orchestration.continuous_processor import run

    return run(interval_minutes=args.interval, headless=args.headless)
