"""Streamlined CLI interface with modular command structure."""

from __future__ import annotations

import argparse
import logging
import sys
from collections.abc import Callable

# Command modules are lazy-loaded so ``news-crawler --help`` never has to
# import selenium, pandas or SQLAlchemy. See _load_command_parser().

logger = logging.getLogger(__name__)


CommandHandler = Callable[[argparse.Namespace], int]

COMMAND_MODULES: dict[str, str] = {
    "parse": "parse",
    "daemon": "daemon",
    "analytics": "analytics",
}

COMMAND_HANDLER_ATTRS: dict[str, str] = {
    "parse": "handle_parse_command",
    "daemon": "handle_daemon_command",
    "analytics": "handle_analytics_command",
}


def create_parser() -> argparse.ArgumentParser:
    """Create minimal parser - commands loaded on-demand in main()."""
    parser = argparse.ArgumentParser(
        prog="news-crawler",
        description="Crypto news crawler - scheduled multi-source scraping",
        add_help=False,  # handled per command
    )

    parser.add_argument(
        "--log-level",
        default=None,
        help="Logging level (e.g. INFO, DEBUG); defaults to LOG_LEVEL",
    )

    parser.add_argument(
        "command",
        nargs="?",
        help="Command to run (use 'COMMAND --help' for command-specific help)",
    )

    return parser


def _load_command_parser(command: str) -> tuple[Callable, Callable] | None:
    """Load parser and handler for a specific command on-demand.

    Returns: (add_parser_func, handle_command_func) or None if not found
    """
    module_name = COMMAND_MODULES.get(command)
    if not module_name:
        return None

    try:
        module = __import__(
            f"src.cli.commands.{module_name}",
            fromlist=["*"],
        )
    except (ImportError, ModuleNotFoundError) as e:
        logger.warning("Failed to load command '%s': %s", command, e)
        return None

    parser_func = getattr(module, f"add_{command.replace('-', '_')}_parser", None)
    handler_func = getattr(module, COMMAND_HANDLER_ATTRS[command], None)

    if parser_func and handler_func:
        return (parser_func, handler_func)
    return None


def _print_usage() -> None:
    print("Available commands:", file=sys.stderr)
    print("  parse [SOURCE]  - Crawl one source (or 'all') once", file=sys.stderr)
    print("  daemon          - Crawl every enabled source on an interval", file=sys.stderr)
    print("  analytics       - Regenerate analytics JSON from the database", file=sys.stderr)
    print("Use: news-crawler COMMAND --help for more info", file=sys.stderr)


def main(
    argv: list[str] | None = None,
    *,
    setup_logging_func: Callable[[str], None] | None = None,
    handler_overrides: dict[str, CommandHandler] | None = None,
) -> int:
    """Main CLI entry point with on-demand command loading."""

    parser = create_parser()
    args, remaining = parser.parse_known_args(argv)

    log_level = args.log_level
    if not log_level:
        from src import config

        log_level = config.LOG_LEVEL
    if setup_logging_func is None:
        from .context import setup_logging as default_setup_logging

        setup_logging_func = default_setup_logging

    setup_logging_func(log_level)

    command = args.command
    if not command:
        _print_usage()
        return 1

    result = _load_command_parser(command)
    if result is None:
        print(f"Unknown command: {command}", file=sys.stderr)
        return 1

    add_parser_func, handle_func = result

    full_parser = argparse.ArgumentParser(
        prog="news-crawler",
        description=f"Run {command} command",
    )
    full_parser.add_argument("--log-level", default=None)
    subparsers = full_parser.add_subparsers(dest="command")
    add_parser_func(subparsers)

    full_args = full_parser.parse_args([command] + remaining)

    if handler_overrides and command in handler_overrides:
        return handler_overrides[command](full_args)

    func = getattr(full_args, "func", None)
    if callable(func):
        return func(full_args)
    return handle_func(full_args)


if __name__ == "__main__":
    sys.exit(main())
