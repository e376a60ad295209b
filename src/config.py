"""Centralized runtime configuration for the news crawler.

Values are read from the environment once at import time. Modules import
the constants they need rather than calling ``os.getenv`` themselves so
tests can monkeypatch a single place.
"""

from __future__ import annotations

import os


def _env_bool(name: str, default: str = "true") -> bool:
    return os.getenv(name, default).strip().lower() in {"1", "true", "yes", "on"}


def _env_list(name: str, default: str = "") -> list[str]:
    raw = os.getenv(name, default)
    return [item.strip().lower() for item in raw.split(",") if item.strip()]


# Browser
HEADLESS = _env_bool("HEADLESS", "true")
NAVIGATION_TIMEOUT_SECONDS = int(os.getenv("NAVIGATION_TIMEOUT_SECONDS", "60"))
SELECTOR_TIMEOUT_SECONDS = int(os.getenv("SELECTOR_TIMEOUT_SECONDS", "10"))
DETAIL_TIMEOUT_SECONDS = int(os.getenv("DETAIL_TIMEOUT_SECONDS", "15"))
CHROME_BIN = os.getenv("CHROME_BIN")
CHROMEDRIVER_PATH = os.getenv("CHROMEDRIVER_PATH")

# Scheduler
CHECK_INTERVAL_MINUTES = float(os.getenv("CHECK_INTERVAL_MINUTES", "10"))
BROWSER_RECYCLE_CYCLES = int(os.getenv("BROWSER_RECYCLE_CYCLES", "3"))
ENABLED_SOURCES = _env_list("ENABLED_SOURCES", "all")
DISABLED_SOURCES = _env_list("DISABLED_SOURCES")
ENABLE_ANALYTICS = _env_bool("ENABLE_ANALYTICS", "true")

# Extraction pacing (milliseconds)
DETAIL_DELAY_MIN_MS = int(os.getenv("DETAIL_DELAY_MIN_MS", "2000"))
DETAIL_DELAY_MAX_MS = int(os.getenv("DETAIL_DELAY_MAX_MS", "5000"))
MAX_CANDIDATES = int(os.getenv("MAX_CANDIDATES", "10"))

# Fallback discovery
SEARCH_ENGINE = os.getenv("SEARCH_ENGINE", "duckduckgo").strip().lower()

# Output
OUTPUT_DIR = os.getenv("OUTPUT_DIR", "output")
DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///data/news.db")
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")


def resolve_enabled_sources(
    roster: list[str],
    enabled: list[str] | None = None,
    disabled: list[str] | None = None,
) -> list[str]:
    """Filter ``roster`` by the enabled/disabled lists, preserving order.

    ``enabled`` containing ``"all"`` (or being empty) keeps every source.
    Unknown names are ignored.
    """
    enabled = ENABLED_SOURCES if enabled is None else enabled
    disabled = DISABLED_SOURCES if disabled is None else disabled

    wanted = {name.lower() for name in enabled}
    blocked = {name.lower() for name in disabled}
    keep_all = not wanted or "all" in wanted

    return [
        name
        for name in roster
        if (keep_all or name.lower() in wanted) and name.lower() not in blocked
    ]
