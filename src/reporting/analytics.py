"""Aggregate statistics over stored news items, exported as JSON.

Written after every scheduler cycle to ``<output>/analytics/``:

- ``source_distribution.json``: item count per source
- ``volume_by_day.json``: items per day over the last week
- ``trending_topics.json``: most frequent title words over the last day
- ``top_categories.json``: most common categories
"""

from __future__ import annotations

import json
import logging
import re
from collections import Counter
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pandas as pd

from src import config

logger = logging.getLogger(__name__)

STOPWORDS = frozenset(
    {
        "this",
        "that",
        "with",
        "from",
        "have",
        "what",
        "will",
        "into",
        "about",
        "after",
        "over",
        "their",
        "says",
        "than",
        "here",
        "when",
        "your",
        "more",
        "just",
        "amid",
    }
)

_WORD_RE = re.compile(r"[a-z][a-z0-9\-]+")


def _naive_utc(now: datetime | None) -> datetime:
    now = now or datetime.now(timezone.utc)
    if now.tzinfo is not None:
        now = now.astimezone(timezone.utc).replace(tzinfo=None)
    return now


class NewsAnalytics:
    """Statistics over a DataFrame of news items (one row per item)."""

    def __init__(self, frame: pd.DataFrame):
        frame = frame.copy()
        if "published_at" in frame.columns:
            frame["published_at"] = pd.to_datetime(frame["published_at"], utc=True).dt.tz_localize(None)
        self.frame = frame

    @classmethod
    def from_repository(cls, repository) -> "NewsAnalytics":
        return cls(repository.db.read_news_items())

    def source_distribution(self) -> list[dict]:
        if self.frame.empty:
            return []
        counts = self.frame["source"].value_counts()
        return [{"source": source, "count": int(count)} for source, count in counts.items()]

    def volume_by_day(self, days: int = 7, now: datetime | None = None) -> list[dict]:
        today = _naive_utc(now).date()
        start = today - timedelta(days=days - 1)
        index = pd.date_range(start, today, freq="D").date

        if self.frame.empty:
            counts = pd.Series(0, index=index)
        else:
            dates = self.frame["published_at"].dt.date
            counts = dates[dates >= start].value_counts().reindex(index, fill_value=0)

        return [
            {"date": day.isoformat(), "count": int(count)}
            for day, count in counts.sort_index().items()
        ]

    def trending_topics(
        self, days: int = 1, limit: int = 20, now: datetime | None = None
    ) -> list[dict]:
        if self.frame.empty:
            return []
        cutoff = _naive_utc(now) - timedelta(days=days)
        recent = self.frame[self.frame["published_at"] >= cutoff]

        words: Counter = Counter()
        for title in recent["title"].dropna():
            for word in _WORD_RE.findall(str(title).lower()):
                if len(word) > 3 and word not in STOPWORDS:
                    words[word] += 1

        return [{"topic": word, "count": count} for word, count in words.most_common(limit)]

    def top_categories(self, limit: int = 10) -> list[dict]:
        if self.frame.empty or "category" not in self.frame.columns:
            return []
        counts = self.frame["category"].dropna().loc[lambda s: s != ""].value_counts()
        return [
            {"category": category, "count": int(count)}
            for category, count in counts.head(limit).items()
        ]


def _write(path: Path, payload) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("w", encoding="utf-8") as fh:
        json.dump(payload, fh, indent=2, ensure_ascii=False)


def export_analytics(
    analytics: NewsAnalytics,
    output_dir: str | Path | None = None,
    now: datetime | None = None,
) -> dict[str, Path]:
    """Write every report under ``<output_dir>/analytics``; returns the paths."""
    target = Path(output_dir or config.OUTPUT_DIR) / "analytics"
    reports = {
        "source_distribution": analytics.source_distribution(),
        "volume_by_day": analytics.volume_by_day(7, now=now),
        "trending_topics": analytics.trending_topics(1, 20, now=now),
        "top_categories": analytics.top_categories(),
    }

    paths = {}
    for name, payload in reports.items():
        path = target / f"{name}.json"
        _write(path, payload)
        paths[name] = path
    logger.info("📊 Analytics updated in %s", target)
    return paths


def export_repository_analytics(repository, output_dir: str | Path | None = None) -> dict[str, Path]:
    return export_analytics(NewsAnalytics.from_repository(repository), output_dir)
