"""Record store for normalized news items.

Writes are idempotent by URL: upserting a record whose URL already exists
updates that row in place.
"""

from __future__ import annotations

import logging
import time
from datetime import datetime, timedelta, timezone
from typing import Iterable

from dateutil.parser import isoparse
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError

from src.crawler.normalization import (
    NormalizedRecord,
    format_timestamp,
    sanitize,
    utcnow,
)

from . import NewsItem
from .database import DatabaseManager, is_database_locked

logger = logging.getLogger(__name__)

_TIMESTAMP_FIELDS = ("published_at", "fetched_at")


def _to_db_timestamp(value) -> datetime:
    """ISO string or datetime -> naive UTC datetime as stored in the table."""
    if isinstance(value, datetime):
        parsed = value
    elif value:
        try:
            parsed = isoparse(str(value))
        except ValueError:
            parsed = utcnow()
    else:
        parsed = utcnow()
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
    return parsed


def _to_columns(record: NormalizedRecord | dict) -> dict:
    values = sanitize(record)
    for field in _TIMESTAMP_FIELDS:
        values[field] = _to_db_timestamp(values.get(field))
    values["title"] = values.get("title") or ""
    return values


def _to_record(item: NewsItem) -> NormalizedRecord:
    return NormalizedRecord(
        source=item.source,
        url=item.url,
        title=item.title,
        description=item.description or "",
        published_at=format_timestamp(item.published_at),
        fetched_at=format_timestamp(item.fetched_at),
        category=item.category,
        author=item.author,
        content_type=item.content_type,
        full_content=item.full_content or "",
        preview_content=item.preview_content,
    )


class NewsRepository:
    """Upsert and query :class:`~src.models.NewsItem` rows."""

    def __init__(self, db: DatabaseManager | None = None, database_url: str | None = None):
        self.db = db or DatabaseManager(database_url)

    @property
    def session(self):
        return self.db.session

    def upsert(
        self,
        records: Iterable[NormalizedRecord | dict],
        retries: int = 4,
        backoff: float = 0.1,
    ) -> int:
        """Insert new records and update existing ones; returns rows written.

        A locked database or a concurrent insert of the same URL rolls the
        session back and replays the whole batch. Any other failure rolls
        back and propagates, leaving the session usable for the next call.
        """
        rows: dict[str, dict] = {}
        for record in records:
            values = _to_columns(record)
            if values.get("url"):
                rows[values["url"]] = values
        if not rows:
            return 0

        for attempt in range(retries + 1):
            try:
                self._apply(rows)
                return len(rows)
            except IntegrityError:
                self.session.rollback()
                if attempt == retries:
                    raise
                # Another writer inserted one of these URLs between our read
                # and commit; the replay sees it and updates instead.
                logger.info("Concurrent insert detected; retrying upsert as update")
            except Exception as exc:
                self.session.rollback()
                if attempt == retries or not is_database_locked(exc):
                    raise
                wait = backoff * (2**attempt)
                logger.warning(
                    "Database locked on commit (attempt %d/%d); retrying in %.2fs",
                    attempt + 1,
                    retries,
                    wait,
                )
                time.sleep(wait)

    def _apply(self, rows: dict[str, dict]) -> None:
        session = self.session
        existing = {
            item.url: item
            for item in session.scalars(
                select(NewsItem).where(NewsItem.url.in_(list(rows)))
            )
        }
        for url, values in rows.items():
            item = existing.get(url)
            if item is None:
                session.add(NewsItem(**values))
                continue
            for field, value in values.items():
                setattr(item, field, value)
        session.commit()

    def distinct_sources(self) -> list[str]:
        stmt = select(NewsItem.source).distinct().order_by(NewsItem.source)
        return list(self.session.scalars(stmt))

    def find_recent(self, window_minutes: int, now: datetime | None = None) -> list[NormalizedRecord]:
        """Records published within the last ``window_minutes``, newest first."""
        cutoff = _to_db_timestamp(now or utcnow()) - timedelta(minutes=window_minutes)
        stmt = (
            select(NewsItem)
            .where(NewsItem.published_at >= cutoff)
            .order_by(NewsItem.published_at.desc())
        )
        return [_to_record(item) for item in self.session.scalars(stmt)]

    def find_by_source(self, name: str, limit: int = 50) -> list[NormalizedRecord]:
        stmt = (
            select(NewsItem)
            .where(NewsItem.source == name)
            .order_by(NewsItem.published_at.desc())
            .limit(limit)
        )
        return [_to_record(item) for item in self.session.scalars(stmt)]

    def find_by_date_range(
        self, start: datetime, end: datetime, limit: int | None = None
    ) -> list[NormalizedRecord]:
        stmt = (
            select(NewsItem)
            .where(NewsItem.published_at >= _to_db_timestamp(start))
            .where(NewsItem.published_at <= _to_db_timestamp(end))
            .order_by(NewsItem.published_at.desc())
        )
        if limit:
            stmt = stmt.limit(limit)
        return [_to_record(item) for item in self.session.scalars(stmt)]

    def close(self) -> None:
        self.db.close()
