"""Database session management and bulk helpers for news items."""

from __future__ import annotations

import os

import pandas as pd
from sqlalchemy import select
from sqlalchemy.exc import OperationalError

from . import NewsItem, create_database_engine, create_tables, get_session


def _ensure_sqlite_directory(database_url: str) -> None:
    if not database_url.startswith("sqlite:///"):
        return
    path = database_url[len("sqlite:///") :]
    if not path or path == ":memory:":
        return
    directory = os.path.dirname(path)
    if directory:
        os.makedirs(directory, exist_ok=True)


def is_database_locked(exc: Exception) -> bool:
    return isinstance(exc, OperationalError) and "locked" in str(exc).lower()


class DatabaseManager:
    """Owns an engine and a session; usable as a context manager."""

    def __init__(self, database_url: str | None = None):
        if database_url is None:
            from src.config import DATABASE_URL

            database_url = DATABASE_URL
        self.database_url = database_url
        _ensure_sqlite_directory(database_url)
        self.engine = create_database_engine(database_url)
        create_tables(self.engine)
        self.session = get_session(self.engine)

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        if exc_type is not None:
            self.session.rollback()
        self.close()
        return False

    def close(self) -> None:
        try:
            self.session.close()
        finally:
            self.engine.dispose()

    def read_news_items(self, source: str | None = None, limit: int | None = None) -> pd.DataFrame:
        """Load news items into a DataFrame, newest first."""
        table = NewsItem.__table__
        stmt = select(table).order_by(table.c.published_at.desc())
        if source:
            stmt = stmt.where(table.c.source == source)
        if limit:
            stmt = stmt.limit(limit)
        with self.engine.connect() as conn:
            return pd.read_sql(stmt, conn)
