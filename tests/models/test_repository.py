from __future__ import annotations

from datetime import datetime, timezone

import pytest
from sqlalchemy.exc import OperationalError

from src.crawler.normalization import NormalizedRecord
from src.models.database import DatabaseManager
from src.models.repository import NewsRepository

NOW = datetime(2025, 3, 20, 12, 0, tzinfo=timezone.utc)


def _record(url, source="decrypt", published="2025-03-20T11:30:00.000Z", **extra):
    return NormalizedRecord(
        source=source,
        url=url,
        title=extra.pop("title", f"Title for {url}"),
        published_at=published,
        fetched_at="2025-03-20T12:00:00.000Z",
        **extra,
    )


@pytest.fixture
def repository(tmp_path):
    repo = NewsRepository(database_url=f"sqlite:///{tmp_path / 'news.db'}")
    yield repo
    repo.close()


def test_upsert_is_idempotent_by_url(repository):
    repository.upsert([_record("https://decrypt.co/a")])
    repository.upsert([_record("https://decrypt.co/a", title="Updated headline")])

    rows = repository.find_by_source("decrypt")

    assert len(rows) == 1
    assert rows[0].title == "Updated headline"


def test_upsert_dedupes_within_batch(repository):
    written = repository.upsert(
        [_record("https://decrypt.co/a"), _record("https://decrypt.co/a", title="Later")]
    )

    assert written == 1
    assert repository.find_by_source("decrypt")[0].title == "Later"


def test_upsert_accepts_mappings_and_skips_missing_url(repository):
    assert repository.upsert([{"source": "x", "url": "", "title": "none"}]) == 0
    assert repository.upsert([_record("https://x.test/1").to_dict()]) == 1


def test_round_trip_preserves_fields(repository):
    record = _record(
        "https://decrypt.co/b",
        description="desc",
        category="Markets",
        author="Jane",
        full_content="Body",
        preview_content="desc",
    )
    repository.upsert([record])

    assert repository.find_by_source("decrypt") == [record]


def test_distinct_sources(repository):
    repository.upsert(
        [
            _record("https://decrypt.co/a"),
            _record("https://www.coindesk.com/a", source="coindesk"),
            _record("https://decrypt.co/b"),
        ]
    )

    assert repository.distinct_sources() == ["coindesk", "decrypt"]


def test_find_recent_window(repository):
    repository.upsert(
        [
            _record("https://decrypt.co/new", published="2025-03-20T11:50:00.000Z"),
            _record("https://decrypt.co/old", published="2025-03-20T09:00:00.000Z"),
        ]
    )

    recent = repository.find_recent(60, now=NOW)

    assert [r.url for r in recent] == ["https://decrypt.co/new"]


def test_find_by_source_orders_newest_first_and_limits(repository):
    repository.upsert(
        [
            _record(f"https://decrypt.co/{hour}", published=f"2025-03-20T{hour:02d}:00:00.000Z")
            for hour in range(5)
        ]
    )

    rows = repository.find_by_source("decrypt", limit=2)

    assert [r.url for r in rows] == ["https://decrypt.co/4", "https://decrypt.co/3"]


def test_find_by_date_range(repository):
    repository.upsert(
        [
            _record("https://decrypt.co/a", published="2025-03-18T10:00:00.000Z"),
            _record("https://decrypt.co/b", published="2025-03-19T10:00:00.000Z"),
            _record("https://decrypt.co/c", published="2025-03-20T10:00:00.000Z"),
        ]
    )

    rows = repository.find_by_date_range(
        datetime(2025, 3, 19, tzinfo=timezone.utc),
        datetime(2025, 3, 20, tzinfo=timezone.utc),
    )

    assert [r.url for r in rows] == ["https://decrypt.co/b"]


def test_database_manager_reads_dataframe(tmp_path):
    url = f"sqlite:///{tmp_path / 'nested' / 'news.db'}"
    repository = NewsRepository(database_url=url)
    repository.upsert([_record("https://decrypt.co/a"), _record("https://x.test/b", source="x")])

    with DatabaseManager(url) as db:
        frame = db.read_news_items(source="x")

    assert list(frame["url"]) == ["https://x.test/b"]
    repository.close()


def _fail_first_commit(monkeypatch, session, error):
    real_commit = session.commit
    calls = {"count": 0}

    def commit():
        calls["count"] += 1
        if calls["count"] == 1:
            raise error
        real_commit()

    monkeypatch.setattr(session, "commit", commit)
    return calls


def test_upsert_replays_batch_when_database_locked(repository, monkeypatch):
    error = OperationalError("COMMIT", {}, Exception("database is locked"))
    calls = _fail_first_commit(monkeypatch, repository.session, error)

    written = repository.upsert([_record("https://decrypt.co/a")], backoff=0)

    assert written == 1
    assert calls["count"] == 2
    assert [r.url for r in repository.find_by_source("decrypt")] == ["https://decrypt.co/a"]


def test_upsert_failure_rolls_back_and_session_stays_usable(repository, monkeypatch):
    error = OperationalError("COMMIT", {}, Exception("disk I/O error"))
    _fail_first_commit(monkeypatch, repository.session, error)

    with pytest.raises(OperationalError):
        repository.upsert([_record("https://decrypt.co/a")], backoff=0)

    assert repository.upsert([_record("https://decrypt.co/b")]) == 1
    assert [r.url for r in repository.find_by_source("decrypt")] == ["https://decrypt.co/b"]
