from __future__ import annotations

from datetime import datetime, timezone

import pytest

from src.crawler.adapters import DetailSelectors, ListSelectors, SourceAdapter
from src.crawler.block_detection import BlockDetector, BlockReason
from src.crawler.extraction import ExtractionEngine
from src.crawler.normalization import NormalizedRecord
from src.crawler.source_processing import SourceProcessor
from tests.conftest import FakePage, FakeSessions

NOW = datetime(2025, 3, 20, 12, 0, tzinfo=timezone.utc)

ADAPTER = SourceAdapter(
    name="example",
    url="https://news.example.com/latest",
    listing=ListSelectors(item=".card", title="h2", link="a", date="time"),
    detail=DetailSelectors(content=".body"),
)


def _listing(count: int) -> str:
    cards = "".join(
        f'<article class="card"><h2>Headline number {i}</h2>'
        f'<a href="/news/story-{i}">Read the whole story number {i}</a>'
        f'<time datetime="2025-03-20T0{i}:00:00Z"></time></article>'
        for i in range(count)
    )
    padding = "<p>" + "filler text " * 100 + "</p>"
    return f"<html><body>{cards}{padding}</body></html>"


def _detail(i: int) -> str:
    return f'<html><body><div class="body"><p>Body of story {i}.</p></div></body></html>'


class _FakeChain:
    def __init__(self, records=None):
        self.records = records or []
        self.calls = []
        self.last_strategy = None

    def resolve(self, adapter, page=None):
        self.calls.append((adapter.name, page))
        if self.records:
            self.last_strategy = "feed"
        return self.records


class _FakePersistence:
    def __init__(self):
        self.calls = []

    def persist(self, source, records, now=None):
        self.calls.append((source, list(records)))
        return records


def _processor(page, chain=None, persistence=None, no_pacing=None):
    return SourceProcessor(
        adapter=ADAPTER,
        sessions=FakeSessions(page),
        engine=ExtractionEngine(selector_timeout=1, detail_timeout=1),
        detector=BlockDetector(),
        fallback=chain or _FakeChain(),
        pacing=no_pacing,
        persistence=persistence,
        detail_delay_ms=(10, 20),
        clock=lambda: NOW,
    )


def test_happy_path_extracts_every_candidate(no_pacing):
    pages = {ADAPTER.url: _listing(3)}
    pages.update({f"https://news.example.com/news/story-{i}": _detail(i) for i in range(3)})
    page = FakePage(pages=pages)
    persistence = _FakePersistence()
    chain = _FakeChain()

    result = _processor(page, chain, persistence, no_pacing).process()

    assert [r.full_content for r in result.records] == [
        "Body of story 0.",
        "Body of story 1.",
        "Body of story 2.",
    ]
    assert result.records[0].url == "https://news.example.com/news/story-0"
    assert result.records[0].published_at == "2025-03-20T00:00:00.000Z"
    assert result.used_fallback is False
    assert chain.calls == []
    assert no_pacing.simulated == 1
    assert no_pacing.delays == [(10, 20), (10, 20)]
    assert persistence.calls[0][0] == "example"
    assert len(persistence.calls[0][1]) == 3


def test_failed_detail_navigation_skips_candidate(no_pacing):
    pages = {ADAPTER.url: _listing(3)}
    pages.update({f"https://news.example.com/news/story-{i}": _detail(i) for i in range(3)})
    page = FakePage(pages=pages, fail_urls={"https://news.example.com/news/story-1"})

    result = _processor(page, no_pacing=no_pacing).process()

    assert [r.url.rsplit("-", 1)[-1] for r in result.records] == ["0", "2"]
    assert result.candidates_found == 3
    assert result.candidates_skipped == 1


def test_blocked_listing_uses_fallback(no_pacing):
    blocked = "<html><body><div class='g-recaptcha'></div></body></html>"
    page = FakePage(pages={ADAPTER.url: blocked})
    fallback_records = [NormalizedRecord(source="example", url="https://news.example.com/x", title="x")]
    chain = _FakeChain(fallback_records)
    persistence = _FakePersistence()

    result = _processor(page, chain, persistence, no_pacing).process()

    assert result.block_signal.reason is BlockReason.CAPTCHA
    assert result.used_fallback is True
    assert result.fallback_strategy == "feed"
    assert result.records == fallback_records
    assert chain.calls == [("example", page)]
    assert persistence.calls == [("example", fallback_records)]


def test_empty_listing_uses_fallback(no_pacing):
    page = FakePage(pages={ADAPTER.url: _listing(0).replace("<p>", '<a href="/x">x</a><p>')})
    chain = _FakeChain()

    result = _processor(page, chain, no_pacing=no_pacing).process()

    assert result.used_fallback is True
    assert result.records == []
    assert len(chain.calls) == 1


def test_listing_navigation_failure_uses_fallback(no_pacing):
    page = FakePage(fail_urls={ADAPTER.url})
    chain = _FakeChain()
    persistence = _FakePersistence()

    result = _processor(page, chain, persistence, no_pacing).process()

    assert result.navigation_failed is True
    assert result.used_fallback is True
    assert no_pacing.simulated == 0
    # Nothing to write when no records were produced.
    assert persistence.calls == []


def test_session_released_even_when_fallback_raises(no_pacing):
    class ExplodingChain(_FakeChain):
        def resolve(self, adapter, page=None):
            raise RuntimeError("boom")

    page = FakePage(fail_urls={ADAPTER.url})
    processor = _processor(page, ExplodingChain(), no_pacing=no_pacing)

    with pytest.raises(RuntimeError):
        processor.process()
    assert processor.sessions.released == 1


def test_shared_session_is_passed_through(no_pacing):
    page = FakePage(fail_urls={ADAPTER.url})
    processor = _processor(page, no_pacing=no_pacing)
    shared = object()

    processor.process(shared)

    assert processor.sessions.acquired == [shared]
