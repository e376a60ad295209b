from __future__ import annotations

from types import SimpleNamespace

import pytest

import src.crawler.factory as factory
from src.crawler.adapters import ROSTER
from src.crawler.normalization import NormalizedRecord


def test_all_expands_to_enabled_roster(monkeypatch):
    monkeypatch.setattr(factory.config, "ENABLED_SOURCES", ["all"])
    monkeypatch.setattr(factory.config, "DISABLED_SOURCES", ["coindesk"])

    names = factory.resolve_source_names("all")

    assert "coindesk" not in names
    assert names == [name for name in ROSTER if name != "coindesk"]


def test_single_name_is_validated():
    assert factory.resolve_source_names("Decrypt") == ["decrypt"]
    with pytest.raises(KeyError):
        factory.resolve_source_names("nope")


class _Sessions:
    def __init__(self):
        self.launched = []
        self.closed = []

    def launch_process(self):
        process = SimpleNamespace(closed=False)
        self.launched.append(process)
        return process

    def close_process(self, process):
        self.closed.append(process)


def _install_processors(monkeypatch, failing=()):
    seen = []

    def build_processor(name, sessions, persistence=None):
        def process(shared=None):
            seen.append((name, shared))
            if name in failing:
                raise RuntimeError("listing exploded")
            record = NormalizedRecord(source=name, url=f"https://{name}.test/a", title=name)
            return SimpleNamespace(records=[record])

        return SimpleNamespace(process=process)

    monkeypatch.setattr(factory, "build_processor", build_processor)
    return seen


def test_run_all_shares_one_owned_browser(monkeypatch):
    monkeypatch.setattr(factory.config, "ENABLED_SOURCES", ["decrypt", "theblock"])
    monkeypatch.setattr(factory.config, "DISABLED_SOURCES", [])
    seen = _install_processors(monkeypatch, failing=("decrypt",))
    sessions = _Sessions()

    records = factory.run_sources("all", sessions=sessions)

    assert [r.source for r in records] == ["theblock"]
    assert len(sessions.launched) == 1
    assert sessions.closed == sessions.launched
    assert all(shared is sessions.launched[0] for _, shared in seen)


def test_lent_session_is_not_closed(monkeypatch):
    seen = _install_processors(monkeypatch)
    sessions = _Sessions()
    lent = object()

    records = factory.run_sources("decrypt", session=lent, sessions=sessions)

    assert [r.source for r in records] == ["decrypt"]
    assert seen == [("decrypt", lent)]
    assert sessions.launched == []
    assert sessions.closed == []


def test_single_source_without_session_lets_processor_own_browser(monkeypatch):
    seen = _install_processors(monkeypatch)
    sessions = _Sessions()

    factory.run_sources("decrypt", sessions=sessions)

    assert seen == [("decrypt", None)]
    assert sessions.launched == []
