"""Pytest-wide fixtures and fakes for crawler tests."""

from __future__ import annotations

import os
from contextlib import contextmanager
from types import SimpleNamespace

import pytest

# Keep tests off any real database or output directory configured in the
# environment. Set before src.config is imported.
os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")
os.environ.setdefault("ENABLE_ANALYTICS", "false")

from src.crawler import NavigationError  # noqa: E402


class _SwitchTo:
    def __init__(self, driver):
        self.driver = driver

    def new_window(self, kind="tab"):
        self.driver._counter += 1
        handle = f"window-{self.driver._counter}"
        self.driver.window_handles.append(handle)
        self.driver.current_window_handle = handle
        self.driver.calls.append(("new_window", handle))

    def window(self, handle):
        self.driver.current_window_handle = handle
        self.driver.calls.append(("switch", handle))


class FakeDriver:
    """Duck-typed WebDriver that records every call."""

    def __init__(self, page_source="<html></html>"):
        self._counter = 0
        self.window_handles = ["home"]
        self.current_window_handle = "home"
        self.current_url = "about:blank"
        self.page_source = page_source
        self.calls: list[tuple] = []
        self.cdp_commands: list[tuple[str, dict]] = []
        self.switch_to = _SwitchTo(self)
        self.quit_count = 0

    def execute_cdp_cmd(self, cmd, params):
        self.cdp_commands.append((cmd, params))
        return {}

    def execute_script(self, script, *args):
        self.calls.append(("script", args))
        if "innerWidth" in script:
            return [1280, 720]
        return None

    def set_page_load_timeout(self, timeout):
        self.calls.append(("timeout", timeout))

    def get(self, url):
        self.calls.append(("get", url))
        self.current_url = url

    def back(self):
        self.calls.append(("back",))

    def find_elements(self, by, selector):
        return []

    def close(self):
        self.calls.append(("close", self.current_window_handle))
        if self.current_window_handle in self.window_handles:
            self.window_handles.remove(self.current_window_handle)

    def quit(self):
        self.quit_count += 1
        self.calls.append(("quit",))


class FakePage:
    """Stand-in for BrowserPage backed by canned HTML per URL."""

    def __init__(self, pages=None, default="", fail_urls=(), present=None):
        self.pages = dict(pages or {})
        self.default = default
        self.fail_urls = set(fail_urls)
        self.present = present
        self.url = "about:blank"
        self.visited: list[str] = []
        self.actions: list[tuple] = []

    def goto(self, url, timeout=None):
        self.visited.append(url)
        if url in self.fail_urls:
            raise NavigationError(url, "net::ERR_CONNECTION_RESET")
        self.url = url

    def content(self):
        return self.pages.get(self.url, self.default)

    def wait_for_selector(self, selector, timeout=None):
        if self.present is None:
            return True
        return selector in self.present

    def viewport_size(self):
        return (1280, 720)

    def scroll_by(self, delta_y):
        self.actions.append(("scroll", delta_y))

    def mouse_move(self, x, y):
        self.actions.append(("mouse", x, y))

    def click_random_link(self, rng=None):
        self.actions.append(("click",))
        return True

    def go_back(self):
        self.actions.append(("back",))


class FakeSessions:
    """SessionManager stand-in that always hands out the same page."""

    def __init__(self, page):
        self.page = page
        self.acquired: list[object] = []
        self.released = 0

    @contextmanager
    def session(self, shared=None):
        self.acquired.append(shared)
        try:
            yield SimpleNamespace(page=self.page)
        finally:
            self.released += 1


class NoPacing:
    def __init__(self):
        self.delays: list[tuple[int, int]] = []
        self.simulated = 0

    def simulate(self, page):
        self.simulated += 1

    def delay(self, min_ms, max_ms):
        self.delays.append((min_ms, max_ms))
        return 0.0


@pytest.fixture
def fake_driver():
    return FakeDriver()


@pytest.fixture
def no_pacing():
    return NoPacing()
