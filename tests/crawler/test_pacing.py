from __future__ import annotations

import random

from src.crawler.pacing import HumanPacing
from tests.conftest import FakePage


class _FixedRandom(random.Random):
    def __init__(self, follow: float):
        super().__init__(7)
        self._follow = follow

    def random(self):
        return self._follow


def _pacing(follow: float = 0.9):
    slept = []
    return HumanPacing(rng=_FixedRandom(follow), sleep=slept.append), slept


def test_delay_stays_within_bounds():
    pacing, slept = _pacing()

    for _ in range(50):
        seconds = pacing.delay(2000, 5000)
        assert 2.0 <= seconds <= 5.0

    assert len(slept) == 50


def test_delay_accepts_reversed_bounds():
    pacing, _ = _pacing()
    assert 1.0 <= pacing.delay(3000, 1000) <= 3.0


def test_simulate_scrolls_and_moves_inside_viewport():
    pacing, _ = _pacing(follow=0.9)
    page = FakePage()

    pacing.simulate(page)

    scrolls = [a for a in page.actions if a[0] == "scroll"]
    moves = [a for a in page.actions if a[0] == "mouse"]
    assert 3 <= len(scrolls) <= 7
    assert all(100 <= a[1] <= 400 for a in scrolls)
    assert 2 <= len(moves) <= 4
    assert all(0 <= x < 1280 and 0 <= y < 720 for _, x, y in moves)
    assert ("click",) not in page.actions


def test_simulate_sometimes_follows_a_link_and_returns():
    pacing, _ = _pacing(follow=0.1)
    page = FakePage()

    pacing.simulate(page)

    assert page.actions[-2:] == [("click",), ("back",)]


def test_simulate_swallows_page_errors():
    class ClosedPage(FakePage):
        def scroll_by(self, delta_y):
            raise RuntimeError("target closed")

    pacing, _ = _pacing(follow=0.1)
    page = ClosedPage()

    pacing.simulate(page)

    assert page.actions == []
