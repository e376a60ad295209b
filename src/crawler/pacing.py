"""Human-like interaction pacing for browser pages.

Nothing here may fail a crawl: every page interaction is best effort and
errors are logged and swallowed.
"""

from __future__ import annotations

import logging
import random
import time
from typing import Callable

logger = logging.getLogger(__name__)


class HumanPacing:
    """Randomized scrolling, pointer movement and inter-request delays.

    ``rng`` and ``sleep`` are injectable so tests can run without waiting.
    """

    def __init__(
        self,
        rng: random.Random | None = None,
        sleep: Callable[[float], None] = time.sleep,
        scroll_steps: tuple[int, int] = (3, 7),
        scroll_distance: tuple[int, int] = (100, 400),
        mouse_moves: tuple[int, int] = (2, 4),
        step_pause_ms: tuple[int, int] = (200, 800),
        follow_link_probability: float = 0.3,
    ):
        self.rng = rng or random.Random()
        self.sleep = sleep
        self.scroll_steps = scroll_steps
        self.scroll_distance = scroll_distance
        self.mouse_moves = mouse_moves
        self.step_pause_ms = step_pause_ms
        self.follow_link_probability = follow_link_probability

    def delay(self, min_ms: int, max_ms: int) -> float:
        """Sleep for a uniformly sampled duration; returns the seconds slept."""
        low, high = sorted((max(0, min_ms), max(0, max_ms)))
        seconds = self.rng.uniform(low, high) / 1000.0
        self.sleep(seconds)
        return seconds

    def _pause(self) -> None:
        self.delay(*self.step_pause_ms)

    def simulate(self, page) -> None:
        """Scroll, move the pointer and sometimes follow a link and come back."""
        try:
            for _ in range(self.rng.randint(*self.scroll_steps)):
                page.scroll_by(self.rng.randint(*self.scroll_distance))
                self._pause()

            width, height = page.viewport_size()
            for _ in range(self.rng.randint(*self.mouse_moves)):
                x = self.rng.randint(0, max(0, width - 1))
                y = self.rng.randint(0, max(0, height - 1))
                page.mouse_move(x, y)
                self._pause()
        except Exception as e:
            logger.debug("Human behavior simulation failed: %s", e)
            return

        if self.rng.random() >= self.follow_link_probability:
            return

        try:
            if page.click_random_link(self.rng):
                self.delay(1000, 2000)
                page.go_back()
                self._pause()
        except Exception as e:
            logger.debug("Random link visit failed: %s", e)
