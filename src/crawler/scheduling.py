"""Long-running scheduler that crawls the source roster on a fixed interval.

The scheduler owns a :class:`CycleState` and one shared browser process.
Each cycle walks the roster in order on that process; after
``recycle_threshold`` cycles the process is closed and a fresh one started
at the beginning of the next cycle.

Shutdown is cooperative: the flag is checked between sources, so a source
that is mid-crawl finishes first. If no cycle is running, cleanup happens
immediately.
"""

from __future__ import annotations

import logging
import signal
import threading
from dataclasses import dataclass
from typing import Callable, Sequence

from src import config

from . import StartupError
from .session import BrowserProcess, SessionManager

logger = logging.getLogger(__name__)


@dataclass
class CycleState:
    cycles_since_recycle: int = 0
    total_cycles: int = 0
    busy: bool = False
    shutdown_requested: bool = False


class Scheduler:
    """Run roster cycles until asked to stop.

    ``processor_factory(name)`` must return an object with
    ``process(shared)``; ``reporter()`` runs after every completed roster.

    The recycle counter resets to 1 because the cycle that triggers a
    recycle is the first on the new browser. With a threshold of 3 the
    browser is replaced at the start of cycles 4, 7, 10 and so on, so each
    browser serves exactly ``recycle_threshold`` cycles.
    """

    def __init__(
        self,
        sessions: SessionManager,
        roster: Sequence[str],
        processor_factory: Callable[[str], object],
        reporter: Callable[[], object] | None = None,
        recycle_threshold: int | None = None,
        interval_seconds: float | None = None,
        state: CycleState | None = None,
        repository=None,
    ):
        self.sessions = sessions
        self.roster = list(roster)
        self.processor_factory = processor_factory
        self.reporter = reporter
        self.recycle_threshold = (
            config.BROWSER_RECYCLE_CYCLES if recycle_threshold is None else recycle_threshold
        )
        self.interval_seconds = (
            config.CHECK_INTERVAL_MINUTES * 60 if interval_seconds is None else interval_seconds
        )
        self.state = state or CycleState()
        self.repository = repository
        self.shared_process: BrowserProcess | None = None
        self._wake = threading.Event()

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------
    def start(self) -> None:
        """Start the shared browser; failure here is fatal."""
        try:
            self.shared_process = self.sessions.launch_process()
        except Exception as exc:
            logger.error("💥 Could not start shared browser: %s", exc)
            self.cleanup()
            raise StartupError(f"Could not start shared browser: {exc}") from exc
        if self.state.shutdown_requested:
            logger.info("Shutdown requested while the browser was starting")
            self.cleanup()

    def run_forever(self) -> None:
        """Run one cycle now, then one per interval until shutdown."""
        self.start()
        try:
            while not self.state.shutdown_requested:
                self.tick()
                if self.state.shutdown_requested:
                    break
                logger.info("⏸️  Sleeping for %d seconds", self.interval_seconds)
                self._wake.wait(self.interval_seconds)
                self._wake.clear()
        finally:
            self.cleanup()

    def request_shutdown(self) -> None:
        """Stop after the current source; clean up now if idle."""
        if not self.state.shutdown_requested:
            logger.info("⏹️  Shutdown requested")
        self.state.shutdown_requested = True
        self._wake.set()
        if not self.state.busy:
            self.cleanup()
        else:
            logger.info("Cycle in progress; cleanup deferred until it finishes")

    def install_signal_handlers(self) -> None:
        signals = [signal.SIGINT, signal.SIGTERM]
        if hasattr(signal, "SIGHUP"):
            signals.append(signal.SIGHUP)
        for sig in signals:
            signal.signal(sig, self._handle_signal)

    def _handle_signal(self, signum, frame) -> None:
        logger.info("Received signal %s", signal.Signals(signum).name)
        self.request_shutdown()

    def cleanup(self) -> None:
        """Release the shared browser and the record store; idempotent.

        Each resource is dropped once released, so a browser launched after
        an earlier cleanup is still closed by the next one.
        """
        if self.shared_process is None and self.repository is None:
            return
        logger.info("🧹 Cleaning up resources")

        if self.shared_process is not None:
            process, self.shared_process = self.shared_process, None
            self.sessions.close_process(process)

        if self.repository is not None:
            repository, self.repository = self.repository, None
            try:
                repository.close()
            except Exception as exc:
                logger.warning("Error closing record store: %s", exc)

    # ------------------------------------------------------------------
    # Cycles
    # ------------------------------------------------------------------
    def tick(self) -> bool:
        """Run one roster cycle; returns False if it was skipped."""
        state = self.state
        if state.busy:
            logger.warning("Previous cycle still running; skipping this tick")
            return False
        if state.shutdown_requested:
            return False

        state.busy = True
        try:
            state.total_cycles += 1
            state.cycles_since_recycle += 1
            logger.info("=" * 60)
            logger.info("Processing cycle #%d", state.total_cycles)

            if state.cycles_since_recycle > self.recycle_threshold:
                self._recycle_browser()

            if self.shared_process is None:
                try:
                    self.shared_process = self.sessions.launch_process()
                except Exception as exc:
                    logger.error("💥 Could not start browser for this cycle: %s", exc)
                    return True

            self._run_roster()

            if self.reporter is not None and not state.shutdown_requested:
                try:
                    self.reporter()
                except Exception as exc:
                    logger.error("Aggregate reporting failed: %s", exc)
            return True
        finally:
            state.busy = False
            if state.shutdown_requested:
                self.cleanup()

    def _recycle_browser(self) -> None:
        logger.info(
            "♻️  Recycling browser after %d cycle(s)",
            self.state.cycles_since_recycle - 1,
        )
        if self.shared_process is not None:
            self.sessions.close_process(self.shared_process)
            self.shared_process = None
        self.state.cycles_since_recycle = 1

    def _run_roster(self) -> None:
        for name in self.roster:
            if self.state.shutdown_requested:
                logger.info("Shutdown requested; stopping before %s", name)
                break
            try:
                processor = self.processor_factory(name)
                processor.process(self.shared_process)
            except Exception as exc:
                logger.error("❌ Source %s failed: %s", name, exc)
                continue
            logger.info("✅ Source %s done", name)
