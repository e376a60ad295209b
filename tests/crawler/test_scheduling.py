from __future__ import annotations

import pytest

from src.crawler import SessionError, StartupError
from src.crawler.scheduling import CycleState, Scheduler


class _Process:
    def __init__(self, number):
        self.number = number
        self.closed = False


class _Sessions:
    def __init__(self, fail_launches=0):
        self.launched: list[_Process] = []
        self.closed: list[_Process] = []
        self.fail_launches = fail_launches

    def launch_process(self):
        if self.fail_launches:
            self.fail_launches -= 1
            raise SessionError("chrome crashed")
        process = _Process(len(self.launched) + 1)
        self.launched.append(process)
        return process

    def close_process(self, process):
        process.closed = True
        self.closed.append(process)


class _Processor:
    def __init__(self, name, log, error=None, on_process=None):
        self.name = name
        self.log = log
        self.error = error
        self.on_process = on_process

    def process(self, shared=None):
        self.log.append((self.name, shared.number if shared else None))
        if self.on_process:
            self.on_process()
        if self.error:
            raise self.error


class _Repository:
    def __init__(self):
        self.closed = 0

    def close(self):
        self.closed += 1


def _scheduler(sessions=None, roster=("a", "b", "c"), failing=(), hooks=None, **kwargs):
    log: list[tuple] = []
    hooks = hooks or {}

    def factory(name):
        error = RuntimeError(f"{name} broke") if name in failing else None
        return _Processor(name, log, error, hooks.get(name))

    scheduler = Scheduler(
        sessions=sessions or _Sessions(),
        roster=roster,
        processor_factory=factory,
        recycle_threshold=kwargs.pop("recycle_threshold", 3),
        interval_seconds=0,
        **kwargs,
    )
    return scheduler, log


def test_sources_run_in_roster_order_on_shared_process():
    scheduler, log = _scheduler()
    scheduler.start()

    assert scheduler.tick() is True

    assert log == [("a", 1), ("b", 1), ("c", 1)]
    assert scheduler.state.total_cycles == 1


def test_recycles_exactly_on_fourth_cycle():
    sessions = _Sessions()
    scheduler, log = _scheduler(sessions, roster=("a",))
    scheduler.start()

    for _ in range(3):
        scheduler.tick()
    assert len(sessions.launched) == 1
    assert sessions.closed == []

    scheduler.tick()

    assert len(sessions.launched) == 2
    assert sessions.closed == [sessions.launched[0]]
    assert log[-1] == ("a", 2)
    assert scheduler.state.cycles_since_recycle == 1


def test_second_recycle_after_three_more_cycles():
    sessions = _Sessions()
    scheduler, _ = _scheduler(sessions, roster=("a",))
    scheduler.start()

    for _ in range(7):
        scheduler.tick()

    # Recycled at the start of cycles 4 and 7.
    assert len(sessions.launched) == 3


def test_source_failure_does_not_stop_cycle():
    scheduler, log = _scheduler(failing=("b",))
    scheduler.start()

    scheduler.tick()

    assert [name for name, _ in log] == ["a", "b", "c"]


def test_busy_tick_is_skipped():
    scheduler, log = _scheduler(state=CycleState(busy=True))

    assert scheduler.tick() is False
    assert log == []
    assert scheduler.state.total_cycles == 0


def test_shutdown_between_sources_defers_cleanup():
    sessions = _Sessions()
    repository = _Repository()
    scheduler, log = _scheduler(sessions, repository=repository)
    scheduler.start()

    mid_cycle = {}

    def shutdown():
        scheduler.request_shutdown()
        mid_cycle["closed"] = (list(sessions.closed), repository.closed)

    scheduler.processor_factory = _wrap_factory(scheduler.processor_factory, "a", shutdown)

    scheduler.tick()

    assert [name for name, _ in log] == ["a"]
    assert mid_cycle["closed"] == ([], 0)
    assert sessions.closed == [sessions.launched[0]]
    assert repository.closed == 1
    assert scheduler.shared_process is None


def _wrap_factory(factory, name, callback):
    def wrapped(source):
        processor = factory(source)
        if source == name:
            processor.on_process = callback
        return processor

    return wrapped


def test_shutdown_when_idle_cleans_up_immediately():
    sessions = _Sessions()
    scheduler, _ = _scheduler(sessions)
    scheduler.start()

    scheduler.request_shutdown()

    assert sessions.closed == [sessions.launched[0]]
    assert scheduler.tick() is False


def test_cleanup_is_idempotent():
    sessions = _Sessions()
    repository = _Repository()
    scheduler, _ = _scheduler(sessions, repository=repository)
    scheduler.start()

    scheduler.cleanup()
    scheduler.cleanup()

    assert len(sessions.closed) == 1
    assert repository.closed == 1


def test_startup_failure_cleans_up_and_raises():
    repository = _Repository()
    scheduler, _ = _scheduler(_Sessions(fail_launches=1), repository=repository)

    with pytest.raises(StartupError):
        scheduler.run_forever()
    assert repository.closed == 1


def test_launch_failure_mid_run_skips_cycle():
    sessions = _Sessions()
    scheduler, log = _scheduler(sessions, roster=("a",), recycle_threshold=1)
    scheduler.start()
    scheduler.tick()

    sessions.fail_launches = 1
    assert scheduler.tick() is True
    assert log == [("a", 1)]

    scheduler.tick()
    assert log[-1] == ("a", 2)


def test_reporter_runs_after_roster():
    calls = []
    scheduler, log = _scheduler(reporter=lambda: calls.append(len(log)))
    scheduler.start()

    scheduler.tick()

    assert calls == [3]


def test_reporter_failure_is_contained():
    def reporter():
        raise ValueError("disk full")

    scheduler, _ = _scheduler(reporter=reporter)
    scheduler.start()

    assert scheduler.tick() is True
    assert scheduler.state.busy is False


def test_run_forever_stops_when_shutdown_requested_by_reporter():
    holder = {}
    scheduler, log = _scheduler(reporter=lambda: holder["s"].request_shutdown())
    holder["s"] = scheduler

    scheduler.run_forever()

    assert scheduler.state.total_cycles == 1
    assert scheduler.shared_process is None


def test_browser_launched_during_shutdown_is_closed():
    sessions = _Sessions()
    repository = _Repository()
    scheduler, log = _scheduler(sessions, repository=repository)
    real_launch = sessions.launch_process

    def launch_then_signal():
        process = real_launch()
        scheduler.request_shutdown()
        return process

    sessions.launch_process = launch_then_signal

    scheduler.run_forever()

    assert log == []
    assert sessions.closed == sessions.launched
    assert len(sessions.launched) == 1
    assert repository.closed == 1


def test_shutdown_after_cleanup_still_closes_relaunched_browser():
    sessions = _Sessions()
    scheduler, _ = _scheduler(sessions, roster=("a",))
    scheduler.start()
    scheduler.cleanup()

    scheduler.shared_process = sessions.launch_process()
    scheduler.request_shutdown()

    assert sessions.closed == sessions.launched
