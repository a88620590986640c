from __future__ import annotations

from threading import Event
import time

import pytest

from conftest import RecordingStore, make_exam, wait_until
from exam_app.core.errors import InvalidInputError, InvalidStateError
from exam_app.core.models import SessionEventKind, SessionState
from exam_app.core.services.countdown import Countdown
from exam_app.core.services.exam_runner import ExamRunner

FAST_TICK = 0.005


@pytest.fixture
def runner_factory():
    runners: list[ExamRunner] = []

    def factory(store, tick=FAST_TICK) -> ExamRunner:
        runner = ExamRunner("ada", store, tick_interval_seconds=tick)
        runners.append(runner)
        return runner

    yield factory
    for runner in runners:
        runner.dispose()


def test_countdown_ticks_until_cancelled():
    ticks = []
    countdown = Countdown(lambda: ticks.append(1), interval_seconds=FAST_TICK)
    countdown.start()
    assert wait_until(lambda: len(ticks) >= 3)

    countdown.cancel()
    settled = len(ticks)
    time.sleep(FAST_TICK * 5)

    assert len(ticks) == settled
    assert not countdown.is_running()
    countdown.cancel()


def test_countdown_rejects_restart():
    countdown = Countdown(lambda: None, interval_seconds=FAST_TICK)
    countdown.start()
    with pytest.raises(RuntimeError):
        countdown.start()
    countdown.cancel()


def test_timeout_auto_submits_once_and_reaches_review(runner_factory):
    store = RecordingStore()
    runner = runner_factory(store)
    exam = make_exam(0, 1, minutes=1)

    runner.start(exam)
    runner.answer("q1", 0)

    assert wait_until(lambda: runner.snapshot().state is SessionState.REVIEWING)
    runner.wait_for_persistence(timeout=5)
    snapshot = runner.snapshot()

    assert snapshot.remaining_seconds == 0
    assert snapshot.score == 50
    assert len(store.results) == 1
    assert store.results[0].auto_submitted
    assert runner.submit() is None
    assert len(store.results) == 1


def test_manual_submit_racing_the_countdown_submits_once(runner_factory):
    store = RecordingStore()
    runner = runner_factory(store, tick=0.001)
    runner.start(make_exam(1, minutes=1))

    outcomes = [runner.submit() for _ in range(5)]

    # The countdown may win the race, in which case every manual submit is a no-op.
    assert sum(o is not None for o in outcomes) <= 1
    runner.wait_for_persistence(timeout=5)
    assert len(store.results) == 1
    assert runner.snapshot().state is SessionState.REVIEWING


def test_countdown_stops_after_submit(runner_factory):
    store = RecordingStore()
    runner = runner_factory(store, tick=0.01)
    runner.start(make_exam(0, minutes=1))
    assert wait_until(lambda: runner.snapshot().remaining_seconds < 60)

    runner.submit()
    frozen = runner.snapshot().remaining_seconds
    time.sleep(0.1)

    assert runner.snapshot().remaining_seconds == frozen


def test_errors_propagate_through_the_queue(runner_factory):
    runner = runner_factory(RecordingStore(), tick=10)
    runner.start(make_exam(0))

    with pytest.raises(InvalidInputError):
        runner.answer("q1", 7)
    with pytest.raises(InvalidStateError):
        runner.review()
    assert runner.snapshot().answers == {}


def test_persistence_failure_is_reported_without_blocking_review(runner_factory):
    store = RecordingStore(fail=True)
    runner = runner_factory(store, tick=10)
    failed = Event()
    runner.subscribe(lambda e: e.kind is SessionEventKind.PERSISTENCE_FAILED and failed.set())
    runner.start(make_exam(1, 0))
    runner.answer("q1", 1)

    outcome = runner.submit()

    assert outcome.result.score == 50
    assert runner.snapshot().state is SessionState.REVIEWING
    assert failed.wait(timeout=5)
    assert "store offline" in runner.snapshot().persistence_error
    assert [r.chosen_index for r in runner.review()] == [1, None]


def test_dispose_abandons_unfinished_attempt(runner_factory):
    store = RecordingStore()
    runner = runner_factory(store, tick=10)
    events = []
    runner.subscribe(events.append)
    runner.start(make_exam(0))
    runner.answer("q1", 0)

    runner.dispose()

    assert store.results == []
    assert events[-1].state is SessionState.ABANDONED
    with pytest.raises(RuntimeError):
        runner.snapshot()


def test_finished_attempt_releases_its_command_thread(runner_factory):
    store = RecordingStore()
    runner = runner_factory(store, tick=10)
    runner.start(make_exam(1, 0))
    runner.answer("q1", 1)
    (worker,) = runner._commands._threads
    assert worker.is_alive()

    runner.submit()

    assert wait_until(lambda: not worker.is_alive())
    snapshot = runner.snapshot()
    assert snapshot.state is SessionState.REVIEWING
    assert snapshot.score == 50
    assert [r.chosen_index for r in runner.review()] == [1, None]
    assert runner.submit() is None
    runner.wait_for_persistence(timeout=5)
    assert len(store.results) == 1


def test_persistence_failure_is_recorded_after_the_queue_is_released(runner_factory):
    release_store = Event()

    def slow_failing_store(result):
        release_store.wait(timeout=5)
        raise ConnectionError("store offline")

    runner = runner_factory(slow_failing_store, tick=10)
    runner.start(make_exam(0))
    runner.submit()
    assert wait_until(lambda: runner._commands is None)

    release_store.set()

    assert wait_until(lambda: runner.snapshot().persistence_error is not None)
    assert "store offline" in runner.snapshot().persistence_error


def test_dispose_after_review_is_quiet(runner_factory):
    store = RecordingStore()
    runner = runner_factory(store, tick=10)
    runner.start(make_exam(0))
    runner.submit()

    runner.dispose()
    runner.dispose()

    assert len(store.results) == 1
    with pytest.raises(RuntimeError):
        runner.review()
