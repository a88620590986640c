from __future__ import annotations

import threading
import time

import pytest

from conftest import make_exam, wait_until
from exam_app.core.errors import InvalidStateError
from exam_app.core.exam_manager import ExamManager
from exam_app.core.models import SessionState
from exam_app.core.services.exam_repository import ExamRepository


@pytest.fixture
def manager():
    exam_manager = ExamManager(tick_interval_seconds=10)
    exam_manager.add_exam(make_exam(1, 0, exam_id="exam-1", lesson_id="lesson-1"))
    yield exam_manager
    exam_manager.shutdown()


def wait_for_results(manager: ExamManager, exam_id: str, count: int) -> None:
    deadline = time.monotonic() + 5
    while len(manager.get_leaderboard(exam_id, limit=count)) < count and time.monotonic() < deadline:
        time.sleep(0.01)


def test_attempts_are_independent(manager):
    first = manager.start_attempt("ada", exam_id="exam-1")
    second = manager.start_attempt("bob", lesson_id="lesson-1")

    manager.answer(first, "q1", 1)
    manager.answer(first, "q2", 0)
    manager.answer(second, "q1", 0)
    manager.submit(first)

    assert manager.snapshot(first).state is SessionState.REVIEWING
    assert manager.snapshot(second).state is SessionState.ACTIVE
    assert manager.snapshot(second).answers == {"q1": 0}


def test_leaderboard_and_history_after_submissions(manager):
    for user, answers in (("ada", {"q1": 1, "q2": 0}), ("bob", {"q1": 1})):
        attempt = manager.start_attempt(user, exam_id="exam-1")
        for question_id, choice in answers.items():
            manager.answer(attempt, question_id, choice)
        manager.submit(attempt)

    wait_for_results(manager, "exam-1", 2)

    rows = manager.get_leaderboard("exam-1")
    assert [(r.user_id, r.best_score) for r in rows] == [("ada", 100), ("bob", 50)]
    assert [r.score for r in manager.get_student_results("bob")] == [50]


def test_abandoned_attempt_leaves_no_result(manager):
    attempt = manager.start_attempt("ada", exam_id="exam-1")
    manager.answer(attempt, "q1", 1)

    manager.abandon_attempt(attempt)

    assert manager.get_student_results("ada") == []
    with pytest.raises(LookupError):
        manager.snapshot(attempt)


def test_unknown_exam_or_attempt(manager):
    with pytest.raises(LookupError):
        manager.start_attempt("ada", exam_id="nope")
    with pytest.raises(LookupError):
        manager.start_attempt("ada", lesson_id="nope")
    with pytest.raises(ValueError):
        manager.start_attempt("ada")
    with pytest.raises(LookupError):
        manager.submit("missing")


def test_list_attempts_summaries(manager):
    attempt = manager.start_attempt("ada", exam_id="exam-1")
    manager.answer(attempt, "q2", 0)

    [summary] = manager.list_attempts()

    assert summary.attempt_id == attempt
    assert summary.exam_id == "exam-1"
    assert summary.answered_count == 1
    assert summary.question_count == 2
    assert summary.remaining_seconds == 60
    assert summary.score is None


def test_review_requires_submission(manager):
    attempt = manager.start_attempt("ada", exam_id="exam-1")
    with pytest.raises(InvalidStateError):
        manager.review(attempt)


def test_failed_store_still_scores_locally():
    exam_manager = ExamManager(repository=ExamRepository(fail_persistence=True), tick_interval_seconds=10)
    try:
        exam_manager.add_exam(make_exam(1, exam_id="e"))
        attempt = exam_manager.start_attempt("ada", exam_id="e")
        exam_manager.answer(attempt, "q1", 1)

        outcome = exam_manager.submit(attempt)

        assert outcome.result.score == 100
        assert exam_manager.snapshot(attempt).state is SessionState.REVIEWING
        assert exam_manager.get_student_results("ada") == []
    finally:
        exam_manager.shutdown()


def test_submitted_attempts_do_not_keep_threads_alive(manager):
    baseline = threading.active_count()

    attempts = []
    for n in range(20):
        attempt = manager.start_attempt(f"learner-{n}", exam_id="exam-1")
        manager.answer(attempt, "q1", 1)
        manager.submit(attempt)
        attempts.append(attempt)

    wait_for_results(manager, "exam-1", 20)
    # Only the shared persistence workers may remain.
    assert wait_until(lambda: threading.active_count() <= baseline + 2)
    assert {manager.snapshot(a).state for a in attempts} == {SessionState.REVIEWING}
    assert len(manager.list_attempts()) == 20
    assert manager.review(attempts[0])[0].chosen_index == 1
