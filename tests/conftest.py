from __future__ import annotations

import time

import pytest

from exam_app.core.models import ExamDefinition, Question


def make_question(question_id: str, correct: int, choices: int = 3, explanation: str | None = None) -> Question:
    return Question(
        id=question_id,
        prompt=f"Prompt for {question_id}",
        choices=tuple(f"choice {i}" for i in range(choices)),
        correct_choice_index=correct,
        explanation=explanation,
    )


def make_exam(*correct_indices: int, minutes: int = 1, exam_id: str = "exam-1", lesson_id: str = "lesson-1") -> ExamDefinition:
    return ExamDefinition(
        id=exam_id,
        time_limit_minutes=minutes,
        questions=tuple(make_question(f"q{n}", correct) for n, correct in enumerate(correct_indices, start=1)),
        lesson_id=lesson_id,
    )


def wait_until(predicate, timeout: float = 5.0) -> bool:
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.01)
    return predicate()


class RecordingStore:
    """Persist collaborator that remembers every call and can be told to fail."""

    def __init__(self, fail: bool = False) -> None:
        self.fail = fail
        self.results = []

    def __call__(self, result) -> None:
        self.results.append(result)
        if self.fail:
            raise ConnectionError("store offline")


@pytest.fixture
def store() -> RecordingStore:
    return RecordingStore()


@pytest.fixture
def two_question_exam() -> ExamDefinition:
    return make_exam(1, 0)
