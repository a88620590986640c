from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from conftest import make_exam, make_question
from exam_app.core.errors import PersistenceFailure
from exam_app.core.models import ExamDefinition, ExamResult, Question
from exam_app.core.services.exam_repository import ExamRepository
from exam_app.core.services.leaderboard import Leaderboard

T0 = datetime(2024, 1, 1, 9, 0, tzinfo=timezone.utc)


def result(user: str, score: int, minutes: int = 0, exam_id: str = "exam-1") -> ExamResult:
    return ExamResult(
        user_id=user,
        exam_id=exam_id,
        answers={},
        score=score,
        completed_at=T0 + timedelta(minutes=minutes),
    )


def test_repository_serves_exam_by_lesson():
    repository = ExamRepository()
    repository.add_exam(make_exam(0, exam_id="a", lesson_id="l1"))
    repository.add_exam(make_exam(1, exam_id="b", lesson_id="l2"))

    assert repository.load_exam_definition("l2").id == "b"
    assert repository.get_exam("a").lesson_id == "l1"
    with pytest.raises(LookupError):
        repository.load_exam_definition("missing")
    with pytest.raises(LookupError):
        repository.get_exam("missing")


def test_repository_normalizes_text():
    repository = ExamRepository()
    question = Question(id=" q1 ", prompt="  Why?  ", choices=(" a ", "b"), correct_choice_index=0, explanation="  ")

    stored = repository.add_exam(ExamDefinition(id="x", time_limit_minutes=5, questions=(question,)))

    assert stored.questions[0] == Question(id="q1", prompt="Why?", choices=("a", "b"), correct_choice_index=0)


@pytest.mark.parametrize(
    "exam",
    [
        ExamDefinition(id="", time_limit_minutes=5, questions=()),
        ExamDefinition(id="x", time_limit_minutes=0, questions=()),
        ExamDefinition(id="x", time_limit_minutes=5, questions=(make_question("q", 0, choices=1),)),
        ExamDefinition(id="x", time_limit_minutes=5, questions=(make_question("q", 3, choices=3),)),
        ExamDefinition(id="x", time_limit_minutes=5, questions=(make_question("q", 0), make_question("q", 1))),
        ExamDefinition(
            id="x",
            time_limit_minutes=5,
            questions=(Question(id="q", prompt=" ", choices=("a", "b"), correct_choice_index=0),),
        ),
    ],
)
def test_repository_rejects_invalid_exams(exam):
    with pytest.raises(ValueError):
        ExamRepository().add_exam(exam)


def test_repository_accepts_empty_exam():
    stored = ExamRepository().add_exam(ExamDefinition(id="empty", time_limit_minutes=1, questions=()))
    assert stored.questions == ()


def test_student_results_are_newest_first():
    repository = ExamRepository()
    repository.persist_exam_result(result("ada", 40, minutes=1))
    repository.persist_exam_result(result("ada", 90, minutes=5))
    repository.persist_exam_result(result("bob", 70, minutes=3))

    assert [r.score for r in repository.get_student_results("ada")] == [90, 40]
    assert len(repository.get_results_for_exam("exam-1")) == 3


def test_repository_can_simulate_store_outage():
    repository = ExamRepository(fail_persistence=True)
    with pytest.raises(PersistenceFailure):
        repository.persist_exam_result(result("ada", 10))
    assert repository.get_student_results("ada") == []


def test_leaderboard_keeps_best_score_per_learner():
    board = Leaderboard.from_results(
        [
            result("ada", 60, minutes=1),
            result("ada", 80, minutes=2),
            result("bob", 80, minutes=1),
            result("cy", 95, minutes=9),
        ]
    )

    rows = board.get_top()

    assert [(r.rank, r.user_id, r.best_score) for r in rows] == [
        (1, "cy", 95),
        (2, "bob", 80),
        (3, "ada", 80),
    ]
    assert rows[2].attempts == 2


def test_leaderboard_tie_keeps_earliest_completion():
    board = Leaderboard.from_results([result("ada", 70, minutes=5), result("ada", 70, minutes=1)])
    assert board.get_top()[0].best_completed_at == T0 + timedelta(minutes=1)


def test_leaderboard_limit():
    board = Leaderboard.from_results([result(f"user{n}", n) for n in range(15)])
    assert len(board.get_top()) == 10
    assert [r.user_id for r in board.get_top(2)] == ["user14", "user13"]
    assert board.get_top(0) == []


def test_repository_lists_every_exam_for_a_lesson():
    repository = ExamRepository()
    repository.add_exam(make_exam(0, exam_id="midterm", lesson_id="l1"))
    repository.add_exam(make_exam(1, exam_id="other", lesson_id="l2"))
    repository.add_exam(make_exam(1, exam_id="final", lesson_id="l1"))

    assert [e.id for e in repository.list_exams_for_lesson("l1")] == ["midterm", "final"]
    assert repository.load_exam_definition("l1").id == "midterm"
    assert repository.list_exams_for_lesson("missing") == []
