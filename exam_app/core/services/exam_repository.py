"""In-memory store for exam definitions and submitted results."""

from __future__ import annotations

import logging
from threading import Lock

from exam_app.constants.exam_constants import MAX_CHOICES_PER_QUESTION, MIN_CHOICES_PER_QUESTION
from exam_app.core.errors import PersistenceFailure
from exam_app.core.models import ExamDefinition, ExamResult, Question

logger = logging.getLogger(__name__)


class ExamRepository:
    """Serves exam definitions by lesson and records finished attempts."""

    def __init__(self, fail_persistence: bool = False) -> None:
        self._lock = Lock()
        self._exams: dict[str, ExamDefinition] = {}
        self._results: list[ExamResult] = []
        self.fail_persistence = fail_persistence

    def add_exam(self, exam: ExamDefinition) -> ExamDefinition:
        """Validate and register an exam, replacing any exam with the same id."""
        prepared = self._prepare_exam(exam)
        with self._lock:
            self._exams[prepared.id] = prepared
        logger.info("Registered exam %s with %d questions", prepared.id, len(prepared.questions))
        return prepared

    def get_exam(self, exam_id: str) -> ExamDefinition:
        with self._lock:
            exam = self._exams.get(exam_id)
        if exam is None:
            raise LookupError(f"No exam with id '{exam_id}'.")
        return exam

    def list_exams(self) -> list[ExamDefinition]:
        with self._lock:
            return list(self._exams.values())

    def list_exams_for_lesson(self, lesson_id: str) -> list[ExamDefinition]:
        """All exams attached to ``lesson_id``, in registration order."""
        with self._lock:
            return [e for e in self._exams.values() if e.lesson_id == lesson_id]

    def load_exam_definition(self, lesson_id: str) -> ExamDefinition:
        """Return the first exam registered for ``lesson_id``."""
        exams = self.list_exams_for_lesson(lesson_id)
        if not exams:
            raise LookupError(f"No exam for lesson '{lesson_id}'.")
        return exams[0]

    def persist_exam_result(self, result: ExamResult) -> None:
        if self.fail_persistence:
            raise PersistenceFailure(f"Result store rejected result for exam {result.exam_id}.")
        with self._lock:
            self._results.append(result)
        logger.info("Stored result %d for user %s on exam %s", result.score, result.user_id, result.exam_id)

    def get_student_results(self, user_id: str) -> list[ExamResult]:
        """Results for one learner, newest first."""
        with self._lock:
            results = [r for r in self._results if r.user_id == user_id]
        return sorted(results, key=lambda r: r.completed_at, reverse=True)

    def get_results_for_exam(self, exam_id: str) -> list[ExamResult]:
        with self._lock:
            return [r for r in self._results if r.exam_id == exam_id]

    def clear(self) -> None:
        with self._lock:
            self._exams.clear()
            self._results.clear()

    def _prepare_exam(self, exam: ExamDefinition) -> ExamDefinition:
        exam_id = exam.id.strip()
        if not exam_id:
            raise ValueError("Exam id must not be empty.")
        if not isinstance(exam.time_limit_minutes, int) or exam.time_limit_minutes <= 0:
            raise ValueError("Time limit must be a positive whole number of minutes.")

        questions = tuple(self._prepare_question(q) for q in exam.questions)
        ids = [q.id for q in questions]
        if len(set(ids)) != len(ids):
            raise ValueError(f"Exam '{exam_id}' contains duplicate question ids.")

        return ExamDefinition(
            id=exam_id,
            time_limit_minutes=exam.time_limit_minutes,
            questions=questions,
            lesson_id=exam.lesson_id,
        )

    @staticmethod
    def _prepare_question(question: Question) -> Question:
        question_id = question.id.strip()
        if not question_id:
            raise ValueError("Question id must not be empty.")
        prompt = question.prompt.strip()
        if not prompt:
            raise ValueError(f"Question '{question_id}' has no prompt.")

        choices = tuple(choice.strip() for choice in question.choices)
        if not MIN_CHOICES_PER_QUESTION <= len(choices) <= MAX_CHOICES_PER_QUESTION:
            raise ValueError(
                f"Question '{question_id}' needs between {MIN_CHOICES_PER_QUESTION} "
                f"and {MAX_CHOICES_PER_QUESTION} choices."
            )
        if any(not choice for choice in choices):
            raise ValueError(f"Question '{question_id}' has an empty choice.")
        if not 0 <= question.correct_choice_index < len(choices):
            raise ValueError(f"Question '{question_id}' has an out-of-range correct choice.")

        explanation = question.explanation.strip() if question.explanation else None
        return Question(
            id=question_id,
            prompt=prompt,
            choices=choices,
            correct_choice_index=question.correct_choice_index,
            explanation=explanation or None,
        )
