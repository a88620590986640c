"""Business logic for exam attempts shared between the console and the API."""

from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
import logging
from threading import Lock
from uuid import uuid4

from exam_app.constants.exam_constants import LEADERBOARD_SIZE, TICK_INTERVAL_SECONDS
from exam_app.core.models import (
    AttemptSummary,
    ExamDefinition,
    ExamResult,
    QuestionReview,
    SessionSnapshot,
    SubmissionOutcome,
)
from exam_app.core.services.exam_repository import ExamRepository
from exam_app.core.services.exam_runner import ExamRunner
from exam_app.core.services.leaderboard import Leaderboard, LeaderboardRow

logger = logging.getLogger(__name__)


class ExamManager:
    """Facade over the exam repository, the leaderboard and live attempts.

    Each attempt has its own :class:`ExamRunner`; the manager lock only guards
    the attempt table, so attempts never block one another.
    """

    def __init__(
        self,
        repository: ExamRepository | None = None,
        tick_interval_seconds: float = TICK_INTERVAL_SECONDS,
    ) -> None:
        self._lock = Lock()
        self._repository = repository or ExamRepository()
        self._tick_interval_seconds = tick_interval_seconds
        self._persistence_executor = ThreadPoolExecutor(
            max_workers=2, thread_name_prefix="ExamPersist"
        )
        self._attempts: dict[str, ExamRunner] = {}

    # --- Exam definitions ---

    def add_exam(self, exam: ExamDefinition) -> ExamDefinition:
        return self._repository.add_exam(exam)

    def get_exam(self, exam_id: str) -> ExamDefinition:
        return self._repository.get_exam(exam_id)

    def get_exam_for_lesson(self, lesson_id: str) -> ExamDefinition:
        return self._repository.load_exam_definition(lesson_id)

    def list_exams(self) -> list[ExamDefinition]:
        return self._repository.list_exams()

    def list_exams_for_lesson(self, lesson_id: str) -> list[ExamDefinition]:
        return self._repository.list_exams_for_lesson(lesson_id)

    # --- Attempts ---

    def start_attempt(
        self,
        user_id: str,
        exam_id: str | None = None,
        lesson_id: str | None = None,
    ) -> str:
        """Start a new attempt and return its id. Raises LookupError for unknown exams."""
        if exam_id is not None:
            exam = self._repository.get_exam(exam_id)
        elif lesson_id is not None:
            exam = self._repository.load_exam_definition(lesson_id)
        else:
            raise ValueError("Either exam_id or lesson_id is required.")

        runner = ExamRunner(
            user_id=user_id,
            persist_result=self._repository.persist_exam_result,
            tick_interval_seconds=self._tick_interval_seconds,
            persistence_executor=self._persistence_executor,
        )
        runner.start(exam)
        attempt_id = uuid4().hex
        with self._lock:
            self._attempts[attempt_id] = runner
        logger.info("Attempt %s: user %s on exam %s", attempt_id, user_id, exam.id)
        return attempt_id

    def get_runner(self, attempt_id: str) -> ExamRunner:
        with self._lock:
            runner = self._attempts.get(attempt_id)
        if runner is None:
            raise LookupError(f"No attempt with id '{attempt_id}'.")
        return runner

    def answer(self, attempt_id: str, question_id: str, choice_index: int) -> None:
        self.get_runner(attempt_id).answer(question_id, choice_index)

    def navigate(self, attempt_id: str, direction: int) -> int:
        return self.get_runner(attempt_id).navigate(direction)

    def submit(self, attempt_id: str) -> SubmissionOutcome | None:
        return self.get_runner(attempt_id).submit()

    def review(self, attempt_id: str) -> list[QuestionReview]:
        return self.get_runner(attempt_id).review()

    def snapshot(self, attempt_id: str) -> SessionSnapshot:
        return self.get_runner(attempt_id).snapshot()

    def abandon_attempt(self, attempt_id: str) -> None:
        """Drop an attempt. An unfinished attempt is discarded without a result."""
        with self._lock:
            runner = self._attempts.pop(attempt_id, None)
        if runner is None:
            raise LookupError(f"No attempt with id '{attempt_id}'.")
        runner.dispose()

    def list_attempts(self) -> list[AttemptSummary]:
        with self._lock:
            attempts = list(self._attempts.items())
        summaries: list[AttemptSummary] = []
        for attempt_id, runner in attempts:
            snapshot = runner.snapshot()
            summaries.append(
                AttemptSummary(
                    attempt_id=attempt_id,
                    user_id=runner.user_id,
                    exam_id=runner.exam.id if runner.exam else "",
                    state=snapshot.state,
                    remaining_seconds=snapshot.remaining_seconds,
                    answered_count=len(snapshot.answers),
                    question_count=snapshot.question_count,
                    score=snapshot.score,
                )
            )
        return summaries

    def shutdown(self) -> None:
        with self._lock:
            runners = list(self._attempts.values())
            self._attempts.clear()
        for runner in runners:
            runner.dispose()
        self._persistence_executor.shutdown(wait=True)

    # --- Results ---

    def get_leaderboard(self, exam_id: str, limit: int = LEADERBOARD_SIZE) -> list[LeaderboardRow]:
        results = self._repository.get_results_for_exam(exam_id)
        return Leaderboard.from_results(results).get_top(limit)

    def get_student_results(self, user_id: str) -> list[ExamResult]:
        return self._repository.get_student_results(user_id)
