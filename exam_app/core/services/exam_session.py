"""State machine for a single timed exam attempt."""

from __future__ import annotations

from datetime import datetime, timezone
import logging
from typing import Callable

from exam_app.core.errors import InvalidInputError, InvalidStateError, PersistenceFailure
from exam_app.core.models import (
    AnswerSet,
    ExamDefinition,
    ExamResult,
    Question,
    QuestionReview,
    SessionEvent,
    SessionEventKind,
    SessionState,
    SubmissionOutcome,
)

logger = logging.getLogger(__name__)

ResultPersister = Callable[[ExamResult], object]
SessionListener = Callable[[SessionEvent], None]


def compute_score(questions: tuple[Question, ...], answers: AnswerSet) -> int:
    """Percentage of correctly answered questions, rounded half up.

    Unanswered questions stay in the denominator. An empty exam scores 0.
    """
    total = len(questions)
    if total == 0:
        return 0
    correct = sum(1 for q in questions if answers.get(q.id) == q.correct_choice_index)
    return (200 * correct + total) // (2 * total)


class ExamSession:
    """Owns one learner's attempt: NOT_STARTED -> ACTIVE -> SUBMITTING -> REVIEWING.

    The session is not thread-safe. Callers must serialize access, which
    :class:`~exam_app.core.services.exam_runner.ExamRunner` does with a single
    command queue.
    """

    def __init__(
        self,
        user_id: str,
        persist_result: ResultPersister,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self.user_id = user_id
        self._persist_result = persist_result
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self._listeners: list[SessionListener] = []

        self._state = SessionState.NOT_STARTED
        self._exam: ExamDefinition | None = None
        self._answers: AnswerSet = {}
        self._remaining_seconds: int = 0
        self._cursor: int = 0
        self._result: ExamResult | None = None
        self._persistence_error: PersistenceFailure | None = None

    # --- Read-only state ---

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def exam(self) -> ExamDefinition | None:
        return self._exam

    @property
    def remaining_seconds(self) -> int:
        return self._remaining_seconds

    @property
    def cursor(self) -> int:
        return self._cursor

    @property
    def question_count(self) -> int:
        return len(self._exam.questions) if self._exam else 0

    @property
    def current_question(self) -> Question | None:
        if not self._exam or not self._exam.questions:
            return None
        return self._exam.questions[self._cursor]

    @property
    def answers(self) -> AnswerSet:
        return dict(self._answers)

    @property
    def result(self) -> ExamResult | None:
        return self._result

    @property
    def persistence_error(self) -> PersistenceFailure | None:
        return self._persistence_error

    def is_terminal(self) -> bool:
        return self._state in (SessionState.REVIEWING, SessionState.ABANDONED)

    def subscribe(self, listener: SessionListener) -> None:
        self._listeners.append(listener)

    # --- Transitions ---

    def start(self, exam: ExamDefinition) -> None:
        self._require(SessionState.NOT_STARTED, "start")
        self._exam = exam
        self._answers = {}
        self._remaining_seconds = exam.time_limit_seconds
        self._cursor = 0
        logger.info(
            "User %s started exam %s (%d questions, %d s)",
            self.user_id,
            exam.id,
            len(exam.questions),
            self._remaining_seconds,
        )
        self._set_state(SessionState.ACTIVE)

    def tick(self) -> SubmissionOutcome | None:
        """Advance the countdown by one second; auto-submits when it hits zero."""
        self._require(SessionState.ACTIVE, "tick")
        self._remaining_seconds = max(self._remaining_seconds - 1, 0)
        self._emit(SessionEventKind.TICKED)
        if self._remaining_seconds == 0:
            logger.info("Time is up for user %s on exam %s", self.user_id, self._exam.id)
            return self._finalize(auto_submitted=True)
        return None

    def answer(self, question_id: str, choice_index: int) -> None:
        self._require(SessionState.ACTIVE, "answer")
        question = self._exam.find_question(question_id)
        if question is None:
            raise InvalidInputError(f"Unknown question '{question_id}'.")
        if isinstance(choice_index, bool) or not isinstance(choice_index, int):
            raise InvalidInputError("Choice index must be an integer.")
        if not 0 <= choice_index < question.choice_count:
            raise InvalidInputError(
                f"Choice index {choice_index} out of range for question '{question_id}' "
                f"({question.choice_count} choices)."
            )
        self._answers[question_id] = choice_index
        self._emit(SessionEventKind.ANSWERED, question_id=question_id, choice_index=choice_index)

    def navigate(self, direction: int) -> int:
        """Move the cursor one step towards ``direction``; clamped, never wraps."""
        step = (direction > 0) - (direction < 0)
        last_index = max(self.question_count - 1, 0)
        self._cursor = min(max(self._cursor + step, 0), last_index)
        self._emit(SessionEventKind.NAVIGATED)
        return self._cursor

    def submit(self) -> SubmissionOutcome | None:
        """Finalize the attempt. Calls after the first submission are no-ops."""
        if self._state in (SessionState.SUBMITTING, SessionState.REVIEWING):
            logger.debug("Ignoring repeated submit for user %s", self.user_id)
            return None
        self._require(SessionState.ACTIVE, "submit")
        return self._finalize(auto_submitted=False)

    def review(self) -> list[QuestionReview]:
        self._require(SessionState.REVIEWING, "review")
        return [
            QuestionReview(
                question_id=q.id,
                prompt=q.prompt,
                choices=q.choices,
                chosen_index=self._result.answers.get(q.id),
                correct_index=q.correct_choice_index,
                explanation=q.explanation,
            )
            for q in self._exam.questions
        ]

    def abandon(self) -> None:
        """Discard the attempt without persisting anything."""
        if self._state not in (SessionState.NOT_STARTED, SessionState.ACTIVE):
            raise InvalidStateError(f"Cannot abandon a session that is {self._state.value}.")
        self._answers = {}
        logger.info("User %s abandoned their attempt", self.user_id)
        self._set_state(SessionState.ABANDONED)

    def record_persistence_failure(self, error: BaseException) -> PersistenceFailure:
        """Attach a persistence failure to the session without changing its state."""
        if isinstance(error, PersistenceFailure):
            failure = error
        else:
            failure = PersistenceFailure(f"Could not persist exam result: {error}")
            failure.__cause__ = error
        self._persistence_error = failure
        logger.warning(
            "Persisting result for user %s on exam %s failed: %s",
            self.user_id,
            self._exam.id if self._exam else None,
            failure,
        )
        self._emit(SessionEventKind.PERSISTENCE_FAILED, error=str(failure))
        return failure

    # --- Internals ---

    def _finalize(self, auto_submitted: bool) -> SubmissionOutcome:
        score = compute_score(self._exam.questions, self._answers)
        result = ExamResult(
            user_id=self.user_id,
            exam_id=self._exam.id,
            answers=dict(self._answers),
            score=score,
            completed_at=self._clock(),
            auto_submitted=auto_submitted,
        )
        self._result = result
        logger.info(
            "User %s submitted exam %s with score %d (auto=%s)",
            self.user_id,
            self._exam.id,
            score,
            auto_submitted,
        )

        failure: PersistenceFailure | None = None
        try:
            self._set_state(SessionState.SUBMITTING)
            self._persist_result(result)
        except Exception as exc:  # collaborator boundary; reported, never fatal
            failure = self.record_persistence_failure(exc)
        finally:
            self._set_state(SessionState.REVIEWING)
        return SubmissionOutcome(result=result, persistence_error=failure)

    def _require(self, expected: SessionState, operation: str) -> None:
        if self._state is not expected:
            raise InvalidStateError(
                f"Cannot {operation} while the session is {self._state.value}."
            )

    def _set_state(self, state: SessionState) -> None:
        self._state = state
        self._emit(SessionEventKind.STATE_CHANGED)

    def _emit(self, kind: SessionEventKind, **detail: object) -> None:
        if not self._listeners:
            return
        event = SessionEvent(
            kind=kind,
            state=self._state,
            remaining_seconds=self._remaining_seconds,
            cursor=self._cursor,
            detail=detail,
        )
        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception:
                logger.exception("Session listener failed on %s event", kind.value)
