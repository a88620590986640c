"""Domain models for timed exam attempts."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum

from exam_app.core.errors import PersistenceFailure


@dataclass(frozen=True, slots=True)
class Question:
    """Multiple-choice question; choice order defines the labels A, B, C..."""

    id: str
    prompt: str
    choices: tuple[str, ...]
    correct_choice_index: int
    explanation: str | None = None

    @property
    def choice_count(self) -> int:
        return len(self.choices)


@dataclass(frozen=True, slots=True)
class ExamDefinition:
    """A timed exam: an ordered set of questions and a limit in whole minutes."""

    id: str
    time_limit_minutes: int
    questions: tuple[Question, ...]
    lesson_id: str | None = None

    @property
    def time_limit_seconds(self) -> int:
        return self.time_limit_minutes * 60

    def find_question(self, question_id: str) -> Question | None:
        return next((q for q in self.questions if q.id == question_id), None)


# Question id -> chosen choice index
AnswerSet = dict[str, int]


@dataclass(frozen=True, slots=True)
class ExamResult:
    """Final, immutable outcome of one attempt."""

    user_id: str
    exam_id: str
    answers: dict[str, int]
    score: int
    completed_at: datetime
    auto_submitted: bool = False


@dataclass(frozen=True, slots=True)
class QuestionReview:
    """Per-question review line shown once the attempt is over."""

    question_id: str
    prompt: str
    choices: tuple[str, ...]
    chosen_index: int | None
    correct_index: int
    explanation: str | None

    @property
    def is_answered(self) -> bool:
        return self.chosen_index is not None

    @property
    def is_correct(self) -> bool:
        return self.chosen_index == self.correct_index


@dataclass(frozen=True, slots=True)
class SubmissionOutcome:
    """Result of a submission plus any persistence failure that came with it."""

    result: ExamResult
    persistence_error: PersistenceFailure | None = None

    @property
    def persisted(self) -> bool:
        return self.persistence_error is None


class SessionState(str, Enum):
    NOT_STARTED = "not_started"
    ACTIVE = "active"
    SUBMITTING = "submitting"
    REVIEWING = "reviewing"
    ABANDONED = "abandoned"


class SessionEventKind(str, Enum):
    STATE_CHANGED = "state_changed"
    TICKED = "ticked"
    ANSWERED = "answered"
    NAVIGATED = "navigated"
    PERSISTENCE_FAILED = "persistence_failed"


@dataclass(frozen=True, slots=True)
class SessionEvent:
    """Notification emitted for a presentation layer to render."""

    kind: SessionEventKind
    state: SessionState
    remaining_seconds: int
    cursor: int
    detail: dict[str, object] = field(default_factory=dict)


@dataclass(frozen=True, slots=True)
class SessionSnapshot:
    """Point-in-time copy of a session's observable state."""

    state: SessionState
    remaining_seconds: int
    cursor: int
    question_count: int
    current_question: Question | None
    answers: dict[str, int]
    score: int | None = None
    persistence_error: str | None = None


@dataclass(slots=True)
class AttemptSummary:
    """Snapshot of a live attempt for the instructor console."""

    attempt_id: str
    user_id: str
    exam_id: str
    state: SessionState
    remaining_seconds: int
    answered_count: int
    question_count: int
    score: int | None = None
