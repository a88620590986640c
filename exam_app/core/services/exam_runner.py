"""Drives an exam session from one serialized command queue."""

from __future__ import annotations

from concurrent.futures import Future, ThreadPoolExecutor
from datetime import datetime
import logging
from threading import Lock, RLock
from typing import Callable, TypeVar

from exam_app.constants.exam_constants import TICK_INTERVAL_SECONDS
from exam_app.core.models import (
    ExamDefinition,
    ExamResult,
    QuestionReview,
    SessionEvent,
    SessionEventKind,
    SessionSnapshot,
    SessionState,
    SubmissionOutcome,
)
from exam_app.core.services.countdown import Countdown
from exam_app.core.services.exam_session import ExamSession, ResultPersister, SessionListener

logger = logging.getLogger(__name__)

T = TypeVar("T")


class ExamRunner:
    """Runs one attempt: user calls and countdown ticks share a single worker.

    Every operation is queued on a one-thread executor, so ticks, answers and
    submissions never interleave and a timeout cannot race a manual submit.
    Results are handed to a background executor; a slow or failing store never
    holds the session back from REVIEWING.

    Once the attempt is over the worker is shut down and the remaining calls
    (snapshot, review, a late persistence failure) run inline under a lock.

    Listeners run on the worker thread and must not call back into the runner.
    """

    def __init__(
        self,
        user_id: str,
        persist_result: ResultPersister,
        tick_interval_seconds: float = TICK_INTERVAL_SECONDS,
        persistence_executor: ThreadPoolExecutor | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self.user_id = user_id
        self._persist_result = persist_result
        self._tick_interval_seconds = tick_interval_seconds
        self._owns_persistence_executor = persistence_executor is None
        self._persistence_executor = persistence_executor or ThreadPoolExecutor(
            max_workers=1, thread_name_prefix="ExamPersist"
        )
        self._lock = Lock()
        self._run_lock = RLock()
        self._commands: ThreadPoolExecutor | None = ThreadPoolExecutor(
            max_workers=1, thread_name_prefix="ExamCommands"
        )
        self._countdown: Countdown | None = None
        self._pending_persistence: Future | None = None
        self._listeners: list[SessionListener] = []
        self._disposed = False

        self._session = ExamSession(user_id, self._hand_off_result, clock=clock)
        self._session.subscribe(self._on_session_event)

    # --- Public operations (each runs on the command queue) ---

    def start(self, exam: ExamDefinition) -> None:
        self._call(self._start_command, exam)

    def answer(self, question_id: str, choice_index: int) -> None:
        self._call(self._session.answer, question_id, choice_index)

    def navigate(self, direction: int) -> int:
        return self._call(self._session.navigate, direction)

    def submit(self) -> SubmissionOutcome | None:
        return self._call(self._session.submit)

    def review(self) -> list[QuestionReview]:
        return self._call(self._session.review)

    def snapshot(self) -> SessionSnapshot:
        return self._call(self._snapshot_command)

    def subscribe(self, listener: SessionListener) -> None:
        self._listeners.append(listener)

    @property
    def exam(self) -> ExamDefinition | None:
        return self._session.exam

    def wait_for_persistence(self, timeout: float | None = None) -> ExamResult | None:
        """Block until the handed-off result has been stored; re-raises store errors."""
        future = self._pending_persistence
        if future is None:
            return None
        future.result(timeout=timeout)
        return self._session.result

    def dispose(self) -> None:
        """Release the countdown and the queue; an unfinished attempt is abandoned."""
        if self._disposed:
            return
        self._cancel_countdown()
        self._call(self._abandon_if_open)
        self._disposed = True
        self._release_commands(wait=True)
        if self._owns_persistence_executor:
            self._persistence_executor.shutdown(wait=True)

    # --- Commands ---

    def _start_command(self, exam: ExamDefinition) -> None:
        self._session.start(exam)
        self._countdown = Countdown(
            self._enqueue_tick,
            interval_seconds=self._tick_interval_seconds,
            name=f"ExamCountdown-{self.user_id}",
        )
        self._countdown.start()

    def _tick_command(self) -> None:
        # Ticks queued before the countdown was cancelled arrive late; drop them.
        if self._session.state is SessionState.ACTIVE:
            self._session.tick()

    def _snapshot_command(self) -> SessionSnapshot:
        session = self._session
        result = session.result
        error = session.persistence_error
        return SessionSnapshot(
            state=session.state,
            remaining_seconds=session.remaining_seconds,
            cursor=session.cursor,
            question_count=session.question_count,
            current_question=session.current_question,
            answers=session.answers,
            score=result.score if result else None,
            persistence_error=str(error) if error else None,
        )

    def _abandon_if_open(self) -> None:
        if self._session.state in (SessionState.NOT_STARTED, SessionState.ACTIVE):
            self._session.abandon()

    # --- Plumbing ---

    def _call(self, fn: Callable[..., T], *args: object) -> T:
        with self._lock:
            if self._disposed:
                raise RuntimeError("Exam runner has been disposed.")
            commands = self._commands
            if commands is not None:
                future = commands.submit(self._run_serialized, fn, *args)
        if commands is None:
            return self._run_serialized(fn, *args)
        return future.result()

    def _dispatch(self, fn: Callable[..., object], *args: object) -> None:
        """Run ``fn`` in order with other commands without waiting for it."""
        with self._lock:
            commands = self._commands
            if commands is not None:
                commands.submit(self._run_serialized, fn, *args).add_done_callback(
                    self._log_failed_command
                )
                return
        try:
            self._run_serialized(fn, *args)
        except Exception:
            logger.exception("Exam command %s failed", getattr(fn, "__name__", fn))

    def _run_serialized(self, fn: Callable[..., T], *args: object) -> T:
        with self._run_lock:
            return fn(*args)

    def _release_commands(self, wait: bool) -> None:
        # Finished attempts run their few remaining commands inline, so no
        # worker thread outlives the session.
        with self._lock:
            commands, self._commands = self._commands, None
        if commands is not None:
            commands.shutdown(wait=wait)
            logger.debug("Released command queue for user %s", self.user_id)

    def _enqueue_tick(self) -> None:
        # Runs on the countdown thread; never wait here or cancel() could block.
        self._dispatch(self._tick_command)

    @staticmethod
    def _log_failed_command(future: Future) -> None:
        exc = future.exception()
        if exc is not None:
            logger.error("Exam command failed: %s", exc)

    def _hand_off_result(self, result: ExamResult) -> None:
        future = self._persistence_executor.submit(self._persist_result, result)
        self._pending_persistence = future
        future.add_done_callback(self._on_persisted)

    def _on_persisted(self, future: Future) -> None:
        exc = future.exception()
        if exc is None:
            logger.debug("Stored result for user %s", self.user_id)
            return
        if self._disposed:
            logger.warning("Persisting result for user %s failed after disposal: %s", self.user_id, exc)
            return
        self._dispatch(self._session.record_persistence_failure, exc)

    def _on_session_event(self, event: SessionEvent) -> None:
        if event.kind is SessionEventKind.STATE_CHANGED and event.state is not SessionState.ACTIVE:
            self._cancel_countdown()
            if event.state in (SessionState.REVIEWING, SessionState.ABANDONED):
                self._release_commands(wait=False)
        for listener in list(self._listeners):
            listener(event)

    def _cancel_countdown(self) -> None:
        if self._countdown is not None:
            self._countdown.cancel()
