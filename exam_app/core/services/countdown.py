"""Cancelable once-per-interval ticker owned by a single exam attempt."""

from __future__ import annotations

import logging
from threading import Event, Lock, Thread, current_thread
from typing import Callable

from exam_app.constants.exam_constants import TICK_INTERVAL_SECONDS

logger = logging.getLogger(__name__)


class Countdown:
    """Calls ``on_tick`` every ``interval_seconds`` on a daemon thread until cancelled."""

    def __init__(
        self,
        on_tick: Callable[[], None],
        interval_seconds: float = TICK_INTERVAL_SECONDS,
        name: str = "ExamCountdown",
    ) -> None:
        if interval_seconds <= 0:
            raise ValueError("Countdown interval must be positive.")
        self._on_tick = on_tick
        self._interval_seconds = interval_seconds
        self._name = name
        self._cancelled = Event()
        self._lock = Lock()
        self._thread: Thread | None = None

    def start(self) -> None:
        with self._lock:
            if self._thread is not None:
                raise RuntimeError("Countdown already started.")
            if self._cancelled.is_set():
                raise RuntimeError("Countdown was cancelled and cannot be restarted.")
            self._thread = Thread(target=self._run, name=self._name, daemon=True)
            self._thread.start()

    def cancel(self) -> None:
        """Stop ticking. Idempotent and safe to call from the tick callback."""
        self._cancelled.set()
        with self._lock:
            thread = self._thread
        if thread is not None and thread is not current_thread():
            thread.join(timeout=self._interval_seconds * 2)

    def is_running(self) -> bool:
        with self._lock:
            return self._thread is not None and not self._cancelled.is_set()

    def _run(self) -> None:
        # Event.wait returns True once cancel() was called.
        while not self._cancelled.wait(self._interval_seconds):
            try:
                self._on_tick()
            except Exception:
                logger.exception("Countdown tick callback failed; stopping %s", self._name)
                self._cancelled.set()
