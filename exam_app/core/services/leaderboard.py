"""Ranks learners by their best result on an exam."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from exam_app.constants.exam_constants import LEADERBOARD_SIZE
from exam_app.core.models import ExamResult


@dataclass(slots=True)
class LeaderboardEntry:
    """Mutable per-learner aggregate used internally."""

    user_id: str
    best_score: int
    best_completed_at: datetime
    attempts: int = 1


@dataclass(frozen=True, slots=True)
class LeaderboardRow:
    """Immutable snapshot returned to consumers."""

    rank: int
    user_id: str
    best_score: int
    attempts: int
    best_completed_at: datetime


class Leaderboard:
    """Aggregates results so each learner appears once with their best score."""

    def __init__(self) -> None:
        self._entries: dict[str, LeaderboardEntry] = {}

    @classmethod
    def from_results(cls, results: list[ExamResult]) -> "Leaderboard":
        board = cls()
        for result in results:
            board.record_result(result)
        return board

    def record_result(self, result: ExamResult) -> None:
        entry = self._entries.get(result.user_id)
        if entry is None:
            self._entries[result.user_id] = LeaderboardEntry(
                user_id=result.user_id,
                best_score=result.score,
                best_completed_at=result.completed_at,
            )
            return

        entry.attempts += 1
        # Equal scores keep the earlier completion.
        if result.score > entry.best_score or (
            result.score == entry.best_score and result.completed_at < entry.best_completed_at
        ):
            entry.best_score = result.score
            entry.best_completed_at = result.completed_at

    def get_top(self, limit: int = LEADERBOARD_SIZE) -> list[LeaderboardRow]:
        """Return the top ``limit`` learners by best score, earlier completion first on ties."""
        sorted_entries = sorted(
            self._entries.values(),
            key=lambda e: (-e.best_score, e.best_completed_at, e.user_id),
        )
        return [
            LeaderboardRow(
                rank=position,
                user_id=entry.user_id,
                best_score=entry.best_score,
                attempts=entry.attempts,
                best_completed_at=entry.best_completed_at,
            )
            for position, entry in enumerate(sorted_entries[: max(limit, 0)], start=1)
        ]

    def clear(self) -> None:
        self._entries.clear()
