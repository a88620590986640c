"""Exam-related constants shared across UI, server and core layers."""

TICK_INTERVAL_SECONDS: float = 1.0
DEFAULT_TIME_LIMIT_MINUTES: int = 30
MIN_CHOICES_PER_QUESTION: int = 2
MAX_CHOICES_PER_QUESTION: int = 26
LEADERBOARD_SIZE: int = 10
