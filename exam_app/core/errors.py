"""Exceptions raised by exam sessions and their collaborators."""

from __future__ import annotations


class ExamError(Exception):
    """Base class for exam session errors."""


class InvalidStateError(ExamError):
    """Raised when an operation is not valid for the session's current state."""


class InvalidInputError(ExamError):
    """Raised when an answer refers to an unknown question or choice."""


class PersistenceFailure(ExamError):
    """Raised or reported when an exam result could not be stored."""
