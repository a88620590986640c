"""Utilities for importing exams from a human-friendly text file.

File format: a header block, then one block per question. Blocks are
separated by blank lines or '---'.

    EXAM: algebra-1
    LESSON: lesson-7        (optional)
    TIMELIMIT: 15           (whole minutes)
    ---
    ID: q1                  (optional, defaults to q<n>)
    Q: Question text (supports markdown + LaTeX). Additional lines until the
       next marker are treated as part of the question.
    A: First option
    B: Second option
    C: Third option         (two to twenty-six options, A..Z, in order)
    CORRECT: B
    EXPLANATION: Shown during review. Continuation lines are allowed.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
import string

from exam_app.constants.exam_constants import MAX_CHOICES_PER_QUESTION, MIN_CHOICES_PER_QUESTION
from exam_app.core.models import ExamDefinition, Question


class ExamImportError(Exception):
    """Raised when an exam definition cannot be parsed."""


@dataclass(slots=True)
class ImportedExam:
    """Container for the source file and the parsed exam."""

    source_path: Path
    exam: ExamDefinition


_OPTION_ORDER = list(string.ascii_uppercase[:MAX_CHOICES_PER_QUESTION])
_HEADER_KEYS = ("EXAM:", "LESSON:", "TIMELIMIT:")


def load_exam_from_file(file_path: Path) -> ImportedExam:
    text = file_path.read_text(encoding="utf-8")
    return ImportedExam(source_path=file_path, exam=parse_exam_text(text))


def parse_exam_text(text: str) -> ExamDefinition:
    blocks = _split_blocks(text)
    if not blocks:
        raise ExamImportError("Exam file is empty.")

    exam_id, lesson_id, time_limit = _parse_header(blocks[0])
    questions = tuple(
        _parse_question(block, position) for position, block in enumerate(blocks[1:], start=1)
    )
    seen: set[str] = set()
    for question in questions:
        if question.id in seen:
            raise ExamImportError(f"Duplicate question id '{question.id}'.")
        seen.add(question.id)

    return ExamDefinition(
        id=exam_id,
        time_limit_minutes=time_limit,
        questions=questions,
        lesson_id=lesson_id,
    )


def _split_blocks(text: str) -> list[str]:
    blocks: list[str] = []
    current_block: list[str] = []
    for raw_line in text.splitlines():
        stripped = raw_line.strip()
        if stripped == "---" or not stripped:
            if current_block:
                blocks.append("\n".join(current_block).strip())
                current_block = []
            continue
        current_block.append(raw_line)
    if current_block:
        blocks.append("\n".join(current_block).strip())
    return blocks


def _parse_header(block: str) -> tuple[str, str | None, int]:
    exam_id: str | None = None
    lesson_id: str | None = None
    time_limit: int | None = None

    for raw_line in block.splitlines():
        line = raw_line.strip()
        upper = line.upper()
        value = line.split(":", 1)[1].strip() if ":" in line else ""
        if upper.startswith("EXAM:"):
            exam_id = value
        elif upper.startswith("LESSON:"):
            lesson_id = value or None
        elif upper.startswith("TIMELIMIT:"):
            time_limit = _parse_time_limit(value)
        else:
            raise ExamImportError(
                f"Header must start with {', '.join(_HEADER_KEYS)}; found '{line}'."
            )

    if not exam_id:
        raise ExamImportError("Header is missing EXAM: <id>.")
    if time_limit is None:
        raise ExamImportError("Header is missing TIMELIMIT: <minutes>.")
    return exam_id, lesson_id, time_limit


def _parse_time_limit(raw_value: str) -> int:
    if not raw_value:
        raise ExamImportError("TIMELIMIT must include an integer value.")
    try:
        minutes = int(raw_value)
    except ValueError as exc:
        raise ExamImportError("TIMELIMIT must be a whole number of minutes.") from exc
    if minutes <= 0:
        raise ExamImportError("TIMELIMIT must be a positive integer.")
    return minutes


def _parse_question(block: str, position: int) -> Question:
    question_id: str | None = None
    question_lines: list[str] = []
    options: dict[str, str] = {}
    explanation_lines: list[str] = []
    correct_letter: str | None = None
    current_section: str | None = None

    for raw_line in block.splitlines():
        line = raw_line.strip()
        upper = line.upper()

        if upper.startswith("ID:"):
            question_id = line[3:].strip()
            current_section = None
        elif upper.startswith("Q:"):
            question_lines = [line[2:].strip()]
            current_section = "Q"
        elif upper.startswith("CORRECT:"):
            correct_letter = line.split(":", 1)[1].strip().upper()
            current_section = None
        elif upper.startswith("EXPLANATION:"):
            explanation_lines = [line.split(":", 1)[1].strip()]
            current_section = "EXPLANATION"
        elif len(line) >= 2 and line[0].upper() in _OPTION_ORDER and line[1] == ":":
            letter = line[0].upper()
            if letter in options:
                raise ExamImportError(f"Option {letter} defined twice in question {position}.")
            options[letter] = line[2:].strip()
            current_section = letter
        elif current_section == "Q":
            question_lines.append(line)
        elif current_section == "EXPLANATION":
            explanation_lines.append(line)
        elif current_section in options:
            options[current_section] = options[current_section] + f"\n{line}"
        else:
            raise ExamImportError(f"Encountered text outside of a known section: '{line}'.")

    question_text = "\n".join(question_lines).strip()
    if not question_text:
        raise ExamImportError(f"Question {position} is missing its text (Q: ...).")

    expected_letters = _OPTION_ORDER[: len(options)]
    if sorted(options) != expected_letters:
        raise ExamImportError(f"Question {position} options must be consecutive letters from A.")
    if len(options) < MIN_CHOICES_PER_QUESTION:
        raise ExamImportError(f"Question {position} needs at least {MIN_CHOICES_PER_QUESTION} options.")
    choices = tuple(options[letter].strip() for letter in expected_letters)
    if any(not choice for choice in choices):
        raise ExamImportError("Option text cannot be empty.")

    if correct_letter is None:
        raise ExamImportError(f"Question {position} is missing CORRECT: <letter>.")
    if correct_letter not in expected_letters:
        raise ExamImportError(
            f"CORRECT must be one of {', '.join(expected_letters)} in question {position}."
        )

    explanation = "\n".join(explanation_lines).strip()
    return Question(
        id=question_id or f"q{position}",
        prompt=question_text,
        choices=choices,
        correct_choice_index=expected_letters.index(correct_letter),
        explanation=explanation or None,
    )
