"""Utilities for exporting exams to the plain-text format used for imports."""

from __future__ import annotations

from pathlib import Path
import string

from exam_app.core.models import ExamDefinition, Question

_OPTION_LETTERS = string.ascii_uppercase


def save_exam_to_file(file_path: Path, exam: ExamDefinition) -> None:
    """Persist the exam to disk in the text import format."""

    file_path = file_path.resolve()
    file_path.parent.mkdir(parents=True, exist_ok=True)
    file_path.write_text(serialize_exam(exam), encoding="utf-8")


def serialize_exam(exam: ExamDefinition) -> str:
    header = [f"EXAM: {exam.id}"]
    if exam.lesson_id:
        header.append(f"LESSON: {exam.lesson_id}")
    header.append(f"TIMELIMIT: {exam.time_limit_minutes}")

    blocks = ["\n".join(header)] + [_serialize_question(q) for q in exam.questions]
    return "\n\n---\n\n".join(blocks) + "\n"


def _serialize_question(question: Question) -> str:
    lines = [f"ID: {question.id}"]
    lines.extend(_labelled("Q", question.prompt))
    for letter, choice in zip(_OPTION_LETTERS, question.choices):
        lines.extend(_labelled(letter, choice))
    lines.append(f"CORRECT: {_OPTION_LETTERS[question.correct_choice_index]}")
    if question.explanation:
        lines.extend(_labelled("EXPLANATION", question.explanation))
    return "\n".join(lines)


def _labelled(label: str, text: str) -> list[str]:
    text_lines = text.splitlines() or [text]
    if any(not line.strip() for line in text_lines[1:]):
        # A blank line ends a question block on import.
        raise ValueError(f"{label} text must not contain blank lines.")
    return [f"{label}: {text_lines[0]}", *text_lines[1:]]
