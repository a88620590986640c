"""Helper functions for common dialog patterns in the instructor console."""

from __future__ import annotations

from PySide6.QtWidgets import QMessageBox, QWidget


def confirm_replace_exam(parent: QWidget, exam_id: str) -> bool:
    """Ask before an import replaces an exam that is already loaded."""
    reply = QMessageBox.question(
        parent,
        "Replace Exam",
        f"An exam with id '{exam_id}' is already loaded. Replace it?\n\n"
        "Attempts already in progress keep the version they started with.",
        QMessageBox.Yes | QMessageBox.No,
        QMessageBox.No,
    )
    return reply == QMessageBox.Yes


def show_error(parent: QWidget, title: str, message: str) -> None:
    QMessageBox.critical(parent, title, message)


def show_info(parent: QWidget, title: str, message: str) -> None:
    QMessageBox.information(parent, title, message)


def show_warning(parent: QWidget, title: str, message: str) -> None:
    QMessageBox.warning(parent, title, message)
