"""Qt main window for importing exams and following live attempts."""

from __future__ import annotations

from pathlib import Path

from PySide6.QtCore import QTimer
from PySide6.QtWidgets import (
    QComboBox,
    QFileDialog,
    QGroupBox,
    QHBoxLayout,
    QLabel,
    QMainWindow,
    QPushButton,
    QTableWidget,
    QTableWidgetItem,
    QVBoxLayout,
    QWidget,
)

from exam_app.constants.about import APP_NAME, APP_VERSION, HELP_TEXT
from exam_app.constants.exam_constants import LEADERBOARD_SIZE
from exam_app.constants.ui_constants import (
    ATTEMPT_COLUMNS,
    ATTEMPT_REFRESH_INTERVAL_MS,
    EXAM_FILE_FILTER,
    EXAM_IMPORTED_TEMPLATE,
    EXPORT_BUTTON_TEXT,
    EXPORT_DIALOG_TITLE,
    HELP_BUTTON_TEXT,
    IMPORT_BUTTON_TEXT,
    IMPORT_DIALOG_TITLE,
    LEADERBOARD_COLUMNS,
    LEARNER_URL_PLACEHOLDER,
    NO_EXAM_LOADED_MESSAGE,
    WINDOW_TITLE,
)
from exam_app.core.exam_exporter import save_exam_to_file
from exam_app.core.exam_importer import ExamImportError, load_exam_from_file
from exam_app.core.exam_manager import ExamManager
from exam_app.ui.dialog_helpers import confirm_replace_exam, show_error, show_info


def format_remaining(seconds: int) -> str:
    minutes, secs = divmod(max(seconds, 0), 60)
    return f"{minutes}:{secs:02d}"


class ConsoleWindow(QMainWindow):
    """Lists live attempts and the leaderboard of the selected exam."""

    def __init__(self, exam_manager: ExamManager, learner_url: str | None = None) -> None:
        super().__init__()
        self.setWindowTitle(f"{WINDOW_TITLE} {APP_VERSION}")
        self.exam_manager = exam_manager
        self.learner_url = learner_url or LEARNER_URL_PLACEHOLDER

        self._build_ui()
        self._reload_exam_selector()

        self._refresh_timer = QTimer(self)
        self._refresh_timer.setInterval(ATTEMPT_REFRESH_INTERVAL_MS)
        self._refresh_timer.timeout.connect(self._refresh_tables)
        self._refresh_timer.start()

    def _build_ui(self) -> None:
        central = QWidget(self)
        layout = QVBoxLayout()
        central.setLayout(layout)
        self.setCentralWidget(central)

        self.url_label = QLabel(f"Learners connect to: {self.learner_url}", self)
        self.url_label.setWordWrap(True)
        layout.addWidget(self.url_label)

        button_row = QHBoxLayout()
        self.import_button = QPushButton(IMPORT_BUTTON_TEXT, self)
        self.import_button.clicked.connect(self._handle_import)
        button_row.addWidget(self.import_button)

        self.export_button = QPushButton(EXPORT_BUTTON_TEXT, self)
        self.export_button.clicked.connect(self._handle_export)
        button_row.addWidget(self.export_button)

        self.exam_selector = QComboBox(self)
        self.exam_selector.currentIndexChanged.connect(self._refresh_tables)
        button_row.addWidget(self.exam_selector, stretch=1)

        self.help_button = QPushButton(HELP_BUTTON_TEXT, self)
        self.help_button.clicked.connect(lambda: show_info(self, APP_NAME, HELP_TEXT))
        button_row.addWidget(self.help_button)
        layout.addLayout(button_row)

        attempts_group = QGroupBox("Live attempts", self)
        attempts_layout = QVBoxLayout()
        attempts_group.setLayout(attempts_layout)
        self.attempts_table = self._make_table(ATTEMPT_COLUMNS)
        attempts_layout.addWidget(self.attempts_table)
        layout.addWidget(attempts_group, stretch=2)

        leaderboard_group = QGroupBox("Leaderboard", self)
        leaderboard_layout = QVBoxLayout()
        leaderboard_group.setLayout(leaderboard_layout)
        self.leaderboard_table = self._make_table(LEADERBOARD_COLUMNS)
        leaderboard_layout.addWidget(self.leaderboard_table)
        layout.addWidget(leaderboard_group, stretch=1)

    def _make_table(self, columns: tuple[str, ...]) -> QTableWidget:
        table = QTableWidget(0, len(columns), self)
        table.setHorizontalHeaderLabels(list(columns))
        table.setEditTriggers(QTableWidget.NoEditTriggers)
        table.horizontalHeader().setStretchLastSection(True)
        return table

    def _selected_exam_id(self) -> str | None:
        exam_id = self.exam_selector.currentData()
        return exam_id if isinstance(exam_id, str) else None

    def _reload_exam_selector(self, select_exam_id: str | None = None) -> None:
        self.exam_selector.blockSignals(True)
        self.exam_selector.clear()
        for exam in self.exam_manager.list_exams():
            label = f"{exam.id} ({exam.lesson_id})" if exam.lesson_id else exam.id
            self.exam_selector.addItem(label, exam.id)
        if select_exam_id is not None:
            index = self.exam_selector.findData(select_exam_id)
            if index >= 0:
                self.exam_selector.setCurrentIndex(index)
        self.exam_selector.blockSignals(False)
        self._refresh_tables()

    def _handle_import(self) -> None:
        file_name, _ = QFileDialog.getOpenFileName(self, IMPORT_DIALOG_TITLE, "", EXAM_FILE_FILTER)
        if not file_name:
            return
        try:
            imported = load_exam_from_file(Path(file_name))
        except (ExamImportError, OSError) as exc:
            show_error(self, "Import failed", str(exc))
            return

        exam = imported.exam
        known_ids = {e.id for e in self.exam_manager.list_exams()}
        if exam.id in known_ids and not confirm_replace_exam(self, exam.id):
            return
        try:
            self.exam_manager.add_exam(exam)
        except ValueError as exc:
            show_error(self, "Import failed", str(exc))
            return
        self._reload_exam_selector(select_exam_id=exam.id)
        show_info(
            self,
            "Exam imported",
            EXAM_IMPORTED_TEMPLATE.format(exam_id=exam.id, count=len(exam.questions)),
        )

    def _handle_export(self) -> None:
        exam_id = self._selected_exam_id()
        if exam_id is None:
            show_info(self, APP_NAME, NO_EXAM_LOADED_MESSAGE)
            return
        file_name, _ = QFileDialog.getSaveFileName(self, EXPORT_DIALOG_TITLE, f"{exam_id}.txt", EXAM_FILE_FILTER)
        if not file_name:
            return
        try:
            save_exam_to_file(Path(file_name), self.exam_manager.get_exam(exam_id))
        except (OSError, ValueError) as exc:
            show_error(self, "Export failed", str(exc))

    def _refresh_tables(self) -> None:
        attempts = self.exam_manager.list_attempts()
        self.attempts_table.setRowCount(len(attempts))
        for row, attempt in enumerate(attempts):
            values = (
                attempt.user_id,
                attempt.exam_id,
                attempt.state.value,
                format_remaining(attempt.remaining_seconds),
                f"{attempt.answered_count}/{attempt.question_count}",
                "" if attempt.score is None else f"{attempt.score}%",
            )
            self._fill_row(self.attempts_table, row, values)

        exam_id = self._selected_exam_id()
        rows = self.exam_manager.get_leaderboard(exam_id, LEADERBOARD_SIZE) if exam_id else []
        self.leaderboard_table.setRowCount(len(rows))
        for row, entry in enumerate(rows):
            values = (str(entry.rank), entry.user_id, f"{entry.best_score}%", str(entry.attempts))
            self._fill_row(self.leaderboard_table, row, values)

    @staticmethod
    def _fill_row(table: QTableWidget, row: int, values: tuple[str, ...]) -> None:
        for column, value in enumerate(values):
            table.setItem(row, column, QTableWidgetItem(value))

    def closeEvent(self, event) -> None:  # noqa: N802 - Qt override
        self._refresh_timer.stop()
        super().closeEvent(event)
