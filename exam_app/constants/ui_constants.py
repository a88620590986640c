"""Qt UI constants used by the instructor console."""

WINDOW_TITLE: str = "ExamQt Instructor Console"
LEARNER_URL_PLACEHOLDER: str = "http://<instructor-ip>:8000/"
ATTEMPT_REFRESH_INTERVAL_MS: int = 1000

IMPORT_BUTTON_TEXT: str = "Import Exam"
EXPORT_BUTTON_TEXT: str = "Save Exam to File"
HELP_BUTTON_TEXT: str = "Help"
IMPORT_DIALOG_TITLE: str = "Select exam file"
EXPORT_DIALOG_TITLE: str = "Save exam to file"
EXAM_FILE_FILTER: str = "Exam files (*.txt);;All files (*.*)"

ATTEMPT_COLUMNS: tuple[str, ...] = ("Learner", "Exam", "State", "Time left", "Answered", "Score")
LEADERBOARD_COLUMNS: tuple[str, ...] = ("Rank", "Learner", "Best score", "Attempts")

NO_EXAM_LOADED_MESSAGE: str = "Import an exam file first."
EXAM_IMPORTED_TEMPLATE: str = "Exam '{exam_id}' loaded with {count} question(s)."
