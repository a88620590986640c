"""Application entry point for ExamQt."""

from __future__ import annotations

import os
from pathlib import Path
import socket
import sys

from PySide6.QtWidgets import QApplication

from exam_app.constants.network_constants import DEFAULT_HOST, DEFAULT_PORT
from exam_app.core.exam_importer import ExamImportError, load_exam_from_file
from exam_app.core.exam_manager import ExamManager
from exam_app.server.api_server import start_api_server
from exam_app.ui.console_window import ConsoleWindow
from exam_app.utils.logging_config import configure_logging


def _determine_learner_url(port: int) -> str:
    """Best-effort determination of the local IP for the learner-facing URL."""
    try:
        with socket.socket(socket.AF_INET, socket.SOCK_DGRAM) as sock:
            sock.connect(("8.8.8.8", 80))
            ip_address = sock.getsockname()[0]
    except OSError:
        ip_address = "127.0.0.1"
    return f"http://{ip_address}:{port}/"


def main() -> None:
    """Initialize logging, preload an exam, start the API server, and launch the console."""
    logger = configure_logging()
    logger.info("Starting ExamQt…")

    exam_manager = ExamManager()
    preload = os.environ.get("EXAMQT_EXAM_FILE")
    if preload:
        try:
            exam_manager.add_exam(load_exam_from_file(Path(preload)).exam)
        except (ExamImportError, OSError, ValueError) as exc:
            logger.error("Could not preload exam file %s: %s", preload, exc)

    start_api_server(exam_manager=exam_manager, host=DEFAULT_HOST, port=DEFAULT_PORT)
    learner_url = _determine_learner_url(DEFAULT_PORT)
    logger.info("Learner page available at %s", learner_url)

    app = QApplication(sys.argv)
    window = ConsoleWindow(exam_manager=exam_manager, learner_url=learner_url)
    window.show()
    exit_code = app.exec()
    exam_manager.shutdown()
    sys.exit(exit_code)


if __name__ == "__main__":
    main()
