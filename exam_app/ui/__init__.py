"""Qt UI components for the instructor console."""

from .console_window import ConsoleWindow, format_remaining
from .dialog_helpers import confirm_replace_exam, show_error, show_info, show_warning

__all__ = [
    "ConsoleWindow",
    "confirm_replace_exam",
    "format_remaining",
    "show_error",
    "show_info",
    "show_warning",
]
