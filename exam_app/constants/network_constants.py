"""Network configuration constants for the exam application."""

import os

DEFAULT_HOST: str = os.environ.get("EXAMQT_HOST", "0.0.0.0")
DEFAULT_PORT: int = int(os.environ.get("EXAMQT_PORT", "8000"))
