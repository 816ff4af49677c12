"""Common constants and utilities for linepipe logging."""

import shutil
import threading

DEFAULT_INDENT = " " * 5

# Serializes log records and forwarded command output on the terminal.
OUTPUT_LOCK = threading.RLock()


def get_terminal_width() -> int:
    """Get the terminal width."""
    return shutil.get_terminal_size(fallback=(80, 24)).columns
