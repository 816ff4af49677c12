"""linepipe logger handler."""

import logging
import sys

from linepipe.core.logging.common import OUTPUT_LOCK


class LinepipeLoggerHandler(logging.StreamHandler):
    """Primary user-facing log handler for linepipe.

    Emits under the shared output lock so log records never interleave
    with command output forwarded by reader threads.
    """

    @property
    def stream(self):
        """Always return current sys.stderr instead of cached reference.

        This ensures the handler writes to whatever stderr currently points to,
        including CliRunner's capture buffer during tests.
        """
        return sys.stderr

    @stream.setter
    def stream(self, value):
        """Ignore attempts to set stream - always use current sys.stderr."""
        pass

    def emit(self, record: logging.LogRecord):
        if record.levelno < self.level or not self.filter(record):
            return
        with OUTPUT_LOCK:
            super().emit(record)
