"""Logging formatter for the linepipe logger."""

import logging
import os
import sys
import textwrap

from click import style

from linepipe.core.logging.common import DEFAULT_INDENT, get_terminal_width
from linepipe.core.logging.levels import LogLevel


class LinepipeLogFormatter(logging.Formatter):
    """Formatter for linepipe logs."""

    LEVELS = {
        "DEBUG": LogLevel.DEBUG,
        "INFO": LogLevel.INFO,
        "WARNING": LogLevel.WARN,
        "ERROR": LogLevel.ERROR,
        "CRITICAL": LogLevel.ERROR,
    }

    def __init__(self, always_verbose=False):
        """Initialize the formatter."""
        super().__init__()
        self.always_verbose = always_verbose
        self.enable_color = sys.stderr.isatty()

    def format(self, record: logging.LogRecord) -> str:
        """
        Format a log record for output.

        Parameters
        ----------
        record : logging.LogRecord
            The log record to format.

        Returns
        -------
        str
            The formatted log message.
        """
        msg = record.getMessage()
        if not msg.strip():
            return ""

        left = self._get_left_prefix(record, self._get_prefix(record))
        lines = msg.splitlines()
        if self.enable_color:
            return self._wrap_lines_tty(lines, left)
        return self._wrap_lines_plain(lines, left)

    def _get_prefix(self, record: logging.LogRecord) -> str:
        """Return the level prefix, coloured when writing to a terminal."""
        level = self.LEVELS.get(record.levelname, LogLevel.INFO)
        if self.enable_color:
            return style(level.prefix, fg=level.color, bold=True)
        return level.prefix

    def _get_left_prefix(self, record: logging.LogRecord, prefix: str) -> str:
        """Append the caller location for debug records."""
        if self.always_verbose or record.levelno == logging.DEBUG:
            fq_caller = getattr(record, "fq_caller", "")
            if fq_caller:
                return f"{prefix}{fq_caller} "
            if record.pathname:
                return f"{prefix}{os.path.basename(record.pathname)}:{record.lineno} "
        return prefix

    def _wrap_lines_tty(self, lines: list[str], left: str) -> str:
        """
        Wrap lines to the terminal width.

        The first line gets the prefix; continuation and subsequent lines
        get the default indent.
        """
        width = get_terminal_width()
        first = textwrap.TextWrapper(
            width=width, initial_indent=left, subsequent_indent=DEFAULT_INDENT
        )
        other = textwrap.TextWrapper(
            width=width, initial_indent=DEFAULT_INDENT, subsequent_indent=DEFAULT_INDENT
        )
        wrapped = [first.fill(lines[0])]
        wrapped.extend(other.fill(line) for line in lines[1:])
        return "\n".join(wrapped)

    def _wrap_lines_plain(self, lines: list[str], left: str) -> str:
        return "\n".join(
            [f"{left}{lines[0]}"] + [f"{DEFAULT_INDENT}{line}" for line in lines[1:]]
        )
