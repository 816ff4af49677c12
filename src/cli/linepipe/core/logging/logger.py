"""linepipe logger."""

from __future__ import annotations

import logging

from click import style

from linepipe.core import logging as lg


class LinepipeLogger(logging.Logger):
    """linepipe logger.

    Drops blank messages and attaches the fully qualified caller to
    debug records.
    """

    def __init__(self, name: str, level: int = logging.NOTSET) -> None:
        super().__init__(name, level)
        self._log_level = lg.levels.LogLevel.INFO
        self._formatter: lg.formatter.LinepipeLogFormatter | None = None

    def info(self, msg: object, *args: object, **kwargs) -> None:
        """Log an info message."""
        self._log_with_stacklevel(super().info, logging.INFO, msg, *args, **kwargs)

    def warn(self, msg: object, *args: object, **kwargs) -> None:
        """Log a warning message."""
        self._log_with_stacklevel(
            super().warning, logging.WARNING, msg, *args, **kwargs
        )

    def warning(self, msg: object, *args: object, **kwargs) -> None:
        """Log a warning message."""
        self.warn(msg, *args, **kwargs)

    def error(self, msg: object, *args: object, **kwargs) -> None:
        """Log an error message."""
        self._log_with_stacklevel(super().error, logging.ERROR, msg, *args, **kwargs)

    def debug(self, msg: object, *args: object, **kwargs) -> None:
        """Log a debug message."""
        self._log_with_stacklevel(super().debug, logging.DEBUG, msg, *args, **kwargs)

    @property
    def log_level(self) -> lg.levels.LogLevel:
        return self._log_level

    @property
    def level_name(self) -> str:
        return self._log_level.name

    def set_level(self, level: lg.levels.LogLevel) -> None:
        """Set the log level for the logger and the user-facing handler."""
        self._log_level = level
        py_level = lg.levels.PY_LEVEL[level]
        self.setLevel(py_level)
        for handler in self.handlers + logging.getLogger().handlers:
            if isinstance(handler, lg.handler.LinepipeLoggerHandler):
                handler.setLevel(py_level)
        if self._formatter:
            self._formatter.always_verbose = level == lg.levels.LogLevel.DEBUG

    def styled_prefix(self, level: lg.levels.LogLevel = lg.levels.LogLevel.INFO) -> str:
        """Return a styled prefix."""
        return style(level.prefix, fg=level.color, bold=True)

    def _log_with_stacklevel(
        self, super_method, level: int, msg: object, *args: object, **kwargs
    ) -> None:
        """Log a message, dropping blank ones and tagging the caller."""
        msg_str = str(msg).strip()
        if not msg_str:
            return
        kwargs.setdefault("stacklevel", 3)
        if self.isEnabledFor(logging.DEBUG) and level in (logging.DEBUG, logging.INFO):
            fq_name = lg.utils.get_caller_fq_name(stacklevel=kwargs["stacklevel"])
            kwargs.setdefault("extra", {})
            kwargs["extra"]["fq_caller"] = fq_name
        super_method(msg_str, *args, **kwargs)
