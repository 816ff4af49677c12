"""Logging utilities for linepipe."""

import inspect
import logging
import os

from linepipe.core import logging as lg

LOGGER_NAME = "linepipe"


def get_logger() -> "lg.logger.LinepipeLogger":
    """Return the linepipe logger without installing any handlers.

    The logger class is only swapped while the logger is created, so
    other libraries' loggers are unaffected.
    """
    existing = logging.Logger.manager.loggerDict.get(LOGGER_NAME)
    if isinstance(existing, lg.logger.LinepipeLogger):
        return existing
    previous = logging.getLoggerClass()
    logging.setLoggerClass(lg.logger.LinepipeLogger)
    try:
        logger = logging.getLogger(LOGGER_NAME)
    finally:
        logging.setLoggerClass(previous)
    return logger  # type: ignore[return-value]


def configure_logging(
    log_level: lg.levels.LogLevel = lg.levels.LogLevel.INFO,
) -> "lg.logger.LinepipeLogger":
    """
    Install the linepipe handlers, or update the level if already done.

    Parameters
    ----------
    log_level : LogLevel
        Minimum log level to emit.

    Returns
    -------
    LinepipeLogger
        The configured linepipe logger.
    """
    logger = get_logger()
    root_logger = logging.getLogger()

    def _logger_is_configured() -> bool:
        return any(
            isinstance(handler, lg.handler.LinepipeLoggerHandler)
            for handler in root_logger.handlers
        )

    if _logger_is_configured():
        logger.set_level(log_level)
        return logger

    always_verbose = log_level == lg.levels.LogLevel.DEBUG
    logger._formatter = lg.formatter.LinepipeLogFormatter(always_verbose=always_verbose)

    user_handler = lg.handler.LinepipeLoggerHandler()
    user_handler.setFormatter(logger._formatter)
    user_handler.setLevel(lg.levels.PY_LEVEL[log_level])

    root_logger.addHandler(user_handler)
    root_logger.setLevel(logging.NOTSET)
    logger.propagate = True
    logger.set_level(log_level)

    logger.debug("Configured linepipe logging.")
    return logger


def get_caller_fq_name(stacklevel: int = 4) -> str:
    """Get the fully qualified name of the caller."""
    frame = inspect.currentframe()
    for _ in range(stacklevel):
        if frame is not None:
            frame = frame.f_back
    if frame is None:
        return "<unknown>"
    module = inspect.getmodule(frame)
    module_name = module.__name__ if module else "<unknown>"
    filename = os.path.basename(frame.f_code.co_filename)
    return f"{module_name}:{filename}:{frame.f_lineno}"
