"""Unit tests for the linepipe logger and configure_logging."""

import logging

import pytest

from linepipe.core import logging as lg
from linepipe.core.logging.levels import LogLevel
from linepipe.core.logging.logger import LinepipeLogger
from linepipe.core.logging.utils import LOGGER_NAME, configure_logging, get_logger


def _linepipe_handlers(root):
    return [h for h in root.handlers if isinstance(h, lg.handler.LinepipeLoggerHandler)]


@pytest.fixture
def root_logger():
    """Detach linepipe handlers from the root logger for the test."""
    root = logging.getLogger()
    saved = _linepipe_handlers(root)
    for handler in saved:
        root.removeHandler(handler)
    yield root
    for handler in _linepipe_handlers(root):
        root.removeHandler(handler)
    for handler in saved:
        root.addHandler(handler)
    get_logger().set_level(LogLevel.INFO)


class TestGetLogger:
    """Test suite for get_logger."""

    def test_returns_linepipe_logger(self):
        """Test get_logger returns the same LinepipeLogger every time."""
        logger = get_logger()

        assert isinstance(logger, LinepipeLogger)
        assert logger.name == LOGGER_NAME
        assert get_logger() is logger

    def test_does_not_change_logger_class(self):
        """Test other loggers are still created with the default class."""
        get_logger()

        assert logging.getLoggerClass() is not LinepipeLogger
        assert not isinstance(logging.getLogger("linepipe-other"), LinepipeLogger)


class TestConfigureLogging:
    """Test suite for configure_logging."""

    def test_installs_handler_once(self, root_logger):
        """Test a second call only updates the level."""
        configure_logging(LogLevel.INFO)
        configure_logging(LogLevel.DEBUG)

        handlers = _linepipe_handlers(root_logger)
        assert len(handlers) == 1
        assert handlers[0].level == logging.DEBUG
        assert get_logger().level_name == "DEBUG"

    def test_info_reaches_stderr(self, root_logger, capsys):
        """Test info messages are written to stderr with their prefix."""
        logger = configure_logging(LogLevel.INFO)

        logger.info("hello")

        assert "[i]  hello" in capsys.readouterr().err

    def test_debug_is_filtered_at_info(self, root_logger, capsys):
        """Test debug messages are hidden at the info level."""
        logger = configure_logging(LogLevel.INFO)

        logger.debug("hidden")

        assert "hidden" not in capsys.readouterr().err

    def test_debug_includes_caller(self, root_logger, capsys):
        """Test debug messages name the calling module and file."""
        logger = configure_logging(LogLevel.DEBUG)

        logger.debug("visible")

        err = capsys.readouterr().err
        assert "visible" in err
        assert "test_logger.py" in err

    def test_error_prefix(self, root_logger, capsys):
        """Test error messages carry the error prefix."""
        logger = configure_logging(LogLevel.INFO)

        logger.error("broken")

        assert "[e]  broken" in capsys.readouterr().err


class TestLinepipeLogger:
    """Test suite for LinepipeLogger class."""

    def test_blank_messages_are_dropped(self, root_logger, capsys):
        """Test whitespace-only messages are not logged."""
        logger = configure_logging(LogLevel.INFO)

        logger.info("   ")
        logger.warn("")

        assert capsys.readouterr().err == ""

    def test_warning_alias(self, root_logger, capsys):
        """Test warning() logs the same way as warn()."""
        logger = configure_logging(LogLevel.INFO)

        logger.warning("careful")

        assert "[w]  careful" in capsys.readouterr().err

    def test_set_level(self):
        """Test set_level updates the logger level and level name."""
        logger = get_logger()

        logger.set_level(LogLevel.ERROR)

        assert logger.level == logging.ERROR
        assert logger.level_name == "ERROR"
        assert logger.log_level == LogLevel.ERROR
        logger.set_level(LogLevel.INFO)

    def test_styled_prefix(self):
        """Test styled_prefix wraps the level prefix in ANSI styling."""
        prefix = get_logger().styled_prefix(LogLevel.WARN)

        assert "[w]" in prefix
        assert prefix.startswith("\x1b[")
