"""Error classes for linepipe."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from linepipe.core.exec.status import ExitStatus


class LinepipeError(Exception):
    """Base exception class for all linepipe-related errors.

    Parameters
    ----------
    msg : str, optional
        Message to log and include in the exception.

    Attributes
    ----------
    msg : str
        Error message associated with the exception.
    exit_code : int
        Exit code for the error type. Defaults to 1.
    """

    exit_code = 1

    def __init__(self, msg: str = "") -> None:
        super().__init__(msg)
        self.msg = msg

    def __str__(self) -> str:
        """Return the error message as a string."""
        return self.msg


class UserError(LinepipeError):
    """User errors that linepipe can safely log and display.

    Attributes
    ----------
    msg : str
        Primary error message to display.
    hint_msg : str
        Optional user guidance for resolving the issue.
    exit_code : int
        Exit code used to signal a user-handled error. Defaults to 2.

    Parameters
    ----------
    msg : str, optional
        Message to log and include in the exception.
    hint_msg : str, optional
        Additional guidance for resolving the issue.
    """

    exit_code = 2

    def __init__(self, msg: str = "", hint_msg: str = "") -> None:
        self.hint_msg = hint_msg
        if hint_msg:
            super().__init__(f"User error: {msg}\nHint: {hint_msg}")
        else:
            super().__init__(f"User error: {msg}")


class SpawnError(LinepipeError):
    """The external command could not be started.

    A spawn failure never yields an exit status.

    Parameters
    ----------
    command : str
        The command that failed to start.
    cause : BaseException, optional
        The underlying OS error.
    """

    exit_code = 127

    def __init__(self, command: str, cause: BaseException | None = None) -> None:
        reason = f": {cause}" if cause else ""
        super().__init__(f"Failed to start command '{command}'{reason}")
        self.command = command
        self.cause = cause


class PipeError(LinepipeError):
    """Unrecoverable I/O error while piping data to or from a process."""


class StreamError(LinepipeError):
    """Misuse of a line stream (double claim, restarting a one-shot source)."""


class StreamExhausted(StreamError):
    """Pulled a line from a stream that has no more elements."""


class CommandFailed(LinepipeError):
    """A command terminated with anything other than success.

    Parameters
    ----------
    command : str
        The command text.
    status : ExitStatus
        The non-success exit status. Its shell-style code becomes the
        exit code of the error.
    """

    def __init__(self, command: str, status: ExitStatus) -> None:
        super().__init__(f"{command} {status.describe()}")
        self.command = command
        self.status = status
        self.exit_code = status.code


class CommandTimeout(LinepipeError):
    """A command did not finish within its timeout and was aborted.

    Exits with 124, like coreutils `timeout`.

    Parameters
    ----------
    command : str
        The command text.
    timeout : float
        The timeout that expired, in seconds.
    status : ExitStatus
        Status of the aborted process after it was reaped.
    """

    exit_code = 124

    def __init__(self, command: str, timeout: float, status: ExitStatus) -> None:
        super().__init__(
            f"Command '{command}' timed out after {timeout:g} seconds "
            f"and was aborted ({status.describe()})"
        )
        self.command = command
        self.timeout = timeout
        self.status = status
