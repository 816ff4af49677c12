"""Exit status model for terminated commands."""

from __future__ import annotations

import signal
from dataclasses import dataclass

from linepipe.core.errors import CommandFailed


class ExitStatus:
    """Tagged outcome of a terminated process.

    One of `Succeeded`, `FailedWithCode` or `KilledBySignal`. Values are
    immutable and compare equal only when both the variant and its
    payload match. No ordering is defined.
    """

    __slots__ = ()

    @staticmethod
    def from_returncode(returncode: int) -> ExitStatus:
        """Map a `subprocess` return code onto an exit status.

        Parameters
        ----------
        returncode : int
            Return code as reported by `Popen.returncode`. Negative
            values mean the process was killed by signal `-returncode`.

        Returns
        -------
        ExitStatus
            The matching status variant.
        """
        if returncode == 0:
            return Succeeded()
        if returncode < 0:
            return KilledBySignal(-returncode)
        return FailedWithCode(returncode)

    @property
    def ok(self) -> bool:
        """Whether the process succeeded."""
        return isinstance(self, Succeeded)

    @property
    def code(self) -> int:
        """Shell-style integer exit code (0, N, or 128 + signal)."""
        raise NotImplementedError

    def describe(self) -> str:
        """Human-readable description of the status."""
        raise NotImplementedError

    def check(self, command: str) -> ExitStatus:
        """Raise `CommandFailed` unless the status is `Succeeded`.

        Parameters
        ----------
        command : str
            Command text used in the diagnostic message.

        Returns
        -------
        ExitStatus
            The status itself, on success.

        Raises
        ------
        CommandFailed
            If the status is not `Succeeded`.
        """
        if not self.ok:
            raise CommandFailed(command, self)
        return self


@dataclass(frozen=True)
class Succeeded(ExitStatus):
    """The process exited with code 0."""

    @property
    def code(self) -> int:
        return 0

    def describe(self) -> str:
        return "succeeded"


@dataclass(frozen=True)
class FailedWithCode(ExitStatus):
    """The process exited with a nonzero code."""

    exit_code: int

    def __post_init__(self) -> None:
        if self.exit_code == 0:
            raise ValueError("FailedWithCode requires a nonzero exit code")

    @property
    def code(self) -> int:
        return self.exit_code

    def describe(self) -> str:
        return f"failed with exit code: {self.exit_code}"


@dataclass(frozen=True)
class KilledBySignal(ExitStatus):
    """The process was terminated by a signal."""

    signal: int

    def __post_init__(self) -> None:
        if self.signal <= 0:
            raise ValueError("KilledBySignal requires a positive signal number")

    @property
    def code(self) -> int:
        return 128 + self.signal

    @property
    def signal_name(self) -> str:
        """Symbolic signal name, e.g. ``SIGTERM``."""
        try:
            return signal.Signals(self.signal).name
        except ValueError:
            return f"SIG{self.signal}"

    def describe(self) -> str:
        return f"was killed by signal: {self.signal_name} ({self.signal})"
