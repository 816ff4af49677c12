"""CommandResult dataclass for strict command execution results."""

from dataclasses import dataclass

from linepipe.core.exec.status import ExitStatus


@dataclass
class CommandResult:
    """Command result.

    Attributes
    ----------
    command : str
        The command that was executed.
    output : str
        Standard output, lines joined with newlines.
    status : ExitStatus
        The exit status of the command.
    duration : float
        Duration in seconds for the command execution.
    errors : str
        Standard error, when it was captured. Empty otherwise.
    """

    command: str
    output: str
    status: ExitStatus
    duration: float
    errors: str = ""

    @property
    def exit_code(self) -> int:
        """Shell-style exit code of the command."""
        return self.status.code

    @property
    def ok(self) -> bool:
        return self.status.ok

    @property
    def lines(self) -> list[str]:
        """Standard output split into lines."""
        return self.output.split("\n") if self.output else []
