"""Command execution facade for linepipe."""

from __future__ import annotations

import time
from collections.abc import Iterable, Sequence
from typing import TYPE_CHECKING, Any, Union

from linepipe.core.errors import CommandFailed, SpawnError, UserError
from linepipe.core.exec.host import Execution, HostCommandExecutor
from linepipe.core.exec.process import CommandSpec
from linepipe.core.exec.result import CommandResult
from linepipe.core.exec.status import ExitStatus
from linepipe.core.exec.stream import LineStream

if TYPE_CHECKING:
    from linepipe.core.context import LinepipeContext

Input = Union[LineStream, str, Iterable[str], None]


def as_stream(stdin: Input) -> LineStream:
    """Coerce standard input into a line stream.

    ``None`` is the empty stream, a string is split into lines and any
    other iterable yields its elements as lines.
    """
    if stdin is None:
        return LineStream.empty()
    if isinstance(stdin, LineStream):
        return stdin
    if isinstance(stdin, str):
        return LineStream.from_text(stdin)
    return LineStream.from_lines(stdin)


class CommandExecutor:
    """
    Run shell commands and programs with streamed input and output.

    Shell variants (`system`, `inshell`, ...) hand the command text to
    the configured shell. Program variants (`proc`, `inproc`, ...) exec
    the program directly with an argument list.

    Keyword arguments accepted by every variant:

    cwd : str
        Working directory for the command.
    env : dict
        Environment variables merged over the current environment.
    suppress_output : bool
        If True, skips debug logging for the command.

    The blocking variants (`system`, `proc`, strict variants, `shells`,
    `procs`) also accept ``timeout`` in seconds.
    """

    def __init__(self, ctx: LinepipeContext) -> None:
        self._ctx = ctx
        self._host = HostCommandExecutor(ctx)

    # ------------------------------------------------------------------
    # Status only
    # ------------------------------------------------------------------
    def system(self, command: str, stdin: Input = None, **kwargs: Any) -> ExitStatus:
        """Run a shell command, forwarding its output, and return its status."""
        timeout = kwargs.pop("timeout", None)
        spec = self._spec(command, [], stdin, True, kwargs)
        execution = self._host.execute(
            spec, capture_stdout=False, capture_stderr=False, **kwargs
        )
        return execution.wait(timeout)

    def proc(
        self,
        program: str,
        args: Sequence[str] = (),
        stdin: Input = None,
        **kwargs: Any,
    ) -> ExitStatus:
        """Run a program directly, forwarding its output, and return its status."""
        timeout = kwargs.pop("timeout", None)
        spec = self._spec(program, args, stdin, False, kwargs)
        execution = self._host.execute(
            spec, capture_stdout=False, capture_stderr=False, **kwargs
        )
        return execution.wait(timeout)

    # ------------------------------------------------------------------
    # Streaming
    # ------------------------------------------------------------------
    def inshell(self, command: str, stdin: Input = None, **kwargs: Any) -> Execution:
        """Start a shell command and stream its standard output.

        Standard error is forwarded to ``sys.stderr``. Call
        `Execution.wait()` for the exit status.
        """
        spec = self._spec(command, [], stdin, True, kwargs)
        return self._host.execute(spec, capture_stdout=True, **kwargs)

    def inproc(
        self,
        program: str,
        args: Sequence[str] = (),
        stdin: Input = None,
        **kwargs: Any,
    ) -> Execution:
        """Start a program and stream its standard output."""
        spec = self._spec(program, args, stdin, False, kwargs)
        return self._host.execute(spec, capture_stdout=True, **kwargs)

    def inshell_with_err(
        self, command: str, stdin: Input = None, **kwargs: Any
    ) -> Execution:
        """Start a shell command and stream both standard output and error."""
        spec = self._spec(command, [], stdin, True, kwargs)
        return self._host.execute(
            spec, capture_stdout=True, capture_stderr=True, **kwargs
        )

    def inproc_with_err(
        self,
        program: str,
        args: Sequence[str] = (),
        stdin: Input = None,
        **kwargs: Any,
    ) -> Execution:
        """Start a program and stream both standard output and error."""
        spec = self._spec(program, args, stdin, False, kwargs)
        return self._host.execute(
            spec, capture_stdout=True, capture_stderr=True, **kwargs
        )

    def pipeline(
        self, commands: Sequence[str], stdin: Input = None, **kwargs: Any
    ) -> list[Execution]:
        """Chain shell commands, feeding each one's output to the next.

        Parameters
        ----------
        commands : Sequence[str]
            Shell commands, in pipeline order.
        stdin : LineStream | str | Iterable[str], optional
            Input for the first command.

        Returns
        -------
        list[Execution]
            One running execution per command. The last one's `stdout`
            is the pipeline output.
        """
        if not commands:
            raise UserError(
                "A pipeline needs at least one command.",
                "Pass one or more shell commands.",
            )
        executions: list[Execution] = []
        source = as_stream(stdin)
        for command in commands:
            try:
                execution = self.inshell(command, source, **kwargs)
            except SpawnError:
                for started in executions:
                    started.abort()
                raise
            executions.append(execution)
            assert execution.stdout is not None
            source = execution.stdout
        return executions

    # ------------------------------------------------------------------
    # Strict
    # ------------------------------------------------------------------
    def shell_strict(
        self, command: str, stdin: Input = None, **kwargs: Any
    ) -> CommandResult:
        """Run a shell command and collect its standard output."""
        timeout = kwargs.pop("timeout", None)
        start = time.monotonic()
        execution = self.inshell(command, stdin, **kwargs)
        return self._collect(execution, start, timeout)

    def proc_strict(
        self,
        program: str,
        args: Sequence[str] = (),
        stdin: Input = None,
        **kwargs: Any,
    ) -> CommandResult:
        """Run a program and collect its standard output."""
        timeout = kwargs.pop("timeout", None)
        start = time.monotonic()
        execution = self.inproc(program, args, stdin, **kwargs)
        return self._collect(execution, start, timeout)

    def shell_strict_with_err(
        self, command: str, stdin: Input = None, **kwargs: Any
    ) -> CommandResult:
        """Run a shell command and collect standard output and error."""
        timeout = kwargs.pop("timeout", None)
        start = time.monotonic()
        execution = self.inshell_with_err(command, stdin, **kwargs)
        return self._collect(execution, start, timeout)

    def proc_strict_with_err(
        self,
        program: str,
        args: Sequence[str] = (),
        stdin: Input = None,
        **kwargs: Any,
    ) -> CommandResult:
        """Run a program and collect standard output and error."""
        timeout = kwargs.pop("timeout", None)
        start = time.monotonic()
        execution = self.inproc_with_err(program, args, stdin, **kwargs)
        return self._collect(execution, start, timeout)

    def shells(self, command: str, stdin: Input = None, **kwargs: Any) -> None:
        """Run a shell command, raising `CommandFailed` unless it succeeds."""
        self.system(command, stdin, **kwargs).check(command)

    def procs(
        self,
        program: str,
        args: Sequence[str] = (),
        stdin: Input = None,
        **kwargs: Any,
    ) -> None:
        """Run a program, raising `CommandFailed` unless it succeeds."""
        status = self.proc(program, args, stdin, **kwargs)
        status.check(CommandSpec(program, list(args), shell=False).display)

    def execute(self, *commands: str, **kwargs: Any) -> list[CommandResult]:
        """
        Run shell commands one after another and collect their results.

        Keyword Arguments
        -----------------
        trigger_error : bool
            If True, raises `CommandFailed` for the first command that
            does not succeed. Defaults to False.
        stdin : LineStream | str | Iterable[str]
            Input for the first command only.

        Plus the keyword arguments of `shell_strict`.
        """
        trigger_error = kwargs.pop("trigger_error", False)
        stdin = kwargs.pop("stdin", None)
        results = []
        for command in commands:
            result = self.shell_strict(command, stdin, **kwargs)
            stdin = None
            if trigger_error and not result.ok:
                raise CommandFailed(command, result.status)
            results.append(result)
        return results

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------
    def _spec(
        self,
        command: str,
        args: Sequence[str],
        stdin: Input,
        shell: bool,
        kwargs: dict[str, Any],
    ) -> CommandSpec:
        return CommandSpec(
            command=command,
            args=list(args),
            stdin=as_stream(stdin),
            shell=shell,
            cwd=kwargs.pop("cwd", None),
            env=kwargs.pop("env", None),
        )

    def _collect(
        self, execution: Execution, start: float, timeout: float | None
    ) -> CommandResult:
        status, lines, error_lines = execution.communicate(timeout)
        return CommandResult(
            command=execution.spec.display,
            output="\n".join(lines),
            status=status,
            duration=time.monotonic() - start,
            errors="\n".join(error_lines),
        )
