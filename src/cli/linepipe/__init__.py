"""Typed shell command execution with lazily streamed lines.

    >>> from linepipe import LineStream, inshell, system
    >>> system("true")
    Succeeded()
    >>> execution = inshell("cat", LineStream.from_lines(["a", "b", "c"]))
    >>> execution.stdout.collect()
    ['a', 'b', 'c']
    >>> execution.wait()
    Succeeded()

The module-level functions run against a default context, created on
first use from the environment and ~/.linepipe/linepipe.cfg.
"""

from __future__ import annotations

import threading
from typing import Any

from linepipe.core.context import LinepipeContext
from linepipe.core.errors import (
    CommandFailed,
    CommandTimeout,
    LinepipeError,
    PipeError,
    SpawnError,
    StreamError,
    StreamExhausted,
    UserError,
)
from linepipe.core.exec.cmd import CommandExecutor
from linepipe.core.exec.host import Execution
from linepipe.core.exec.result import CommandResult
from linepipe.core.exec.status import (
    ExitStatus,
    FailedWithCode,
    KilledBySignal,
    Succeeded,
)
from linepipe.core.exec.stream import LineStream

_default_ctx: LinepipeContext | None = None
_default_lock = threading.Lock()


def default_executor() -> CommandExecutor:
    """Return the executor of the lazily created default context."""
    global _default_ctx
    with _default_lock:
        if _default_ctx is None:
            _default_ctx = LinepipeContext().initialize()
        assert _default_ctx.cmd_executor is not None
        return _default_ctx.cmd_executor


def system(command: str, stdin: Any = None, **kwargs: Any) -> ExitStatus:
    return default_executor().system(command, stdin, **kwargs)


def proc(program: str, args: Any = (), stdin: Any = None, **kwargs: Any) -> ExitStatus:
    return default_executor().proc(program, args, stdin, **kwargs)


def inshell(command: str, stdin: Any = None, **kwargs: Any) -> Execution:
    return default_executor().inshell(command, stdin, **kwargs)


def inproc(program: str, args: Any = (), stdin: Any = None, **kwargs: Any) -> Execution:
    return default_executor().inproc(program, args, stdin, **kwargs)


def inshell_with_err(command: str, stdin: Any = None, **kwargs: Any) -> Execution:
    return default_executor().inshell_with_err(command, stdin, **kwargs)


def inproc_with_err(
    program: str, args: Any = (), stdin: Any = None, **kwargs: Any
) -> Execution:
    return default_executor().inproc_with_err(program, args, stdin, **kwargs)


def shell_strict(command: str, stdin: Any = None, **kwargs: Any) -> CommandResult:
    return default_executor().shell_strict(command, stdin, **kwargs)


def proc_strict(
    program: str, args: Any = (), stdin: Any = None, **kwargs: Any
) -> CommandResult:
    return default_executor().proc_strict(program, args, stdin, **kwargs)


def shell_strict_with_err(
    command: str, stdin: Any = None, **kwargs: Any
) -> CommandResult:
    return default_executor().shell_strict_with_err(command, stdin, **kwargs)


def proc_strict_with_err(
    program: str, args: Any = (), stdin: Any = None, **kwargs: Any
) -> CommandResult:
    return default_executor().proc_strict_with_err(program, args, stdin, **kwargs)


def shells(command: str, stdin: Any = None, **kwargs: Any) -> None:
    default_executor().shells(command, stdin, **kwargs)


def procs(program: str, args: Any = (), stdin: Any = None, **kwargs: Any) -> None:
    default_executor().procs(program, args, stdin, **kwargs)


def pipeline(commands: Any, stdin: Any = None, **kwargs: Any) -> list[Execution]:
    return default_executor().pipeline(commands, stdin, **kwargs)


__all__ = [
    "CommandExecutor",
    "CommandFailed",
    "CommandResult",
    "CommandTimeout",
    "Execution",
    "ExitStatus",
    "FailedWithCode",
    "KilledBySignal",
    "LineStream",
    "LinepipeContext",
    "LinepipeError",
    "PipeError",
    "SpawnError",
    "StreamError",
    "StreamExhausted",
    "Succeeded",
    "UserError",
    "default_executor",
    "inproc",
    "inproc_with_err",
    "inshell",
    "inshell_with_err",
    "pipeline",
    "proc",
    "proc_strict",
    "proc_strict_with_err",
    "procs",
    "shell_strict",
    "shell_strict_with_err",
    "shells",
    "system",
]
