"""Utility functions for the linepipe CLI and core operations."""

from __future__ import annotations

import os
import signal
import sys
import threading
import traceback
from collections.abc import Iterator
from contextlib import contextmanager
from functools import wraps
from importlib.metadata import PackageNotFoundError, version
from inspect import signature
from typing import TYPE_CHECKING, Any, Optional

import click
from click import echo, make_pass_decorator

from linepipe.ansi import strip_ansi
from linepipe.core.errors import (
    CommandFailed,
    CommandTimeout,
    LinepipeError,
    SpawnError,
    UserError,
)
from linepipe.core.logging.utils import get_logger

if TYPE_CHECKING:
    from linepipe.core.exec.host import Execution
    from linepipe.core.exec.status import ExitStatus


# ----------------------------------------------------------------------
# CLI Decorators & Exception Handling
# ----------------------------------------------------------------------
def pass_environment() -> Any:
    """
    Return a Click pass decorator for the LinepipeContext.

    Returns
    -------
    Any
        A decorator that passes the LinepipeContext instance.
    """
    from linepipe.core.context import LinepipeContext

    return make_pass_decorator(LinepipeContext, ensure=True)


def handle_exception(
    error: BaseException,
    ctx: Optional[Any] = None,
    additional_msg: str = "",
    skip_traceback: bool = False,
) -> None:
    """
    Log an exception and exit with the matching exit code.

    Parameters
    ----------
    error : BaseException
        The exception object.
    ctx : Optional[Any]
        Optional CLI context object with logger.
    additional_msg : str
        Additional message to log, if any.
    skip_traceback : bool
        If True, suppresses traceback output unless overridden by error
        type.

    Raises
    ------
    SystemExit
        Exits the program with the appropriate exit code.
    """
    if isinstance(error, UserError):
        error_msg = error.msg
        exit_code = error.exit_code
        skip_traceback = True
    elif isinstance(error, (CommandFailed, CommandTimeout, SpawnError)):
        error_msg = error.msg
        exit_code = error.exit_code
        skip_traceback = True
    elif isinstance(error, LinepipeError):
        error_msg = error.msg
        exit_code = error.exit_code
    else:
        error_msg = str(error)
        exit_code = 1

    tb = error.__traceback__
    while tb and tb.tb_next:
        tb = tb.tb_next
    if tb:
        frame = tb.tb_frame
        filename = os.path.basename(frame.f_code.co_filename)
        module = frame.f_globals.get("__name__", "")
        origin = f"{module}:{filename}:{tb.tb_lineno}"
    else:
        origin = "unknown:unknown:0"

    logger = getattr(ctx, "logger", None) or get_logger()
    logger.error(f"[Origin: {origin}]{additional_msg} {error_msg}")

    if not skip_traceback:
        echo(err=True)
        echo(
            "".join(traceback.format_exception(type(error), error, error.__traceback__)),
            err=True,
        )

    sys.exit(exit_code)


def exception_handler(func: Any) -> Any:
    """
    Route unhandled exceptions of a CLI command through `handle_exception`.

    `SystemExit`, click exits and aborts, and `KeyboardInterrupt`
    pass through untouched.

    Parameters
    ----------
    func : Callable
        The function to wrap.

    Returns
    -------
    Callable
        The wrapped function with exception handling.
    """

    @wraps(func)
    def wrapper(*args: Any, **kwargs: Any) -> Any:
        sig = signature(func)
        ctx = None
        if "ctx" in sig.parameters:
            ctx = kwargs.get("ctx")
            if ctx is None:
                ctx_index = list(sig.parameters).index("ctx")
                if len(args) > ctx_index:
                    ctx = args[ctx_index]
        try:
            return func(*args, **kwargs)
        except (SystemExit, KeyboardInterrupt, click.exceptions.Exit, click.Abort):
            raise
        except Exception as e:
            handle_exception(e, ctx)

    return wrapper


# ----------------------------------------------------------------------
# Parsing
# ----------------------------------------------------------------------
def parse_key_value_pair(kv_pair: str) -> tuple[str, str]:
    """
    Parse a ``KEY=VALUE`` string.

    Parameters
    ----------
    kv_pair : str
        The string to parse.

    Returns
    -------
    tuple[str, str]
        The stripped key and value. The value may contain ``=``.

    Raises
    ------
    UserError
        If the string has no ``=`` or an empty key.
    """
    key, sep, value = kv_pair.partition("=")
    key = key.strip()
    if not sep or not key:
        raise UserError(
            f"Invalid key-value pair: '{kv_pair}'.",
            "Key-value pairs should be formatted like 'KEY=VALUE'.",
        )
    return key, value.strip()


def cli_ver() -> str:
    """Return the installed version of linepipe."""
    try:
        return version("linepipe")
    except PackageNotFoundError:
        return "unknown"


# ----------------------------------------------------------------------
# Command Output
# ----------------------------------------------------------------------
@contextmanager
def terminate_on_signal(ctx: Any, executions: list[Execution]) -> Iterator[None]:
    """
    Terminate running executions on SIGINT or SIGTERM.

    Commands run in their own session, so terminal signals do not reach
    them directly. Outside the main thread this is a no-op.

    Parameters
    ----------
    ctx : LinepipeContext
        Context whose logger reports the signal.
    executions : list[Execution]
        The executions to terminate.
    """
    if threading.current_thread() is not threading.main_thread():
        yield
        return

    def kill_on_signal(signum: int, frame: Any) -> None:
        ctx.logger.warn(f"Terminating command on signal {signum}")
        for execution in executions:
            execution.terminate()

    old_sigint = signal.signal(signal.SIGINT, kill_on_signal)
    old_sigterm = signal.signal(signal.SIGTERM, kill_on_signal)
    try:
        yield
    finally:
        signal.signal(signal.SIGINT, old_sigint)
        signal.signal(signal.SIGTERM, old_sigterm)


def echo_stream(
    ctx: Any,
    executions: list[Execution],
    timeout: float | None = None,
    strip: bool = False,
) -> list[ExitStatus]:
    """
    Echo the last execution's output and wait for every execution.

    Parameters
    ----------
    ctx : LinepipeContext
        The CLI context.
    executions : list[Execution]
        Running executions, in pipeline order.
    timeout : float, optional
        Seconds before all executions are terminated.
    strip : bool, optional
        Remove ANSI escape sequences from each line.

    Returns
    -------
    list[ExitStatus]
        The status of each execution, in order.

    Raises
    ------
    CommandTimeout
        If the timeout expired. Output produced so far was echoed.
    """
    timed_out = threading.Event()
    timer = None
    if timeout is not None:

        def expire() -> None:
            timed_out.set()
            for execution in executions:
                execution.terminate()

        timer = threading.Timer(timeout, expire)
        timer.daemon = True
        timer.start()

    last = executions[-1]
    assert last.stdout is not None
    try:
        with terminate_on_signal(ctx, executions):
            for line in last.stdout:
                echo(strip_ansi(line) if strip else line)
            statuses = [execution.wait() for execution in executions]
    except BaseException:
        for execution in executions:
            execution.terminate()
        raise
    finally:
        if timer is not None:
            timer.cancel()
    if timed_out.is_set():
        display = " | ".join(e.spec.display for e in executions)
        raise CommandTimeout(display, timeout or 0.0, statuses[-1])
    return statuses
