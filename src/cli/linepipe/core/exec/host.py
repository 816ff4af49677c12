"""Executes commands on the host via subprocess."""

from __future__ import annotations

import queue
import subprocess
import sys
import threading
import time
from collections.abc import Callable, Iterator
from typing import IO, TYPE_CHECKING, Any

from linepipe.core.errors import CommandTimeout, PipeError, SpawnError, StreamError
from linepipe.core.exec.process import CommandSpec, ProcessHandle
from linepipe.core.exec.status import ExitStatus
from linepipe.core.exec.stream import LineStream
from linepipe.core.logging.common import OUTPUT_LOCK
from linepipe.settings import (
    DEFAULT_ENCODING,
    DEFAULT_SHELL,
    DEFAULT_TERM_GRACE,
    MAX_QUEUED_LINES,
)

if TYPE_CHECKING:
    from linepipe.core.context import LinepipeContext

_EOF = object()
_POLL_INTERVAL = 0.1


def forward_to(stream_name: str) -> Callable[[str], None]:
    """Return a line writer for ``sys.stdout`` or ``sys.stderr``.

    The target is looked up on every write so redirected streams (for
    example under a test runner) receive the output.
    """

    def write(line: str) -> None:
        target = getattr(sys, stream_name)
        with OUTPUT_LOCK:
            target.write(line + "\n")
            target.flush()

    return write


class OutputChannel:
    """Drains one output pipe of a process on a dedicated thread.

    Lines are either queued for a `LineStream` consumer or handed to a
    `forward` callable. The queue holds at most `max_lines` lines; when
    it is full the reader blocks, and the process blocks on its pipe,
    until the consumer catches up. In discard mode lines are dropped. In
    overflow mode lines that do not fit are dropped, so the pipe keeps
    draining whatever the consumer does.
    """

    def __init__(
        self,
        name: str,
        pipe: IO[str],
        forward: Callable[[str], None] | None = None,
        max_lines: int = MAX_QUEUED_LINES,
    ) -> None:
        self.name = name
        self.line_count = 0
        self.dropped = 0
        self._pipe = pipe
        self._forward = forward
        self._queue: queue.Queue[Any] = queue.Queue(maxsize=max(max_lines, 2))
        self._discard = threading.Event()
        self._overflow = threading.Event()
        self.thread = threading.Thread(
            target=self._drain, name=f"linepipe-{name}", daemon=True
        )

    def start(self) -> None:
        self.thread.start()

    @property
    def pending(self) -> int:
        """Number of lines queued and not yet consumed."""
        return self._queue.qsize()

    def _drain(self) -> None:
        try:
            for line in self._pipe:
                self.line_count += 1
                if self._discard.is_set():
                    continue
                line = line[:-1] if line.endswith("\n") else line
                if self._forward is not None:
                    self._forward(line)
                else:
                    self._put(line)
        except (OSError, ValueError) as e:
            self._put(e)
        finally:
            self._put_eof()

    def _put(self, item: Any) -> None:
        while not self._discard.is_set():
            if self._overflow.is_set():
                try:
                    self._queue.put_nowait(item)
                except queue.Full:
                    self.dropped += 1
                return
            try:
                self._queue.put(item, timeout=_POLL_INTERVAL)
                return
            except queue.Full:
                continue

    def _put_eof(self) -> None:
        while True:
            try:
                self._queue.put(_EOF, timeout=_POLL_INTERVAL)
                return
            except queue.Full:
                if not (self._discard.is_set() or self._overflow.is_set()):
                    continue
            # Make room for the marker.
            try:
                self._queue.get_nowait()
                self.dropped += 1
            except queue.Empty:
                pass

    def _pull(self) -> Iterator[str]:
        while True:
            item = self._queue.get()
            if item is _EOF:
                return
            if isinstance(item, BaseException):
                raise PipeError(f"Failed to read {self.name}: {item}") from item
            yield item

    def stream(self, on_close: Callable[[], None]) -> LineStream:
        """Return the consumer-facing line stream. Not restartable."""
        return LineStream(source=self._pull(), on_close=on_close, name=self.name)

    def overflow(self) -> None:
        """Stop blocking on a full queue. Lines that do not fit are dropped."""
        self._overflow.set()

    def discard(self) -> None:
        """Drop buffered and future lines. The pipe is still drained."""
        self._discard.set()
        while True:
            try:
                item = self._queue.get_nowait()
            except queue.Empty:
                break
            if item is _EOF:
                self._queue.put(_EOF)
                break

    def join(self, timeout: float | None = None) -> bool:
        """Wait for the far end to close. Returns whether it did."""
        self.thread.join(timeout)
        return not self.thread.is_alive()


class Execution:
    """A running command: its output streams and, eventually, its status.

    Created by `HostCommandExecutor.execute()`. A feeder thread writes the
    input stream to the process and reader threads drain its output
    concurrently, so neither side can block the other on a full pipe.

    Attributes
    ----------
    spec : CommandSpec
        The command being run.
    stdout : LineStream | None
        Standard output lines, when captured.
    stderr : LineStream | None
        Standard error lines, when captured.
    """

    def __init__(
        self,
        ctx: LinepipeContext,
        spec: CommandSpec,
        handle: ProcessHandle,
        channels: dict[str, OutputChannel],
        term_grace: float,
        suppress_output: bool = False,
    ) -> None:
        self._ctx = ctx
        self.spec = spec
        self.handle = handle
        self._channels = channels
        self._term_grace = term_grace
        self._suppress = suppress_output
        self._start = time.monotonic()
        self._status: ExitStatus | None = None
        self._feed_error: BaseException | None = None
        self._kill_timer: threading.Timer | None = None
        self._lock = threading.RLock()
        self._term_lock = threading.RLock()
        self.stdout: LineStream | None = None
        self.stderr: LineStream | None = None
        for name, channel in channels.items():
            if channel._forward is None:
                stream = channel.stream(lambda n=name: self._abandon(n))
                setattr(self, name, stream)
        self._feeder = threading.Thread(
            target=self._feed, name="linepipe-stdin", daemon=True
        )

    def start(self) -> Execution:
        for channel in self._channels.values():
            channel.start()
        self._feeder.start()
        return self

    @property
    def pid(self) -> int:
        return self.handle.pid

    @property
    def status(self) -> ExitStatus | None:
        """Final exit status, or None while the command is still running."""
        return self._status

    @property
    def running(self) -> bool:
        return self.handle.poll() is None

    def _debug(self, msg: str) -> None:
        if not self._suppress:
            self._ctx.logger.debug(msg)

    # ------------------------------------------------------------------
    # Standard input
    # ------------------------------------------------------------------
    def _feed(self) -> None:
        """Write the input stream to the process, one line per write."""
        source = self.spec.stdin
        pipe = self.handle.stdin
        finished = False
        try:
            while pipe is not None:
                try:
                    if not source.has_next():
                        finished = True
                        break
                    line = source.next_line()
                except Exception as e:
                    self._feed_error = e
                    self._debug(f"Input stream for '{self.spec.display}' failed: {e}")
                    self.terminate()
                    break
                try:
                    pipe.write(line + "\n")
                except (BrokenPipeError, ValueError):
                    self._debug(f"'{self.spec.display}' closed its standard input")
                    break
                except OSError as e:
                    self._ctx.logger.warn(
                        f"Stopped feeding '{self.spec.display}': {e}"
                    )
                    break
        finally:
            self.handle.close_stdin()
            if not finished:
                source.close()

    # ------------------------------------------------------------------
    # Termination
    # ------------------------------------------------------------------
    def _abandon(self, name: str) -> None:
        """Consumer closed an output stream before exhausting it."""
        self._channels[name].discard()
        if name == "stdout" and self.running:
            self._debug(
                f"Standard output of '{self.spec.display}' abandoned, terminating"
            )
            self.terminate()

    def terminate(self) -> None:
        """Ask the command to stop without waiting for it.

        Sends SIGTERM to the process group now and SIGKILL after the
        grace period. Does not block, so it is safe in signal handlers.
        """
        with self._term_lock:
            if self._kill_timer is not None or self._status is not None:
                return
            self.handle.terminate()
            self._kill_timer = threading.Timer(self._term_grace, self._kill)
            self._kill_timer.daemon = True
            self._kill_timer.start()

    def _kill(self) -> None:
        if self.handle.poll() is None:
            self._ctx.logger.warn(
                f"'{self.spec.display}' ignored SIGTERM for "
                f"{self._term_grace:g}s, killing"
            )
            self.handle.kill()

    def abort(self) -> ExitStatus:
        """Stop the command and reap it.

        Discards remaining output, terminates the process group
        (escalating to SIGKILL after the grace period) and waits for the
        process to be reaped.
        """
        if self._status is None:
            self._debug(f"Aborting '{self.spec.display}'")
            for channel in self._channels.values():
                channel.discard()
            self.terminate()
        return self.wait()

    def wait(self, timeout: float | None = None) -> ExitStatus:
        """Wait for the command to terminate and its output to close.

        From here on the output pipes drain whether or not anyone reads
        the streams. Lines already queued stay readable; lines that no
        longer fit in the queue are dropped.

        Parameters
        ----------
        timeout : float, optional
            Seconds to wait. On expiry the command is aborted.

        Returns
        -------
        ExitStatus
            The final status.

        Raises
        ------
        CommandTimeout
            If `timeout` expired; the command was aborted and reaped.
        PipeError
            If the input stream failed while being fed.
        """
        for channel in self._channels.values():
            channel.overflow()
        return self._wait(timeout)

    def communicate(
        self, timeout: float | None = None
    ) -> tuple[ExitStatus, list[str], list[str]]:
        """Read all captured output and wait for the command.

        Each captured stream is read on its own thread, so a full queue
        on one cannot stall the other and no line is dropped.

        Returns
        -------
        tuple[ExitStatus, list[str], list[str]]
            The status, standard output lines and standard error lines.

        Raises
        ------
        CommandTimeout
            If `timeout` expired.
        PipeError
            If reading an output pipe or feeding the input failed.
        """
        collected: dict[str, list[str]] = {"stdout": [], "stderr": []}
        errors: list[PipeError] = []

        def read(name: str, stream: LineStream) -> None:
            try:
                collected[name] = stream.collect()
            except PipeError as e:
                errors.append(e)

        readers = [
            threading.Thread(
                target=read, args=(name, stream), name=f"linepipe-read-{name}"
            )
            for name, stream in (("stdout", self.stdout), ("stderr", self.stderr))
            if stream is not None
        ]
        for reader in readers:
            reader.start()
        try:
            status = self._wait(timeout)
        finally:
            for reader in readers:
                reader.join()
        if errors:
            raise errors[0]
        return status, collected["stdout"], collected["stderr"]

    def _wait(self, timeout: float | None) -> ExitStatus:
        with self._lock:
            if self._status is None:
                try:
                    self._reap(timeout)
                except subprocess.TimeoutExpired:
                    status = self.abort()
                    raise CommandTimeout(
                        self.spec.display, timeout or 0.0, status
                    ) from None
            if self._feed_error is not None:
                raise PipeError(
                    f"Input stream for '{self.spec.display}' failed: "
                    f"{self._feed_error}"
                ) from self._feed_error
            assert self._status is not None
            return self._status

    def _reap(self, timeout: float | None) -> None:
        deadline = None if timeout is None else time.monotonic() + timeout

        def remaining() -> float | None:
            if deadline is None:
                return None
            return max(0.0, deadline - time.monotonic())

        status = self.handle.wait(timeout=remaining())
        for channel in self._channels.values():
            if not channel.join(remaining()):
                raise subprocess.TimeoutExpired(self.handle.argv, timeout or 0.0)
        self._feeder.join(0.1)
        if self._kill_timer is not None:
            self._kill_timer.cancel()
        self.handle.release()
        self._status = status
        duration = time.monotonic() - self._start
        self._debug(
            f"Command '{self.spec.display}' {status.describe()} "
            f"(pid {self.pid}, {duration:.2f}s)"
        )

    def __enter__(self) -> Execution:
        return self

    def __exit__(self, exc_type: Any, *exc: object) -> None:
        if exc_type is not None:
            self.abort()
        else:
            self.wait()

    def __repr__(self) -> str:
        state = self._status.describe() if self._status else "running"
        return f"<Execution {self.spec.display!r} pid={self.pid} {state}>"


class HostCommandExecutor:
    """Executes commands on the host via subprocess."""

    def __init__(self, ctx: LinepipeContext) -> None:
        self._ctx = ctx

    def _setting(self, key: str, default: str) -> str:
        env = self._ctx.env
        value = env.get(key) if env is not None else ""
        return value or default

    @property
    def shell(self) -> str:
        return self._setting("LINEPIPE_SHELL", DEFAULT_SHELL)

    @property
    def encoding(self) -> str:
        return self._setting("LINEPIPE_ENCODING", DEFAULT_ENCODING)

    @property
    def term_grace(self) -> float:
        env = self._ctx.env
        if env is None:
            return DEFAULT_TERM_GRACE
        return env.get_float("LINEPIPE_TERM_GRACE", DEFAULT_TERM_GRACE)

    def execute(
        self,
        spec: CommandSpec,
        capture_stdout: bool = True,
        capture_stderr: bool = False,
        **kwargs: Any,
    ) -> Execution:
        """Spawn a command and start feeding and draining it.

        Parameters
        ----------
        spec : CommandSpec
            The command and its input stream. The input stream is claimed.
        capture_stdout : bool, optional
            Expose standard output as a line stream. Otherwise it is
            forwarded to ``sys.stdout``.
        capture_stderr : bool, optional
            Expose standard error as a line stream. Otherwise it is
            forwarded to ``sys.stderr``.

        Keyword Arguments
        -----------------
        suppress_output : bool
            If True, skips debug logging for this command.

        Returns
        -------
        Execution
            The running command.

        Raises
        ------
        SpawnError
            If the process could not be started.
        StreamError
            If the input stream already feeds another process.
        """
        suppress = bool(kwargs.get("suppress_output", False))
        if not isinstance(spec.stdin, LineStream):
            raise StreamError(
                f"Standard input must be a LineStream, got: {type(spec.stdin)!r}"
            )
        spec.stdin.claim()
        if not suppress:
            self._ctx.logger.debug(f"Executing command on host:\n{spec.display}")
        try:
            handle = ProcessHandle.spawn(
                spec, shell=self.shell, encoding=self.encoding
            )
        except SpawnError:
            spec.stdin.release()
            raise
        assert handle.stdout is not None and handle.stderr is not None
        channels = {
            "stdout": OutputChannel(
                "stdout",
                handle.stdout,
                None if capture_stdout else forward_to("stdout"),
            ),
            "stderr": OutputChannel(
                "stderr",
                handle.stderr,
                None if capture_stderr else forward_to("stderr"),
            ),
        }
        execution = Execution(
            self._ctx,
            spec,
            handle,
            channels,
            term_grace=self.term_grace,
            suppress_output=suppress,
        )
        return execution.start()
