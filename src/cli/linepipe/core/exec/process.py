"""Process handles for spawned external commands."""

from __future__ import annotations

import os
import shlex
import signal
import subprocess
from dataclasses import dataclass, field
from typing import IO

from linepipe.core.errors import SpawnError
from linepipe.core.exec.status import ExitStatus
from linepipe.core.exec.stream import LineStream

POSIX = os.name == "posix"


@dataclass
class CommandSpec:
    """What to run and what to feed it.

    A spec is consumed once: its `stdin` stream is claimed when the
    process is spawned.

    Attributes
    ----------
    command : str
        Command text. In shell mode it is handed verbatim to the shell;
        otherwise it names the program to execute.
    args : list[str]
        Arguments for direct execution. Ignored in shell mode.
    stdin : LineStream
        Lines fed to the process' standard input.
    shell : bool
        Whether `command` is interpreted by the shell.
    cwd : str | None
        Working directory override.
    env : dict[str, str] | None
        Environment variables merged over the current environment.
    """

    command: str
    args: list[str] = field(default_factory=list)
    stdin: LineStream = field(default_factory=LineStream.empty)
    shell: bool = True
    cwd: str | None = None
    env: dict[str, str] | None = None

    @property
    def display(self) -> str:
        """Command text as shown in logs and diagnostics."""
        if self.shell or not self.args:
            return self.command
        return shlex.join([self.command, *self.args])


class ProcessHandle:
    """A live reference to one spawned OS process and its standard channels.

    The handle is created by `spawn()`, stays live while the OS process
    exists, and is released (pipes closed) once termination has been
    observed and its output drained.

    Attributes
    ----------
    command : str
        The command text.
    argv : list[str]
        The argument vector passed to the OS.
    cwd : str | None
        Working directory override.
    env : dict[str, str] | None
        Full environment the process was started with.
    """

    def __init__(
        self,
        command: str,
        argv: list[str],
        popen: subprocess.Popen,
        cwd: str | None = None,
        env: dict[str, str] | None = None,
    ) -> None:
        self.command = command
        self.argv = argv
        self.cwd = cwd
        self.env = env
        self._popen = popen
        self._status: ExitStatus | None = None
        self._released = False

    @classmethod
    def spawn(
        cls,
        spec: CommandSpec,
        shell: str = "/bin/sh",
        encoding: str = "utf-8",
    ) -> ProcessHandle:
        """Start a process with all three standard channels on fresh pipes.

        Parameters
        ----------
        spec : CommandSpec
            The command to run.
        shell : str, optional
            Command interpreter used in shell mode.
        encoding : str, optional
            Text encoding of the pipes. Undecodable bytes are replaced.

        Returns
        -------
        ProcessHandle
            Handle to the running process.

        Raises
        ------
        SpawnError
            If the process could not be started.
        """
        if spec.shell:
            argv = [shell, "-c", spec.command]
        else:
            argv = [spec.command, *spec.args]
        env = None
        if spec.env:
            env = os.environ.copy()
            env.update(spec.env)
        try:
            popen = subprocess.Popen(
                argv,
                stdin=subprocess.PIPE,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                cwd=spec.cwd,
                env=env,
                text=True,
                encoding=encoding,
                errors="replace",
                bufsize=1,
                start_new_session=POSIX,
            )
        except (OSError, ValueError) as e:
            raise SpawnError(spec.display, e) from e
        return cls(spec.display, argv, popen, cwd=spec.cwd, env=env)

    @property
    def pid(self) -> int:
        """OS process id."""
        return self._popen.pid

    @property
    def stdin(self) -> IO[str] | None:
        """Writer end of the process' standard input."""
        return self._popen.stdin

    @property
    def stdout(self) -> IO[str] | None:
        """Reader end of the process' standard output."""
        return self._popen.stdout

    @property
    def stderr(self) -> IO[str] | None:
        """Reader end of the process' standard error."""
        return self._popen.stderr

    @property
    def status(self) -> ExitStatus | None:
        """Exit status, once termination has been observed."""
        return self._status

    def poll(self) -> ExitStatus | None:
        """Return the exit status if the process has terminated."""
        if self._status is None and self._popen.poll() is not None:
            self._status = ExitStatus.from_returncode(self._popen.returncode)
        return self._status

    def wait(self, timeout: float | None = None) -> ExitStatus:
        """Block until the process terminates and reap it.

        Raises
        ------
        subprocess.TimeoutExpired
            If `timeout` elapses first.
        """
        if self._status is None:
            rc = self._popen.wait(timeout=timeout)
            self._status = ExitStatus.from_returncode(rc)
        return self._status

    def send_signal(self, signum: int) -> None:
        """Send a signal to the process group, or the process off POSIX.

        Signalling a process (group) that no longer exists is a no-op.
        """
        try:
            if POSIX:
                os.killpg(self._popen.pid, signum)
            elif self._popen.poll() is None:
                self._popen.send_signal(signum)
        except (ProcessLookupError, PermissionError):
            pass

    def terminate(self) -> None:
        """Ask the process group to terminate."""
        self.send_signal(signal.SIGTERM)

    def kill(self) -> None:
        """Forcefully kill the process group."""
        self.send_signal(signal.SIGKILL if POSIX else signal.SIGTERM)

    def close_stdin(self) -> None:
        """Close the writer end of standard input, ignoring a broken pipe."""
        pipe = self._popen.stdin
        if pipe is None or pipe.closed:
            return
        try:
            pipe.close()
        except (BrokenPipeError, ValueError):
            pass

    def release(self) -> None:
        """Close the output pipes. Called after termination and draining."""
        if self._released:
            return
        self._released = True
        for pipe in (self._popen.stdout, self._popen.stderr):
            if pipe is not None and not pipe.closed:
                pipe.close()

    @property
    def released(self) -> bool:
        """Whether the output pipes have been released."""
        return self._released

    def __repr__(self) -> str:
        return f"<ProcessHandle pid={self.pid} command={self.command!r}>"
