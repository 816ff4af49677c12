"""Unit tests for host command execution.

These tests spawn real POSIX processes (sh, cat, yes, seq, sleep).
"""

import io
import signal
import time
from unittest.mock import MagicMock, Mock

import pytest

from linepipe.core.errors import (
    CommandTimeout,
    PipeError,
    SpawnError,
    StreamError,
)
from linepipe.core.exec.host import HostCommandExecutor, OutputChannel
from linepipe.core.exec.process import CommandSpec
from linepipe.core.exec.status import FailedWithCode, KilledBySignal, Succeeded
from linepipe.core.exec.stream import LineStream
from linepipe.settings import MAX_QUEUED_LINES


@pytest.fixture
def host(ctx):
    """Create a host executor over the test context."""
    return HostCommandExecutor(ctx)


class TestHostCommandExecutor:
    """Test suite for HostCommandExecutor."""

    def test_defaults_without_settings(self):
        """Test built-in defaults apply when the context has no settings."""
        mock_ctx = Mock()
        mock_ctx.env = None

        host = HostCommandExecutor(mock_ctx)

        assert host.shell == "/bin/sh"
        assert host.encoding == "utf-8"
        assert host.term_grace == 5.0

    def test_settings_from_env(self, ctx):
        """Test shell and grace period are read from the settings."""
        ctx.env["LINEPIPE_SHELL"] = "/bin/bash"
        ctx.env["LINEPIPE_TERM_GRACE"] = "0.5"

        host = HostCommandExecutor(ctx)

        assert host.shell == "/bin/bash"
        assert host.term_grace == 0.5

    def test_echo_input_through_cat(self, host):
        """Test input lines come back unchanged through cat."""
        spec = CommandSpec("cat", stdin=LineStream.from_lines(["a", "b", "c"]))

        execution = host.execute(spec)

        assert execution.stdout.collect() == ["a", "b", "c"]
        assert execution.wait(timeout=10) == Succeeded()

    def test_empty_input_closes_stdin(self, host):
        """Test an empty input stream closes stdin so cat exits."""
        execution = host.execute(CommandSpec("cat"))

        assert execution.stdout.collect() == []
        assert execution.wait(timeout=10) == Succeeded()

    def test_logs_command(self, ctx, host):
        """Test the command is logged at debug level."""
        ctx.logger = Mock()
        execution = host.execute(CommandSpec("true"))
        execution.wait(timeout=10)

        ctx.logger.debug.assert_any_call("Executing command on host:\ntrue")

    def test_suppress_output_skips_logging(self, ctx, host):
        """Test suppress_output silences the debug logs."""
        ctx.logger = Mock()
        execution = host.execute(CommandSpec("true"), suppress_output=True)
        execution.wait(timeout=10)

        ctx.logger.debug.assert_not_called()

    @pytest.mark.parametrize("code", [1, 2, 42, 255])
    def test_exit_codes(self, host, code):
        """Test non-zero exit codes are reported as FailedWithCode."""
        execution = host.execute(CommandSpec(f"exit {code}"))

        assert execution.wait(timeout=10) == FailedWithCode(code)

    def test_killed_by_signal(self, host):
        """Test a process killed by a signal reports that signal."""
        execution = host.execute(CommandSpec("kill -TERM $$"))

        assert execution.wait(timeout=10) == KilledBySignal(signal.SIGTERM)

    def test_large_input_does_not_deadlock(self, host):
        """Test input far larger than a pipe buffer streams through cat."""
        count = 200_000
        spec = CommandSpec(
            "cat", stdin=LineStream.from_lines(f"line {i}" for i in range(count))
        )

        execution = host.execute(spec)
        received = 0
        last = None
        for line in execution.stdout:
            received += 1
            last = line

        assert received == count
        assert last == f"line {count - 1}"
        assert execution.wait(timeout=30) == Succeeded()

    def test_large_stderr_does_not_block_stdout(self, host):
        """Test a chatty stderr does not stall reading stdout."""
        script = (
            "i=0; while [ $i -lt 20000 ]; do echo err >&2; i=$((i+1)); done; "
            "echo done"
        )
        execution = host.execute(CommandSpec(script), capture_stderr=True)

        assert execution.stdout.collect() == ["done"]
        assert len(execution.stderr.collect()) == 20000
        assert execution.wait(timeout=30) == Succeeded()

    def test_forwarded_output(self, host, capsys):
        """Test uncaptured output is forwarded to sys.stdout and sys.stderr."""
        execution = host.execute(
            CommandSpec("echo out; echo err >&2"),
            capture_stdout=False,
            capture_stderr=False,
        )

        assert execution.stdout is None
        assert execution.wait(timeout=10) == Succeeded()
        captured = capsys.readouterr()
        assert captured.out == "out\n"
        assert captured.err == "err\n"

    def test_spawn_error_for_missing_program(self, host):
        """Test a missing program raises SpawnError in direct mode."""
        spec = CommandSpec("linepipe-no-such-program", shell=False)

        with pytest.raises(SpawnError):
            host.execute(spec)

    def test_spawn_error_for_missing_shell(self, ctx):
        """Test a missing shell raises SpawnError."""
        ctx.env["LINEPIPE_SHELL"] = "/no/such/shell"
        host = HostCommandExecutor(ctx)

        with pytest.raises(SpawnError):
            host.execute(CommandSpec("true"))

    def test_spawn_error_releases_input(self, host):
        """Test input from a failed spawn can feed another command."""
        stream = LineStream.from_lines(["a"])

        with pytest.raises(SpawnError):
            host.execute(
                CommandSpec("linepipe-no-such-program", shell=False, stdin=stream)
            )
        execution = host.execute(CommandSpec("cat", stdin=stream))

        assert execution.stdout.collect() == ["a"]
        assert execution.wait(timeout=10) == Succeeded()

    def test_double_claim_raises(self, host):
        """Test one input stream cannot feed two running commands."""
        stream = LineStream.from_lines(["a"])
        first = host.execute(CommandSpec("cat", stdin=stream))

        with pytest.raises(StreamError):
            host.execute(CommandSpec("cat", stdin=stream))
        first.stdout.collect()
        first.wait(timeout=10)

    def test_stdin_must_be_a_stream(self, host):
        """Test a plain list is rejected as standard input."""
        with pytest.raises(StreamError):
            host.execute(CommandSpec("cat", stdin=["a"]))  # type: ignore[arg-type]


class TestExecution:
    """Test suite for Execution lifecycle."""

    def test_abandoned_stdout_terminates_producer(self, host):
        """Test closing stdout early terminates an infinite producer."""
        execution = host.execute(CommandSpec("yes"))

        assert execution.stdout.next_line() == "y"
        execution.stdout.close()

        status = execution.wait(timeout=10)
        assert isinstance(status, KilledBySignal)

    def test_idle_consumer_keeps_output_bounded(self, host):
        """Test an unread infinite producer queues a bounded number of lines."""
        execution = host.execute(CommandSpec("yes"))
        assert execution.stdout.next_line() == "y"

        time.sleep(1)

        channel = execution._channels["stdout"]
        assert channel.pending <= MAX_QUEUED_LINES
        assert execution.running
        execution.stdout.close()
        assert isinstance(execution.wait(timeout=10), KilledBySignal)

    def test_wait_does_not_depend_on_reading(self, host):
        """Test wait returns while output beyond the queue size is unread."""
        execution = host.execute(CommandSpec(f"seq {MAX_QUEUED_LINES * 3}"))

        assert execution.wait(timeout=30) == Succeeded()
        lines = execution.stdout.collect()
        assert 0 < len(lines) <= MAX_QUEUED_LINES
        assert execution._channels["stdout"].dropped > 0

    def test_communicate_reads_both_streams(self, host):
        """Test communicate keeps every line when one stream is large."""
        count = MAX_QUEUED_LINES + 5000
        execution = host.execute(
            CommandSpec(f"seq {count} >&2; echo done"), capture_stderr=True
        )

        status, out, err = execution.communicate(timeout=30)

        assert status == Succeeded()
        assert out == ["done"]
        assert len(err) == count
        assert err[-1] == str(count)

    def test_communicate_timeout(self, host):
        """Test communicate aborts the command when the timeout expires."""
        execution = host.execute(CommandSpec("echo start; sleep 30"))

        with pytest.raises(CommandTimeout):
            execution.communicate(timeout=0.3)

        assert isinstance(execution.status, KilledBySignal)

    def test_consumer_stops_early_does_not_stall(self, host):
        """Test closing the input early lets the consumer finish."""
        spec = CommandSpec(
            "head -n 1", stdin=LineStream.from_lines(f"{i}" for i in range(10**9))
        )

        execution = host.execute(spec)

        assert execution.stdout.collect() == ["0"]
        assert execution.wait(timeout=10) == Succeeded()

    def test_timeout_aborts(self, ctx):
        """Test wait(timeout) aborts and reports the status in the error."""
        ctx.env["LINEPIPE_TERM_GRACE"] = "1"
        host = HostCommandExecutor(ctx)
        execution = host.execute(CommandSpec("sleep", ["30"], shell=False))

        start = time.monotonic()
        with pytest.raises(CommandTimeout) as exc_info:
            execution.wait(timeout=0.2)

        assert time.monotonic() - start < 10
        assert exc_info.value.status == KilledBySignal(signal.SIGTERM)
        assert execution.status == KilledBySignal(signal.SIGTERM)

    def test_kill_after_grace(self, ctx):
        """Test a process ignoring SIGTERM is killed after the grace period."""
        ctx.env["LINEPIPE_TERM_GRACE"] = "0.2"
        host = HostCommandExecutor(ctx)
        execution = host.execute(
            CommandSpec("trap '' TERM; echo ready; while true; do sleep 0.05; done")
        )
        assert execution.stdout.next_line() == "ready"

        status = execution.abort()

        assert isinstance(status, KilledBySignal)
        assert status.signal == signal.SIGKILL

    def test_failing_input_stream_raises_pipe_error(self, host):
        """Test an input stream raising mid-feed surfaces as PipeError."""

        def source():
            yield "a"
            raise RuntimeError("input broke")

        spec = CommandSpec("cat", stdin=LineStream(source=source()))
        execution = host.execute(spec)

        with pytest.raises(PipeError, match="input broke"):
            execution.wait(timeout=10)
        assert execution.status is not None

    def test_wait_is_idempotent(self, host):
        """Test repeated waits return the same status."""
        execution = host.execute(CommandSpec("exit 3"))

        assert execution.wait(timeout=10) == FailedWithCode(3)
        assert execution.wait() == FailedWithCode(3)
        assert execution.handle.released

    def test_terminate_after_exit_is_noop(self, host):
        """Test terminate does nothing once the command has been reaped."""
        execution = host.execute(CommandSpec("true"))
        execution.wait(timeout=10)

        execution.terminate()

        assert execution.status == Succeeded()

    def test_context_manager_waits(self, host):
        """Test leaving the with block normally waits for the command."""
        with host.execute(CommandSpec("echo hi")) as execution:
            assert execution.stdout.collect() == ["hi"]
        assert execution.status == Succeeded()

    def test_context_manager_aborts_on_error(self, host):
        """Test an error inside the with block aborts the command."""
        with pytest.raises(RuntimeError):
            with host.execute(CommandSpec("sleep", ["30"], shell=False)) as execution:
                raise RuntimeError("boom")
        assert isinstance(execution.status, KilledBySignal)

    def test_env_and_cwd(self, host, tmp_path):
        """Test environment overrides and working directory are applied."""
        workdir = tmp_path.resolve()
        spec = CommandSpec(
            'echo "$LP_VALUE"; pwd -P', env={"LP_VALUE": "x"}, cwd=str(workdir)
        )

        execution = host.execute(spec)

        assert execution.stdout.collect() == ["x", str(workdir)]
        execution.wait(timeout=10)

    def test_undecodable_bytes_are_replaced(self, host):
        """Test invalid UTF-8 bytes decode to the replacement character."""
        execution = host.execute(CommandSpec(r"printf '\377ok\n'"))

        assert execution.stdout.collect() == ["�ok"]
        execution.wait(timeout=10)


class TestOutputChannel:
    """Test suite for OutputChannel."""

    def test_read_error_becomes_pipe_error(self):
        """Test a failing pipe read surfaces as PipeError to the consumer."""
        pipe = MagicMock()
        pipe.__iter__.side_effect = OSError("bad read")
        channel = OutputChannel("stdout", pipe)
        channel.start()

        stream = channel.stream(lambda: None)

        with pytest.raises(PipeError, match="bad read"):
            stream.collect()
        assert channel.join(5)

    def test_full_queue_blocks_reader(self):
        """Test the reader waits for the consumer once the queue is full."""
        channel = OutputChannel("stdout", io.StringIO("a\nb\nc\nd\n"), max_lines=2)
        channel.start()

        assert not channel.join(0.3)
        assert channel.pending == 2

        assert channel.stream(lambda: None).collect() == ["a", "b", "c", "d"]
        assert channel.join(5)
        assert channel.dropped == 0

    def test_overflow_drops_lines_that_do_not_fit(self):
        """Test overflow mode keeps draining and drops the excess."""
        channel = OutputChannel(
            "stdout", io.StringIO("a\nb\nc\nd\ne\n"), max_lines=2
        )
        channel.overflow()
        channel.start()

        assert channel.join(5)
        assert channel.line_count == 5
        assert channel.dropped == 4
        assert channel.stream(lambda: None).collect() == ["b"]

    def test_discard_drops_lines(self):
        """Test discard empties the queue but keeps the end marker."""
        channel = OutputChannel("stdout", io.StringIO("a\nb\n"))
        channel.start()
        assert channel.join(5)

        channel.discard()

        assert channel.stream(lambda: None).collect() == []
        assert channel.line_count == 2
