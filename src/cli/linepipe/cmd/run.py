"""Run a single command with streamed input and output."""

import sys

import click

from linepipe import utils
from linepipe.core.context import LinepipeContext
from linepipe.core.errors import UserError
from linepipe.core.exec.stream import LineStream


@click.command(
    "run",
    help=(
        "Run a shell command and stream its output. The exit code of the "
        "command becomes the exit code of linepipe."
    ),
)
@click.argument("command", nargs=-1, required=True)
@click.option(
    "-p",
    "--proc",
    "direct",
    is_flag=True,
    default=False,
    help="Execute the program directly instead of through the shell.",
)
@click.option(
    "-i",
    "--input",
    "input_file",
    default=None,
    type=click.Path(exists=True, dir_okay=False),
    help="Feed the lines of a file to the command's standard input.",
)
@click.option(
    "--stdin",
    "use_stdin",
    is_flag=True,
    default=False,
    help="Feed linepipe's own standard input to the command.",
)
@click.option(
    "--strict",
    is_flag=True,
    default=False,
    help="Report a failing command as an error.",
)
@click.option(
    "-t",
    "--timeout",
    default=None,
    type=click.FloatRange(min=0),
    help="Terminate the command after this many seconds.",
)
@click.option(
    "--strip-ansi",
    "strip",
    is_flag=True,
    default=False,
    help="Remove ANSI escape sequences from the output.",
)
@click.option(
    "--cwd",
    default=None,
    type=click.Path(exists=True, file_okay=False),
    help="Working directory for the command.",
)
@utils.exception_handler
@utils.pass_environment()
def cli(
    ctx: LinepipeContext,
    command: tuple,
    direct: bool,
    input_file: str,
    use_stdin: bool,
    strict: bool,
    timeout: float,
    strip: bool,
    cwd: str,
) -> None:
    """
    Run a command.

    Parameters
    ----------
    command : tuple
        The shell command, or the program and its arguments with --proc.
    direct : bool
        If True, executes the program without a shell.
    input_file : str
        File whose lines are fed to standard input.
    use_stdin : bool
        If True, feeds linepipe's standard input to the command.
    strict : bool
        If True, a failing command is logged as an error.
    timeout : float
        Seconds before the command is terminated.
    strip : bool
        If True, removes ANSI escape sequences from the output.
    cwd : str
        Working directory for the command.
    """
    ctx.initialize()
    stdin = build_input(input_file, use_stdin)
    if direct:
        execution = ctx.cmd_executor.inproc(command[0], command[1:], stdin, cwd=cwd)
    else:
        execution = ctx.cmd_executor.inshell(" ".join(command), stdin, cwd=cwd)
    status = utils.echo_stream(ctx, [execution], timeout=timeout, strip=strip)[0]
    if strict:
        status.check(execution.spec.display)
    sys.exit(status.code)


def build_input(input_file: str | None, use_stdin: bool) -> LineStream:
    """Return the line stream selected by the --input and --stdin options."""
    if input_file and use_stdin:
        raise UserError(
            "Cannot combine --input and --stdin.",
            "Choose a single source for the command's standard input.",
        )
    if input_file:
        return LineStream.from_file(input_file)
    if use_stdin:
        return LineStream.from_pipe(click.get_text_stream("stdin"))
    return LineStream.empty()
