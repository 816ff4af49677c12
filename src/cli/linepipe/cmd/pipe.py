"""Run a pipeline of shell commands."""

import sys

import click

from linepipe import utils
from linepipe.cmd.run import build_input
from linepipe.core.context import LinepipeContext


@click.command(
    "pipe",
    help=(
        "Run shell commands as a pipeline, each one reading the previous "
        "one's output. Exits with the code of the last command, like the shell."
    ),
)
@click.argument("commands", nargs=-1, required=True)
@click.option(
    "-i",
    "--input",
    "input_file",
    default=None,
    type=click.Path(exists=True, dir_okay=False),
    help="Feed the lines of a file to the first command.",
)
@click.option(
    "--stdin",
    "use_stdin",
    is_flag=True,
    default=False,
    help="Feed linepipe's own standard input to the first command.",
)
@click.option(
    "--strict",
    is_flag=True,
    default=False,
    help="Report a failing last command as an error.",
)
@click.option(
    "-t",
    "--timeout",
    default=None,
    type=click.FloatRange(min=0),
    help="Terminate the pipeline after this many seconds.",
)
@utils.exception_handler
@utils.pass_environment()
def cli(
    ctx: LinepipeContext,
    commands: tuple,
    input_file: str,
    use_stdin: bool,
    strict: bool,
    timeout: float,
) -> None:
    """
    Run a pipeline.

    Parameters
    ----------
    commands : tuple
        Shell commands, in pipeline order.
    input_file : str
        File whose lines are fed to the first command.
    use_stdin : bool
        If True, feeds linepipe's standard input to the first command.
    strict : bool
        If True, a failing last command is logged as an error.
    timeout : float
        Seconds before the whole pipeline is terminated.
    """
    ctx.initialize()
    stdin = build_input(input_file, use_stdin)
    executions = ctx.cmd_executor.pipeline(list(commands), stdin)
    statuses = utils.echo_stream(ctx, executions, timeout=timeout)
    for execution, status in zip(executions, statuses):
        ctx.logger.debug(f"'{execution.spec.display}' {status.describe()}")
    last = statuses[-1]
    if strict:
        last.check(executions[-1].spec.display)
    sys.exit(last.code)
