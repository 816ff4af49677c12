"""linepipe CLI entrypoint."""

import difflib
import os
import sys
from importlib import import_module
from typing import Any

import click

from linepipe import utils
from linepipe.core.context import LinepipeContext
from linepipe.core.logging.levels import LogLevel
from linepipe.core.logging.utils import configure_logging, get_logger


class CommandLineInterface(click.Group):
    """Click group that loads commands from the ``cmd`` package on demand."""

    def list_commands(self, ctx: click.Context) -> list[str]:
        """List available commands."""
        cmd_dir = os.path.abspath(os.path.join(os.path.dirname(__file__), "cmd"))
        commands = [
            filename[:-3].replace("_", "-")
            for filename in os.listdir(cmd_dir)
            if filename.endswith(".py") and not filename.startswith("__")
        ]
        return sorted(commands)

    def get_command(self, ctx: click.Context, name: str) -> Any:
        """Load and return the command module."""
        mod_name = name.replace("-", "_")
        try:
            mod = import_module(f"linepipe.cmd.{mod_name}")
        except ModuleNotFoundError:
            all_commands = self.list_commands(ctx)
            suggestion = difflib.get_close_matches(name, all_commands, n=1)
            suggestion_msg = f" Did you mean '{suggestion[0]}'?" if suggestion else ""
            logger = configure_logging(get_logger().log_level)
            logger.error(f"Command '{name}' not found.{suggestion_msg}")
            sys.exit(2)
        cmd = getattr(mod, "cli", None)
        if cmd is None:
            get_logger().error(f"No 'cli' object in {mod_name}")
            sys.exit(1)
        return cmd


def display_version(ctx: click.Context, param: click.Parameter, value: bool) -> None:
    """Print the installed version and exit."""
    if not value or ctx.resilient_parsing:
        return
    configure_logging(LogLevel.INFO).info(f"linepipe {utils.cli_ver()}")
    ctx.exit()


@click.command(cls=CommandLineInterface)
@click.option(
    "--version",
    is_flag=True,
    help="Show the version and exit.",
    expose_value=False,
    is_eager=True,
    callback=display_version,
)
@click.option(
    "-v",
    "--verbose",
    is_flag=True,
    default=False,
    help="Enable debug logging.",
)
@click.option(
    "--log-level",
    type=click.Choice(["ERROR", "WARN", "INFO", "DEBUG"], case_sensitive=False),
    default=None,
    help="Set the minimum log level (ERROR, WARN, INFO, DEBUG).",
)
@click.option(
    "-e",
    "--env",
    default=[],
    type=str,
    multiple=True,
    help="Add or override settings, e.g. -e LINEPIPE_SHELL=/bin/bash.",
)
@utils.exception_handler
@utils.pass_environment()
def cli(
    ctx: LinepipeContext,
    verbose: bool,
    log_level: str | None,
    env: list[str],
) -> None:
    """Run commands with streamed, line-oriented input and output.

    Settings are read from -e arguments, the environment and
    ~/.linepipe/linepipe.cfg, in that order.
    """
    ctx._user_env_args = list(env)
    if verbose:
        ctx._user_log_level = LogLevel.DEBUG
    elif log_level:
        ctx._user_log_level = LogLevel.from_name(log_level)
    configure_logging(ctx._user_log_level or LogLevel.INFO)
