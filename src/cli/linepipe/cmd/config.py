"""Configuration commands for linepipe.

Handle configuration-related CLI commands.
"""

import os

import click

from linepipe import utils
from linepipe.core.context import LinepipeContext
from linepipe.settings import (
    CONFIG_KEYS,
    CONFIG_TEMPLATE,
    DEFAULT_ENCODING,
    DEFAULT_LOG_LEVEL,
    DEFAULT_SHELL,
    DEFAULT_TERM_GRACE,
)

DEFAULTS = {
    "LINEPIPE_SHELL": DEFAULT_SHELL,
    "LINEPIPE_ENCODING": DEFAULT_ENCODING,
    "LINEPIPE_TERM_GRACE": f"{DEFAULT_TERM_GRACE:g}",
    "LINEPIPE_LOG_LEVEL": DEFAULT_LOG_LEVEL,
}


@click.command(
    "config",
    help="Edit the linepipe config file (linepipe.cfg).",
)
@click.option(
    "-r",
    "--reset",
    is_flag=True,
    default=False,
    help="Reset the config file with default values.",
)
@click.option(
    "-s",
    "--show",
    is_flag=True,
    default=False,
    help="Print the effective settings instead of editing.",
)
@click.option(
    "-y",
    "--yes",
    is_flag=True,
    default=False,
    help="Do not ask for confirmation when resetting.",
)
@utils.exception_handler
@utils.pass_environment()
def cli(ctx: LinepipeContext, reset: bool, show: bool, yes: bool) -> None:
    """
    Edit, reset, or show the linepipe config file.

    Parameters
    ----------
    reset : bool
        If True, resets the config file with default values.
    show : bool
        If True, prints the effective settings.
    yes : bool
        If True, resets without prompting.
    """
    if show:
        ctx.initialize()
        show_settings(ctx)
        return
    if os.path.isfile(ctx.config_file) and reset:
        if not yes and not click.confirm(
            f"{ctx.config_file} exists. Overwrite?", default=False
        ):
            ctx.logger.info(f"Opted out of resetting {ctx.config_file}.")
            return
        write_template(ctx)
    elif not os.path.isfile(ctx.config_file):
        ctx.logger.info(
            f"No config file found at path: {ctx.config_file}. "
            f"Creating template config file and opening for edits..."
        )
        write_template(ctx)
    if not reset:
        edit_file(ctx)


def write_template(ctx: LinepipeContext) -> None:
    """Write a template configuration file for the user."""
    ctx.ensure_dirs()
    with open(ctx.config_file, "w") as config_file:
        config_file.write(CONFIG_TEMPLATE.lstrip())
    ctx.logger.debug(f"Wrote config template to {ctx.config_file}")


def edit_file(ctx: LinepipeContext) -> None:
    """Open the config file in the user's editor."""
    click.edit(filename=ctx.config_file)


def show_settings(ctx: LinepipeContext) -> None:
    """Print each setting as KEY=VALUE, falling back to its default."""
    assert ctx.env is not None
    for key in CONFIG_KEYS:
        value = ctx.env.get(key) or DEFAULTS[key]
        click.echo(f"{key}={value}")
