"""Environment variable utilities for linepipe."""

from __future__ import annotations

import os
from configparser import ConfigParser, Error as ConfigParserError
from typing import TYPE_CHECKING, Any

from linepipe import utils
from linepipe.core.errors import UserError
from linepipe.settings import CONFIG_KEYS, CONFIG_SECTION

if TYPE_CHECKING:
    from linepipe.core.context import LinepipeContext


class EnvironmentVariables(dict):
    """linepipe settings, merged from every configuration source.

    Parameters
    ----------
    ctx : LinepipeContext
        An instantiated LinepipeContext object containing user input
        and context.

    Methods
    -------
    get(key, default=None)
        Get an environment variable. Always returns a string.
    get_float(key, default)
        Get an environment variable as a float.

    Examples
    --------
    >>> shell = ctx.env.get("LINEPIPE_SHELL", "/bin/sh")

    Notes
    -----
    Precedence, highest first: ``-e KEY=VALUE`` arguments, the OS
    environment, then the ``[config]`` section of linepipe.cfg.
    """

    def __init__(self, ctx: LinepipeContext) -> None:
        super().__init__()
        self._ctx = ctx
        self._parse_user_env_args()
        self._parse_os_env()
        self._parse_config_file()

    def get(self, key: Any, default: Any = None) -> str:
        """Return the value for a given key as a string.

        Parameters
        ----------
        key : Any
            The environment variable key.
        default : Any, optional
            The default value to return if the key is not found.

        Returns
        -------
        str
            The value, or an empty string when neither it nor a default
            exist.
        """
        val = super().get(key, default)
        return str(val) if val is not None else ""

    def get_float(self, key: str, default: float) -> float:
        """Return a setting as a non-negative float.

        Raises
        ------
        UserError
            If the value is not a non-negative number.
        """
        raw = self.get(key)
        if not raw:
            return default
        try:
            value = float(raw)
        except ValueError:
            value = -1.0
        if value < 0:
            raise UserError(
                f"Invalid value for {key}: '{raw}'.",
                f"Set {key} to a non-negative number of seconds.",
            )
        return value

    def _strip_quotes(self, value: str) -> str:
        """Strip matching surrounding quotes from a config file value.

        Examples
        --------
        >>> env._strip_quotes('"/bin/bash"')
        '/bin/bash'
        >>> env._strip_quotes('no-quotes')
        'no-quotes'
        """
        value = value.strip()
        if len(value) >= 2 and value[0] == value[-1] and value[0] in "\"'":
            return value[1:-1]
        return value

    def _parse_user_env_args(self) -> None:
        """Parse ``-e KEY=VALUE`` arguments. Highest precedence."""
        for env_var in self._ctx._user_env_args:
            k, v = utils.parse_key_value_pair(env_var)
            self[k.upper()] = v

    def _parse_os_env(self) -> None:
        """Parse settings from the user's shell environment."""
        for key in CONFIG_KEYS:
            if key in self:
                continue
            value = os.environ.get(key)
            if value:
                self[key] = value

    def _parse_config_file(self) -> None:
        """Parse the ``[config]`` section of the linepipe config file.

        Empty values in the file are ignored so the template's blank
        entries fall back to the defaults.
        """
        if not os.path.isfile(self._ctx.config_file):
            self._ctx.logger.debug(
                f"No config file found at {self._ctx.config_file}, using defaults."
            )
            return
        parser = ConfigParser()
        parser.optionxform = str  # type: ignore[assignment,method-assign]
        try:
            parser.read(self._ctx.config_file)
        except ConfigParserError as e:
            raise UserError(
                f"Failed to parse config file {self._ctx.config_file}: {e}",
                "Fix the file or reset it with `linepipe config --reset`.",
            )
        if not parser.has_section(CONFIG_SECTION):
            return
        for key, value in parser.items(CONFIG_SECTION):
            key = key.upper()
            value = self._strip_quotes(value)
            if key in self or not value:
                continue
            self[key] = value
