"""Core context and controls for linepipe."""

from __future__ import annotations

import os

from linepipe.core.envvars import EnvironmentVariables
from linepipe.core.errors import LinepipeError, UserError
from linepipe.core.exec.cmd import CommandExecutor
from linepipe.core.logging.levels import LogLevel
from linepipe.core.logging.logger import LinepipeLogger
from linepipe.core.logging.utils import get_logger
from linepipe.settings import CONFIG_FILE, DEFAULT_LOG_LEVEL, USER_DIR


class LinepipeContext:
    """Expose context and core controls to the CLI and the library API.

    Attributes
    ----------
    logger : LinepipeLogger
        Logs linepipe activity.
    env : EnvironmentVariables
        Settings merged from CLI arguments, the OS environment and the
        config file.
    cmd_executor : CommandExecutor
        Runs commands with streamed input and output.
    user_home_dir : str
        Home directory of the current user.
    linepipe_user_dir : str
        Path to the ~/.linepipe/ directory.
    config_file : str
        Path to the user's linepipe.cfg file.

    Methods
    -------
    initialize()
        Hydrate the context with user-provided inputs.

    Notes
    -----
    `env` and `cmd_executor` are unavailable until `initialize()` has
    run, so `-e` overrides are always applied before any command starts.
    """

    logger: LinepipeLogger
    env: EnvironmentVariables | None
    cmd_executor: CommandExecutor | None

    def __init__(self) -> None:
        # ------------------------------
        # ---- User-provided inputs ----
        self._user_env_args: list[str] = []
        self._user_log_level: LogLevel | None = None
        # ------------------------------

        self.logger = get_logger()
        self.env = None
        self.cmd_executor = None

        self.user_home_dir = os.path.expanduser("~")
        self.linepipe_user_dir = os.path.join(self.user_home_dir, USER_DIR)
        self.config_file = os.path.join(self.linepipe_user_dir, CONFIG_FILE)

        self._initialized = False

    @property
    def initialized(self) -> bool:
        return self._initialized

    def initialize(self) -> LinepipeContext:
        """Load settings and create the command executor.

        Raises
        ------
        LinepipeError
            If called twice.
        UserError
            If a setting is invalid.
        """
        if self._initialized:
            raise LinepipeError("Context has already been initialized.")

        self.env = EnvironmentVariables(self)
        self._apply_log_level()
        self.cmd_executor = CommandExecutor(self)
        self._initialized = True
        return self

    def _apply_log_level(self) -> None:
        """Use the configured log level unless the CLI set one explicitly."""
        if self._user_log_level is not None:
            return
        assert self.env is not None
        name = self.env.get("LINEPIPE_LOG_LEVEL") or DEFAULT_LOG_LEVEL
        try:
            level = LogLevel.from_name(name)
        except KeyError:
            raise UserError(
                f"Invalid value for LINEPIPE_LOG_LEVEL: '{name}'.",
                "Use one of ERROR, WARN, INFO or DEBUG.",
            )
        if isinstance(self.logger, LinepipeLogger):
            self.logger.set_level(level)

    def ensure_dirs(self) -> None:
        """Create ~/.linepipe/ if it does not exist."""
        os.makedirs(self.linepipe_user_dir, exist_ok=True)
