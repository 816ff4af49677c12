"""Shared pytest fixtures for linepipe unit tests.

Fixtures isolate every test from the user's real ~/.linepipe directory
and from LINEPIPE_* variables set in the calling shell.
"""

import pytest
from click.testing import CliRunner

from linepipe.core.context import LinepipeContext
from linepipe.settings import CONFIG_KEYS

# =============================================================================
# Environment Fixtures
# =============================================================================


@pytest.fixture(autouse=True)
def isolated_home(tmp_path, monkeypatch):
    """Point HOME at a temporary directory and clear linepipe settings."""
    home = tmp_path / "home"
    home.mkdir()
    monkeypatch.setenv("HOME", str(home))
    for key in CONFIG_KEYS:
        monkeypatch.delenv(key, raising=False)
    return home


@pytest.fixture
def config_file(isolated_home):
    """Return a writer for ~/.linepipe/linepipe.cfg."""

    def write(body: str):
        user_dir = isolated_home / ".linepipe"
        user_dir.mkdir(exist_ok=True)
        path = user_dir / "linepipe.cfg"
        path.write_text(body)
        return path

    return write


# =============================================================================
# Context Fixtures
# =============================================================================


@pytest.fixture
def ctx():
    """Provide an initialized LinepipeContext with default settings."""
    return LinepipeContext().initialize()


@pytest.fixture
def executor(ctx):
    """Provide the context's CommandExecutor."""
    return ctx.cmd_executor


@pytest.fixture
def cli_runner():
    """Provide a Click CLI test runner."""
    return CliRunner()
