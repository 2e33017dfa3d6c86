"""Shared test fixtures for the ordex test suite.

Design:
- tmp_workspace: Isolated workspace in a temp directory (ORDEX_ROOT set)
- make_items: Creates ordinal files/folders from a list of names
- runner / cli_invoke: CliRunner with proper isolation
- Async helpers: pytest-asyncio configured with function scope
"""

import os
from collections.abc import Callable, Generator
from pathlib import Path

import pytest
from click.testing import CliRunner

from ordex.cli import cli
from ordex.config import WORKSPACE_CONFIG_FILENAME
from ordex.context import clear_settings_cache


# ─────────────────────────────────────────────────────────────────────────────
# Core Fixtures
# ─────────────────────────────────────────────────────────────────────────────


@pytest.fixture
def runner() -> CliRunner:
    """CLI runner with isolated environment."""
    return CliRunner()


@pytest.fixture
def tmp_workspace(tmp_path: Path) -> Generator[Path, None, None]:
    """Create an isolated workspace directory.

    Sets ORDEX_ROOT to the temp directory, writes an empty .ordexconfig,
    yields the path, then restores the environment.

    Usage:
        def test_something(tmp_workspace):
            (tmp_workspace / "00010_a.md").write_text("# A")
    """
    workspace = tmp_path / "workspace"
    workspace.mkdir()
    (workspace / WORKSPACE_CONFIG_FILENAME).write_text("")

    original_root = os.environ.get("ORDEX_ROOT")
    os.environ["ORDEX_ROOT"] = str(workspace)
    clear_settings_cache()

    yield workspace

    if original_root is not None:
        os.environ["ORDEX_ROOT"] = original_root
    else:
        os.environ.pop("ORDEX_ROOT", None)
    clear_settings_cache()


@pytest.fixture
def make_items() -> Callable[..., list[Path]]:
    """Create ordinal items in a directory.

    Names ending in "/" become folders; everything else becomes a file
    whose content is its own name.

    Usage:
        def test_x(tmp_path, make_items):
            make_items(tmp_path, ["00010_a.md", "00020_b/"])
    """

    def _make(directory: Path, names: list[str]) -> list[Path]:
        paths = []
        for name in names:
            if name.endswith("/"):
                path = directory / name.rstrip("/")
                path.mkdir(parents=True)
            else:
                path = directory / name
                path.parent.mkdir(parents=True, exist_ok=True)
                path.write_text(name)
            paths.append(path)
        return paths

    return _make


@pytest.fixture
def cli_invoke(runner: CliRunner, tmp_workspace: Path):
    """Helper for invoking CLI with proper isolation.

    Usage:
        def test_scan(cli_invoke, tmp_workspace):
            result = cli_invoke(["scan", str(tmp_workspace)])
            assert result.exit_code == 0
    """

    def _invoke(args: list[str], input: str | bytes | None = None, catch_exceptions: bool = False):
        return runner.invoke(
            cli,
            args,
            input=input,
            catch_exceptions=catch_exceptions,
            env={"ORDEX_ROOT": str(tmp_workspace)},
        )

    return _invoke
