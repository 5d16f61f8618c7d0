"""Pytest configuration and shared fixtures."""

import json
import logging
import tempfile
from pathlib import Path
from typing import Generator

import pytest

from rubyactivate.config import ActivationConfig
from rubyactivate.runtime.activation import WorkspaceLogger
from rubyactivate.runtime.managers import ManagerContext
from rubyactivate.runtime.probe import wrap_payload
from rubyactivate.runtime.types import CommandResult


@pytest.fixture
def temp_workspace() -> Generator[Path, None, None]:
    """Create an empty temporary workspace directory.

    The path is resolved so that comparisons work on systems where the
    temporary directory lives behind a symlink (macOS /var -> /private/var).
    """
    with tempfile.TemporaryDirectory() as tmp_dir:
        yield Path(tmp_dir).resolve()


@pytest.fixture
def fake_home(monkeypatch, temp_workspace: Path) -> Path:
    """Point HOME at a directory inside the temporary workspace."""
    home = temp_workspace / "home"
    home.mkdir()
    monkeypatch.setenv("HOME", str(home))
    return home


@pytest.fixture
def base_env(temp_workspace: Path) -> dict:
    """Inherited process environment used by manager contexts."""
    return {"PATH": "/usr/bin:/bin", "HOME": str(temp_workspace / "home"), "LANG": "C.UTF-8"}


@pytest.fixture
def make_context(temp_workspace: Path, base_env: dict):
    """Factory for ManagerContext instances rooted at the temporary workspace."""

    def factory(config: ActivationConfig = None, **overrides) -> ManagerContext:
        values = {
            "workspace_root": temp_workspace,
            "bundle_root": temp_workspace,
            "config": config or ActivationConfig(workspace_root=temp_workspace),
            "log": WorkspaceLogger(logging.getLogger("tests"), temp_workspace.name),
            "env": base_env,
            "platform": "linux",
        }
        values.update(overrides)
        return ManagerContext(**values)

    return factory


@pytest.fixture
def probe_output():
    """Factory for the process output of a successful probe run."""

    def factory(
        env: dict = None,
        version: str = "3.3.0",
        yjit: bool = True,
        gem_path: list = None,
    ) -> CommandResult:
        payload = json.dumps(
            {
                "env": env if env is not None else {"PATH": "/rubies/3.3.0/bin:/usr/bin"},
                "yjit": yjit,
                "version": version,
                "gemPath": gem_path if gem_path is not None else [],
            }
        )
        # Version managers and shell init files like to print things
        return CommandResult(stdout="", stderr=f"Shell banner\n{wrap_payload(payload)}\n")

    return factory
