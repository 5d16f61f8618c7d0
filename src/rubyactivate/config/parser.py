"""Configuration file parser for Ruby activation."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

try:
    import tomllib  # Python 3.11+
except ImportError:
    import tomli as tomllib  # Fallback for Python 3.10

from ..utils.path import resolve_workspace_path

CONFIG_FILE_NAME = ".rubyactivate.toml"

SUPPORTED_MANAGERS = [
    "auto",
    "none",
    "custom",
    "asdf",
    "chruby",
    "rbenv",
    "rvm",
    "mise",
    "rv",
    "shadowenv",
    "nix_develop",
    "ruby_installer",
    "compose",
]


@dataclass
class VersionManagerConfig:
    """Which version manager to use and where to find it."""

    identifier: str = "auto"
    asdf_executable_path: Optional[str] = None
    mise_executable_path: Optional[str] = None
    rv_executable_path: Optional[str] = None
    rbenv_executable_path: Optional[str] = None
    chruby_rubies: List[str] = field(default_factory=list)
    compose_service: Optional[str] = None
    compose_custom_command: Optional[str] = None

    def executable_path(self, manager: str) -> Optional[str]:
        """Configured executable override for `manager`, if any."""
        return getattr(self, f"{manager}_executable_path", None)


@dataclass
class ActivationSettings:
    """How activation commands run."""

    custom_ruby_command: Optional[str] = None
    bundle_gemfile: Optional[str] = None
    shell: Optional[str] = None
    fallback_timeout: float = 10.0
    minimum_ruby_version: str = "3.0.0"


@dataclass
class ActivationConfig:
    """Complete activation configuration for a workspace."""

    version_manager: VersionManagerConfig = field(default_factory=VersionManagerConfig)
    activation: ActivationSettings = field(default_factory=ActivationSettings)

    # Workspace root for resolving paths
    workspace_root: Path = field(default_factory=Path.cwd)

    def resolve_path(self, path_template: str) -> str:
        """Resolve template variables in paths.

        Supports:
            ${WORKSPACE_ROOT} - absolute path to the workspace root
            ~ - the user's home directory
        """
        result = path_template.replace("${WORKSPACE_ROOT}", str(self.workspace_root))
        return os.path.expanduser(result)

    def bundle_gemfile_path(self) -> Optional[Path]:
        """Absolute path of the custom Gemfile, if one is configured."""
        gemfile = self.activation.bundle_gemfile
        if not gemfile:
            return None

        return resolve_workspace_path(self.resolve_path(gemfile), self.workspace_root)

    def bundle_root(self) -> Path:
        """Directory activation runs in: the custom Gemfile's directory or the workspace root."""
        gemfile = self.bundle_gemfile_path()
        return gemfile.parent if gemfile else self.workspace_root


def find_config_file(workspace_root: Path) -> Optional[Path]:
    """Find .rubyactivate.toml in the workspace root.

    Args:
        workspace_root: Root path of the workspace

    Returns:
        Path to .rubyactivate.toml if found, None otherwise
    """
    config_file = workspace_root / CONFIG_FILE_NAME
    if config_file.exists():
        return config_file
    return None


def load_config(workspace_root: Path) -> ActivationConfig:
    """Load configuration from .rubyactivate.toml or use defaults.

    Args:
        workspace_root: Root path of the workspace

    Returns:
        ActivationConfig with loaded or default configuration
    """
    config = ActivationConfig(workspace_root=workspace_root)

    config_file = find_config_file(workspace_root)
    if not config_file:
        return config

    try:
        with open(config_file, "rb") as f:
            data = tomllib.load(f)
    except (OSError, tomllib.TOMLDecodeError):
        # If TOML parsing fails, return defaults
        return config

    if "version_manager" in data:
        _parse_version_manager(config.version_manager, data["version_manager"])

    if "activation" in data:
        _parse_activation(config.activation, data["activation"])

    return config


def _parse_version_manager(section: VersionManagerConfig, data: Dict[str, Any]) -> None:
    identifier = data.get("identifier", "auto")
    if identifier not in SUPPORTED_MANAGERS:
        supported = ", ".join(SUPPORTED_MANAGERS)
        raise ValueError(
            f"Version manager '{identifier}' not supported. Supported version managers: {supported}"
        )

    section.identifier = identifier
    section.asdf_executable_path = data.get("asdf_executable_path")
    section.mise_executable_path = data.get("mise_executable_path")
    section.rv_executable_path = data.get("rv_executable_path")
    section.rbenv_executable_path = data.get("rbenv_executable_path")
    section.chruby_rubies = list(data.get("chruby_rubies", []))
    section.compose_service = data.get("compose_service")
    section.compose_custom_command = data.get("compose_custom_command")


def _parse_activation(section: ActivationSettings, data: Dict[str, Any]) -> None:
    section.custom_ruby_command = data.get("custom_ruby_command")
    section.bundle_gemfile = data.get("bundle_gemfile")
    section.shell = data.get("shell")
    section.fallback_timeout = float(data.get("fallback_timeout", 10.0))
    section.minimum_ruby_version = str(data.get("minimum_ruby_version", "3.0.0"))
