"""RubyInstaller for Windows: https://rubyinstaller.org

Rubies live in directories such as `C:\\Ruby32-x64` (Ruby{major}{minor}-{arch}).
The version is discovered from `.ruby-version` exactly like chruby does; only
the installation lookup and the spelling of reported paths differ.
"""

from __future__ import annotations

import platform
from pathlib import Path, PureWindowsPath
from typing import List

from ..discovery import find_first
from ..errors import RubyInstallationNotFoundError
from ..types import NOT_DETECTED, ActivationResult, DetectedSemantic, DetectionResult, RubyVersion
from .base import ManagerContext, VersionManager, home
from .marker import MarkerActivation, rubies_directories

_ARCHITECTURES = {
    "amd64": "x64",
    "x86_64": "x64",
    "arm64": "arm64",
    "aarch64": "arm64",
    "x86": "x86",
    "i386": "x86",
}


def architecture() -> str:
    """Architecture suffix RubyInstaller uses in directory names."""
    machine = platform.machine().lower()
    return _ARCHITECTURES.get(machine, machine)


def windows_path(path: str) -> str:
    # Ruby reports Windows paths with forward slashes
    return str(PureWindowsPath(path))


class RubyInstallerManager(VersionManager):
    identifier = "ruby_installer"

    @classmethod
    async def detect(cls, context: ManagerContext) -> DetectionResult:
        if context.platform == "win32":
            return DetectedSemantic("windows")
        return NOT_DETECTED

    async def activate(self) -> ActivationResult:
        activation = MarkerActivation(
            self,
            rubies_directories(self.config),
            self.find_ruby,
            normalize_gem_path=windows_path,
        )
        return await activation.activate()

    def installation_candidates(self, ruby_version: RubyVersion) -> List[Path]:
        major, minor = ruby_version.version.split(".")[:2]
        name = f"Ruby{major}{minor}-{architecture()}"
        return [Path("C:/") / name, home() / name]

    async def find_ruby(self, ruby_version: RubyVersion) -> Path:
        candidates = self.installation_candidates(ruby_version)
        found = await find_first(candidates)
        if found is None:
            raise RubyInstallationNotFoundError(
                self.identifier, ruby_version.version, candidates
            )
        return found / "bin" / "ruby"
