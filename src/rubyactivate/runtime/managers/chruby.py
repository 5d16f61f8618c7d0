"""chruby: https://github.com/postmodern/chruby

chruby is a shell function, so instead of running it we do what it does
through `MarkerActivation`: the closest `.ruby-version` names a directory
under one of the rubies directories.
"""

from __future__ import annotations

from pathlib import Path
from typing import List

from ..execution import command_exists
from ..types import NOT_DETECTED, ActivationResult, DetectedSemantic, DetectionResult, RubyVersion
from ..version_file import find_installation
from .base import ManagerContext, VersionManager
from .marker import MarkerActivation, rubies_directories


class ChrubyManager(VersionManager):
    identifier = "chruby"

    @classmethod
    async def detect(cls, context: ManagerContext) -> DetectionResult:
        exists = await command_exists(
            "chruby", context.workspace_root, context.env, context.shell, context.log
        )
        return DetectedSemantic("chruby") if exists else NOT_DETECTED

    def installation_dirs(self) -> List[Path]:
        return rubies_directories(self.config)

    async def activate(self) -> ActivationResult:
        return await MarkerActivation(self, self.installation_dirs(), self.find_ruby).activate()

    async def find_ruby(self, ruby_version: RubyVersion) -> Path:
        return await find_installation(
            ruby_version, self.installation_dirs(), self.identifier, self.log
        )
