"""mise (mise en place): https://github.com/jdx/mise"""

from __future__ import annotations

from pathlib import Path
from typing import List

from ..discovery import find_first
from ..execution import quote_path
from ..types import NOT_DETECTED, ActivationResult, DetectedPath, DetectionResult
from .base import ManagerContext, VersionManager, home


def installation_paths() -> List[Path]:
    return [
        home() / ".local" / "bin" / "mise",
        Path("/opt/homebrew/bin/mise"),
    ]


class MiseManager(VersionManager):
    identifier = "mise"

    @classmethod
    async def detect(cls, context: ManagerContext) -> DetectionResult:
        found = await find_first(installation_paths())
        return DetectedPath(found) if found else NOT_DETECTED

    async def activate(self) -> ActivationResult:
        mise = await self.find_executable("mise", installation_paths())
        # The exec command in mise is called `x`
        probe = await self.run_probe(f"{quote_path(mise, self.context.platform)} x -- ruby")
        return self.finish(probe)
