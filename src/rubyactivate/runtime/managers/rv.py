"""rv: https://github.com/spinel-coop/rv"""

from __future__ import annotations

from pathlib import Path
from typing import List

from ..discovery import find_first
from ..execution import quote_path
from ..types import NOT_DETECTED, ActivationResult, DetectedPath, DetectionResult
from .base import ManagerContext, VersionManager

INSTALLATION_PATHS: List[Path] = [
    Path("/home/linuxbrew/.linuxbrew/bin/rv"),
    Path("/usr/local/bin/rv"),
    Path("/opt/homebrew/bin/rv"),
    Path("/usr/bin/rv"),
]


class RvManager(VersionManager):
    identifier = "rv"

    @classmethod
    async def detect(cls, context: ManagerContext) -> DetectionResult:
        found = await find_first(INSTALLATION_PATHS)
        return DetectedPath(found) if found else NOT_DETECTED

    async def activate(self) -> ActivationResult:
        rv = await self.find_executable("rv", INSTALLATION_PATHS)
        probe = await self.run_probe(f"{quote_path(rv, self.context.platform)} ruby run --")
        return self.finish(probe)
