"""RVM (Ruby enVironment Manager): https://rvm.io"""

from __future__ import annotations

from pathlib import Path
from typing import List

from ..discovery import find_first
from ..execution import quote_path
from ..types import NOT_DETECTED, ActivationResult, DetectedPath, DetectionResult
from .base import ManagerContext, VersionManager, describe_env, home


def installation_paths() -> List[Path]:
    return [
        home() / ".rvm" / "bin" / "rvm-auto-ruby",
        Path("/usr/local/rvm/bin/rvm-auto-ruby"),
        Path("/usr/share/rvm/bin/rvm-auto-ruby"),
    ]


class RvmManager(VersionManager):
    """Runs `rvm-auto-ruby`, which picks the Ruby for the current directory."""

    identifier = "rvm"

    @classmethod
    async def detect(cls, context: ManagerContext) -> DetectionResult:
        found = await find_first(installation_paths())
        return DetectedPath(found) if found else NOT_DETECTED

    async def activate(self) -> ActivationResult:
        auto_ruby = await self.find_executable("rvm-auto-ruby", installation_paths())
        probe = await self.run_probe(quote_path(auto_ruby, self.context.platform))
        self.log.info("Activated Ruby environment: %s", describe_env(probe.env))
        return self.finish(probe)
