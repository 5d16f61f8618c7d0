"""No version manager: use whatever `ruby` the shell finds."""

from __future__ import annotations

from ..types import ActivationResult
from .base import VersionManager


class NoneManager(VersionManager):
    """Ruby is already on the PATH (system Ruby, Homebrew, a container image)."""

    identifier = "none"

    async def activate(self) -> ActivationResult:
        probe = await self.run_probe("ruby")
        return self.finish(probe)
