"""rbenv: https://github.com/rbenv/rbenv"""

from __future__ import annotations

from pathlib import Path

from ..discovery import path_exists
from ..errors import ExecutableNotFoundError
from ..execution import command_exists, quote_path
from ..types import NOT_DETECTED, ActivationResult, DetectedSemantic, DetectionResult
from .base import ManagerContext, VersionManager


class RbenvManager(VersionManager):
    identifier = "rbenv"

    @classmethod
    async def detect(cls, context: ManagerContext) -> DetectionResult:
        exists = await command_exists(
            "rbenv", context.workspace_root, context.env, context.shell, context.log
        )
        return DetectedSemantic("rbenv") if exists else NOT_DETECTED

    async def activate(self) -> ActivationResult:
        probe = await self.run_probe(f"{await self.rbenv_command()} exec ruby")
        return self.finish(probe)

    async def rbenv_command(self) -> str:
        """Configured rbenv executable, or plain `rbenv` resolved by the shell."""
        configured = self.config.version_manager.rbenv_executable_path
        if not configured:
            return "rbenv"

        path = Path(self.config.resolve_path(configured))
        if not await path_exists(path):
            raise ExecutableNotFoundError(self.identifier, configured_path=path)
        return quote_path(path, self.context.platform)
