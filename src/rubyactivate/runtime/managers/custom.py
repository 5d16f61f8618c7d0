"""User-defined activation command."""

from __future__ import annotations

from ..errors import MissingConfigurationError
from ..types import ActivationResult
from .base import VersionManager


class CustomManager(VersionManager):
    """Runs `custom_ruby_command` before `ruby` so users can set up PATH and gem variables themselves."""

    identifier = "custom"

    def custom_command(self) -> str:
        command = self.config.activation.custom_ruby_command
        if command is None:
            raise MissingConfigurationError(self.identifier, "activation.custom_ruby_command")
        return command

    async def activate(self) -> ActivationResult:
        probe = await self.run_probe(f"{self.custom_command()} && ruby")
        return self.finish(probe)
