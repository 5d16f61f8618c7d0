"""Activation through a nix flake development shell."""

from __future__ import annotations

from ..types import ActivationResult
from .base import VersionManager


class NixDevelopManager(VersionManager):
    identifier = "nix_develop"

    async def activate(self) -> ActivationResult:
        # custom_ruby_command holds extra `nix develop` arguments, e.g. a flake reference
        extra = self.config.activation.custom_ruby_command
        command = " ".join(part for part in ("nix develop", extra, "--command ruby") if part)
        probe = await self.run_probe(command)
        return self.finish(probe)
