"""shadowenv: https://github.com/Shopify/shadowenv

Shadowenv manages environment variables per directory, including which Ruby
is active. It refuses to run in a directory until the user trusts it, which
surfaces here as UntrustedWorkspaceError; RubyRuntime offers to trust the
workspace and activates once more.
"""

from __future__ import annotations

from pathlib import Path

from ..discovery import is_directory, path_exists
from ..errors import (
    ActivationError,
    CommandNotFoundError,
    UntrustedWorkspaceError,
    VersionManagerDirectoryNotFoundError,
)
from ..types import NOT_DETECTED, ActivationResult, DetectedPath, DetectionResult
from .base import ManagerContext, VersionManager

SHADOWENV_DIR = ".shadowenv.d"

# Preferred over PATH lookup: shell setup scripts sometimes mangle the PATH
HOMEBREW_SHADOWENV = Path("/opt/homebrew/bin/shadowenv")


class ShadowenvManager(VersionManager):
    identifier = "shadowenv"

    @classmethod
    async def detect(cls, context: ManagerContext) -> DetectionResult:
        directory = context.workspace_root / SHADOWENV_DIR
        if await is_directory(directory):
            return DetectedPath(directory)
        return NOT_DETECTED

    async def activate(self) -> ActivationResult:
        directory = self.bundle_root / SHADOWENV_DIR
        if not await is_directory(directory):
            raise VersionManagerDirectoryNotFoundError(self.identifier, directory)

        executable = await self.shadowenv_executable()

        try:
            probe = await self.run_probe(f"{executable} exec -- ruby")
        except ActivationError as e:
            await self._diagnose_failure(e)
            raise

        return self.finish(probe)

    async def trust(self) -> None:
        """Mark the bundle root as trusted."""
        executable = await self.shadowenv_executable()
        await self.run_script(f"{executable} trust")

    async def shadowenv_executable(self) -> str:
        if await path_exists(HOMEBREW_SHADOWENV):
            self.log.info("Found shadowenv executable at %s", HOMEBREW_SHADOWENV)
            return str(HOMEBREW_SHADOWENV)
        return "shadowenv"

    async def _diagnose_failure(self, error: ActivationError) -> None:
        """Turn a failed `shadowenv exec` into a more specific error when possible.

        Raises:
            CommandNotFoundError: If shadowenv is not installed
            UntrustedWorkspaceError: If shadowenv exists; the usual cause is an untrusted directory
        """
        if isinstance(error, CommandNotFoundError):
            return

        try:
            result = await self.run_script("command -v shadowenv")
            located = result.stdout.strip()
        except ActivationError:
            located = ""

        if not located and not await path_exists(HOMEBREW_SHADOWENV):
            raise CommandNotFoundError(
                "shadowenv",
                "Couldn't find shadowenv executable. Double-check that it's installed and in your PATH",
                self.identifier,
                tool="shadowenv",
            ) from error

        raise UntrustedWorkspaceError(self.identifier, self.bundle_root) from error
