"""asdf: https://github.com/asdf-vm/asdf

asdf does not set GEM_HOME or GEM_PATH, and it does not add gem bin
directories to the PATH. Every gem executable gets a shim instead, so the
shims directory is put in front of the PATH.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import List, Optional

from ..discovery import find_first, path_key, prepend_to_path, which
from ..errors import ExecutableNotFoundError, NotFoundError
from ..execution import quote_path
from ..types import NOT_DETECTED, ActivationResult, DetectedPath, DetectedSemantic, DetectionResult
from .base import ManagerContext, VersionManager, home


def data_directories() -> List[Path]:
    # In order: git clone, pacman, Homebrew on Apple silicon, Homebrew on Intel
    return [
        home() / ".asdf",
        Path("/opt/asdf-vm"),
        Path("/opt/homebrew/opt/asdf/libexec"),
        Path("/usr/local/opt/asdf/libexec"),
    ]


def init_scripts() -> List[Path]:
    """Locations of `asdf.sh` for installations that predate the asdf binary."""
    return [directory / "asdf.sh" for directory in data_directories()]


class AsdfManager(VersionManager):
    identifier = "asdf"

    @classmethod
    async def detect(cls, context: ManagerContext) -> DetectionResult:
        script = await find_first(init_scripts())
        if script is not None:
            return DetectedPath(script)

        binary = which("asdf", context.env, context.platform)
        return DetectedSemantic(str(binary)) if binary else NOT_DETECTED

    async def activate(self) -> ActivationResult:
        prefix, script = await self._asdf_prefix()
        probe = await self.run_probe(f"{prefix} exec ruby")

        data_dir = await self._data_dir(probe.env.get("ASDF_DATA_DIR"))
        install_dir = probe.env.get("ASDF_DIR") or str(script.parent if script else data_dir)

        platform = self.context.platform
        shims = os.path.join(data_dir, "shims")
        overrides = {
            path_key(probe.env, platform): prepend_to_path(probe.env, [shims], platform),
            "ASDF_DIR": install_dir,
            "ASDF_DATA_DIR": str(data_dir),
        }
        return self.finish(probe, overrides=overrides)

    async def _asdf_prefix(self):
        """Command that runs asdf, and the init script it sources (if any)."""
        platform = self.context.platform
        configured = self.config.version_manager.asdf_executable_path
        if configured:
            path = await self.find_executable("asdf", [])
            return quote_path(path, platform), None

        script = await find_first(init_scripts())
        if script is not None:
            self.log.info("Sourcing asdf from %s", script)
            return f". {quote_path(script, platform)} && asdf", script

        if which("asdf", self.context.env, platform) is None:
            searched = [str(path) for path in init_scripts()] + ["asdf on PATH"]
            raise ExecutableNotFoundError(self.identifier, searched_paths=searched)
        return "asdf", None

    async def _data_dir(self, reported: Optional[str]) -> Path:
        # The data directory is usually next to asdf.sh, but Homebrew installs
        # keep it in ~/.asdf
        if reported:
            return Path(reported)

        candidates = data_directories()
        found = await find_first([directory / "shims" for directory in candidates])
        if found is None:
            raise NotFoundError(
                "Could not find asdf data directory. Searched in "
                + ", ".join(str(directory) for directory in candidates),
                self.identifier,
                candidates,
            )
        return found.parent
