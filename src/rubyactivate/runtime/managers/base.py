"""Shared plumbing for version manager strategies."""

from __future__ import annotations

import logging
import os
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Mapping, Optional, Sequence

from ...config import ActivationConfig
from ..discovery import find_first, path_exists, which
from ..errors import ExecutableNotFoundError
from ..execution import run_command
from ..fallback import ManualSelection
from ..normalizer import normalize
from ..probe import PROBE_SCRIPT, build_probe_command, parse_probe_output
from ..prompts import NonInteractivePrompter, Prompter
from ..types import NOT_DETECTED, ActivationResult, DetectionResult, ProbeResult

logger = logging.getLogger(__name__)


@dataclass
class ManagerContext:
    """Everything a strategy needs to know about the workspace it activates.

    Attributes:
        workspace_root: Root folder of the workspace
        bundle_root: Directory activation commands run in (custom Gemfile dir or workspace root)
        config: Read-only activation configuration
        log: Diagnostics sink, usually a WorkspaceLogger
        prompter: Human interaction points
        env: Environment inherited from the current process
        shell: Shell used to interpret activation commands
        manually_select_ruby: Called when the human wants to pick a Ruby for this tool only
        platform: sys.platform value, overridable for tests
    """

    workspace_root: Path
    bundle_root: Path
    config: ActivationConfig
    log: logging.LoggerAdapter
    prompter: Prompter = field(default_factory=NonInteractivePrompter)
    env: Mapping[str, str] = field(default_factory=lambda: dict(os.environ))
    shell: Optional[str] = None
    manually_select_ruby: Optional[ManualSelection] = None
    platform: str = sys.platform


class VersionManager:
    """Base class for activation strategies.

    Subclasses set `identifier`, implement `activate` and, when the tool can be
    recognized without running Ruby, override `detect`.
    """

    identifier = "unknown"

    def __init__(self, context: ManagerContext):
        self.context = context
        self.log = context.log

    @classmethod
    async def detect(cls, context: ManagerContext) -> DetectionResult:
        """Check whether this strategy applies to the workspace."""
        return NOT_DETECTED

    async def activate(self) -> ActivationResult:
        raise NotImplementedError

    @property
    def bundle_root(self) -> Path:
        return self.context.bundle_root

    @property
    def config(self) -> ActivationConfig:
        return self.context.config

    async def run_script(self, command: str, env: Optional[Mapping[str, str]] = None):
        """Run a command in the bundle root with the inherited environment."""
        return await run_command(
            command,
            cwd=self.bundle_root,
            env=self.context.env if env is None else env,
            shell=self.context.shell,
            log=self.log,
        )

    async def run_probe(self, ruby_prefix: str, script: str = PROBE_SCRIPT) -> ProbeResult:
        """Run the environment probe through `ruby_prefix` and decode its payload."""
        result = await self.run_script(build_probe_command(ruby_prefix, script))
        probe = parse_probe_output(result.stderr)
        self.log.debug("Probe reported Ruby %s (yjit=%s)", probe.version, probe.yjit)
        return probe

    def finish(self, probe: ProbeResult, **kwargs) -> ActivationResult:
        """Normalize a probe result against the inherited environment."""
        return normalize(probe, self.context.env, **kwargs)

    async def find_executable(
        self,
        name: str,
        candidates: Sequence[Path],
        use_path: bool = True,
    ) -> Path:
        """Locate the version manager executable.

        Resolution order:
        1. Path configured as `<identifier>_executable_path` (must exist)
        2. Fixed install locations, in declaration order
        3. `name` on the inherited PATH

        Raises:
            ExecutableNotFoundError: If nothing matches; when a path was configured,
                only that path is reported
        """
        configured = self.config.version_manager.executable_path(self.identifier)
        if configured:
            configured_path = Path(self.config.resolve_path(configured))
            if not await path_exists(configured_path):
                raise ExecutableNotFoundError(self.identifier, configured_path=configured_path)
            return configured_path

        found = await find_first(candidates)
        if found is not None:
            self.log.info("Found %s executable at %s", self.identifier, found)
            return found

        searched = [str(candidate) for candidate in candidates]
        if use_path:
            on_path = which(name, self.context.env, self.context.platform)
            if on_path is not None:
                return on_path
            searched.append(f"{name} on PATH")

        raise ExecutableNotFoundError(self.identifier, searched_paths=searched)


def home() -> Path:
    return Path(os.path.expanduser("~"))


def describe_env(env: Mapping[str, str]) -> Dict[str, str]:
    """Environment subset worth logging after activation."""
    return {key: env[key] for key in ("GEM_HOME", "GEM_PATH", "RUBY_ROOT") if key in env}
