"""Per-workspace Ruby activation.

Priority for picking the version manager:
1. Explicit `identifier` in .rubyactivate.toml
2. Auto-detection (`identifier = "auto"`, the default)
3. No version manager: whatever `ruby` is on the PATH
"""

from __future__ import annotations

import logging
import os
from dataclasses import replace
from pathlib import Path
from typing import Dict, Mapping, Optional, Tuple, Union

import semver

from ..config import ActivationConfig, load_config
from .discovery import path_exists
from .errors import (
    ActivationError,
    BundleGemfileNotFoundError,
    UnsupportedRubyVersionError,
    UntrustedWorkspaceError,
)
from .execution import select_shell
from .fallback import ManualSelection
from .managers import DETECTION_ORDER, ManagerContext, NoneManager, ShadowenvManager, get_manager
from .normalizer import strip_denied
from .prompts import NonInteractivePrompter, Prompter
from .types import ActivationResult
from .version_file import version_key

logger = logging.getLogger(__name__)

# Starting with Ruby 3.3 the language server enables YJIT itself
YJIT_MINIMUM = semver.Version(3, 2, 0)


class WorkspaceLogger(logging.LoggerAdapter):
    """Logger adapter that prefixes every message with the workspace name."""

    def __init__(self, base: logging.Logger, workspace: str):
        super().__init__(base, {"workspace": workspace})

    def process(self, msg, kwargs):
        return f"({self.extra['workspace']}) {msg}", kwargs


class RubyRuntime:
    """Activates the Ruby environment of one workspace.

    `activate()` may be called again at any time (for example after the
    configuration changed); each call replaces the previous result.
    """

    def __init__(
        self,
        workspace_root: Union[str, Path],
        config: Optional[ActivationConfig] = None,
        prompter: Optional[Prompter] = None,
        manually_select_ruby: Optional[ManualSelection] = None,
        env: Optional[Mapping[str, str]] = None,
        log: Optional[logging.LoggerAdapter] = None,
    ):
        self.workspace_root = Path(workspace_root)
        self.config = config or load_config(self.workspace_root)
        self.bundle_root = self.config.bundle_root()
        self.custom_bundle_gemfile = self.config.bundle_gemfile_path()
        self.prompter = prompter or NonInteractivePrompter()
        self.manually_select_ruby = manually_select_ruby
        self.base_env: Dict[str, str] = dict(os.environ if env is None else env)
        self.log = log or WorkspaceLogger(logger, self.workspace_root.name)

        self.manager_identifier = self.config.version_manager.identifier
        self.result: Optional[ActivationResult] = None
        self.error = False

    @property
    def env(self) -> Mapping[str, str]:
        return self.result.env if self.result else {}

    @property
    def ruby_version(self) -> Optional[str]:
        return self.result.version if self.result else None

    @property
    def yjit_enabled(self) -> bool:
        return bool(self.result and self.result.yjit)

    @property
    def gem_path(self) -> Tuple[str, ...]:
        return self.result.gem_path if self.result else ()

    def context(self) -> ManagerContext:
        return ManagerContext(
            workspace_root=self.workspace_root,
            bundle_root=self.bundle_root,
            config=self.config,
            log=self.log,
            prompter=self.prompter,
            env=self.base_env,
            shell=select_shell(self.config.activation.shell or self.base_env.get("SHELL")),
            manually_select_ruby=self.manually_select_ruby,
        )

    async def detect_version_manager(self) -> str:
        """Identifier of the first version manager recognized in this workspace."""
        context = self.context()
        for manager in DETECTION_ORDER:
            detection = await manager.detect(context)
            if detection.kind != "none":
                self.log.info("Discovered version manager %s", manager.identifier)
                return manager.identifier

        self.log.info("No version manager found, using the Ruby on the PATH")
        return NoneManager.identifier

    async def activate(self) -> ActivationResult:
        """Activate Ruby and return the normalized environment.

        Raises:
            ActivationError: Any activation failure; `error` is set before re-raising
        """
        identifier = self.config.version_manager.identifier
        if identifier == "auto":
            identifier = await self.detect_version_manager()
        self.manager_identifier = identifier

        try:
            result = await self._activate_with_trust(identifier)
            result = await self._post_activation(result, identifier)
        except UntrustedWorkspaceError as e:
            self.error = True
            self.log.info("%s", e)
            raise
        except ActivationError as e:
            self.error = True
            self.log.error("Failed to activate %s environment: %s", identifier, e)
            raise

        self.error = False
        self.result = result
        self.log.info("Activated %r using %s", result, identifier)
        return result

    def merge_environment(self, extra: Mapping[str, str]) -> ActivationResult:
        """Fold later environment changes into the activated environment.

        Applying the same `extra` twice leaves the environment unchanged the
        second time.

        Raises:
            RuntimeError: If activation has not succeeded yet
        """
        if self.result is None:
            raise RuntimeError("Ruby environment has not been activated")
        self.result = self.result.merged(extra)
        return self.result

    async def _activate_with_trust(self, identifier: str) -> ActivationResult:
        manager = get_manager(identifier)(self.context())
        try:
            return await manager.activate()
        except UntrustedWorkspaceError:
            if not isinstance(manager, ShadowenvManager):
                raise
            if not await self.prompter.confirm_trust(self.bundle_root):
                raise
            await manager.trust()
            # One retry only; a second refusal propagates
            return await manager.activate()

    async def _post_activation(self, result: ActivationResult, identifier: str) -> ActivationResult:
        version = version_key(result.version)
        minimum = self.config.activation.minimum_ruby_version
        if version < version_key(minimum):
            raise UnsupportedRubyVersionError(identifier, result.version, minimum)

        yjit = result.yjit and version >= YJIT_MINIMUM
        env = dict(result.env)
        if yjit and version.major == 3 and version.minor == 2:
            # RUBYOPT may already carry bundler flags; append instead of replacing
            rubyopt = env.get("RUBYOPT")
            env["RUBYOPT"] = f"{rubyopt} --yjit" if rubyopt else "--yjit"

        env = strip_denied(env)

        gemfile = self.custom_bundle_gemfile
        if gemfile is not None:
            if not await path_exists(gemfile):
                raise BundleGemfileNotFoundError(identifier, gemfile)
            env["BUNDLE_GEMFILE"] = str(gemfile)

        return replace(result, env=env, yjit=yjit)
