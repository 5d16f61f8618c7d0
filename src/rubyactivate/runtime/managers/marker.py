"""Activation for strategies that pick a Ruby binary through `.ruby-version`.

chruby and RubyInstaller never run a version manager. They find the Ruby
requested by the closest `.ruby-version`, run that binary directly to learn
its gem directories and build GEM_HOME, GEM_PATH and PATH themselves. They
only differ in where installations live and how reported paths are spelled,
so each passes its own lookup and path normalization to `MarkerActivation`.
"""

from __future__ import annotations

import ntpath
import posixpath
from pathlib import Path
from typing import Awaitable, Callable, List, Optional, Sequence, Tuple

from ...config import ActivationConfig
from ..discovery import is_directory, path_key, prepend_to_path
from ..errors import ProbeParseError
from ..execution import quote_path
from ..fallback import FallbackOrchestrator, RetryActivation
from ..probe import INSTALLATION_PROBE_SCRIPT
from ..types import ActivationResult, ProbeResult, RubyVersion
from ..version_file import Installation, discover_ruby_version, find_newest_installation
from .base import VersionManager, home

# One restart after the human configures a fallback
MAX_ACTIVATION_ATTEMPTS = 2

RubyLookup = Callable[[RubyVersion], Awaitable[Path]]


def rubies_directories(config: ActivationConfig) -> List[Path]:
    """Directories holding one sub-directory per installed Ruby."""
    dirs = [home() / ".rubies", Path("/opt/rubies")]
    dirs.extend(Path(config.resolve_path(path)) for path in config.version_manager.chruby_rubies)
    return dirs


def keep_path(path: str) -> str:
    return path


class MarkerActivation:
    """Activates the Ruby selected by `.ruby-version` on behalf of a strategy.

    Args:
        manager: Strategy that owns the context, logger and probe runner
        installation_dirs: Directories scanned by the fallback for the newest Ruby
        find_ruby: Resolves a requested version to a Ruby executable
        normalize_gem_path: Rewrites gem paths reported by the probe
    """

    def __init__(
        self,
        manager: VersionManager,
        installation_dirs: Sequence[Path],
        find_ruby: RubyLookup,
        normalize_gem_path: Callable[[str], str] = keep_path,
    ):
        self.manager = manager
        self.context = manager.context
        self.log = manager.log
        self.installation_dirs = list(installation_dirs)
        self.find_ruby = find_ruby
        self.normalize_gem_path = normalize_gem_path

    async def activate(self) -> ActivationResult:
        ruby, ruby_version = await self.locate_ruby()
        self.log.info("Discovered Ruby installation at %s", ruby)

        platform = self.context.platform
        probe = await self.manager.run_probe(quote_path(ruby, platform), INSTALLATION_PROBE_SCRIPT)
        default_gems, gem_home = await self.resolve_gem_dirs(probe, ruby_version)
        self.log.info(
            "Activated Ruby environment: default_gems=%s gem_home=%s yjit=%s",
            default_gems,
            gem_home,
            probe.yjit,
        )

        pathmod = self._pathmod()
        separator = ";" if platform == "win32" else ":"
        env = self.context.env
        ruby_env = {
            "GEM_HOME": gem_home,
            "GEM_PATH": f"{gem_home}{separator}{default_gems}",
            path_key(env, platform): prepend_to_path(
                env,
                [
                    pathmod.join(gem_home, "bin"),
                    pathmod.join(default_gems, "bin"),
                    pathmod.dirname(str(ruby)),
                ],
                platform,
            ),
        }

        return self.manager.finish(
            probe,
            overrides=ruby_env,
            gem_path=[gem_home, default_gems],
            include_probe_env=False,
        )

    async def locate_ruby(self) -> Tuple[Path, Optional[RubyVersion]]:
        """Find the Ruby executable, offering the fallback when no marker exists.

        Returns:
            The Ruby executable and its version; the version is None when the
            human picked an executable manually
        """
        identifier = self.manager.identifier
        orchestrator = FallbackOrchestrator(
            identifier,
            self.manager.bundle_root,
            self.installation_dirs,
            self.context.prompter,
            manually_select_ruby=self.context.manually_select_ruby,
            timeout=self.manager.config.activation.fallback_timeout,
            log=self.log,
        )

        for _ in range(MAX_ACTIVATION_ATTEMPTS):
            discovered = await discover_ruby_version(self.manager.bundle_root, identifier, self.log)
            if discovered is not None:
                ruby_version, _marker = discovered
                return await self.find_ruby(ruby_version), ruby_version

            outcome = await orchestrator.run(self.find_newest)
            if isinstance(outcome, Installation):
                return outcome.ruby, outcome.version
            if isinstance(outcome, RetryActivation) and outcome.ruby is not None:
                return outcome.ruby, None

            self.log.info("Restarting Ruby discovery (%s)", outcome.reason)

        raise orchestrator.not_found_error()

    async def find_newest(self) -> Installation:
        return await find_newest_installation(self.installation_dirs, self.manager.identifier, self.log)

    async def resolve_gem_dirs(
        self,
        probe: ProbeResult,
        ruby_version: Optional[RubyVersion],
    ) -> Tuple[str, str]:
        """Work out the default gem directory and GEM_HOME from the probe's gem paths.

        GEM_HOME is normally `~/.gem/ruby/<major.minor.0>`, but chruby uses the
        full patch version (`~/.gem/ruby/3.2.2`). When a sibling directory
        named after the full version exists, it wins.
        """
        paths = [self.normalize_gem_path(path) for path in probe.gem_path]
        if len(paths) < 2:
            raise ProbeParseError(
                "expected the default and user gem directories", str(paths), self.manager.identifier
            )

        default_dir, user_dir, others = paths[0], paths[1], paths[2:]
        if others and await is_directory(Path(others[0])):
            user_dir = others[0]

        version = ruby_version.version if ruby_version else probe.version
        pathmod = self._pathmod()
        newer_gem_home = pathmod.join(pathmod.dirname(user_dir), version)
        gem_home = newer_gem_home if await is_directory(Path(newer_gem_home)) else user_dir
        return default_dir, gem_home

    def _pathmod(self):
        return ntpath if self.context.platform == "win32" else posixpath
