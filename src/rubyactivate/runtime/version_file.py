"""`.ruby-version` discovery and Ruby installation scanning."""

from __future__ import annotations

import asyncio
import logging
import os
import re
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Sequence, Tuple, Union

import semver

from .errors import RubyInstallationNotFoundError, RubyVersionFileError
from .types import RubyVersion

logger = logging.getLogger(__name__)

VERSION_FILE_NAME = ".ruby-version"

# Engine is optional; version is a dotted triplet (patch optional) with an
# optional pre-release suffix, e.g. "3.3.0", "truffleruby-21.3.0", "3.4.0-preview1"
RUBY_VERSION_PATTERN = re.compile(
    r"((?P<engine>[A-Za-z]+)-)?(?P<version>\d+\.\d+(\.\d+)?(-[A-Za-z0-9]+)?)"
)

# A `ruby "3.2.2"` or `ruby("3.2.2")` directive in a Gemfile
GEMFILE_RUBY_PATTERN = re.compile(r"^ruby(\s|\()(\"|')[\d.]+", re.MULTILINE)


@dataclass(frozen=True)
class Installation:
    """A Ruby found in one of the installation directories."""

    ruby: Path
    version: RubyVersion


def parse_ruby_version(content: str, file_path: Union[str, Path], manager: str = "chruby") -> RubyVersion:
    """Parse the contents of a `.ruby-version` file.

    Raises:
        RubyVersionFileError: If the file is empty or has no recognizable version
    """
    text = content.strip()
    if not text:
        raise RubyVersionFileError(file_path, "empty", manager=manager)

    match = RUBY_VERSION_PATTERN.search(text)
    if match is None:
        raise RubyVersionFileError(file_path, "invalid_format", text, manager=manager)

    return RubyVersion(version=match.group("version"), engine=match.group("engine"))


def version_key(version: str) -> semver.Version:
    """Sort key for Ruby versions; unparsable versions sort first."""
    try:
        return semver.Version.parse(version, optional_minor_and_patch=True)
    except ValueError:
        return semver.Version(0)


def _read_text(path: Path) -> Optional[str]:
    try:
        # Markers and Gemfiles may carry stray Latin-1 bytes in comments
        return path.read_text(encoding="utf-8", errors="replace")
    except (FileNotFoundError, NotADirectoryError, IsADirectoryError):
        return None


async def discover_ruby_version(
    start: Path,
    manager: str = "chruby",
    log: Optional[logging.LoggerAdapter] = None,
) -> Optional[Tuple[RubyVersion, Path]]:
    """Walk up from `start` looking for a `.ruby-version` file.

    The walk stops at the first marker found, even if it turns out to be
    empty or invalid, and at the filesystem root otherwise.

    Returns:
        The parsed version and the marker path, or None when no marker exists

    Raises:
        RubyVersionFileError: If the closest marker is empty or unparsable
    """
    sink = log or logger
    directory = Path(os.path.abspath(start))

    while True:
        marker = directory / VERSION_FILE_NAME
        content = await asyncio.to_thread(_read_text, marker)

        if content is not None:
            version = parse_ruby_version(content, marker, manager)
            sink.info("Discovered Ruby version %s from %s", version, marker)
            return version, marker

        parent = directory.parent
        if parent == directory:
            return None
        directory = parent


async def gemfile_pins_ruby(bundle_root: Path) -> bool:
    """Whether the bundle's Gemfile declares a specific Ruby version."""
    content = await asyncio.to_thread(_read_text, bundle_root / "Gemfile")
    return bool(content and GEMFILE_RUBY_PATTERN.search(content))


async def write_version_file(directory: Path, version: str) -> Path:
    """Persist a fallback `.ruby-version` containing `version`."""
    marker = directory / VERSION_FILE_NAME
    await asyncio.to_thread(marker.write_text, version, "utf-8")
    return marker


async def list_directory(directory: Path, log: Optional[logging.LoggerAdapter] = None) -> List[str]:
    """Entry names in `directory`, newest-looking first; empty if it doesn't exist."""
    try:
        names = await asyncio.to_thread(os.listdir, directory)
    except (FileNotFoundError, NotADirectoryError):
        (log or logger).debug(
            "Tried searching for Ruby installation in %s but it doesn't exist", directory
        )
        return []
    return sorted(names, reverse=True)


async def list_installations(
    directories: Sequence[Path],
    log: Optional[logging.LoggerAdapter] = None,
) -> List[Installation]:
    """Every Ruby installation found in `directories`, in directory order."""
    listings = await asyncio.gather(*(list_directory(directory, log) for directory in directories))
    installations = []

    for directory, names in zip(directories, listings):
        for name in names:
            match = RUBY_VERSION_PATTERN.search(name)
            if match:
                installations.append(
                    Installation(
                        ruby=directory / name / "bin" / "ruby",
                        version=RubyVersion(match.group("version"), match.group("engine")),
                    )
                )

    return installations


async def find_newest_installation(
    directories: Sequence[Path],
    manager: str = "chruby",
    log: Optional[logging.LoggerAdapter] = None,
) -> Installation:
    """The highest Ruby version installed in any of `directories`.

    Ties keep the directory order.

    Raises:
        RubyInstallationNotFoundError: If no installation exists
    """
    installations = await list_installations(directories, log)
    if not installations:
        raise RubyInstallationNotFoundError(manager, searched_paths=directories)

    newest = installations[0]
    for installation in installations[1:]:
        if version_key(installation.version.version) > version_key(newest.version.version):
            newest = installation
    return newest


async def find_installation(
    ruby_version: RubyVersion,
    directories: Sequence[Path],
    manager: str = "chruby",
    log: Optional[logging.LoggerAdapter] = None,
) -> Path:
    """Find the Ruby executable for `ruby_version` in the installation directories.

    Directories are searched in order; inside each, names are matched by
    prefix against the version's candidate names.

    Raises:
        RubyInstallationNotFoundError: If no directory holds a match
    """
    candidates = ruby_version.candidate_names()

    for directory in directories:
        names = await list_directory(directory, log)
        for candidate in candidates:
            name = next((entry for entry in names if entry.startswith(candidate)), None)
            if name:
                return directory / name / "bin" / "ruby"

    raise RubyInstallationNotFoundError(
        manager,
        requested_version=" or ".join(candidates),
        searched_paths=directories,
    )
