"""Filesystem probes used to locate version managers and Ruby installations."""

from __future__ import annotations

import asyncio
import os
import shutil
import sys
from pathlib import Path
from typing import Iterable, List, Mapping, Optional, Sequence

# Windows treats environment variable names case-insensitively, but a copied
# environment dict may carry any of these spellings
_WINDOWS_PATH_KEYS = ("PATH", "Path", "path")


async def path_exists(path: Path) -> bool:
    """Stat a path without blocking the event loop."""
    return await asyncio.to_thread(path.exists)


async def is_directory(path: Path) -> bool:
    return await asyncio.to_thread(path.is_dir)


async def probe_paths(paths: Sequence[Path]) -> List[bool]:
    """Stat every candidate concurrently, returning results in input order."""
    return list(await asyncio.gather(*(path_exists(path) for path in paths)))


async def find_first(paths: Sequence[Path]) -> Optional[Path]:
    """Return the first existing path in declaration order.

    All candidates are probed concurrently, but the winner is chosen by
    position, never by which stat finished first.
    """
    for path, exists in zip(paths, await probe_paths(paths)):
        if exists:
            return path
    return None


def path_key(env: Mapping[str, str], platform: Optional[str] = None) -> str:
    """Name of the executable search path variable used by `env`."""
    platform = platform or sys.platform
    if platform != "win32":
        return "PATH"
    for key in _WINDOWS_PATH_KEYS:
        if key in env:
            return key
    return "PATH"


def get_process_path(env: Mapping[str, str], platform: Optional[str] = None) -> Optional[str]:
    """Read the executable search path from `env`.

    On Windows all three casings are checked before concluding it is unset.
    """
    platform = platform or sys.platform
    if platform != "win32":
        return env.get("PATH")
    for key in _WINDOWS_PATH_KEYS:
        if key in env:
            return env[key]
    return None


def prepend_to_path(env: Mapping[str, str], entries: Iterable[str], platform: Optional[str] = None) -> str:
    """Build a search path with `entries` in front of the one in `env`."""
    parts = [entry for entry in entries if entry]
    current = get_process_path(env, platform)
    if current:
        parts.append(current)
    separator = ";" if (platform or sys.platform) == "win32" else os.pathsep
    return separator.join(parts)


def which(executable: str, env: Mapping[str, str], platform: Optional[str] = None) -> Optional[Path]:
    """Find `executable` on the search path held in `env`."""
    search_path = get_process_path(env, platform)
    if not search_path:
        return None
    found = shutil.which(executable, path=search_path)
    return Path(found) if found else None
