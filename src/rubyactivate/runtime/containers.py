"""Path and command translation for Ruby running inside a compose service.

Local paths are mapped onto container paths using the service's bind mounts
and mutagen sync sessions, as reported by `docker compose config`.
"""

from __future__ import annotations

import asyncio
import logging
import os
import posixpath
import re
import shlex
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Tuple

from .discovery import is_directory
from .types import Executable

logger = logging.getLogger(__name__)

_ENV_ASSIGNMENT = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*=")

MUTAGEN_VOLUME_SCHEME = "volume://"


def fetch_path_mapping(config: Mapping[str, Any], service: str) -> Dict[str, str]:
    """Map local paths (possibly workspace-relative) to container paths for `service`."""
    sync = (config.get("x-mutagen") or {}).get("sync") or {}
    mutagen_mounts = _fetch_mutagen_mounts(sync)
    volumes = ((config.get("services") or {}).get(service) or {}).get("volumes") or []
    return _fetch_compose_bindings(volumes, mutagen_mounts)


def _fetch_compose_bindings(
    volumes: List[Mapping[str, Any]],
    mutagen_mounts: Mapping[str, Tuple[str, str]],
) -> Dict[str, str]:
    bindings: Dict[str, str] = {}

    for volume in volumes:
        if volume.get("type") == "bind":
            bindings[volume["source"]] = volume["target"]
        elif volume.get("type") == "volume":
            prefix = f"{MUTAGEN_VOLUME_SCHEME}{volume.get('source')}/"
            for mutagen_volume, (source, target) in mutagen_mounts.items():
                if mutagen_volume.startswith(prefix):
                    bindings[target] = posixpath.normpath(posixpath.join(volume["target"], source))

    return bindings


def _fetch_mutagen_mounts(sync: Mapping[str, Mapping[str, str]]) -> Dict[str, Tuple[str, str]]:
    mounts: Dict[str, Tuple[str, str]] = {}

    for name, share in sync.items():
        if name == "defaults":
            continue

        alpha, beta = share.get("alpha", ""), share.get("beta", "")
        if alpha.startswith(MUTAGEN_VOLUME_SCHEME):
            volume, source, target = _transform_mutagen_mount(alpha, beta)
        elif beta.startswith(MUTAGEN_VOLUME_SCHEME):
            volume, source, target = _transform_mutagen_mount(beta, alpha)
        else:
            continue

        mounts[volume] = (source, target)

    return mounts


def _transform_mutagen_mount(volume_url: str, local: str) -> Tuple[str, str, str]:
    _, *path = volume_url[len(MUTAGEN_VOLUME_SCHEME):].split("/")
    if path:
        return volume_url, "./" + "/".join(path), local
    return f"{volume_url}/", ".", local


def _has_prefix(path: str, prefix: str, separator: str) -> bool:
    return path == prefix or path.startswith(prefix.rstrip(separator) + separator)


class ContainerPathConverter:
    """Longest-prefix translation between local and container paths.

    The mapping is fixed at construction; unmapped paths pass through unchanged.
    """

    def __init__(self, mapping: Mapping[str, str], separator: str = os.sep):
        self._pairs: Tuple[Tuple[str, str], ...] = tuple(mapping.items())
        self._separator = separator

    @property
    def mapping(self) -> Dict[str, str]:
        return dict(self._pairs)

    def to_remote_path(self, path: str) -> str:
        matches = [pair for pair in self._pairs if _has_prefix(path, pair[0], self._separator)]
        if not matches:
            return path
        local, remote = max(matches, key=lambda pair: len(pair[0]))
        rest = path[len(local.rstrip(self._separator)):].replace(self._separator, "/")
        return remote.rstrip("/") + rest if rest else remote

    def to_local_path(self, path: str) -> str:
        matches = [pair for pair in self._pairs if _has_prefix(path, pair[1], "/")]
        if not matches:
            return path
        local, remote = max(matches, key=lambda pair: len(pair[1]))
        rest = path[len(remote.rstrip("/")):].replace("/", self._separator)
        return local.rstrip(self._separator) + rest if rest else local

    def __repr__(self) -> str:
        return f"<ContainerPathConverter {len(self._pairs)} mappings>"


async def build_path_converter(
    config: Mapping[str, Any],
    service: str,
    workspace_root: Path,
    log: Optional[logging.LoggerAdapter] = None,
) -> ContainerPathConverter:
    """Build a converter from the mounts of `service` that exist locally as directories."""
    sink = log or logger
    mapping = fetch_path_mapping(config, service)
    candidates = [
        (local, remote, os.path.normpath(os.path.join(workspace_root, local)))
        for local, remote in mapping.items()
    ]
    directories = await asyncio.gather(
        *(is_directory(Path(absolute)) for _, _, absolute in candidates)
    )

    filtered: Dict[str, str] = {}
    for (local, remote, absolute), exists in zip(candidates, directories):
        if exists:
            sink.info("Path %s mapped to %s", absolute, remote)
            filtered[absolute] = remote
        else:
            sink.debug("Skipping path %s because it does not exist", local)

    return ContainerPathConverter(filtered)


def parse_command(command_line: str) -> Executable:
    """Split a command line, turning leading `KEY=value` words into environment entries."""
    tokens = shlex.split(command_line)
    env: Dict[str, str] = {}
    while tokens and _ENV_ASSIGNMENT.match(tokens[0]):
        key, value = tokens.pop(0).split("=", 1)
        env[key] = value

    if not tokens:
        raise ValueError(f"No command found in {command_line!r}")

    return Executable(command=tokens[0], args=tuple(tokens[1:]), env=env)


class ComposeCommandWrapper:
    """Rewrites a command so that it runs inside a compose service."""

    def __init__(self, run_command: str):
        self.run_command = run_command
        self._wrapper = parse_command(run_command)

    def __call__(self, executable: Executable) -> Executable:
        # Wrapper entries go last so callers cannot shadow them
        env = dict(executable.env)
        env.update(self._wrapper.env)
        return Executable(
            command=self._wrapper.command,
            args=(*self._wrapper.args, executable.command, *executable.args),
            env=env,
            cwd=executable.cwd,
        )

    def __repr__(self) -> str:
        return f"<ComposeCommandWrapper {self.run_command!r}>"
