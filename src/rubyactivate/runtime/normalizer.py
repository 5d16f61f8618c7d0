"""Turn a decoded probe result into an ActivationResult."""

from __future__ import annotations

from typing import Dict, Iterable, Mapping, Optional, Sequence

from .types import IDENTITY_CONVERTER, ActivationResult, CommandWrapper, PathConverter, ProbeResult

# Variables that make the language server print debugging output or tune the
# GC for a different workload
ENV_DENYLIST = frozenset({"VERBOSE", "DEBUG"})
ENV_DENYLIST_PREFIXES = ("RUBY_GC_",)


def merge_environment(base: Mapping[str, str], *overlays: Mapping[str, str]) -> Dict[str, str]:
    """Overlay environments left to right; later values win."""
    env = dict(base)
    for overlay in overlays:
        env.update(overlay)
    return env


def strip_denied(env: Mapping[str, str]) -> Dict[str, str]:
    """Copy of `env` without denylisted variables."""
    return {
        key: value
        for key, value in env.items()
        if key not in ENV_DENYLIST and not key.startswith(ENV_DENYLIST_PREFIXES)
    }


def normalize(
    probe: ProbeResult,
    base_env: Mapping[str, str],
    overrides: Optional[Mapping[str, str]] = None,
    remove: Iterable[str] = (),
    gem_path: Optional[Sequence[str]] = None,
    path_converter: PathConverter = IDENTITY_CONVERTER,
    wrap_command: Optional[CommandWrapper] = None,
    include_probe_env: bool = True,
) -> ActivationResult:
    """Assemble the final result.

    Args:
        probe: Decoded probe payload
        base_env: Environment inherited from the current process
        overrides: Strategy-specific entries applied after the probe environment
        remove: Variables the activated runtime must not leak
        gem_path: Replacement for the probe's gem paths
        include_probe_env: False when the probe ran somewhere else (a container)
    """
    overlays = [probe.env] if include_probe_env else []
    env = strip_denied(merge_environment(base_env, *overlays, overrides or {}))
    for key in remove:
        env.pop(key, None)

    return ActivationResult(
        env=env,
        yjit=probe.yjit,
        version=probe.version,
        gem_path=tuple(probe.gem_path if gem_path is None else gem_path),
        path_converter=path_converter,
        wrap_command=wrap_command,
    )
