"""Data types for Ruby environment activation."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Callable, Dict, Literal, Mapping, Optional, Protocol, Tuple, Union


@dataclass(frozen=True)
class RubyVersion:
    """A Ruby version pinned by a `.ruby-version` file or an installation name.

    Attributes:
        version: Dotted version, e.g. "3.3.0" or "3.4.0-preview1"
        engine: Optional engine prefix, e.g. "truffleruby" or "ruby"
    """

    version: str
    engine: Optional[str] = None

    def candidate_names(self) -> Tuple[str, ...]:
        """Directory names an installation of this version may use, in preference order."""
        if self.engine:
            return (f"{self.engine}-{self.version}", self.version)
        return (self.version, f"ruby-{self.version}")

    def __str__(self) -> str:
        return f"{self.engine}-{self.version}" if self.engine else self.version


@dataclass(frozen=True)
class Executable:
    """A raw command description handed to a command wrapper."""

    command: str
    args: Tuple[str, ...] = ()
    env: Mapping[str, str] = field(default_factory=dict)
    cwd: Optional[str] = None


@dataclass(frozen=True)
class CommandResult:
    """Captured output of a finished (or early-resolved) process."""

    stdout: str
    stderr: str
    returncode: Optional[int] = 0


@dataclass(frozen=True)
class ProbeResult:
    """Decoded payload reported by the environment probe."""

    env: Dict[str, str]
    yjit: bool
    version: str
    gem_path: Tuple[str, ...] = ()


class PathConverter(Protocol):
    """Translates paths between the local filesystem and an execution context."""

    def to_local_path(self, path: str) -> str: ...

    def to_remote_path(self, path: str) -> str: ...


class IdentityPathConverter:
    """Path converter used by every strategy that runs Ruby locally."""

    def to_local_path(self, path: str) -> str:
        return path

    def to_remote_path(self, path: str) -> str:
        return path

    def __repr__(self) -> str:
        return "<IdentityPathConverter>"


IDENTITY_CONVERTER = IdentityPathConverter()

CommandWrapper = Callable[[Executable], Executable]


@dataclass(frozen=True)
class ActivationResult:
    """Everything a language server needs to boot inside the activated Ruby.

    Attributes:
        env: Inherited process environment overlaid with the Ruby additions
        yjit: Whether YJIT will be enabled for this Ruby
        version: RUBY_VERSION reported by the activated runtime (never empty)
        gem_path: Ordered gem (library) search paths
        path_converter: Local/remote path translation (identity unless containerized)
        wrap_command: Rewrites commands to run inside the container, if any
    """

    env: Mapping[str, str]
    yjit: bool
    version: str
    gem_path: Tuple[str, ...] = ()
    path_converter: PathConverter = IDENTITY_CONVERTER
    wrap_command: Optional[CommandWrapper] = None

    def merged(self, extra: Mapping[str, str]) -> "ActivationResult":
        """Return a copy with `extra` overlaid onto the environment (last write wins)."""
        env = dict(self.env)
        env.update(extra)
        return replace(self, env=env)

    def wrap(self, executable: Executable) -> Executable:
        """Apply the command wrapper, leaving the command untouched when there is none."""
        if self.wrap_command is None:
            return executable
        return self.wrap_command(executable)

    def __repr__(self) -> str:
        yjit_note = " +YJIT" if self.yjit else ""
        return f"<ActivationResult ruby {self.version}{yjit_note} ({len(self.env)} env vars)>"


@dataclass(frozen=True)
class NotDetected:
    """The strategy is not applicable or its tool is not installed."""

    kind: Literal["none"] = "none"


@dataclass(frozen=True)
class DetectedPath:
    """A concrete executable, script or directory was found."""

    path: Path
    kind: Literal["path"] = "path"


@dataclass(frozen=True)
class DetectedSemantic:
    """The tool answered a lightweight probe on the ambient PATH."""

    marker: str
    kind: Literal["semantic"] = "semantic"


DetectionResult = Union[NotDetected, DetectedPath, DetectedSemantic]

NOT_DETECTED = NotDetected()
