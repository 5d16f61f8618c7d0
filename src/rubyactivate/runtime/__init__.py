"""Ruby environment activation through version managers."""

from .activation import RubyRuntime, WorkspaceLogger
from .errors import ActivationError
from .managers import MANAGERS, ManagerContext, VersionManager, get_manager
from .prompts import CancellationToken, FallbackScope, NonInteractivePrompter, Prompter
from .types import ActivationResult, DetectionResult, Executable, RubyVersion

__all__ = [
    "RubyRuntime",
    "WorkspaceLogger",
    "ActivationError",
    "ActivationResult",
    "DetectionResult",
    "Executable",
    "RubyVersion",
    "MANAGERS",
    "ManagerContext",
    "VersionManager",
    "get_manager",
    "CancellationToken",
    "FallbackScope",
    "NonInteractivePrompter",
    "Prompter",
]
