"""Version manager strategies, one module per tool."""

from typing import Dict, List, Type

from .asdf import AsdfManager
from .base import ManagerContext, VersionManager
from .chruby import ChrubyManager
from .compose import ComposeManager
from .custom import CustomManager
from .mise import MiseManager
from .nix_develop import NixDevelopManager
from .none import NoneManager
from .rbenv import RbenvManager
from .ruby_installer import RubyInstallerManager
from .rv import RvManager
from .rvm import RvmManager
from .shadowenv import ShadowenvManager

MANAGERS: Dict[str, Type[VersionManager]] = {
    manager.identifier: manager
    for manager in (
        NoneManager,
        CustomManager,
        AsdfManager,
        ChrubyManager,
        RbenvManager,
        RvmManager,
        MiseManager,
        RvManager,
        ShadowenvManager,
        NixDevelopManager,
        RubyInstallerManager,
        ComposeManager,
    )
}

# Order in which "auto" tries to recognize a version manager. shadowenv comes
# first: a .shadowenv.d directory is a stronger signal than an installed tool
DETECTION_ORDER: List[Type[VersionManager]] = [
    ShadowenvManager,
    ChrubyManager,
    RbenvManager,
    RvmManager,
    AsdfManager,
    MiseManager,
    RvManager,
    RubyInstallerManager,
]


def get_manager(identifier: str) -> Type[VersionManager]:
    """Look up a strategy class by identifier.

    Raises:
        ValueError: If the identifier is unknown
    """
    try:
        return MANAGERS[identifier]
    except KeyError:
        supported = ", ".join(MANAGERS)
        raise ValueError(
            f"Version manager '{identifier}' not supported. Supported version managers: {supported}"
        ) from None


__all__ = [
    "MANAGERS",
    "DETECTION_ORDER",
    "get_manager",
    "ManagerContext",
    "VersionManager",
    "AsdfManager",
    "ChrubyManager",
    "ComposeManager",
    "CustomManager",
    "MiseManager",
    "NixDevelopManager",
    "NoneManager",
    "RbenvManager",
    "RubyInstallerManager",
    "RvManager",
    "RvmManager",
    "ShadowenvManager",
]
