"""Path resolution utilities for workspace-relative paths."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Union


def resolve_workspace_path(
    path: Union[str, Path],
    workspace_root: Union[str, Path],
) -> Path:
    """Resolve a path relative to the workspace.

    - Absolute paths: returned normalized
    - Relative paths: resolved relative to workspace_root

    Symlinks are left alone: a Gemfile symlinked into the workspace must keep
    its workspace directory as the bundle root.

    Args:
        path: Path to resolve (can be absolute or relative)
        workspace_root: Root directory of the workspace

    Returns:
        Absolute Path object

    Examples:
        >>> resolve_workspace_path("tools/Gemfile", "/project")
        PosixPath('/project/tools/Gemfile')

        >>> resolve_workspace_path("/abs/Gemfile", "/project")
        PosixPath('/abs/Gemfile')
    """
    path_obj = Path(path)
    if not path_obj.is_absolute():
        path_obj = Path(os.path.abspath(workspace_root)) / path_obj
    return Path(os.path.normpath(path_obj))
