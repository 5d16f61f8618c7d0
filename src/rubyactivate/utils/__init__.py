"""Utility functions for rubyactivate."""

from .path import resolve_workspace_path

__all__ = ["resolve_workspace_path"]
