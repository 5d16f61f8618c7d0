"""Activate the right Ruby for a workspace, whatever version manager it uses."""

__version__ = "0.1.0"
