"""Configuration management for Ruby activation."""

from .parser import (
    ActivationConfig,
    ActivationSettings,
    VersionManagerConfig,
    SUPPORTED_MANAGERS,
    load_config,
    find_config_file,
)

__all__ = [
    "ActivationConfig",
    "ActivationSettings",
    "VersionManagerConfig",
    "SUPPORTED_MANAGERS",
    "load_config",
    "find_config_file",
]
