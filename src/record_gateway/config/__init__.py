"""
Configuration system for record-gateway.

This package provides typed configuration classes with:
- Dataclass-based settings with validation
- Environment variable loading
- YAML/TOML file loading
- Sensible defaults with override capability
"""

from .backend import BackendConfig
from .base import BackendKind, LogFormat, LogLevel
from .logging import LoggingConfig
from .settings import Settings, configure, get_settings, load_env, reset_settings

__all__ = [
    # Types
    "BackendKind",
    "LogLevel",
    "LogFormat",
    # Section configs
    "BackendConfig",
    "LoggingConfig",
    # Master config
    "Settings",
    # Global functions
    "get_settings",
    "configure",
    "reset_settings",
    "load_env",
]
