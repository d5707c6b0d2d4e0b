"""
Settings master configuration and global helpers.
"""

from __future__ import annotations

import dataclasses
import os
import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import jsonschema
import yaml
from dotenv import find_dotenv, load_dotenv

from ..config_schema import CONFIG_SCHEMA
from ..errors import InvalidConfigError
from .backend import BackendConfig
from .logging import LoggingConfig


@dataclass
class Settings:
    """
    Master configuration for the gateway.

    Aggregates all configuration sections into a single object that can be
    loaded from environment variables, files, or constructed programmatically.
    """

    backend: BackendConfig = field(default_factory=BackendConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    @classmethod
    def from_env(cls, prefix: str = "GATEWAY_") -> Settings:
        """
        Load settings from environment variables.

        Example:
            GATEWAY_BACKEND=http
            GATEWAY_BASE_URL=https://records.example.com/api
            GATEWAY_TIMEOUT=10
            GATEWAY_LOG_LEVEL=DEBUG
        """
        backend: dict[str, Any] = {}
        if kind := os.getenv(f"{prefix}BACKEND"):
            backend["kind"] = kind.lower()
        if url := os.getenv(f"{prefix}BASE_URL"):
            backend["base_url"] = url
        # always set: the field default reads GATEWAY_API_KEY regardless of prefix
        backend["api_key"] = os.getenv(f"{prefix}API_KEY") or None
        if timeout := os.getenv(f"{prefix}TIMEOUT"):
            try:
                backend["timeout"] = float(timeout)
            except ValueError as exc:
                raise InvalidConfigError(f"{prefix}TIMEOUT must be a number, got {timeout!r}") from exc

        log: dict[str, Any] = {}
        if level := os.getenv(f"{prefix}LOG_LEVEL"):
            log["level"] = level.upper()
        if log_format := os.getenv(f"{prefix}LOG_FORMAT"):
            log["format"] = log_format.lower()

        return cls(backend=BackendConfig(**backend), logging=LoggingConfig(**log))

    @classmethod
    def from_file(cls, path: str | Path) -> Settings:
        """
        Load settings from a YAML or TOML file.

        Args:
            path: Path to configuration file (.yaml, .yml, or .toml)

        Returns:
            Settings object with values from file
        """
        path = Path(path)

        if not path.exists():
            raise FileNotFoundError(f"Configuration file not found: {path}")

        suffix = path.suffix.lower()

        if suffix in (".yaml", ".yml"):
            with open(path) as f:
                data = yaml.safe_load(f) or {}
        elif suffix == ".toml":
            with open(path, "rb") as f:
                data = tomllib.load(f)
        else:
            raise InvalidConfigError(f"Unsupported config file format: {suffix}")

        return cls._from_dict(data)

    @classmethod
    def default(cls) -> Settings:
        return cls()

    @classmethod
    def _from_dict(cls, data: dict[str, Any]) -> Settings:
        """
        Create Settings from a dictionary.

        The dictionary is validated against the configuration schema first.
        """
        try:
            jsonschema.validate(instance=data, schema=CONFIG_SCHEMA)
        except jsonschema.ValidationError as e:
            raise InvalidConfigError(f"Configuration validation failed: {e.message}") from e

        settings = cls()
        if "backend" in data:
            settings.backend = BackendConfig(**data["backend"])
        if "logging" in data:
            settings.logging = LoggingConfig(**data["logging"])
        return settings

    def to_dict(self) -> dict[str, Any]:
        """Convert settings to dictionary."""
        return dataclasses.asdict(self)


# =============================================================================
# Global Settings & Helpers
# =============================================================================

_global_settings: Settings | None = None


def get_settings() -> Settings:
    """Get the global settings instance, creating from the environment if needed."""
    global _global_settings
    if _global_settings is None:
        _global_settings = Settings.from_env()
    return _global_settings


def configure(settings: Settings | None = None, **kwargs) -> Settings:
    """
    Configure global settings.

    Args:
        settings: Settings object to use globally
        **kwargs: Override specific sections (``backend=BackendConfig(...)``)

    Returns:
        The configured Settings object
    """
    global _global_settings

    if settings is not None:
        _global_settings = settings
    elif _global_settings is None:
        _global_settings = Settings.from_env()

    for key, value in kwargs.items():
        if not hasattr(_global_settings, key):
            raise InvalidConfigError(f"Unknown settings section: {key}")
        setattr(_global_settings, key, value)

    return _global_settings


def reset_settings() -> None:
    """Drop the global settings so the next lookup reloads them."""
    global _global_settings
    _global_settings = None


def load_env(path: str | None = None, *, override: bool = False) -> bool:
    """
    Load environment variables from a .env file.

    Args:
        path: Optional path to a .env file. If not provided, uses find_dotenv().
        override: Whether to override existing environment variables.

    Returns:
        True if a .env file was found and loaded, False otherwise.
    """
    env_path = path or find_dotenv(usecwd=True)
    if not env_path:
        return False
    return load_dotenv(env_path, override=override)


__all__ = ["Settings", "get_settings", "configure", "reset_settings", "load_env"]
