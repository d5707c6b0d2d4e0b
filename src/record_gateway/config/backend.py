"""
Backend configuration.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field

from ..errors import InvalidConfigError
from .base import BackendKind


@dataclass
class BackendConfig:
    """Configuration for the backend invocation layer."""

    kind: BackendKind = "memory"

    # HTTP settings
    base_url: str | None = None
    api_key: str | None = field(default_factory=lambda: os.getenv("GATEWAY_API_KEY"))
    timeout: float = 30.0
    headers: dict[str, str] = field(default_factory=dict)

    # In-memory store settings
    required_fields: dict[str, list[str]] = field(default_factory=dict)

    def __post_init__(self):
        """Validate configuration after initialization."""
        if self.kind not in ("memory", "http"):
            raise InvalidConfigError(f"Invalid backend kind: {self.kind}. Must be 'memory' or 'http'")
        if self.timeout <= 0:
            raise InvalidConfigError("timeout must be positive")
        if self.kind == "http":
            if not self.base_url:
                raise InvalidConfigError("base_url is required for the http backend")
            if not self.base_url.startswith(("http://", "https://")):
                raise InvalidConfigError("base_url must be a valid HTTP(S) URL")


__all__ = ["BackendConfig"]
