"""
Backend invocation layer.

This package defines the backend contract the gateway delegates to, plus an
in-memory reference store and an HTTP transport.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from .base import Backend, BaseBackend, Operation
from .http import HttpBackend
from .memory import InMemoryBackend

if TYPE_CHECKING:
    from ..config import BackendConfig


def create_backend(config: BackendConfig) -> BaseBackend:
    """Build the backend described by ``config``."""
    if config.kind == "http":
        return HttpBackend(
            base_url=config.base_url,
            api_key=config.api_key,
            timeout=config.timeout,
            headers=config.headers,
        )
    return InMemoryBackend(required_fields=config.required_fields)


__all__ = [
    "Operation",
    "Backend",
    "BaseBackend",
    "InMemoryBackend",
    "HttpBackend",
    "create_backend",
]
