"""
Base types for configuration.
"""

from __future__ import annotations

from typing import Literal

BackendKind = Literal["memory", "http"]
LogLevel = Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
LogFormat = Literal["text", "json"]


__all__ = ["BackendKind", "LogLevel", "LogFormat"]
