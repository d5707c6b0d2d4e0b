"""
Structured Logging for record-gateway.

This module provides:
- Structured JSON or text logging with consistent fields
- Request/response logging with trace correlation
- Timing helpers for call durations
"""

from __future__ import annotations

import contextvars
import json
import logging
import sys
import time
import uuid
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from .config import LoggingConfig


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


# =============================================================================
# Log Record Types
# =============================================================================


@dataclass
class LogContext:
    """Context information attached to log records."""

    trace_id: str | None = None
    request_id: str | None = None
    backend: str | None = None
    operation: str | None = None
    extra: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        d = {k: v for k, v in asdict(self).items() if v is not None and k != "extra"}
        d.update(self.extra)
        return d

    def with_update(self, **kwargs) -> LogContext:
        """Create a new context with updated values."""
        return LogContext(
            trace_id=kwargs.get("trace_id", self.trace_id),
            request_id=kwargs.get("request_id", self.request_id),
            backend=kwargs.get("backend", self.backend),
            operation=kwargs.get("operation", self.operation),
            extra={**self.extra, **kwargs.get("extra", {})},
        )


@dataclass
class RequestLog:
    """Log record for a gateway call about to be sent to the backend."""

    request_id: str
    backend: str
    operation: str

    timestamp: str = field(default_factory=_now)

    record_count: int = 0
    all_or_none: bool | None = None
    api_name: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {k: v for k, v in asdict(self).items() if v is not None}


@dataclass
class ResponseLog:
    """Log record for a completed (or failed) gateway call."""

    request_id: str
    backend: str
    operation: str

    # Status
    success: bool = True
    error: str | None = None

    # Timing
    timestamp: str = field(default_factory=_now)
    duration_ms: float | None = None

    # Per-record results; rows for queries
    succeeded: int | None = None
    failed: int | None = None
    row_count: int | None = None

    def to_dict(self) -> dict[str, Any]:
        return {k: v for k, v in asdict(self).items() if v is not None}


# =============================================================================
# Structured Logger
# =============================================================================


class StructuredLogger:
    """
    Logger with structured output and context tracking.

    Example:
        ```python
        logger = StructuredLogger("record_gateway")

        with logger.request_context(backend="http", operation="deleteRecords") as request_id:
            logger.log_request(RequestLog(request_id=request_id, ...))
            # ... call backend ...
            logger.log_response(ResponseLog(request_id=request_id, ...))
        ```
    """

    def __init__(
        self,
        name: str = "record_gateway",
        level: str = "INFO",
        json_output: bool = False,
    ):
        self.name = name
        self.json_output = json_output

        self._logger = logging.getLogger(name)
        self._logger.setLevel(getattr(logging, level.upper()))

        # per-task context so concurrent calls do not overwrite each other
        self._context_var: contextvars.ContextVar[LogContext | None] = contextvars.ContextVar(
            f"{name}.log_context", default=None
        )

        if not self._logger.handlers:
            handler = logging.StreamHandler(sys.stdout)
            if json_output:
                handler.setFormatter(JSONFormatter())
            else:
                handler.setFormatter(TextFormatter())
            self._logger.addHandler(handler)

    @classmethod
    def from_config(cls, config: LoggingConfig, name: str = "record_gateway") -> StructuredLogger:
        return cls(name=name, level=config.level, json_output=config.format == "json")

    @property
    def _context(self) -> LogContext:
        return self._context_var.get() or LogContext()

    @property
    def context(self) -> LogContext:
        return self._context

    def set_context(self, **kwargs) -> None:
        """Update the current log context."""
        self._context_var.set(self._context.with_update(**kwargs))

    @contextmanager
    def trace_context(
        self,
        trace_id: str | None = None,
        **kwargs,
    ) -> Iterator[str]:
        """
        Context manager for trace correlation.

        Args:
            trace_id: Trace ID (auto-generated if not provided)
            **kwargs: Additional context fields

        Yields:
            The trace ID
        """
        trace_id = trace_id or self._context.trace_id or generate_trace_id()
        token = self._context_var.set(self._context.with_update(trace_id=trace_id, **kwargs))
        try:
            yield trace_id
        finally:
            self._context_var.reset(token)

    @contextmanager
    def request_context(
        self,
        backend: str,
        operation: str,
        request_id: str | None = None,
    ) -> Iterator[str]:
        """
        Context manager for a single gateway call.

        Yields:
            The request ID
        """
        request_id = request_id or generate_request_id()

        with self.trace_context(
            request_id=request_id,
            backend=backend,
            operation=operation,
        ):
            yield request_id

    def _log(
        self,
        level: int,
        message: str,
        event_type: str | None = None,
        data: dict[str, Any] | None = None,
    ) -> None:
        record_data = {
            "message": message,
            **self._context.to_dict(),
        }

        if event_type:
            record_data["event_type"] = event_type

        if data:
            record_data.update(data)

        if self.json_output:
            self._logger.log(level, json.dumps(record_data, default=str))
        else:
            extras = " ".join(f"{k}={v}" for k, v in record_data.items() if k != "message")
            self._logger.log(level, f"{message} {extras}")

    def debug(self, message: str, **kwargs) -> None:
        self._log(logging.DEBUG, message, data=kwargs)

    def info(self, message: str, **kwargs) -> None:
        self._log(logging.INFO, message, data=kwargs)

    def warning(self, message: str, **kwargs) -> None:
        self._log(logging.WARNING, message, data=kwargs)

    def error(self, message: str, **kwargs) -> None:
        self._log(logging.ERROR, message, data=kwargs)

    # Typed logging methods

    def log_request(self, request: RequestLog) -> None:
        """Log a gateway call."""
        self._log(
            logging.INFO,
            f"{request.operation} -> {request.backend} ({request.record_count} records)",
            event_type="request",
            data=request.to_dict(),
        )

    def log_response(self, response: ResponseLog) -> None:
        """Log a gateway call result. Partial failures log at WARNING."""
        level = logging.INFO if response.success and not response.failed else logging.WARNING
        message = f"{response.operation} <- {response.backend}"
        if response.duration_ms is not None:
            message += f" ({response.duration_ms:.0f}ms)"
        self._log(level, message, event_type="response", data=response.to_dict())

    def log_error(
        self,
        error: Exception,
        message: str | None = None,
        **kwargs,
    ) -> None:
        """Log an error with context."""
        error_data = {
            "error_type": type(error).__name__,
            "error_message": str(error),
            **kwargs,
        }

        if hasattr(error, "code"):
            error_data["error_code"] = str(error.code.value)
        if hasattr(error, "retryable"):
            error_data["retryable"] = error.retryable

        self._log(
            logging.ERROR,
            message or f"Error: {error}",
            event_type="error",
            data=error_data,
        )


# =============================================================================
# Formatters
# =============================================================================


class JSONFormatter(logging.Formatter):
    """JSON log formatter."""

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": _now(),
            "level": record.levelname,
            "logger": record.name,
        }

        try:
            message_data = json.loads(record.getMessage())
        except (json.JSONDecodeError, TypeError):
            message_data = None
        if isinstance(message_data, dict):
            log_data.update(message_data)
        else:
            log_data["message"] = record.getMessage()

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_data)


class TextFormatter(logging.Formatter):
    """Human-readable text formatter."""

    LEVEL_COLORS = {
        "DEBUG": "\033[36m",  # Cyan
        "INFO": "\033[32m",  # Green
        "WARNING": "\033[33m",  # Yellow
        "ERROR": "\033[31m",  # Red
        "CRITICAL": "\033[35m",  # Magenta
    }
    RESET = "\033[0m"

    def format(self, record: logging.LogRecord) -> str:
        timestamp = datetime.now(timezone.utc).strftime("%H:%M:%S.%f")[:-3]
        color = self.LEVEL_COLORS.get(record.levelname, "")
        reset = self.RESET if color else ""

        return f"{timestamp} {color}{record.levelname:8}{reset} {record.getMessage()}"


# =============================================================================
# Utilities
# =============================================================================


def generate_trace_id() -> str:
    """Generate a unique trace ID."""
    return f"trace_{uuid.uuid4().hex[:16]}"


def generate_request_id() -> str:
    """Generate a unique request ID."""
    return f"req_{uuid.uuid4().hex[:12]}"


def redact_api_key(key: str | None) -> str:
    """Redact an API key for safe logging."""
    if not key:
        return "<not set>"
    if len(key) <= 8:
        return "***"
    return f"{key[:4]}...{key[-4:]}"


def truncate_for_log(text: str, max_length: int = 200) -> str:
    """Truncate text for logging."""
    if len(text) <= max_length:
        return text
    return text[:max_length] + f"... ({len(text)} chars total)"


# =============================================================================
# Timing Utilities
# =============================================================================


@dataclass
class Timer:
    """Simple timer for measuring durations."""

    start_time: float = field(default_factory=time.perf_counter)
    end_time: float | None = None

    def stop(self) -> float:
        """Stop the timer and return duration in milliseconds."""
        self.end_time = time.perf_counter()
        return self.elapsed_ms

    @property
    def elapsed_ms(self) -> float:
        end = self.end_time or time.perf_counter()
        return (end - self.start_time) * 1000


@contextmanager
def timed() -> Iterator[Timer]:
    """Context manager for timing operations."""
    timer = Timer()
    try:
        yield timer
    finally:
        timer.stop()


# =============================================================================
# Global Logger
# =============================================================================

_default_logger: StructuredLogger | None = None


def get_logger(name: str = "record_gateway") -> StructuredLogger:
    """Get or create a structured logger."""
    global _default_logger
    if _default_logger is None or _default_logger.name != name:
        _default_logger = StructuredLogger(name)
    return _default_logger


def configure_logging(
    level: str = "INFO",
    json_output: bool = False,
    **kwargs: Any,
) -> StructuredLogger:
    """Configure the default logger."""
    global _default_logger
    _default_logger = StructuredLogger(
        level=level,
        json_output=json_output,
        **kwargs,
    )
    return _default_logger


__all__ = [
    "LogContext",
    "RequestLog",
    "ResponseLog",
    "StructuredLogger",
    "JSONFormatter",
    "TextFormatter",
    "Timer",
    "timed",
    "generate_trace_id",
    "generate_request_id",
    "redact_api_key",
    "truncate_for_log",
    "get_logger",
    "configure_logging",
]
