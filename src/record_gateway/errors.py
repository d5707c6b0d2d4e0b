"""
Error taxonomy for record-gateway.

This module provides a hierarchical exception system with:
- Error codes for programmatic handling
- Retryable vs non-retryable classification
- Structured context for debugging
- HTTP status mapping for remote backends

Per-record failures inside an executed batch are never raised; they are
reported through ``MutationOutcome.success``. Only failures to validate a
request or to execute it at all surface as exceptions.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class ErrorCode(str, Enum):
    """Standardized error codes for the gateway."""

    # Request errors (1xxx)
    INVALID_ARGUMENT = "ERR_1000"

    # Backend errors (2xxx)
    BACKEND_ERROR = "ERR_2000"
    BACKEND_UNAVAILABLE = "ERR_2001"
    BACKEND_TIMEOUT = "ERR_2002"
    BACKEND_REJECTED = "ERR_2100"
    AUTHORIZATION = "ERR_2101"
    MALFORMED_QUERY = "ERR_2102"
    INVALID_RESPONSE = "ERR_2103"

    # Configuration errors (6xxx)
    CONFIG_ERROR = "ERR_6000"
    INVALID_CONFIG = "ERR_6001"

    # Internal errors (9xxx)
    INTERNAL_ERROR = "ERR_9000"


@dataclass
class ErrorContext:
    """Structured context for error debugging."""

    request_id: str | None = None
    operation: str | None = None
    backend: str | None = None
    record_count: int | None = None
    extra: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "request_id": self.request_id,
            "operation": self.operation,
            "backend": self.backend,
            "record_count": self.record_count,
            **self.extra,
        }


class GatewayError(Exception):
    """
    Base exception for all gateway errors.

    Attributes:
        code: Standardized error code for programmatic handling
        message: Human-readable error message
        retryable: Whether the caller may safely retry the call
        context: Structured debugging context
        cause: Original exception that caused this error
    """

    code: ErrorCode = ErrorCode.INTERNAL_ERROR
    retryable: bool = False

    def __init__(
        self,
        message: str,
        *,
        code: ErrorCode | None = None,
        retryable: bool | None = None,
        context: ErrorContext | None = None,
        cause: Exception | None = None,
    ):
        super().__init__(message)
        self.message = message
        if code is not None:
            self.code = code
        if retryable is not None:
            self.retryable = retryable
        self.context = context or ErrorContext()
        self.cause = cause

    def __str__(self) -> str:
        parts = [f"[{self.code.value}] {self.message}"]
        if self.context.request_id:
            parts.append(f"(request_id={self.context.request_id})")
        return " ".join(parts)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for logging/serialization."""
        return {
            "error_type": self.__class__.__name__,
            "code": self.code.value,
            "message": self.message,
            "retryable": self.retryable,
            "context": self.context.to_dict(),
            "cause": str(self.cause) if self.cause else None,
        }


# =============================================================================
# Request Errors
# =============================================================================


class InvalidArgumentError(GatewayError):
    """Malformed or missing request input. Raised before any backend call."""

    code = ErrorCode.INVALID_ARGUMENT
    retryable = False

    def __init__(
        self,
        message: str,
        *,
        argument: str | None = None,
        **kwargs,
    ):
        super().__init__(message, **kwargs)
        self.argument = argument


# =============================================================================
# Backend Errors
# =============================================================================


class BackendError(GatewayError):
    """Base class for failures to execute a call on the backend."""

    code = ErrorCode.BACKEND_ERROR
    retryable = False
    http_status: int | None = None

    def __init__(
        self,
        message: str,
        *,
        http_status: int | None = None,
        **kwargs,
    ):
        super().__init__(message, **kwargs)
        self.http_status = http_status


class BackendUnavailableError(BackendError):
    """The backend could not be reached. The batch was not executed."""

    code = ErrorCode.BACKEND_UNAVAILABLE
    retryable = True

    def __init__(
        self,
        message: str = "Backend unavailable",
        **kwargs,
    ):
        kwargs.setdefault("http_status", 503)
        super().__init__(message, **kwargs)


class BackendTimeoutError(BackendUnavailableError):
    """The backend call timed out."""

    code = ErrorCode.BACKEND_TIMEOUT

    def __init__(
        self,
        message: str = "Backend call timed out",
        *,
        timeout: float | None = None,
        **kwargs,
    ):
        kwargs.setdefault("http_status", 504)
        super().__init__(message, **kwargs)
        self.timeout = timeout


class BackendRejectedError(BackendError):
    """The backend refused to execute the call."""

    code = ErrorCode.BACKEND_REJECTED
    retryable = False


class AuthorizationError(BackendRejectedError):
    """Caller is not permitted to perform the operation."""

    code = ErrorCode.AUTHORIZATION

    def __init__(
        self,
        message: str = "Not authorized to perform this operation",
        **kwargs,
    ):
        kwargs.setdefault("http_status", 403)
        super().__init__(message, **kwargs)


class MalformedQueryError(BackendRejectedError):
    """The query could not be parsed or refers to unknown objects."""

    code = ErrorCode.MALFORMED_QUERY

    def __init__(
        self,
        message: str = "Malformed query",
        **kwargs,
    ):
        kwargs.setdefault("http_status", 400)
        super().__init__(message, **kwargs)


class InvalidBackendResponseError(BackendRejectedError):
    """Backend returned a response that does not fit the call contract."""

    code = ErrorCode.INVALID_RESPONSE

    def __init__(
        self,
        message: str = "Invalid response from backend",
        **kwargs,
    ):
        super().__init__(message, **kwargs)


# =============================================================================
# Configuration Errors
# =============================================================================


class ConfigError(GatewayError):
    """Base class for configuration errors."""

    code = ErrorCode.CONFIG_ERROR
    retryable = False


class InvalidConfigError(ConfigError, ValueError):
    """Configuration is invalid."""

    code = ErrorCode.INVALID_CONFIG


# =============================================================================
# Error Mapping from HTTP Status Codes
# =============================================================================


def error_from_status(
    status: int,
    message: str,
    *,
    context: ErrorContext | None = None,
) -> BackendError:
    """
    Create an appropriate BackendError from an HTTP status code.

    Args:
        status: HTTP status code
        message: Error message from the backend
        context: Additional error context

    Returns:
        Appropriate BackendError subclass
    """
    error_map: dict[int, type[BackendError]] = {
        400: MalformedQueryError,
        401: AuthorizationError,
        403: AuthorizationError,
        408: BackendTimeoutError,
        502: BackendUnavailableError,
        503: BackendUnavailableError,
        504: BackendTimeoutError,
    }

    error_class = error_map.get(status)
    if error_class is None:
        error_class = BackendUnavailableError if status >= 500 else BackendRejectedError
    return error_class(message, http_status=status, context=context)


def is_retryable(error: Exception) -> bool:
    """
    Check if an error is safe to retry.

    The gateway never retries on its own; this is advice for callers.
    """
    if isinstance(error, GatewayError):
        return error.retryable

    retryable_types = (
        asyncio.TimeoutError,
        ConnectionError,
        TimeoutError,
    )
    return isinstance(error, retryable_types)


__all__ = [
    "ErrorCode",
    "ErrorContext",
    "GatewayError",
    "InvalidArgumentError",
    "BackendError",
    "BackendUnavailableError",
    "BackendTimeoutError",
    "BackendRejectedError",
    "AuthorizationError",
    "MalformedQueryError",
    "InvalidBackendResponseError",
    "ConfigError",
    "InvalidConfigError",
    "error_from_status",
    "is_retryable",
]
