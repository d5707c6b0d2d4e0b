"""
Top-level package for the record gateway.

Bulk create/update/upsert/delete/query against a structured-object backend,
with per-record outcomes returned in request order.
"""

from .backends import Backend, BaseBackend, HttpBackend, InMemoryBackend, Operation, create_backend
from .client import GatewayClient
from .config import BackendConfig, LoggingConfig, Settings, configure, get_settings, load_env
from .errors import (
    AuthorizationError,
    BackendError,
    BackendRejectedError,
    BackendTimeoutError,
    BackendUnavailableError,
    ConfigError,
    GatewayError,
    InvalidArgumentError,
    InvalidBackendResponseError,
    InvalidConfigError,
    MalformedQueryError,
)
from .hooks import HookManager, InMemoryMetricsHook
from .requests import (
    DeleteBatch,
    InsertBatch,
    QuerySpec,
    UpdateBatch,
    UpsertBatch,
    build_delete,
    build_insert,
    build_query,
    build_update,
    build_upsert,
)
from .types import BatchSummary, MutationOutcome, RecordDescriptor

__all__ = [
    # Client
    "GatewayClient",
    # Requests
    "DeleteBatch",
    "UpdateBatch",
    "InsertBatch",
    "UpsertBatch",
    "QuerySpec",
    "build_delete",
    "build_update",
    "build_insert",
    "build_upsert",
    "build_query",
    # Types
    "RecordDescriptor",
    "MutationOutcome",
    "BatchSummary",
    # Backends
    "Operation",
    "Backend",
    "BaseBackend",
    "InMemoryBackend",
    "HttpBackend",
    "create_backend",
    # Config
    "Settings",
    "BackendConfig",
    "LoggingConfig",
    "get_settings",
    "configure",
    "load_env",
    # Hooks
    "HookManager",
    "InMemoryMetricsHook",
    # Errors
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
]
