"""Thin sync wrappers for the async-first client.

Use with caution - these are primarily for scripting and testing contexts
where async is not available.

Key design:
- Uses asyncio.run() when no event loop is active
- Raises RuntimeError if called inside an existing event loop
- Clear error messages guide users to the async alternative
"""

from __future__ import annotations

import asyncio
from collections.abc import Coroutine
from typing import TYPE_CHECKING, Any, TypeVar

if TYPE_CHECKING:
    from .client import GatewayClient, Options
    from .types import MutationOutcome, Row

T = TypeVar("T")


def _run(coro: Coroutine[Any, Any, T], name: str) -> T:
    try:
        loop = asyncio.get_running_loop()
    except RuntimeError:
        loop = None

    if loop is not None:
        coro.close()
        raise RuntimeError(
            f"{name}_sync() cannot be called inside an async context. "
            f"Use 'await client.{name}()' instead."
        )

    return asyncio.run(coro)


def delete_records_sync(client: GatewayClient, options: Options = None, **kwargs: Any) -> list[MutationOutcome]:
    """Sync wrapper for GatewayClient.delete_records."""
    return _run(client.delete_records(options, **kwargs), "delete_records")


def update_records_sync(client: GatewayClient, options: Options = None, **kwargs: Any) -> list[MutationOutcome]:
    """Sync wrapper for GatewayClient.update_records."""
    return _run(client.update_records(options, **kwargs), "update_records")


def insert_records_sync(client: GatewayClient, options: Options = None, **kwargs: Any) -> list[MutationOutcome]:
    """Sync wrapper for GatewayClient.insert_records."""
    return _run(client.insert_records(options, **kwargs), "insert_records")


def upsert_records_sync(client: GatewayClient, options: Options = None, **kwargs: Any) -> list[MutationOutcome]:
    """Sync wrapper for GatewayClient.upsert_records."""
    return _run(client.upsert_records(options, **kwargs), "upsert_records")


def get_records_sync(client: GatewayClient, options: Options = None, **kwargs: Any) -> list[Row]:
    """Sync wrapper for GatewayClient.get_records."""
    return _run(client.get_records(options, **kwargs), "get_records")


__all__ = [
    "delete_records_sync",
    "update_records_sync",
    "insert_records_sync",
    "upsert_records_sync",
    "get_records_sync",
]
