"""
Backend protocol and base classes.

The backend is the invocation layer that actually executes mutations and
queries against the object store. The gateway treats it as an opaque
capability: one coroutine per operation, each taking the parameter mapping
rendered by the request builder and returning a list of plain dicts.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from enum import Enum
from typing import Any, Protocol, runtime_checkable


class Operation(str, Enum):
    """Backend entry points, named as the backend exposes them."""

    DELETE = "deleteRecords"
    UPDATE = "updateRecords"
    INSERT = "insertRecords"
    UPSERT = "upsertRecords"
    GET = "getRecords"


@runtime_checkable
class Backend(Protocol):
    """
    Protocol defining the backend invocation layer.

    Mutation entry points return one outcome dict ``{success, value, reason}``
    per input record, in input order. ``get_records`` returns result rows.
    A backend raises only when the call as a whole could not be executed.
    """

    @property
    def name(self) -> str:
        """Short backend name used in logs and error context."""
        ...

    async def delete_records(self, params: dict[str, Any]) -> list[dict[str, Any]]:
        """Execute ``{recordIds, allOrNone}``."""
        ...

    async def update_records(self, params: dict[str, Any]) -> list[dict[str, Any]]:
        """Execute ``{records, allOrNone}``."""
        ...

    async def insert_records(self, params: dict[str, Any]) -> list[dict[str, Any]]:
        """Execute ``{recordInputs, allOrNone}``."""
        ...

    async def upsert_records(self, params: dict[str, Any]) -> list[dict[str, Any]]:
        """Execute ``{records, apiName, externalId, allOrNone}``."""
        ...

    async def get_records(self, params: dict[str, Any]) -> list[dict[str, Any]]:
        """Execute ``{fields, querySelect, apiName, whereClause, orderBy, queryLimit}``."""
        ...

    async def close(self) -> None:
        """Clean up backend resources."""
        ...


class BaseBackend(Backend, ABC):
    """
    Abstract base class for backend implementations.

    Routes the five entry points through a single ``invoke`` so that
    subclasses only implement dispatch once.
    """

    name: str = "backend"

    @abstractmethod
    async def invoke(self, operation: Operation, params: dict[str, Any]) -> list[dict[str, Any]]:
        """Execute one operation and return the raw result list."""
        ...

    async def delete_records(self, params: dict[str, Any]) -> list[dict[str, Any]]:
        return await self.invoke(Operation.DELETE, params)

    async def update_records(self, params: dict[str, Any]) -> list[dict[str, Any]]:
        return await self.invoke(Operation.UPDATE, params)

    async def insert_records(self, params: dict[str, Any]) -> list[dict[str, Any]]:
        return await self.invoke(Operation.INSERT, params)

    async def upsert_records(self, params: dict[str, Any]) -> list[dict[str, Any]]:
        return await self.invoke(Operation.UPSERT, params)

    async def get_records(self, params: dict[str, Any]) -> list[dict[str, Any]]:
        return await self.invoke(Operation.GET, params)

    async def close(self) -> None:
        return None

    async def __aenter__(self) -> BaseBackend:
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.close()


__all__ = ["Operation", "Backend", "BaseBackend"]
