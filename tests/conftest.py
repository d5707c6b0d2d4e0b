"""
Shared test fixtures for record-gateway tests.

This module provides:
- An in-memory backend seeded with a few accounts
- A recording stub backend with scripted responses or failures
- A quiet gateway client bound to either backend
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

import pytest

from record_gateway.backends import BaseBackend, InMemoryBackend, Operation
from record_gateway.client import GatewayClient
from record_gateway.hooks import InMemoryMetricsHook
from record_gateway.logging import StructuredLogger

# =============================================================================
# Stub Backend
# =============================================================================


@dataclass
class StubBackend(BaseBackend):
    """Backend that records calls and replays scripted responses."""

    responses: dict[Operation, Any] = field(default_factory=dict)
    error: BaseException | None = None
    calls: list[tuple[Operation, dict[str, Any]]] = field(default_factory=list)
    closed: bool = False
    name: str = "stub"

    async def invoke(self, operation: Operation, params: dict[str, Any]) -> list[dict[str, Any]]:
        self.calls.append((operation, params))
        if self.error is not None:
            raise self.error
        response = self.responses.get(operation)
        if callable(response):
            return response(params)
        if response is None:
            return [{"success": True, "value": [], "reason": None} for _ in _subjects(operation, params)]
        return response

    async def close(self) -> None:
        self.closed = True


def _subjects(operation: Operation, params: dict[str, Any]) -> list[Any]:
    key = {
        Operation.DELETE: "recordIds",
        Operation.UPDATE: "records",
        Operation.INSERT: "recordInputs",
        Operation.UPSERT: "records",
    }.get(operation)
    return list(params.get(key, [])) if key else []


# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture
def quiet_logger():
    return StructuredLogger("record_gateway.tests", level="CRITICAL")


@pytest.fixture
def memory_backend():
    return InMemoryBackend(
        required_fields={"Account": ["Name"], "Contact": ["LastName"]},
        records={
            "Account": [
                {"Id": "001000000000000001", "Name": "Acme", "Industry": "Tech", "Employees": 120},
                {"Id": "001000000000000002", "Name": "Globex", "Industry": "Energy", "Employees": 40},
                {"Id": "001000000000000003", "Name": "Initech", "Industry": "Tech", "Employees": None},
            ],
            "Contact": [],
        },
    )


@pytest.fixture
def stub_backend():
    return StubBackend()


@pytest.fixture
def metrics_hook():
    return InMemoryMetricsHook()


@pytest.fixture
def client(memory_backend, quiet_logger, metrics_hook):
    return GatewayClient(memory_backend, logger=quiet_logger, hooks=[metrics_hook])


@pytest.fixture
def stub_client(stub_backend, quiet_logger, metrics_hook):
    return GatewayClient(stub_backend, logger=quiet_logger, hooks=[metrics_hook])
