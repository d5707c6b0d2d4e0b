"""
Lightweight hooks for observability and integration.

The client emits three events per call:

- ``request.start`` with ``operation`` and ``record_count``
- ``request.end`` with ``latency_ms`` plus ``succeeded``/``failed`` for
  mutations or ``row_count`` for queries
- ``request.error`` with ``error_type`` and ``error_code``
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Iterable
from typing import Any, Protocol

logger = logging.getLogger(__name__)


class Hook(Protocol):
    """Protocol for observability hooks."""

    async def emit(self, event: str, payload: dict, context: Any) -> None:
        """Emit an event with payload and request context."""
        ...


class HookManager:
    """Manages multiple hooks and broadcasts events to all of them."""

    def __init__(self, hooks: Iterable[Hook] | None = None) -> None:
        self._hooks = list(hooks or [])

    def add(self, hook: Hook) -> None:
        self._hooks.append(hook)

    def __len__(self) -> int:
        return len(self._hooks)

    async def emit(self, event: str, payload: dict, context: Any) -> None:
        """
        Emit an event to all registered hooks.

        A hook that raises is logged and skipped; the remaining hooks still run
        and the exception never reaches the caller.
        """
        for hook in self._hooks:
            try:
                result = hook.emit(event, payload, context)
                if asyncio.iscoroutine(result):
                    await result
            except Exception:
                logger.warning("Hook %s failed on %s", type(hook).__name__, event, exc_info=True)


class InMemoryMetricsHook:
    """
    Simple metrics accumulator for tests and local inspection.

    Counts every event, keeps call latencies, and totals per-record outcomes
    across calls.
    """

    def __init__(self) -> None:
        self.counters: dict[str, int] = {}
        self.operations: dict[str, int] = {}
        self.latencies_ms: list[float] = []
        self.records_succeeded: int = 0
        self.records_failed: int = 0
        self.errors: list[dict[str, Any]] = []

    async def emit(self, event: str, payload: dict, context: Any) -> None:
        self.counters[event] = self.counters.get(event, 0) + 1

        if event == "request.start":
            operation = payload.get("operation", "unknown")
            self.operations[operation] = self.operations.get(operation, 0) + 1

        elif event == "request.end":
            if "latency_ms" in payload:
                self.latencies_ms.append(float(payload["latency_ms"]))
            self.records_succeeded += int(payload.get("succeeded", 0))
            self.records_failed += int(payload.get("failed", 0))

        elif event.endswith(".error"):
            self.errors.append({"event": event, "payload": payload})

    def snapshot(self) -> dict[str, Any]:
        """Return a snapshot of all collected metrics."""
        total = self.records_succeeded + self.records_failed
        return {
            "counters": dict(self.counters),
            "operations": dict(self.operations),
            "latencies_ms": list(self.latencies_ms),
            "records_succeeded": self.records_succeeded,
            "records_failed": self.records_failed,
            "record_failure_rate": self.records_failed / total if total > 0 else 0.0,
            "errors": list(self.errors),
        }


__all__ = ["Hook", "HookManager", "InMemoryMetricsHook"]
