"""
HTTP backend.

Posts each call as a JSON body to ``{base_url}/{operation}`` and expects a
JSON array back. Transport failures and error statuses are mapped onto the
gateway error taxonomy; the response body is returned as-is.
"""

from __future__ import annotations

import asyncio
import json
import logging
import os
from typing import Any

import aiohttp
from pydantic_core import to_jsonable_python

from ..errors import (
    BackendTimeoutError,
    BackendUnavailableError,
    ErrorContext,
    InvalidBackendResponseError,
    error_from_status,
)
from ..logging import truncate_for_log
from .base import BaseBackend, Operation

logger = logging.getLogger(__name__)


class HttpBackend(BaseBackend):
    name = "http"

    def __init__(
        self,
        *,
        base_url: str | None = None,
        api_key: str | None = None,
        timeout: float = 30.0,
        headers: dict[str, str] | None = None,
    ) -> None:
        self.base_url = (base_url or os.getenv("GATEWAY_BASE_URL") or "http://localhost:8080").rstrip("/")
        self.api_key = api_key or os.getenv("GATEWAY_API_KEY") or None
        self.timeout = timeout
        self.extra_headers = dict(headers or {})

    def _headers(self) -> dict[str, str]:
        h = {"Content-Type": "application/json", "Accept": "application/json"}
        if self.api_key:
            h["Authorization"] = f"Bearer {self.api_key}"
        h.update(self.extra_headers)
        return h

    def url_for(self, operation: Operation) -> str:
        return f"{self.base_url}/{operation.value}"

    async def invoke(self, operation: Operation, params: dict[str, Any]) -> list[dict[str, Any]]:
        url = self.url_for(operation)
        body = json.dumps(to_jsonable_python(params))
        ctx = ErrorContext(operation=operation.value, backend=self.name)

        try:
            async with aiohttp.ClientSession(timeout=aiohttp.ClientTimeout(total=self.timeout)) as s:
                async with s.post(url, headers=self._headers(), data=body) as r:
                    text = await r.text()
                    status = r.status
        except asyncio.TimeoutError as exc:
            raise BackendTimeoutError(
                f"{operation.value} timed out after {self.timeout}s",
                timeout=self.timeout,
                context=ctx,
                cause=exc,
            ) from exc
        except aiohttp.ClientError as exc:
            raise BackendUnavailableError(
                f"{operation.value} could not reach {self.base_url}: {exc}",
                context=ctx,
                cause=exc,
            ) from exc

        if status >= 400:
            logger.debug("%s returned HTTP %s: %s", url, status, truncate_for_log(text))
            raise error_from_status(status, _error_message(text, status), context=ctx)

        try:
            data = json.loads(text)
        except json.JSONDecodeError as exc:
            raise InvalidBackendResponseError(
                f"{operation.value} returned a non-JSON body",
                http_status=status,
                context=ctx,
                cause=exc,
            ) from exc
        if not isinstance(data, list):
            raise InvalidBackendResponseError(
                f"{operation.value} returned {type(data).__name__}, expected a list",
                http_status=status,
                context=ctx,
            )
        return data


def _error_message(text: str, status: int) -> str:
    """Pull a message out of a JSON error body, falling back to raw text."""
    try:
        data = json.loads(text)
    except json.JSONDecodeError:
        return text.strip() or f"HTTP {status}"
    if isinstance(data, dict):
        for key in ("message", "error", "detail"):
            if isinstance(data.get(key), str):
                return data[key]
    if isinstance(data, list) and data and isinstance(data[0], dict) and isinstance(data[0].get("message"), str):
        return data[0]["message"]
    return text.strip() or f"HTTP {status}"


__all__ = ["HttpBackend"]
