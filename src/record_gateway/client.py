"""
Gateway client: the single public surface for bulk record operations.

Every operation builds its request (failing fast with ``InvalidArgumentError``),
issues exactly one backend call, and hands the backend's answer back in
order. Per-record failures come back as ``MutationOutcome(success=False)``;
only a failure to execute the call at all is raised.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable, Iterable, Mapping
from typing import Any, TypeVar

from pydantic import ValidationError as PydanticValidationError

from .backends import Backend, InMemoryBackend, create_backend
from .config import Settings, get_settings
from .errors import (
    BackendRejectedError,
    BackendTimeoutError,
    BackendUnavailableError,
    ErrorContext,
    GatewayError,
    InvalidBackendResponseError,
)
from .hooks import Hook, HookManager
from .logging import (
    RequestLog,
    ResponseLog,
    StructuredLogger,
    configure_logging,
    get_logger,
    redact_api_key,
    timed,
)
from .requests import (
    BatchRequest,
    DeleteBatch,
    InsertBatch,
    MutationRequest,
    QuerySpec,
    UpdateBatch,
    UpsertBatch,
)
from .types import MutationOutcome, Row

T = TypeVar("T")

Options = Mapping[str, Any] | BatchRequest | None
EntryPoint = Callable[[dict[str, Any]], Awaitable[Any]]


class GatewayClient:
    """
    Bulk create/update/upsert/delete/query against a record backend.

    Example:
        ```python
        inputs = [{"apiName": "Account", "fields": {"Name": "Acme"}}]
        async with GatewayClient(InMemoryBackend()) as client:
            outcomes = await client.insert_records(record_inputs=inputs, all_or_none=False)
            for record, outcome in zip(inputs, outcomes):
                if not outcome.success:
                    print(record, outcome.reason)
        ```

    Options may be passed as a mapping using the wire names (``recordIds``,
    ``allOrNone``, ...), as keyword arguments in either spelling, or as a
    prebuilt request model.
    """

    def __init__(
        self,
        backend: Backend | None = None,
        *,
        logger: StructuredLogger | None = None,
        hooks: HookManager | Iterable[Hook] | None = None,
        log_requests: bool = True,
        log_responses: bool = True,
    ) -> None:
        self.backend: Backend = backend if backend is not None else InMemoryBackend()
        self.logger = logger or get_logger()
        self.hooks = hooks if isinstance(hooks, HookManager) else HookManager(hooks)
        self.log_requests = log_requests
        self.log_responses = log_responses

    @classmethod
    def from_settings(cls, settings: Settings | None = None, **kwargs: Any) -> GatewayClient:
        """
        Build a client, backend and logger from settings (global settings by default).

        Keyword arguments (``logger``, ``hooks``, ``log_requests``,
        ``log_responses``) take precedence over the values derived from settings.
        """
        settings = settings or get_settings()
        backend = create_backend(settings.backend)
        logger = kwargs.pop("logger", None) or configure_logging(
            level=settings.logging.level,
            json_output=settings.logging.format == "json",
        )
        kwargs.setdefault("log_requests", settings.logging.log_requests)
        kwargs.setdefault("log_responses", settings.logging.log_responses)
        logger.debug(
            "Gateway client configured",
            backend=settings.backend.kind,
            base_url=settings.backend.base_url,
            api_key=redact_api_key(settings.backend.api_key),
        )
        return cls(backend, logger=logger, **kwargs)

    @property
    def backend_name(self) -> str:
        return getattr(self.backend, "name", type(self.backend).__name__)

    async def close(self) -> None:
        await self.backend.close()

    async def __aenter__(self) -> GatewayClient:
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.close()

    # -------------------------------------------------------------------------
    # Public operations
    # -------------------------------------------------------------------------

    async def delete_records(self, options: Options = None, **kwargs: Any) -> list[MutationOutcome]:
        """
        Bulk delete records by reference.

        Recognized options: ``record_ids``/``recordIds`` (required),
        ``all_or_none``/``allOrNone`` (default True).
        """
        request = DeleteBatch.from_options(options, **kwargs)
        return await self._mutate(request, self.backend.delete_records)

    async def update_records(self, options: Options = None, **kwargs: Any) -> list[MutationOutcome]:
        """
        Bulk update records. Each record is expected to carry its ``Id``.

        Recognized options: ``records`` (required), ``all_or_none`` (default True).
        """
        request = UpdateBatch.from_options(options, **kwargs)
        return await self._mutate(request, self.backend.update_records)

    async def insert_records(self, options: Options = None, **kwargs: Any) -> list[MutationOutcome]:
        """
        Bulk insert records from descriptors.

        Recognized options: ``record_inputs``/``recordInputs`` (required),
        ``all_or_none`` (default True).
        """
        request = InsertBatch.from_options(options, **kwargs)
        return await self._mutate(request, self.backend.insert_records)

    async def upsert_records(self, options: Options = None, **kwargs: Any) -> list[MutationOutcome]:
        """
        Bulk upsert records of one object type.

        Recognized options: ``records`` (required), ``api_name``/``apiName``
        (required), ``external_id``/``externalId`` (default ``"Id"``),
        ``all_or_none`` (default True).
        """
        request = UpsertBatch.from_options(options, **kwargs)
        return await self._mutate(request, self.backend.upsert_records)

    async def get_records(self, options: Options = None, **kwargs: Any) -> list[Row]:
        """
        Query records of one object type.

        Recognized options: ``api_name``/``apiName`` (required), ``fields``,
        ``query_select``/``querySelect``, ``where_clause``/``whereClause``,
        ``order_by``/``orderBy``, ``query_limit``/``queryLimit``.
        """
        request = QuerySpec.from_options(options, **kwargs)
        return await self._execute(request, self.backend.get_records, self._parse_rows)

    # -------------------------------------------------------------------------
    # Call plumbing
    # -------------------------------------------------------------------------

    async def _mutate(self, request: MutationRequest, entry_point: EntryPoint) -> list[MutationOutcome]:
        def parse(raw: Any, ctx: ErrorContext) -> list[MutationOutcome]:
            return self._parse_outcomes(raw, request.record_count, ctx)

        return await self._execute(request, entry_point, parse)

    async def _execute(
        self,
        request: BatchRequest,
        entry_point: EntryPoint,
        parse: Callable[[Any, ErrorContext], T],
    ) -> T:
        operation = request.operation
        backend = self.backend_name
        record_count = request.record_count

        with self.logger.request_context(backend=backend, operation=operation) as request_id:
            ctx = ErrorContext(
                request_id=request_id,
                operation=operation,
                backend=backend,
                record_count=record_count,
            )
            if self.log_requests:
                self.logger.log_request(
                    RequestLog(
                        request_id=request_id,
                        backend=backend,
                        operation=operation,
                        record_count=record_count,
                        all_or_none=getattr(request, "all_or_none", None),
                        api_name=getattr(request, "api_name", None),
                    )
                )
            await self.hooks.emit(
                "request.start",
                {"operation": operation, "record_count": record_count},
                ctx,
            )

            with timed() as timer:
                try:
                    raw = await entry_point(request.to_params())
                    result = parse(raw, ctx)
                except Exception as exc:
                    error = _as_gateway_error(exc, ctx)
                    timer.stop()
                    await self._report_failure(error, ctx, timer.elapsed_ms)
                    if error is exc:
                        raise
                    raise error from exc

            summary = _summarize(result, is_query=isinstance(request, QuerySpec))
            if self.log_responses:
                self.logger.log_response(
                    ResponseLog(
                        request_id=request_id,
                        backend=backend,
                        operation=operation,
                        duration_ms=timer.elapsed_ms,
                        **summary,
                    )
                )
            await self.hooks.emit("request.end", {"latency_ms": timer.elapsed_ms, **summary}, ctx)
            return result

    async def _report_failure(self, error: GatewayError, ctx: ErrorContext, elapsed_ms: float) -> None:
        self.logger.log_error(error, f"{ctx.operation} failed on {ctx.backend}")
        if self.log_responses:
            self.logger.log_response(
                ResponseLog(
                    request_id=ctx.request_id or "",
                    backend=ctx.backend or "",
                    operation=ctx.operation or "",
                    success=False,
                    error=str(error),
                    duration_ms=elapsed_ms,
                )
            )
        await self.hooks.emit(
            "request.error",
            {"error_type": type(error).__name__, "error_code": error.code.value},
            ctx,
        )

    @staticmethod
    def _parse_outcomes(raw: Any, expected: int, ctx: ErrorContext) -> list[MutationOutcome]:
        if not isinstance(raw, list):
            raise InvalidBackendResponseError(
                f"{ctx.operation} returned {type(raw).__name__}, expected a list of outcomes",
                context=ctx,
            )
        if len(raw) != expected:
            raise InvalidBackendResponseError(
                f"{ctx.operation} returned {len(raw)} outcomes for {expected} records",
                context=ctx,
            )
        try:
            return [MutationOutcome.model_validate(item) for item in raw]
        except PydanticValidationError as exc:
            raise InvalidBackendResponseError(
                f"{ctx.operation} returned a malformed outcome: {exc.errors()[0].get('msg')}",
                context=ctx,
                cause=exc,
            ) from exc

    @staticmethod
    def _parse_rows(raw: Any, ctx: ErrorContext) -> list[Row]:
        if not isinstance(raw, list) or not all(isinstance(row, Mapping) for row in raw):
            raise InvalidBackendResponseError(
                f"{ctx.operation} returned {type(raw).__name__}, expected a list of rows",
                context=ctx,
            )
        return [dict(row) for row in raw]


def _as_gateway_error(exc: Exception, ctx: ErrorContext) -> GatewayError:
    """Classify an exception raised by a backend call."""
    if isinstance(exc, GatewayError):
        if exc.context.request_id is None:
            exc.context.request_id = ctx.request_id
            exc.context.operation = exc.context.operation or ctx.operation
            exc.context.backend = exc.context.backend or ctx.backend
            exc.context.record_count = ctx.record_count
        return exc
    message = f"{ctx.operation} failed: {exc}"
    if isinstance(exc, (asyncio.TimeoutError, TimeoutError)):
        return BackendTimeoutError(message, context=ctx, cause=exc)
    if isinstance(exc, OSError):
        return BackendUnavailableError(message, context=ctx, cause=exc)
    return BackendRejectedError(message, context=ctx, cause=exc)


def _summarize(result: list[Any], *, is_query: bool) -> dict[str, int]:
    if is_query:
        return {"row_count": len(result)}
    succeeded = sum(1 for outcome in result if outcome.success)
    return {"succeeded": succeeded, "failed": len(result) - succeeded}


__all__ = ["GatewayClient"]
