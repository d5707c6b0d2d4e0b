"""
Batch request builder.

Each request model is an immutable options object with documented defaults.
Models accept both the caller-facing option names (``recordIds``,
``allOrNone``, ...) and their snake_case equivalents, reject unknown options,
and render the exact parameter shape the backend expects via ``to_params()``.

Nothing here talks to a backend: building a request is a pure transformation
and every failure surfaces as ``InvalidArgumentError`` before any call is made.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from typing import Annotated, Any, ClassVar, TypeVar

from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    StrictBool,
    StrictInt,
    StrictStr,
)
from pydantic import ValidationError as PydanticValidationError

from .errors import InvalidArgumentError
from .types import ID_FIELD, NonEmptyStr, Record, RecordDescriptor, RecordReference

R = TypeVar("R", bound="BatchRequest")


def _option(name: str, wire_name: str, **kwargs: Any) -> Any:
    return Field(
        validation_alias=AliasChoices(name, wire_name),
        serialization_alias=wire_name,
        **kwargs,
    )


def _format_errors(exc: PydanticValidationError) -> str:
    parts = []
    for error in exc.errors():
        loc = ".".join(str(p) for p in error.get("loc", ())) or "<request>"
        parts.append(f"{loc}: {error.get('msg', 'invalid value')}")
    return "; ".join(parts)


class BatchRequest(BaseModel):
    """Base class for request models."""

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="forbid")

    operation: ClassVar[str] = ""

    @classmethod
    def _argument_name(cls, loc_head: Any) -> str:
        for name, info in cls.model_fields.items():
            alias = info.validation_alias
            choices = alias.choices if isinstance(alias, AliasChoices) else [alias]
            if loc_head == name or loc_head in choices:
                return name
        return str(loc_head)

    @classmethod
    def from_options(cls: type[R], options: Mapping[str, Any] | R | None = None, **overrides: Any) -> R:
        """
        Build a request from an options mapping and/or keyword overrides.

        Raises:
            InvalidArgumentError: if a required option is missing, an option has
                the wrong type, or an unrecognized option is supplied.
        """
        if isinstance(options, cls) and not overrides:
            return options
        if isinstance(options, cls):
            source: Mapping[str, Any] = options.model_dump()
        elif options is None:
            source = {}
        elif isinstance(options, Mapping):
            source = options
        else:
            raise InvalidArgumentError(
                f"{cls.__name__} options must be a mapping, got {type(options).__name__}",
                argument="options",
            )

        # later spellings of the same option win over earlier ones
        data: dict[str, Any] = {}
        for key, value in [*source.items(), *overrides.items()]:
            data[cls._argument_name(key)] = value

        try:
            return cls.model_validate(data)
        except PydanticValidationError as exc:
            errors = exc.errors()
            loc = errors[0].get("loc", ()) if errors else ()
            argument = cls._argument_name(loc[0]) if loc else None
            raise InvalidArgumentError(
                f"Invalid {cls.__name__}: {_format_errors(exc)}",
                argument=argument,
                cause=exc,
            ) from exc

    def to_params(self) -> dict[str, Any]:
        """Render the backend parameter shape for this request."""
        return self.model_dump(by_alias=True)

    @property
    def record_count(self) -> int:
        return 0


class MutationRequest(BatchRequest):
    all_or_none: StrictBool = _option("all_or_none", "allOrNone", default=True)


class DeleteBatch(MutationRequest):
    """Delete records by reference. The ids may span object types."""

    operation: ClassVar[str] = "deleteRecords"

    record_ids: list[NonEmptyStr] = _option("record_ids", "recordIds")

    @property
    def record_count(self) -> int:
        return len(self.record_ids)


class UpdateBatch(MutationRequest):
    """
    Update existing records.

    Each record is expected to carry an ``Id``; that check is left to the
    backend, which owns per-object identity rules.
    """

    operation: ClassVar[str] = "updateRecords"

    records: list[dict[StrictStr, Any]]

    @property
    def record_count(self) -> int:
        return len(self.records)


class InsertBatch(MutationRequest):
    """Create records from descriptors. The descriptors may span object types."""

    operation: ClassVar[str] = "insertRecords"

    record_inputs: list[RecordDescriptor] = _option("record_inputs", "recordInputs")

    @property
    def record_count(self) -> int:
        return len(self.record_inputs)


class UpsertBatch(MutationRequest):
    """
    Insert or update records of one object type.

    Identity is resolved through ``external_id``. The default, ``"Id"``, means
    upsert by record reference; any other field name opts into matching on
    that field instead.
    """

    operation: ClassVar[str] = "upsertRecords"

    records: list[dict[StrictStr, Any]]
    api_name: NonEmptyStr = _option("api_name", "apiName")
    external_id: NonEmptyStr = _option("external_id", "externalId", default=ID_FIELD)

    @property
    def record_count(self) -> int:
        return len(self.records)


class QuerySpec(BatchRequest):
    """
    A read query assembled from structured fragments or a raw select clause.

    When ``query_select`` is non-empty it is the projection, verbatim, and any
    ``fields`` are ignored. Otherwise the projection is ``fields`` joined with
    ``", "``. When both are empty the projection is left to the backend.
    """

    operation: ClassVar[str] = "getRecords"

    api_name: NonEmptyStr = _option("api_name", "apiName")
    fields: list[NonEmptyStr] = Field(default_factory=list)
    query_select: StrictStr = _option("query_select", "querySelect", default="")
    where_clause: StrictStr = _option("where_clause", "whereClause", default="")
    order_by: StrictStr = _option("order_by", "orderBy", default="")
    query_limit: Annotated[StrictInt, Field(ge=0)] | None = _option("query_limit", "queryLimit", default=None)

    @property
    def projection(self) -> str:
        if self.query_select:
            return self.query_select
        return ", ".join(self.fields)

    @property
    def projected_fields(self) -> list[str]:
        """The projection split into individual field names."""
        return [part.strip() for part in self.projection.split(",") if part.strip()]

    def to_params(self) -> dict[str, Any]:
        params = super().to_params()
        # the raw clause wins; do not hand the backend a competing field list
        if self.query_select:
            params["fields"] = []
        return params


# =============================================================================
# Builder functions
# =============================================================================


def build_delete(
    record_ids: Iterable[RecordReference] | None,
    all_or_none: bool = True,
) -> DeleteBatch:
    """
    Build a delete batch.

    An empty sequence is a legal no-op batch; ``None`` is rejected.
    """
    if record_ids is None:
        raise InvalidArgumentError("record_ids is required", argument="record_ids")
    return DeleteBatch.from_options(record_ids=_as_list(record_ids), all_or_none=all_or_none)


def build_update(records: Iterable[Record] | None, all_or_none: bool = True) -> UpdateBatch:
    if records is None:
        raise InvalidArgumentError("records is required", argument="records")
    return UpdateBatch.from_options(records=_as_list(records), all_or_none=all_or_none)


def build_insert(
    record_inputs: Iterable[RecordDescriptor | Mapping[str, Any]] | None,
    all_or_none: bool = True,
) -> InsertBatch:
    if record_inputs is None:
        raise InvalidArgumentError("record_inputs is required", argument="record_inputs")
    return InsertBatch.from_options(record_inputs=_as_list(record_inputs), all_or_none=all_or_none)


def build_upsert(
    records: Iterable[Record] | None,
    api_name: str,
    external_id: str = ID_FIELD,
    all_or_none: bool = True,
) -> UpsertBatch:
    if records is None:
        raise InvalidArgumentError("records is required", argument="records")
    return UpsertBatch.from_options(
        records=_as_list(records),
        api_name=api_name,
        external_id=external_id,
        all_or_none=all_or_none,
    )


def build_query(
    api_name: str,
    fields: Iterable[str] = (),
    query_select: str = "",
    where_clause: str = "",
    order_by: str = "",
    query_limit: int | None = None,
) -> QuerySpec:
    return QuerySpec.from_options(
        api_name=api_name,
        fields=_as_list(fields),
        query_select=query_select,
        where_clause=where_clause,
        order_by=order_by,
        query_limit=query_limit,
    )


def _as_list(values: Any) -> Any:
    # leave strings and mappings alone so validation reports them as wrong types
    if isinstance(values, (str, bytes, Mapping)):
        return values
    if isinstance(values, Iterable):
        return list(values)
    return values


__all__ = [
    "BatchRequest",
    "MutationRequest",
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
]
