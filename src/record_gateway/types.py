"""
Core value types shared by the request builder, client and backends.

These types describe records going in and per-record outcomes coming out.
They are immutable, caller-owned, and never retained by the gateway.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import Annotated, Any

from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    StrictBool,
    StrictStr,
    StringConstraints,
    field_validator,
)

RecordReference = str
"""Opaque backend identifier of a stored record."""

Record = dict[str, Any]
"""A field-value mapping. Mutable records carry an identifying field."""

Row = dict[str, Any]
"""A query result row shaped by the query projection."""

NonEmptyStr = Annotated[StrictStr, StringConstraints(min_length=1)]

ID_FIELD = "Id"


class RecordDescriptor(BaseModel):
    """
    A record to create: its object type and initial field values.

    Accepts ``object_type``, ``objectType`` or ``apiName`` on input and
    serializes as ``{"apiName": ..., "fields": {...}}``.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="forbid")

    object_type: NonEmptyStr = Field(
        validation_alias=AliasChoices("object_type", "objectType", "apiName"),
        serialization_alias="apiName",
    )
    fields: dict[str, Any] = Field(default_factory=dict)


class MutationOutcome(BaseModel):
    """
    Result of a mutation for a single input record.

    ``affected_references`` holds the ids the backend touched for this record
    (wire name ``value``). A failed record has ``success=False`` and a
    backend-supplied ``reason``.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    success: StrictBool
    affected_references: list[RecordReference] = Field(
        default_factory=list,
        validation_alias=AliasChoices("affected_references", "affectedReferences", "value"),
        serialization_alias="value",
    )
    reason: str = ""

    @field_validator("affected_references", mode="before")
    @classmethod
    def _none_to_empty(cls, value: Any) -> Any:
        return [] if value is None else value

    @field_validator("reason", mode="before")
    @classmethod
    def _none_to_blank(cls, value: Any) -> Any:
        return "" if value is None else value

    @classmethod
    def ok(cls, *references: RecordReference) -> MutationOutcome:
        return cls(success=True, affected_references=list(references))

    @classmethod
    def failed(cls, reason: str, *references: RecordReference) -> MutationOutcome:
        return cls(success=False, affected_references=list(references), reason=reason)

    def to_dict(self) -> dict[str, Any]:
        """Serialize in the backend wire shape ``{success, value, reason}``."""
        return self.model_dump(by_alias=True)


@dataclass
class BatchSummary:
    """Aggregate view over the outcomes of one batch call."""

    total: int = 0
    succeeded: int = 0
    failed: int = 0
    failures: list[tuple[int, MutationOutcome]] = field(default_factory=list)
    affected_references: list[RecordReference] = field(default_factory=list)

    @property
    def all_succeeded(self) -> bool:
        return self.failed == 0

    @classmethod
    def from_outcomes(cls, outcomes: Iterable[MutationOutcome]) -> BatchSummary:
        summary = cls()
        for index, outcome in enumerate(outcomes):
            summary.total += 1
            if outcome.success:
                summary.succeeded += 1
            else:
                summary.failed += 1
                summary.failures.append((index, outcome))
            summary.affected_references.extend(outcome.affected_references)
        return summary


__all__ = [
    "RecordReference",
    "Record",
    "Row",
    "NonEmptyStr",
    "ID_FIELD",
    "RecordDescriptor",
    "MutationOutcome",
    "BatchSummary",
]
