"""
In-memory object store backend.

A reference implementation of the backend contract for tests and local
development. Mutations are staged on a copy of the store and committed at
the end of the call; with ``allOrNone`` a single failing record rolls the
whole batch back and every record is reported as failed.

Queries support a small filter language::

    Name LIKE 'Acme%' AND (Industry = 'Tech' OR Employees >= 100)

with ``= != <> < <= > >= LIKE``, single-quoted strings, numbers, ``true``,
``false`` and ``null``. ``AND`` binds tighter than ``OR``.
"""

from __future__ import annotations

import copy
import itertools
import logging
import re
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass, field
from typing import Any

from ..errors import BackendRejectedError, MalformedQueryError
from ..types import ID_FIELD, MutationOutcome
from .base import BaseBackend, Operation

logger = logging.getLogger(__name__)

ROLLED_BACK = "ALL_OR_NONE_OPERATION_ROLLED_BACK"


class RecordFailure(Exception):
    """A single record could not be applied. Becomes a failed outcome."""

    def __init__(self, code: str, message: str):
        super().__init__(message)
        self.code = code
        self.message = message

    @property
    def reason(self) -> str:
        return f"{self.code}: {self.message}"


@dataclass
class _Snapshot:
    records: dict[str, dict[str, dict[str, Any]]]
    types: dict[str, str]

    def lookup(self, record_id: str) -> tuple[str, dict[str, Any]] | None:
        object_type = self.types.get(record_id)
        if object_type is None:
            return None
        return object_type, self.records[object_type][record_id]


class InMemoryBackend(BaseBackend):
    """
    Object store kept in process memory.

    Args:
        required_fields: object type -> fields that must hold a value on every
            stored record of that type.
        records: initial records, object type -> iterable of field mappings.

    Raises:
        ValueError: if two seed records share an ``Id``.
    """

    name = "memory"

    def __init__(
        self,
        *,
        required_fields: Mapping[str, Iterable[str]] | None = None,
        records: Mapping[str, Iterable[Mapping[str, Any]]] | None = None,
    ) -> None:
        self.required_fields: dict[str, tuple[str, ...]] = {
            object_type: tuple(names) for object_type, names in (required_fields or {}).items()
        }
        self._store = _Snapshot(records={}, types={})
        self._ids = itertools.count(1)

        for object_type, rows in (records or {}).items():
            self._store.records.setdefault(object_type, {})
            for row in rows:
                row = dict(row)
                record_id = row.pop(ID_FIELD, None)
                if record_id is not None and record_id in self._store.types:
                    raise ValueError(f"Duplicate record id in seed data: {record_id}")
                self._create(self._store, object_type, row, record_id=record_id)

    # -------------------------------------------------------------------------
    # Inspection helpers
    # -------------------------------------------------------------------------

    @property
    def object_types(self) -> set[str]:
        return set(self._store.records) | set(self.required_fields)

    def get(self, record_id: str) -> dict[str, Any] | None:
        """Return a copy of a stored record, or None."""
        found = self._store.lookup(record_id)
        return copy.deepcopy(found[1]) if found else None

    def count(self, object_type: str | None = None) -> int:
        if object_type is None:
            return len(self._store.types)
        return len(self._store.records.get(object_type, {}))

    # -------------------------------------------------------------------------
    # Dispatch
    # -------------------------------------------------------------------------

    async def invoke(self, operation: Operation, params: dict[str, Any]) -> list[dict[str, Any]]:
        if operation is Operation.GET:
            return self._query(params)

        handlers: dict[Operation, tuple[str, Callable[[], Callable[[_Snapshot, Any], list[str]]]]] = {
            Operation.DELETE: ("recordIds", lambda: self._delete_one),
            Operation.UPDATE: ("records", lambda: self._update_one),
            Operation.INSERT: ("recordInputs", lambda: self._insert_one),
            Operation.UPSERT: ("records", lambda: self._upsert_handler(params)),
        }
        key, make_handler = handlers[operation]
        handler = make_handler()
        items = _require(params, key)
        if not isinstance(items, list):
            raise BackendRejectedError(f"Parameter '{key}' must be a list")
        all_or_none = params.get("allOrNone", True)
        return self._mutate(operation, items, bool(all_or_none), handler)

    def _mutate(
        self,
        operation: Operation,
        items: list[Any],
        all_or_none: bool,
        apply: Callable[[_Snapshot, Any], list[str]],
    ) -> list[dict[str, Any]]:
        staged = _Snapshot(records=copy.deepcopy(self._store.records), types=dict(self._store.types))
        outcomes: list[MutationOutcome] = []
        for item in items:
            try:
                references = apply(staged, item)
            except RecordFailure as failure:
                outcomes.append(MutationOutcome.failed(failure.reason))
            else:
                outcomes.append(MutationOutcome.ok(*references))

        failed = sum(1 for outcome in outcomes if not outcome.success)
        if all_or_none and failed:
            logger.debug("%s rolled back: %d of %d records failed", operation.value, failed, len(items))
            outcomes = [
                outcome if not outcome.success else MutationOutcome.failed(
                    f"{ROLLED_BACK}: another record in the batch failed"
                )
                for outcome in outcomes
            ]
        else:
            self._store = staged

        return [outcome.to_dict() for outcome in outcomes]

    # -------------------------------------------------------------------------
    # Per-record mutations
    # -------------------------------------------------------------------------

    def _delete_one(self, store: _Snapshot, record_id: Any) -> list[str]:
        if not isinstance(record_id, str) or store.lookup(record_id) is None:
            raise RecordFailure("ENTITY_IS_DELETED", f"entity is deleted or does not exist: {record_id}")
        object_type = store.types.pop(record_id)
        del store.records[object_type][record_id]
        return [record_id]

    def _update_one(self, store: _Snapshot, record: Any) -> list[str]:
        record = _as_record(record)
        record_id = record.get(ID_FIELD)
        if not record_id:
            raise RecordFailure("MISSING_ARGUMENT", "Id not specified in an update call")
        if not isinstance(record_id, str):
            raise RecordFailure("INVALID_TYPE", f"Id must be a string, got {type(record_id).__name__}")
        found = store.lookup(record_id)
        if found is None:
            raise RecordFailure("INVALID_CROSS_REFERENCE_KEY", f"invalid cross reference id: {record_id}")
        object_type, current = found
        self._apply_update(store, object_type, record_id, current, record)
        return [record_id]

    def _insert_one(self, store: _Snapshot, descriptor: Any) -> list[str]:
        descriptor = _as_record(descriptor)
        object_type = descriptor.get("apiName")
        if not object_type:
            raise RecordFailure("MISSING_ARGUMENT", "apiName not specified")
        fields = descriptor.get("fields") or {}
        if not isinstance(fields, Mapping):
            raise RecordFailure("INVALID_TYPE", "fields must be a mapping")
        if ID_FIELD in fields:
            raise RecordFailure("INVALID_FIELD_FOR_INSERT_UPDATE", "cannot specify Id in an insert call")
        return [self._create(store, object_type, dict(fields))]

    def _upsert_handler(self, params: dict[str, Any]) -> Callable[[_Snapshot, Any], list[str]]:
        object_type = params.get("apiName")
        external_id = params.get("externalId") or ID_FIELD
        if not object_type:
            raise BackendRejectedError("Parameter 'apiName' is required for upsert")

        def apply(store: _Snapshot, record: Any) -> list[str]:
            record = _as_record(record)
            value = record.get(external_id)
            if value is None or value == "":
                raise RecordFailure("MISSING_ARGUMENT", f"{external_id} not specified")

            if external_id == ID_FIELD:
                found = store.lookup(value) if isinstance(value, str) else None
                if found is None or found[0] != object_type:
                    raise RecordFailure("INVALID_CROSS_REFERENCE_KEY", f"invalid cross reference id: {value}")
                self._apply_update(store, object_type, value, found[1], record)
                return [value]

            matches = [
                record_id
                for record_id, stored in store.records.get(object_type, {}).items()
                if stored.get(external_id) == value
            ]
            if len(matches) > 1:
                raise RecordFailure(
                    "DUPLICATE_EXTERNAL_ID",
                    f"{external_id} '{value}' matches {len(matches)} records",
                )
            if matches:
                record_id = matches[0]
                self._apply_update(store, object_type, record_id, store.records[object_type][record_id], record)
                return [record_id]
            if ID_FIELD in record:
                raise RecordFailure("INVALID_FIELD_FOR_INSERT_UPDATE", "cannot specify Id when creating a record")
            return [self._create(store, object_type, dict(record))]

        return apply

    def _apply_update(
        self,
        store: _Snapshot,
        object_type: str,
        record_id: str,
        current: dict[str, Any],
        changes: Mapping[str, Any],
    ) -> None:
        updated = {**current, **{k: v for k, v in changes.items() if k != ID_FIELD}}
        self._check_required(object_type, updated)
        store.records[object_type][record_id] = updated

    def _create(
        self,
        store: _Snapshot,
        object_type: str,
        fields: dict[str, Any],
        record_id: str | None = None,
    ) -> str:
        self._check_required(object_type, fields)
        record_id = record_id or self._new_id(store, object_type)
        store.records.setdefault(object_type, {})[record_id] = {ID_FIELD: record_id, **fields}
        store.types[record_id] = object_type
        return record_id

    def _check_required(self, object_type: str, fields: Mapping[str, Any]) -> None:
        missing = [name for name in self.required_fields.get(object_type, ()) if fields.get(name) in (None, "")]
        if missing:
            raise RecordFailure("REQUIRED_FIELD_MISSING", f"Required fields are missing: [{', '.join(missing)}]")

    def _new_id(self, store: _Snapshot, object_type: str) -> str:
        prefix = re.sub(r"[^A-Za-z0-9]", "", object_type)[:3].ljust(3, "0")
        while True:
            record_id = f"{prefix}{next(self._ids):015d}"
            # seeded ids may already occupy part of the generated range
            if record_id not in store.types:
                return record_id

    # -------------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------------

    def _query(self, params: dict[str, Any]) -> list[dict[str, Any]]:
        object_type = _require(params, "apiName")
        if object_type not in self.object_types:
            raise MalformedQueryError(f"sObject type '{object_type}' is not supported")

        rows = list(self._store.records.get(object_type, {}).values())

        where_clause = (params.get("whereClause") or "").strip()
        if where_clause:
            predicate = parse_where(where_clause)
            rows = [row for row in rows if predicate(row)]

        order_by = (params.get("orderBy") or "").strip()
        if order_by:
            rows = sort_rows(rows, parse_order_by(order_by))

        limit = params.get("queryLimit")
        if limit is not None:
            if isinstance(limit, bool) or not isinstance(limit, int) or limit < 0:
                raise MalformedQueryError(f"queryLimit must be a non-negative integer, got {limit!r}")
            rows = rows[:limit]

        projection = _projection(params)
        if not projection:
            return [copy.deepcopy(row) for row in rows]
        return [{name: copy.deepcopy(row.get(name)) for name in projection} for row in rows]


def _require(params: Mapping[str, Any], key: str) -> Any:
    if key not in params:
        raise BackendRejectedError(f"Missing required parameter '{key}'")
    return params[key]


def _as_record(value: Any) -> Mapping[str, Any]:
    if not isinstance(value, Mapping):
        raise RecordFailure("INVALID_TYPE", f"expected a record mapping, got {type(value).__name__}")
    return value


def _projection(params: Mapping[str, Any]) -> list[str]:
    select = (params.get("querySelect") or "").strip()
    if select:
        names = select.split(",")
    else:
        names = params.get("fields") or []
    return [name.strip() for name in names if name and name.strip()]


# =============================================================================
# Filter parsing
# =============================================================================

_TOKEN = re.compile(
    r"""\s*(?:
        (?P<string>'(?:[^'\\]|\\.)*')
      | (?P<number>-?\d+(?:\.\d+)?)
      | (?P<op><=|>=|!=|<>|=|<|>)
      | (?P<paren>[()])
      | (?P<word>[A-Za-z_][A-Za-z0-9_.]*)
    )""",
    re.VERBOSE,
)

_LITERAL_WORDS = {"true": True, "false": False, "null": None}

Predicate = Callable[[Mapping[str, Any]], bool]


@dataclass
class _Token:
    kind: str
    text: str


@dataclass
class _Parser:
    tokens: list[_Token]
    pos: int = 0
    source: str = field(default="")

    def peek(self) -> _Token | None:
        return self.tokens[self.pos] if self.pos < len(self.tokens) else None

    def take(self) -> _Token:
        token = self.peek()
        if token is None:
            raise MalformedQueryError(f"Unexpected end of where clause: {self.source!r}")
        self.pos += 1
        return token

    def keyword(self, word: str) -> bool:
        token = self.peek()
        if token is not None and token.kind == "word" and token.text.upper() == word:
            self.pos += 1
            return True
        return False

    def parse_or(self) -> Predicate:
        terms = [self.parse_and()]
        while self.keyword("OR"):
            terms.append(self.parse_and())
        if len(terms) == 1:
            return terms[0]
        return lambda row: any(term(row) for term in terms)

    def parse_and(self) -> Predicate:
        terms = [self.parse_condition()]
        while self.keyword("AND"):
            terms.append(self.parse_condition())
        if len(terms) == 1:
            return terms[0]
        return lambda row: all(term(row) for term in terms)

    def parse_condition(self) -> Predicate:
        token = self.take()
        if token.kind == "paren" and token.text == "(":
            inner = self.parse_or()
            closing = self.take()
            if closing.text != ")":
                raise MalformedQueryError(f"Expected ')' in where clause: {self.source!r}")
            return inner
        if token.kind != "word" or token.text.upper() in ("AND", "OR", "LIKE"):
            raise MalformedQueryError(f"Expected field name, got {token.text!r}")
        name = token.text

        if self.keyword("LIKE"):
            pattern = self.take()
            if pattern.kind != "string":
                raise MalformedQueryError("LIKE expects a quoted pattern")
            regex = _like_to_regex(_unquote(pattern.text))
            return lambda row: isinstance(row.get(name), str) and regex.fullmatch(row[name]) is not None

        op = self.take()
        if op.kind != "op":
            raise MalformedQueryError(f"Expected comparison operator after {name!r}, got {op.text!r}")
        literal = _literal(self.take())
        return _comparison(name, op.text, literal)


def _tokenize(clause: str) -> list[_Token]:
    tokens: list[_Token] = []
    pos = 0
    clause = clause.rstrip()
    while pos < len(clause):
        match = _TOKEN.match(clause, pos)
        if match is None or match.end() == pos:
            raise MalformedQueryError(f"Unexpected character at {pos} in where clause: {clause!r}")
        kind = match.lastgroup
        tokens.append(_Token(kind=kind or "", text=match.group(kind)))
        pos = match.end()
    return tokens


def _unquote(text: str) -> str:
    return re.sub(r"\\(.)", r"\1", text[1:-1])


def _literal(token: _Token) -> Any:
    if token.kind == "string":
        return _unquote(token.text)
    if token.kind == "number":
        return float(token.text) if "." in token.text else int(token.text)
    if token.kind == "word" and token.text.lower() in _LITERAL_WORDS:
        return _LITERAL_WORDS[token.text.lower()]
    raise MalformedQueryError(f"Expected a literal value, got {token.text!r}")


def _like_to_regex(pattern: str) -> re.Pattern[str]:
    parts = []
    for char in pattern:
        if char == "%":
            parts.append(".*")
        elif char == "_":
            parts.append(".")
        else:
            parts.append(re.escape(char))
    return re.compile("".join(parts), re.IGNORECASE | re.DOTALL)


def _comparison(name: str, op: str, literal: Any) -> Predicate:
    if op == "=":
        return lambda row: row.get(name) == literal
    if op in ("!=", "<>"):
        return lambda row: row.get(name) != literal

    compare: dict[str, Callable[[Any, Any], bool]] = {
        "<": lambda a, b: a < b,
        "<=": lambda a, b: a <= b,
        ">": lambda a, b: a > b,
        ">=": lambda a, b: a >= b,
    }
    func = compare[op]

    def predicate(row: Mapping[str, Any]) -> bool:
        value = row.get(name)
        if value is None or literal is None:
            return False
        try:
            return func(value, literal)
        except TypeError:
            return False

    return predicate


def parse_where(clause: str) -> Predicate:
    """Compile a where clause into a row predicate."""
    parser = _Parser(tokens=_tokenize(clause), source=clause)
    predicate = parser.parse_or()
    if parser.peek() is not None:
        raise MalformedQueryError(f"Unexpected token {parser.peek().text!r} in where clause: {clause!r}")
    return predicate


# =============================================================================
# Ordering
# =============================================================================


@dataclass(frozen=True)
class SortKey:
    field: str
    descending: bool = False
    nulls_first: bool = True


def parse_order_by(clause: str) -> list[SortKey]:
    """Parse ``Field [ASC|DESC] [NULLS FIRST|NULLS LAST]`` items."""
    keys = []
    for item in clause.split(","):
        words = item.split()
        if not words:
            raise MalformedQueryError(f"Empty item in order by clause: {clause!r}")
        name, modifiers = words[0], [w.upper() for w in words[1:]]
        descending = False
        if modifiers and modifiers[0] in ("ASC", "DESC"):
            descending = modifiers.pop(0) == "DESC"
        nulls_first = not descending
        if modifiers[:1] == ["NULLS"] and len(modifiers) == 2 and modifiers[1] in ("FIRST", "LAST"):
            nulls_first = modifiers[1] == "FIRST"
            modifiers = []
        if modifiers:
            raise MalformedQueryError(f"Unexpected order by modifier in {item.strip()!r}")
        keys.append(SortKey(field=name, descending=descending, nulls_first=nulls_first))
    return keys


def sort_rows(rows: list[dict[str, Any]], keys: list[SortKey]) -> list[dict[str, Any]]:
    ordered = list(rows)
    # stable sorts applied from the least significant key outwards
    for key in reversed(keys):
        present = [row for row in ordered if row.get(key.field) is not None]
        missing = [row for row in ordered if row.get(key.field) is None]
        try:
            present.sort(key=lambda row: row[key.field], reverse=key.descending)
        except TypeError as exc:
            raise MalformedQueryError(f"Cannot order by {key.field}: values are not comparable") from exc
        ordered = missing + present if key.nulls_first else present + missing
    return ordered


__all__ = [
    "InMemoryBackend",
    "RecordFailure",
    "ROLLED_BACK",
    "SortKey",
    "parse_where",
    "parse_order_by",
    "sort_rows",
]
