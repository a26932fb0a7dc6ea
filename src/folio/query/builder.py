"""
Chainable, awaitable query builder.

The builder only accumulates a :class:`~folio.query.descriptor.QueryDescriptor`;
it is backend agnostic.  The adapter that created it supplies a dispatch
coroutine which receives the finished descriptor and resolves to an
:class:`~folio.core.envelope.Envelope`.

Examples:
    >>> async def photos_in_album(client, album_id):
    ...     return await (
    ...         client.from_("photos")
    ...         .select("id, title, sort_order")
    ...         .eq("album_id", album_id)
    ...         .order("sort_order")
    ...         .range(0, 19)
    ...     )

    Mutations return the affected rows; ``select()`` after a mutation only
    chooses the returned columns:

    >>> async def add_album(client):
    ...     return await client.from_("albums").insert({"title": "Dunes"}).select().single()

Tags:
    folio-core, query, builder, fluent-api
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable, Generator
from typing import Any

from folio.core.envelope import Envelope
from folio.core.errors import InvalidArgumentError
from folio.query.descriptor import QueryDescriptor, parse_descriptor

Dispatch = Callable[[QueryDescriptor], Awaitable[Envelope]]


class QueryBuilder:
    """Fluent builder over one table; ``await builder`` executes it."""

    def __init__(self, table: str, dispatch: Dispatch):
        self._table = table
        self._dispatch = dispatch
        self._operation: str | None = None
        self._select = "*"
        self._where: list[dict[str, Any]] = []
        self._data: Any = None
        self._order_by: list[dict[str, Any]] = []
        self._limit: int | None = None
        self._range: dict[str, int] | None = None
        self._single = False
        self._maybe_single = False
        self._conflict_target: str | None = None
        self._allow_unfiltered = False

    # -- Operations --------------------------------------------------------

    def select(self, columns: str = "*") -> QueryBuilder:
        if self._operation is None:
            self._operation = "select"
        self._select = columns
        return self

    def insert(self, values: dict[str, Any] | list[dict[str, Any]]) -> QueryBuilder:
        self._operation = "insert"
        self._data = values
        return self

    def update(self, values: dict[str, Any]) -> QueryBuilder:
        self._operation = "update"
        self._data = values
        return self

    def upsert(
        self, values: dict[str, Any] | list[dict[str, Any]], *, on_conflict: str | None = None
    ) -> QueryBuilder:
        self._operation = "upsert"
        self._data = values
        self._conflict_target = on_conflict
        return self

    def delete(self) -> QueryBuilder:
        self._operation = "delete"
        return self

    # -- Filters -----------------------------------------------------------

    def _filter(self, column: str, operator: str, value: Any) -> QueryBuilder:
        self._where.append({"column": column, "operator": operator, "value": value})
        return self

    def eq(self, column: str, value: Any) -> QueryBuilder:
        return self._filter(column, "eq", value)

    def neq(self, column: str, value: Any) -> QueryBuilder:
        return self._filter(column, "neq", value)

    def gt(self, column: str, value: Any) -> QueryBuilder:
        return self._filter(column, "gt", value)

    def lt(self, column: str, value: Any) -> QueryBuilder:
        return self._filter(column, "lt", value)

    def gte(self, column: str, value: Any) -> QueryBuilder:
        return self._filter(column, "gte", value)

    def lte(self, column: str, value: Any) -> QueryBuilder:
        return self._filter(column, "lte", value)

    def like(self, column: str, pattern: str) -> QueryBuilder:
        return self._filter(column, "like", pattern)

    def ilike(self, column: str, pattern: str) -> QueryBuilder:
        return self._filter(column, "ilike", pattern)

    def in_(self, column: str, values: list[Any]) -> QueryBuilder:
        return self._filter(column, "in", list(values))

    def is_(self, column: str, value: Any) -> QueryBuilder:
        return self._filter(column, "is", value)

    def not_(self, column: str, operator: str, value: Any) -> QueryBuilder:
        return self._filter(column, f"not.{operator}", value)

    # -- Modifiers ---------------------------------------------------------

    def order(self, column: str, *, ascending: bool = True, nulls_first: bool | None = None) -> QueryBuilder:
        term: dict[str, Any] = {"column": column, "ascending": ascending}
        if nulls_first is not None:
            term["nullsFirst"] = nulls_first
        self._order_by.append(term)
        return self

    def limit(self, count: int) -> QueryBuilder:
        self._limit = count
        return self

    def range(self, start: int, end: int) -> QueryBuilder:
        self._range = {"from": start, "to": end}
        return self

    def single(self) -> QueryBuilder:
        self._single = True
        self._maybe_single = False
        return self

    def maybe_single(self) -> QueryBuilder:
        self._maybe_single = True
        self._single = False
        return self

    def allow_unfiltered(self) -> QueryBuilder:
        """Confirm an update/delete that intentionally has no filter."""
        self._allow_unfiltered = True
        return self

    # -- Resolution --------------------------------------------------------

    def to_descriptor(self) -> QueryDescriptor:
        payload: dict[str, Any] = {
            "table": self._table,
            "operation": self._operation or "select",
            "select": self._select,
            "where": self._where,
            "data": self._data,
            "orderBy": self._order_by,
            "limit": self._limit,
            "range": self._range,
            "single": self._single,
            "maybeSingle": self._maybe_single,
            "conflictTarget": self._conflict_target,
            "allowUnfiltered": self._allow_unfiltered,
        }
        return parse_descriptor(payload)

    async def execute(self) -> Envelope:
        try:
            descriptor = self.to_descriptor()
        except InvalidArgumentError as exc:
            return Envelope.failure(exc)
        return await self._dispatch(descriptor)

    def __await__(self) -> Generator[Any, None, Envelope]:
        return self.execute().__await__()

    def __repr__(self) -> str:
        return f"QueryBuilder(table={self._table!r}, operation={self._operation or 'select'!r})"


__all__ = ["Dispatch", "QueryBuilder"]
