"""
Descriptor-to-SQL compiler.

:func:`compile_query` is a pure function from a
:class:`~folio.query.descriptor.QueryDescriptor` to parameterized SQL.  It
never touches the database; every structural problem is reported as
:class:`~folio.core.errors.InvalidArgumentError` before a round-trip.

Manifesto:
    Values are always bound parameters (``:p0``, ``:p1``...).  Identifiers
    are validated against a strict pattern and quoted by the dialect, so user
    input never becomes SQL text.

Architecture:
    ::

        QueryDescriptor ──► compile_query(descriptor, dialect, policy)
                                │
                                ├── _compile_select   SELECT .. WHERE .. ORDER BY .. LIMIT/OFFSET
                                ├── _compile_insert   INSERT .. VALUES (..),(..) RETURNING <select>
                                ├── _compile_update   UPDATE .. SET .. WHERE .. RETURNING <select>
                                ├── _compile_upsert   INSERT .. ON CONFLICT (..) DO UPDATE/NOTHING
                                └── _compile_delete   DELETE .. WHERE .. RETURNING <select>
                                │
                                ▼
                        CompiledQuery(sql, params, expanding)

Rules:
    - ``range {from, to}`` renders ``LIMIT to-from+1 OFFSET from`` and takes
      precedence over ``limit``.
    - Ordering and row windows apply to ``select`` only.
    - Mutations return the columns named by ``select`` (default ``*``).
    - ``update`` / ``delete`` without conditions require ``allow_unfiltered``.
    - ``insert`` / ``upsert`` accept a list of rows sharing one key set.
    - ``dict`` / ``list`` values in ``data`` are bound as JSON text.

Examples:
    >>> from folio.core.dialect import PostgreSQLDialect
    >>> from folio.query.descriptor import QueryDescriptor
    >>> q = compile_query(
    ...     QueryDescriptor(table="albums", operation="select",
    ...                     where=[{"column": "is_visible", "operator": "eq", "value": True}],
    ...                     order_by=[{"column": "sort_order"}]),
    ...     PostgreSQLDialect(),
    ... )
    >>> q.sql
    'SELECT * FROM "albums" WHERE "is_visible" = :p0 ORDER BY "sort_order" ASC'
    >>> q.params
    {'p0': True}

Tags:
    folio-core, query, compiler, sql, parameterized

Doc-Types:
    api-reference
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any

from sqlalchemy import bindparam, text
from sqlalchemy.sql.elements import TextClause

from folio.core.dialect import Dialect
from folio.core.errors import InvalidArgumentError
from folio.query.descriptor import COMPARISON_OPERATORS, Condition, OrderBy, QueryDescriptor
from folio.query.identifiers import IdentifierPolicy

_BINARY_OPERATORS = {
    "eq": "=",
    "neq": "<>",
    "gt": ">",
    "lt": "<",
    "gte": ">=",
    "lte": "<=",
    "like": "LIKE",
}


@dataclass(frozen=True)
class CompiledQuery:
    """SQL text with named parameters; ``expanding`` lists IN-list parameters."""

    sql: str
    params: dict[str, Any] = field(default_factory=dict)
    expanding: tuple[str, ...] = ()

    def to_text(self) -> TextClause:
        clause = text(self.sql)
        if self.expanding:
            clause = clause.bindparams(*(bindparam(name, expanding=True) for name in self.expanding))
        return clause


class _ParamSink:
    """Allocates ``:pN`` names in render order."""

    def __init__(self) -> None:
        self.params: dict[str, Any] = {}
        self.expanding: list[str] = []

    def add(self, value: Any, *, expanding: bool = False) -> str:
        name = f"p{len(self.params)}"
        self.params[name] = value
        if expanding:
            self.expanding.append(name)
        return f":{name}"


def compile_query(
    descriptor: QueryDescriptor,
    dialect: Dialect,
    policy: IdentifierPolicy | None = None,
) -> CompiledQuery:
    """Compile a descriptor into parameterized SQL for ``dialect``."""
    policy = (policy or IdentifierPolicy.unrestricted()).for_dialect(dialect)
    table = policy.table(descriptor.table)
    sink = _ParamSink()

    operation = descriptor.operation
    if operation == "select":
        sql = _compile_select(descriptor, table, dialect, policy, sink)
    elif operation == "insert":
        sql = _compile_insert(descriptor, table, policy, sink)
    elif operation == "update":
        sql = _compile_update(descriptor, table, dialect, policy, sink)
    elif operation == "upsert":
        sql = _compile_upsert(descriptor, table, policy, sink)
    elif operation == "delete":
        sql = _compile_delete(descriptor, table, dialect, policy, sink)
    else:
        raise InvalidArgumentError("Invalid operation", field="operation")

    return CompiledQuery(sql=sql, params=sink.params, expanding=tuple(sink.expanding))


# =============================================================================
# Operations
# =============================================================================


def _compile_select(
    descriptor: QueryDescriptor,
    table: str,
    dialect: Dialect,
    policy: IdentifierPolicy,
    sink: _ParamSink,
) -> str:
    parts = [f"SELECT {_select_list(descriptor.select, policy)} FROM {table}"]

    where = _where_clause(descriptor.where, dialect, policy, sink)
    if where:
        parts.append(where)

    if descriptor.order_by:
        parts.append("ORDER BY " + ", ".join(_order_term(o, policy) for o in descriptor.order_by))

    if descriptor.range is not None:
        window = descriptor.range.to - descriptor.range.from_ + 1
        parts.append(f"LIMIT {int(window)} OFFSET {int(descriptor.range.from_)}")
    elif descriptor.limit is not None:
        parts.append(f"LIMIT {int(descriptor.limit)}")
    elif descriptor.single or descriptor.maybe_single:
        # two rows are enough to tell "one" from "many"
        parts.append("LIMIT 2")

    return " ".join(parts)


def _compile_insert(
    descriptor: QueryDescriptor,
    table: str,
    policy: IdentifierPolicy,
    sink: _ParamSink,
) -> str:
    _reject_filters(descriptor)
    columns, rows = _normalize_rows(descriptor.data, "insert")
    quoted = policy.columns(columns)
    values = ", ".join(_values_tuple(row, columns, sink) for row in rows)
    return f"INSERT INTO {table} ({', '.join(quoted)}) VALUES {values} {_returning(descriptor, policy)}"


def _compile_update(
    descriptor: QueryDescriptor,
    table: str,
    dialect: Dialect,
    policy: IdentifierPolicy,
    sink: _ParamSink,
) -> str:
    data = descriptor.data
    if data is None:
        raise InvalidArgumentError("Data is required for update operation", field="data")
    if not isinstance(data, dict):
        raise InvalidArgumentError("Update data must be a single object", field="data")
    if not data:
        raise InvalidArgumentError("Data object must contain at least one property", field="data")
    _require_filter(descriptor)

    assignments = ", ".join(
        f"{policy.column(column)} = {sink.add(_bind_value(value))}" for column, value in data.items()
    )
    parts = [f"UPDATE {table} SET {assignments}"]
    where = _where_clause(descriptor.where, dialect, policy, sink)
    if where:
        parts.append(where)
    parts.append(_returning(descriptor, policy))
    return " ".join(parts)


def _compile_upsert(
    descriptor: QueryDescriptor,
    table: str,
    policy: IdentifierPolicy,
    sink: _ParamSink,
) -> str:
    _reject_filters(descriptor)
    columns, rows = _normalize_rows(descriptor.data, "upsert")

    conflict_columns = [c.strip() for c in descriptor.on_conflict.split(",") if c.strip()]
    if not conflict_columns:
        raise InvalidArgumentError("Conflict target must name at least one column", field="conflictTarget")
    conflict_quoted = policy.columns(conflict_columns)

    quoted = policy.columns(columns)
    values = ", ".join(_values_tuple(row, columns, sink) for row in rows)

    update_columns = [c for c in columns if c not in conflict_columns]
    if update_columns:
        action = "DO UPDATE SET " + ", ".join(
            f"{policy.column(c)} = EXCLUDED.{policy.column(c)}" for c in update_columns
        )
    else:
        action = "DO NOTHING"

    return (
        f"INSERT INTO {table} ({', '.join(quoted)}) VALUES {values} "
        f"ON CONFLICT ({', '.join(conflict_quoted)}) {action} {_returning(descriptor, policy)}"
    )


def _compile_delete(
    descriptor: QueryDescriptor,
    table: str,
    dialect: Dialect,
    policy: IdentifierPolicy,
    sink: _ParamSink,
) -> str:
    _require_filter(descriptor)
    parts = [f"DELETE FROM {table}"]
    where = _where_clause(descriptor.where, dialect, policy, sink)
    if where:
        parts.append(where)
    parts.append(_returning(descriptor, policy))
    return " ".join(parts)


# =============================================================================
# Fragments
# =============================================================================


def _select_list(select: str, policy: IdentifierPolicy) -> str:
    select = (select or "*").strip()
    if select == "*":
        return "*"
    columns = [c.strip() for c in select.split(",")]
    if any(not c for c in columns):
        raise InvalidArgumentError(f"Invalid select list: {select!r}", field="select")
    return ", ".join(policy.columns(columns))


def _returning(descriptor: QueryDescriptor, policy: IdentifierPolicy) -> str:
    return f"RETURNING {_select_list(descriptor.select, policy)}"


def _where_clause(
    conditions: list[Condition],
    dialect: Dialect,
    policy: IdentifierPolicy,
    sink: _ParamSink,
) -> str:
    if not conditions:
        return ""
    return "WHERE " + " AND ".join(render_condition(c, dialect, policy, sink) for c in conditions)


def render_condition(
    condition: Condition,
    dialect: Dialect,
    policy: IdentifierPolicy,
    sink: _ParamSink,
) -> str:
    """Render one condition; ``not.<op>`` wraps the inner predicate in ``NOT (..)``."""
    operator = condition.operator
    negated = operator.startswith("not.")
    if negated:
        operator = operator[len("not."):]
    if operator not in COMPARISON_OPERATORS:
        raise InvalidArgumentError(f"Unsupported operator: {condition.operator!r}", field="operator")

    column = policy.column(condition.column)
    value = condition.value

    if operator in _BINARY_OPERATORS:
        predicate = f"{column} {_BINARY_OPERATORS[operator]} {sink.add(value)}"
    elif operator == "ilike":
        predicate = dialect.ilike(column, sink.add(value))
    elif operator == "in":
        if not isinstance(value, (list, tuple)):
            raise InvalidArgumentError("Operator 'in' requires a list value", field="value")
        predicate = f"{column} IN {sink.add(list(value), expanding=True)}"
    else:
        predicate = f"{column} IS {_is_keyword(value)}"

    return f"NOT ({predicate})" if negated else predicate


def _is_keyword(value: Any) -> str:
    if value is None:
        return "NULL"
    if isinstance(value, bool):
        return "TRUE" if value else "FALSE"
    if isinstance(value, str) and value.lower() in ("null", "true", "false"):
        return value.upper()
    raise InvalidArgumentError("Operator 'is' only accepts null, true or false", field="value")


def _order_term(order: OrderBy, policy: IdentifierPolicy) -> str:
    term = f"{policy.column(order.column)} {'ASC' if order.ascending else 'DESC'}"
    if order.nulls_first is True:
        term += " NULLS FIRST"
    elif order.nulls_first is False:
        term += " NULLS LAST"
    return term


def _normalize_rows(data: Any, operation: str) -> tuple[list[str], list[dict[str, Any]]]:
    if data is None:
        raise InvalidArgumentError(f"Data is required for {operation} operation", field="data")
    rows = data if isinstance(data, list) else [data]
    if not rows:
        raise InvalidArgumentError(f"{operation.capitalize()} array cannot be empty", field="data")

    columns = list(rows[0].keys())
    if not columns:
        raise InvalidArgumentError("Data object must contain at least one property", field="data")
    expected = set(columns)
    for index, row in enumerate(rows[1:], start=1):
        if set(row.keys()) != expected:
            raise InvalidArgumentError(
                f"Row {index} has a different set of columns than row 0", field="data"
            )
    return columns, rows


def _values_tuple(row: dict[str, Any], columns: list[str], sink: _ParamSink) -> str:
    return "(" + ", ".join(sink.add(_bind_value(row[c])) for c in columns) + ")"


def _bind_value(value: Any) -> Any:
    if isinstance(value, (dict, list)):
        return json.dumps(value)
    return value


def _require_filter(descriptor: QueryDescriptor) -> None:
    if not descriptor.where and not descriptor.allow_unfiltered:
        raise InvalidArgumentError(
            f"Refusing to {descriptor.operation} every row of {descriptor.table!r} without a filter; "
            "set allowUnfiltered to confirm",
            field="where",
        )


def _reject_filters(descriptor: QueryDescriptor) -> None:
    if descriptor.where:
        raise InvalidArgumentError(
            f"Filters are not supported for {descriptor.operation} operations", field="where"
        )


__all__ = ["CompiledQuery", "compile_query", "render_condition"]
