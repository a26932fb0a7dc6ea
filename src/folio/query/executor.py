"""
Runs compiled descriptors against the relational store.

:class:`QueryExecutor` is the server-side half of the query contract: it
validates, compiles, executes in its own transaction and shapes the
resulting rows into an :class:`~folio.core.envelope.Envelope`.  It never
raises; every failure comes back as an error envelope.  JSON columns come
back as Python values on both backends.

Tags:
    folio-core, query, executor, envelope
"""

from __future__ import annotations

from typing import Any

from sqlalchemy.exc import SQLAlchemyError

from folio.core.database import (
    Database,
    decode_json_columns,
    driver_message,
    is_unique_violation,
    rows_to_dicts,
)
from folio.core.envelope import Envelope
from folio.core.errors import (
    ConflictError,
    ExecutionError,
    FolioError,
    MultipleRowsError,
    NotFoundError,
)
from folio.core.logging import get_logger
from folio.query.compiler import compile_query
from folio.query.descriptor import QueryDescriptor, parse_descriptor
from folio.query.identifiers import IdentifierPolicy

logger = get_logger(__name__)


def shape_rows(descriptor: QueryDescriptor, rows: list[dict[str, Any]]) -> Envelope:
    """Apply single / maybe-single semantics to fetched rows."""
    if descriptor.single or descriptor.maybe_single:
        if not rows:
            if descriptor.single:
                return Envelope.failure(NotFoundError("No rows found"))
            return Envelope.empty()
        if len(rows) > 1:
            return Envelope.failure(
                MultipleRowsError("Multiple rows found, expected single row", details={"count": len(rows)})
            )
        return Envelope.success(rows[0], count=1)
    return Envelope.success(rows, count=len(rows))


class QueryExecutor:
    """Compile and execute descriptors; one transaction per descriptor."""

    def __init__(self, database: Database, policy: IdentifierPolicy | None = None):
        self.database = database
        self.policy = policy or IdentifierPolicy.unrestricted()

    async def execute(self, descriptor: QueryDescriptor | dict[str, Any]) -> Envelope:
        try:
            descriptor = parse_descriptor(descriptor)
            compiled = compile_query(descriptor, self.database.dialect, self.policy)
        except FolioError as exc:
            logger.info("query.rejected", code=exc.code.value, reason=exc.message)
            return Envelope.failure(exc)

        try:
            async with self.database.transaction() as conn:
                result = await conn.execute(compiled.to_text(), compiled.params)
                rows = rows_to_dicts(result)
                if rows:
                    json_columns = await self.database.json_columns(descriptor.table, conn)
                    rows = decode_json_columns(rows, json_columns)
        except (SQLAlchemyError, OSError) as exc:
            return Envelope.failure(self._translate(descriptor, exc))

        logger.debug(
            "query.executed",
            table=descriptor.table,
            operation=descriptor.operation,
            rows=len(rows),
        )
        return shape_rows(descriptor, rows)

    def _translate(self, descriptor: QueryDescriptor, exc: Exception) -> FolioError:
        message = driver_message(exc)
        if is_unique_violation(exc):
            logger.info("query.conflict", table=descriptor.table, operation=descriptor.operation)
            return ConflictError(message, details={"table": descriptor.table}, cause=exc)
        logger.warning(
            "query.failed",
            table=descriptor.table,
            operation=descriptor.operation,
            error=message,
        )
        return ExecutionError(message, details={"table": descriptor.table}, cause=exc)


__all__ = ["QueryExecutor", "shape_rows"]
