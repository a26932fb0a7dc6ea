"""
Async relational store access for folio-core.

Wraps a SQLAlchemy 2 :class:`~sqlalchemy.ext.asyncio.AsyncEngine`
(``postgresql+asyncpg`` in production, ``sqlite+aiosqlite`` for local
development and tests) behind a small :class:`Database` facade used by the
query executor, the migration engine and the auth service.

The engine's connection pool bounds the number of in-flight statements;
callers beyond the pool size queue for a connection.

Tags:
    folio-core, database, sqlalchemy, asyncpg, aiosqlite, pool

Doc-Types:
    api-reference
"""

from __future__ import annotations

import json
import re
from collections.abc import AsyncIterator, Mapping
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any

from sqlalchemy import event, make_url, text
from sqlalchemy.exc import DBAPIError, IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncConnection, AsyncEngine, create_async_engine
from sqlalchemy.sql.elements import TextClause

from folio.core.dialect import Dialect, get_dialect
from folio.core.logging import get_logger

logger = get_logger(__name__)

_UNIQUE_SQLSTATE = "23505"
_JSON_TYPES = frozenset({"JSON", "JSONB"})


def normalize_database_url(url: str) -> str:
    """Normalize a database URL to an async SQLAlchemy driver URL.

    Examples:
        >>> normalize_database_url("postgres://localhost/folio")
        'postgresql+asyncpg://localhost/folio'
        >>> normalize_database_url("postgresql://localhost/folio?sslmode=require")
        'postgresql+asyncpg://localhost/folio'
        >>> normalize_database_url("sqlite:///data/folio.db")
        'sqlite+aiosqlite:///data/folio.db'

    ``sslmode`` is dropped from the URL; :func:`create_folio_engine` reads it
    first with :func:`ssl_mode_from_url` and hands it to asyncpg.
    """
    if url.startswith("postgres://"):
        url = "postgresql://" + url[len("postgres://"):]
    if url.startswith("postgresql://"):
        url = url.replace("postgresql://", "postgresql+asyncpg://", 1)
    elif url.startswith("sqlite://"):
        url = url.replace("sqlite://", "sqlite+aiosqlite://", 1)

    # asyncpg takes TLS through connect_args, not the URL
    if url.startswith("postgresql+asyncpg://") and "sslmode=" in url:
        url = make_url(url).difference_update_query(["sslmode"]).render_as_string(hide_password=False)

    return url


def ssl_mode_from_url(url: str) -> str | None:
    """Return the ``sslmode`` query value of a PostgreSQL URL, if any.

    >>> ssl_mode_from_url("postgresql://db.internal/folio?sslmode=verify-full")
    'verify-full'
    """
    match = re.search(r"[?&]sslmode=([^&]*)", url)
    return match.group(1) if match else None


def postgres_connect_args(url: str, ssl: bool | str | None = None) -> dict[str, Any]:
    """asyncpg ``connect_args`` for ``url``; an explicit ``ssl`` wins over ``sslmode``.

    ``ssl`` is ``True`` or an asyncpg/libpq mode (``require``, ``verify-full``...).
    """
    mode = ssl if ssl else ssl_mode_from_url(url)
    return {"ssl": mode} if mode else {}


def create_folio_engine(
    url: str,
    *,
    echo: bool = False,
    pool_size: int | None = None,
    max_overflow: int | None = None,
    ssl: bool | str | None = None,
    **kwargs: Any,
) -> AsyncEngine:
    """Create an async engine with sane defaults for each backend."""
    raw_url = url
    url = normalize_database_url(url)

    if url.startswith("sqlite"):
        database = make_url(url).database
        if database and database != ":memory:":
            Path(database).parent.mkdir(parents=True, exist_ok=True)
        engine = create_async_engine(url, echo=echo, **kwargs)

        @event.listens_for(engine.sync_engine, "connect")
        def _set_sqlite_pragma(dbapi_connection: Any, _rec: Any) -> None:
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            # LIKE is case-sensitive as on PostgreSQL; ilike lowers both sides
            cursor.execute("PRAGMA case_sensitive_like=ON")
            cursor.close()

        return engine

    pool_kwargs: dict[str, Any] = {"pool_pre_ping": True}
    if pool_size is not None:
        pool_kwargs["pool_size"] = pool_size
    if max_overflow is not None:
        pool_kwargs["max_overflow"] = max_overflow
    connect_args = {**postgres_connect_args(raw_url, ssl), **kwargs.pop("connect_args", {})}
    if connect_args:
        pool_kwargs["connect_args"] = connect_args
    return create_async_engine(url, echo=echo, **pool_kwargs, **kwargs)


def is_unique_violation(exc: BaseException) -> bool:
    """True when ``exc`` is a unique / primary-key constraint violation."""
    if not isinstance(exc, IntegrityError):
        return False
    orig = exc.orig
    sqlstate = getattr(orig, "sqlstate", None) or getattr(orig, "pgcode", None)
    if sqlstate == _UNIQUE_SQLSTATE:
        return True
    message = str(orig)
    return "UNIQUE constraint failed" in message or "duplicate key value" in message


def driver_message(exc: BaseException) -> str:
    """Extract the driver's own message from a SQLAlchemy error."""
    if isinstance(exc, DBAPIError) and exc.orig is not None:
        return str(exc.orig)
    if isinstance(exc, SQLAlchemyError):
        return str(exc).split("\n", 1)[0]
    return str(exc)


def rows_to_dicts(result: Any) -> list[dict[str, Any]]:
    """Materialize a result with rows as plain dicts (empty when no rows returned)."""
    if not result.returns_rows:
        return []
    return [dict(row) for row in result.mappings().all()]


def decode_json_columns(rows: list[dict[str, Any]], columns: frozenset[str]) -> list[dict[str, Any]]:
    """Parse JSON text in ``columns`` back into Python values, in place."""
    if not columns:
        return rows
    for row in rows:
        for column in columns.intersection(row):
            value = row[column]
            if isinstance(value, (str, bytes)):
                try:
                    row[column] = json.loads(value)
                except ValueError:
                    # plain text stored in a JSON column stays as written
                    continue
    return rows


class Database:
    """Process-wide handle on the relational store.

    Examples:
        >>> db = Database("sqlite+aiosqlite:///:memory:")
        >>> db.dialect.name
        'sqlite'
    """

    def __init__(
        self,
        url: str,
        *,
        echo: bool = False,
        pool_size: int | None = None,
        max_overflow: int | None = None,
        ssl: bool | str | None = None,
        engine: AsyncEngine | None = None,
    ):
        self.url = normalize_database_url(url)
        self._engine = engine or create_folio_engine(
            url, echo=echo, pool_size=pool_size, max_overflow=max_overflow, ssl=ssl
        )
        self._dialect = get_dialect(self._engine.dialect.name)
        self._json_columns: dict[str, frozenset[str]] = {}

    @classmethod
    def from_settings(cls, settings: Any) -> Database:
        return cls(
            settings.database_url,
            echo=settings.database_echo,
            pool_size=settings.database_pool_size,
            max_overflow=settings.database_max_overflow,
            ssl=settings.database_ssl,
        )

    @property
    def engine(self) -> AsyncEngine:
        return self._engine

    @property
    def dialect(self) -> Dialect:
        return self._dialect

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[AsyncConnection]:
        """Yield a connection inside a transaction; commit on exit, roll back on error."""
        async with self._engine.begin() as conn:
            yield conn

    async def fetch_all(
        self, sql: str | TextClause, params: Mapping[str, Any] | None = None
    ) -> list[dict[str, Any]]:
        async with self.transaction() as conn:
            result = await conn.execute(_as_text(sql), dict(params or {}))
            return rows_to_dicts(result)

    async def fetch_one(
        self, sql: str | TextClause, params: Mapping[str, Any] | None = None
    ) -> dict[str, Any] | None:
        rows = await self.fetch_all(sql, params)
        return rows[0] if rows else None

    async def execute(self, sql: str | TextClause, params: Mapping[str, Any] | None = None) -> int:
        """Execute a statement and return the affected row count."""
        async with self.transaction() as conn:
            result = await conn.execute(_as_text(sql), dict(params or {}))
            return result.rowcount

    async def table_exists(self, name: str, conn: AsyncConnection | None = None) -> bool:
        query = text(self._dialect.table_exists_query())
        if conn is not None:
            result = await conn.execute(query, {"name": name})
            return result.first() is not None
        async with self._engine.connect() as own:
            result = await own.execute(query, {"name": name})
            return result.first() is not None

    async def json_columns(self, table: str, conn: AsyncConnection) -> frozenset[str]:
        """Columns of ``table`` declared JSON that the driver returns as text.

        PostgreSQL drivers decode json/jsonb themselves, so this is only
        consulted for SQLite.  Results are cached per table; migrations run
        before the first query.
        """
        if self._dialect.native_json:
            return frozenset()
        cached = self._json_columns.get(table)
        if cached is None:
            result = await conn.execute(text(f"PRAGMA table_info({self._dialect.quote_identifier(table)})"))
            cached = frozenset(
                row["name"]
                for row in result.mappings()
                if (row["type"] or "").strip().upper() in _JSON_TYPES
            )
            self._json_columns[table] = cached
        return cached

    async def health_check(self) -> dict[str, Any]:
        try:
            async with self._engine.connect() as conn:
                await conn.execute(text("SELECT 1"))
        except SQLAlchemyError as exc:
            logger.error("database.health_failed", error=driver_message(exc))
            return {"healthy": False, "dialect": self._dialect.name, "error": driver_message(exc)}
        return {"healthy": True, "dialect": self._dialect.name}

    async def dispose(self) -> None:
        logger.info("database.disposing", dialect=self._dialect.name)
        await self._engine.dispose()


def _as_text(sql: str | TextClause) -> TextClause:
    return text(sql) if isinstance(sql, str) else sql


__all__ = [
    "Database",
    "create_folio_engine",
    "decode_json_columns",
    "driver_message",
    "is_unique_violation",
    "normalize_database_url",
    "postgres_connect_args",
    "rows_to_dicts",
    "ssl_mode_from_url",
]
