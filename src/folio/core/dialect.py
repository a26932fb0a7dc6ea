"""SQL dialect differences between SQLite and PostgreSQL.

The query compiler and the migration engine emit portable SQL with named
bind parameters (``:p0``).  The few fragments that differ between the two
supported stores live here, so neither caller branches on the driver.

Examples:
    >>> d = SQLiteDialect()
    >>> d.ilike(d.quote_identifier("title"), ":p0")
    'LOWER(`title`) LIKE LOWER(:p0)'
    >>> PostgreSQLDialect().ilike('"title"', ":p0")
    '"title" ILIKE :p0'

Tags:
    dialect, sql, portability, folio-core
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable


@runtime_checkable
class Dialect(Protocol):
    """Protocol for the SQL fragments that are backend specific."""

    @property
    def name(self) -> str:
        """Short identifier (``sqlite`` or ``postgresql``)."""
        ...

    @property
    def native_json(self) -> bool:
        """True when the driver returns JSON columns as Python values."""
        ...

    def quote_identifier(self, name: str) -> str:
        """Quote an already validated identifier."""
        ...

    def ilike(self, column: str, param: str) -> str:
        """Case-insensitive pattern match of ``column`` against ``param``."""
        ...

    def now(self) -> str:
        """Current timestamp expression."""
        ...

    def table_exists_query(self) -> str:
        """Query returning a row when the table bound to ``:name`` exists."""
        ...


class SQLiteDialect:
    """SQLite: backtick identifiers, no ``ILIKE``, ``CURRENT_TIMESTAMP``."""

    @property
    def name(self) -> str:
        return "sqlite"

    @property
    def native_json(self) -> bool:
        return False

    def quote_identifier(self, name: str) -> str:
        # a double-quoted name that matches no column is read as a string literal
        return f"`{name}`"

    def ilike(self, column: str, param: str) -> str:
        return f"LOWER({column}) LIKE LOWER({param})"

    def now(self) -> str:
        return "CURRENT_TIMESTAMP"

    def table_exists_query(self) -> str:
        return "SELECT name FROM sqlite_master WHERE type = 'table' AND name = :name"


class PostgreSQLDialect:
    """PostgreSQL: native ``ILIKE``, ``NOW()``."""

    @property
    def name(self) -> str:
        return "postgresql"

    @property
    def native_json(self) -> bool:
        # SQLAlchemy registers json/jsonb codecs on every asyncpg connection
        return True

    def quote_identifier(self, name: str) -> str:
        return f'"{name}"'

    def ilike(self, column: str, param: str) -> str:
        return f"{column} ILIKE {param}"

    def now(self) -> str:
        return "NOW()"

    def table_exists_query(self) -> str:
        return (
            "SELECT table_name FROM information_schema.tables "
            "WHERE table_schema = current_schema() AND table_name = :name"
        )


_DIALECTS: dict[str, type] = {
    "sqlite": SQLiteDialect,
    "postgresql": PostgreSQLDialect,
}


def get_dialect(name: str) -> Dialect:
    """Return the dialect for a SQLAlchemy dialect name (``engine.dialect.name``)."""
    try:
        return _DIALECTS[name]()
    except KeyError:
        raise ValueError(f"Unsupported database dialect: {name!r}") from None


__all__ = ["Dialect", "PostgreSQLDialect", "SQLiteDialect", "get_dialect"]
