"""Identifier validation and quoting for generated SQL.

Table and column names can never be bound as parameters, so every name that
reaches generated SQL passes through :class:`IdentifierPolicy` first.  The
quote style comes from the dialect: SQLite uses backticks because it reads a
double-quoted name that matches no column as a string literal.
"""

from __future__ import annotations

import re
from collections.abc import Iterable

from folio.core.dialect import Dialect, PostgreSQLDialect
from folio.core.errors import ForbiddenError, InvalidArgumentError

IDENTIFIER_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")
MAX_IDENTIFIER_LENGTH = 63


def validate_identifier(name: str, *, kind: str = "column") -> str:
    """Return ``name`` unchanged if it is a safe SQL identifier.

    >>> validate_identifier("created_at")
    'created_at'
    """
    if not isinstance(name, str) or not IDENTIFIER_RE.match(name):
        raise InvalidArgumentError(f"Invalid {kind} name: {name!r}", field=kind)
    if len(name) > MAX_IDENTIFIER_LENGTH:
        raise InvalidArgumentError(
            f"{kind.capitalize()} name exceeds {MAX_IDENTIFIER_LENGTH} characters", field=kind
        )
    return name


def quote_identifier(name: str, dialect: Dialect, *, kind: str = "column") -> str:
    """Validate and quote an identifier for ``dialect``.

    >>> from folio.core.dialect import SQLiteDialect
    >>> quote_identifier("site_settings", SQLiteDialect(), kind="table")
    '`site_settings`'
    """
    return dialect.quote_identifier(validate_identifier(name, kind=kind))


class IdentifierPolicy:
    """Decides which tables the generic query endpoint may touch.

    ``allowed`` empty means every table not in ``protected`` is reachable.
    """

    def __init__(
        self,
        allowed: Iterable[str] = (),
        protected: Iterable[str] = (),
        dialect: Dialect | None = None,
    ):
        self.allowed = frozenset(allowed)
        self.protected = frozenset(protected)
        self.dialect = dialect or PostgreSQLDialect()

    @classmethod
    def from_settings(cls, settings) -> IdentifierPolicy:
        return cls(allowed=settings.allowed_tables, protected=settings.protected_tables)

    @classmethod
    def unrestricted(cls) -> IdentifierPolicy:
        return cls()

    def for_dialect(self, dialect: Dialect) -> IdentifierPolicy:
        """Same table rules, quoting for ``dialect``."""
        if dialect.name == self.dialect.name:
            return self
        return IdentifierPolicy(self.allowed, self.protected, dialect)

    def table(self, name: str) -> str:
        validate_identifier(name, kind="table")
        if name in self.protected:
            raise ForbiddenError(f"Table {name!r} is not accessible through the query endpoint")
        if self.allowed and name not in self.allowed:
            raise InvalidArgumentError(f"Unknown table: {name!r}", field="table")
        return self.dialect.quote_identifier(name)

    def column(self, name: str) -> str:
        return quote_identifier(name, self.dialect, kind="column")

    def columns(self, names: Iterable[str]) -> list[str]:
        return [self.column(name) for name in names]


__all__ = [
    "IDENTIFIER_RE",
    "MAX_IDENTIFIER_LENGTH",
    "IdentifierPolicy",
    "quote_identifier",
    "validate_identifier",
]
