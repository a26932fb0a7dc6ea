"""
Uniform result envelope: ``{data, error, count}``.

Every public surface (query executor, storage service, auth service,
functions, client adapters) resolves to an :class:`Envelope` instead of
raising.  On terminal resolution exactly one of ``data`` / ``error`` is
non-null, with one exception: a ``maybe_single`` query that matched zero
rows resolves to ``Envelope(data=None, error=None)``.

Examples:
    >>> Envelope.success([{"id": 1}], count=1).is_ok()
    True
    >>> from folio.core.errors import NotFoundError
    >>> env = Envelope.failure(NotFoundError("No rows found"))
    >>> env.error.code
    'NOT_FOUND'
    >>> env.to_dict()["data"] is None
    True

Tags:
    folio-core, envelope, result, wire-format

Doc-Types:
    api-reference
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from folio.core.errors import ErrorInfo, FolioError, error_from_info


@dataclass(frozen=True, slots=True)
class Envelope:
    """Result of a data-access operation."""

    data: Any = None
    error: ErrorInfo | None = None
    count: int | None = None

    @classmethod
    def success(cls, data: Any, *, count: int | None = None) -> Envelope:
        return cls(data=data, error=None, count=count)

    @classmethod
    def empty(cls) -> Envelope:
        """The ``{data: null, error: null}`` outcome (maybe-single, zero rows)."""
        return cls(data=None, error=None, count=0)

    @classmethod
    def failure(cls, error: FolioError | ErrorInfo) -> Envelope:
        info = error.to_error_info() if isinstance(error, FolioError) else error
        return cls(data=None, error=info, count=None)

    def is_ok(self) -> bool:
        return self.error is None

    def is_err(self) -> bool:
        return self.error is not None

    @property
    def http_status(self) -> int:
        return 200 if self.error is None else self.error.http_status

    def unwrap(self) -> Any:
        """Return ``data`` or raise the typed error carried by the envelope."""
        if self.error is not None:
            raise error_from_info(self.error)
        return self.data

    def to_dict(self, *, include_details: bool = True) -> dict[str, Any]:
        result: dict[str, Any] = {
            "data": self.data,
            "error": self.error.to_dict(include_details=include_details) if self.error else None,
        }
        if self.count is not None:
            result["count"] = self.count
        return result

    @classmethod
    def from_dict(cls, payload: dict[str, Any]) -> Envelope:
        raw_error = payload.get("error")
        error = ErrorInfo.from_dict(raw_error) if isinstance(raw_error, dict) else None
        return cls(data=payload.get("data"), error=error, count=payload.get("count"))

    def __repr__(self) -> str:
        if self.error is not None:
            return f"Envelope(error={self.error.code}: {self.error.message!r})"
        return f"Envelope(data={self.data!r}, count={self.count})"


__all__ = ["Envelope", "ErrorInfo"]
