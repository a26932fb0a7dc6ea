"""
Structured error types for folio-core.

Every failure that crosses a component boundary (query compiler, storage,
auth, functions, migrations) is a :class:`FolioError` subclass.  Each error
carries a stable machine-readable :class:`ErrorCode`, the HTTP status the API
layer should use, optional ``details`` and the chained underlying exception.

Manifesto:
    Callers get one uniform handling path.  Components never raise a bare
    driver exception across their boundary; they translate it into the
    taxonomy below and either raise it (internal code) or wrap it in an
    :class:`~folio.core.envelope.Envelope` (public surfaces).

Architecture:
    ::

        FolioError (code, http_status, details, cause)
        ├── InvalidArgumentError   400  malformed descriptor / missing fields
        ├── UnauthorizedError      401  missing, invalid or expired credentials
        ├── ForbiddenError         403  insufficient role / self-targeting
        ├── NotFoundError          404  zero rows, missing object or bucket
        ├── MultipleRowsError      406  more than one row where one expected
        ├── ConflictError          409  unique constraint violation
        ├── PayloadTooLargeError   413  upload above the configured ceiling
        ├── RateLimitedError       429  too many requests in one window
        ├── ExecutionError         500  store / transport failure
        └── MigrationFailure       500  a specific migration version failed

Tags:
    folio-core, errors, taxonomy, envelope, http-status

Doc-Types:
    api-reference
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any


class ErrorCode(str, Enum):
    """Stable error codes shared by the server and every client adapter."""

    INVALID_ARGUMENT = "INVALID_ARGUMENT"
    UNAUTHORIZED = "UNAUTHORIZED"
    FORBIDDEN = "FORBIDDEN"
    CONFLICT = "CONFLICT"
    NOT_FOUND = "NOT_FOUND"
    MULTIPLE_ROWS = "MULTIPLE_ROWS"
    PAYLOAD_TOO_LARGE = "PAYLOAD_TOO_LARGE"
    EXECUTION_ERROR = "EXECUTION_ERROR"
    MIGRATION_FAILURE = "MIGRATION_FAILURE"
    RATE_LIMITED = "RATE_LIMITED"


ERROR_CODE_TO_STATUS: dict[ErrorCode, int] = {
    ErrorCode.INVALID_ARGUMENT: 400,
    ErrorCode.UNAUTHORIZED: 401,
    ErrorCode.FORBIDDEN: 403,
    ErrorCode.NOT_FOUND: 404,
    ErrorCode.MULTIPLE_ROWS: 406,
    ErrorCode.CONFLICT: 409,
    ErrorCode.PAYLOAD_TOO_LARGE: 413,
    ErrorCode.EXECUTION_ERROR: 500,
    ErrorCode.MIGRATION_FAILURE: 500,
    ErrorCode.RATE_LIMITED: 429,
}


@dataclass(frozen=True, slots=True)
class ErrorInfo:
    """Wire form of an error: ``{code, message, details?}``."""

    code: str
    message: str
    details: Any = None

    def to_dict(self, *, include_details: bool = True) -> dict[str, Any]:
        result: dict[str, Any] = {"code": self.code, "message": self.message}
        if include_details and self.details is not None:
            result["details"] = self.details
        return result

    @classmethod
    def from_dict(cls, payload: dict[str, Any]) -> ErrorInfo:
        return cls(
            code=str(payload.get("code") or ErrorCode.EXECUTION_ERROR.value),
            message=str(payload.get("message") or "Unknown error"),
            details=payload.get("details"),
        )

    @property
    def http_status(self) -> int:
        return status_for_error_code(self.code)


class FolioError(Exception):
    """
    Base exception for all folio-core errors.

    Subclasses set ``default_code``; the HTTP status is derived from the code
    so the mapping lives in exactly one table.

    Examples:
        >>> err = NotFoundError("No rows found")
        >>> err.code
        <ErrorCode.NOT_FOUND: 'NOT_FOUND'>
        >>> err.http_status
        404
        >>> err.to_dict()["code"]
        'NOT_FOUND'
    """

    default_code: ErrorCode = ErrorCode.EXECUTION_ERROR

    def __init__(
        self,
        message: str,
        *,
        code: ErrorCode | None = None,
        details: Any = None,
        cause: Exception | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.code = code or self.default_code
        self.details = details
        self.cause = cause

        if cause is not None:
            self.__cause__ = cause

    @property
    def http_status(self) -> int:
        return ERROR_CODE_TO_STATUS.get(self.code, 500)

    def to_error_info(self) -> ErrorInfo:
        return ErrorInfo(code=self.code.value, message=self.message, details=self.details)

    def to_dict(self, *, include_details: bool = True) -> dict[str, Any]:
        """Serialize to the wire ``ErrorInfo`` shape."""
        return self.to_error_info().to_dict(include_details=include_details)

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.message!r}, code={self.code.value})"


class InvalidArgumentError(FolioError):
    """Malformed request: missing table/operation, bad identifier, empty data."""

    default_code = ErrorCode.INVALID_ARGUMENT

    def __init__(self, message: str, *, field: str | None = None, **kwargs: Any):
        if field and kwargs.get("details") is None:
            kwargs["details"] = {"field": field}
        super().__init__(message, **kwargs)
        self.field = field

    def to_dict(self, *, include_details: bool = True) -> dict[str, Any]:
        result = super().to_dict(include_details=include_details)
        if self.field:
            result["field"] = self.field
        return result


class UnauthorizedError(FolioError):
    """Missing, invalid or expired credentials."""

    default_code = ErrorCode.UNAUTHORIZED


class ForbiddenError(FolioError):
    """Authenticated but not allowed to perform the action."""

    default_code = ErrorCode.FORBIDDEN


class ConflictError(FolioError):
    """Unique constraint violation (duplicate email, slug, ...)."""

    default_code = ErrorCode.CONFLICT


class NotFoundError(FolioError):
    """Zero rows where one was expected, or a missing object/bucket."""

    default_code = ErrorCode.NOT_FOUND


class MultipleRowsError(FolioError):
    """More than one row where at most one was expected."""

    default_code = ErrorCode.MULTIPLE_ROWS


class PayloadTooLargeError(FolioError):
    """Upload exceeds the configured byte ceiling."""

    default_code = ErrorCode.PAYLOAD_TOO_LARGE

    def __init__(self, size: int, limit: int, message: str | None = None):
        self.size = size
        self.limit = limit
        super().__init__(message or f"Payload of {size} bytes exceeds limit of {limit} bytes")


class RateLimitedError(FolioError):
    """Too many requests from one client inside the rate-limit window."""

    default_code = ErrorCode.RATE_LIMITED


class ExecutionError(FolioError):
    """Underlying store or transport failure, carrying the driver message."""

    default_code = ErrorCode.EXECUTION_ERROR


class MigrationFailure(FolioError):
    """A migration version failed to apply."""

    default_code = ErrorCode.MIGRATION_FAILURE

    def __init__(self, version: str, message: str, **kwargs: Any):
        self.version = version
        super().__init__(f"Migration {version} failed: {message}", **kwargs)


_CODE_TO_CLASS: dict[ErrorCode, type[FolioError]] = {
    ErrorCode.INVALID_ARGUMENT: InvalidArgumentError,
    ErrorCode.UNAUTHORIZED: UnauthorizedError,
    ErrorCode.FORBIDDEN: ForbiddenError,
    ErrorCode.CONFLICT: ConflictError,
    ErrorCode.NOT_FOUND: NotFoundError,
    ErrorCode.MULTIPLE_ROWS: MultipleRowsError,
    ErrorCode.EXECUTION_ERROR: ExecutionError,
    ErrorCode.RATE_LIMITED: RateLimitedError,
}


def status_for_error_code(code: str | ErrorCode) -> int:
    """Resolve an error code to HTTP status, defaulting to 500."""
    try:
        return ERROR_CODE_TO_STATUS[ErrorCode(code)]
    except ValueError:
        return 500


def error_from_info(info: ErrorInfo) -> FolioError:
    """Rebuild a typed error from a wire ``ErrorInfo`` (used by remote clients)."""
    try:
        code = ErrorCode(info.code)
    except ValueError:
        code = ErrorCode.EXECUTION_ERROR
    cls = _CODE_TO_CLASS.get(code, FolioError)
    return cls(info.message, code=code, details=info.details)


__all__ = [
    "ERROR_CODE_TO_STATUS",
    "ConflictError",
    "ErrorCode",
    "ErrorInfo",
    "ExecutionError",
    "FolioError",
    "ForbiddenError",
    "InvalidArgumentError",
    "MigrationFailure",
    "MultipleRowsError",
    "NotFoundError",
    "PayloadTooLargeError",
    "RateLimitedError",
    "UnauthorizedError",
    "error_from_info",
    "status_for_error_code",
]
