"""Core primitives shared by every folio-core component.

Tags:
    folio-core, package-overview
"""

from folio.core.envelope import Envelope
from folio.core.errors import (
    ConflictError,
    ErrorCode,
    ErrorInfo,
    ExecutionError,
    FolioError,
    ForbiddenError,
    InvalidArgumentError,
    MigrationFailure,
    MultipleRowsError,
    NotFoundError,
    PayloadTooLargeError,
    UnauthorizedError,
)

__all__ = [
    "ConflictError",
    "Envelope",
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
    "UnauthorizedError",
]
