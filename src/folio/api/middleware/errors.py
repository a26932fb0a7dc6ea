"""
Error handling: every failure leaves the API as an envelope.

``FolioError`` maps to its own HTTP status; request validation errors become
``INVALID_ARGUMENT`` (400); Starlette HTTP errors (unknown route, wrong
method) keep their status; anything else is a 500 with a generic message
unless ``debug`` is on.
"""

from __future__ import annotations

import traceback

from fastapi import Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from folio.core.envelope import Envelope
from folio.core.errors import ErrorCode, ExecutionError, FolioError, InvalidArgumentError
from folio.core.logging import get_logger

logger = get_logger(__name__)

_HTTP_STATUS_CODES = {
    400: ErrorCode.INVALID_ARGUMENT,
    401: ErrorCode.UNAUTHORIZED,
    403: ErrorCode.FORBIDDEN,
    404: ErrorCode.NOT_FOUND,
    406: ErrorCode.MULTIPLE_ROWS,
    409: ErrorCode.CONFLICT,
    413: ErrorCode.PAYLOAD_TOO_LARGE,
    429: ErrorCode.RATE_LIMITED,
}


def _debug(request: Request) -> bool:
    settings = getattr(request.app.state, "settings", None)
    return bool(settings and settings.debug)


def envelope_response(
    request: Request,
    envelope: Envelope,
    *,
    status_code: int | None = None,
    headers: dict[str, str] | None = None,
) -> JSONResponse:
    """Serialize an envelope; the status follows the error unless given."""
    if status_code is None or envelope.is_err():
        status_code = envelope.http_status
    return JSONResponse(
        status_code=status_code,
        content=jsonable_encoder(envelope.to_dict(include_details=_debug(request))),
        headers=headers,
    )


async def folio_error_handler(request: Request, exc: FolioError) -> JSONResponse:
    return envelope_response(request, Envelope.failure(exc))


async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = [
        {"field": ".".join(str(p) for p in err.get("loc", ()) if p != "body"), "message": err.get("msg", "")}
        for err in exc.errors()
    ]
    message = "; ".join(f"{e['field']}: {e['message']}" if e["field"] else e["message"] for e in errors)
    error = InvalidArgumentError(message or "Invalid request", details={"errors": errors})
    return envelope_response(request, Envelope.failure(error))


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    code = _HTTP_STATUS_CODES.get(exc.status_code, ErrorCode.EXECUTION_ERROR)
    if exc.status_code == 404:
        message = "Endpoint not found"
    else:
        message = str(exc.detail) if exc.detail else "Request failed"
    error = FolioError(message, code=code, details={"path": request.url.path})
    return JSONResponse(
        status_code=exc.status_code,
        content=Envelope.failure(error).to_dict(include_details=_debug(request)),
        headers=getattr(exc, "headers", None),
    )


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Catch-all for unhandled exceptions; 500 envelope."""
    logger.error("api.unhandled_exception", path=request.url.path, error=str(exc), exc_info=exc)
    if _debug(request):
        error = ExecutionError(str(exc) or type(exc).__name__, details={"stack": traceback.format_exception(exc)})
    else:
        error = ExecutionError("Internal server error")
    return envelope_response(request, Envelope.failure(error))


def install_error_handlers(app) -> None:
    app.add_exception_handler(FolioError, folio_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)


__all__ = [
    "envelope_response",
    "folio_error_handler",
    "http_exception_handler",
    "install_error_handlers",
    "unhandled_exception_handler",
    "validation_error_handler",
]
