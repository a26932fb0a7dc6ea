"""
Upload size gate on the declared ``Content-Length``.

``POST /storage/{bucket}/upload`` bodies whose declared length exceeds the
upload ceiling plus multipart framing are answered with 413 before the
form is parsed.  Requests without a usable ``Content-Length`` (chunked
transfer) pass through; the upload route still reads at most one byte past
the ceiling.

Tags:
    folio-core, api, middleware, storage, upload, 413
"""

from __future__ import annotations

import re
from collections.abc import Callable

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import JSONResponse, Response

from folio.core.envelope import Envelope
from folio.core.errors import PayloadTooLargeError
from folio.core.logging import get_logger

logger = get_logger(__name__)

_UPLOAD_PATH = re.compile(r"^/storage/[^/]+/upload$")

# boundaries, part headers and the small form fields around the file
MULTIPART_OVERHEAD_BYTES = 64 * 1024


class UploadLimitMiddleware(BaseHTTPMiddleware):
    """Reject oversized uploads from their headers alone.

    ``max_bytes`` is a callable so a limit changed at runtime applies to the
    next request.
    """

    def __init__(self, app: object, max_bytes: Callable[[], int]) -> None:
        super().__init__(app)  # type: ignore[arg-type]
        self._max_bytes = max_bytes

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        if request.method != "POST" or not _UPLOAD_PATH.match(request.url.path):
            return await call_next(request)

        declared = request.headers.get("content-length", "")
        limit = self._max_bytes()
        if declared.isdigit() and int(declared) > limit + MULTIPART_OVERHEAD_BYTES:
            error = PayloadTooLargeError(int(declared), limit)
            logger.info("storage.upload_rejected", path=request.url.path, size=int(declared), limit=limit)
            return JSONResponse(
                status_code=error.http_status,
                content=Envelope.failure(error).to_dict(include_details=False),
            )
        return await call_next(request)
