"""
Bearer-token authentication middleware.

Every request's ``Authorization: Bearer <token>`` header is verified and the
resulting :class:`~folio.auth.models.Principal` is stored on
``request.state.principal`` (``None`` when absent or invalid).  Requests to
protected paths without a valid token get a 401 envelope.

Open paths (no token required):
  - ``/health*``, ``/docs``, ``/redoc``, ``/openapi.json``
  - ``POST /auth/signup``, ``POST /auth/signin``
  - ``/storage/{bucket}/public/...`` and ``/storage/{bucket}/signed/...``
  - ``GET /storage/{bucket}/{path}`` when ``bucket`` is public
  - ``/functions`` and ``/functions/...`` (each function declares whether it needs a caller)
  - any ``OPTIONS`` request (CORS preflight)

Tags:
    folio-core, api, middleware, authentication, bearer, jwt
"""

from __future__ import annotations

import re
from collections.abc import Callable

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import JSONResponse, Response

from folio.auth.models import Principal
from folio.auth.tokens import bearer_token
from folio.core.envelope import Envelope
from folio.core.errors import UnauthorizedError

_OPEN_PATTERNS: list[re.Pattern[str]] = [
    re.compile(r"^/health"),
    re.compile(r"/docs$"),
    re.compile(r"/redoc$"),
    re.compile(r"/openapi\.json$"),
    re.compile(r"^/auth/(signup|signin)$"),
    re.compile(r"^/storage/[^/]+/(public|signed)/"),
    re.compile(r"^/functions(/|$)"),
]

_STORAGE_OBJECT = re.compile(r"^/storage/(?P<bucket>[^/]+)/(?P<path>.+)$")


def _is_open(path: str) -> bool:
    """Return True if *path* never requires a token."""
    return any(p.search(path) for p in _OPEN_PATTERNS)


class AuthMiddleware(BaseHTTPMiddleware):
    """Attach the caller's principal and reject anonymous calls to protected paths.

    Parameters
    ----------
    app:
        The ASGI application to wrap.
    verify:
        Token verifier; returns a principal or raises ``UnauthorizedError``.
    is_public_bucket:
        Bucket policy lookup for the public catch-all object route.
    """

    def __init__(
        self,
        app: object,
        verify: Callable[[str], Principal],
        is_public_bucket: Callable[[str], bool] = lambda _: False,
    ) -> None:
        super().__init__(app)  # type: ignore[arg-type]
        self._verify = verify
        self._is_public_bucket = is_public_bucket

    def _is_public_object(self, request: Request) -> bool:
        if request.method not in ("GET", "HEAD"):
            return False
        match = _STORAGE_OBJECT.match(request.url.path)
        return bool(match and self._is_public_bucket(match.group("bucket")))

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        token = bearer_token(request.headers.get("Authorization"))
        principal: Principal | None = None
        failure: UnauthorizedError | None = None
        if token:
            try:
                principal = self._verify(token)
            except UnauthorizedError as exc:
                failure = exc
        request.state.principal = principal

        path = request.url.path
        if principal is not None or request.method == "OPTIONS" or _is_open(path) or self._is_public_object(request):
            return await call_next(request)

        error = failure or UnauthorizedError("Access token required")
        return JSONResponse(
            status_code=error.http_status,
            content=Envelope.failure(error).to_dict(include_details=False),
            headers={"WWW-Authenticate": "Bearer"},
        )
