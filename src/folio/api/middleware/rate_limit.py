"""
Per-client rate-limiting middleware using a fixed-window counter.

When enabled, each client IP is allowed at most ``requests`` requests per
``window_seconds`` window.  Excess requests receive 429 with a
``Retry-After`` header and a ``RATE_LIMITED`` error envelope.

The counters live in process memory; each worker process limits
independently.

Tags:
    folio-core, api, middleware, rate-limiting, fixed-window, 429
"""

from __future__ import annotations

import time
from collections import defaultdict
from dataclasses import dataclass, field

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import JSONResponse, Response

from folio.core.envelope import Envelope
from folio.core.errors import RateLimitedError


@dataclass
class _WindowCounter:
    """Fixed-window counter for a single client."""

    count: int = 0
    window_start: float = field(default_factory=time.monotonic)


class RateLimitMiddleware(BaseHTTPMiddleware):
    """Fixed-window per-IP rate limiter.

    Parameters
    ----------
    app:
        The ASGI application to wrap.
    enabled:
        Master switch; when ``False`` all requests pass through.
    requests:
        Maximum requests per window per client IP.
    window_seconds:
        Window length.
    """

    def __init__(
        self,
        app: object,
        enabled: bool = False,
        requests: int = 120,
        window_seconds: float = 60.0,
    ) -> None:
        super().__init__(app)  # type: ignore[arg-type]
        self._enabled = enabled
        self._limit = requests
        self._window_seconds = float(window_seconds)
        self._counters: dict[str, _WindowCounter] = defaultdict(_WindowCounter)

    def _client_ip(self, request: Request) -> str:
        """Extract client IP, respecting X-Forwarded-For behind a proxy."""
        forwarded = request.headers.get("X-Forwarded-For")
        if forwarded:
            return forwarded.split(",")[0].strip()
        return request.client.host if request.client else "unknown"

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        if not self._enabled or request.url.path.startswith("/health"):
            return await call_next(request)

        ip = self._client_ip(request)
        now = time.monotonic()
        counter = self._counters[ip]

        # Reset window if expired
        if now - counter.window_start >= self._window_seconds:
            counter.count = 0
            counter.window_start = now

        counter.count += 1

        if counter.count > self._limit:
            retry_after = int(self._window_seconds - (now - counter.window_start)) + 1
            error = RateLimitedError(
                f"Rate limit exceeded ({self._limit} requests per "
                f"{int(self._window_seconds)}s). Retry after {retry_after}s."
            )
            return JSONResponse(
                status_code=error.http_status,
                content=Envelope.failure(error).to_dict(include_details=False),
                headers={"Retry-After": str(retry_after)},
            )

        response = await call_next(request)
        remaining = max(0, self._limit - counter.count)
        response.headers["X-RateLimit-Limit"] = str(self._limit)
        response.headers["X-RateLimit-Remaining"] = str(remaining)
        return response
