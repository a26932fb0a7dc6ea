"""API middleware package: auth gate, rate limit, upload size, request id, timing, error envelopes."""

from folio.api.middleware.auth import AuthMiddleware
from folio.api.middleware.errors import envelope_response, install_error_handlers
from folio.api.middleware.rate_limit import RateLimitMiddleware
from folio.api.middleware.request_id import RequestIDMiddleware
from folio.api.middleware.timing import TimingMiddleware
from folio.api.middleware.upload_limit import UploadLimitMiddleware

__all__ = [
    "AuthMiddleware",
    "RateLimitMiddleware",
    "RequestIDMiddleware",
    "TimingMiddleware",
    "UploadLimitMiddleware",
    "envelope_response",
    "install_error_handlers",
]
