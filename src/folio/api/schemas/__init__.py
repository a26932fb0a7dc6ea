"""API request/response schemas."""

from folio.api.schemas.common import (
    ChangePasswordRequest,
    CreateBucketRequest,
    EnvelopeBody,
    ErrorBody,
    RemoveRequest,
    RoleUpdateRequest,
    SignedUrlRequest,
    SignInRequest,
    SignUpRequest,
)

__all__ = [
    "ChangePasswordRequest",
    "CreateBucketRequest",
    "EnvelopeBody",
    "ErrorBody",
    "RemoveRequest",
    "RoleUpdateRequest",
    "SignInRequest",
    "SignUpRequest",
    "SignedUrlRequest",
]
