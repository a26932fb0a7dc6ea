"""
Request and response schemas shared by the routers.

Every JSON response outside ``/health`` is an envelope: ``{data, error, count?}``.  ``error``
is ``{code, message, details?}``; ``details`` is only present when the
service runs with ``FOLIO_DEBUG=true``.

Request bodies use the camelCase field names of the wire format
(``currentPassword``, ``expiresIn``) and also accept snake_case.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class _Request(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


# ── Envelope (OpenAPI documentation) ─────────────────────────────────────


class ErrorBody(BaseModel):
    code: str = Field(description="Machine-readable error code, e.g. NOT_FOUND")
    message: str = Field(description="Human-readable error description")
    details: Any = Field(default=None, description="Debug-only detail")


class EnvelopeBody(BaseModel):
    """``{data, error, count?}``; exactly one of data/error is set on failure."""

    data: Any = None
    error: ErrorBody | None = None
    count: int | None = None


# ── Auth ─────────────────────────────────────────────────────────────────


class SignUpRequest(_Request):
    model_config = ConfigDict(populate_by_name=True, extra="allow")

    email: str
    password: str
    full_name: str | None = None

    def meta(self) -> dict[str, Any]:
        extra = dict(self.model_extra or {})
        if self.full_name is not None:
            extra["full_name"] = self.full_name
        return extra


class SignInRequest(_Request):
    email: str = ""
    password: str = ""


class ChangePasswordRequest(_Request):
    current_password: str = Field(default="", alias="currentPassword")
    new_password: str = Field(default="", alias="newPassword")


class RoleUpdateRequest(_Request):
    role: str = ""


# ── Storage ──────────────────────────────────────────────────────────────


class RemoveRequest(_Request):
    paths: list[str] = Field(default_factory=list)


class SignedUrlRequest(_Request):
    path: str
    expires_in: int | None = Field(default=None, alias="expiresIn")


class CreateBucketRequest(_Request):
    id: str
    public: bool = False


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
