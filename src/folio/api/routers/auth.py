"""
Auth router.

POST   /auth/signup             create an editor account
POST   /auth/signin             -> {access_token, token_type, expires_in, user}
POST   /auth/signout            record a sign-out (tokens are stateless)
GET    /auth/session            current session
GET    /auth/user               current user
PUT    /auth/change-password    {currentPassword, newPassword}
GET    /auth/users              admin: list active users
PUT    /auth/users/{id}/role    admin: {role}
DELETE /auth/users/{id}         admin: deactivate (soft delete)
"""

from __future__ import annotations

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from folio.api.deps import AppRuntime, CurrentPrincipal
from folio.api.middleware.errors import envelope_response
from folio.api.schemas.common import (
    ChangePasswordRequest,
    EnvelopeBody,
    RoleUpdateRequest,
    SignInRequest,
    SignUpRequest,
)
from folio.auth.tokens import bearer_token

router = APIRouter(prefix="/auth")


@router.post("/signup", response_model=EnvelopeBody, status_code=201)
async def sign_up(request: Request, runtime: AppRuntime, body: SignUpRequest) -> JSONResponse:
    envelope = await runtime.auth.sign_up(body.email, body.password, body.meta())
    return envelope_response(request, envelope, status_code=201)


@router.post("/signin", response_model=EnvelopeBody)
async def sign_in(request: Request, runtime: AppRuntime, body: SignInRequest) -> JSONResponse:
    return envelope_response(request, await runtime.auth.sign_in(body.email, body.password))


@router.post("/signout", response_model=EnvelopeBody)
async def sign_out(request: Request, runtime: AppRuntime, principal: CurrentPrincipal) -> JSONResponse:
    return envelope_response(request, await runtime.auth.sign_out(principal))


@router.get("/session", response_model=EnvelopeBody)
async def get_session(request: Request, runtime: AppRuntime, principal: CurrentPrincipal) -> JSONResponse:
    token = bearer_token(request.headers.get("Authorization"))
    return envelope_response(request, await runtime.auth.get_session(token))


@router.get("/user", response_model=EnvelopeBody)
async def get_user(request: Request, runtime: AppRuntime, principal: CurrentPrincipal) -> JSONResponse:
    return envelope_response(request, await runtime.auth.get_user(principal))


@router.put("/change-password", response_model=EnvelopeBody)
async def change_password(
    request: Request, runtime: AppRuntime, principal: CurrentPrincipal, body: ChangePasswordRequest
) -> JSONResponse:
    envelope = await runtime.auth.change_password(principal, body.current_password, body.new_password)
    return envelope_response(request, envelope)


@router.get("/users", response_model=EnvelopeBody)
async def list_users(request: Request, runtime: AppRuntime, principal: CurrentPrincipal) -> JSONResponse:
    return envelope_response(request, await runtime.auth.list_users(principal))


@router.put("/users/{user_id}/role", response_model=EnvelopeBody)
async def set_role(
    request: Request, runtime: AppRuntime, principal: CurrentPrincipal, user_id: str, body: RoleUpdateRequest
) -> JSONResponse:
    return envelope_response(request, await runtime.auth.set_role(principal, user_id, body.role))


@router.delete("/users/{user_id}", response_model=EnvelopeBody)
async def deactivate_user(
    request: Request, runtime: AppRuntime, principal: CurrentPrincipal, user_id: str
) -> JSONResponse:
    return envelope_response(request, await runtime.auth.deactivate(principal, user_id))
