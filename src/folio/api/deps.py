"""
FastAPI dependencies: the shared runtime and the request's principal.

Usage in routers::

    from folio.api.deps import AppRuntime, CurrentPrincipal

    @router.get("/things")
    async def list_things(runtime: AppRuntime, principal: CurrentPrincipal):
        ...

The runtime is built once per app (``app.state.runtime``); the principal
was decoded by :class:`~folio.api.middleware.auth.AuthMiddleware`.
"""

from __future__ import annotations

from typing import Annotated

from fastapi import Depends, Request

from folio.auth.models import Principal
from folio.core.errors import UnauthorizedError
from folio.core.settings import FolioSettings
from folio.runtime import Runtime


def get_runtime(request: Request) -> Runtime:
    return request.app.state.runtime


def get_settings(request: Request) -> FolioSettings:
    return request.app.state.settings


def get_optional_principal(request: Request) -> Principal | None:
    return getattr(request.state, "principal", None)


def get_principal(principal: Annotated[Principal | None, Depends(get_optional_principal)]) -> Principal:
    if principal is None:
        raise UnauthorizedError("Access token required")
    return principal


async def get_admin(
    runtime: Annotated[Runtime, Depends(get_runtime)],
    principal: Annotated[Principal, Depends(get_principal)],
) -> Principal:
    """Require the caller to be an admin, checked against the stored role."""
    await runtime.auth.require_admin(principal)
    return principal


# ── Convenience type aliases ─────────────────────────────────────────────

AppRuntime = Annotated[Runtime, Depends(get_runtime)]
Settings = Annotated[FolioSettings, Depends(get_settings)]
OptionalPrincipal = Annotated[Principal | None, Depends(get_optional_principal)]
CurrentPrincipal = Annotated[Principal, Depends(get_principal)]
AdminPrincipal = Annotated[Principal, Depends(get_admin)]
