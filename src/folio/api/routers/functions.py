"""
Functions router.

POST /functions/{name}    invoke a registered server-side function

The body is the function's JSON input.  A bearer token is optional at the
HTTP layer; functions that need a caller reject anonymous invocations.
"""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Body, Request
from fastapi.responses import JSONResponse

from folio.api.deps import AppRuntime, OptionalPrincipal
from folio.api.middleware.errors import envelope_response
from folio.api.schemas.common import EnvelopeBody
from folio.core.envelope import Envelope

router = APIRouter(prefix="/functions")


@router.get("", response_model=EnvelopeBody)
async def list_functions(request: Request, runtime: AppRuntime) -> JSONResponse:
    names = runtime.functions.names()
    return envelope_response(request, Envelope.success(names, count=len(names)))


@router.post("/{name}", response_model=EnvelopeBody)
async def invoke_function(
    request: Request,
    runtime: AppRuntime,
    principal: OptionalPrincipal,
    name: str,
    body: Any = Body(default=None),
) -> JSONResponse:
    return envelope_response(request, await runtime.invoke_function(name, body, principal))
