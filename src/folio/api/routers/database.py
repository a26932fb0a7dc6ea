"""
Generic data endpoint.

POST /database    QueryDescriptor JSON -> envelope

The body is handed to the compiler unchanged; malformed descriptors come
back as ``INVALID_ARGUMENT`` without touching the database.  Protected
tables (``users``, ``schema_migrations`` by default) are refused.

Tags:
    folio-core, api, database, query-descriptor
"""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Body, Request
from fastapi.responses import JSONResponse

from folio.api.deps import AppRuntime, CurrentPrincipal
from folio.api.middleware.errors import envelope_response
from folio.api.schemas.common import EnvelopeBody
from folio.core.logging import get_logger

logger = get_logger(__name__)

router = APIRouter(prefix="/database")


@router.post("", response_model=EnvelopeBody)
async def run_query(
    request: Request,
    runtime: AppRuntime,
    principal: CurrentPrincipal,
    payload: Any = Body(...),
) -> JSONResponse:
    """Compile and execute one query descriptor."""
    if isinstance(payload, dict):
        logger.debug(
            "database.request",
            table=payload.get("table"),
            operation=payload.get("operation"),
            user_id=principal.user_id,
        )
    envelope = await runtime.executor.execute(payload)
    return envelope_response(request, envelope)
