"""Health check models and the ``/health`` router factory.

Provides:

- **Response models**: ``HealthResponse``, ``CheckResult``, ``LivenessResponse``.
- **``HealthCheck``**: a declarative dependency check with ``required`` /
  ``timeout_s`` knobs.
- **``create_health_router()``**: ``/health``, ``/health/ready`` and
  ``/health/live`` for any FastAPI app.

The primary ``/health`` response also carries the migration status
(``{available, applied, pending, upToDate, lastApplied}``) when a
``migrations`` callable is supplied.  A failed startup migration shows up as
``degraded`` here instead of taking the process down.

Quick start::

    router = create_health_router(
        service_name="folio-core",
        version="0.1.0",
        checks=[HealthCheck("database", runtime.database_ping)],
        migrations=runtime.migration_report,
    )
    app.include_router(router)
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any, Literal

from pydantic import BaseModel, Field

# Module-level start time, set on first import.
_START_TIME = time.monotonic()

Status = Literal["healthy", "degraded", "unhealthy"]


# ── Response Models ──────────────────────────────────────────────────────


class CheckResult(BaseModel):
    """Result of a single dependency health check."""

    status: Status
    latency_ms: float | None = None
    error: str | None = None
    details: dict[str, Any] = Field(default_factory=dict)


class HealthResponse(BaseModel):
    """``GET /health`` body.

    Fields
    ──────
    status     : ``healthy`` | ``degraded`` | ``unhealthy``
    service    : Human-readable service name
    version    : Semver string
    uptime_s   : Seconds since startup
    timestamp  : ISO-8601 UTC
    checks     : Per-dependency breakdown (name → CheckResult)
    migrations : Migration status, or ``{"error": ...}`` when unavailable
    """

    status: Status = "healthy"
    service: str = ""
    version: str = ""
    uptime_s: float = Field(default_factory=lambda: round(time.monotonic() - _START_TIME, 1))
    timestamp: str = Field(default_factory=lambda: datetime.now(UTC).isoformat())
    checks: dict[str, CheckResult] = Field(default_factory=dict)
    migrations: dict[str, Any] | None = None


class LivenessResponse(BaseModel):
    """Response for liveness checks; always ``{"status": "alive"}``."""

    status: str = "alive"


# ── Health Check Definition ──────────────────────────────────────────────


@dataclass
class HealthCheck:
    """Declarative description of a single dependency health check.

    Parameters
    ----------
    name : str
        Dependency name (e.g. ``"database"``, ``"storage"``).
    check_fn : () -> Awaitable[bool]
        Async callable.  Returns ``True``, or ``False`` / raises on failure.
    required : bool
        If *True* (default), failure makes the overall status ``unhealthy``.
        If *False*, failure only causes ``degraded``.
    timeout_s : float
        Max seconds to wait before the check is considered failed.
    """

    name: str
    check_fn: Callable[[], Awaitable[bool]]
    required: bool = True
    timeout_s: float = 5.0


MigrationReport = Callable[[], Awaitable[dict[str, Any]]]


# ── Internal helpers ─────────────────────────────────────────────────────


async def _run_checks(checks: list[HealthCheck]) -> dict[str, CheckResult]:
    """Execute all checks in parallel and return a mapping of name → result."""

    async def _one(hc: HealthCheck) -> tuple[str, CheckResult]:
        start = time.monotonic()
        try:
            ok = await asyncio.wait_for(hc.check_fn(), timeout=hc.timeout_s)
        except TimeoutError:
            return hc.name, CheckResult(status="unhealthy", error="timeout")
        except Exception as exc:  # noqa: BLE001
            elapsed = (time.monotonic() - start) * 1000
            return hc.name, CheckResult(status="unhealthy", latency_ms=round(elapsed, 2), error=str(exc)[:200])
        elapsed = round((time.monotonic() - start) * 1000, 2)
        if ok is False:
            return hc.name, CheckResult(status="unhealthy", latency_ms=elapsed, error="check failed")
        return hc.name, CheckResult(status="healthy", latency_ms=elapsed)

    pairs = await asyncio.gather(*[_one(hc) for hc in checks])
    return dict(pairs)


def _compute_status(check_results: dict[str, CheckResult], checks: list[HealthCheck]) -> Status:
    """Derive aggregate status from individual check results."""
    check_map = {hc.name: hc for hc in checks}
    any_required_down = False
    any_optional_down = False

    for name, result in check_results.items():
        if result.status != "healthy":
            hc = check_map.get(name)
            if hc and hc.required:
                any_required_down = True
            else:
                any_optional_down = True

    if any_required_down:
        return "unhealthy"
    if any_optional_down:
        return "degraded"
    return "healthy"


async def _migration_report(report: MigrationReport | None) -> dict[str, Any] | None:
    if report is None:
        return None
    try:
        return await report()
    except Exception as exc:  # noqa: BLE001
        return {"error": "Migration status unavailable", "detail": str(exc)[:200]}


def _degrade_for_migrations(status: Status, migrations: dict[str, Any] | None) -> Status:
    if status == "healthy" and migrations and (migrations.get("error") or migrations.get("failed")):
        return "degraded"
    return status


# ── Router Factory ───────────────────────────────────────────────────────


def create_health_router(
    service_name: str,
    version: str,
    checks: list[HealthCheck] | None = None,
    prefix: str = "/health",
    migrations: MigrationReport | None = None,
):
    """Create a FastAPI ``APIRouter`` with the health endpoints.

    Endpoints created
    -----------------
    ``GET {prefix}``         Primary health: checks plus migration status.
    ``GET {prefix}/ready``   Readiness check: 503 unless everything is healthy.
    ``GET {prefix}/live``    Liveness check: always 200.
    """
    from fastapi import APIRouter  # noqa: PLC0415
    from fastapi.responses import JSONResponse  # noqa: PLC0415

    router = APIRouter(tags=["health"])
    _checks: list[HealthCheck] = checks or []

    def _make_response(
        status: Status, check_results: dict[str, CheckResult], migration_info: dict[str, Any] | None
    ) -> HealthResponse:
        return HealthResponse(
            status=status,
            service=service_name,
            version=version,
            uptime_s=round(time.monotonic() - _START_TIME, 1),
            timestamp=datetime.now(UTC).isoformat(),
            checks=check_results,
            migrations=migration_info,
        )

    async def _evaluate() -> HealthResponse:
        check_results = await _run_checks(_checks)
        migration_info = await _migration_report(migrations)
        status = _degrade_for_migrations(_compute_status(check_results, _checks), migration_info)
        return _make_response(status, check_results, migration_info)

    @router.get(prefix, response_model=HealthResponse)
    async def health() -> JSONResponse:
        """Primary health: dependency checks plus migration status."""
        body = await _evaluate()
        code = 503 if body.status == "unhealthy" else 200
        return JSONResponse(content=body.model_dump(), status_code=code)

    @router.get(f"{prefix}/ready", response_model=HealthResponse)
    async def readiness() -> JSONResponse:
        """Readiness check: 503 unless every check and the migrations are healthy."""
        body = await _evaluate()
        code = 503 if body.status != "healthy" else 200
        return JSONResponse(content=body.model_dump(), status_code=code)

    @router.get(f"{prefix}/live", response_model=LivenessResponse)
    async def liveness() -> LivenessResponse:
        """Liveness check: always 200 while the process is running."""
        return LivenessResponse()

    return router


__all__ = [
    "CheckResult",
    "HealthCheck",
    "HealthResponse",
    "LivenessResponse",
    "create_health_router",
]
