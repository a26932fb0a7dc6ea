"""
FastAPI application factory.

``create_app()`` wires middleware, routers, error handlers, and the
lifespan into a single ``FastAPI`` instance.  The :class:`~folio.runtime.Runtime`
is built here and started in the lifespan: migrations run before the first
request is served, and a migration failure is reported by ``/health``
instead of stopping the process.

Tags:
    folio-core, api, app-factory, composition-root, FastAPI
"""

from __future__ import annotations

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from folio.api.middleware.auth import AuthMiddleware
from folio.api.middleware.errors import install_error_handlers
from folio.api.middleware.rate_limit import RateLimitMiddleware
from folio.api.middleware.request_id import RequestIDMiddleware
from folio.api.middleware.timing import TimingMiddleware
from folio.api.middleware.upload_limit import UploadLimitMiddleware
from folio.api.routers import auth, database, functions, storage
from folio.core.health import HealthCheck, create_health_router
from folio.core.logging import configure_from_settings, get_logger
from folio.core.settings import FolioSettings, get_settings
from folio.runtime import Runtime

log = get_logger("folio.api")


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Start the runtime on startup; dispose the engine on shutdown."""
    runtime: Runtime = app.state.runtime
    configure_from_settings(app.state.settings, service="folio-api")
    log.info("api.starting", version=app.version)
    if not runtime.started:
        await runtime.start()
    yield
    log.info("api.shutting_down")
    if app.state.owns_runtime:
        await runtime.close()


def create_app(
    *,
    settings: FolioSettings | None = None,
    runtime: Runtime | None = None,
) -> FastAPI:
    """Build and return a fully-configured FastAPI application.

    Parameters
    ----------
    settings : FolioSettings | None
        Override settings (useful for testing).  When ``None`` the cached
        singleton from :func:`get_settings` is used.
    runtime : Runtime | None
        A pre-built runtime.  The app only closes runtimes it created.
    """
    settings = settings or (runtime.settings if runtime else get_settings())
    owns_runtime = runtime is None
    runtime = runtime or Runtime(settings)

    app = FastAPI(
        title=settings.api_title,
        version=settings.api_version,
        lifespan=lifespan,
    )

    app.state.settings = settings
    app.state.runtime = runtime
    app.state.owns_runtime = owns_runtime

    # ── Middleware (last added is outermost) ─────────────────────────
    app.add_middleware(
        AuthMiddleware,
        verify=runtime.auth.authenticate,
        is_public_bucket=runtime.storage.is_public,
    )
    app.add_middleware(UploadLimitMiddleware, max_bytes=lambda: runtime.storage.max_upload_bytes)
    app.add_middleware(
        RateLimitMiddleware,
        enabled=settings.rate_limit_enabled,
        requests=settings.rate_limit_requests,
        window_seconds=settings.rate_limit_window_seconds,
    )
    app.add_middleware(TimingMiddleware)
    app.add_middleware(RequestIDMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials="*" not in settings.cors_origins,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # ── Exception handlers ───────────────────────────────────────────
    install_error_handlers(app)

    # ── Routers ──────────────────────────────────────────────────────
    app.include_router(
        create_health_router(
            "folio-core",
            version=settings.api_version,
            checks=[
                HealthCheck("database", runtime.database_ping),
                HealthCheck("storage", runtime.storage_ping, required=False),
            ],
            migrations=runtime.migration_report,
        ),
        tags=["health"],
    )
    app.include_router(database.router, tags=["database"])
    app.include_router(auth.router, tags=["auth"])
    app.include_router(storage.router, tags=["storage"])
    app.include_router(functions.router, tags=["functions"])

    return app
