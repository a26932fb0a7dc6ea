"""
Process-wide service container.

A :class:`Runtime` is built once per process from :class:`FolioSettings`
and shared by every request handler and by the in-process client adapter.

Startup order (``await runtime.start()``):
    1. run the migration engine (a failure is logged and reported by
       ``/health``; the process still starts)
    2. create any missing default storage buckets

Tags:
    folio-core, runtime, lifecycle, dependency-container
"""

from __future__ import annotations

from typing import Any

from folio.auth.models import Principal
from folio.auth.service import AuthService
from folio.core.database import Database
from folio.core.envelope import Envelope
from folio.core.logging import get_logger
from folio.core.settings import FolioSettings, get_settings
from folio.functions import FunctionRegistry, builtin_functions
from folio.mail import Mailer, SmtpMailer
from folio.migrations.engine import MigrationEngine, MigrationResult
from folio.query.executor import QueryExecutor
from folio.query.identifiers import IdentifierPolicy
from folio.storage import ObjectStore, StorageService, create_object_store

logger = get_logger(__name__)


class Runtime:
    def __init__(
        self,
        settings: FolioSettings | None = None,
        *,
        database: Database | None = None,
        store: ObjectStore | None = None,
        functions: FunctionRegistry | None = None,
        mailer: Mailer | None = None,
    ):
        self.settings = settings or get_settings()
        self.database = database or Database.from_settings(self.settings)
        self.migrations = MigrationEngine.from_settings(self.database, self.settings)
        self.executor = QueryExecutor(self.database, IdentifierPolicy.from_settings(self.settings))
        self.auth = AuthService.from_settings(self.database, self.settings)
        self.storage = StorageService.from_settings(store or create_object_store(self.settings), self.settings)
        self.functions = functions or builtin_functions
        self.mailer = mailer if mailer is not None else SmtpMailer.from_settings(self.settings)
        self._started = False

    @property
    def started(self) -> bool:
        return self._started

    async def start(self) -> MigrationResult | None:
        """Bring the schema up to date and provision default buckets."""
        result = None
        if self.settings.run_migrations_on_startup:
            result = await self.migrations.run()
            if result.success:
                logger.info("runtime.migrations_complete", **result.to_dict())
            else:
                logger.error("runtime.migrations_failed", **result.to_dict())
        await self.storage.ensure_default_buckets()
        self._started = True
        logger.info("runtime.started", database=self.database.dialect.name, storage=self.storage.store.backend_name)
        return result

    async def close(self) -> None:
        await self.database.dispose()
        self._started = False
        logger.info("runtime.closed")

    async def __aenter__(self) -> Runtime:
        await self.start()
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()

    async def invoke_function(
        self, name: str, body: dict[str, Any] | None, principal: Principal | None = None
    ) -> Envelope:
        return await self.functions.invoke(
            name, body, database=self.database, principal=principal, mailer=self.mailer
        )

    async def database_ping(self) -> bool:
        return (await self.database.health_check())["healthy"]

    async def storage_ping(self) -> bool:
        return (await self.storage.health_check())["healthy"]

    async def migration_report(self) -> dict[str, Any]:
        """Migration status plus the outcome of the last failed run, if any."""
        report = (await self.migrations.status()).to_dict()
        report["state"] = self.migrations.state.value
        last = self.migrations.last_result
        if last is not None and not last.success:
            report["failed"] = last.to_dict()
        return report


__all__ = ["Runtime"]
