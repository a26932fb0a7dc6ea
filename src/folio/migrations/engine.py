"""
Startup schema migration engine.

Manifesto:
    Every deployment must converge on the same schema without manual DDL.
    A brand-new database gets the complete schema in one step and is then
    baselined; an existing database receives only the migrations it has not
    seen, strictly in filename order, each in its own transaction.

Architecture:
    ::

        run()
          │
          ├── fresh? (explicit flag, or none of the core tables exist)
          │     └── _fresh_install: complete-schema.sql → baseline every
          │         available migration as applied (version + checksum)
          │
          └── _incremental: ensure schema_migrations → pending = available − applied
                └── for each pending, in order:
                      split → drop tracking-table writes → execute → record
                      stop at the first failure (FAILED)

        States: UNINITIALIZED → FRESH_INSTALL | INCREMENTAL → UP_TO_DATE
                                              └────────────→ FAILED

    Runs are serialized by an :class:`asyncio.Lock`.  A failed run never
    raises out of :meth:`MigrationEngine.run`; the host process keeps
    starting and the failure is reported through :meth:`status` and the
    health endpoint.

Examples:
    >>> async def migrate(database, settings):
    ...     engine = MigrationEngine.from_settings(database, settings)
    ...     result = await engine.run()
    ...     return result.success, (await engine.status()).up_to_date

Tags:
    folio-core, migrations, schema, checksum, fresh-install

Doc-Types:
    api-reference
"""

from __future__ import annotations

import asyncio
import hashlib
from collections.abc import Iterable
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any

from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncConnection

from folio.core.database import Database, driver_message
from folio.core.errors import MigrationFailure, NotFoundError
from folio.core.logging import get_logger
from folio.migrations.sql import is_tracking_write, split_statements

logger = get_logger(__name__)

TRACKING_TABLE = "schema_migrations"

# driver failures, unreadable files and files that are not UTF-8 text
_RUN_ERRORS = (SQLAlchemyError, OSError, UnicodeError)

DEFAULT_CORE_TABLES = ("albums", "photos", "profiles", "site_settings")

# one schema tree per dialect: <dialect>/complete-schema.sql, <dialect>/migrations/*.sql
BUNDLED_SCHEMA_DIR = Path(__file__).resolve().parent.parent / "schema"

_CREATE_TRACKING_TABLE = f"""
CREATE TABLE IF NOT EXISTS {TRACKING_TABLE} (
    version VARCHAR(255) PRIMARY KEY,
    applied_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
    checksum VARCHAR(255)
)
"""

_RECORD_MIGRATION = f"""
INSERT INTO {TRACKING_TABLE} (version, checksum) VALUES (:version, :checksum)
ON CONFLICT (version) DO UPDATE SET applied_at = CURRENT_TIMESTAMP, checksum = excluded.checksum
"""


class MigrationState(str, Enum):
    UNINITIALIZED = "uninitialized"
    FRESH_INSTALL = "fresh_install"
    INCREMENTAL = "incremental"
    UP_TO_DATE = "up_to_date"
    FAILED = "failed"


@dataclass(frozen=True)
class MigrationFile:
    """A migration script on disk; ``version`` is the filename without ``.sql``."""

    version: str
    path: Path

    def read(self) -> str:
        return self.path.read_text(encoding="utf-8")

    def checksum(self) -> str:
        return hashlib.sha256(self.path.read_bytes()).hexdigest()


@dataclass
class MigrationRecord:
    """Row of the tracking table."""

    version: str
    applied_at: Any
    checksum: str | None

    def to_dict(self) -> dict[str, Any]:
        applied_at = self.applied_at.isoformat() if hasattr(self.applied_at, "isoformat") else self.applied_at
        return {"version": self.version, "appliedAt": applied_at, "checksum": self.checksum}


@dataclass
class MigrationResult:
    """Outcome of a migration run."""

    mode: str
    applied: list[str] = field(default_factory=list)
    total: int = 0
    pending: int = 0
    failed_version: str | None = None
    error: str | None = None

    @property
    def success(self) -> bool:
        return self.error is None

    def to_error(self) -> MigrationFailure | None:
        if self.error is None:
            return None
        return MigrationFailure(self.failed_version or self.mode, self.error)

    def to_dict(self) -> dict[str, Any]:
        return {
            "success": self.success,
            "type": self.mode,
            "applied": len(self.applied),
            "appliedVersions": list(self.applied),
            "total": self.total,
            "pending": self.pending,
            "failedVersion": self.failed_version,
            "error": self.error,
        }


@dataclass
class MigrationStatus:
    available: int
    applied: int
    pending: int
    up_to_date: bool
    last_applied: str | None
    drifted: list[str] = field(default_factory=list)
    pending_versions: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "available": self.available,
            "applied": self.applied,
            "pending": self.pending,
            "upToDate": self.up_to_date,
            "lastApplied": self.last_applied,
            "drifted": list(self.drifted),
            "pendingVersions": list(self.pending_versions),
        }


class MigrationEngine:
    """Applies SQL migrations from a directory and tracks them in ``schema_migrations``.

    Parameters
    ----------
    database
        The shared :class:`~folio.core.database.Database`.
    migrations_dir
        Directory of ``<version>.sql`` files; lexical filename order is apply order.
    schema_file
        Complete schema document used only for fresh installs.
    core_tables
        Tables whose joint absence marks a database as fresh.
    fresh_install
        Force the fresh-install path regardless of the core-table check.
    """

    def __init__(
        self,
        database: Database,
        migrations_dir: Path | str,
        schema_file: Path | str | None = None,
        *,
        core_tables: Iterable[str] = DEFAULT_CORE_TABLES,
        fresh_install: bool = False,
    ) -> None:
        self._db = database
        self._migrations_dir = Path(migrations_dir)
        self._schema_file = Path(schema_file) if schema_file else None
        self._core_tables = tuple(core_tables)
        self._fresh_install = fresh_install
        self._lock = asyncio.Lock()
        self._state = MigrationState.UNINITIALIZED
        self._last_result: MigrationResult | None = None

    @classmethod
    def from_settings(cls, database: Database, settings: Any) -> MigrationEngine:
        """Use the configured paths, falling back to the bundled schema for the database dialect."""
        bundled = BUNDLED_SCHEMA_DIR / database.dialect.name
        return cls(
            database,
            settings.migrations_dir or bundled / "migrations",
            settings.schema_file or bundled / "complete-schema.sql",
            core_tables=settings.core_tables,
            fresh_install=settings.fresh_install,
        )

    @property
    def state(self) -> MigrationState:
        return self._state

    @property
    def last_result(self) -> MigrationResult | None:
        return self._last_result

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def run(self, *, fresh: bool | None = None) -> MigrationResult:
        """Bring the schema up to date.

        ``fresh=True`` forces a fresh install, ``fresh=False`` forbids it;
        ``None`` uses the configured flag and the core-table check.
        """
        async with self._lock:
            try:
                if fresh is None:
                    fresh = self._fresh_install or await self.is_database_fresh()
                if fresh:
                    self._state = MigrationState.FRESH_INSTALL
                    result = await self._fresh_install_run()
                else:
                    self._state = MigrationState.INCREMENTAL
                    result = await self._incremental_run()
            except _RUN_ERRORS as exc:
                logger.error("migration.run_failed", error=driver_message(exc))
                result = MigrationResult(mode=self._state.value, error=driver_message(exc))

            self._state = MigrationState.UP_TO_DATE if result.success else MigrationState.FAILED
            self._last_result = result
            return result

    async def status(self) -> MigrationStatus:
        available = self.available_migrations()
        records = await self.applied_records()
        applied_versions = {r.version for r in records}
        pending = [m.version for m in available if m.version not in applied_versions]

        on_disk = {m.version: m for m in available}
        drifted = [
            r.version
            for r in records
            if r.checksum and r.version in on_disk and on_disk[r.version].checksum() != r.checksum
        ]

        return MigrationStatus(
            available=len(available),
            applied=len(records),
            pending=len(pending),
            up_to_date=not pending,
            last_applied=records[-1].version if records else None,
            drifted=drifted,
            pending_versions=pending,
        )

    async def reapply(self, version: str) -> MigrationResult:
        """Re-execute one migration file and refresh its tracking record."""
        migration = next((m for m in self.available_migrations() if m.version == version), None)
        if migration is None:
            raise NotFoundError(f"Migration {version!r} not found in {self._migrations_dir}")

        async with self._lock:
            async with self._db.transaction() as conn:
                await conn.execute(text(_CREATE_TRACKING_TABLE))
            result = MigrationResult(mode="reapply", total=1, pending=1)
            await self._apply_one(migration, result)
            self._last_result = result
            return result

    async def is_database_fresh(self) -> bool:
        """True when none of the core tables exist."""
        for table in self._core_tables:
            if await self._db.table_exists(table):
                return False
        return True

    def available_migrations(self) -> list[MigrationFile]:
        if not self._migrations_dir.is_dir():
            return []
        return [
            MigrationFile(version=path.stem, path=path)
            for path in sorted(self._migrations_dir.glob("*.sql"), key=lambda p: p.name)
        ]

    async def applied_records(self) -> list[MigrationRecord]:
        if not await self._db.table_exists(TRACKING_TABLE):
            return []
        rows = await self._db.fetch_all(
            f"SELECT version, applied_at, checksum FROM {TRACKING_TABLE} ORDER BY version"
        )
        return [MigrationRecord(version=r["version"], applied_at=r["applied_at"], checksum=r["checksum"]) for r in rows]

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    async def _fresh_install_run(self) -> MigrationResult:
        available = self.available_migrations()
        result = MigrationResult(mode=MigrationState.FRESH_INSTALL.value, total=len(available))

        if self._schema_file is None or not self._schema_file.is_file():
            result.error = f"Complete schema file not found: {self._schema_file}"
            logger.error("migration.fresh_install_failed", error=result.error)
            return result

        logger.info("migration.fresh_install_started", schema=str(self._schema_file))
        try:
            statements = self._prepare(self._schema_file.read_text(encoding="utf-8"), self._schema_file.name)
            async with self._db.transaction() as conn:
                for statement in statements:
                    await conn.exec_driver_sql(statement)
                await conn.execute(text(_CREATE_TRACKING_TABLE))
                for migration in available:
                    await self._record(conn, migration)
        except _RUN_ERRORS as exc:
            result.error = driver_message(exc)
            logger.error("migration.fresh_install_failed", error=result.error)
            return result

        result.applied = [m.version for m in available]
        logger.info("migration.fresh_install_completed", baselined=len(available))
        return result

    async def _incremental_run(self) -> MigrationResult:
        async with self._db.transaction() as conn:
            await conn.execute(text(_CREATE_TRACKING_TABLE))

        available = self.available_migrations()
        applied = {r.version for r in await self.applied_records()}
        pending = [m for m in available if m.version not in applied]

        result = MigrationResult(
            mode=MigrationState.INCREMENTAL.value, total=len(available), pending=len(pending)
        )
        logger.info(
            "migration.status",
            available=len(available),
            applied=len(applied),
            pending=len(pending),
        )

        for migration in pending:
            if not await self._apply_one(migration, result):
                break

        if result.success and pending:
            logger.info("migration.completed", applied=len(result.applied), pending=len(pending))
        return result

    async def _apply_one(self, migration: MigrationFile, result: MigrationResult) -> bool:
        try:
            statements = self._prepare(migration.read(), migration.version)
            async with self._db.transaction() as conn:
                for statement in statements:
                    await conn.exec_driver_sql(statement)
                await self._record(conn, migration)
        except _RUN_ERRORS as exc:
            result.failed_version = migration.version
            result.error = driver_message(exc)
            logger.error("migration.failed", migration=migration.version, error=result.error)
            return False

        result.applied.append(migration.version)
        logger.info("migration.applied", migration=migration.version)
        return True

    def _prepare(self, script: str, source: str) -> list[str]:
        kept: list[str] = []
        for statement in split_statements(script):
            if is_tracking_write(statement, TRACKING_TABLE):
                logger.warning("migration.tracking_write_skipped", source=source)
                continue
            kept.append(statement)
        return kept

    async def _record(self, conn: AsyncConnection, migration: MigrationFile) -> None:
        await conn.execute(
            text(_RECORD_MIGRATION),
            {"version": migration.version, "checksum": migration.checksum()},
        )


__all__ = [
    "MigrationEngine",
    "MigrationFile",
    "MigrationRecord",
    "MigrationResult",
    "MigrationState",
    "MigrationStatus",
    "BUNDLED_SCHEMA_DIR",
    "TRACKING_TABLE",
]
