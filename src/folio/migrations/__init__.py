"""Schema migration engine for folio-core.

Applies ``<version>.sql`` files in filename order, tracking applied versions
and their SHA-256 checksums in ``schema_migrations``.  A fresh database gets
the complete schema and a baseline instead of a replay.

Modules
-------
engine   MigrationEngine with run() / status() / reapply()
sql      statement splitter aware of comments, quotes and dollar quoting

Tags:
    folio-core, migrations, schema, database, DDL

Doc-Types:
    package-overview
"""

from folio.migrations.engine import (
    MigrationEngine,
    MigrationResult,
    MigrationState,
    MigrationStatus,
)

__all__ = ["MigrationEngine", "MigrationResult", "MigrationState", "MigrationStatus"]
