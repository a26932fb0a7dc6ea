"""
Tests for the startup migration engine (SQLite).
"""

from __future__ import annotations

import pytest

from folio.core.errors import NotFoundError
from folio.migrations.engine import MigrationEngine, MigrationState

SCHEMA = """
CREATE TABLE albums (id INTEGER PRIMARY KEY, name TEXT);
CREATE TABLE photos (id INTEGER PRIMARY KEY, album_id INTEGER, caption TEXT);
"""

M001 = "CREATE TABLE albums (id INTEGER PRIMARY KEY, name TEXT);"
M002 = "CREATE TABLE photos (id INTEGER PRIMARY KEY, album_id INTEGER);"
M003 = "ALTER TABLE photos ADD COLUMN caption TEXT;"


@pytest.fixture
def layout(tmp_path):
    migrations = tmp_path / "migrations"
    migrations.mkdir()
    (migrations / "001_albums.sql").write_text(M001)
    (migrations / "002_photos.sql").write_text(M002)
    (migrations / "003_captions.sql").write_text(M003)
    schema = tmp_path / "complete-schema.sql"
    schema.write_text(SCHEMA)
    return migrations, schema


def make_engine(database, layout, **kwargs):
    migrations, schema = layout
    return MigrationEngine(database, migrations, schema, core_tables=("albums",), **kwargs)


async def columns(database, table):
    rows = await database.fetch_all(f"PRAGMA table_info({table})")
    return [row["name"] for row in rows]


async def test_fresh_install_applies_schema_and_baselines(database, layout):
    engine = make_engine(database, layout)
    result = await engine.run()

    assert result.success
    assert result.mode == "fresh_install"
    assert result.applied == ["001_albums", "002_photos", "003_captions"]
    assert "caption" in await columns(database, "photos")
    assert engine.state is MigrationState.UP_TO_DATE

    status = await engine.status()
    assert status.up_to_date
    assert status.applied == 3
    assert status.last_applied == "003_captions"


async def test_second_run_applies_nothing(database, layout):
    engine = make_engine(database, layout)
    await engine.run()
    again = await engine.run()
    assert again.success
    assert again.mode == "incremental"
    assert again.applied == []
    assert again.pending == 0


async def test_incremental_applies_pending_in_order(database, layout):
    migrations, _ = layout
    (migrations / "001_albums.sql").write_text("CREATE TABLE IF NOT EXISTS albums (id INTEGER PRIMARY KEY, name TEXT);")
    await database.execute(M001)
    engine = make_engine(database, layout)

    result = await engine.run()
    assert result.mode == "incremental"
    assert result.applied == ["001_albums", "002_photos", "003_captions"]
    assert result.total == 3
    assert "caption" in await columns(database, "photos")


async def test_incremental_run_records_checksums(database, layout):
    engine = make_engine(database, layout)
    migrations, _ = layout
    (migrations / "004_notes.sql").write_text("CREATE TABLE notes (id INTEGER PRIMARY KEY);")
    await database.execute(SCHEMA.split(";")[0])
    await database.execute(SCHEMA.split(";")[1])
    await database.execute(
        "CREATE TABLE schema_migrations (version VARCHAR(255) PRIMARY KEY, "
        "applied_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP, checksum VARCHAR(255))"
    )
    for version in ("001_albums", "002_photos", "003_captions"):
        await database.execute("INSERT INTO schema_migrations (version) VALUES (:v)", {"v": version})

    result = await engine.run()
    assert result.success
    assert result.applied == ["004_notes"]

    record = await database.fetch_one("SELECT checksum FROM schema_migrations WHERE version = '004_notes'")
    assert len(record["checksum"]) == 64


async def test_failure_stops_at_first_bad_migration(database, layout):
    migrations, _ = layout
    (migrations / "002_photos.sql").write_text("CREATE TABLE photos (id INTEGER PRIMARY KEY); SELEKT broken;")
    await database.execute("CREATE TABLE albums (id INTEGER PRIMARY KEY, name TEXT)")
    (migrations / "001_albums.sql").write_text("CREATE TABLE IF NOT EXISTS albums (id INTEGER PRIMARY KEY);")

    engine = make_engine(database, layout)
    result = await engine.run()

    assert not result.success
    assert result.applied == ["001_albums"]
    assert result.failed_version == "002_photos"
    assert result.error
    assert engine.state is MigrationState.FAILED

    status = await engine.status()
    assert status.pending_versions == ["002_photos", "003_captions"]
    assert not status.up_to_date


async def test_non_utf8_migration_is_a_contained_failure(database, layout):
    migrations, _ = layout
    (migrations / "001_albums.sql").write_text("CREATE TABLE IF NOT EXISTS albums (id INTEGER PRIMARY KEY);")
    (migrations / "002_photos.sql").write_bytes(b"\xff\xfeCREATE TABLE photos (id INTEGER);")
    await database.execute("CREATE TABLE albums (id INTEGER PRIMARY KEY, name TEXT)")

    engine = make_engine(database, layout)
    result = await engine.run()

    assert not result.success
    assert result.applied == ["001_albums"]
    assert result.failed_version == "002_photos"
    assert "utf-8" in result.error
    assert engine.state is MigrationState.FAILED


async def test_non_utf8_schema_fails_fresh_install(database, layout):
    _, schema = layout
    schema.write_bytes(b"CREATE TABLE albums (id INTEGER); \xff")

    engine = make_engine(database, layout)
    result = await engine.run()

    assert not result.success
    assert result.mode == "fresh_install"
    assert "utf-8" in result.error
    assert engine.state is MigrationState.FAILED


async def test_tracking_table_writes_are_skipped(database, layout):
    migrations, _ = layout
    (migrations / "001_albums.sql").write_text(
        "CREATE TABLE IF NOT EXISTS albums (id INTEGER PRIMARY KEY);\n"
        "INSERT INTO schema_migrations (version) VALUES ('999_fake');"
    )
    await database.execute("CREATE TABLE albums (id INTEGER PRIMARY KEY)")
    engine = make_engine(database, layout)
    await engine.run(fresh=False)

    versions = [r.version for r in await engine.applied_records()]
    assert "999_fake" not in versions


async def test_drift_is_reported_and_reapply_refreshes_checksum(database, layout):
    migrations, _ = layout
    engine = make_engine(database, layout)
    await engine.run()

    (migrations / "003_captions.sql").write_text("CREATE TABLE IF NOT EXISTS captions (id INTEGER PRIMARY KEY);")
    status = await engine.status()
    assert status.drifted == ["003_captions"]

    result = await engine.reapply("003_captions")
    assert result.success
    assert await database.table_exists("captions")
    assert (await engine.status()).drifted == []

    rows = await database.fetch_all("SELECT version FROM schema_migrations WHERE version = '003_captions'")
    assert len(rows) == 1


async def test_reapply_unknown_version(database, layout):
    engine = make_engine(database, layout)
    with pytest.raises(NotFoundError):
        await engine.reapply("999_missing")


async def test_missing_schema_file_fails_fresh_install(database, layout, tmp_path):
    migrations, _ = layout
    engine = MigrationEngine(database, migrations, tmp_path / "absent.sql", core_tables=("albums",))
    result = await engine.run()
    assert not result.success
    assert "Complete schema file not found" in result.error


async def test_explicit_fresh_flag_overrides_table_check(database, layout):
    await database.execute("CREATE TABLE unrelated (id INTEGER)")
    engine = make_engine(database, layout, fresh_install=True)
    result = await engine.run()
    assert result.mode == "fresh_install"


async def test_result_and_status_wire_shapes(database, layout):
    engine = make_engine(database, layout)
    result = (await engine.run()).to_dict()
    assert result["success"] is True
    assert result["type"] == "fresh_install"
    assert result["applied"] == 3

    status = (await engine.status()).to_dict()
    assert status["upToDate"] is True
    assert status["lastApplied"] == "003_captions"
