"""
Tests for QueryExecutor against a real SQLite database.
"""

from __future__ import annotations

import pytest

from folio.query.executor import QueryExecutor
from folio.query.identifiers import IdentifierPolicy

DDL = """
CREATE TABLE albums (
    id INTEGER PRIMARY KEY,
    name TEXT NOT NULL,
    slug TEXT NOT NULL UNIQUE,
    sort_order INTEGER NOT NULL DEFAULT 0,
    deleted_at TEXT
)
"""


@pytest.fixture
async def executor(database):
    await database.execute(DDL)
    ex = QueryExecutor(database, IdentifierPolicy(protected=["users", "schema_migrations"]))
    await ex.execute(
        {
            "table": "albums",
            "operation": "insert",
            "data": [
                {"name": "Dunes", "slug": "dunes", "sort_order": 2},
                {"name": "Coast", "slug": "coast", "sort_order": 1},
                {"name": "Forest", "slug": "forest", "sort_order": 3},
            ],
        }
    )
    return ex


async def test_insert_returns_rows(database):
    await database.execute(DDL)
    env = await QueryExecutor(database).execute(
        {"table": "albums", "operation": "insert", "data": {"name": "Night", "slug": "night"}}
    )
    assert env.is_ok()
    assert env.count == 1
    assert env.data[0]["slug"] == "night"
    assert env.data[0]["id"] is not None


async def test_select_ordered_window(executor):
    env = await executor.execute(
        {
            "table": "albums",
            "operation": "select",
            "select": "slug",
            "orderBy": [{"column": "sort_order"}],
            "range": {"from": 1, "to": 2},
        }
    )
    assert env.data == [{"slug": "dunes"}, {"slug": "forest"}]
    assert env.count == 2


async def test_in_and_ilike_filters(executor):
    env = await executor.execute(
        {
            "table": "albums",
            "operation": "select",
            "where": [
                {"column": "slug", "operator": "in", "value": ["dunes", "coast"]},
                {"column": "name", "operator": "ilike", "value": "%UNE%"},
            ],
        }
    )
    assert [row["slug"] for row in env.data] == ["dunes"]


async def test_single_semantics(executor):
    found = await executor.execute(
        {"table": "albums", "operation": "select", "where": [{"column": "slug", "value": "coast"}], "single": True}
    )
    assert found.data["name"] == "Coast"

    missing = await executor.execute(
        {"table": "albums", "operation": "select", "where": [{"column": "slug", "value": "nope"}], "single": True}
    )
    assert missing.error.code == "NOT_FOUND"

    many = await executor.execute({"table": "albums", "operation": "select", "single": True})
    assert many.error.code == "MULTIPLE_ROWS"


async def test_maybe_single_with_no_rows(executor):
    env = await executor.execute(
        {"table": "albums", "operation": "select", "where": [{"column": "slug", "value": "nope"}], "maybeSingle": True}
    )
    assert env.data is None
    assert env.error is None


async def test_unique_violation_is_conflict(executor):
    env = await executor.execute(
        {"table": "albums", "operation": "insert", "data": {"name": "Again", "slug": "dunes"}}
    )
    assert env.error.code == "CONFLICT"
    assert env.http_status == 409


async def test_update_and_delete_return_affected_rows(executor):
    updated = await executor.execute(
        {
            "table": "albums",
            "operation": "update",
            "data": {"name": "Dunes II"},
            "where": [{"column": "slug", "value": "dunes"}],
        }
    )
    assert [row["name"] for row in updated.data] == ["Dunes II"]

    deleted = await executor.execute(
        {"table": "albums", "operation": "delete", "where": [{"column": "sort_order", "operator": "gt", "value": 1}]}
    )
    assert deleted.count == 2

    remaining = await executor.execute({"table": "albums", "operation": "select"})
    assert [row["slug"] for row in remaining.data] == ["coast"]


async def test_unfiltered_delete_needs_confirmation(executor):
    refused = await executor.execute({"table": "albums", "operation": "delete"})
    assert refused.error.code == "INVALID_ARGUMENT"

    confirmed = await executor.execute({"table": "albums", "operation": "delete", "allowUnfiltered": True})
    assert confirmed.count == 3


async def test_upsert_updates_existing_row(executor):
    env = await executor.execute(
        {
            "table": "albums",
            "operation": "upsert",
            "data": {"slug": "coast", "name": "Coastline"},
            "conflictTarget": "slug",
        }
    )
    assert env.data[0]["name"] == "Coastline"
    rows = await executor.execute({"table": "albums", "operation": "select", "where": [{"column": "slug", "value": "coast"}]})
    assert rows.count == 1


async def test_protected_table_is_forbidden(executor):
    env = await executor.execute({"table": "users", "operation": "select"})
    assert env.error.code == "FORBIDDEN"


async def test_unknown_column_is_execution_error(executor):
    env = await executor.execute(
        {"table": "albums", "operation": "select", "where": [{"column": "missing", "value": 1}]}
    )
    assert env.error.code == "EXECUTION_ERROR"
    assert "missing" in env.error.message


async def test_malformed_descriptor(executor):
    env = await executor.execute({"operation": "select"})
    assert env.error.code == "INVALID_ARGUMENT"
    assert env.error.message == "Table and operation are required"


async def test_mistyped_filter_column_never_matches_everything(executor):
    env = await executor.execute(
        {"table": "albums", "operation": "delete", "where": [{"column": "nmae", "value": "nmae"}]}
    )
    assert env.error.code == "EXECUTION_ERROR"
    assert "nmae" in env.error.message

    remaining = await executor.execute({"table": "albums", "operation": "select"})
    assert remaining.count == 3


async def test_like_is_case_sensitive(executor):
    exact = await executor.execute(
        {"table": "albums", "operation": "select", "where": [{"column": "name", "operator": "like", "value": "Dun%"}]}
    )
    assert [row["slug"] for row in exact.data] == ["dunes"]

    lowered = await executor.execute(
        {"table": "albums", "operation": "select", "where": [{"column": "name", "operator": "like", "value": "dunes"}]}
    )
    assert lowered.data == []

    insensitive = await executor.execute(
        {"table": "albums", "operation": "select", "where": [{"column": "name", "operator": "ilike", "value": "dunes"}]}
    )
    assert [row["slug"] for row in insensitive.data] == ["dunes"]


async def test_select_after_mutation_limits_returned_columns(executor):
    inserted = await executor.execute(
        {"table": "albums", "operation": "insert", "data": {"name": "Sky", "slug": "sky"}, "select": "id, slug"}
    )
    assert list(inserted.data[0]) == ["id", "slug"]
    assert inserted.data[0]["slug"] == "sky"

    deleted = await executor.execute(
        {"table": "albums", "operation": "delete", "where": [{"column": "slug", "value": "sky"}], "select": "name"}
    )
    assert deleted.data == [{"name": "Sky"}]


async def test_json_column_round_trip(database):
    await database.execute("CREATE TABLE pages (id INTEGER PRIMARY KEY, title TEXT NOT NULL, meta JSON)")
    ex = QueryExecutor(database)
    meta = {"k": [1, 2], "seo": {"index": True, "title": None}}

    inserted = await ex.execute({"table": "pages", "operation": "insert", "data": {"title": "About", "meta": meta}})
    assert inserted.data[0]["meta"] == meta

    found = await ex.execute(
        {
            "table": "pages",
            "operation": "select",
            "where": [{"column": "id", "value": inserted.data[0]["id"]}],
            "single": True,
        }
    )
    assert found.data == {"id": inserted.data[0]["id"], "title": "About", "meta": meta}


async def test_json_column_keeps_null_and_plain_text(database):
    await database.execute("CREATE TABLE pages (id INTEGER PRIMARY KEY, meta JSON)")
    await database.execute("INSERT INTO pages (id, meta) VALUES (1, NULL), (2, 'not json')")

    env = await QueryExecutor(database).execute({"table": "pages", "operation": "select", "orderBy": [{"column": "id"}]})
    assert [row["meta"] for row in env.data] == [None, "not json"]
