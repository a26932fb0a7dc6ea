"""
Tests for database URL handling and engine options.
"""

from __future__ import annotations

import pytest

from folio.core import database as database_module
from folio.core.database import (
    normalize_database_url,
    postgres_connect_args,
    ssl_mode_from_url,
)
from folio.core.settings import FolioSettings


class TestNormalizeUrl:
    def test_postgres_scheme_gets_async_driver(self):
        assert normalize_database_url("postgres://u:pw@db/folio") == "postgresql+asyncpg://u:pw@db/folio"

    def test_sslmode_is_removed_but_other_query_kept(self):
        url = normalize_database_url("postgresql://db/folio?sslmode=require&application_name=folio")
        assert url == "postgresql+asyncpg://db/folio?application_name=folio"

    def test_sqlite_scheme_gets_async_driver(self):
        assert normalize_database_url("sqlite:///data/folio.db") == "sqlite+aiosqlite:///data/folio.db"


class TestSslOptions:
    def test_mode_read_from_url(self):
        assert ssl_mode_from_url("postgresql://db/folio?sslmode=verify-full") == "verify-full"
        assert ssl_mode_from_url("postgresql://db/folio") is None

    def test_url_sslmode_becomes_connect_arg(self):
        assert postgres_connect_args("postgresql://db/folio?sslmode=require") == {"ssl": "require"}

    def test_explicit_setting_wins(self):
        assert postgres_connect_args("postgresql://db/folio?sslmode=prefer", "verify-full") == {"ssl": "verify-full"}
        assert postgres_connect_args("postgresql://db/folio", True) == {"ssl": True}

    def test_no_tls_requested(self):
        assert postgres_connect_args("postgresql://db/folio") == {}
        assert postgres_connect_args("postgresql://db/folio", False) == {}

    @pytest.mark.parametrize(
        ("raw", "expected"),
        [("true", True), ("0", False), ("disable", False), ("REQUIRE", "require"), ("verify-full", "verify-full")],
    )
    def test_setting_parsing(self, monkeypatch, raw, expected):
        monkeypatch.setenv("FOLIO_DATABASE_SSL", raw)
        assert FolioSettings(_env_file=None).database_ssl == expected

    def test_engine_receives_ssl_from_url(self, monkeypatch):
        captured = {}

        def fake_create_async_engine(url, **kwargs):
            captured["url"] = url
            captured.update(kwargs)
            return object()

        monkeypatch.setattr(database_module, "create_async_engine", fake_create_async_engine)
        database_module.create_folio_engine("postgresql://db/folio?sslmode=require", pool_size=3)

        assert captured["url"] == "postgresql+asyncpg://db/folio"
        assert captured["connect_args"] == {"ssl": "require"}
        assert captured["pool_size"] == 3

    def test_engine_without_tls_has_no_connect_args(self, monkeypatch):
        captured = {}
        monkeypatch.setattr(
            database_module, "create_async_engine", lambda url, **kwargs: captured.update(kwargs) or object()
        )
        database_module.create_folio_engine("postgresql://db/folio")
        assert "connect_args" not in captured
