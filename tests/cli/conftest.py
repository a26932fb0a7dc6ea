"""CLI fixtures: ``FOLIO_*`` environment pointing at a temporary database."""

from __future__ import annotations

from pathlib import Path

import pytest
from typer.testing import CliRunner


@pytest.fixture
def runner() -> CliRunner:
    return CliRunner()


@pytest.fixture
def cli_env(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    db_path = tmp_path / "cli.db"
    monkeypatch.setenv("FOLIO_DATABASE_URL", f"sqlite+aiosqlite:///{db_path}")
    monkeypatch.setenv("FOLIO_STORAGE_LOCAL_PATH", str(tmp_path / "storage"))
    monkeypatch.setenv("FOLIO_JWT_SECRET", "cli-test-secret")
    monkeypatch.setenv("FOLIO_BCRYPT_ROUNDS", "4")
    monkeypatch.setenv("FOLIO_LOG_LEVEL", "WARNING")
    monkeypatch.setenv("FOLIO_LOG_FORMAT", "console")
    monkeypatch.chdir(tmp_path)
    return tmp_path
