"""
Shared pytest fixtures for folio-core tests.

This module provides:
- ``settings``: an isolated :class:`FolioSettings` (SQLite file + storage
  directory under ``tmp_path``, fast bcrypt)
- ``database``: a bare :class:`Database` on that file
- ``runtime``: a started :class:`Runtime` (bundled SQLite schema applied,
  default buckets created)
- ``admin`` / ``editor``: signed-in accounts on that runtime

Usage:
    Fixtures are auto-discovered by pytest::

        async def test_something(runtime, admin):
            envelope = await runtime.auth.list_users(admin.principal)
"""

from __future__ import annotations

from collections.abc import AsyncIterator
from pathlib import Path

import pytest

from folio.core.database import Database
from folio.core.settings import FolioSettings, get_settings
from folio.runtime import Runtime
from tests._support.accounts import (
    ADMIN_EMAIL,
    ADMIN_PASSWORD,
    EDITOR_EMAIL,
    EDITOR_PASSWORD,
    Account,
    make_settings,
    sign_in_account,
)


@pytest.fixture(autouse=True)
def _clear_settings_cache():
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def settings(tmp_path: Path) -> FolioSettings:
    return make_settings(tmp_path)


@pytest.fixture
async def database(settings: FolioSettings) -> AsyncIterator[Database]:
    db = Database.from_settings(settings)
    yield db
    await db.dispose()


@pytest.fixture
async def runtime(settings: FolioSettings) -> AsyncIterator[Runtime]:
    rt = Runtime(settings)
    result = await rt.start()
    assert result is not None and result.success, result
    yield rt
    await rt.close()


@pytest.fixture
async def admin(runtime: Runtime) -> Account:
    created = await runtime.auth.create_admin(ADMIN_EMAIL, ADMIN_PASSWORD, "Site Admin")
    assert created.is_ok(), created
    return await sign_in_account(runtime, ADMIN_EMAIL, ADMIN_PASSWORD)


@pytest.fixture
async def editor(runtime: Runtime) -> Account:
    created = await runtime.auth.sign_up(EDITOR_EMAIL, EDITOR_PASSWORD, {"full_name": "Ed Itor"})
    assert created.is_ok(), created
    return await sign_in_account(runtime, EDITOR_EMAIL, EDITOR_PASSWORD)
