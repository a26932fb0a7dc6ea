"""Tests for adapter selection."""

from __future__ import annotations

import pytest

from folio.client import LocalAdapter, RemoteAdapter, create_backend_adapter, get_backend_adapter, reset_backend_adapter
from tests._support.accounts import make_settings


async def test_local_by_default(tmp_path):
    adapter = create_backend_adapter(make_settings(tmp_path))
    assert isinstance(adapter, LocalAdapter)
    await adapter.aclose()


async def test_remote(tmp_path):
    adapter = create_backend_adapter(
        make_settings(tmp_path, backend_type="remote", remote_url="https://cms.example.com/")
    )
    assert isinstance(adapter, RemoteAdapter)
    assert adapter.base_url == "https://cms.example.com"
    await adapter.aclose()


async def test_process_wide_adapter(tmp_path, monkeypatch):
    monkeypatch.setenv("FOLIO_BACKEND_TYPE", "remote")
    monkeypatch.setenv("FOLIO_REMOTE_URL", "http://cms.internal:3001")
    try:
        first = get_backend_adapter()
        assert first is get_backend_adapter()
        assert first.backend_type == "remote"
    finally:
        await reset_backend_adapter()


def test_unknown_backend_rejected(tmp_path):
    with pytest.raises(ValueError):
        make_settings(tmp_path, backend_type="graphql")
