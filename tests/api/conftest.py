"""
Fixtures for HTTP tests.

``client`` is a :class:`TestClient` around an app built from isolated
settings.  The client runs the lifespan (migrations, default buckets) on its
own event loop, so accounts are seeded through ``client.portal``.
"""

from __future__ import annotations

from collections.abc import Iterator
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from folio.api import create_app
from folio.core.settings import FolioSettings
from tests._support.accounts import (
    ADMIN_EMAIL,
    ADMIN_PASSWORD,
    EDITOR_EMAIL,
    EDITOR_PASSWORD,
    bearer,
    http_sign_in,
    make_settings,
)


@pytest.fixture
def api_settings(tmp_path: Path) -> FolioSettings:
    return make_settings(tmp_path)


@pytest.fixture
def client(api_settings: FolioSettings) -> Iterator[TestClient]:
    app = create_app(settings=api_settings)
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def admin_headers(client: TestClient) -> dict[str, str]:
    runtime = client.app.state.runtime
    created = client.portal.call(runtime.auth.create_admin, ADMIN_EMAIL, ADMIN_PASSWORD)
    assert created.is_ok(), created
    return bearer(http_sign_in(client, ADMIN_EMAIL, ADMIN_PASSWORD))


@pytest.fixture
def editor_headers(client: TestClient) -> dict[str, str]:
    response = client.post(
        "/auth/signup", json={"email": EDITOR_EMAIL, "password": EDITOR_PASSWORD, "full_name": "Ed Itor"}
    )
    assert response.status_code == 201, response.text
    return bearer(http_sign_in(client, EDITOR_EMAIL, EDITOR_PASSWORD))
