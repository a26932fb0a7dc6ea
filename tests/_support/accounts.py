"""Test accounts and settings builders shared by fixtures and test modules."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from folio.auth.models import Principal
from folio.core.settings import FolioSettings
from folio.runtime import Runtime

ADMIN_EMAIL = "admin@example.com"
ADMIN_PASSWORD = "admin-password-1"
EDITOR_EMAIL = "editor@example.com"
EDITOR_PASSWORD = "editor-password-1"


def make_settings(tmp_path: Path, **overrides) -> FolioSettings:
    values = {
        "database_url": f"sqlite+aiosqlite:///{tmp_path / 'folio.db'}",
        "storage_local_path": tmp_path / "storage",
        "jwt_secret": "test-secret-key-with-enough-entropy",
        "bcrypt_rounds": 4,
        "public_base_url": "http://testserver",
        "log_format": "console",
        "log_level": "WARNING",
    }
    values.update(overrides)
    return FolioSettings(_env_file=None, **values)


@dataclass
class Account:
    id: str
    email: str
    password: str
    token: str
    principal: Principal


async def sign_in_account(runtime: Runtime, email: str, password: str) -> Account:
    envelope = await runtime.auth.sign_in(email, password)
    assert envelope.is_ok(), envelope
    token = envelope.data["access_token"]
    return Account(
        id=envelope.data["user"]["id"],
        email=email,
        password=password,
        token=token,
        principal=runtime.auth.authenticate(token),
    )


def bearer(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


def http_sign_in(client, email: str, password: str) -> str:
    """Sign in through ``POST /auth/signin`` and return the access token."""
    response = client.post("/auth/signin", json={"email": email, "password": password})
    assert response.status_code == 200, response.text
    return response.json()["data"]["access_token"]
