"""
Centralized settings for folio-core.

:class:`FolioSettings` is the single validated source of configuration for
the HTTP service, the in-process runtime, the CLI and the client adapters.
All fields can be set through ``FOLIO_*`` environment variables (for example
``FOLIO_DATABASE_URL=postgresql+asyncpg://...``) or a ``.env`` file.

List-valued fields accept either JSON (``["a","b"]``) or a plain
comma-separated string (``a,b``).

Tags:
    folio-core, configuration, settings, pydantic

Doc-Types:
    api-reference
"""

from __future__ import annotations

import json
from functools import lru_cache
from pathlib import Path
from typing import Annotated, Any, Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict

DEFAULT_PUBLIC_BUCKETS = [
    "gallery-images",
    "slideshow-images",
    "logos",
    "fotos",
    "custom-fonts",
    "custom-sections",
]

CsvList = Annotated[list[str], NoDecode]


class FolioSettings(BaseSettings):
    """folio-core configuration."""

    model_config = SettingsConfigDict(
        env_prefix="FOLIO_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        env_nested_delimiter="__",
    )

    # ── Meta ─────────────────────────────────────────────────────
    environment: str = Field(default="development")
    debug: bool = Field(default=False, description="Include error details in responses")

    # ── Logging ──────────────────────────────────────────────────
    log_level: str = Field(default="INFO")
    log_format: Literal["auto", "json", "console"] = Field(default="auto")

    # ── Database ─────────────────────────────────────────────────
    database_url: str = Field(default="sqlite+aiosqlite:///data/folio.db")
    database_pool_size: int = Field(default=5)
    database_max_overflow: int = Field(default=10)
    database_echo: bool = Field(default=False)
    database_ssl: bool | str = Field(
        default=False,
        description="TLS for PostgreSQL: true, false or a libpq mode (require, verify-full); sslmode= in the URL also works",
    )

    # ── Migrations ───────────────────────────────────────────────
    migrations_dir: Path | None = Field(default=None, description="Defaults to the bundled migrations for the dialect")
    schema_file: Path | None = Field(default=None, description="Defaults to the bundled complete schema for the dialect")
    fresh_install: bool = Field(default=False, description="Force the fresh-install path")
    run_migrations_on_startup: bool = Field(default=True)
    core_tables: CsvList = Field(default=["albums", "photos", "profiles", "site_settings"])

    # ── Query endpoint ───────────────────────────────────────────
    allowed_tables: CsvList = Field(
        default_factory=list, description="When non-empty, only these tables are queryable"
    )
    protected_tables: CsvList = Field(default=["users", "schema_migrations"])

    # ── Auth ─────────────────────────────────────────────────────
    jwt_secret: str = Field(default="change-me-in-production")
    jwt_issuer: str = Field(default="folio-core")
    jwt_expiry_seconds: int = Field(default=86400)
    bcrypt_rounds: int = Field(default=12, ge=4, le=31)
    min_password_length: int = Field(default=8)

    # ── Storage ──────────────────────────────────────────────────
    storage_backend: Literal["local", "s3"] = Field(default="local")
    storage_local_path: Path = Field(default=Path("data/storage"))
    s3_endpoint_url: str | None = Field(default=None)
    s3_region: str = Field(default="us-east-1")
    s3_access_key: str | None = Field(default=None)
    s3_secret_key: str | None = Field(default=None)
    public_buckets: CsvList = Field(default_factory=lambda: list(DEFAULT_PUBLIC_BUCKETS))
    default_buckets: CsvList = Field(default_factory=lambda: list(DEFAULT_PUBLIC_BUCKETS))
    max_upload_bytes: int = Field(default=50 * 1024 * 1024)
    public_base_url: str = Field(default="http://localhost:3001")
    signed_url_default_ttl: int = Field(default=3600)

    # ── Mail ─────────────────────────────────────────────────────
    smtp_host: str | None = Field(default=None, description="Contact-form mail is only stored when unset")
    smtp_port: int = Field(default=587)
    smtp_user: str | None = Field(default=None)
    smtp_password: str | None = Field(default=None)
    smtp_use_tls: bool = Field(default=True)
    smtp_timeout: float = Field(default=30.0)
    mail_from: str = Field(default="folio@localhost")

    # ── API ──────────────────────────────────────────────────────
    api_title: str = Field(default="folio-core API")
    api_version: str = Field(default="0.1.0")
    host: str = Field(default="0.0.0.0")
    port: int = Field(default=3001)
    cors_origins: CsvList = Field(default=["*"])

    # ── Rate limiting ────────────────────────────────────────────
    rate_limit_enabled: bool = Field(default=False)
    rate_limit_requests: int = Field(default=120)
    rate_limit_window_seconds: int = Field(default=60)

    # ── Client adapter ───────────────────────────────────────────
    backend_type: Literal["local", "remote"] = Field(default="local")
    remote_url: str = Field(default="http://localhost:3001")
    remote_api_key: str | None = Field(default=None)
    remote_timeout: float = Field(default=30.0)

    @field_validator(
        "core_tables",
        "allowed_tables",
        "protected_tables",
        "public_buckets",
        "default_buckets",
        "cors_origins",
        mode="before",
    )
    @classmethod
    def _split_csv(cls, value: Any) -> Any:
        if isinstance(value, str):
            stripped = value.strip()
            if stripped.startswith("["):
                return json.loads(stripped)
            return [item.strip() for item in stripped.split(",") if item.strip()]
        return value

    @field_validator("database_ssl", mode="before")
    @classmethod
    def _parse_ssl(cls, value: Any) -> Any:
        if isinstance(value, str):
            lowered = value.strip().lower()
            if lowered in ("", "0", "false", "no", "off", "disable"):
                return False
            if lowered in ("1", "true", "yes", "on"):
                return True
            return lowered
        return value

    # ── Derived properties ───────────────────────────────────────

    @property
    def is_sqlite(self) -> bool:
        return self.database_url.startswith("sqlite")

    @property
    def is_production(self) -> bool:
        return self.environment.lower() in ("production", "prod")

    def is_public_bucket(self, bucket: str) -> bool:
        return bucket in self.public_buckets


@lru_cache
def get_settings() -> FolioSettings:
    """Return the cached process-wide settings."""
    return FolioSettings()


__all__ = ["DEFAULT_PUBLIC_BUCKETS", "FolioSettings", "get_settings"]
