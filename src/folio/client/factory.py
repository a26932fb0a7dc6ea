"""Adapter selection from configuration, plus the process-wide adapter."""

from __future__ import annotations

from folio.client.base import BackendAdapter
from folio.client.local import LocalAdapter
from folio.client.remote import RemoteAdapter
from folio.core.logging import get_logger
from folio.core.settings import FolioSettings, get_settings

logger = get_logger(__name__)

_adapter: BackendAdapter | None = None


def create_backend_adapter(settings: FolioSettings | None = None) -> BackendAdapter:
    """Build a new adapter for ``settings.backend_type`` (``local`` or ``remote``)."""
    settings = settings or get_settings()
    if settings.backend_type == "remote":
        adapter: BackendAdapter = RemoteAdapter.from_settings(settings)
    elif settings.backend_type == "local":
        adapter = LocalAdapter(settings=settings)
    else:
        raise ValueError(f"Unsupported backend type: {settings.backend_type}")
    logger.info("backend_adapter.created", backend=adapter.backend_type)
    return adapter


def get_backend_adapter() -> BackendAdapter:
    """The process-wide adapter, created on first use."""
    global _adapter
    if _adapter is None:
        _adapter = create_backend_adapter()
    return _adapter


async def reset_backend_adapter() -> None:
    """Close and forget the process-wide adapter (tests, reconfiguration)."""
    global _adapter
    if _adapter is not None:
        await _adapter.aclose()
    _adapter = None
