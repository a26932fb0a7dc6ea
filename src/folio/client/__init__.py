"""
Backend adapters: one interface, in-process or remote.

Usage::

    from folio.client import get_backend_adapter

    db = get_backend_adapter()
    envelope = await db.from_("albums").select("id, title").order("sort_order")
"""

from folio.client.base import (
    AuthChangeEvent,
    AuthClient,
    BackendAdapter,
    BucketClient,
    FunctionsClient,
    StorageClient,
    Subscription,
)
from folio.client.factory import create_backend_adapter, get_backend_adapter, reset_backend_adapter
from folio.client.local import LocalAdapter
from folio.client.remote import RemoteAdapter

__all__ = [
    "AuthChangeEvent",
    "AuthClient",
    "BackendAdapter",
    "BucketClient",
    "FunctionsClient",
    "LocalAdapter",
    "RemoteAdapter",
    "StorageClient",
    "Subscription",
    "create_backend_adapter",
    "get_backend_adapter",
    "reset_backend_adapter",
]
