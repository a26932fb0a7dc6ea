"""
Backend adapter contract.

Application code talks to a :class:`BackendAdapter` and never to a concrete
backend::

    adapter = get_backend_adapter()
    await adapter.auth.sign_in("me@example.com", "s3cret-pass")
    albums = await adapter.from_("albums").select().eq("is_visible", True).order("sort_order")
    url = adapter.storage.from_("gallery-images").get_public_url("dunes/01.jpg")

Every operation resolves to an :class:`~folio.core.envelope.Envelope`;
adapters convert transport and backend failures into error envelopes
instead of raising.  The in-process and the remote adapter expose the same
gates: data and private storage calls need a signed-in session, bucket
creation and deletion need an admin.

Tags:
    folio-core, client, adapter, contract
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum
from typing import Any

from folio.core.envelope import Envelope
from folio.core.logging import get_logger
from folio.query.builder import QueryBuilder

logger = get_logger(__name__)


class AuthChangeEvent(str, Enum):
    SIGNED_IN = "SIGNED_IN"
    SIGNED_OUT = "SIGNED_OUT"


AuthStateCallback = Callable[[AuthChangeEvent, "dict[str, Any] | None"], None]


@dataclass
class Subscription:
    """Handle returned by :meth:`AuthClient.on_auth_state_change`."""

    _callbacks: list[AuthStateCallback]
    _callback: AuthStateCallback

    def unsubscribe(self) -> None:
        if self._callback in self._callbacks:
            self._callbacks.remove(self._callback)


class AuthClient(ABC):
    """Session-holding auth client.

    The access token from a successful :meth:`sign_in` is kept in memory and
    attached to every later call made through the same adapter.
    """

    def __init__(self) -> None:
        self._session: dict[str, Any] | None = None
        self._callbacks: list[AuthStateCallback] = []

    @property
    def access_token(self) -> str | None:
        return self._session["access_token"] if self._session else None

    @property
    def session(self) -> dict[str, Any] | None:
        return self._session

    def on_auth_state_change(self, callback: AuthStateCallback) -> Subscription:
        self._callbacks.append(callback)
        return Subscription(self._callbacks, callback)

    def _emit(self, event: AuthChangeEvent, session: dict[str, Any] | None) -> None:
        for callback in list(self._callbacks):
            try:
                callback(event, session)
            except Exception:
                # listener errors are logged and skipped
                logger.exception("auth.callback_failed", auth_event=event.value)

    def _store_session(self, envelope: Envelope) -> Envelope:
        if envelope.is_ok() and isinstance(envelope.data, dict) and envelope.data.get("access_token"):
            self._session = envelope.data
            self._emit(AuthChangeEvent.SIGNED_IN, envelope.data)
        return envelope

    def _clear_session(self) -> None:
        had_session = self._session is not None
        self._session = None
        if had_session:
            self._emit(AuthChangeEvent.SIGNED_OUT, None)

    @abstractmethod
    async def sign_up(self, email: str, password: str, data: dict[str, Any] | None = None) -> Envelope: ...

    @abstractmethod
    async def sign_in(self, email: str, password: str) -> Envelope: ...

    @abstractmethod
    async def sign_out(self) -> Envelope: ...

    @abstractmethod
    async def get_session(self) -> Envelope:
        """Resolve the held session; an expired token clears it."""

    @abstractmethod
    async def get_user(self) -> Envelope: ...

    @abstractmethod
    async def change_password(self, current_password: str, new_password: str) -> Envelope: ...

    @abstractmethod
    async def list_users(self) -> Envelope: ...

    @abstractmethod
    async def set_role(self, user_id: str, role: str) -> Envelope: ...

    @abstractmethod
    async def deactivate_user(self, user_id: str) -> Envelope: ...


class BucketClient(ABC):
    """Object operations scoped to one bucket."""

    def __init__(self, bucket: str):
        self.bucket = bucket

    @abstractmethod
    async def upload(
        self, path: str, data: bytes, content_type: str | None = None, *, upsert: bool = False
    ) -> Envelope: ...

    @abstractmethod
    async def download(self, path: str) -> Envelope:
        """Resolve to the object's bytes."""

    @abstractmethod
    async def remove(self, paths: list[str]) -> Envelope: ...

    @abstractmethod
    async def list(self, prefix: str = "", *, limit: int = 100, offset: int = 0) -> Envelope: ...

    @abstractmethod
    def get_public_url(self, path: str) -> str:
        """Pure URL construction; the object is not checked."""

    @abstractmethod
    async def create_signed_url(self, path: str, expires_in: int | None = None) -> Envelope: ...


class StorageClient(ABC):
    @abstractmethod
    def from_(self, bucket: str) -> BucketClient: ...

    @abstractmethod
    async def create_bucket(self, bucket_id: str, *, public: bool = False) -> Envelope: ...

    @abstractmethod
    async def get_bucket(self, bucket_id: str) -> Envelope: ...

    @abstractmethod
    async def list_buckets(self) -> Envelope: ...

    @abstractmethod
    async def delete_bucket(self, bucket_id: str) -> Envelope: ...


class FunctionsClient(ABC):
    @abstractmethod
    async def invoke(self, name: str, body: dict[str, Any] | None = None) -> Envelope: ...


class BackendAdapter(ABC):
    """``{auth, from_(table), storage, functions}`` over one backend."""

    backend_type: str = "abstract"

    auth: AuthClient
    storage: StorageClient
    functions: FunctionsClient

    @abstractmethod
    def from_(self, table: str) -> QueryBuilder: ...

    def table(self, name: str) -> QueryBuilder:
        return self.from_(name)

    @abstractmethod
    async def validate_connection(self) -> dict[str, Any]:
        """``{"success": bool, "error"?: str}``"""

    async def aclose(self) -> None:
        return None

    async def __aenter__(self) -> BackendAdapter:
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()


__all__ = [
    "AuthChangeEvent",
    "AuthClient",
    "AuthStateCallback",
    "BackendAdapter",
    "BucketClient",
    "FunctionsClient",
    "StorageClient",
    "Subscription",
]
