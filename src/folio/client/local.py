"""In-process adapter: drives the compiler, auth, storage and functions directly."""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from typing import Any

from folio.auth.models import Principal
from folio.client.base import AuthClient, BackendAdapter, BucketClient, FunctionsClient, StorageClient
from folio.core.envelope import Envelope
from folio.core.errors import FolioError, UnauthorizedError
from folio.core.logging import get_logger
from folio.query.builder import QueryBuilder
from folio.query.descriptor import QueryDescriptor
from folio.runtime import Runtime

logger = get_logger(__name__)


class _LocalAuth(AuthClient):
    def __init__(self, adapter: LocalAdapter):
        super().__init__()
        self._adapter = adapter

    @property
    def _auth(self):
        return self._adapter.runtime.auth

    async def sign_up(self, email: str, password: str, data: dict[str, Any] | None = None) -> Envelope:
        await self._adapter.ensure_started()
        return await self._auth.sign_up(email, password, data)

    async def sign_in(self, email: str, password: str) -> Envelope:
        await self._adapter.ensure_started()
        return self._store_session(await self._auth.sign_in(email, password))

    async def sign_out(self) -> Envelope:
        principal = None
        if self.access_token:
            try:
                principal = self._auth.authenticate(self.access_token)
            except UnauthorizedError:
                principal = None
        envelope = await self._auth.sign_out(principal)
        self._clear_session()
        return envelope

    async def get_session(self) -> Envelope:
        if not self.access_token:
            return Envelope.empty()
        await self._adapter.ensure_started()
        envelope = await self._auth.get_session(self.access_token)
        if envelope.is_err():
            self._clear_session()
            return Envelope.empty()
        return envelope

    async def get_user(self) -> Envelope:
        return await self._adapter.gated(self._auth.get_user)

    async def change_password(self, current_password: str, new_password: str) -> Envelope:
        return await self._adapter.gated(
            lambda p: self._auth.change_password(p, current_password, new_password)
        )

    async def list_users(self) -> Envelope:
        return await self._adapter.gated(self._auth.list_users)

    async def set_role(self, user_id: str, role: str) -> Envelope:
        return await self._adapter.gated(lambda p: self._auth.set_role(p, user_id, role))

    async def deactivate_user(self, user_id: str) -> Envelope:
        return await self._adapter.gated(lambda p: self._auth.deactivate(p, user_id))


class _LocalBucket(BucketClient):
    def __init__(self, adapter: LocalAdapter, bucket: str):
        super().__init__(bucket)
        self._adapter = adapter

    @property
    def _storage(self):
        return self._adapter.runtime.storage

    async def upload(
        self, path: str, data: bytes, content_type: str | None = None, *, upsert: bool = False
    ) -> Envelope:
        return await self._adapter.gated(
            lambda _: self._storage.upload(self.bucket, path, data, content_type, upsert=upsert)
        )

    async def download(self, path: str) -> Envelope:
        return await self._adapter.gated(lambda _: self._storage.download(self.bucket, path))

    async def remove(self, paths: list[str]) -> Envelope:
        return await self._adapter.gated(lambda _: self._storage.remove(self.bucket, paths))

    async def list(self, prefix: str = "", *, limit: int = 100, offset: int = 0) -> Envelope:
        return await self._adapter.gated(
            lambda _: self._storage.list(self.bucket, prefix, limit=limit, offset=offset)
        )

    def get_public_url(self, path: str) -> str:
        return self._storage.get_public_url(self.bucket, path)

    async def create_signed_url(self, path: str, expires_in: int | None = None) -> Envelope:
        return await self._adapter.gated(
            lambda _: self._storage.create_signed_url(self.bucket, path, expires_in)
        )


class _LocalStorage(StorageClient):
    def __init__(self, adapter: LocalAdapter):
        self._adapter = adapter

    def from_(self, bucket: str) -> BucketClient:
        return _LocalBucket(self._adapter, bucket)

    async def create_bucket(self, bucket_id: str, *, public: bool = False) -> Envelope:
        storage = self._adapter.runtime.storage
        return await self._adapter.gated(
            lambda _: storage.create_bucket(bucket_id, public=public), admin=True
        )

    async def get_bucket(self, bucket_id: str) -> Envelope:
        return await self._adapter.gated(lambda _: self._adapter.runtime.storage.get_bucket(bucket_id))

    async def list_buckets(self) -> Envelope:
        return await self._adapter.gated(lambda _: self._adapter.runtime.storage.list_buckets())

    async def delete_bucket(self, bucket_id: str) -> Envelope:
        storage = self._adapter.runtime.storage
        return await self._adapter.gated(lambda _: storage.delete_bucket(bucket_id), admin=True)


class _LocalFunctions(FunctionsClient):
    def __init__(self, adapter: LocalAdapter):
        self._adapter = adapter

    async def invoke(self, name: str, body: dict[str, Any] | None = None) -> Envelope:
        await self._adapter.ensure_started()
        principal = self._adapter.current_principal()
        return await self._adapter.runtime.invoke_function(name, body, principal)


class LocalAdapter(BackendAdapter):
    """Adapter bound to an in-process :class:`~folio.runtime.Runtime`.

    The runtime is started (migrations, default buckets) on first use.
    When the adapter created the runtime itself it also closes it.
    """

    backend_type = "local"

    def __init__(self, runtime: Runtime | None = None, *, settings: Any = None):
        self._owns_runtime = runtime is None
        self.runtime = runtime or Runtime(settings)
        self._start_lock = asyncio.Lock()
        self.auth = _LocalAuth(self)
        self.storage = _LocalStorage(self)
        self.functions = _LocalFunctions(self)

    async def ensure_started(self) -> None:
        if self.runtime.started:
            return
        async with self._start_lock:
            if not self.runtime.started:
                await self.runtime.start()

    def current_principal(self) -> Principal | None:
        token = self.auth.access_token
        if not token:
            return None
        try:
            return self.runtime.auth.authenticate(token)
        except UnauthorizedError:
            return None

    async def gated(
        self, call: Callable[[Principal], Awaitable[Envelope]], *, admin: bool = False
    ) -> Envelope:
        """Run ``call`` with the session's principal, applying the HTTP surface's auth gates."""
        await self.ensure_started()
        try:
            principal = self.runtime.auth.authenticate(self.auth.access_token)
            if admin:
                await self.runtime.auth.require_admin(principal)
        except FolioError as exc:
            return Envelope.failure(exc)
        return await call(principal)

    async def _dispatch(self, descriptor: QueryDescriptor) -> Envelope:
        return await self.gated(lambda _: self.runtime.executor.execute(descriptor))

    def from_(self, table: str) -> QueryBuilder:
        return QueryBuilder(table, self._dispatch)

    async def validate_connection(self) -> dict[str, Any]:
        health = await self.runtime.database.health_check()
        if health["healthy"]:
            return {"success": True}
        return {"success": False, "error": health.get("error", "Database not reachable")}

    async def aclose(self) -> None:
        if self._owns_runtime and self.runtime.started:
            await self.runtime.close()


__all__ = ["LocalAdapter"]
