"""
Remote adapter: the same contract over HTTP (httpx).

Query descriptors are POSTed to ``/database``; auth, storage and functions
map onto ``/auth/*``, ``/storage/*`` and ``/functions/{name}``.  Response
bodies are envelopes (``{data, error, count?}``) and are decoded back into
:class:`~folio.core.envelope.Envelope`.  Transport failures (connection
refused, timeouts) become ``EXECUTION_ERROR`` envelopes.
"""

from __future__ import annotations

from typing import Any
from urllib.parse import quote

import httpx

from folio.client.base import AuthClient, BackendAdapter, BucketClient, FunctionsClient, StorageClient
from folio.core.envelope import Envelope, ErrorInfo
from folio.core.errors import ERROR_CODE_TO_STATUS, ErrorCode, ExecutionError
from folio.core.logging import get_logger
from folio.query.builder import QueryBuilder
from folio.query.descriptor import QueryDescriptor

logger = get_logger(__name__)

_STATUS_TO_CODE = {status: code for code, status in reversed(list(ERROR_CODE_TO_STATUS.items()))}


def _error_for_status(status: int, message: str | None = None) -> ErrorInfo:
    code = _STATUS_TO_CODE.get(status, ErrorCode.EXECUTION_ERROR)
    return ErrorInfo(code=code.value, message=message or f"HTTP {status}")


def decode_response(response: httpx.Response) -> Envelope:
    """Turn an HTTP response into an envelope, whatever its body looks like."""
    try:
        payload = response.json()
    except ValueError:
        payload = None

    if isinstance(payload, dict) and ("data" in payload or "error" in payload):
        envelope = Envelope.from_dict(payload)
        if response.is_error and envelope.error is None:
            return Envelope.failure(_error_for_status(response.status_code))
        return envelope
    if response.is_error:
        message = None
        if isinstance(payload, dict):
            message = payload.get("detail") or payload.get("message")
        return Envelope.failure(_error_for_status(response.status_code, str(message) if message else None))
    return Envelope.success(payload)


class _RemoteAuth(AuthClient):
    def __init__(self, adapter: RemoteAdapter):
        super().__init__()
        self._adapter = adapter

    async def sign_up(self, email: str, password: str, data: dict[str, Any] | None = None) -> Envelope:
        body = {**(data or {}), "email": email, "password": password}
        return await self._adapter.request("POST", "/auth/signup", json=body)

    async def sign_in(self, email: str, password: str) -> Envelope:
        envelope = await self._adapter.request(
            "POST", "/auth/signin", json={"email": email, "password": password}
        )
        return self._store_session(envelope)

    async def sign_out(self) -> Envelope:
        envelope = await self._adapter.request("POST", "/auth/signout")
        self._clear_session()
        return envelope

    async def get_session(self) -> Envelope:
        if not self.access_token:
            return Envelope.empty()
        envelope = await self._adapter.request("GET", "/auth/session")
        if envelope.is_err():
            self._clear_session()
            return Envelope.empty()
        return envelope

    async def get_user(self) -> Envelope:
        return await self._adapter.request("GET", "/auth/user")

    async def change_password(self, current_password: str, new_password: str) -> Envelope:
        return await self._adapter.request(
            "PUT",
            "/auth/change-password",
            json={"currentPassword": current_password, "newPassword": new_password},
        )

    async def list_users(self) -> Envelope:
        return await self._adapter.request("GET", "/auth/users")

    async def set_role(self, user_id: str, role: str) -> Envelope:
        return await self._adapter.request("PUT", f"/auth/users/{quote(user_id)}/role", json={"role": role})

    async def deactivate_user(self, user_id: str) -> Envelope:
        return await self._adapter.request("DELETE", f"/auth/users/{quote(user_id)}")


class _RemoteBucket(BucketClient):
    def __init__(self, adapter: RemoteAdapter, bucket: str):
        super().__init__(bucket)
        self._adapter = adapter
        self._prefix = f"/storage/{quote(bucket)}"

    async def upload(
        self, path: str, data: bytes, content_type: str | None = None, *, upsert: bool = False
    ) -> Envelope:
        filename = path.rsplit("/", 1)[-1] or "file"
        files = {"file": (filename, data, content_type or "application/octet-stream")}
        form = {"path": path, "upsert": "true" if upsert else "false"}
        return await self._adapter.request("POST", f"{self._prefix}/upload", files=files, data=form)

    async def download(self, path: str) -> Envelope:
        return await self._adapter.request("GET", f"{self._prefix}/download/{quote(path)}", raw=True)

    async def remove(self, paths: list[str]) -> Envelope:
        return await self._adapter.request("DELETE", f"{self._prefix}/remove", json={"paths": paths})

    async def list(self, prefix: str = "", *, limit: int = 100, offset: int = 0) -> Envelope:
        return await self._adapter.request(
            "GET", f"{self._prefix}/list", params={"path": prefix, "limit": limit, "offset": offset}
        )

    def get_public_url(self, path: str) -> str:
        return f"{self._adapter.base_url}{self._prefix}/public/{quote(path.lstrip('/'))}"

    async def create_signed_url(self, path: str, expires_in: int | None = None) -> Envelope:
        body: dict[str, Any] = {"path": path}
        if expires_in is not None:
            body["expiresIn"] = expires_in
        return await self._adapter.request("POST", f"{self._prefix}/signed-url", json=body)


class _RemoteStorage(StorageClient):
    def __init__(self, adapter: RemoteAdapter):
        self._adapter = adapter

    def from_(self, bucket: str) -> BucketClient:
        return _RemoteBucket(self._adapter, bucket)

    async def create_bucket(self, bucket_id: str, *, public: bool = False) -> Envelope:
        return await self._adapter.request("POST", "/storage/buckets", json={"id": bucket_id, "public": public})

    async def get_bucket(self, bucket_id: str) -> Envelope:
        return await self._adapter.request("GET", f"/storage/buckets/{quote(bucket_id)}")

    async def list_buckets(self) -> Envelope:
        return await self._adapter.request("GET", "/storage/buckets")

    async def delete_bucket(self, bucket_id: str) -> Envelope:
        return await self._adapter.request("DELETE", f"/storage/buckets/{quote(bucket_id)}")


class _RemoteFunctions(FunctionsClient):
    def __init__(self, adapter: RemoteAdapter):
        self._adapter = adapter

    async def invoke(self, name: str, body: dict[str, Any] | None = None) -> Envelope:
        return await self._adapter.request("POST", f"/functions/{quote(name)}", json=body or {})


class RemoteAdapter(BackendAdapter):
    """Adapter for a folio-core service reachable over HTTP.

    Parameters
    ----------
    base_url:
        Root URL of the service, e.g. ``https://cms.example.com``.
    api_key:
        Optional gateway key sent as ``X-API-Key`` on every request.
    timeout:
        Per-request transport timeout in seconds.
    client:
        A pre-built :class:`httpx.AsyncClient` (tests pass one bound to an
        ``ASGITransport``).  The adapter closes only clients it created.
    """

    backend_type = "remote"

    def __init__(
        self,
        base_url: str,
        *,
        api_key: str | None = None,
        timeout: float = 30.0,
        client: httpx.AsyncClient | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        headers = {"X-API-Key": api_key} if api_key else {}
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(base_url=self.base_url, timeout=timeout, headers=headers)
        if client is not None and api_key:
            self._client.headers.update(headers)
        self.auth = _RemoteAuth(self)
        self.storage = _RemoteStorage(self)
        self.functions = _RemoteFunctions(self)

    @classmethod
    def from_settings(cls, settings: Any) -> RemoteAdapter:
        return cls(settings.remote_url, api_key=settings.remote_api_key, timeout=settings.remote_timeout)

    def _headers(self) -> dict[str, str]:
        token = self.auth.access_token
        return {"Authorization": f"Bearer {token}"} if token else {}

    async def request(self, method: str, url: str, *, raw: bool = False, **kwargs: Any) -> Envelope:
        """Send one request; ``raw=True`` resolves to the body bytes on success."""
        try:
            response = await self._client.request(method, url, headers=self._headers(), **kwargs)
        except httpx.HTTPError as exc:
            logger.warning("remote.transport_failed", method=method, url=url, error=str(exc))
            return Envelope.failure(ExecutionError(f"Request to {url} failed: {exc}", cause=exc))

        if raw and response.is_success:
            return Envelope.success(response.content)
        return decode_response(response)

    async def _dispatch(self, descriptor: QueryDescriptor) -> Envelope:
        return await self.request("POST", "/database", json=descriptor.to_wire())

    def from_(self, table: str) -> QueryBuilder:
        return QueryBuilder(table, self._dispatch)

    async def validate_connection(self) -> dict[str, Any]:
        try:
            response = await self._client.get("/health")
        except httpx.HTTPError as exc:
            return {"success": False, "error": f"Connection failed: {exc}"}
        if response.is_success:
            return {"success": True}
        return {"success": False, "error": f"API not responding (HTTP {response.status_code})"}

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()


__all__ = ["RemoteAdapter", "decode_response"]
