"""
Bucket-policy-aware storage service.

:class:`StorageService` sits between the HTTP surface / in-process adapter
and an :class:`~folio.storage.base.ObjectStore`.  It enforces the upload
ceiling, resolves public versus private buckets, mints public and signed
URLs, and turns every store failure into an error
:class:`~folio.core.envelope.Envelope`.

Bucket policy:
    Buckets named in ``public_buckets`` (plus any created with
    ``public=True``) are readable without credentials through
    ``/storage/{bucket}/public/{path}``.  Everything else needs a bearer
    token or a signed URL.

Tags:
    folio-core, storage, buckets, signed-url, envelope
"""

from __future__ import annotations

from collections.abc import AsyncIterator, Awaitable, Callable, Iterable
from dataclasses import dataclass
from typing import Any, TypeVar
from urllib.parse import quote

from folio.core.envelope import Envelope
from folio.core.errors import (
    ConflictError,
    FolioError,
    ForbiddenError,
    InvalidArgumentError,
    NotFoundError,
    PayloadTooLargeError,
)
from folio.core.logging import get_logger
from folio.storage.base import (
    BucketInfo,
    ObjectStore,
    StorageObject,
    normalize_object_path,
    validate_bucket_name,
)
from folio.storage.signing import UrlSigner

logger = get_logger(__name__)

T = TypeVar("T")

PUBLIC_CACHE_CONTROL = "public, max-age=31536000"


@dataclass
class ObjectStream:
    """An object's metadata plus a lazy chunk iterator over its content."""

    info: StorageObject
    chunks: AsyncIterator[bytes]


class StorageService:
    def __init__(
        self,
        store: ObjectStore,
        signer: UrlSigner,
        *,
        public_buckets: Iterable[str] = (),
        default_buckets: Iterable[str] = (),
        max_upload_bytes: int = 50 * 1024 * 1024,
        public_base_url: str = "http://localhost:3001",
        signed_url_default_ttl: int = 3600,
    ):
        self.store = store
        self.signer = signer
        self._public_buckets = set(public_buckets)
        self._default_buckets = list(default_buckets)
        self.max_upload_bytes = max_upload_bytes
        self.public_base_url = public_base_url.rstrip("/")
        self.signed_url_default_ttl = signed_url_default_ttl

    @classmethod
    def from_settings(cls, store: ObjectStore, settings: Any) -> StorageService:
        return cls(
            store,
            UrlSigner(settings.jwt_secret, settings.jwt_issuer),
            public_buckets=settings.public_buckets,
            default_buckets=settings.default_buckets,
            max_upload_bytes=settings.max_upload_bytes,
            public_base_url=settings.public_base_url,
            signed_url_default_ttl=settings.signed_url_default_ttl,
        )

    def is_public(self, bucket: str) -> bool:
        return bucket in self._public_buckets

    async def _guard(self, operation: str, call: Callable[[], Awaitable[T]], wrap: Callable[[T], Envelope]) -> Envelope:
        try:
            value = await call()
        except FolioError as exc:
            logger.info("storage.failed", operation=operation, code=exc.code.value, reason=exc.message)
            return Envelope.failure(exc)
        return wrap(value)

    # -- Objects -----------------------------------------------------------

    async def upload(
        self,
        bucket: str,
        path: str,
        data: bytes,
        content_type: str | None = None,
        *,
        upsert: bool = False,
    ) -> Envelope:
        """Store ``data`` at ``bucket/path``; resolves to ``{path, id, fullPath}``."""
        if len(data) > self.max_upload_bytes:
            return Envelope.failure(PayloadTooLargeError(len(data), self.max_upload_bytes))

        async def _upload() -> StorageObject:
            key = normalize_object_path(path)
            validate_bucket_name(bucket)
            if not upsert and await self.store.stat_object(bucket, key) is not None:
                raise ConflictError(f"Object already exists: {bucket}/{key}")
            return await self.store.put_object(bucket, key, data, content_type)

        def _wrap(info: StorageObject) -> Envelope:
            return Envelope.success(
                {"path": info.path, "id": info.etag, "fullPath": f"{bucket}/{info.path}"}
            )

        return await self._guard("upload", _upload, _wrap)

    async def download(self, bucket: str, path: str) -> Envelope:
        return await self._guard(
            "download", lambda: self.store.get_object(bucket, path), Envelope.success
        )

    async def open_stream(self, bucket: str, path: str) -> Envelope:
        """Resolve to an :class:`ObjectStream`; ``NotFound`` is reported before streaming starts."""

        async def _open() -> ObjectStream:
            info = await self.store.stat_object(bucket, path)
            if info is None:
                raise NotFoundError(f"Object not found: {bucket}/{path}")
            return ObjectStream(info=info, chunks=self.store.iter_object(bucket, path))

        return await self._guard("open_stream", _open, Envelope.success)

    async def open_public_stream(self, bucket: str, path: str) -> Envelope:
        if not self.is_public(bucket):
            return Envelope.failure(ForbiddenError(f"Bucket {bucket!r} is not public"))
        return await self.open_stream(bucket, path)

    async def open_signed_stream(self, bucket: str, path: str, token: str) -> Envelope:
        try:
            self.signer.verify(token, bucket, normalize_object_path(path))
        except FolioError as exc:
            return Envelope.failure(exc)
        return await self.open_stream(bucket, path)

    async def remove(self, bucket: str, paths: list[str]) -> Envelope:
        """Delete several objects; any missing path fails the batch before deleting."""

        async def _remove() -> list[str]:
            if not isinstance(paths, list) or not paths:
                raise InvalidArgumentError("Paths array is required", field="paths")
            if not await self.store.bucket_exists(bucket):
                raise NotFoundError(f"Bucket not found: {bucket}")
            keys = [normalize_object_path(p) for p in paths]
            missing = [k for k in keys if await self.store.stat_object(bucket, k) is None]
            if missing:
                raise NotFoundError(f"Object not found: {bucket}/{missing[0]}", details={"missing": missing})
            for key in keys:
                await self.store.delete_object(bucket, key)
            return keys

        return await self._guard(
            "remove",
            _remove,
            lambda keys: Envelope.success({"message": "Files removed successfully", "paths": keys}),
        )

    async def list(self, bucket: str, prefix: str = "", *, limit: int = 100, offset: int = 0) -> Envelope:
        async def _list() -> list[dict[str, Any]]:
            if limit < 0 or offset < 0:
                raise InvalidArgumentError("limit and offset must be non-negative")
            objects = await self.store.list_objects(bucket, prefix)
            return [o.to_dict() for o in objects[offset : offset + limit]]

        return await self._guard("list", _list, lambda items: Envelope.success(items, count=len(items)))

    def get_public_url(self, bucket: str, path: str) -> str:
        """Pure URL construction; no existence check."""
        return f"{self.public_base_url}/storage/{bucket}/public/{quote(path.lstrip('/'))}"

    async def create_signed_url(self, bucket: str, path: str, expires_in: int | None = None) -> Envelope:
        ttl = expires_in or self.signed_url_default_ttl

        async def _sign() -> str:
            key = normalize_object_path(path)
            if ttl <= 0:
                raise InvalidArgumentError("expiresIn must be positive", field="expiresIn")
            if await self.store.stat_object(bucket, key) is None:
                raise NotFoundError(f"Object not found: {bucket}/{key}")
            native = await self.store.presigned_url(bucket, key, ttl)
            if native:
                return native
            token = self.signer.sign(bucket, key, ttl)
            return f"{self.public_base_url}/storage/{bucket}/signed/{quote(key)}?token={token}"

        return await self._guard("create_signed_url", _sign, lambda url: Envelope.success({"signedUrl": url}))

    # -- Buckets -----------------------------------------------------------

    def _with_policy(self, info: BucketInfo) -> BucketInfo:
        info.public = info.public or self.is_public(info.name)
        return info

    async def create_bucket(self, bucket_id: str, *, public: bool = False) -> Envelope:
        async def _create() -> BucketInfo:
            info = await self.store.create_bucket(validate_bucket_name(bucket_id), public=public)
            if public:
                self._public_buckets.add(bucket_id)
            return self._with_policy(info)

        return await self._guard("create_bucket", _create, lambda info: Envelope.success(info.to_dict()))

    async def get_bucket(self, bucket_id: str) -> Envelope:
        async def _get() -> BucketInfo:
            if not await self.store.bucket_exists(bucket_id):
                raise NotFoundError(f"Bucket not found: {bucket_id}")
            return self._with_policy(BucketInfo(name=bucket_id))

        return await self._guard("get_bucket", _get, lambda info: Envelope.success(info.to_dict()))

    async def list_buckets(self) -> Envelope:
        async def _list() -> list[BucketInfo]:
            return [self._with_policy(b) for b in await self.store.list_buckets()]

        return await self._guard(
            "list_buckets", _list, lambda infos: Envelope.success([i.to_dict() for i in infos], count=len(infos))
        )

    async def delete_bucket(self, bucket_id: str) -> Envelope:
        async def _delete() -> str:
            await self.store.delete_bucket(validate_bucket_name(bucket_id))
            self._public_buckets.discard(bucket_id)
            return bucket_id

        return await self._guard("delete_bucket", _delete, lambda name: Envelope.success({"name": name}))

    async def ensure_default_buckets(self) -> list[str]:
        """Create any missing default bucket; failures are logged and skipped."""
        created = []
        for bucket in self._default_buckets:
            try:
                if await self.store.bucket_exists(bucket):
                    continue
                await self.store.create_bucket(bucket, public=self.is_public(bucket))
            except FolioError as exc:
                logger.warning("storage.default_bucket_failed", bucket=bucket, error=exc.message)
                continue
            created.append(bucket)
        if created:
            logger.info("storage.default_buckets_created", buckets=created)
        return created

    async def health_check(self) -> dict[str, Any]:
        try:
            await self.store.health_check()
        except FolioError as exc:
            return {"healthy": False, "backend": self.store.backend_name, "error": exc.message}
        return {"healthy": True, "backend": self.store.backend_name}


__all__ = ["PUBLIC_CACHE_CONTROL", "ObjectStream", "StorageService"]
