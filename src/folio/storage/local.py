"""Local filesystem object store."""

from __future__ import annotations

import asyncio
import hashlib
import mimetypes
import os
import shutil
from collections.abc import AsyncIterator
from datetime import datetime, timezone
from pathlib import Path

import structlog

from folio.core.errors import ConflictError, InvalidArgumentError, NotFoundError
from folio.storage.base import (
    DEFAULT_CHUNK_SIZE,
    BucketInfo,
    ObjectStore,
    StorageObject,
    normalize_object_path,
    validate_bucket_name,
)

logger = structlog.get_logger(__name__)


class LocalObjectStore(ObjectStore):
    """
    Filesystem object store.

    Each bucket is a directory under ``base_path``; object keys map to
    relative file paths inside it.  Blocking filesystem calls run in a
    worker thread.
    """

    backend_name = "local"

    def __init__(self, base_path: str | Path = "./data/storage"):
        self.base_path = Path(base_path).resolve()
        self.base_path.mkdir(parents=True, exist_ok=True)
        logger.info("local_storage_initialized", base_path=str(self.base_path))

    def _bucket_dir(self, bucket: str) -> Path:
        return self.base_path / validate_bucket_name(bucket)

    def _resolve_path(self, bucket: str, path: str) -> Path:
        """Resolve an object key to an absolute path inside its bucket."""
        bucket_dir = self._bucket_dir(bucket)
        full_path = bucket_dir / normalize_object_path(path)

        try:
            full_path.resolve().relative_to(bucket_dir.resolve())
        except ValueError:
            raise InvalidArgumentError(f"Invalid path: {path} (outside bucket)", field="path") from None

        return full_path

    def _require_bucket(self, bucket: str) -> Path:
        bucket_dir = self._bucket_dir(bucket)
        if not bucket_dir.is_dir():
            raise NotFoundError(f"Bucket not found: {bucket}")
        return bucket_dir

    def _object_info(self, bucket: str, key: str, full_path: Path, etag: str | None = None) -> StorageObject:
        stat = full_path.stat()
        content_type, _ = mimetypes.guess_type(key)
        return StorageObject(
            bucket=bucket,
            path=key,
            size=stat.st_size,
            content_type=content_type,
            last_modified=datetime.fromtimestamp(stat.st_mtime, tz=timezone.utc),
            etag=etag,
        )

    # -- Objects -----------------------------------------------------------

    async def put_object(
        self, bucket: str, path: str, data: bytes, content_type: str | None = None
    ) -> StorageObject:
        self._require_bucket(bucket)
        full_path = self._resolve_path(bucket, path)
        key = normalize_object_path(path)

        def _write() -> StorageObject:
            full_path.parent.mkdir(parents=True, exist_ok=True)
            tmp_path = full_path.with_name(f".{full_path.name}.upload")
            tmp_path.write_bytes(data)
            os.replace(tmp_path, full_path)
            info = self._object_info(bucket, key, full_path, etag=hashlib.sha256(data).hexdigest())
            if content_type:
                info.content_type = content_type
            return info

        info = await asyncio.to_thread(_write)
        logger.info("file_written", bucket=bucket, path=key, size=len(data))
        return info

    async def get_object(self, bucket: str, path: str) -> bytes:
        full_path = self._resolve_path(bucket, path)
        self._require_bucket(bucket)
        if not full_path.is_file():
            raise NotFoundError(f"Object not found: {bucket}/{path}")
        return await asyncio.to_thread(full_path.read_bytes)

    async def iter_object(
        self, bucket: str, path: str, chunk_size: int = DEFAULT_CHUNK_SIZE
    ) -> AsyncIterator[bytes]:
        full_path = self._resolve_path(bucket, path)
        if not full_path.is_file():
            raise NotFoundError(f"Object not found: {bucket}/{path}")

        handle = await asyncio.to_thread(full_path.open, "rb")
        try:
            while True:
                chunk = await asyncio.to_thread(handle.read, chunk_size)
                if not chunk:
                    break
                yield chunk
        finally:
            await asyncio.to_thread(handle.close)

    async def stat_object(self, bucket: str, path: str) -> StorageObject | None:
        full_path = self._resolve_path(bucket, path)
        if not full_path.is_file():
            return None
        return await asyncio.to_thread(self._object_info, bucket, normalize_object_path(path), full_path)

    async def delete_object(self, bucket: str, path: str) -> bool:
        full_path = self._resolve_path(bucket, path)
        if not full_path.is_file():
            return False
        await asyncio.to_thread(full_path.unlink)
        logger.info("file_deleted", bucket=bucket, path=path)
        return True

    async def list_objects(self, bucket: str, prefix: str = "") -> list[StorageObject]:
        bucket_dir = self._require_bucket(bucket)
        prefix = prefix.lstrip("/")

        def _walk() -> list[StorageObject]:
            objects = []
            for file_path in bucket_dir.rglob("*"):
                if not file_path.is_file() or _is_partial_upload(file_path):
                    continue
                key = file_path.relative_to(bucket_dir).as_posix()
                if key.startswith(prefix):
                    objects.append(self._object_info(bucket, key, file_path))
            return sorted(objects, key=lambda o: o.path)

        return await asyncio.to_thread(_walk)

    # -- Buckets -----------------------------------------------------------

    async def bucket_exists(self, bucket: str) -> bool:
        return self._bucket_dir(bucket).is_dir()

    async def create_bucket(self, bucket: str, *, public: bool = False) -> BucketInfo:
        bucket_dir = self._bucket_dir(bucket)
        if bucket_dir.is_dir():
            raise ConflictError(f"Bucket already exists: {bucket}")
        await asyncio.to_thread(bucket_dir.mkdir, parents=True)
        logger.info("bucket_created", bucket=bucket, public=public)
        return BucketInfo(name=bucket, public=public, created_at=datetime.now(timezone.utc))

    async def delete_bucket(self, bucket: str) -> None:
        bucket_dir = self._require_bucket(bucket)
        if any(p.is_file() for p in bucket_dir.rglob("*")):
            raise ConflictError(f"Bucket is not empty: {bucket}")
        await asyncio.to_thread(shutil.rmtree, bucket_dir)
        logger.info("bucket_deleted", bucket=bucket)

    async def list_buckets(self) -> list[BucketInfo]:
        def _scan() -> list[BucketInfo]:
            return [
                BucketInfo(
                    name=entry.name,
                    created_at=datetime.fromtimestamp(entry.stat().st_ctime, tz=timezone.utc),
                )
                for entry in sorted(self.base_path.iterdir())
                if entry.is_dir()
            ]

        return await asyncio.to_thread(_scan)


def _is_partial_upload(path: Path) -> bool:
    return path.name.startswith(".") and path.name.endswith(".upload")
