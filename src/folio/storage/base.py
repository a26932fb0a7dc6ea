"""Base object store interface."""

from __future__ import annotations

import re
from abc import ABC, abstractmethod
from collections.abc import AsyncIterator
from dataclasses import dataclass
from datetime import datetime
from typing import Any

from folio.core.errors import InvalidArgumentError

BUCKET_NAME_RE = re.compile(r"^[a-z0-9][a-z0-9.-]{1,61}[a-z0-9]$")

DEFAULT_CHUNK_SIZE = 64 * 1024


@dataclass
class StorageObject:
    """Metadata about a stored object."""

    bucket: str
    path: str
    size: int
    content_type: str | None
    last_modified: datetime | None
    etag: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.path,
            "bucket": self.bucket,
            "size": self.size,
            "contentType": self.content_type,
            "lastModified": self.last_modified.isoformat() if self.last_modified else None,
            "etag": self.etag,
        }


@dataclass
class BucketInfo:
    """A bucket and whether its objects are publicly readable."""

    name: str
    public: bool = False
    created_at: datetime | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.name,
            "name": self.name,
            "public": self.public,
            "createdAt": self.created_at.isoformat() if self.created_at else None,
        }


def validate_bucket_name(bucket: str) -> str:
    """S3 bucket naming rules: 3-63 chars of lowercase letters, digits, dots and dashes."""
    if not isinstance(bucket, str) or not BUCKET_NAME_RE.match(bucket):
        raise InvalidArgumentError(f"Invalid bucket name: {bucket!r}", field="bucket")
    return bucket


def normalize_object_path(path: str) -> str:
    """Normalize an object key; rejects empty keys and parent-directory segments."""
    if not isinstance(path, str):
        raise InvalidArgumentError("Path is required", field="path")
    clean = path.replace("\\", "/").lstrip("/")
    if not clean or clean.endswith("/"):
        raise InvalidArgumentError("Path is required", field="path")
    if "\x00" in clean or any(part in ("", ".", "..") for part in clean.split("/")):
        raise InvalidArgumentError(f"Invalid path: {path!r}", field="path")
    return clean


class ObjectStore(ABC):
    """Abstract async object store.

    Implementations raise :class:`~folio.core.errors.NotFoundError` for a
    missing object or bucket and :class:`~folio.core.errors.ExecutionError`
    for backend failures.
    """

    backend_name: str = "abstract"

    # -- Objects -----------------------------------------------------------

    @abstractmethod
    async def put_object(
        self, bucket: str, path: str, data: bytes, content_type: str | None = None
    ) -> StorageObject:
        ...

    @abstractmethod
    async def get_object(self, bucket: str, path: str) -> bytes:
        ...

    @abstractmethod
    def iter_object(
        self, bucket: str, path: str, chunk_size: int = DEFAULT_CHUNK_SIZE
    ) -> AsyncIterator[bytes]:
        """Yield the object's content in chunks."""
        ...

    @abstractmethod
    async def stat_object(self, bucket: str, path: str) -> StorageObject | None:
        """Return metadata, or ``None`` when the object does not exist."""
        ...

    @abstractmethod
    async def delete_object(self, bucket: str, path: str) -> bool:
        """Delete an object; ``False`` when it did not exist."""
        ...

    @abstractmethod
    async def list_objects(self, bucket: str, prefix: str = "") -> list[StorageObject]:
        ...

    async def presigned_url(self, bucket: str, path: str, expires_in: int) -> str | None:
        """Backend-native signed GET URL, or ``None`` when the backend has none."""
        return None

    # -- Buckets -----------------------------------------------------------

    @abstractmethod
    async def bucket_exists(self, bucket: str) -> bool:
        ...

    @abstractmethod
    async def create_bucket(self, bucket: str, *, public: bool = False) -> BucketInfo:
        ...

    @abstractmethod
    async def delete_bucket(self, bucket: str) -> None:
        ...

    @abstractmethod
    async def list_buckets(self) -> list[BucketInfo]:
        ...

    async def health_check(self) -> bool:
        await self.list_buckets()
        return True
