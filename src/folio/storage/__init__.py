"""Object storage with public/private bucket policy."""

from typing import Any

from folio.storage.base import BucketInfo, ObjectStore, StorageObject
from folio.storage.local import LocalObjectStore
from folio.storage.s3 import S3ObjectStore
from folio.storage.service import ObjectStream, StorageService
from folio.storage.signing import UrlSigner

__all__ = [
    "BucketInfo",
    "LocalObjectStore",
    "ObjectStore",
    "ObjectStream",
    "S3ObjectStore",
    "StorageObject",
    "StorageService",
    "UrlSigner",
    "create_object_store",
]


def create_object_store(settings: Any) -> ObjectStore:
    """Build the configured object store (``local`` or ``s3``)."""
    if settings.storage_backend == "s3":
        return S3ObjectStore(
            endpoint_url=settings.s3_endpoint_url,
            region=settings.s3_region,
            access_key=settings.s3_access_key,
            secret_key=settings.s3_secret_key,
        )
    return LocalObjectStore(base_path=settings.storage_local_path)
