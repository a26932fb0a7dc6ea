"""S3-compatible object store (AWS S3, MinIO, LocalStack)."""

from __future__ import annotations

import asyncio
import json
from collections.abc import AsyncIterator
from datetime import datetime
from typing import Any

import boto3
import structlog
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from folio.core.errors import ConflictError, ExecutionError, NotFoundError
from folio.storage.base import (
    DEFAULT_CHUNK_SIZE,
    BucketInfo,
    ObjectStore,
    StorageObject,
    normalize_object_path,
    validate_bucket_name,
)

logger = structlog.get_logger(__name__)

_MISSING_CODES = {"NoSuchKey", "NoSuchBucket", "404", "NotFound"}


def _error_code(exc: ClientError) -> str:
    return str(exc.response.get("Error", {}).get("Code", ""))


def _public_read_policy(bucket: str) -> str:
    return json.dumps(
        {
            "Version": "2012-10-17",
            "Statement": [
                {
                    "Effect": "Allow",
                    "Principal": {"AWS": ["*"]},
                    "Action": ["s3:GetObject"],
                    "Resource": [f"arn:aws:s3:::{bucket}/*"],
                }
            ],
        }
    )


class S3ObjectStore(ObjectStore):
    """
    S3-compatible object store.

    boto3 is synchronous, so every call runs in a worker thread.  A ``client``
    may be injected (tests pass a mock).
    """

    backend_name = "s3"

    def __init__(
        self,
        endpoint_url: str | None = None,
        region: str = "us-east-1",
        access_key: str | None = None,
        secret_key: str | None = None,
        client: Any = None,
    ):
        self.endpoint_url = endpoint_url
        self.region = region

        if client is None:
            client_kwargs: dict[str, Any] = {
                "service_name": "s3",
                "region_name": region,
                "config": Config(signature_version="s3v4", s3={"addressing_style": "path"}),
            }
            if endpoint_url:
                client_kwargs["endpoint_url"] = endpoint_url
            if access_key and secret_key:
                client_kwargs["aws_access_key_id"] = access_key
                client_kwargs["aws_secret_access_key"] = secret_key
            client = boto3.client(**client_kwargs)

        self.client = client
        logger.info("s3_storage_initialized", endpoint=endpoint_url, region=region)

    async def _call(self, method: str, **kwargs: Any) -> Any:
        """Run a boto3 client method off the event loop, translating errors."""
        try:
            return await asyncio.to_thread(getattr(self.client, method), **kwargs)
        except ClientError as exc:
            code = _error_code(exc)
            if code in _MISSING_CODES:
                target = kwargs.get("Bucket", "")
                if "Key" in kwargs:
                    target = f"{target}/{kwargs['Key']}"
                if code == "NoSuchBucket":
                    raise NotFoundError(f"Bucket not found: {kwargs.get('Bucket')}", cause=exc) from exc
                raise NotFoundError(f"Object not found: {target}", cause=exc) from exc
            if code in ("BucketAlreadyOwnedByYou", "BucketAlreadyExists"):
                raise ConflictError(f"Bucket already exists: {kwargs.get('Bucket')}", cause=exc) from exc
            raise ExecutionError(f"S3 {method} failed: {code or exc}", cause=exc) from exc
        except BotoCoreError as exc:
            raise ExecutionError(f"S3 {method} failed: {exc}", cause=exc) from exc

    # -- Objects -----------------------------------------------------------

    async def put_object(
        self, bucket: str, path: str, data: bytes, content_type: str | None = None
    ) -> StorageObject:
        key = normalize_object_path(path)
        extra: dict[str, Any] = {}
        if content_type:
            extra["ContentType"] = content_type

        response = await self._call(
            "put_object", Bucket=validate_bucket_name(bucket), Key=key, Body=data, **extra
        )
        logger.info("s3_file_written", bucket=bucket, key=key, size=len(data))

        return StorageObject(
            bucket=bucket,
            path=key,
            size=len(data),
            content_type=content_type,
            last_modified=datetime.now(),
            etag=str(response.get("ETag", "")).strip('"') or None,
        )

    async def get_object(self, bucket: str, path: str) -> bytes:
        key = normalize_object_path(path)
        response = await self._call("get_object", Bucket=validate_bucket_name(bucket), Key=key)
        return await asyncio.to_thread(response["Body"].read)

    async def iter_object(
        self, bucket: str, path: str, chunk_size: int = DEFAULT_CHUNK_SIZE
    ) -> AsyncIterator[bytes]:
        key = normalize_object_path(path)
        response = await self._call("get_object", Bucket=validate_bucket_name(bucket), Key=key)
        body = response["Body"]
        try:
            while True:
                chunk = await asyncio.to_thread(body.read, chunk_size)
                if not chunk:
                    break
                yield chunk
        finally:
            await asyncio.to_thread(body.close)

    async def stat_object(self, bucket: str, path: str) -> StorageObject | None:
        key = normalize_object_path(path)
        try:
            response = await self._call("head_object", Bucket=validate_bucket_name(bucket), Key=key)
        except NotFoundError:
            return None
        return StorageObject(
            bucket=bucket,
            path=key,
            size=response["ContentLength"],
            content_type=response.get("ContentType"),
            last_modified=response.get("LastModified"),
            etag=str(response.get("ETag", "")).strip('"') or None,
        )

    async def delete_object(self, bucket: str, path: str) -> bool:
        if await self.stat_object(bucket, path) is None:
            return False
        key = normalize_object_path(path)
        await self._call("delete_object", Bucket=bucket, Key=key)
        logger.info("s3_file_deleted", bucket=bucket, key=key)
        return True

    async def list_objects(self, bucket: str, prefix: str = "") -> list[StorageObject]:
        validate_bucket_name(bucket)
        prefix = prefix.lstrip("/")

        def _paginate() -> list[dict[str, Any]]:
            paginator = self.client.get_paginator("list_objects_v2")
            contents: list[dict[str, Any]] = []
            for page in paginator.paginate(Bucket=bucket, Prefix=prefix):
                contents.extend(page.get("Contents", []))
            return contents

        try:
            contents = await asyncio.to_thread(_paginate)
        except ClientError as exc:
            if _error_code(exc) == "NoSuchBucket":
                raise NotFoundError(f"Bucket not found: {bucket}", cause=exc) from exc
            raise ExecutionError(f"S3 list failed: {_error_code(exc)}", cause=exc) from exc

        return [
            StorageObject(
                bucket=bucket,
                path=obj["Key"],
                size=obj["Size"],
                content_type=None,
                last_modified=obj.get("LastModified"),
                etag=str(obj.get("ETag", "")).strip('"') or None,
            )
            for obj in contents
        ]

    async def presigned_url(self, bucket: str, path: str, expires_in: int) -> str | None:
        key = normalize_object_path(path)
        return await asyncio.to_thread(
            self.client.generate_presigned_url,
            "get_object",
            Params={"Bucket": validate_bucket_name(bucket), "Key": key},
            ExpiresIn=expires_in,
        )

    # -- Buckets -----------------------------------------------------------

    async def bucket_exists(self, bucket: str) -> bool:
        try:
            await self._call("head_bucket", Bucket=validate_bucket_name(bucket))
        except NotFoundError:
            return False
        return True

    async def create_bucket(self, bucket: str, *, public: bool = False) -> BucketInfo:
        validate_bucket_name(bucket)
        if await self.bucket_exists(bucket):
            raise ConflictError(f"Bucket already exists: {bucket}")

        kwargs: dict[str, Any] = {"Bucket": bucket}
        if self.region and self.region != "us-east-1":
            kwargs["CreateBucketConfiguration"] = {"LocationConstraint": self.region}
        await self._call("create_bucket", **kwargs)

        if public:
            await self._call("put_bucket_policy", Bucket=bucket, Policy=_public_read_policy(bucket))
        logger.info("s3_bucket_created", bucket=bucket, public=public)
        return BucketInfo(name=bucket, public=public, created_at=datetime.now())

    async def delete_bucket(self, bucket: str) -> None:
        if not await self.bucket_exists(bucket):
            raise NotFoundError(f"Bucket not found: {bucket}")
        response = await self._call("list_objects_v2", Bucket=bucket, MaxKeys=1)
        if response.get("KeyCount", 0) > 0 or response.get("Contents"):
            raise ConflictError(f"Bucket is not empty: {bucket}")
        await self._call("delete_bucket", Bucket=bucket)
        logger.info("s3_bucket_deleted", bucket=bucket)

    async def list_buckets(self) -> list[BucketInfo]:
        response = await self._call("list_buckets")
        return [
            BucketInfo(name=b["Name"], created_at=b.get("CreationDate"))
            for b in response.get("Buckets", [])
        ]
