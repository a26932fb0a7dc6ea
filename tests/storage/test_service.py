"""
Tests for StorageService: bucket policy, upload ceiling, URLs and envelopes.
"""

from __future__ import annotations

from urllib.parse import parse_qs, urlparse

import pytest

from folio.storage.local import LocalObjectStore
from folio.storage.service import StorageService
from folio.storage.signing import UrlSigner


@pytest.fixture
async def service(tmp_path):
    svc = StorageService(
        LocalObjectStore(tmp_path / "objects"),
        UrlSigner("signing-secret"),
        public_buckets=["gallery-images"],
        default_buckets=["gallery-images", "private-docs"],
        max_upload_bytes=16,
        public_base_url="http://cms.test/",
    )
    await svc.ensure_default_buckets()
    return svc


async def read_stream(envelope) -> bytes:
    return b"".join([chunk async for chunk in envelope.data.chunks])


async def test_default_buckets_are_created_once(service):
    assert await service.ensure_default_buckets() == []
    listed = await service.list_buckets()
    assert {b["id"]: b["public"] for b in listed.data} == {"gallery-images": True, "private-docs": False}


async def test_upload_and_download(service):
    env = await service.upload("private-docs", "notes/a.txt", b"hello", "text/plain")
    assert env.data == {"path": "notes/a.txt", "id": env.data["id"], "fullPath": "private-docs/notes/a.txt"}
    assert (await service.download("private-docs", "notes/a.txt")).data == b"hello"


async def test_upload_existing_path_needs_upsert(service):
    await service.upload("private-docs", "a.txt", b"one")
    clash = await service.upload("private-docs", "a.txt", b"two")
    assert clash.error.code == "CONFLICT"

    replaced = await service.upload("private-docs", "a.txt", b"two", upsert=True)
    assert replaced.is_ok()
    assert (await service.download("private-docs", "a.txt")).data == b"two"


async def test_upload_over_limit_is_rejected_before_io(service, tmp_path):
    env = await service.upload("private-docs", "big.bin", b"x" * 17)
    assert env.error.code == "PAYLOAD_TOO_LARGE"
    assert env.http_status == 413
    assert not (tmp_path / "objects" / "private-docs" / "big.bin").exists()


async def test_public_stream_only_for_public_buckets(service):
    await service.upload("gallery-images", "dunes.jpg", b"jpeg", "image/jpeg")
    await service.upload("private-docs", "secret.txt", b"secret")

    public = await service.open_public_stream("gallery-images", "dunes.jpg")
    assert await read_stream(public) == b"jpeg"
    assert public.data.info.size == 4

    denied = await service.open_public_stream("private-docs", "secret.txt")
    assert denied.error.code == "FORBIDDEN"


async def test_missing_object_is_not_found_before_streaming(service):
    env = await service.open_stream("gallery-images", "nope.jpg")
    assert env.error.code == "NOT_FOUND"


async def test_batch_remove_is_all_or_nothing(service):
    await service.upload("private-docs", "a.txt", b"a")
    await service.upload("private-docs", "b.txt", b"b")

    partial = await service.remove("private-docs", ["a.txt", "missing.txt"])
    assert partial.error.code == "NOT_FOUND"
    assert (await service.download("private-docs", "a.txt")).is_ok()

    removed = await service.remove("private-docs", ["a.txt", "b.txt"])
    assert removed.data["paths"] == ["a.txt", "b.txt"]
    assert (await service.list("private-docs")).data == []


async def test_remove_requires_paths(service):
    env = await service.remove("private-docs", [])
    assert env.error.code == "INVALID_ARGUMENT"


async def test_list_pagination(service):
    for name in ("a", "b", "c"):
        await service.upload("private-docs", f"{name}.txt", name.encode())
    page = await service.list("private-docs", limit=2, offset=1)
    assert [item["name"] for item in page.data] == ["b.txt", "c.txt"]
    assert page.count == 2


def test_public_url_is_pure(tmp_path):
    svc = StorageService(LocalObjectStore(tmp_path), UrlSigner("s"), public_base_url="http://cms.test")
    assert svc.get_public_url("logos", "/brand/logo mark.svg") == "http://cms.test/storage/logos/public/brand/logo%20mark.svg"


async def test_signed_url_round_trip(service):
    await service.upload("private-docs", "report.pdf", b"%PDF-1.7")
    env = await service.create_signed_url("private-docs", "report.pdf", 60)
    url = urlparse(env.data["signedUrl"])
    assert url.path == "/storage/private-docs/signed/report.pdf"
    token = parse_qs(url.query)["token"][0]

    stream = await service.open_signed_stream("private-docs", "report.pdf", token)
    assert await read_stream(stream) == b"%PDF-1.7"

    other = await service.open_signed_stream("private-docs", "other.pdf", token)
    assert other.error.code == "UNAUTHORIZED"


async def test_signed_url_for_missing_object(service):
    env = await service.create_signed_url("private-docs", "nope.pdf")
    assert env.error.code == "NOT_FOUND"


async def test_created_public_bucket_joins_policy(service):
    created = await service.create_bucket("press-kit", public=True)
    assert created.data["public"] is True
    assert service.is_public("press-kit")

    await service.delete_bucket("press-kit")
    assert not service.is_public("press-kit")
    assert (await service.get_bucket("press-kit")).error.code == "NOT_FOUND"


async def test_health_check(service):
    assert await service.health_check() == {"healthy": True, "backend": "local"}
