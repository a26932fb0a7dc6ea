"""
Storage router.

Bucket management:
    GET    /storage/buckets               list buckets
    POST   /storage/buckets               admin: {id, public}
    GET    /storage/buckets/{id}          bucket info
    DELETE /storage/buckets/{id}          admin: delete an empty bucket

Objects (bearer token):
    POST   /storage/{bucket}/upload           multipart ``file`` + ``path`` [+ ``upsert``]
    GET    /storage/{bucket}/download/{path}  stream the object
    DELETE /storage/{bucket}/remove           {paths}
    GET    /storage/{bucket}/list?path=       list objects under a prefix
    POST   /storage/{bucket}/signed-url       {path, expiresIn} -> {signedUrl}

Unauthenticated reads:
    GET/OPTIONS /storage/{bucket}/public/{path}   public buckets only
    GET         /storage/{bucket}/signed/{path}   ?token= from signed-url
    GET         /storage/{bucket}/{path}          public buckets without a token,
                                                  any bucket with one
"""

from __future__ import annotations

from fastapi import APIRouter, File, Form, Query, Request, UploadFile
from fastapi.responses import JSONResponse, Response, StreamingResponse

from folio.api.deps import AdminPrincipal, AppRuntime, CurrentPrincipal, OptionalPrincipal
from folio.api.middleware.errors import envelope_response
from folio.api.schemas.common import CreateBucketRequest, EnvelopeBody, RemoveRequest, SignedUrlRequest
from folio.core.envelope import Envelope
from folio.core.errors import UnauthorizedError
from folio.storage.service import PUBLIC_CACHE_CONTROL, ObjectStream

router = APIRouter(prefix="/storage")

PUBLIC_CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "GET, OPTIONS",
    "Access-Control-Allow-Headers": "Content-Type",
}


def _stream_response(request: Request, envelope: Envelope, *, public: bool = False) -> Response:
    if envelope.is_err():
        return envelope_response(request, envelope, headers=PUBLIC_CORS_HEADERS if public else None)
    stream: ObjectStream = envelope.data
    headers = {"Content-Length": str(stream.info.size)}
    if stream.info.etag:
        headers["ETag"] = f'"{stream.info.etag}"'
    if public:
        headers.update(PUBLIC_CORS_HEADERS)
        headers["Cache-Control"] = PUBLIC_CACHE_CONTROL
    return StreamingResponse(
        stream.chunks,
        media_type=stream.info.content_type or "application/octet-stream",
        headers=headers,
    )


# ── Buckets ──────────────────────────────────────────────────────────────


@router.get("/buckets", response_model=EnvelopeBody)
async def list_buckets(request: Request, runtime: AppRuntime, principal: CurrentPrincipal) -> JSONResponse:
    return envelope_response(request, await runtime.storage.list_buckets())


@router.post("/buckets", response_model=EnvelopeBody, status_code=201)
async def create_bucket(
    request: Request, runtime: AppRuntime, principal: AdminPrincipal, body: CreateBucketRequest
) -> JSONResponse:
    envelope = await runtime.storage.create_bucket(body.id, public=body.public)
    return envelope_response(request, envelope, status_code=201)


@router.get("/buckets/{bucket_id}", response_model=EnvelopeBody)
async def get_bucket(
    request: Request, runtime: AppRuntime, principal: CurrentPrincipal, bucket_id: str
) -> JSONResponse:
    return envelope_response(request, await runtime.storage.get_bucket(bucket_id))


@router.delete("/buckets/{bucket_id}", response_model=EnvelopeBody)
async def delete_bucket(
    request: Request, runtime: AppRuntime, principal: AdminPrincipal, bucket_id: str
) -> JSONResponse:
    return envelope_response(request, await runtime.storage.delete_bucket(bucket_id))


# ── Unauthenticated reads ────────────────────────────────────────────────


@router.options("/{bucket}/public/{path:path}")
async def public_preflight(bucket: str, path: str) -> Response:
    return Response(status_code=200, headers={**PUBLIC_CORS_HEADERS, "Access-Control-Max-Age": "86400"})


@router.get("/{bucket}/public/{path:path}")
async def read_public(request: Request, runtime: AppRuntime, bucket: str, path: str) -> Response:
    return _stream_response(request, await runtime.storage.open_public_stream(bucket, path), public=True)


@router.get("/{bucket}/signed/{path:path}")
async def read_signed(
    request: Request, runtime: AppRuntime, bucket: str, path: str, token: str = Query("")
) -> Response:
    return _stream_response(request, await runtime.storage.open_signed_stream(bucket, path, token))


# ── Objects ──────────────────────────────────────────────────────────────


@router.post("/{bucket}/upload", response_model=EnvelopeBody)
async def upload(
    request: Request,
    runtime: AppRuntime,
    principal: CurrentPrincipal,
    bucket: str,
    file: UploadFile = File(...),
    path: str | None = Form(None),
    upsert: bool = Form(False),
) -> JSONResponse:
    # one byte past the ceiling is enough to reject oversized uploads
    data = await file.read(runtime.storage.max_upload_bytes + 1)
    target = path or file.filename or ""
    envelope = await runtime.storage.upload(bucket, target, data, file.content_type, upsert=upsert)
    return envelope_response(request, envelope)


@router.get("/{bucket}/download/{path:path}")
async def download(
    request: Request, runtime: AppRuntime, principal: CurrentPrincipal, bucket: str, path: str
) -> Response:
    return _stream_response(request, await runtime.storage.open_stream(bucket, path))


@router.delete("/{bucket}/remove", response_model=EnvelopeBody)
async def remove(
    request: Request, runtime: AppRuntime, principal: CurrentPrincipal, bucket: str, body: RemoveRequest
) -> JSONResponse:
    return envelope_response(request, await runtime.storage.remove(bucket, body.paths))


@router.get("/{bucket}/list", response_model=EnvelopeBody)
async def list_objects(
    request: Request,
    runtime: AppRuntime,
    principal: CurrentPrincipal,
    bucket: str,
    path: str = Query(""),
    limit: int = Query(100, ge=0, le=1000),
    offset: int = Query(0, ge=0),
) -> JSONResponse:
    envelope = await runtime.storage.list(bucket, path, limit=limit, offset=offset)
    return envelope_response(request, envelope)


@router.post("/{bucket}/signed-url", response_model=EnvelopeBody)
async def create_signed_url(
    request: Request, runtime: AppRuntime, principal: CurrentPrincipal, bucket: str, body: SignedUrlRequest
) -> JSONResponse:
    envelope = await runtime.storage.create_signed_url(bucket, body.path, body.expires_in)
    return envelope_response(request, envelope)


@router.get("/{bucket}/{path:path}")
async def read_object(
    request: Request, runtime: AppRuntime, principal: OptionalPrincipal, bucket: str, path: str
) -> Response:
    """Public buckets are served without a token; others need one."""
    if runtime.storage.is_public(bucket):
        return _stream_response(request, await runtime.storage.open_public_stream(bucket, path), public=True)
    if principal is None:
        return envelope_response(request, Envelope.failure(UnauthorizedError("Access token required")))
    return _stream_response(request, await runtime.storage.open_stream(bucket, path))
