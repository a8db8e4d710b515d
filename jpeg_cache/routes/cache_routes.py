import re
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import PlainTextResponse, Response
from starlette.requests import ClientDisconnect

import config
from config import CacheConfig
from jpeg_cache.services.blob_store import BlobStore, StoreResult, StoreStatus
from logger_config import get_logger

logger = get_logger("routes")

router = APIRouter()

ALLOWED_METHODS = ("GET", "PUT", "DELETE")
ALLOW_HEADER = ", ".join(ALLOWED_METHODS)

# Methods outside this list never reach the route; Starlette raises its own
# 405, which main.py renders the same way as ours.
ROUTED_METHODS = ["GET", "HEAD", "POST", "PUT", "DELETE", "PATCH", "OPTIONS", "TRACE"]

PATH_PATTERN = re.compile(r"/([0-9]{3})")
INVALID_PATH_MESSAGE = "Invalid path. Requests must target /XXX where XXX is a 3-digit code, e.g. /200"


def parse_cache_key(path: str, query: str = "") -> Optional[str]:
    """Return the cache key addressed by ``path`` or None if the path is malformed."""
    if query:
        return None
    match = PATH_PATTERN.fullmatch(path)
    return match.group(1) if match else None


def request_cache_key(request: Request) -> Optional[str]:
    """Cache key for the request target.

    Reads the decoded path from the scope rather than ``request.url`` so an
    encoded ``#`` or ``?`` stays part of the path.
    """
    query = request.scope.get("query_string", b"").decode("latin-1")
    return parse_cache_key(request.scope["path"], query)


def invalid_path() -> HTTPException:
    return HTTPException(status_code=400, detail=INVALID_PATH_MESSAGE)


def method_not_allowed() -> HTTPException:
    return HTTPException(status_code=405, detail="Method not allowed", headers={"Allow": ALLOW_HEADER})


def get_blob_store(request: Request) -> BlobStore:
    return request.app.state.blob_store


def get_cache_config(request: Request) -> CacheConfig:
    return request.app.state.config


async def read_body(request: Request, max_size: int) -> bytes:
    """Read the whole request body, refusing anything above ``max_size`` bytes."""
    content_length = request.headers.get("content-length")
    if content_length is not None:
        try:
            declared = int(content_length)
        except ValueError:
            raise HTTPException(status_code=400, detail="Invalid Content-Length header")
        if declared > max_size:
            raise HTTPException(status_code=413, detail=f"Body too large (max {max_size} bytes)")

    body = bytearray()
    async for chunk in request.stream():
        body.extend(chunk)
        if len(body) > max_size:
            raise HTTPException(status_code=413, detail=f"Body too large (max {max_size} bytes)")
    return bytes(body)


def _failure_response(result: StoreResult, action: str, filename: str) -> Response:
    if result.status is StoreStatus.NOT_FOUND:
        logger.info(f"Cache miss: {filename}")
        return PlainTextResponse("Not found", status_code=404)
    logger.error(f"Error {action} {filename}: {result.detail}")
    return PlainTextResponse("Internal server error", status_code=500)


async def read_blob(store: BlobStore, key: str) -> Response:
    filename = store.location(key).name
    result = await store.read(key)
    if result.status is not StoreStatus.OK:
        return _failure_response(result, "reading", filename)

    logger.info(f"Cache hit: {filename}")
    return Response(content=result.data, media_type=config.CONTENT_TYPE)


async def write_blob(store: BlobStore, key: str, request: Request, max_size: int) -> Response:
    filename = store.location(key).name
    try:
        body = await read_body(request, max_size)
    except ClientDisconnect:
        logger.warning(f"Client disconnected before the body for {filename} arrived, nothing stored")
        return PlainTextResponse("Request body incomplete", status_code=400)
    except HTTPException as e:
        if e.status_code == 413:
            logger.warning(f"Rejected upload for {filename}: {e.detail}")
        raise

    result = await store.write(key, body)
    if result.status is not StoreStatus.OK:
        return _failure_response(result, "writing", filename)

    logger.info(f"Stored: {filename} ({len(body)} bytes)")
    return PlainTextResponse(f"Stored {key}", status_code=201)


async def delete_blob(store: BlobStore, key: str) -> Response:
    filename = store.location(key).name
    result = await store.delete(key)
    if result.status is not StoreStatus.OK:
        return _failure_response(result, "deleting", filename)

    logger.info(f"Deleted: {filename}")
    return PlainTextResponse(f"Deleted {key}", status_code=200)


@router.api_route("/{path:path}", methods=ROUTED_METHODS)
async def dispatch(
    request: Request,
    store: BlobStore = Depends(get_blob_store),
    cache_config: CacheConfig = Depends(get_cache_config),
):
    """Validate the request target and hand it to the matching blob operation."""
    logger.info(f"{request.method} {request.scope['path']}")

    key = request_cache_key(request)
    if key is None:
        raise invalid_path()

    if request.method == "GET":
        return await read_blob(store, key)
    if request.method == "PUT":
        return await write_blob(store, key, request, cache_config.max_body_size)
    if request.method == "DELETE":
        return await delete_blob(store, key)
    raise method_not_allowed()
