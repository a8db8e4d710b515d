import sys
from contextlib import asynccontextmanager
from typing import Optional, Sequence

import uvicorn
from fastapi import FastAPI, Request
from fastapi.responses import PlainTextResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from config import CacheConfig
from jpeg_cache.routes.cache_routes import ALLOW_HEADER, invalid_path, request_cache_key, router
from jpeg_cache.services.blob_store import BlobStore
from logger_config import get_logger, setup_logger

logger = get_logger()


def create_app(cache_config: CacheConfig) -> FastAPI:
    """Build the cache application around an already resolved configuration."""

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        app.state.blob_store = BlobStore(cache_config.cache_dir)
        await app.state.blob_store.initialize()
        yield

    # Every path belongs to the cache router, so the generated docs routes stay off
    app = FastAPI(
        title="JPEG Cache Server",
        lifespan=lifespan,
        docs_url=None,
        redoc_url=None,
        openapi_url=None,
    )
    app.state.config = cache_config

    @app.exception_handler(StarletteHTTPException)
    async def plain_text_http_exception(request: Request, exc: StarletteHTTPException):
        headers = dict(exc.headers or {})
        if exc.status_code == 405:
            # Also reached for methods Starlette rejects before routing
            if request_cache_key(request) is None:
                exc = invalid_path()
                headers = {}
            else:
                headers["Allow"] = ALLOW_HEADER
        if exc.status_code >= 500:
            logger.error(f"{request.method} {request.scope['path']} failed: {exc.detail}")
        else:
            logger.info(f"Rejected {request.method} {request.scope['path']} with {exc.status_code}")
        return PlainTextResponse(str(exc.detail), status_code=exc.status_code, headers=headers)

    app.include_router(router)
    return app


def main(argv: Optional[Sequence[str]] = None):
    cache_config = CacheConfig.from_args(argv)
    setup_logger(cache_config.log_dir)

    try:
        cache_config.cache_dir.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        logger.error(f"Failed to create cache directory {cache_config.cache_dir}: {e}")
        sys.exit(1)

    logger.info("Starting JPEG cache server...")
    logger.info(f"Cache directory: {cache_config.cache_dir}")
    logger.info(f"Maximum upload size: {cache_config.max_body_size / (1024*1024):.2f} MB")
    uvicorn.run(create_app(cache_config), host=cache_config.host, port=cache_config.port)


if __name__ == "__main__":
    main()
