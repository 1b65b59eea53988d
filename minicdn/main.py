"""FastAPI application: static files at `/` behind tracing, gzip and CORS."""

import logging
import os
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse

from minicdn.config import Settings, settings as default_settings
from minicdn.exceptions import RequestError
from minicdn.middleware import PermissiveCORSMiddleware, RequestTracingMiddleware
from minicdn.staticfiles import StaticFiles

logger = logging.getLogger(__name__)


async def request_error_handler(request: Request, exc: RequestError) -> JSONResponse:
    """Turn a per-request failure into its status code and a `detail` body."""
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.detail} ({exc.path})")
    return JSONResponse({"detail": exc.detail}, status_code=exc.status_code)


async def os_error_handler(request: Request, exc: OSError) -> JSONResponse:
    """I/O errors while resolving a file surface as 500."""
    logger.error(f"{request.method} {request.url.path} failed: {exc}")
    return JSONResponse({"detail": "Internal Server Error"}, status_code=500)


def create_app(config: Optional[Settings] = None) -> FastAPI:
    """Build the application for `config` (the process settings by default)."""
    config = config or default_settings

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Log the serving root on startup."""
        if not os.path.isdir(config.STATIC_DIR):
            logger.warning(f"Serving root {config.STATIC_DIR} does not exist")
        logger.info(
            f"Serving files from {config.STATIC_DIR} "
            f"(precompressed gzip {'on' if config.PRECOMPRESSED_GZIP else 'off'})"
        )
        yield
        logger.info("MiniCDN stopped")

    app = FastAPI(
        title="MiniCDN",
        version="1.0.0",
        lifespan=lifespan,
        docs_url=None,
        redoc_url=None,
        openapi_url=None,
    )

    app.add_exception_handler(RequestError, request_error_handler)
    app.add_exception_handler(OSError, os_error_handler)

    # Last added runs outermost: CORS wraps compression wraps tracing.
    app.add_middleware(RequestTracingMiddleware)
    app.add_middleware(GZipMiddleware, minimum_size=config.COMPRESSION_MINIMUM_SIZE)
    app.add_middleware(PermissiveCORSMiddleware)

    app.mount(
        "/",
        StaticFiles(directory=config.STATIC_DIR, precompressed_gzip=config.PRECOMPRESSED_GZIP),
        name="static",
    )
    return app


app = create_app()
