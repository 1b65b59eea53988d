"""ASGI middleware: per-request tracing and permissive CORS."""

import logging
import time

from starlette.datastructures import Headers, MutableHeaders
from starlette.middleware.cors import CORSMiddleware
from starlette.responses import JSONResponse
from starlette.types import ASGIApp, Message, Receive, Scope, Send

logger = logging.getLogger(__name__)


class RequestTracingMiddleware:
    """Log method, path, status and latency of every HTTP request.

    An unhandled error raised before the response starts is logged and
    answered with a 500 `{"detail": ...}` body.
    """

    def __init__(self, app: ASGIApp) -> None:
        self.app = app

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        method = scope["method"]
        path = scope["path"]
        status_code = None
        started = time.perf_counter()

        async def send_wrapper(message: Message) -> None:
            nonlocal status_code
            if message["type"] == "http.response.start":
                status_code = message["status"]
            await send(message)

        logger.debug(f"started processing request method={method} path={path}")
        try:
            await self.app(scope, receive, send_wrapper)
        except Exception:
            latency_ms = (time.perf_counter() - started) * 1000
            logger.exception(
                f"request failed method={method} path={path} latency_ms={latency_ms:.2f}",
                extra={"method": method, "path": path, "status": 500, "latency_ms": latency_ms},
            )
            if status_code is not None:
                raise
            # Answered here so the outer CORS and gzip layers still apply.
            response = JSONResponse({"detail": "Internal Server Error"}, status_code=500)
            await response(scope, receive, send)
            return

        latency_ms = (time.perf_counter() - started) * 1000
        logger.info(
            f"finished processing request method={method} path={path} "
            f"status={status_code} latency_ms={latency_ms:.2f}",
            extra={"method": method, "path": path, "status": status_code, "latency_ms": latency_ms},
        )


class PermissiveCORSMiddleware(CORSMiddleware):
    """CORS for any origin, method and header.

    Starlette only decorates requests that carry an ``Origin`` header; this
    variant adds the allow-origin headers to every HTTP response.
    """

    def __init__(self, app: ASGIApp) -> None:
        super().__init__(
            app,
            allow_origins=["*"],
            allow_methods=["*"],
            allow_headers=["*"],
            expose_headers=["*"],
        )

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] == "http" and "origin" not in Headers(scope=scope):
            await self.app(scope, receive, self._with_simple_headers(send))
            return
        await super().__call__(scope, receive, send)

    def _with_simple_headers(self, send: Send) -> Send:
        async def send_wrapper(message: Message) -> None:
            if message["type"] == "http.response.start":
                headers = MutableHeaders(scope=message)
                headers.update(self.simple_headers)
            await send(message)

        return send_wrapper
