"""Shared fixtures: a populated serving root and clients bound to it."""

import gzip

import anyio
import pytest
from httpx import AsyncClient, ASGITransport
from starlette.datastructures import Headers

from minicdn.config import Settings
from minicdn.main import create_app

INDEX_HTML = b"<!doctype html><html><body><h1>MiniCDN</h1></body></html>\n"
SITE_CSS = b"body { margin: 0; font-family: sans-serif; }\n" * 40
APP_JS = b"console.log('hello from minicdn');\n" * 50
STALE_TXT = b"this is the raw file, which is longer than the gzip threshold\n"
STALE_GZ_BODY = b"served from the precompressed sibling\n"


@pytest.fixture
def static_root(tmp_path):
    root = tmp_path / "static"
    root.mkdir()
    (root / "index.html").write_bytes(INDEX_HTML)
    (root / "tiny.txt").write_bytes(b"hi")
    (root / "css").mkdir()
    (root / "css" / "site.css").write_bytes(SITE_CSS)
    (root / "app.js").write_bytes(APP_JS)
    (root / "app.js.gz").write_bytes(gzip.compress(APP_JS))
    # Sibling deliberately differs so tests can tell which file was sent.
    (root / "stale.txt").write_bytes(STALE_TXT)
    (root / "stale.txt.gz").write_bytes(gzip.compress(STALE_GZ_BODY))
    (root / "docs").mkdir()
    (root / "docs" / "index.html").write_bytes(b"<h1>docs</h1>")
    (root / "empty").mkdir()
    return root


@pytest.fixture
def make_app(static_root):
    def _make(**overrides):
        config = Settings(_env_file=None, STATIC_DIR=str(static_root), **overrides)
        return create_app(config)

    return _make


@pytest.fixture
async def client(make_app):
    transport = ASGITransport(app=make_app())
    async with AsyncClient(transport=transport, base_url="http://test") as c:
        yield c


async def asgi_request(app, path, method="GET", headers=None):
    """Drive the ASGI app with a raw scope, bypassing client-side URL normalisation."""
    raw_headers = [(k.lower().encode("latin-1"), v.encode("latin-1")) for k, v in (headers or {}).items()]
    scope = {
        "type": "http",
        "asgi": {"version": "3.0"},
        "http_version": "1.1",
        "method": method,
        "scheme": "http",
        "path": path,
        "raw_path": path.encode("utf-8"),
        "root_path": "",
        "query_string": b"",
        "headers": raw_headers,
        "client": ("127.0.0.1", 50000),
        "server": ("test", 80),
    }
    messages = []
    request_sent = False
    response_complete = anyio.Event()

    async def receive():
        nonlocal request_sent
        if not request_sent:
            request_sent = True
            return {"type": "http.request", "body": b"", "more_body": False}
        # Later reads wait for the response, as a connected client would.
        await response_complete.wait()
        return {"type": "http.disconnect"}

    async def send(message):
        messages.append(message)
        if message["type"] == "http.response.body" and not message.get("more_body", False):
            response_complete.set()

    await app(scope, receive, send)
    start = next(m for m in messages if m["type"] == "http.response.start")
    body = b"".join(m.get("body", b"") for m in messages if m["type"] == "http.response.body")
    return start["status"], Headers(raw=start["headers"]), body


@pytest.fixture
def raw_request():
    return asgi_request
