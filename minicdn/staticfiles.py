"""Static file serving with root confinement and precompressed variants."""

import logging
import mimetypes
import os
import stat
from typing import Optional, Tuple

import anyio
from fastapi.staticfiles import StaticFiles as _StaticFiles
from starlette.datastructures import Headers
from starlette.responses import FileResponse, Response
from starlette.staticfiles import NotModifiedResponse
from starlette.types import Receive, Scope, Send

from minicdn.exceptions import FileReadError, MalformedRequest, PathTraversal

logger = logging.getLogger(__name__)

GZIP_SUFFIX = ".gz"


def accepts_encoding(header: str, coding: str) -> bool:
    """Return True if an ``Accept-Encoding`` value allows ``coding``.

    An explicit entry for the coding wins over a ``*`` wildcard, and
    ``q=0`` marks a coding as unacceptable.
    """
    wildcard = False
    for item in header.split(","):
        name, _, params = item.partition(";")
        name = name.strip().lower()
        if name not in (coding, "*"):
            continue
        quality = 1.0
        for param in params.split(";"):
            key, _, value = param.partition("=")
            if key.strip().lower() == "q":
                try:
                    quality = float(value)
                except ValueError:
                    quality = 0.0
        if name == coding:
            return quality > 0
        wildcard = quality > 0
    return wildcard


def _is_readable(path: str) -> bool:
    return os.access(path, os.R_OK)


class StaticFiles(_StaticFiles):
    """Starlette's ``StaticFiles`` serving a single root directory.

    Directories are answered with their ``index.html``. When
    ``precompressed_gzip`` is set, a ``<file>.gz`` sibling is sent instead
    of the file to clients that accept gzip.
    """

    def __init__(self, *, directory: str, precompressed_gzip: bool = False) -> None:
        super().__init__(directory=directory, html=True, check_dir=False)
        self.precompressed_gzip = precompressed_gzip

    async def check_config(self) -> None:
        # A missing root answers 404 instead of failing every request.
        if not await anyio.to_thread.run_sync(os.path.isdir, self.directory):
            logger.warning(f"Serving root {self.directory} is not a directory; all lookups will 404")

    async def get_response(self, path: str, scope: Scope) -> Response:
        if "\x00" in path:
            raise MalformedRequest("Invalid path", path=path)
        if path == os.pardir or path.startswith(os.pardir + os.sep):
            logger.warning(f"Refused path outside serving root: {path}")
            raise PathTraversal(path=path)
        return await super().get_response(path, scope)

    def lookup_path(self, path: str) -> Tuple[str, Optional[os.stat_result]]:
        try:
            full_path, stat_result = super().lookup_path(path)
        except PermissionError as exc:
            raise FileReadError(path=path) from exc
        except ValueError as exc:
            raise MalformedRequest("Invalid path", path=path) from exc
        if stat_result is not None and stat.S_ISREG(stat_result.st_mode) and not _is_readable(full_path):
            raise FileReadError(path=path)
        return full_path, stat_result

    def file_response(
        self,
        full_path,
        stat_result: os.stat_result,
        scope: Scope,
        status_code: int = 200,
    ) -> Response:
        request_headers = Headers(scope=scope)
        if self.precompressed_gzip and accepts_encoding(
            request_headers.get("accept-encoding", ""), "gzip"
        ):
            return PrecompressedFileResponse(self, str(full_path), stat_result, status_code)
        return super().file_response(full_path, stat_result, scope, status_code)

    def raw_file_response(
        self, full_path: str, stat_result: os.stat_result, scope: Scope, status_code: int = 200
    ) -> Response:
        return super().file_response(full_path, stat_result, scope, status_code)

    def gzip_file_response(
        self,
        full_path: str,
        gz_path: str,
        gz_stat: os.stat_result,
        scope: Scope,
        status_code: int = 200,
    ) -> Response:
        """Send ``gz_path`` as the gzip-encoded body of ``full_path``."""
        media_type = mimetypes.guess_type(full_path)[0] or "text/plain"
        response = FileResponse(
            gz_path,
            status_code=status_code,
            stat_result=gz_stat,
            media_type=media_type,
            headers={"content-encoding": "gzip", "vary": "Accept-Encoding"},
        )
        if self.is_not_modified(response.headers, Headers(scope=scope)):
            return NotModifiedResponse(response.headers)
        return response

    def precompressed_variant(self, full_path: str) -> Optional[Tuple[str, os.stat_result]]:
        """Return the readable ``.gz`` sibling of ``full_path`` inside the root, if any."""
        candidate = os.path.realpath(full_path + GZIP_SUFFIX)
        root = os.path.realpath(self.directory)
        if os.path.commonpath([candidate, root]) != root:
            return None
        try:
            stat_result = os.stat(candidate)
        except OSError:
            return None
        if not stat.S_ISREG(stat_result.st_mode) or not _is_readable(candidate):
            return None
        return candidate, stat_result


class PrecompressedFileResponse:
    """Picks the ``.gz`` sibling or the file itself when sent.

    The sibling lookup touches the filesystem, so it runs in a worker
    thread like the rest of the path resolution.
    """

    def __init__(
        self, files: StaticFiles, full_path: str, stat_result: os.stat_result, status_code: int = 200
    ) -> None:
        self.files = files
        self.full_path = full_path
        self.stat_result = stat_result
        self.status_code = status_code

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        variant = await anyio.to_thread.run_sync(self.files.precompressed_variant, self.full_path)
        if variant is None:
            response = self.files.raw_file_response(
                self.full_path, self.stat_result, scope, self.status_code
            )
        else:
            gz_path, gz_stat = variant
            response = self.files.gzip_file_response(
                self.full_path, gz_path, gz_stat, scope, self.status_code
            )
        await response(scope, receive, send)
