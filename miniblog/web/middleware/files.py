import logging
import mimetypes
import os
import stat
from datetime import datetime, timezone
from html import escape
from typing import Dict, Optional
from urllib.parse import quote

import anyio
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import FileResponse, HTMLResponse, RedirectResponse, Response
from starlette.staticfiles import StaticFiles
from starlette.types import ASGIApp, Scope

log = logging.getLogger(__name__)


class ContentTypeStaticFiles(StaticFiles):
    """
    StaticFiles with an extension -> content-type table consulted before
    `mimetypes`, a fallback type for unknown extensions and an optional
    Cache-Control lifetime.
    """

    def __init__(self, *, directory, content_types: Optional[Dict[str, str]] = None,
                 default_content_type: Optional[str] = None, cache_max_age: Optional[int] = None):
        super().__init__(directory=directory, check_dir=False)
        self.content_types = {k.lower(): v for k, v in (content_types or {}).items()}
        self.default_content_type = default_content_type
        self.cache_max_age = cache_max_age

    def media_type_for(self, path: str) -> Optional[str]:
        """Content type from the table, else None when `mimetypes` knows the file."""
        extension = os.path.splitext(path)[1].lower()
        if extension in self.content_types:
            return self.content_types[extension]
        if mimetypes.guess_type(path)[0] is None:
            return self.default_content_type
        return None

    def file_response(self, full_path, stat_result: os.stat_result, scope: Scope, status_code: int = 200) -> Response:
        response = super().file_response(full_path, stat_result, scope, status_code)
        if isinstance(response, FileResponse):
            media_type = self.media_type_for(str(full_path))
            if media_type:
                response.headers["content-type"] = media_type
        if self.cache_max_age is not None:
            response.headers["cache-control"] = f"public,max-age={self.cache_max_age}"
        return response


def render_directory_listing(request_path: str, full_path: str) -> str:
    """Minimal HTML index of a directory, folders first."""
    entries = sorted(os.scandir(full_path), key=lambda e: (not e.is_dir(), e.name.lower()))
    rows = []
    for entry in entries:
        info = entry.stat()
        name = entry.name + ("/" if entry.is_dir() else "")
        size = "" if entry.is_dir() else f"{info.st_size:,}"
        modified = datetime.fromtimestamp(info.st_mtime, tz=timezone.utc).strftime("%Y-%m-%d %H:%M")
        rows.append(
            f'<tr><td><a href="{escape(quote(name))}">{escape(name)}</a></td>'
            f'<td>{size}</td><td>{modified}</td></tr>'
        )
    title = escape(f"Index of {request_path}")
    return f"""<!DOCTYPE html>
<html><head><title>{title}</title><meta charset="utf-8"></head>
<body><h1>{title}</h1>
<table><thead><tr><th>Name</th><th>Size</th><th>Last modified</th></tr></thead>
<tbody>{''.join(rows)}</tbody></table></body></html>"""


class StaticFilesMiddleware(BaseHTTPMiddleware):
    """
    Serves files from `files` for GET/HEAD requests under `request_path`.

    Anything that is not an existing file (or, with browsing on, directory)
    falls through to the rest of the pipeline.
    """

    def __init__(self, app: ASGIApp, files: StaticFiles, request_path: str = "",
                 directory_browsing: bool = False):
        super().__init__(app)
        self.files = files
        self.request_path = request_path.rstrip("/")
        self.directory_browsing = directory_browsing

    def _relative_path(self, path: str) -> Optional[str]:
        prefix = self.request_path.lower()
        if prefix and path.lower() != prefix and not path.lower().startswith(prefix + "/"):
            return None
        remainder = path[len(prefix):].strip("/")
        return os.path.normpath(os.path.join(*remainder.split("/"))) if remainder else "."

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        if request.method not in ("GET", "HEAD"):
            return await call_next(request)
        relative = self._relative_path(request.url.path)
        if relative is None:
            return await call_next(request)

        try:
            full_path, stat_result = await anyio.to_thread.run_sync(self.files.lookup_path, relative)
        except (OSError, ValueError) as e:
            # Over-long names or embedded NUL bytes cannot name a file here.
            log.debug(f"Static lookup failed for {request.url.path}: {e}")
            return await call_next(request)
        if stat_result is None:
            return await call_next(request)

        if stat.S_ISDIR(stat_result.st_mode):
            if not self.directory_browsing:
                return await call_next(request)
            if not request.url.path.endswith("/"):
                return RedirectResponse(request.url.replace(path=request.url.path + "/"), status_code=301)
            log.debug(f"Directory listing for {request.url.path}")
            html = await anyio.to_thread.run_sync(render_directory_listing, request.url.path, full_path)
            return HTMLResponse(html)

        if stat.S_ISREG(stat_result.st_mode):
            return self.files.file_response(full_path, stat_result, request.scope)
        return await call_next(request)
