"""
Bundling and minification of the application's scripts and stylesheets.

`*.js` requests are answered with an rjsmin-minified copy of the file;
`*.css` requests with no matching file on disk are compiled from the sibling
`*.scss` source by libsass. Results are kept in memory until the source file
changes.
"""

import asyncio
import base64
import hashlib
import logging
import mimetypes
import re
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Optional, Tuple

import rjsmin
import sass
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response
from starlette.types import ASGIApp

log = logging.getLogger(__name__)

_CSS_URL_RE = re.compile(r"""url\(\s*(['"]?)([^'")]+)\1\s*\)""")


@dataclass
class Asset:
    content: bytes
    content_type: str
    etag: str


class AssetPipeline:
    """Builds and caches optimized assets from files under `root`."""

    def __init__(self, root: Path, inline_image_max_bytes: int = 1):
        self.root = Path(root).resolve()
        self.inline_image_max_bytes = inline_image_max_bytes
        self._cache: Dict[str, Tuple[float, Asset]] = {}
        self._lock = threading.Lock()

    def _resolve(self, request_path: str) -> Optional[Path]:
        candidate = (self.root / request_path.lstrip("/")).resolve()
        # Security: Prevent directory traversal.
        if self.root != candidate and self.root not in candidate.parents:
            return None
        return candidate

    def source_for(self, request_path: str) -> Optional[Path]:
        """The file an optimized asset for `request_path` would be built from."""
        target = self._resolve(request_path)
        if target is None:
            return None
        if target.suffix == ".js" and not target.name.endswith(".min.js") and target.is_file():
            return target
        if target.suffix == ".css" and not target.exists():
            scss = target.with_suffix(".scss")
            if scss.is_file():
                return scss
        return None

    def get(self, request_path: str) -> Optional[Asset]:
        source = self.source_for(request_path)
        if source is None:
            return None

        mtime = source.stat().st_mtime
        with self._lock:
            cached = self._cache.get(request_path)
        if cached and cached[0] == mtime:
            return cached[1]

        asset = self._build(source)
        with self._lock:
            self._cache[request_path] = (mtime, asset)
        log.debug(f"Built asset for {request_path} from '{source.name}' ({len(asset.content)} bytes)")
        return asset

    def _build(self, source: Path) -> Asset:
        if source.suffix == ".scss":
            text = self.compile_scss(source)
            content_type = "text/css; charset=utf-8"
        else:
            text = rjsmin.jsmin(source.read_text(encoding="utf-8"))
            content_type = "text/javascript; charset=utf-8"
        content = text.encode("utf-8")
        etag = '"' + hashlib.sha256(content).hexdigest()[:32] + '"'
        return Asset(content, content_type, etag)

    def compile_scss(self, source: Path) -> str:
        try:
            css = sass.compile(filename=str(source), output_style="compressed")
        except sass.CompileError as e:
            log.error(f"Failed to compile '{source}': {e}")
            raise
        return self.inline_images(css, source.parent)

    def inline_images(self, css: str, base_dir: Path) -> str:
        """Replaces url(...) references to small local images with data URIs."""
        def replace(match: re.Match) -> str:
            url = match.group(2).strip()
            if url.startswith(("data:", "http:", "https:", "//")):
                return match.group(0)
            image = self._resolve(url) if url.startswith("/") else (base_dir / url).resolve()
            media_type = mimetypes.guess_type(url)[0] if image else None
            if (image is None or not media_type or not media_type.startswith("image/")
                    or not image.is_file() or image.stat().st_size > self.inline_image_max_bytes):
                return match.group(0)
            encoded = base64.b64encode(image.read_bytes()).decode("ascii")
            return f"url(data:{media_type};base64,{encoded})"

        return _CSS_URL_RE.sub(replace, css)


class WebOptimizerMiddleware(BaseHTTPMiddleware):
    """Answers script and stylesheet requests from the asset pipeline."""

    def __init__(self, app: ASGIApp, pipeline: AssetPipeline, cache_max_age: int):
        super().__init__(app)
        self.pipeline = pipeline
        self.cache_control = f"public,max-age={cache_max_age}"

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        path = request.url.path
        if request.method not in ("GET", "HEAD") or not path.endswith((".js", ".css")):
            return await call_next(request)

        asset = await asyncio.get_running_loop().run_in_executor(None, self.pipeline.get, path)
        if asset is None:
            return await call_next(request)

        headers = {"ETag": asset.etag, "Cache-Control": self.cache_control}
        if request.headers.get("if-none-match") == asset.etag:
            return Response(status_code=304, headers=headers)
        return Response(asset.content, headers=headers, media_type=asset.content_type)
