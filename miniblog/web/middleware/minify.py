import logging

import minify_html
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from .buffering import read_body, with_body

log = logging.getLogger(__name__)


def minify(html: str) -> str:
    """Collapses whitespace and drops comments; optional end tags are kept."""
    return minify_html.minify(
        html,
        keep_closing_tags=True,
        keep_html_and_head_opening_tags=True,
        keep_comments=False,
    )


class HtmlMinificationMiddleware(BaseHTTPMiddleware):
    """Minifies text/html response bodies."""

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        response = await call_next(request)
        if request.method == "HEAD" or not response.headers.get("content-type", "").startswith("text/html"):
            return response

        body = await read_body(response)
        if not body:
            return with_body(response.raw_headers, body, response.status_code)
        try:
            minified = minify(body.decode(response.charset or "utf-8")).encode("utf-8")
        except (UnicodeDecodeError, ValueError) as e:
            log.warning(f"HTML minification skipped for {request.url.path}: {e}")
            minified = body
        return with_body(response.raw_headers, minified, response.status_code)
