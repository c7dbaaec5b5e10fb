import logging

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import PlainTextResponse, Response
from starlette.types import ASGIApp, Scope

from .buffering import run_captured

log = logging.getLogger(__name__)

# Scope key carrying {'status_code', 'original_path'} into a re-executed request.
REEXECUTE_SCOPE_KEY = "miniblog.reexecute"
FALLBACK_HEADERS = {"X-Content-Type-Options": "nosniff"}
# Written by the router on the first pass; a stale copy leaks path params into the error route.
ROUTING_SCOPE_KEYS = ("path_params", "endpoint", "route", "router")


def reexecute_scope(scope: Scope, path: str, status_code: int) -> Scope:
    """Copy of `scope` rewritten as a GET for `path`, tagged with the original status."""
    child = {key: value for key, value in scope.items() if key not in ROUTING_SCOPE_KEYS}
    child.update(
        method="GET",
        path=path,
        raw_path=path.encode("utf-8"),
        query_string=b"",
        state=dict(scope.get("state") or {}),
    )
    child[REEXECUTE_SCOPE_KEY] = {"status_code": status_code, "original_path": scope.get("path", "")}
    return child


async def reexecute(app: ASGIApp, scope: Scope, path: str, status_code: int) -> Response:
    """Runs the rest of the pipeline again for `path`, keeping `status_code` on the result."""
    return await run_captured(app, reexecute_scope(scope, path, status_code), status_code)


class ExceptionHandlerMiddleware(BaseHTTPMiddleware):
    """Turns unhandled exceptions into the shared error page with status 500."""

    def __init__(self, app: ASGIApp, error_path: str):
        super().__init__(app)
        self.error_path = error_path

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        try:
            return await call_next(request)
        except Exception as e:
            log.error(f"Unhandled exception for {request.method} {request.url.path}: {e}", exc_info=True)
            if REEXECUTE_SCOPE_KEY in request.scope:
                # The error page itself failed; don't recurse.
                return PlainTextResponse("Internal Server Error", status_code=500, headers=FALLBACK_HEADERS)
            try:
                return await reexecute(self.app, request.scope, self.error_path, 500)
            except Exception as page_error:
                log.critical(f"Error page '{self.error_path}' failed: {page_error}", exc_info=True)
                return PlainTextResponse("Internal Server Error", status_code=500, headers=FALLBACK_HEADERS)


class StatusCodePagesMiddleware(BaseHTTPMiddleware):
    """
    Re-executes error status responses (400-599) against the shared error route.

    The rendered page keeps the original status code.
    """

    def __init__(self, app: ASGIApp, error_path: str):
        super().__init__(app)
        self.error_path = error_path

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        response = await call_next(request)
        if not 400 <= response.status_code < 600 or REEXECUTE_SCOPE_KEY in request.scope:
            return response

        log.debug(f"Re-executing {request.url.path} ({response.status_code}) against {self.error_path}")
        page = await reexecute(self.app, request.scope, self.error_path, response.status_code)
        # Headers such as Allow or WWW-Authenticate still describe the original failure.
        for name in ("allow", "www-authenticate", "retry-after"):
            if name in response.headers:
                page.headers[name] = response.headers[name]
        return page
