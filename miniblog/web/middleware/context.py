from starlette.requests import HTTPConnection
from starlette.types import ASGIApp, Receive, Scope, Send

from miniblog.services.context import HttpContextAccessor


class HttpContextMiddleware:
    """Host-level wrapper binding each request to the HTTP context accessor."""

    def __init__(self, app: ASGIApp, accessor: HttpContextAccessor):
        self.app = app
        self.accessor = accessor

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] not in ("http", "websocket"):
            await self.app(scope, receive, send)
            return

        token = self.accessor.bind(HTTPConnection(scope))
        try:
            await self.app(scope, receive, send)
        finally:
            self.accessor.reset(token)
