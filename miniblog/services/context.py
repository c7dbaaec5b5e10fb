from contextvars import ContextVar
from typing import Optional

from starlette.authentication import AuthCredentials, SimpleUser
from starlette.requests import HTTPConnection

_current: ContextVar[Optional[HTTPConnection]] = ContextVar("http_context", default=None)


class HttpContextAccessor:
    """Gives services access to the request being handled on the current task."""

    @property
    def request(self) -> Optional[HTTPConnection]:
        return _current.get()

    def bind(self, connection: Optional[HTTPConnection]):
        return _current.set(connection)

    def reset(self, token) -> None:
        _current.reset(token)

    def is_authenticated(self) -> bool:
        connection = self.request
        if connection is None or "user" not in connection.scope:
            return False
        return connection.user.is_authenticated

    def sign_in(self, username: str) -> None:
        """Marks the current request as made by `username`; the caller has checked the credentials."""
        connection = self.request
        if connection is not None:
            connection.scope["user"] = SimpleUser(username)
            connection.scope["auth"] = AuthCredentials(["authenticated"])

    def base_url(self) -> str:
        """Scheme and host of the current request, without a trailing slash."""
        connection = self.request
        if connection is None:
            return ""
        return str(connection.base_url).rstrip("/")
