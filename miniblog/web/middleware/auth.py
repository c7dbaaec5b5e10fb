from typing import List, Optional, Tuple

from starlette.authentication import AuthCredentials, AuthenticationBackend, BaseUser, SimpleUser
from starlette.middleware import Middleware
from starlette.middleware.authentication import AuthenticationMiddleware
from starlette.middleware.sessions import SessionMiddleware
from starlette.requests import HTTPConnection, Request

SESSION_USER_KEY = "user"


class CookieAuthBackend(AuthenticationBackend):
    """Authenticates requests whose signed session cookie names a user."""

    async def authenticate(self, conn: HTTPConnection) -> Optional[Tuple[AuthCredentials, BaseUser]]:
        username = conn.session.get(SESSION_USER_KEY)
        if not username:
            return None
        return AuthCredentials(["authenticated"]), SimpleUser(username)


def sign_in(request: Request, username: str) -> None:
    request.session[SESSION_USER_KEY] = username


def sign_out(request: Request) -> None:
    request.session.clear()


def cookie_authentication(secret_key: str, cookie_name: str, max_age: int,
                          https_only: bool = False) -> List[Middleware]:
    """Session cookie signing followed by authentication from that cookie."""
    return [
        Middleware(
            SessionMiddleware,
            secret_key=secret_key,
            session_cookie=cookie_name,
            max_age=max_age,
            same_site="lax",
            https_only=https_only,
        ),
        Middleware(AuthenticationMiddleware, backend=CookieAuthBackend()),
    ]
