import logging
from urllib.parse import urlsplit

from starlette.concurrency import run_in_threadpool
from starlette.requests import Request
from starlette.responses import RedirectResponse, Response

from miniblog.config import BlogSettings
from miniblog.services import UserServices
from miniblog.web import views
from miniblog.web.middleware import sign_in, sign_out
from miniblog.web.routing import Controller, action

log = logging.getLogger(__name__)


def safe_return_url(request: Request, url: str) -> str:
    """
    Path (with query) of `url` when it points back at this site, else '/'.

    :param request: The request carrying the host to compare against.
    :param url: A relative path or an absolute URL, usually the `next` parameter.
    """
    if not url:
        return "/"
    parts = urlsplit(url)
    if parts.netloc and parts.netloc != request.url.netloc:
        log.warning(f"Ignoring off-site return url '{url}'.")
        return "/"
    if not parts.path.startswith("/") or parts.path.startswith("//"):
        return "/"
    return parts.path + (f"?{parts.query}" if parts.query else "")


class AccountController(Controller):
    """Cookie sign-in and sign-out for the blog owner."""

    def __init__(self, users: UserServices, settings: BlogSettings):
        self.users = users
        self.settings = settings

    @action("/login/", name="login")
    async def login(self, request: Request) -> Response:
        next_url = request.query_params.get("next", "")
        return views.render(request, self.settings, "Sign in", views.login_form(next_url))

    @action("/login/", methods=["POST"])
    async def login_post(self, request: Request) -> Response:
        form = await request.form()
        username = form.get("username") or ""
        password = form.get("password") or ""
        next_url = form.get("next") or ""

        if not await run_in_threadpool(self.users.validate_user, username, password):
            log.warning(f"Failed sign-in attempt for '{username}'.")
            body = views.login_form(next_url, error="The username or password is incorrect.")
            return views.render(request, self.settings, "Sign in", body)

        sign_in(request, username)
        log.info(f"User '{username}' signed in.")
        return RedirectResponse(safe_return_url(request, next_url), status_code=303)

    @action("/logout/")
    async def logout(self, request: Request) -> Response:
        sign_out(request)
        return RedirectResponse("/", status_code=303)
