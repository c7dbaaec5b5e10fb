import functools
import logging

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response
from starlette.types import ASGIApp

from miniblog.services.output_cache import OutputCache

from .buffering import read_body, with_body

log = logging.getLogger(__name__)


def output_cache(profile: str = "default"):
    """Marks a controller action's response as cacheable under `profile`."""
    def decorator(func):
        @functools.wraps(func)
        async def wrapper(self, request: Request, *args, **kwargs):
            request.state.output_cache_profile = profile
            return await func(self, request, *args, **kwargs)
        return wrapper
    return decorator


class OutputCachingMiddleware(BaseHTTPMiddleware):
    """
    Serves and stores whole GET responses of actions marked with `output_cache`.

    Authenticated requests bypass the cache entirely, as do responses that
    set cookies or are not 200.
    """

    def __init__(self, app: ASGIApp, cache: OutputCache):
        super().__init__(app)
        self.cache = cache

    @staticmethod
    def cache_key(request: Request) -> str:
        return f"{request.url.path}?{request.url.query}"

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        authenticated = "user" in request.scope and request.user.is_authenticated
        if request.method != "GET" or authenticated:
            return await call_next(request)

        key = self.cache_key(request)
        cached = self.cache.get(key)
        if cached is not None:
            log.debug(f"Output cache hit for {key}")
            return with_body(cached.raw_headers, cached.body, cached.status_code)

        response = await call_next(request)
        profile = getattr(request.state, "output_cache_profile", None)
        if profile is None or response.status_code != 200 or "set-cookie" in response.headers:
            return response

        body = await read_body(response)
        self.cache.set(key, profile, response.status_code, response.raw_headers, body)
        return with_body(response.raw_headers, body, response.status_code)
