"""
Middleware package for the web application.

Each module provides one stage of the request pipeline assembled in
`miniblog.web.startup`.
"""

from .auth import CookieAuthBackend, cookie_authentication, sign_in, sign_out
from .caching import OutputCachingMiddleware, output_cache
from .context import HttpContextMiddleware
from .errors import ExceptionHandlerMiddleware, StatusCodePagesMiddleware
from .files import ContentTypeStaticFiles, StaticFilesMiddleware
from .metaweblog import MetaWeblogMiddleware
from .minify import HtmlMinificationMiddleware
from .optimizer import AssetPipeline, WebOptimizerMiddleware
from .security import HstsMiddleware, SecurityHeadersMiddleware

__all__ = [
    "AssetPipeline", "ContentTypeStaticFiles", "CookieAuthBackend", "ExceptionHandlerMiddleware",
    "HstsMiddleware", "HtmlMinificationMiddleware", "HttpContextMiddleware", "MetaWeblogMiddleware",
    "OutputCachingMiddleware", "SecurityHeadersMiddleware", "StaticFilesMiddleware",
    "StatusCodePagesMiddleware", "WebOptimizerMiddleware", "cookie_authentication",
    "output_cache", "sign_in", "sign_out",
]
