"""
Composition root of the web application.

`Startup` registers the singleton services and assembles the ordered
middleware pipeline; `create_app` turns both into a Starlette application.
"""

import logging
from typing import Callable, List, Optional

from starlette.applications import Starlette
from starlette.middleware import Middleware
from starlette.middleware.httpsredirect import HTTPSRedirectMiddleware

from miniblog.config import BlogSettings, Environment, MergedSettings, effective_settings
from miniblog.container import ServiceCollection, ServiceProvider
from miniblog.services import (BlogService, BlogUserServices, FileBlogService, HttpContextAccessor,
                               MetaWeblogProvider, MetaWeblogService, OutputCache, UserServices)
from miniblog.web.controllers import CONTROLLERS
from miniblog.web.middleware import (AssetPipeline, ContentTypeStaticFiles, ExceptionHandlerMiddleware,
                                     HstsMiddleware, HtmlMinificationMiddleware, HttpContextMiddleware,
                                     MetaWeblogMiddleware, OutputCachingMiddleware,
                                     SecurityHeadersMiddleware, StaticFilesMiddleware,
                                     StatusCodePagesMiddleware, WebOptimizerMiddleware,
                                     cookie_authentication)
from miniblog.web.routing import ControllerRouteTable

log = logging.getLogger("asgi_server")


class Startup:
    """
    Builds the services and the request pipeline from the merged settings.

    :param settings: The effective configuration of this application instance.
    """

    def __init__(self, settings: MergedSettings):
        self.settings = settings
        self.environment = settings.environment

    def configure_services(self, services: ServiceCollection) -> None:
        settings = self.settings
        services.add_singleton(MergedSettings, instance=settings)
        services.add_singleton(UserServices, BlogUserServices)
        services.add_singleton(BlogService, FileBlogService)
        services.configure(BlogSettings, settings.blog_settings)
        services.try_add_singleton(HttpContextAccessor)
        services.add_singleton(MetaWeblogProvider, MetaWeblogService)

        services.add_singleton(OutputCache, factory=lambda _: OutputCache(settings.OUTPUT_CACHE_PROFILES))
        services.add_singleton(
            AssetPipeline,
            factory=lambda _: AssetPipeline(settings.STATIC_DIR, settings.INLINE_IMAGE_MAX_BYTES),
        )

    def configure(self, provider: ServiceProvider) -> List[Middleware]:
        """
        The middleware pipeline, outermost first. Routing, authorization and
        endpoint execution follow the last entry inside the Starlette router.
        """
        settings = self.settings
        pipeline = [Middleware(HttpContextMiddleware, accessor=provider.get_required(HttpContextAccessor))]

        if self.environment is Environment.DEVELOPMENT:
            # Starlette's debug traceback page is enabled on the application itself.
            log.warning("Running in the Development environment; error details are exposed.")
        else:
            pipeline += [
                Middleware(HstsMiddleware, max_age=settings.HSTS_MAX_AGE),
                Middleware(ExceptionHandlerMiddleware, error_path=settings.ERROR_ROUTE),
            ]

        posts_files = ContentTypeStaticFiles(
            directory=settings.POSTS_DIR,
            content_types=settings.POSTS_CONTENT_TYPES,
            default_content_type=settings.DEFAULT_CONTENT_TYPE,
        )
        static_files = ContentTypeStaticFiles(
            directory=settings.STATIC_DIR,
            cache_max_age=settings.STATIC_CACHE_MAX_AGE,
        )
        pipeline += [
            Middleware(SecurityHeadersMiddleware),
            Middleware(StaticFilesMiddleware, files=posts_files,
                       request_path=settings.POSTS_REQUEST_PATH, directory_browsing=True),
            Middleware(StatusCodePagesMiddleware, error_path=settings.ERROR_ROUTE),
            Middleware(WebOptimizerMiddleware, pipeline=provider.get_required(AssetPipeline),
                       cache_max_age=settings.STATIC_CACHE_MAX_AGE),
            Middleware(StaticFilesMiddleware, files=static_files),
        ]

        if settings.FORCE_SSL:
            pipeline.append(Middleware(HTTPSRedirectMiddleware))

        pipeline.append(Middleware(MetaWeblogMiddleware, provider=provider.get_required(MetaWeblogProvider),
                                   path=settings.METAWEBLOG_PATH))
        pipeline += cookie_authentication(
            secret_key=settings.SECRET_KEY,
            cookie_name=settings.SESSION_COOKIE_NAME,
            max_age=settings.SESSION_MAX_AGE,
            https_only=settings.FORCE_SSL,
        )
        pipeline += [
            Middleware(OutputCachingMiddleware, cache=provider.get_required(OutputCache)),
            Middleware(HtmlMinificationMiddleware),
        ]
        return pipeline


def create_app(
    settings: Optional[MergedSettings] = None,
    configure_services: Optional[Callable[[ServiceCollection], None]] = None,
) -> Starlette:
    """
    Creates the Starlette application.

    :param settings: Settings to build from, defaults to the module-level effective settings.
    :param configure_services: Called after the default registrations, e.g. to replace a service.
    :return Starlette: The configured ASGI application; its provider is at `app.state.services`.
    """
    settings = settings or effective_settings
    startup = Startup(settings)

    services = ServiceCollection()
    startup.configure_services(services)
    if configure_services is not None:
        configure_services(services)
    provider = services.build_provider()

    controllers = [provider.create_instance(c) for c in CONTROLLERS]
    routes = ControllerRouteTable(controllers, settings.DEFAULT_ROUTE).routes()

    app = Starlette(
        debug=startup.environment is Environment.DEVELOPMENT,
        routes=routes,
        middleware=startup.configure(provider),
    )
    app.state.services = provider
    log.info(f"Application configured for the {startup.environment.value} environment "
             f"with {len(services)} services and {len(routes)} routes.")
    return app
