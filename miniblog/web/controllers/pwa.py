import json

from starlette.requests import Request
from starlette.responses import JSONResponse, Response

from miniblog.config import BlogSettings, MergedSettings
from miniblog.web.routing import Controller, action

# Pages and assets the service worker pre-caches.
PRECACHE_ROUTES = ["/", "/css/site.css", "/js/site.js"]

SERVICE_WORKER_TEMPLATE = """\
var CACHE = "miniblog-v1";
var OFFLINE_ROUTE = {offline};
var PRECACHE = {precache};

self.addEventListener("install", function (event) {{
    event.waitUntil(caches.open(CACHE).then(function (cache) {{
        return cache.addAll(PRECACHE.concat([OFFLINE_ROUTE]));
    }}));
}});

self.addEventListener("fetch", function (event) {{
    if (event.request.method !== "GET") {{
        return;
    }}
    event.respondWith(fetch(event.request).then(function (response) {{
        var copy = response.clone();
        caches.open(CACHE).then(function (cache) {{ cache.put(event.request, copy); }});
        return response;
    }}).catch(function () {{
        return caches.match(event.request).then(function (cached) {{
            return cached || caches.match(OFFLINE_ROUTE);
        }});
    }}));
}});
"""


class PwaController(Controller):
    """Web app manifest and service worker with an offline fallback page."""

    def __init__(self, settings: BlogSettings, app_settings: MergedSettings):
        self.settings = settings
        self.offline_route = app_settings.OFFLINE_ROUTE

    @action("/manifest.webmanifest")
    async def manifest(self, request: Request) -> Response:
        manifest = {
            "name": self.settings.name,
            "short_name": self.settings.name,
            "description": self.settings.description,
            "start_url": "/",
            "display": "standalone",
            "background_color": "#ffffff",
            "theme_color": "#ffffff",
            "icons": [{"src": "/img/icon.svg", "sizes": "any", "type": "image/svg+xml"}],
        }
        return JSONResponse(manifest, media_type="application/manifest+json")

    @action("/serviceworker")
    async def service_worker(self, request: Request) -> Response:
        script = SERVICE_WORKER_TEMPLATE.format(
            offline=json.dumps(self.offline_route),
            precache=json.dumps(PRECACHE_ROUTES),
        )
        return Response(script, media_type="text/javascript", headers={"Cache-Control": "no-cache"})
