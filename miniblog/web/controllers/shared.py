from starlette.requests import Request
from starlette.responses import Response

from miniblog.config import BlogSettings
from miniblog.web import views
from miniblog.web.middleware.errors import REEXECUTE_SCOPE_KEY
from miniblog.web.routing import ALL_METHODS, Controller, action


class SharedController(Controller):
    """Pages shared by the whole site: the error page and the offline page."""

    def __init__(self, settings: BlogSettings):
        self.settings = settings

    # Reached through the conventional route, normally by re-execution.
    # A direct request has no failure to report and renders with 200.
    @action(methods=ALL_METHODS)
    async def error(self, request: Request) -> Response:
        reexecuted = request.scope.get(REEXECUTE_SCOPE_KEY)
        status_code = reexecuted["status_code"] if reexecuted else None
        return views.render(request, self.settings, "Error", views.error_page(status_code),
                            status_code=status_code or 200)

    @action("/shared/offline/")
    async def offline(self, request: Request) -> Response:
        return views.render(request, self.settings, "Offline", views.offline_page())
