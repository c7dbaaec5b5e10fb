"""
Controller-based routing on top of Starlette's router.

Controller methods become actions through the `action` decorator. Actions
given paths are reachable only through those attribute routes; the rest are
dispatched by the conventional `/{controller}/{action}/{id}` route, where a
missing controller or action falls back to the configured defaults.
"""

import inspect
import logging
import re
from dataclasses import dataclass
from typing import Callable, Dict, Iterable, List, Optional, Tuple

from starlette.exceptions import HTTPException
from starlette.requests import Request
from starlette.responses import Response
from starlette.routing import BaseRoute, Route

log = logging.getLogger(__name__)

ALL_METHODS = ("GET", "HEAD", "POST", "PUT", "PATCH", "DELETE", "OPTIONS")
_PATTERN_RE = re.compile(r"\{(\w+)(=(\w+))?(\?)?\}")


@dataclass(frozen=True)
class ActionInfo:
    paths: Tuple[str, ...]
    methods: Tuple[str, ...]
    name: Optional[str]


def action(*paths: str, methods: Iterable[str] = ("GET",), name: Optional[str] = None):
    """Marks a controller method as an action, optionally with attribute routes."""
    def decorator(func):
        func.action_info = ActionInfo(tuple(paths), tuple(m.upper() for m in methods), name)
        return func
    return decorator


class Controller:
    """Base class for controllers; the name is the class name without 'Controller'."""

    @classmethod
    def controller_name(cls) -> str:
        return cls.__name__.removesuffix("Controller").lower()

    def actions(self) -> List[Tuple[str, ActionInfo, Callable]]:
        """(name, info, bound method) for every action, in definition order."""
        found = []
        for attr, value in vars(type(self)).items():
            info = getattr(value, "action_info", None)
            if info is not None:
                found.append((attr.lower(), info, getattr(self, attr)))
        return found


def parse_route_template(template: str) -> Tuple[List[str], Dict[str, str]]:
    """
    Splits a template like '{controller=Blog}/{action=Index}/{id?}' into
    parameter names (in order) and their defaults.
    """
    names, defaults = [], {}
    for match in _PATTERN_RE.finditer(template):
        names.append(match.group(1))
        if match.group(3):
            defaults[match.group(1)] = match.group(3)
    return names, defaults


def _accepts(method: Callable, parameter: str) -> bool:
    return parameter in inspect.signature(method).parameters


def _attribute_endpoint(method: Callable):
    async def endpoint(request: Request) -> Response:
        return await method(request, **request.path_params)
    endpoint.__name__ = method.__name__
    return endpoint


class ControllerRouteTable:
    """Builds Starlette routes for a set of controllers."""

    def __init__(self, controllers: Iterable[Controller], template: str):
        self.controllers: Dict[str, Controller] = {c.controller_name(): c for c in controllers}
        self.parameters, self.defaults = parse_route_template(template)
        self._conventional: Dict[Tuple[str, str], Tuple[ActionInfo, Callable]] = {}

    def routes(self) -> List[BaseRoute]:
        routes: List[BaseRoute] = []
        for controller_name, controller in self.controllers.items():
            for action_name, info, method in controller.actions():
                if not info.paths:
                    self._conventional[(controller_name, action_name)] = (info, method)
                    continue
                for path in info.paths:
                    routes.append(Route(
                        path,
                        endpoint=_attribute_endpoint(method),
                        methods=list(info.methods),
                        name=info.name or f"{controller_name}.{action_name}",
                    ))

        # Conventional route: one Route per number of segments present.
        endpoint = self.dispatch
        for count in range(len(self.parameters), -1, -1):
            path = "/" + "/".join("{%s}" % p for p in self.parameters[:count])
            routes.append(Route(path, endpoint=endpoint, methods=list(ALL_METHODS),
                                name="default" if count == len(self.parameters) else None))
        log.debug(f"Built {len(routes)} routes for controllers: {', '.join(self.controllers)}")
        return routes

    async def dispatch(self, request: Request) -> Response:
        params = dict(self.defaults)
        params.update(request.path_params)
        controller_name = params.get("controller", "").lower()
        action_name = params.get("action", "").lower()

        found = self._conventional.get((controller_name, action_name))
        if found is None:
            raise HTTPException(status_code=404)
        info, method = found
        allowed = info.methods or ALL_METHODS
        if request.method not in allowed and not (request.method == "HEAD" and "GET" in allowed):
            raise HTTPException(status_code=405, headers={"Allow": ", ".join(allowed)})

        extra = {k: v for k, v in params.items() if k not in ("controller", "action")}
        if any(not _accepts(method, k) for k in request.path_params if k not in ("controller", "action")):
            raise HTTPException(status_code=404)
        return await method(request, **{k: v for k, v in extra.items() if _accepts(method, k)})
