import asyncio
import contextvars
import functools
import inspect
import logging
import xmlrpc.client
from xml.parsers.expat import ExpatError

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response
from starlette.types import ASGIApp

from miniblog.services.interfaces import (InvalidCredentialsError, MetaWeblogProvider,
                                          PostNotFoundError)

log = logging.getLogger(__name__)

# Fault codes from the XML-RPC error-code interoperability proposal, plus HTTP-like domain codes.
PARSE_ERROR = -32700
METHOD_NOT_FOUND = -32601
INVALID_PARAMS = -32602
INTERNAL_ERROR = -32603
NOT_AUTHORIZED = 401
NOT_FOUND = 404


def dispatch_xmlrpc(provider: MetaWeblogProvider, body: bytes) -> bytes:
    """Decodes one XML-RPC call, runs it and encodes the result or fault."""
    try:
        params, method_name = xmlrpc.client.loads(body, use_builtin_types=True)
    except (ExpatError, xmlrpc.client.ResponseError, ValueError) as e:
        log.warning(f"Rejected malformed XML-RPC request: {e}")
        return _fault(PARSE_ERROR, "Parse error: request is not well-formed XML-RPC")

    method = provider.methods().get(method_name)
    if method is None:
        return _fault(METHOD_NOT_FOUND, f"Method '{method_name}' is not supported")
    try:
        inspect.signature(method).bind(*params)
    except TypeError as e:
        return _fault(INVALID_PARAMS, f"Invalid parameters for '{method_name}': {e}")

    log.debug(f"XML-RPC call {method_name}")
    try:
        result = method(*params)
    except InvalidCredentialsError as e:
        log.info(f"XML-RPC call {method_name} rejected: {e}")
        return _fault(NOT_AUTHORIZED, str(e))
    except PostNotFoundError as e:
        return _fault(NOT_FOUND, str(e))
    except Exception as e:
        log.error(f"XML-RPC call {method_name} failed: {e}", exc_info=True)
        return _fault(INTERNAL_ERROR, "Internal error")
    return xmlrpc.client.dumps((result,), methodresponse=True, allow_none=True, encoding="utf-8").encode("utf-8")


def _fault(code: int, message: str) -> bytes:
    return xmlrpc.client.dumps(xmlrpc.client.Fault(code, message), methodresponse=True, encoding="utf-8").encode("utf-8")


class MetaWeblogMiddleware(BaseHTTPMiddleware):
    """Answers XML-RPC POSTs to `path` with the MetaWeblog provider."""

    def __init__(self, app: ASGIApp, provider: MetaWeblogProvider, path: str):
        super().__init__(app)
        self.provider = provider
        self.path = path.rstrip("/").lower()

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        if request.url.path.rstrip("/").lower() != self.path:
            return await call_next(request)
        if request.method != "POST":
            return Response(status_code=405, headers={"Allow": "POST"})

        body = await request.body()
        # Run the blocking service call off the loop, keeping the request context.
        call = functools.partial(contextvars.copy_context().run, dispatch_xmlrpc, self.provider, body)
        payload = await asyncio.get_running_loop().run_in_executor(None, call)
        return Response(payload, media_type="text/xml")
