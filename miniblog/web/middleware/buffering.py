"""Helpers for middleware that needs a whole response body in memory."""

from typing import List, Optional, Tuple

import anyio
from starlette.responses import Response
from starlette.types import ASGIApp, Message, Scope

RawHeaders = List[Tuple[bytes, bytes]]


async def read_body(response: Response) -> bytes:
    """Drains a response produced by `call_next` (or any Response) into bytes."""
    if not hasattr(response, "body_iterator"):
        return response.body
    chunks = []
    async for chunk in response.body_iterator:
        chunks.append(chunk if isinstance(chunk, bytes) else chunk.encode("utf-8"))
    return b"".join(chunks)


def with_body(raw_headers: RawHeaders, body: bytes, status_code: int) -> Response:
    """Builds a Response from raw headers, fixing up Content-Length for `body`."""
    response = Response(content=body, status_code=status_code)
    response.raw_headers = [(k, v) for k, v in raw_headers if k.lower() != b"content-length"]
    response.raw_headers.append((b"content-length", str(len(body)).encode("latin-1")))
    return response


async def run_captured(app: ASGIApp, scope: Scope, status_code: Optional[int] = None) -> Response:
    """
    Runs `app` for a body-less request described by `scope` and returns what it sent.

    :param status_code: Status to give the captured response instead of the app's own.
    """
    start: Message = {}
    chunks: List[bytes] = []
    request_sent = False
    never = anyio.Event()

    async def receive() -> Message:
        nonlocal request_sent
        if not request_sent:
            request_sent = True
            return {"type": "http.request", "body": b"", "more_body": False}
        # Nothing else will arrive; park until the app is cancelled or finishes.
        await never.wait()
        return {"type": "http.disconnect"}

    async def send(message: Message) -> None:
        if message["type"] == "http.response.start":
            start.update(message)
        elif message["type"] == "http.response.body":
            chunks.append(message.get("body", b""))

    await app(scope, receive, send)
    return with_body(start.get("headers", []), b"".join(chunks), status_code or start.get("status", 500))
