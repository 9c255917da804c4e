"""Streamable HTTP transport: binds a dispatcher to HTTP exchanges.

The binding is framework-free: it consumes an :class:`HttpRequest` and
produces an :class:`HttpResponse`.  Web frameworks adapt their own request
and response objects at the edge (see :mod:`paperserve.server.app`).

POST bodies carry JSON-RPC envelopes.  When the client accepts
``text/event-stream`` the reply is streamed as server-sent events, one
``message`` event per JSON-RPC message, flushed as soon as it is ready;
otherwise a single ``application/json`` body is returned.
"""

from __future__ import annotations

import asyncio
import contextlib
import json
import logging
from collections.abc import AsyncIterable, AsyncIterator, Awaitable, Callable, Mapping
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from paperserve.protocols.errors import TransportError
from paperserve.protocols.mcp.models import (
    SUPPORTED_PROTOCOL_VERSIONS,
    JsonRpcNotification,
    JsonRpcResponse,
)

if TYPE_CHECKING:
    from paperserve.protocols.mcp.dispatcher import Inbound, RequestDispatcher
    from paperserve.protocols.mcp.server import McpServer

logger = logging.getLogger(__name__)

DEFAULT_MAX_BODY_BYTES = 4 * 1024 * 1024
DEFAULT_STREAM_BUFFER = 32

JSON_CONTENT_TYPE = "application/json"
SSE_CONTENT_TYPE = "text/event-stream"

_ALLOWED_METHODS = "POST"


@dataclass
class HttpRequest:
    """An inbound HTTP exchange, independent of any web framework.

    ``headers`` keys are matched case-insensitively.
    """

    method: str
    headers: Mapping[str, str] = field(default_factory=dict)
    body: AsyncIterable[bytes] | bytes = b""

    def header(self, name: str) -> str | None:
        wanted = name.lower()
        for key, value in self.headers.items():
            if key.lower() == wanted:
                return value
        return None


@dataclass
class HttpResponse:
    """An outbound HTTP response; ``stream`` is set for SSE replies."""

    status: int
    headers: dict[str, str] = field(default_factory=dict)
    body: bytes = b""
    stream: AsyncIterator[bytes] | None = None

    @property
    def is_streaming(self) -> bool:
        return self.stream is not None


HttpHandler = Callable[[HttpRequest], Awaitable[HttpResponse]]


class StreamableHttpTransport:
    """Serves MCP over a single HTTP endpoint.

    Usage::

        transport = StreamableHttpTransport()
        handler = transport.bind(server)
        response = await handler(HttpRequest(method="POST", headers=..., body=raw))

    Args:
        max_body_bytes: Largest accepted request body.
        json_response: Always answer with ``application/json``, even when the
            client accepts event streams.
        allowed_origins: If set, requests carrying an ``Origin`` header outside
            this list are rejected.
        stream_buffer: Messages an event stream holds for a slow client
            before handlers reporting progress are made to wait.
    """

    def __init__(
        self,
        *,
        max_body_bytes: int = DEFAULT_MAX_BODY_BYTES,
        json_response: bool = False,
        allowed_origins: list[str] | None = None,
        stream_buffer: int = DEFAULT_STREAM_BUFFER,
    ) -> None:
        self.max_body_bytes = max_body_bytes
        self.json_response = json_response
        self.allowed_origins = allowed_origins
        self.stream_buffer = stream_buffer

    def bind(self, target: McpServer | RequestDispatcher) -> HttpHandler:
        """Return an HTTP handler serving *target*.

        Binding freezes the target's tool registry.
        """
        dispatcher: RequestDispatcher = getattr(target, "dispatcher", target)
        dispatcher.registry.freeze()

        async def handle(request: HttpRequest) -> HttpResponse:
            try:
                return await self._handle(dispatcher, request)
            except TransportError as exc:
                logger.info("Rejected %s request: %s", request.method, exc.message)
                return _error_response(exc)

        return handle

    async def _handle(self, dispatcher: RequestDispatcher, request: HttpRequest) -> HttpResponse:
        self._check_origin(request)
        if request.method.upper() != "POST":
            raise TransportError(
                405, f"Method not allowed: {request.method}", {"Allow": _ALLOWED_METHODS}
            )
        self._check_headers(request)

        raw = await self._read_body(request)
        inbound = dispatcher.decode(raw)

        if inbound.error is not None:
            reply = await dispatcher.dispatch(inbound)
            return _json_response(400, reply)
        if not inbound.expects_response:
            await dispatcher.dispatch(inbound)
            return HttpResponse(status=202)
        if self._wants_stream(request):
            return HttpResponse(
                status=200,
                headers={
                    "Content-Type": SSE_CONTENT_TYPE,
                    "Cache-Control": "no-cache",
                    "Connection": "keep-alive",
                },
                stream=_event_stream(dispatcher, inbound, self.stream_buffer),
            )
        return _json_response(200, await dispatcher.dispatch(inbound))

    # -- request checks -----------------------------------------------------

    def _check_origin(self, request: HttpRequest) -> None:
        origin = request.header("origin")
        if origin is not None and self.allowed_origins is not None and origin not in self.allowed_origins:
            raise TransportError(403, f"Origin not allowed: {origin}")

    def _check_headers(self, request: HttpRequest) -> None:
        content_type = (request.header("content-type") or "").split(";")[0].strip().lower()
        if content_type != JSON_CONTENT_TYPE:
            raise TransportError(415, "Content-Type must be application/json")

        accept = request.header("accept")
        if accept and not _accepts(accept, JSON_CONTENT_TYPE, SSE_CONTENT_TYPE):
            raise TransportError(406, "Client must accept application/json or text/event-stream")

        version = request.header("mcp-protocol-version")
        if version is not None and version not in SUPPORTED_PROTOCOL_VERSIONS:
            raise TransportError(400, f"Unsupported MCP-Protocol-Version: {version}")

    def _wants_stream(self, request: HttpRequest) -> bool:
        if self.json_response:
            return False
        accept = request.header("accept") or ""
        return SSE_CONTENT_TYPE in accept.lower()

    async def _read_body(self, request: HttpRequest) -> bytes:
        declared = request.header("content-length")
        expected: int | None = None
        if declared is not None:
            try:
                expected = int(declared)
            except ValueError:
                raise TransportError(400, f"Invalid Content-Length: {declared}") from None
            if expected > self.max_body_bytes:
                raise TransportError(413, f"Request body exceeds {self.max_body_bytes} bytes")

        if isinstance(request.body, bytes):
            chunks: AsyncIterable[bytes] = _once(request.body)
        else:
            chunks = request.body

        buffer = bytearray()
        async for chunk in chunks:
            buffer.extend(chunk)
            if len(buffer) > self.max_body_bytes:
                raise TransportError(413, f"Request body exceeds {self.max_body_bytes} bytes")

        if expected is not None and len(buffer) < expected:
            raise TransportError(400, f"Truncated body: got {len(buffer)} of {expected} bytes")
        return bytes(buffer)


# ---------------------------------------------------------------------------
# Response helpers
# ---------------------------------------------------------------------------


def _json_response(status: int, reply: JsonRpcResponse | list[JsonRpcResponse] | None) -> HttpResponse:
    if reply is None:
        return HttpResponse(status=202)
    if isinstance(reply, list):
        payload: Any = [response.to_wire() for response in reply]
    else:
        payload = reply.to_wire()
    return HttpResponse(
        status=status,
        headers={"Content-Type": JSON_CONTENT_TYPE},
        body=json.dumps(payload).encode(),
    )


def _error_response(exc: TransportError) -> HttpResponse:
    response = _json_response(exc.status, JsonRpcResponse.failure(None, exc))
    response.headers.update(exc.headers)
    return response


def sse_event(message: dict[str, Any]) -> bytes:
    """Encode one JSON-RPC message as an SSE ``message`` event."""
    return f"event: message\ndata: {json.dumps(message)}\n\n".encode()


async def _event_stream(
    dispatcher: RequestDispatcher,
    inbound: Inbound,
    buffer_size: int = DEFAULT_STREAM_BUFFER,
) -> AsyncIterator[bytes]:
    """Yield SSE frames for *inbound*, cancelling pending work if abandoned.

    Responses are emitted in input order; progress notifications are emitted
    as they arrive.  At most *buffer_size* messages wait for the consumer;
    past that, handlers reporting progress are suspended until it catches up.
    When the consumer stops iterating (client disconnect), every
    still-running handler task is cancelled.
    """
    queue: asyncio.Queue[dict[str, Any] | None] = asyncio.Queue(maxsize=buffer_size)

    async def notify(notification: JsonRpcNotification) -> None:
        await queue.put(notification.to_wire())

    tasks = [asyncio.create_task(dispatcher.respond(entry, notify)) for entry in inbound.entries]

    async def emit_in_order() -> None:
        try:
            for task in tasks:
                response = await task
                if response is not None:
                    await queue.put(response.to_wire())
        except Exception:
            logger.exception("Event stream collector failed; closing stream")
        # Not in a finally: once cancelled, nobody drains a full queue.
        await queue.put(None)

    collector = asyncio.create_task(emit_in_order())
    try:
        while True:
            message = await queue.get()
            if message is None:
                break
            yield sse_event(message)
    finally:
        pending = [task for task in (*tasks, collector) if not task.done()]
        for task in pending:
            task.cancel()
        if pending:
            logger.info("Stream closed early; cancelled %d pending task(s)", len(pending))
            with contextlib.suppress(asyncio.CancelledError):
                await asyncio.gather(*pending, return_exceptions=True)


async def _once(data: bytes) -> AsyncIterator[bytes]:
    yield data


def _accepts(accept: str, *media_types: str) -> bool:
    accepted = {part.split(";")[0].strip().lower() for part in accept.split(",")}
    return "*/*" in accepted or "application/*" in accepted or any(m in accepted for m in media_types)
