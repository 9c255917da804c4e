"""RequestDispatcher: turns decoded JSON-RPC envelopes into responses.

Each envelope goes through decode, route, resolve, validate, invoke and wrap
in a single pass.  Every per-request failure is recovered into an error
envelope; nothing raised by a handler reaches the transport.
"""

from __future__ import annotations

import asyncio
import functools
import inspect
import json
import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

from pydantic import BaseModel, ValidationError

from paperserve.protocols.errors import (
    InternalError,
    InternalToolError,
    InvalidParamsError,
    InvalidRequestError,
    JsonRpcProtocolError,
    MethodNotFoundError,
    ParseError,
    SchemaValidationError,
    ToolExecutionError,
)
from paperserve.protocols.mcp.context import NotificationSink, ToolContext
from paperserve.protocols.mcp.models import (
    LATEST_PROTOCOL_VERSION,
    SUPPORTED_PROTOCOL_VERSIONS,
    AudioContent,
    CallToolParams,
    CallToolResult,
    EmbeddedResource,
    ImageContent,
    JsonRpcRequest,
    JsonRpcResponse,
    ServerInfo,
    TextContent,
)
from paperserve.protocols.mcp.registry import Tool, ToolRegistry
from paperserve.protocols.mcp.schema import validation_issues
from paperserve.utils.telemetry import (
    ATTR_BATCH_SIZE,
    ATTR_RPC_ID,
    ATTR_RPC_METHOD,
    ATTR_TOOL_NAME,
    get_tracer,
    mark_error,
)

logger = logging.getLogger(__name__)
_tracer = get_tracer(__name__)

_CONTENT_TYPES = (TextContent, ImageContent, AudioContent, EmbeddedResource)
_CONTENT_TAGS = frozenset({"text", "image", "audio", "resource"})

# An entry is either a request to run or an error response computed while decoding.
Entry = JsonRpcRequest | JsonRpcResponse


@dataclass
class Inbound:
    """A decoded HTTP payload: one envelope or an ordered batch."""

    entries: list[Entry] = field(default_factory=list)
    is_batch: bool = False
    error: JsonRpcProtocolError | None = None

    @property
    def expects_response(self) -> bool:
        """``True`` if at least one response will be produced."""
        if self.error is not None:
            return True
        return any(
            isinstance(entry, JsonRpcResponse) or not entry.is_notification
            for entry in self.entries
        )


class RequestDispatcher:
    """Routes MCP methods to the tool registry.

    Usage::

        dispatcher = RequestDispatcher(registry, ServerInfo(name="demo", version="1.0.0"))
        inbound = dispatcher.decode(body)
        reply = await dispatcher.dispatch(inbound)   # envelope, list, or None
    """

    def __init__(
        self,
        registry: ToolRegistry,
        server_info: ServerInfo,
        *,
        instructions: str | None = None,
    ) -> None:
        self.registry = registry
        self.server_info = server_info
        self.instructions = instructions

    # -- decode -------------------------------------------------------------

    def decode(self, raw: bytes | str) -> Inbound:
        """Parse a raw body into envelopes.

        Bodies must be UTF-8.  Malformed JSON, nesting too deep to parse and
        empty batches are reported through :attr:`Inbound.error`;
        structurally invalid entries become error responses in place.
        """
        try:
            text = raw.decode("utf-8") if isinstance(raw, (bytes, bytearray)) else raw
            payload = json.loads(text)
        except (ValueError, RecursionError) as exc:
            # JSONDecodeError and UnicodeDecodeError are both ValueErrors.
            return Inbound(error=ParseError(f"Parse error: {exc}"))
        return self.decode_payload(payload)

    def decode_payload(self, payload: Any) -> Inbound:
        """Decode an already-parsed JSON value into envelopes."""
        if isinstance(payload, list):
            if not payload:
                return Inbound(is_batch=True, error=InvalidRequestError("Invalid request: empty batch"))
            entries = [entry for entry in map(_decode_entry, payload) if entry is not None]
            return Inbound(entries=entries, is_batch=True)

        entry = _decode_entry(payload)
        return Inbound(entries=[entry] if entry is not None else [])

    # -- dispatch -----------------------------------------------------------

    async def dispatch(
        self,
        inbound: Inbound,
        notify: NotificationSink | None = None,
    ) -> JsonRpcResponse | list[JsonRpcResponse] | None:
        """Process every entry and return responses in input order.

        Handlers for a batch run concurrently.  Notifications contribute no
        response; ``None`` is returned when nothing needs to be sent.
        """
        if inbound.error is not None:
            return JsonRpcResponse.failure(None, inbound.error)

        with _tracer.start_as_current_span("mcp.batch") as span:
            span.set_attribute(ATTR_BATCH_SIZE, len(inbound.entries))
            replies = await asyncio.gather(*(self.respond(e, notify) for e in inbound.entries))

        responses = [reply for reply in replies if reply is not None]
        if inbound.is_batch:
            return responses or None
        return responses[0] if responses else None

    async def respond(
        self,
        entry: Entry,
        notify: NotificationSink | None = None,
    ) -> JsonRpcResponse | None:
        """Return the response for one decoded entry."""
        if isinstance(entry, JsonRpcResponse):
            return entry
        return await self.handle(entry, notify)

    async def handle(
        self,
        request: JsonRpcRequest,
        notify: NotificationSink | None = None,
    ) -> JsonRpcResponse | None:
        """Run one request through route, resolve, validate, invoke and wrap."""
        with _tracer.start_as_current_span("mcp.dispatch") as span:
            span.set_attribute(ATTR_RPC_METHOD, request.method)
            if request.id is not None:
                span.set_attribute(ATTR_RPC_ID, str(request.id))
            logger.debug("Dispatching %s (id=%r)", request.method, request.id)

            try:
                result = await self._route(request, notify)
            except JsonRpcProtocolError as exc:
                mark_error(span, int(exc.code), exc.message)
                return self._fail(request, exc)
            except Exception:
                logger.exception("Unexpected failure while handling %s", request.method)
                mark_error(span, int(InternalError.code), "Internal error")
                return self._fail(request, InternalError("Internal error"))

        if request.is_notification:
            return None
        return JsonRpcResponse.success(request.id, result)

    def _fail(self, request: JsonRpcRequest, exc: JsonRpcProtocolError) -> JsonRpcResponse | None:
        if request.is_notification:
            logger.debug("Dropping error for notification %s: %s", request.method, exc)
            return None
        return JsonRpcResponse.failure(request.id, exc)

    # -- routing ------------------------------------------------------------

    async def _route(self, request: JsonRpcRequest, notify: NotificationSink | None) -> dict[str, Any]:
        method = request.method
        params = request.params or {}

        if method == "initialize":
            return self._initialize(params)
        if method == "ping":
            return {}
        if method == "tools/list":
            return {"tools": [definition.to_wire() for definition in self.registry.list()]}
        if method == "tools/call":
            return await self._call_tool(params, request, notify)
        if method.startswith("notifications/") and request.is_notification:
            logger.debug("Received notification %s", method)
            return {}
        raise MethodNotFoundError(method)

    def _initialize(self, params: dict[str, Any]) -> dict[str, Any]:
        requested = params.get("protocolVersion")
        version = requested if requested in SUPPORTED_PROTOCOL_VERSIONS else LATEST_PROTOCOL_VERSION
        result: dict[str, Any] = {
            "protocolVersion": version,
            "capabilities": {"tools": {"listChanged": False}},
            "serverInfo": self.server_info.model_dump(),
        }
        if self.instructions:
            result["instructions"] = self.instructions
        return result

    async def _call_tool(
        self,
        params: dict[str, Any],
        request: JsonRpcRequest,
        notify: NotificationSink | None,
    ) -> dict[str, Any]:
        try:
            call = CallToolParams.model_validate(params)
        except ValidationError as exc:
            raise InvalidParamsError("Invalid tools/call params", validation_issues(exc)) from exc
        except (ValueError, RecursionError) as exc:
            raise InvalidParamsError("Invalid tools/call params", _unvalidated(exc)) from exc

        tool = self.registry.lookup(call.name)

        try:
            arguments = tool.input_schema.validate(call.arguments or {})
        except SchemaValidationError as exc:
            raise InvalidParamsError(f"Invalid arguments for tool {tool.name}", exc.issues) from exc
        except (ValueError, RecursionError) as exc:
            raise InvalidParamsError(f"Invalid arguments for tool {tool.name}", _unvalidated(exc)) from exc

        ctx = None
        if tool.takes_context:
            meta = call.meta or {}
            ctx = ToolContext(
                tool_name=tool.name,
                request_id=request.id,
                progress_token=meta.get("progressToken"),
                meta=call.meta,
                _sink=notify,
            )

        value = await self._invoke(tool, arguments, ctx)

        try:
            result = wrap_result(value).to_wire()
            # Anything the transport cannot encode fails here, inside the tool's error boundary.
            json.dumps(result, allow_nan=False)
        except (ValidationError, TypeError, ValueError, RecursionError) as exc:
            logger.error("Tool %s returned an unsupported result: %s", tool.name, exc)
            raise InternalToolError(tool.name, "handler returned an unsupported result") from exc
        return result

    async def _invoke(self, tool: Tool, arguments: Any, ctx: ToolContext | None) -> Any:
        """Run the handler; synchronous handlers run in a worker thread."""
        kwargs = {"ctx": ctx} if ctx is not None else {}
        call = functools.partial(tool.handler, arguments, **kwargs)
        with _tracer.start_as_current_span("mcp.tool.call") as span:
            span.set_attribute(ATTR_TOOL_NAME, tool.name)
            try:
                value = call() if tool.is_async else await asyncio.to_thread(call)
                if inspect.isawaitable(value):
                    value = await value
            except ToolExecutionError as exc:
                logger.warning("Tool %s failed: %s", tool.name, exc.detail)
                raise InternalToolError(tool.name, exc.detail) from exc
            except Exception as exc:
                logger.exception("Tool %s raised", tool.name)
                raise InternalToolError(tool.name, cause=type(exc).__name__) from exc
        return value


def wrap_result(value: Any) -> CallToolResult:
    """Normalize a handler's return value into a :class:`CallToolResult`."""
    if isinstance(value, CallToolResult):
        return value
    if value is None:
        return CallToolResult()
    if isinstance(value, str):
        return CallToolResult.from_text(value)
    if isinstance(value, _CONTENT_TYPES):
        return CallToolResult(content=[value])
    if isinstance(value, Mapping) and "content" in value:
        return CallToolResult.model_validate(dict(value))
    if isinstance(value, list) and value and all(_is_content(item) for item in value):
        return CallToolResult.model_validate({"content": value})
    if isinstance(value, BaseModel):
        return CallToolResult.from_text(value.model_dump_json())
    return CallToolResult.from_text(json.dumps(value))


def _is_content(item: Any) -> bool:
    if isinstance(item, _CONTENT_TYPES):
        return True
    return isinstance(item, Mapping) and item.get("type") in _CONTENT_TAGS


def _decode_entry(item: Any) -> Entry | None:
    """Decode one array element or single payload.

    Returns ``None`` for client-sent responses, which need no reply.
    """
    if not isinstance(item, dict):
        return JsonRpcResponse.failure(None, InvalidRequestError("Invalid request: expected an object"))
    if "method" not in item and ("result" in item or "error" in item):
        return None
    try:
        return JsonRpcRequest.model_validate(item)
    except ValidationError as exc:
        issues = validation_issues(exc)
    except (ValueError, RecursionError) as exc:
        issues = _unvalidated(exc)
    return JsonRpcResponse.failure(_recover_id(item), InvalidRequestError("Invalid request", {"issues": issues}))


def _recover_id(item: dict[str, Any]) -> int | str | None:
    request_id = item.get("id")
    if isinstance(request_id, bool):
        return None
    if isinstance(request_id, (int, str)):
        return request_id
    return None


def _unvalidated(exc: BaseException) -> list[dict[str, str]]:
    """Describe input the validator could not walk (e.g. nesting too deep)."""
    return [{"path": "", "message": str(exc), "type": type(exc).__name__}]
