"""Tests for RequestDispatcher: routing, validation, invocation and batching."""

import asyncio
import json
import threading
from datetime import datetime, timezone
from typing import Any
from unittest.mock import MagicMock

import pytest
from pydantic import BaseModel

from paperserve.protocols.errors import ErrorCode, ToolExecutionError
from paperserve.protocols.mcp.context import ToolContext
from paperserve.protocols.mcp.dispatcher import wrap_result
from paperserve.protocols.mcp.models import (
    LATEST_PROTOCOL_VERSION,
    CallToolResult,
    ImageContent,
    JsonRpcNotification,
    JsonRpcResponse,
    TextContent,
)
from paperserve.protocols.mcp.server import McpServer


class EchoArgs(BaseModel):
    message: str


class DelayArgs(BaseModel):
    label: str
    delay: float = 0.0


def _echo(args: EchoArgs) -> dict[str, Any]:
    return {"content": [{"type": "text", "text": args.message}]}


async def _delayed(args: DelayArgs) -> str:
    await asyncio.sleep(args.delay)
    return args.label


def _make_server() -> McpServer:
    mcp = McpServer("test-server", "9.9.9")
    mcp.tool("echo", description="Echoes the input message", input_schema=EchoArgs, handler=_echo)
    mcp.tool("delayed", description="Sleeps then answers", input_schema=DelayArgs, handler=_delayed)
    return mcp


def _call(request_id: Any, name: str, arguments: dict[str, Any] | None = None) -> dict[str, Any]:
    message: dict[str, Any] = {
        "jsonrpc": "2.0",
        "method": "tools/call",
        "params": {"name": name, "arguments": arguments or {}},
    }
    if request_id is not None:
        message["id"] = request_id
    return message


async def _dispatch(mcp: McpServer, payload: Any) -> Any:
    dispatcher = mcp.dispatcher
    return await dispatcher.dispatch(dispatcher.decode(json.dumps(payload)))


class TestLifecycle:
    async def test_initialize_echoes_supported_version(self) -> None:
        mcp = _make_server()
        response = await _dispatch(
            mcp,
            {"jsonrpc": "2.0", "id": 1, "method": "initialize", "params": {"protocolVersion": "2024-11-05"}},
        )
        assert response.result["protocolVersion"] == "2024-11-05"
        assert response.result["serverInfo"] == {"name": "test-server", "version": "9.9.9"}
        assert "tools" in response.result["capabilities"]

    async def test_initialize_falls_back_to_latest(self) -> None:
        mcp = _make_server()
        response = await _dispatch(
            mcp,
            {"jsonrpc": "2.0", "id": 1, "method": "initialize", "params": {"protocolVersion": "1999-01-01"}},
        )
        assert response.result["protocolVersion"] == LATEST_PROTOCOL_VERSION

    async def test_instructions_included_when_set(self) -> None:
        mcp = McpServer("s", "1", instructions="Use echo.")
        response = await _dispatch(mcp, {"jsonrpc": "2.0", "id": 1, "method": "initialize"})
        assert response.result["instructions"] == "Use echo."

    async def test_ping(self) -> None:
        response = await _dispatch(_make_server(), {"jsonrpc": "2.0", "id": "p", "method": "ping"})
        assert response.to_wire() == {"jsonrpc": "2.0", "id": "p", "result": {}}

    async def test_initialized_notification_has_no_response(self) -> None:
        response = await _dispatch(
            _make_server(), {"jsonrpc": "2.0", "method": "notifications/initialized"}
        )
        assert response is None

    async def test_unknown_method(self) -> None:
        response = await _dispatch(_make_server(), {"jsonrpc": "2.0", "id": 3, "method": "resources/list"})
        assert response.id == 3
        assert response.error.code == ErrorCode.METHOD_NOT_FOUND


class TestToolsList:
    async def test_lists_in_registration_order(self) -> None:
        response = await _dispatch(_make_server(), {"jsonrpc": "2.0", "id": 1, "method": "tools/list"})
        tools = response.result["tools"]
        assert [tool["name"] for tool in tools] == ["echo", "delayed"]
        assert tools[0]["description"] == "Echoes the input message"
        assert tools[0]["inputSchema"]["required"] == ["message"]


class TestToolsCall:
    async def test_echo_round_trip(self) -> None:
        response = await _dispatch(_make_server(), _call(7, "echo", {"message": "hi"}))
        assert response.to_wire() == {
            "jsonrpc": "2.0",
            "id": 7,
            "result": {"content": [{"type": "text", "text": "hi"}]},
        }

    async def test_handler_invoked_once_with_decoded_value(self) -> None:
        handler = MagicMock(return_value="ok")
        mcp = McpServer("s", "1")
        mcp.tool("spy", input_schema=EchoArgs, handler=handler)

        response = await _dispatch(mcp, _call(1, "spy", {"message": "hello"}))

        handler.assert_called_once_with(EchoArgs(message="hello"))
        assert response.result == {"content": [{"type": "text", "text": "ok"}]}

    async def test_invalid_arguments_never_invoke_handler(self) -> None:
        handler = MagicMock(return_value="ok")
        mcp = McpServer("s", "1")
        mcp.tool("spy", input_schema=EchoArgs, handler=handler)

        response = await _dispatch(mcp, _call("abc", "spy", {"message": 42}))

        handler.assert_not_called()
        assert response.id == "abc"
        assert response.error.code == ErrorCode.INVALID_PARAMS
        assert response.error.data["type"] == "InvalidParamsError"
        assert response.error.data["issues"][0]["path"] == "message"

    async def test_missing_arguments_reported(self) -> None:
        response = await _dispatch(_make_server(), _call(2, "echo"))
        assert response.error.code == ErrorCode.INVALID_PARAMS
        assert [issue["path"] for issue in response.error.data["issues"]] == ["message"]

    async def test_missing_tool_name_is_invalid_params(self) -> None:
        response = await _dispatch(
            _make_server(), {"jsonrpc": "2.0", "id": 4, "method": "tools/call", "params": {}}
        )
        assert response.error.code == ErrorCode.INVALID_PARAMS

    async def test_unknown_tool_keeps_id(self) -> None:
        response = await _dispatch(_make_server(), _call(11, "nope"))
        assert response.id == 11
        assert response.result is None
        assert response.error.code == ErrorCode.TOOL_NOT_FOUND
        assert response.error.data == {"type": "ToolNotFoundError", "tool": "nope"}

    async def test_raising_handler_is_sanitized(self) -> None:
        def explode(args: EchoArgs) -> str:
            raise RuntimeError("db password is hunter2")

        mcp = McpServer("s", "1")
        mcp.tool("explode", input_schema=EchoArgs, handler=explode)

        response = await _dispatch(mcp, _call(5, "explode", {"message": "x"}))

        assert response.id == 5
        assert response.error.code == ErrorCode.TOOL_EXECUTION_ERROR
        assert "hunter2" not in json.dumps(response.to_wire())
        assert response.error.data["cause"] == "RuntimeError"
        assert response.error.data["type"] == "InternalToolError"

    async def test_tool_execution_error_detail_is_reported(self) -> None:
        async def refuse(args: EchoArgs) -> str:
            raise ToolExecutionError("upstream unavailable")

        mcp = McpServer("s", "1")
        mcp.tool("refuse", input_schema=EchoArgs, handler=refuse)

        response = await _dispatch(mcp, _call(6, "refuse", {"message": "x"}))
        assert response.error.code == ErrorCode.TOOL_EXECUTION_ERROR
        assert "upstream unavailable" in response.error.message

    async def test_unsupported_result_is_internal_tool_error(self) -> None:
        mcp = McpServer("s", "1")
        mcp.tool("weird", handler=lambda args: {1, 2, 3})

        response = await _dispatch(mcp, _call(8, "weird"))
        assert response.error.code == ErrorCode.TOOL_EXECUTION_ERROR

    async def test_unencodable_structured_content_is_internal_tool_error(self) -> None:
        mcp = McpServer("s", "1")
        mcp.tool("blob", handler=lambda args: CallToolResult(structured_content={"blob": b"\xff\x00"}))

        response = await _dispatch(mcp, _call(10, "blob"))
        assert response.id == 10
        assert response.error.code == ErrorCode.TOOL_EXECUTION_ERROR
        assert "unsupported result" in response.error.message

    async def test_structured_content_serialized_as_json(self) -> None:
        stamp = datetime(2024, 5, 1, 12, 30, tzinfo=timezone.utc)
        mcp = McpServer("s", "1")
        mcp.tool("stamp", handler=lambda args: CallToolResult(structured_content={"at": stamp}))

        response = await _dispatch(mcp, _call(11, "stamp"))
        assert response.result["structuredContent"] == {"at": "2024-05-01T12:30:00Z"}

    async def test_arguments_too_deep_to_validate_are_invalid_params(self) -> None:
        class BottomlessSchema:
            def describe(self) -> dict[str, Any]:
                return {"type": "object"}

            def validate(self, value: Any) -> Any:
                raise RecursionError("maximum recursion depth exceeded")

        mcp = McpServer("s", "1", schema_adapter=lambda schema: schema)
        handler = MagicMock(return_value="ok")
        mcp.tool("deep", input_schema=BottomlessSchema(), handler=handler)

        response = await _dispatch(mcp, _call(12, "deep", {"x": [[["leaf"]]]}))
        assert response.id == 12
        assert response.error.code == ErrorCode.INVALID_PARAMS
        assert response.error.data["issues"][0]["type"] == "RecursionError"
        handler.assert_not_called()

    async def test_sync_handler_does_not_block_event_loop(self) -> None:
        released = threading.Event()

        def blocking(args: EchoArgs) -> str:
            return "released" if released.wait(timeout=2) else "timed out"

        async def releaser(args: EchoArgs) -> str:
            released.set()
            return "set"

        mcp = McpServer("s", "1")
        mcp.tool("blocking", input_schema=EchoArgs, handler=blocking)
        mcp.tool("releaser", input_schema=EchoArgs, handler=releaser)

        responses = await _dispatch(
            mcp, [_call(1, "blocking", {"message": ""}), _call(2, "releaser", {"message": ""})]
        )
        assert [r.result["content"][0]["text"] for r in responses] == ["released", "set"]

    async def test_progress_reported_through_sink(self) -> None:
        async def slow(args: EchoArgs, ctx: ToolContext) -> str:
            await ctx.report_progress(1, 2, "halfway")
            return args.message

        mcp = McpServer("s", "1")
        mcp.tool("slow", input_schema=EchoArgs, handler=slow)
        sent: list[JsonRpcNotification] = []

        async def sink(notification: JsonRpcNotification) -> None:
            sent.append(notification)

        payload = _call(9, "slow", {"message": "done"})
        payload["params"]["_meta"] = {"progressToken": "tok"}
        response = await mcp.dispatcher.dispatch(mcp.dispatcher.decode_payload(payload), sink)

        assert response.result["content"][0]["text"] == "done"
        assert len(sent) == 1
        assert sent[0].method == "notifications/progress"
        assert sent[0].params == {"progressToken": "tok", "progress": 1, "total": 2, "message": "halfway"}

    async def test_progress_dropped_without_token(self) -> None:
        async def slow(args: EchoArgs, ctx: ToolContext) -> str:
            await ctx.report_progress(1)
            return "ok"

        mcp = McpServer("s", "1")
        mcp.tool("slow", input_schema=EchoArgs, handler=slow)
        sink = MagicMock()

        response = await mcp.dispatcher.dispatch(
            mcp.dispatcher.decode_payload(_call(1, "slow", {"message": "x"})), sink
        )
        assert response.result["content"][0]["text"] == "ok"
        sink.assert_not_called()


class TestDecodeErrors:
    async def test_malformed_json(self) -> None:
        dispatcher = _make_server().dispatcher
        inbound = dispatcher.decode(b'{"jsonrpc": "2.0", "id": 1,')
        assert inbound.error is not None
        response = await dispatcher.dispatch(inbound)
        assert response.id is None
        assert response.error.code == ErrorCode.PARSE_ERROR

    @pytest.mark.parametrize("encoding", ["utf-16", "utf-32"])
    def test_non_utf8_body_is_parse_error(self, encoding: str) -> None:
        raw = json.dumps({"jsonrpc": "2.0", "id": 1, "method": "ping"}).encode(encoding)
        inbound = _make_server().dispatcher.decode(raw)
        assert inbound.error is not None
        assert inbound.error.code == ErrorCode.PARSE_ERROR

    def test_nesting_too_deep_is_parse_error(self) -> None:
        inbound = _make_server().dispatcher.decode(b"[" * 100000 + b"]" * 100000)
        assert inbound.error is not None
        assert inbound.error.code == ErrorCode.PARSE_ERROR

    async def test_invalid_envelope_recovers_id(self) -> None:
        response = await _dispatch(_make_server(), {"jsonrpc": "1.0", "id": 12, "method": "ping"})
        assert response.id == 12
        assert response.error.code == ErrorCode.INVALID_REQUEST
        assert response.error.data["type"] == "InvalidRequestError"

    async def test_non_object_payload(self) -> None:
        response = await _dispatch(_make_server(), "ping")
        assert response.id is None
        assert response.error.code == ErrorCode.INVALID_REQUEST

    async def test_empty_batch(self) -> None:
        response = await _dispatch(_make_server(), [])
        assert isinstance(response, JsonRpcResponse)
        assert response.error.code == ErrorCode.INVALID_REQUEST

    async def test_client_responses_are_ignored(self) -> None:
        response = await _dispatch(_make_server(), {"jsonrpc": "2.0", "id": 1, "result": {}})
        assert response is None


class TestBatch:
    async def test_notifications_are_dropped_in_order(self) -> None:
        batch = [
            _call(1, "echo", {"message": "one"}),
            _call(None, "echo", {"message": "skip"}),
            _call("two", "echo", {"message": "two"}),
            {"jsonrpc": "2.0", "method": "notifications/initialized"},
        ]
        responses = await _dispatch(_make_server(), batch)
        assert [r.id for r in responses] == [1, "two"]
        assert [r.result["content"][0]["text"] for r in responses] == ["one", "two"]

    async def test_order_matches_input_despite_completion_order(self) -> None:
        batch = [
            _call(1, "delayed", {"label": "slow", "delay": 0.05}),
            _call(2, "delayed", {"label": "fast", "delay": 0}),
            _call(3, "nope"),
        ]
        responses = await _dispatch(_make_server(), batch)
        assert [r.id for r in responses] == [1, 2, 3]
        assert responses[0].result["content"][0]["text"] == "slow"
        assert responses[2].error.code == ErrorCode.TOOL_NOT_FOUND

    async def test_handlers_run_concurrently(self) -> None:
        started = asyncio.Event()

        async def waiter(args: EchoArgs) -> str:
            await asyncio.wait_for(started.wait(), timeout=1)
            return "waited"

        async def starter(args: EchoArgs) -> str:
            started.set()
            return "started"

        mcp = McpServer("s", "1")
        mcp.tool("waiter", input_schema=EchoArgs, handler=waiter)
        mcp.tool("starter", input_schema=EchoArgs, handler=starter)

        responses = await _dispatch(
            mcp, [_call(1, "waiter", {"message": ""}), _call(2, "starter", {"message": ""})]
        )
        assert [r.result["content"][0]["text"] for r in responses] == ["waited", "started"]

    async def test_invalid_entries_answered_in_place(self) -> None:
        responses = await _dispatch(_make_server(), [1, _call(2, "echo", {"message": "ok"})])
        assert [r.id for r in responses] == [None, 2]
        assert responses[0].error.code == ErrorCode.INVALID_REQUEST

    async def test_all_notifications_yield_nothing(self) -> None:
        response = await _dispatch(_make_server(), [_call(None, "echo", {"message": "a"})])
        assert response is None


class TestWrapResult:
    def test_string(self) -> None:
        assert wrap_result("hi").to_wire() == {"content": [{"type": "text", "text": "hi"}]}

    def test_none(self) -> None:
        assert wrap_result(None).to_wire() == {"content": []}

    def test_passthrough(self) -> None:
        result = CallToolResult.from_text("x")
        assert wrap_result(result) is result

    def test_single_content_item(self) -> None:
        wire = wrap_result(ImageContent(data="AAAA", mime_type="image/png")).to_wire()
        assert wire == {"content": [{"type": "image", "data": "AAAA", "mimeType": "image/png"}]}

    def test_list_of_items(self) -> None:
        wire = wrap_result([TextContent(text="a"), {"type": "text", "text": "b"}]).to_wire()
        assert [item["text"] for item in wire["content"]] == ["a", "b"]

    def test_mapping_with_content(self) -> None:
        wire = wrap_result({"content": [{"type": "text", "text": "a"}], "isError": True}).to_wire()
        assert wire["isError"] is True

    def test_model_and_json_values(self) -> None:
        assert wrap_result(EchoArgs(message="m")).content[0].text == '{"message":"m"}'  # type: ignore[union-attr]
        assert wrap_result({"count": 2}).content[0].text == '{"count": 2}'  # type: ignore[union-attr]

    def test_unserializable_raises(self) -> None:
        with pytest.raises(TypeError):
            wrap_result(object())
