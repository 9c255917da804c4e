"""MCP models: JSON-RPC 2.0 messages, tool definitions and tool results.

Implements the message format used by the Model Context Protocol for
lifecycle (``initialize``, ``ping``), tool discovery (``tools/list``) and
execution (``tools/call``).
"""

from __future__ import annotations

from typing import Annotated, Any, Literal

from pydantic import BaseModel, ConfigDict, Field, StrictInt, StrictStr

from paperserve.protocols.errors import JsonRpcProtocolError

LATEST_PROTOCOL_VERSION = "2025-06-18"
SUPPORTED_PROTOCOL_VERSIONS = ("2025-06-18", "2025-03-26", "2024-11-05")

RequestId = StrictInt | StrictStr

# ---------------------------------------------------------------------------
# JSON-RPC 2.0 envelope
# ---------------------------------------------------------------------------


class JsonRpcRequest(BaseModel):
    """A JSON-RPC 2.0 request or notification.

    A request without an ``id`` (or with ``id: null``) is a notification and
    never receives a response.
    """

    model_config = ConfigDict(extra="forbid")

    jsonrpc: Literal["2.0"]
    method: str
    id: RequestId | None = None
    params: dict[str, Any] | None = None

    @property
    def is_notification(self) -> bool:
        return self.id is None


class JsonRpcError(BaseModel):
    """A JSON-RPC 2.0 error object."""

    code: int
    message: str
    data: Any = None


class JsonRpcResponse(BaseModel):
    """A JSON-RPC 2.0 response message."""

    jsonrpc: Literal["2.0"] = "2.0"
    id: RequestId | None = None
    result: dict[str, Any] | None = None
    error: JsonRpcError | None = None

    @classmethod
    def success(cls, request_id: RequestId | None, result: dict[str, Any]) -> JsonRpcResponse:
        return cls(id=request_id, result=result)

    @classmethod
    def failure(cls, request_id: RequestId | None, exc: JsonRpcProtocolError) -> JsonRpcResponse:
        return cls(id=request_id, error=JsonRpcError.model_validate(exc.to_error()))

    def to_wire(self) -> dict[str, Any]:
        """Serialize with ``id`` always present and exactly one of result/error."""
        wire: dict[str, Any] = {"jsonrpc": self.jsonrpc, "id": self.id}
        if self.error is not None:
            wire["error"] = self.error.model_dump(exclude_none=True)
        else:
            wire["result"] = self.result if self.result is not None else {}
        return wire


class JsonRpcNotification(BaseModel):
    """A server-to-client notification (e.g. ``notifications/progress``)."""

    jsonrpc: Literal["2.0"] = "2.0"
    method: str
    params: dict[str, Any] = {}

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump()


# ---------------------------------------------------------------------------
# Content items: the tagged union carried in tool results
# ---------------------------------------------------------------------------


class TextContent(BaseModel):
    """Plain text content item."""

    type: Literal["text"] = "text"
    text: str


class ImageContent(BaseModel):
    """Base64-encoded image content item."""

    model_config = ConfigDict(populate_by_name=True)

    type: Literal["image"] = "image"
    data: str
    mime_type: str = Field(alias="mimeType")


class AudioContent(BaseModel):
    """Base64-encoded audio content item."""

    model_config = ConfigDict(populate_by_name=True)

    type: Literal["audio"] = "audio"
    data: str
    mime_type: str = Field(alias="mimeType")


class EmbeddedResource(BaseModel):
    """A resource embedded inline in a tool result."""

    type: Literal["resource"] = "resource"
    resource: dict[str, Any]


ContentItem = Annotated[
    TextContent | ImageContent | AudioContent | EmbeddedResource,
    Field(discriminator="type"),
]


class CallToolResult(BaseModel):
    """The normalized result of a ``tools/call`` request."""

    model_config = ConfigDict(populate_by_name=True)

    content: list[ContentItem] = []
    structured_content: dict[str, Any] | None = Field(default=None, alias="structuredContent")
    is_error: bool | None = Field(default=None, alias="isError")

    @classmethod
    def from_text(cls, text: str) -> CallToolResult:
        """Create a result with a single text content item."""
        return cls(content=[TextContent(text=text)])

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


# ---------------------------------------------------------------------------
# MCP-specific payloads
# ---------------------------------------------------------------------------


class MCPToolDef(BaseModel):
    """A tool definition as returned by ``tools/list``."""

    model_config = ConfigDict(populate_by_name=True)

    name: str
    description: str = ""
    input_schema: dict[str, Any] = Field(default_factory=dict, alias="inputSchema")

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True)


class CallToolParams(BaseModel):
    """Parameters of a ``tools/call`` request."""

    name: str
    arguments: dict[str, Any] | None = None
    meta: dict[str, Any] | None = Field(default=None, alias="_meta")


class ServerInfo(BaseModel):
    """Name and version advertised in the ``initialize`` result."""

    name: str
    version: str
