"""MCP protocol: Model Context Protocol server over streamable HTTP."""

from paperserve.protocols.mcp.context import ToolContext
from paperserve.protocols.mcp.dispatcher import Inbound, RequestDispatcher, wrap_result
from paperserve.protocols.mcp.models import (
    CallToolResult,
    JsonRpcError,
    JsonRpcRequest,
    JsonRpcResponse,
    MCPToolDef,
    TextContent,
)
from paperserve.protocols.mcp.registry import Tool, ToolRegistry
from paperserve.protocols.mcp.schema import PydanticSchema, SchemaDescriptor, adapt
from paperserve.protocols.mcp.server import McpServer
from paperserve.protocols.mcp.transport import HttpRequest, HttpResponse, StreamableHttpTransport

__all__ = [
    "CallToolResult",
    "HttpRequest",
    "HttpResponse",
    "Inbound",
    "JsonRpcError",
    "JsonRpcRequest",
    "JsonRpcResponse",
    "MCPToolDef",
    "McpServer",
    "PydanticSchema",
    "RequestDispatcher",
    "SchemaDescriptor",
    "StreamableHttpTransport",
    "TextContent",
    "Tool",
    "ToolContext",
    "ToolRegistry",
    "adapt",
    "wrap_result",
]
