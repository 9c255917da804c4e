"""McpServer: declares tools and owns the registry and dispatcher."""

from __future__ import annotations

from collections.abc import Callable
from typing import Any, overload

from paperserve.protocols.mcp.dispatcher import RequestDispatcher
from paperserve.protocols.mcp.models import ServerInfo
from paperserve.protocols.mcp.registry import SchemaAdapter, Tool, ToolHandler, ToolRegistry
from paperserve.protocols.mcp.schema import adapt


class McpServer:
    """An MCP server: a named, versioned set of tools.

    Usage::

        mcp = McpServer("paperserve", "0.1.0")

        @mcp.tool("echo", description="Echoes the input message", input_schema=EchoArgs)
        def echo(args: EchoArgs) -> str:
            return args.message

        handler = StreamableHttpTransport().bind(mcp)

    Args:
        name: Advertised in ``serverInfo``.
        version: Advertised in ``serverInfo``.
        schema_adapter: Turns each tool's ``input_schema`` into a
            :class:`~paperserve.protocols.mcp.schema.SchemaDescriptor`.
        instructions: Optional usage hint returned from ``initialize``.
    """

    def __init__(
        self,
        name: str,
        version: str,
        *,
        schema_adapter: SchemaAdapter = adapt,
        instructions: str | None = None,
    ) -> None:
        self.registry = ToolRegistry(schema_adapter)
        self.dispatcher = RequestDispatcher(
            self.registry,
            ServerInfo(name=name, version=version),
            instructions=instructions,
        )

    @property
    def info(self) -> ServerInfo:
        return self.dispatcher.server_info

    @overload
    def tool(
        self,
        name: str,
        *,
        description: str = "",
        input_schema: Any = None,
        handler: None = None,
    ) -> Callable[[ToolHandler], ToolHandler]: ...

    @overload
    def tool(
        self,
        name: str,
        *,
        description: str = "",
        input_schema: Any = None,
        handler: ToolHandler,
    ) -> Tool: ...

    def tool(
        self,
        name: str,
        *,
        description: str = "",
        input_schema: Any = None,
        handler: ToolHandler | None = None,
    ) -> Tool | Callable[[ToolHandler], ToolHandler]:
        """Register a tool directly, or return a decorator when *handler* is omitted."""
        if handler is not None:
            return self.registry.register(name, description, input_schema, handler)

        def decorator(func: ToolHandler) -> ToolHandler:
            self.registry.register(name, description or (func.__doc__ or "").strip(), input_schema, func)
            return func

        return decorator
