"""Protocol layer: MCP server core and its error taxonomy."""

from paperserve.protocols.errors import (
    DuplicateToolError,
    ErrorCode,
    InternalToolError,
    InvalidParamsError,
    JsonRpcProtocolError,
    ParseError,
    ProtocolError,
    SchemaAdaptationError,
    ToolExecutionError,
    ToolNotFoundError,
    TransportError,
)

__all__ = [
    "DuplicateToolError",
    "ErrorCode",
    "InternalToolError",
    "InvalidParamsError",
    "JsonRpcProtocolError",
    "ParseError",
    "ProtocolError",
    "SchemaAdaptationError",
    "ToolExecutionError",
    "ToolNotFoundError",
    "TransportError",
]
