"""Shared error types for the protocol layer.

Errors raised while serving a request derive from :class:`JsonRpcProtocolError`
and know how to render themselves as a JSON-RPC error object.  Registration
errors (:class:`DuplicateToolError`, :class:`RegistryFrozenError`,
:class:`SchemaAdaptationError`) are raised at startup and are never sent to a
client.
"""

from __future__ import annotations

from enum import IntEnum
from typing import Any


class ErrorCode(IntEnum):
    """Stable JSON-RPC error codes used on the wire."""

    PARSE_ERROR = -32700
    INVALID_REQUEST = -32600
    METHOD_NOT_FOUND = -32601
    INVALID_PARAMS = -32602
    INTERNAL_ERROR = -32603
    TRANSPORT_ERROR = -32000
    TOOL_NOT_FOUND = -32001
    TOOL_EXECUTION_ERROR = -32002


class ProtocolError(Exception):
    """Base error for all protocol-layer failures."""


# ---------------------------------------------------------------------------
# Registration-time errors
# ---------------------------------------------------------------------------


class DuplicateToolError(ProtocolError):
    """A tool with the same name is already registered."""

    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__(f"Tool already registered: {name}")


class RegistryFrozenError(ProtocolError):
    """The registry no longer accepts new tools."""

    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__(f"Cannot register tool {name!r}: registry is frozen")


class SchemaAdaptationError(ProtocolError):
    """A source schema cannot be represented as a structural schema."""

    def __init__(self, source: object, detail: str = "") -> None:
        self.source = source
        self.detail = detail
        label = getattr(source, "__name__", repr(source))
        super().__init__(f"Cannot adapt schema {label}" + (f": {detail}" if detail else ""))


class SchemaValidationError(ProtocolError):
    """A value does not match a schema descriptor.

    ``issues`` holds one ``{"path", "message", "type"}`` dict per failing field.
    """

    def __init__(self, issues: list[dict[str, str]]) -> None:
        self.issues = issues
        fields = ", ".join(issue["path"] or "<root>" for issue in issues)
        super().__init__(f"Invalid value for: {fields}")


# ---------------------------------------------------------------------------
# Request-time errors (rendered as JSON-RPC error objects)
# ---------------------------------------------------------------------------


class JsonRpcProtocolError(ProtocolError):
    """An error that is reported to the client inside a response envelope."""

    code: ErrorCode = ErrorCode.INTERNAL_ERROR

    def __init__(self, message: str, data: dict[str, Any] | None = None) -> None:
        self.message = message
        self.data = data or {}
        super().__init__(message)

    def to_error(self) -> dict[str, Any]:
        """Return the JSON-RPC ``error`` member for this exception."""
        return {
            "code": int(self.code),
            "message": self.message,
            "data": {"type": type(self).__name__, **self.data},
        }


class ParseError(JsonRpcProtocolError):
    """The payload is not valid JSON."""

    code = ErrorCode.PARSE_ERROR


class InvalidRequestError(ParseError):
    """The payload is JSON but not a valid JSON-RPC request envelope."""

    code = ErrorCode.INVALID_REQUEST


class MethodNotFoundError(JsonRpcProtocolError):
    """The envelope names a method the server does not implement."""

    code = ErrorCode.METHOD_NOT_FOUND

    def __init__(self, method: str) -> None:
        self.method = method
        super().__init__(f"Method not found: {method}", {"method": method})


class InvalidParamsError(JsonRpcProtocolError):
    """Request parameters failed validation."""

    code = ErrorCode.INVALID_PARAMS

    def __init__(self, message: str, issues: list[dict[str, str]] | None = None) -> None:
        self.issues = issues or []
        super().__init__(message, {"issues": self.issues} if self.issues else None)


class ToolNotFoundError(JsonRpcProtocolError):
    """Requested tool does not exist in the registry."""

    code = ErrorCode.TOOL_NOT_FOUND

    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__(f"Tool not found: {name}", {"tool": name})


class InternalToolError(JsonRpcProtocolError):
    """A tool handler raised; the message is safe to show to clients."""

    code = ErrorCode.TOOL_EXECUTION_ERROR

    def __init__(self, name: str, detail: str = "", *, cause: str = "") -> None:
        self.name = name
        self.detail = detail
        data: dict[str, Any] = {"tool": name}
        if cause:
            data["cause"] = cause
        super().__init__(
            f"Tool execution failed: {name}" + (f": {detail}" if detail else ""),
            data,
        )


class InternalError(JsonRpcProtocolError):
    """The server failed while handling a request outside any tool handler."""

    code = ErrorCode.INTERNAL_ERROR


class ToolExecutionError(ProtocolError):
    """Raised by a tool handler to report a failure with a client-safe detail."""

    def __init__(self, detail: str) -> None:
        self.detail = detail
        super().__init__(detail)


class TransportError(JsonRpcProtocolError):
    """The HTTP exchange itself is unacceptable (method, size, content type)."""

    code = ErrorCode.TRANSPORT_ERROR

    def __init__(self, status: int, message: str, headers: dict[str, str] | None = None) -> None:
        self.status = status
        self.headers = headers or {}
        super().__init__(message, {"status": status})
