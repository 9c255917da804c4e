"""ToolRegistry: the process-wide set of tools a server exposes."""

from __future__ import annotations

import builtins
import inspect
import logging
import re
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

from paperserve.protocols.errors import DuplicateToolError, RegistryFrozenError, ToolNotFoundError
from paperserve.protocols.mcp.models import MCPToolDef
from paperserve.protocols.mcp.schema import SchemaDescriptor, adapt

logger = logging.getLogger(__name__)

_TOOL_NAME = re.compile(r"^[A-Za-z0-9_.\-]{1,128}$")

SchemaAdapter = Callable[[Any], SchemaDescriptor]
ToolHandler = Callable[..., Any]


@dataclass(frozen=True)
class Tool:
    """A registered tool. Immutable once created."""

    name: str
    description: str
    input_schema: SchemaDescriptor
    handler: ToolHandler
    takes_context: bool = field(default=False, compare=False)
    is_async: bool = field(default=False, compare=False)

    def definition(self) -> MCPToolDef:
        """Return the ``tools/list`` entry for this tool."""
        return MCPToolDef(
            name=self.name,
            description=self.description,
            input_schema=self.input_schema.describe(),
        )


class ToolRegistry:
    """Holds registered tools by name, in registration order.

    Usage::

        registry = ToolRegistry()
        registry.register("echo", "Echoes the input message", EchoArgs, echo)
        tool = registry.lookup("echo")
        definitions = registry.list()

    Registration happens before the server accepts connections;
    :meth:`freeze` is called when the registry is bound to a transport,
    after which lookups run without locking.
    """

    def __init__(self, schema_adapter: SchemaAdapter = adapt) -> None:
        self._adapt = schema_adapter
        self._tools: dict[str, Tool] = {}
        self._frozen = False

    @property
    def frozen(self) -> bool:
        return self._frozen

    def register(
        self,
        name: str,
        description: str,
        schema: Any,
        handler: ToolHandler,
    ) -> Tool:
        """Adapt *schema* and add a tool.

        Raises:
            DuplicateToolError: If *name* is already registered.
            RegistryFrozenError: If the registry has been frozen.
            SchemaAdaptationError: If *schema* cannot be adapted.
            ValueError: If *name* is not a valid tool name.
        """
        if self._frozen:
            raise RegistryFrozenError(name)
        if not _TOOL_NAME.match(name):
            msg = f"Invalid tool name {name!r}: use 1-128 letters, digits, '_', '-' or '.'"
            raise ValueError(msg)
        if name in self._tools:
            raise DuplicateToolError(name)
        if not callable(handler):
            msg = f"Handler for tool {name!r} is not callable"
            raise TypeError(msg)

        tool = Tool(
            name=name,
            description=description,
            input_schema=self._adapt(schema),
            handler=handler,
            takes_context=_takes_context(handler),
            is_async=_is_async(handler),
        )
        self._tools[name] = tool
        logger.info("Registered tool: %s", name)
        return tool

    def get(self, name: str) -> Tool | None:
        return self._tools.get(name)

    def lookup(self, name: str) -> Tool:
        """Return the tool called *name* or raise :class:`ToolNotFoundError`."""
        tool = self._tools.get(name)
        if tool is None:
            raise ToolNotFoundError(name)
        return tool

    def list(self) -> builtins.list[MCPToolDef]:
        """Return tool definitions in registration order."""
        return [tool.definition() for tool in self._tools.values()]

    def freeze(self) -> None:
        """Stop accepting registrations."""
        self._frozen = True

    def __contains__(self, name: object) -> bool:
        return name in self._tools

    def __len__(self) -> int:
        return len(self._tools)

    def __iter__(self):  # type: ignore[no-untyped-def]
        return iter(self._tools.values())


def _takes_context(handler: ToolHandler) -> bool:
    """Return ``True`` if *handler* declares a ``ctx`` parameter."""
    try:
        params = inspect.signature(handler).parameters
    except (TypeError, ValueError):
        return False
    return "ctx" in params


def _is_async(handler: ToolHandler) -> bool:
    """Return ``True`` if calling *handler* returns a coroutine."""
    if inspect.iscoroutinefunction(handler):
        return True
    return inspect.iscoroutinefunction(getattr(handler, "__call__", None))
