"""paperserve: MCP tool server with an arXiv abstract and summary pipeline."""

from __future__ import annotations

from typing import TYPE_CHECKING

__version__ = "0.1.0"

if TYPE_CHECKING:
    from paperserve.protocols.mcp.server import McpServer as McpServer
    from paperserve.server.app import create_app as create_app

_LAZY_EXPORTS = {
    "McpServer": "paperserve.protocols.mcp.server",
    "create_app": "paperserve.server.app",
}


def __getattr__(name: str) -> object:
    module_path = _LAZY_EXPORTS.get(name)
    if module_path is not None:
        import importlib

        mod = importlib.import_module(module_path)
        return getattr(mod, name)
    raise AttributeError(f"module 'paperserve' has no attribute {name!r}")
