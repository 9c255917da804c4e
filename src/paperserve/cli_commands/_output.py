"""Shared CLI output formatters."""

from __future__ import annotations

import json
from typing import Any

from rich.console import Console
from rich.table import Table

from paperserve.protocols.mcp.models import JsonRpcResponse, MCPToolDef  # noqa: TC001

console = Console()


def print_tools_table(tools: list[MCPToolDef], *, as_json: bool = False) -> None:
    """Pretty-print registered tools as a table."""
    if as_json:
        console.print_json(json.dumps([tool.to_wire() for tool in tools]))
        return

    table = Table(title="Registered Tools")
    table.add_column("Name", style="cyan")
    table.add_column("Description")
    table.add_column("Arguments")

    for tool in tools:
        properties: dict[str, Any] = tool.input_schema.get("properties", {})
        required = set(tool.input_schema.get("required", []))
        args = ", ".join(f"{name}*" if name in required else name for name in properties) or "-"
        table.add_row(tool.name, _truncate(tool.description), args)

    console.print(table)


def print_response(response: JsonRpcResponse | None) -> None:
    """Print a tools/call response: text content, or the error object."""
    if response is None:
        console.print("[yellow]No response (notification).[/yellow]")
        return
    if response.error is not None:
        console.print(f"[red]Error {response.error.code}:[/red] {response.error.message}")
        if response.error.data:
            console.print_json(json.dumps(response.error.data))
        return

    content: list[dict[str, Any]] = (response.result or {}).get("content", [])
    for item in content:
        if item.get("type") == "text":
            console.print(item.get("text", ""))
        else:
            console.print(f"[dim]<{item.get('type')} content>[/dim]")


def _truncate(text: str, max_len: int = 80) -> str:
    if len(text) <= max_len:
        return text
    return text[: max_len - 3] + "..."
