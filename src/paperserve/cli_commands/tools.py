"""``paperserve tools``: list and call the built-in MCP tools in-process."""

from __future__ import annotations

import asyncio
import json
import sys

import click

from paperserve.cli_commands._output import console, print_response, print_tools_table


def _load_server(config: str | None):  # type: ignore[no-untyped-def]
    from paperserve.config import load_settings
    from paperserve.pipeline.service import PaperPipeline
    from paperserve.tools import build_server

    settings = load_settings(config)
    return build_server(settings.server, PaperPipeline.from_settings(settings))


@click.group()
def tools() -> None:
    """List and call tools."""


@tools.command("list")
@click.option("--config", "-c", type=click.Path(exists=True), default=None, help="Settings YAML file.")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON.")
def list_tools(config: str | None, as_json: bool) -> None:
    """List registered tools and their arguments."""
    try:
        mcp = _load_server(config)
    except Exception as exc:
        console.print(f"[red]Configuration error:[/red] {exc}")
        sys.exit(1)

    print_tools_table(mcp.registry.list(), as_json=as_json)


@tools.command("call")
@click.argument("name")
@click.option("--args", "-a", "raw_args", default="{}", help="Tool arguments as a JSON object.")
@click.option("--config", "-c", type=click.Path(exists=True), default=None, help="Settings YAML file.")
def call_tool(name: str, raw_args: str, config: str | None) -> None:
    """Call tool NAME once and print its result."""
    try:
        arguments = json.loads(raw_args)
    except json.JSONDecodeError as exc:
        console.print(f"[red]Invalid --args JSON:[/red] {exc}")
        sys.exit(1)

    try:
        mcp = _load_server(config)
    except Exception as exc:
        console.print(f"[red]Configuration error:[/red] {exc}")
        sys.exit(1)

    inbound = mcp.dispatcher.decode_payload(
        {"jsonrpc": "2.0", "id": 1, "method": "tools/call", "params": {"name": name, "arguments": arguments}}
    )
    response = asyncio.run(mcp.dispatcher.dispatch(inbound))
    print_response(response)  # type: ignore[arg-type]
    if response is None or isinstance(response, list) or response.error is not None:
        sys.exit(1)
