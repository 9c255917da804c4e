"""``paperserve serve``: run the HTTP server."""

from __future__ import annotations

import sys

import click

from paperserve.cli_commands._output import console


@click.command()
@click.option("--config", "-c", type=click.Path(exists=True), default=None, help="Settings YAML file.")
@click.option("--host", default=None, help="Override the bind address.")
@click.option("--port", type=int, default=None, help="Override the listen port.")
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging.")
@click.option("--telemetry", is_flag=True, help="Enable OpenTelemetry tracing.")
def serve(
    config: str | None,
    host: str | None,
    port: int | None,
    verbose: bool,
    telemetry: bool,
) -> None:
    """Serve the MCP endpoint and the paper routes."""
    import uvicorn

    from paperserve.cli import configure_logging
    from paperserve.config import load_settings
    from paperserve.server.app import create_app
    from paperserve.utils.telemetry import configure_telemetry

    try:
        settings = load_settings(config)
    except Exception as exc:
        console.print(f"[red]Configuration error:[/red] {exc}")
        sys.exit(1)

    level = "DEBUG" if verbose else settings.logging.level
    configure_logging(level)

    if telemetry or settings.telemetry.enabled:
        configure_telemetry(
            service_name=settings.telemetry.service_name,
            export_to_console=settings.telemetry.otlp_endpoint is None,
            otlp_endpoint=settings.telemetry.otlp_endpoint,
        )

    try:
        app = create_app(settings)
    except Exception as exc:
        console.print(f"[red]Startup error:[/red] {exc}")
        sys.exit(1)

    uvicorn.run(
        app,
        host=host or settings.http.host,
        port=port or settings.http.port,
        log_level=level.lower(),
    )
