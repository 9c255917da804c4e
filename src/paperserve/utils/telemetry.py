"""OpenTelemetry tracing for the dispatcher and the paper pipeline.

Spans are created through the OpenTelemetry API only.  Until
:func:`configure_telemetry` installs an SDK provider, every tracer returned
by :func:`get_tracer` is a no-op, so instrumented code runs unchanged in
tests and in deployments without the ``otel`` extra.

Span names in use:

- ``mcp.batch`` around one decoded HTTP payload
- ``mcp.dispatch`` around one JSON-RPC request
- ``mcp.tool.call`` around one handler invocation
- ``pipeline.abstract`` and ``pipeline.summarize`` around upstream calls
"""

from __future__ import annotations

from typing import Any

from opentelemetry import trace
from opentelemetry.trace import Status, StatusCode

ATTR_RPC_METHOD = "paperserve.rpc.method"
ATTR_RPC_ID = "paperserve.rpc.id"
ATTR_RPC_ERROR_CODE = "paperserve.rpc.error_code"
ATTR_BATCH_SIZE = "paperserve.batch.size"
ATTR_TOOL_NAME = "paperserve.tool.name"
ATTR_ARXIV_ID = "paperserve.arxiv.id"
ATTR_SUMMARIZER = "paperserve.summarizer"

_INSTRUMENTATION_NAME = "paperserve"


def get_tracer(name: str | None = None) -> trace.Tracer:
    """Return a tracer for *name* (a no-op until telemetry is configured)."""
    return trace.get_tracer(name or _INSTRUMENTATION_NAME)


def mark_error(span: trace.Span, code: int, description: str) -> None:
    """Record a JSON-RPC error code on *span* and flag the span as failed."""
    span.set_attribute(ATTR_RPC_ERROR_CODE, code)
    span.set_status(Status(StatusCode.ERROR, description))


def configure_telemetry(
    *,
    service_name: str = "paperserve",
    export_to_console: bool = True,
    otlp_endpoint: str | None = None,
) -> None:
    """Install an SDK tracer provider (requires ``paperserve[otel]``).

    Spans go to stdout when *export_to_console* is set and to an OTLP/gRPC
    collector when *otlp_endpoint* is given.

    Raises:
        ImportError: If ``opentelemetry-sdk`` (or, for OTLP export,
            ``opentelemetry-exporter-otlp``) is not installed.
    """
    try:
        from opentelemetry.sdk.resources import Resource  # pyright: ignore[reportMissingImports]
        from opentelemetry.sdk.trace import TracerProvider  # pyright: ignore[reportMissingImports]
    except ImportError as exc:
        msg = "opentelemetry-sdk is required to export traces. Install it with: pip install paperserve[otel]"
        raise ImportError(msg) from exc

    provider = TracerProvider(resource=Resource.create({"service.name": service_name}))
    for processor in _span_processors(export_to_console, otlp_endpoint):
        provider.add_span_processor(processor)
    trace.set_tracer_provider(provider)


def _span_processors(export_to_console: bool, otlp_endpoint: str | None) -> list[Any]:
    from opentelemetry.sdk.trace.export import (  # pyright: ignore[reportMissingImports]
        BatchSpanProcessor,
        ConsoleSpanExporter,
        SimpleSpanProcessor,
    )

    processors: list[Any] = []
    if export_to_console:
        processors.append(SimpleSpanProcessor(ConsoleSpanExporter()))
    if otlp_endpoint:
        try:
            from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import (  # pyright: ignore[reportMissingImports]
                OTLPSpanExporter,
            )
        except ImportError as exc:
            msg = (
                "opentelemetry-exporter-otlp is required for OTLP export. "
                "Install it with: pip install paperserve[otel]"
            )
            raise ImportError(msg) from exc
        processors.append(BatchSpanProcessor(OTLPSpanExporter(endpoint=otlp_endpoint)))
    return processors
