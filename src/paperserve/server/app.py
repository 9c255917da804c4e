"""HTTP application: MCP endpoint plus the paper pipeline routes."""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from typing import Any

from fastapi import APIRouter, Depends, FastAPI, Request
from fastapi.responses import JSONResponse, PlainTextResponse, Response, StreamingResponse
from starlette.requests import ClientDisconnect

from paperserve.config import Settings
from paperserve.pipeline.errors import PipelineError
from paperserve.pipeline.service import PaperPipeline
from paperserve.protocols.errors import TransportError
from paperserve.protocols.mcp.server import McpServer
from paperserve.protocols.mcp.transport import HttpHandler, HttpRequest, HttpResponse, StreamableHttpTransport
from paperserve.tools import build_server

logger = logging.getLogger(__name__)

LIVENESS_TEXT = "Hello from paperserve!"

router = APIRouter()


def get_pipeline(request: Request) -> PaperPipeline:
    return request.app.state.pipeline  # type: ignore[no-any-return]


@router.get("/message", response_class=PlainTextResponse)
async def message() -> str:
    return LIVENESS_TEXT


@router.get("/health")
async def health(request: Request) -> dict[str, Any]:
    mcp: McpServer = request.app.state.mcp
    return {"status": "ok", "service": mcp.info.name, "tools": len(mcp.registry)}


@router.get("/debug/{arxiv_id:path}")
async def debug_paper(arxiv_id: str, pipeline: PaperPipeline = Depends(get_pipeline)) -> Response:
    if not arxiv_id.strip():
        return _missing_id()
    try:
        paper = await pipeline.abstract(arxiv_id)
    except PipelineError as exc:
        return _pipeline_error(arxiv_id, exc)
    return JSONResponse(paper.model_dump(by_alias=True))


@router.get("/summarize/{arxiv_id:path}")
async def summarize_paper(arxiv_id: str, pipeline: PaperPipeline = Depends(get_pipeline)) -> Response:
    if not arxiv_id.strip():
        return _missing_id()
    try:
        paper = await pipeline.summarize(arxiv_id)
    except PipelineError as exc:
        return _pipeline_error(arxiv_id, exc)
    return JSONResponse(paper.model_dump(by_alias=True))


def _missing_id() -> JSONResponse:
    return JSONResponse({"error": "ArXiv ID is required"}, status_code=400)


def _pipeline_error(arxiv_id: str, exc: PipelineError) -> JSONResponse:
    logger.error("Error summarizing arXiv paper %s: %s", arxiv_id, exc)
    return JSONResponse(
        {"error": "Failed to summarize paper", "details": str(exc)},
        status_code=500,
    )


# ---------------------------------------------------------------------------
# MCP endpoint: adapts Starlette objects to the framework-free transport
# ---------------------------------------------------------------------------


def mcp_endpoint(handler: HttpHandler):  # type: ignore[no-untyped-def]
    """Build the Starlette endpoint that forwards every method to *handler*."""

    async def endpoint(request: Request) -> Response:
        response = await handler(
            HttpRequest(
                method=request.method,
                headers=dict(request.headers),
                body=_request_body(request),
            )
        )
        return _to_starlette(response)

    return endpoint


async def _request_body(request: Request) -> AsyncIterator[bytes]:
    try:
        async for chunk in request.stream():
            yield chunk
    except ClientDisconnect as exc:
        raise TransportError(400, "Client disconnected while sending the request body") from exc


def _to_starlette(response: HttpResponse) -> Response:
    if response.stream is not None:
        return StreamingResponse(
            response.stream,
            status_code=response.status,
            headers=response.headers,
        )
    return Response(content=response.body, status_code=response.status, headers=response.headers)


def create_app(
    settings: Settings | None = None,
    *,
    pipeline: PaperPipeline | None = None,
    mcp: McpServer | None = None,
) -> FastAPI:
    """Create the FastAPI application.

    Tools are registered before the transport is bound; binding freezes the
    registry, so *mcp* must be fully populated when passed in.
    """
    settings = settings or Settings()
    pipeline = pipeline or PaperPipeline.from_settings(settings)
    mcp = mcp or build_server(settings.server, pipeline)

    transport = StreamableHttpTransport(
        max_body_bytes=settings.http.max_body_bytes,
        json_response=settings.http.json_response,
        allowed_origins=settings.http.allowed_origins,
        stream_buffer=settings.http.stream_buffer,
    )
    handler = transport.bind(mcp)

    app = FastAPI(title=settings.server.name, version=settings.server.version)
    app.state.settings = settings
    app.state.pipeline = pipeline
    app.state.mcp = mcp
    app.include_router(router)
    app.add_api_route(
        settings.http.mcp_path,
        mcp_endpoint(handler),
        methods=["GET", "POST", "PUT", "PATCH", "DELETE"],
        include_in_schema=False,
    )
    logger.info(
        "MCP endpoint %s serving %d tool(s): %s",
        settings.http.mcp_path,
        len(mcp.registry),
        ", ".join(tool.name for tool in mcp.registry),
    )
    return app
