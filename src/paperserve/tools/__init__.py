"""Built-in MCP tools served by paperserve."""

from __future__ import annotations

from typing import TYPE_CHECKING

from pydantic import BaseModel, Field

from paperserve.pipeline.errors import PipelineError
from paperserve.protocols.errors import ToolExecutionError
from paperserve.protocols.mcp.server import McpServer

if TYPE_CHECKING:
    from paperserve.config import ServerSettings
    from paperserve.pipeline.service import PaperPipeline
    from paperserve.protocols.mcp.context import ToolContext


class EchoArgs(BaseModel):
    message: str


class ArxivArgs(BaseModel):
    arxiv_id: str = Field(min_length=1, description="arXiv identifier, e.g. 2301.00001 or 2301.00001v2")


class SummarizeArgs(ArxivArgs):
    max_length: int = Field(default=50, gt=0, le=1024, description="Upper bound on summary length")


def echo(args: EchoArgs) -> dict[str, object]:
    return {"content": [{"type": "text", "text": args.message}]}


def register_paper_tools(mcp: McpServer, pipeline: PaperPipeline) -> None:
    """Register the arXiv tools backed by *pipeline*."""

    async def fetch_arxiv_abstract(args: ArxivArgs) -> str:
        try:
            paper = await pipeline.abstract(args.arxiv_id)
        except PipelineError as exc:
            raise ToolExecutionError(str(exc)) from exc
        return paper.abstract

    async def summarize_arxiv_paper(args: SummarizeArgs, ctx: ToolContext) -> str:
        try:
            paper = await pipeline.abstract(args.arxiv_id)
            await ctx.report_progress(1, 2, "Fetched abstract")
            summary = await pipeline.summarize_paper(paper, args.max_length)
        except PipelineError as exc:
            raise ToolExecutionError(str(exc)) from exc
        await ctx.report_progress(2, 2, "Summarized")
        return summary.summary

    mcp.tool(
        "fetch_arxiv_abstract",
        description="Fetches the abstract of an arXiv paper",
        input_schema=ArxivArgs,
        handler=fetch_arxiv_abstract,
    )
    mcp.tool(
        "summarize_arxiv_paper",
        description="Fetches an arXiv paper's abstract and summarizes it",
        input_schema=SummarizeArgs,
        handler=summarize_arxiv_paper,
    )


def build_server(settings: ServerSettings, pipeline: PaperPipeline | None = None) -> McpServer:
    """Create the MCP server with every built-in tool registered."""
    mcp = McpServer(settings.name, settings.version, instructions=settings.instructions)
    mcp.tool("echo", description="Echoes the input message", input_schema=EchoArgs, handler=echo)
    if pipeline is not None:
        register_paper_tools(mcp, pipeline)
    return mcp
