"""``paperserve paper``: run the arXiv pipeline from the command line."""

from __future__ import annotations

import asyncio
import sys

import click

from paperserve.cli_commands._output import console


@click.group()
def paper() -> None:
    """Fetch and summarize arXiv papers."""


@paper.command("abstract")
@click.argument("arxiv_id")
@click.option("--config", "-c", type=click.Path(exists=True), default=None, help="Settings YAML file.")
def abstract(arxiv_id: str, config: str | None) -> None:
    """Print the abstract of ARXIV_ID."""
    from paperserve.config import load_settings
    from paperserve.pipeline.service import PaperPipeline

    try:
        pipeline = PaperPipeline.from_settings(load_settings(config))
        result = asyncio.run(pipeline.abstract(arxiv_id))
    except Exception as exc:
        console.print(f"[red]Fetch error:[/red] {exc}")
        sys.exit(1)

    console.print(f"[bold]{result.arxiv_id}[/bold]")
    console.print(result.abstract)


@paper.command("summarize")
@click.argument("arxiv_id")
@click.option("--max-length", type=int, default=None, help="Override the summary length.")
@click.option("--config", "-c", type=click.Path(exists=True), default=None, help="Settings YAML file.")
def summarize(arxiv_id: str, max_length: int | None, config: str | None) -> None:
    """Print the abstract of ARXIV_ID and its summary."""
    from paperserve.config import load_settings
    from paperserve.pipeline.service import PaperPipeline

    try:
        pipeline = PaperPipeline.from_settings(load_settings(config))
        result = asyncio.run(pipeline.summarize(arxiv_id, max_length))
    except Exception as exc:
        console.print(f"[red]Summarize error:[/red] {exc}")
        sys.exit(1)

    console.print(f"[bold]{result.arxiv_id}[/bold]")
    console.print(f"\n[bold]Abstract:[/bold] {result.abstract}")
    console.print(f"\n[bold]Summary:[/bold] {result.summary}")
