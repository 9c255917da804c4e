"""PaperPipeline: fetch an abstract and optionally summarize it."""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import TYPE_CHECKING

from pydantic import BaseModel, ConfigDict, Field

from paperserve.pipeline.arxiv import ArxivClient, clean_arxiv_id
from paperserve.pipeline.summarizer import Summarizer, build_summarizer
from paperserve.utils.telemetry import ATTR_ARXIV_ID, ATTR_SUMMARIZER, get_tracer

if TYPE_CHECKING:
    from paperserve.config import Settings

logger = logging.getLogger(__name__)
_tracer = get_tracer(__name__)


class PaperAbstract(BaseModel):
    """Body of ``GET /debug/{id}``."""

    model_config = ConfigDict(populate_by_name=True)

    arxiv_id: str = Field(alias="arxivId")
    abstract: str


class PaperSummary(PaperAbstract):
    """Body of ``GET /summarize/{id}``."""

    summary: str


class PaperPipeline:
    """Glue between the arXiv fetcher and a summarizer.

    The summarizer is created on first use, so a server without inference
    credentials still serves abstracts.
    """

    def __init__(
        self,
        fetcher: ArxivClient,
        summarizer: Summarizer | Callable[[], Summarizer],
        *,
        max_length: int = 50,
    ) -> None:
        self._fetcher = fetcher
        if isinstance(summarizer, Summarizer):
            self._summarizer: Summarizer | None = summarizer
            self._factory: Callable[[], Summarizer] = lambda: summarizer
        else:
            self._summarizer = None
            self._factory = summarizer
        self.max_length = max_length

    @classmethod
    def from_settings(cls, settings: Settings) -> PaperPipeline:
        fetcher = ArxivClient(settings.arxiv.api_url, timeout=settings.arxiv.timeout)
        return cls(
            fetcher,
            lambda: build_summarizer(settings.summarizer),
            max_length=settings.summarizer.max_length,
        )

    @property
    def summarizer(self) -> Summarizer:
        if self._summarizer is None:
            self._summarizer = self._factory()
        return self._summarizer

    async def abstract(self, arxiv_id: str) -> PaperAbstract:
        """Fetch the abstract of *arxiv_id*."""
        with _tracer.start_as_current_span("pipeline.abstract") as span:
            span.set_attribute(ATTR_ARXIV_ID, arxiv_id)
            text = await self._fetcher.fetch_abstract(arxiv_id)
        return PaperAbstract(arxiv_id=arxiv_id, abstract=text)

    async def summarize(self, arxiv_id: str, max_length: int | None = None) -> PaperSummary:
        """Fetch the abstract of *arxiv_id* and summarize it."""
        return await self.summarize_paper(await self.abstract(arxiv_id), max_length)

    async def summarize_paper(self, paper: PaperAbstract, max_length: int | None = None) -> PaperSummary:
        """Summarize an already-fetched abstract."""
        summarizer = self.summarizer
        with _tracer.start_as_current_span("pipeline.summarize") as span:
            span.set_attribute(ATTR_ARXIV_ID, clean_arxiv_id(paper.arxiv_id))
            span.set_attribute(ATTR_SUMMARIZER, type(summarizer).__name__)
            summary = await summarizer.summarize(paper.abstract, max_length or self.max_length)
        logger.info("Summarized %s (%d -> %d chars)", paper.arxiv_id, len(paper.abstract), len(summary))
        return PaperSummary(arxiv_id=paper.arxiv_id, abstract=paper.abstract, summary=summary)
