"""Error types for the paper pipeline."""

from __future__ import annotations


class PipelineError(Exception):
    """Base error for upstream paper-pipeline failures."""


class ArxivError(PipelineError):
    """Fetching or parsing an arXiv abstract failed."""

    def __init__(self, arxiv_id: str, detail: str) -> None:
        self.arxiv_id = arxiv_id
        self.detail = detail
        super().__init__(detail)


class SummarizationError(PipelineError):
    """The summarization backend failed or returned an unusable response."""

    def __init__(self, provider: str, detail: str) -> None:
        self.provider = provider
        self.detail = detail
        super().__init__(f"{provider}: {detail}")
