"""Paper pipeline: arXiv abstract fetching and summarization."""

from paperserve.pipeline.arxiv import ArxivClient, clean_arxiv_id, extract_abstract
from paperserve.pipeline.errors import ArxivError, PipelineError, SummarizationError
from paperserve.pipeline.service import PaperAbstract, PaperPipeline, PaperSummary
from paperserve.pipeline.summarizer import (
    LiteLLMSummarizer,
    Summarizer,
    WorkersAISummarizer,
    build_summarizer,
)

__all__ = [
    "ArxivClient",
    "ArxivError",
    "LiteLLMSummarizer",
    "PaperAbstract",
    "PaperPipeline",
    "PaperSummary",
    "PipelineError",
    "SummarizationError",
    "Summarizer",
    "WorkersAISummarizer",
    "build_summarizer",
    "clean_arxiv_id",
    "extract_abstract",
]
