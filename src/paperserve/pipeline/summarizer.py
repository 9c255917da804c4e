"""Summarizers: shorten an abstract through a managed inference endpoint.

Two backends satisfy the :class:`Summarizer` protocol:

- :class:`WorkersAISummarizer` runs ``@cf/facebook/bart-large-cnn`` (or any
  Workers AI summarization model) through the Cloudflare REST API.
- :class:`LiteLLMSummarizer` prompts any chat model LiteLLM can reach.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

import httpx
import litellm

from paperserve.pipeline.errors import SummarizationError

if TYPE_CHECKING:
    from paperserve.config import SummarizerSettings

logger = logging.getLogger(__name__)

_CLOUDFLARE_API = "https://api.cloudflare.com/client/v4"

_SUMMARIZE_PROMPT = (
    "Summarize the following scientific abstract in at most {max_length} words. "
    "Respond with only the summary, no preamble."
)


@runtime_checkable
class Summarizer(Protocol):
    """Shortens text to roughly ``max_length`` units (tokens or words)."""

    async def summarize(self, text: str, max_length: int) -> str: ...


class WorkersAISummarizer:
    """Cloudflare Workers AI summarization over REST."""

    name = "workers-ai"

    def __init__(
        self,
        account_id: str,
        api_token: str,
        *,
        model: str = "@cf/facebook/bart-large-cnn",
        api_base: str | None = None,
        timeout: float = 60.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._url = f"{(api_base or _CLOUDFLARE_API).rstrip('/')}/accounts/{account_id}/ai/run/{model}"
        self._api_token = api_token
        self._timeout = timeout
        self._transport = transport

    async def summarize(self, text: str, max_length: int) -> str:
        try:
            async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as client:
                response = await client.post(
                    self._url,
                    headers={"Authorization": f"Bearer {self._api_token}"},
                    json={"input_text": text, "max_length": max_length},
                )
                response.raise_for_status()
                body: Any = response.json()
        except httpx.HTTPError as exc:
            raise SummarizationError(self.name, str(exc)) from exc
        except ValueError as exc:
            raise SummarizationError(self.name, "response is not JSON") from exc

        if not isinstance(body, dict) or not body.get("success", True):
            raise SummarizationError(self.name, f"request failed: {body!r}"[:300])
        summary = (body.get("result") or {}).get("summary")
        if not isinstance(summary, str):
            raise SummarizationError(self.name, "response has no summary")
        return summary.strip()


class LiteLLMSummarizer:
    """Summarization through a LiteLLM chat completion."""

    name = "litellm"

    def __init__(
        self,
        model: str,
        *,
        api_key: str | None = None,
        api_base: str | None = None,
        timeout: float = 60.0,
    ) -> None:
        self._model = model
        self._api_key = api_key
        self._api_base = api_base
        self._timeout = timeout

    async def summarize(self, text: str, max_length: int) -> str:
        call_kwargs: dict[str, Any] = {
            "model": self._model,
            "messages": [
                {"role": "system", "content": _SUMMARIZE_PROMPT.format(max_length=max_length)},
                {"role": "user", "content": text},
            ],
            "timeout": self._timeout,
        }
        if self._api_key:
            call_kwargs["api_key"] = self._api_key
        if self._api_base:
            call_kwargs["api_base"] = self._api_base

        try:
            response = await litellm.acompletion(**call_kwargs)  # pyright: ignore[reportUnknownMemberType]
        except Exception as exc:
            raise SummarizationError(self.name, str(exc)) from exc

        content = response.choices[0].message.content  # pyright: ignore[reportUnknownMemberType]
        if not content:
            raise SummarizationError(self.name, "model returned an empty summary")
        return str(content).strip()


def build_summarizer(settings: SummarizerSettings) -> Summarizer:
    """Create the summarizer selected by *settings*.

    Raises:
        SummarizationError: If ``workers-ai`` is selected without credentials.
    """
    if settings.provider == "litellm":
        return LiteLLMSummarizer(
            settings.model,
            api_key=settings.api_token,
            api_base=settings.api_base,
            timeout=settings.timeout,
        )
    if not settings.account_id or not settings.api_token:
        raise SummarizationError(
            "workers-ai",
            "account_id and api_token are required (set CLOUDFLARE_ACCOUNT_ID and CLOUDFLARE_API_TOKEN)",
        )
    logger.debug("Using Workers AI model %s", settings.model)
    return WorkersAISummarizer(
        settings.account_id,
        settings.api_token,
        model=settings.model,
        api_base=settings.api_base,
        timeout=settings.timeout,
    )
