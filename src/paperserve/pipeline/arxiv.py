"""ArxivClient: fetches paper abstracts from the arXiv export API."""

from __future__ import annotations

import logging
import re
import xml.etree.ElementTree as ET

import httpx

from paperserve.pipeline.errors import ArxivError

logger = logging.getLogger(__name__)

_ATOM = "{http://www.w3.org/2005/Atom}"
_VERSION_SUFFIX = re.compile(r"v\d+$")


def clean_arxiv_id(arxiv_id: str) -> str:
    """Strip surrounding whitespace and a trailing version (``2301.00001v2``)."""
    return _VERSION_SUFFIX.sub("", arxiv_id.strip())


def extract_abstract(arxiv_id: str, xml_text: str) -> str:
    """Return the first entry's summary from an arXiv Atom feed.

    Whitespace (including line breaks) is collapsed to single spaces.

    Raises:
        ArxivError: If the feed is not XML, has no summary, or is an arXiv
            error entry.
    """
    try:
        root = ET.fromstring(xml_text)
    except ET.ParseError as exc:
        raise ArxivError(arxiv_id, f"Unparsable arXiv response: {exc}") from exc

    entry = root.find(f"{_ATOM}entry")
    summary = entry.find(f"{_ATOM}summary") if entry is not None else None
    if entry is None or summary is None or not (summary.text or "").strip():
        raise ArxivError(arxiv_id, "Could not find abstract in arXiv response")

    abstract = " ".join((summary.text or "").split())
    entry_id = entry.findtext(f"{_ATOM}id") or ""
    if "/api/errors" in entry_id:
        raise ArxivError(arxiv_id, f"arXiv rejected the query: {abstract}")
    return abstract


class ArxivClient:
    """Async client for ``export.arxiv.org``.

    Usage::

        client = ArxivClient()
        abstract = await client.fetch_abstract("2301.00001v2")

    Args:
        api_url: Query endpoint of the export API.
        timeout: Request timeout in seconds.
        transport: Optional httpx transport (tests pass ``httpx.MockTransport``).
    """

    def __init__(
        self,
        api_url: str = "https://export.arxiv.org/api/query",
        *,
        timeout: float = 20.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._api_url = api_url
        self._timeout = timeout
        self._transport = transport

    async def fetch_abstract(self, arxiv_id: str) -> str:
        """Return the abstract of *arxiv_id*.

        Raises:
            ArxivError: On network failures, non-2xx responses, or feeds
                without an abstract.
        """
        clean_id = clean_arxiv_id(arxiv_id)
        if not clean_id:
            raise ArxivError(arxiv_id, "ArXiv ID is required")

        logger.debug("Fetching arXiv abstract for %s", clean_id)
        try:
            async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as client:
                response = await client.get(self._api_url, params={"id_list": clean_id})
        except httpx.HTTPError as exc:
            raise ArxivError(clean_id, f"Failed to fetch arXiv paper: {exc}") from exc

        if not response.is_success:
            raise ArxivError(
                clean_id,
                f"Failed to fetch arXiv paper: {response.status_code} {response.reason_phrase}",
            )
        return extract_abstract(clean_id, response.text)
