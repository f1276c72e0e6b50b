"""
Web Snippet Module - Best-effort external abstract lookup.
=========================================================

Fetches a short abstract for a question from the DuckDuckGo Instant Answer
API. The lookup is optional enrichment: every failure (timeout, transport
error, bad status, unexpected payload) yields ``None`` rather than an
exception.
"""

from typing import Optional

import httpx

from su_advisor.shared.config import get_settings
from su_advisor.shared.logging import get_logger
from su_advisor.shared.utils import clean_whitespace, truncate_text

logger = get_logger(__name__)


class WebSnippetProvider:
    """
    Looks up a short web abstract for a query.

    Example:
        >>> provider = WebSnippetProvider()
        >>> snippet = await provider.lookup("Sabancı University CS412")
        >>> snippet is None or len(snippet) <= 420
        True
    """

    def __init__(
        self,
        search_url: Optional[str] = None,
        max_chars: Optional[int] = None,
        timeout: Optional[float] = None,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        config = get_settings().local_context

        self.search_url = search_url or config.web_search_url
        self.max_chars = max_chars or config.web_snippet_cap
        self._client = http_client or httpx.AsyncClient(timeout=timeout or config.web_timeout)

    async def lookup(self, query: str) -> Optional[str]:
        """
        Get a snippet for the query.

        Returns:
            Abstract text capped at ``max_chars``, or None when nothing usable
            came back or anything went wrong
        """
        if not query.strip():
            return None

        try:
            text = await self._fetch_text(query)
        except httpx.HTTPError as e:
            logger.debug(f"Web snippet lookup failed: {e}")
            return None
        except Exception as e:
            logger.warning(f"Web snippet skipped ({type(e).__name__}): {e}")
            return None

        if not text:
            return None
        return truncate_text(clean_whitespace(text), self.max_chars)

    async def _fetch_text(self, query: str) -> str:
        response = await self._client.get(
            self.search_url,
            params={"q": query, "format": "json", "no_html": "1", "skip_disambig": "1"},
        )
        response.raise_for_status()
        return self._extract_text(response.json())

    def _extract_text(self, payload: object) -> str:
        if not isinstance(payload, dict):
            return ""

        abstract = payload.get("AbstractText") or payload.get("Abstract")
        if isinstance(abstract, str) and abstract.strip():
            return abstract

        topics = payload.get("RelatedTopics")
        if not isinstance(topics, list):
            return ""
        for topic in topics:
            if isinstance(topic, dict) and isinstance(topic.get("Text"), str) and topic["Text"].strip():
                return topic["Text"]
        return ""

    async def aclose(self) -> None:
        await self._client.aclose()
