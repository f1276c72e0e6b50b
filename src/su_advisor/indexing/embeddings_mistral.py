"""
Mistral Embeddings Module - Mistral embeddings HTTP API.
========================================================

Calls ``POST /v1/embeddings`` with exactly one input text per request.
Requires a MISTRAL_API_KEY. Transient failures (transport errors, 429 and
5xx answers) are retried with exponential backoff before giving up.
"""

from typing import Optional

import httpx
from tenacity import (
    AsyncRetrying,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

from su_advisor.indexing.embeddings_base import EmbeddingProvider
from su_advisor.shared.config import get_settings
from su_advisor.shared.errors import ConfigurationMissingError, ProviderUnavailableError
from su_advisor.shared.logging import get_logger

logger = get_logger(__name__)


def is_retryable_http_error(exc: BaseException) -> bool:
    """Retry on transport failures, rate limiting and server errors."""
    if isinstance(exc, httpx.HTTPStatusError):
        status = exc.response.status_code
        return status == 429 or status >= 500
    return isinstance(exc, httpx.TransportError)


class MistralEmbeddingProvider(EmbeddingProvider):
    """
    Mistral embedding provider over httpx.

    Example:
        >>> provider = MistralEmbeddingProvider(api_key="...")
        >>> vector = await provider.embed_text("CS412 hocası kim?")
    """

    def __init__(
        self,
        model_name: Optional[str] = None,
        api_key: Optional[str] = None,
        max_retries: Optional[int] = None,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        settings = get_settings()
        mistral_config = settings.embeddings.mistral

        self._model_name = model_name or mistral_config.model_name
        self._api_key = api_key or settings.mistral_api_key
        self._max_retries = max_retries or mistral_config.max_retries

        if not self._api_key:
            raise ConfigurationMissingError(
                "Mistral API key is required. Set MISTRAL_API_KEY environment variable "
                "or pass api_key parameter."
            )

        self._client = http_client or httpx.AsyncClient(
            base_url=mistral_config.base_url,
            timeout=mistral_config.timeout,
        )
        self._headers = {
            "Authorization": f"Bearer {self._api_key}",
            "Content-Type": "application/json",
        }

        logger.debug(f"Mistral embedding provider configured: model={self._model_name}")

    @property
    def provider_name(self) -> str:
        return "mistral"

    @property
    def model_name(self) -> str:
        return self._model_name

    async def embed_text(self, text: str) -> list[float]:
        """Embed one text with a single API call (after retries)."""
        try:
            data = await self._post_embeddings(text)
        except httpx.HTTPStatusError as e:
            raise ProviderUnavailableError(
                "mistral-embed", e.response.text[:200], e.response.status_code
            ) from e
        except httpx.HTTPError as e:
            raise ProviderUnavailableError("mistral-embed", str(e) or type(e).__name__) from e

        try:
            return [float(x) for x in data["data"][0]["embedding"]]
        except (KeyError, IndexError, TypeError, ValueError) as e:
            raise ProviderUnavailableError(
                "mistral-embed", f"unexpected response shape: {e}"
            ) from e

    async def _post_embeddings(self, text: str) -> dict:
        async for attempt in AsyncRetrying(
            stop=stop_after_attempt(self._max_retries),
            wait=wait_exponential(multiplier=0.5, min=0.5, max=4),
            retry=retry_if_exception(is_retryable_http_error),
            reraise=True,
        ):
            with attempt:
                response = await self._client.post(
                    "/embeddings",
                    headers=self._headers,
                    json={"model": self._model_name, "input": [text]},
                )
                response.raise_for_status()
                return response.json()
        raise AssertionError("unreachable")

    async def aclose(self) -> None:
        await self._client.aclose()
