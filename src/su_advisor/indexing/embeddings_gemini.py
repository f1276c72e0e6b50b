"""
Gemini Embeddings Module - Google GenAI embeddings API.
=======================================================

Embeds one text per call through ``client.aio.models.embed_content`` of the
google-genai SDK. Rate limiting and server errors reported by the SDK
(``APIError.code``) are retried with tenacity; everything else fails fast as
ProviderUnavailableError.
"""

from typing import Any, Optional

from tenacity import AsyncRetrying, retry_if_exception, stop_after_attempt, wait_exponential

from su_advisor.indexing.embeddings_base import EmbeddingProvider
from su_advisor.shared.config import get_settings
from su_advisor.shared.errors import ConfigurationMissingError, ProviderUnavailableError
from su_advisor.shared.logging import get_logger

logger = get_logger(__name__)

RETRYABLE_GENAI_CODES = frozenset({429, 500, 502, 503, 504})


def is_retryable_genai_error(exc: BaseException) -> bool:
    """Retry rate limiting and server errors reported by the SDK."""
    return getattr(exc, "code", None) in RETRYABLE_GENAI_CODES


class GeminiEmbeddingProvider(EmbeddingProvider):
    """
    Gemini embedding provider.

    Example:
        >>> provider = GeminiEmbeddingProvider()
        >>> vector = await provider.embed_text("Mezuniyet için kaç kredi gerekir?")
    """

    def __init__(
        self,
        model_name: Optional[str] = None,
        api_key: Optional[str] = None,
        task_type: Optional[str] = None,
        max_retries: Optional[int] = None,
        client: Optional[Any] = None,
    ):
        """
        Args:
            model_name: Embedding model (``embeddings.gemini.model_name``)
            api_key: Defaults to GEMINI_API_KEY
            task_type: Embedding task type sent with every call
            max_retries: Attempts per text, including the first
            client: Pre-built ``genai.Client``; skips the API key check
        """
        settings = get_settings()
        config = settings.embeddings.gemini

        self._model_name = model_name or config.model_name
        self._api_key = api_key or settings.gemini_api_key
        self.task_type = task_type or config.task_type
        self.max_retries = max_retries or config.max_retries

        if client is None and not self._api_key:
            raise ConfigurationMissingError(
                "Gemini API key not found. Set GEMINI_API_KEY environment variable."
            )
        self._client = client

    @property
    def provider_name(self) -> str:
        return "gemini"

    @property
    def model_name(self) -> str:
        return self._model_name

    @property
    def client(self) -> Any:
        if self._client is None:
            from google import genai

            self._client = genai.Client(api_key=self._api_key)
        return self._client

    async def embed_text(self, text: str) -> list[float]:
        try:
            async for attempt in AsyncRetrying(
                stop=stop_after_attempt(self.max_retries),
                wait=wait_exponential(multiplier=0.5, min=0.5, max=4),
                retry=retry_if_exception(is_retryable_genai_error),
                reraise=True,
            ):
                with attempt:
                    result = await self.client.aio.models.embed_content(
                        model=self._model_name,
                        contents=text,
                        config={"task_type": self.task_type},
                    )
        except Exception as e:
            logger.error(f"Gemini embedding failed: {e}")
            raise ProviderUnavailableError("gemini-embed", str(e), getattr(e, "code", None)) from e

        if not result.embeddings:
            raise ProviderUnavailableError("gemini-embed", "empty embedding response")
        return [float(x) for x in result.embeddings[0].values]

    def get_info(self) -> dict:
        info = super().get_info()
        info["task_type"] = self.task_type
        return info
