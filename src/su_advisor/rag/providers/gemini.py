"""
Gemini Provider - Single-shot generation re-chunked into a stream.
==================================================================

Makes one non-streaming ``generate_content`` call through the google-genai
SDK and emits the answer in fixed-size slices, so callers see the same
token stream shape as from a streaming backend. Token usage comes from
``usage_metadata``.
"""

from typing import Any, AsyncIterator, Optional

from tenacity import AsyncRetrying, retry_if_exception, stop_after_attempt, wait_exponential

from su_advisor.indexing.embeddings_gemini import is_retryable_genai_error
from su_advisor.rag.providers.base import ChatMessages, ChatStream, GenerationProvider
from su_advisor.shared.config import get_settings
from su_advisor.shared.errors import ConfigurationMissingError, ProviderUnavailableError
from su_advisor.shared.logging import get_logger
from su_advisor.shared.schemas import TokenUsage

logger = get_logger(__name__)



def split_messages(messages: ChatMessages) -> tuple[str, str]:
    """Split chat messages into a system instruction and the user contents."""
    system_parts = [m["content"] for m in messages if m.get("role") == "system"]
    user_parts = [m["content"] for m in messages if m.get("role") != "system"]
    return "\n\n".join(system_parts), "\n\n".join(user_parts)


def rechunk(text: str, size: int) -> list[str]:
    """
    Slice text into pieces of at most ``size`` characters.

    Example:
        >>> rechunk("abcdefg", 3)
        ['abc', 'def', 'g']
    """
    size = max(1, size)
    return [text[i:i + size] for i in range(0, len(text), size)]


class GeminiChatStream(ChatStream):
    """One generate_content call replayed as slices."""

    def __init__(self, provider: "GeminiProvider", messages: ChatMessages):
        super().__init__(model=provider.model_name)
        self._provider = provider
        self._messages = messages

    async def _generate(self) -> AsyncIterator[str]:
        response = await self._provider.generate(self._messages)

        usage = getattr(response, "usage_metadata", None)
        if usage is not None:
            self.usage = TokenUsage(
                prompt_tokens=getattr(usage, "prompt_token_count", None) or 0,
                completion_tokens=getattr(usage, "candidates_token_count", None) or 0,
            )

        for piece in rechunk(response.text or "", self._provider.chunk_size):
            yield piece

        self.completed = True


class GeminiProvider(GenerationProvider):
    """
    Gemini generation provider using the Google GenAI SDK.

    Requires:
    - GEMINI_API_KEY environment variable

    Example:
        >>> provider = GeminiProvider()
        >>> async for piece in provider.stream_chat(messages):
        ...     print(piece, end="")
    """

    def __init__(
        self,
        model_name: Optional[str] = None,
        api_key: Optional[str] = None,
        temperature: Optional[float] = None,
        max_output_tokens: Optional[int] = None,
        chunk_size: Optional[int] = None,
        max_retries: int = 3,
        client: Optional[Any] = None,
    ):
        settings = get_settings()
        config = settings.generation.gemini

        self._model_name = model_name or config.model_name
        self._api_key = api_key or settings.gemini_api_key
        self.temperature = temperature if temperature is not None else config.temperature
        self.max_output_tokens = max_output_tokens or config.max_output_tokens
        self.chunk_size = chunk_size or config.chunk_size
        self.max_retries = max_retries

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
        """Lazy-load Gemini client."""
        if self._client is None:
            from google import genai

            self._client = genai.Client(api_key=self._api_key)
            logger.debug("Gemini client initialized")
        return self._client

    async def generate(self, messages: ChatMessages) -> Any:
        """
        Run one generate_content call with retries.

        Raises:
            ProviderUnavailableError: If the call fails after retries
        """
        system_instruction, contents = split_messages(messages)
        config: dict[str, Any] = {
            "temperature": self.temperature,
            "max_output_tokens": self.max_output_tokens,
        }
        if system_instruction:
            config["system_instruction"] = system_instruction

        try:
            async for attempt in AsyncRetrying(
                stop=stop_after_attempt(self.max_retries),
                wait=wait_exponential(multiplier=1, min=2, max=10),
                retry=retry_if_exception(is_retryable_genai_error),
                reraise=True,
            ):
                with attempt:
                    return await self.client.aio.models.generate_content(
                        model=self._model_name,
                        contents=contents,
                        config=config,
                    )
        except Exception as e:
            logger.error(f"Gemini generation failed: {e}")
            raise ProviderUnavailableError("gemini", str(e), getattr(e, "code", None)) from e
        raise AssertionError("unreachable")

    def stream_chat(self, messages: ChatMessages) -> ChatStream:
        return GeminiChatStream(self, messages)
