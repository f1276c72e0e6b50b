"""
Generation Provider Base - Common interface for chat generation backends.
========================================================================

Every provider turns a list of chat messages into a ChatStream: an async
iterator of answer tokens that also exposes token usage and whether the
backend signalled completion. Providers are selected by configuration
through ``get_generation_provider``.
"""

from abc import ABC, abstractmethod
from typing import AsyncIterator, Optional

from su_advisor.shared.config import get_settings
from su_advisor.shared.logging import get_logger
from su_advisor.shared.schemas import TokenUsage

logger = get_logger(__name__)

ChatMessages = list[dict[str, str]]


# ─────────────────────────────────────────────────────────────────────────────
# Chat Stream
# ─────────────────────────────────────────────────────────────────────────────


class ChatStream(ABC):
    """
    Tokens of one generation call.

    Attributes:
        model: Model that produced the stream
        usage: Token accounting (zeros until the provider reports it)
        completed: True once the provider's completion signal was seen

    Closing the stream (``aclose``) aborts the underlying network call.
    """

    def __init__(self, model: str):
        self.model = model
        self.usage = TokenUsage()
        self.completed = False
        self._iterator: Optional[AsyncIterator[str]] = None

    @abstractmethod
    def _generate(self) -> AsyncIterator[str]:
        """Yield answer tokens in generation order."""

    def __aiter__(self) -> AsyncIterator[str]:
        if self._iterator is None:
            self._iterator = self._generate()
        return self._iterator

    async def aclose(self) -> None:
        if self._iterator is not None:
            await self._iterator.aclose()


# ─────────────────────────────────────────────────────────────────────────────
# Provider Interface
# ─────────────────────────────────────────────────────────────────────────────


class GenerationProvider(ABC):
    """
    Abstract base class for generation providers.

    Implementations must provide:
    - stream_chat(): Start a generation call and return its ChatStream
    """

    @property
    @abstractmethod
    def provider_name(self) -> str:
        """Get the provider name identifier."""

    @property
    @abstractmethod
    def model_name(self) -> str:
        """Get the model name being used."""

    @abstractmethod
    def stream_chat(self, messages: ChatMessages) -> ChatStream:
        """
        Start a chat generation.

        Args:
            messages: ``[{"role": "system" | "user" | "assistant", "content": ...}]``

        Returns:
            ChatStream yielding tokens; network errors surface while iterating
            as ProviderUnavailableError
        """

    async def aclose(self) -> None:
        """Release network resources held by the provider."""

    def get_info(self) -> dict:
        return {
            "provider": self.provider_name,
            "model": self.model_name,
        }


# ─────────────────────────────────────────────────────────────────────────────
# Provider Factory
# ─────────────────────────────────────────────────────────────────────────────


_provider_cache: dict[str, GenerationProvider] = {}


def get_generation_provider(
    provider_name: Optional[str] = None,
    use_cache: bool = True,
) -> GenerationProvider:
    """
    Get a generation provider instance.

    Args:
        provider_name: "mistral" or "gemini". If None, uses config.
        use_cache: Whether to cache and reuse provider instances

    Raises:
        ValueError: If provider name is invalid
        ConfigurationMissingError: If the provider's API key is not set
    """
    if provider_name is None:
        provider_name = get_settings().get_effective_generation_provider()

    provider_name = provider_name.lower().strip()

    if use_cache and provider_name in _provider_cache:
        return _provider_cache[provider_name]

    provider: GenerationProvider

    if provider_name == "mistral":
        from su_advisor.rag.providers.mistral import MistralChatProvider
        provider = MistralChatProvider()

    elif provider_name == "gemini":
        from su_advisor.rag.providers.gemini import GeminiProvider
        provider = GeminiProvider()

    else:
        raise ValueError(
            f"Unknown generation provider: {provider_name}. "
            f"Valid options: mistral, gemini"
        )

    if use_cache:
        _provider_cache[provider_name] = provider

    logger.info(
        f"Initialized generation provider: {provider.provider_name} "
        f"(model={provider.model_name})"
    )
    return provider


def clear_generation_provider_cache() -> None:
    """Clear the provider cache."""
    _provider_cache.clear()
