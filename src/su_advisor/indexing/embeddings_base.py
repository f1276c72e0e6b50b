"""
Embeddings Base Module - Abstract interface for embedding providers.
===================================================================

Defines the abstract base class for remote embedding providers, enabling
provider-agnostic embedding operations. Switching between Mistral and
Gemini doesn't require changes to caching or retrieval logic.
"""

from abc import ABC, abstractmethod
from typing import Optional

from su_advisor.shared.config import get_settings
from su_advisor.shared.logging import get_logger

logger = get_logger(__name__)


# ─────────────────────────────────────────────────────────────────────────────
# Abstract Base Class
# ─────────────────────────────────────────────────────────────────────────────


class EmbeddingProvider(ABC):
    """
    Abstract base class for embedding providers.

    Implementations must provide:
    - embed_text(): Embed a single text string (one remote call per text)

    Properties:
    - provider_name: Provider identifier (mistral, gemini)
    - model_name: Name of the embedding model
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
    async def embed_text(self, text: str) -> list[float]:
        """
        Embed a single text string.

        Args:
            text: Text to embed, sent verbatim

        Returns:
            Embedding vector as list of floats

        Raises:
            ProviderUnavailableError: If the provider call fails
        """

    async def aclose(self) -> None:
        """Release network resources held by the provider."""

    def get_info(self) -> dict:
        """Get provider information."""
        return {
            "provider": self.provider_name,
            "model": self.model_name,
        }


# ─────────────────────────────────────────────────────────────────────────────
# Provider Factory
# ─────────────────────────────────────────────────────────────────────────────


_provider_cache: dict[str, EmbeddingProvider] = {}


def get_embedding_provider(
    provider_name: Optional[str] = None,
    use_cache: bool = True,
) -> EmbeddingProvider:
    """
    Get an embedding provider instance.

    Args:
        provider_name: Provider name ("mistral" or "gemini"). If None, uses config.
        use_cache: Whether to cache and reuse provider instances

    Returns:
        EmbeddingProvider instance

    Raises:
        ValueError: If provider name is invalid
        ConfigurationMissingError: If the provider's API key is not set
    """
    if provider_name is None:
        provider_name = get_settings().get_effective_embedding_provider()

    provider_name = provider_name.lower().strip()

    if use_cache and provider_name in _provider_cache:
        return _provider_cache[provider_name]

    provider: EmbeddingProvider

    if provider_name == "mistral":
        from su_advisor.indexing.embeddings_mistral import MistralEmbeddingProvider
        provider = MistralEmbeddingProvider()

    elif provider_name == "gemini":
        from su_advisor.indexing.embeddings_gemini import GeminiEmbeddingProvider
        provider = GeminiEmbeddingProvider()

    else:
        raise ValueError(
            f"Unknown embedding provider: {provider_name}. "
            f"Valid options: mistral, gemini"
        )

    if use_cache:
        _provider_cache[provider_name] = provider

    logger.info(
        f"Initialized embedding provider: {provider.provider_name} "
        f"(model={provider.model_name})"
    )

    return provider


def clear_provider_cache() -> None:
    """Clear the provider cache."""
    _provider_cache.clear()
