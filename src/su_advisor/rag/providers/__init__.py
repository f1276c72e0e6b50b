"""
Providers Module - Interchangeable generation backends.
=======================================================

- base: GenerationProvider interface, ChatStream and factory
- mistral: SSE streaming chat completions
- gemini: Single-shot generation re-chunked into a stream
"""

from su_advisor.rag.providers.base import (
    ChatMessages,
    ChatStream,
    GenerationProvider,
    clear_generation_provider_cache,
    get_generation_provider,
)

__all__ = [
    "ChatMessages",
    "ChatStream",
    "GenerationProvider",
    "clear_generation_provider_cache",
    "get_generation_provider",
]
