"""
Indexing Module - Embeddings, embedding cache and vector storage.
=================================================================

- embeddings_base: Abstract embedding provider and factory
- embeddings_mistral: Mistral embeddings over httpx
- embeddings_gemini: Gemini embeddings via google-genai
- embedding_cache: Durable text → vector cache
- vector_store: Async ChromaDB wrapper
"""

from su_advisor.indexing.embeddings_base import (
    EmbeddingProvider,
    get_embedding_provider,
    clear_provider_cache,
)
from su_advisor.indexing.embedding_cache import (
    EmbeddingCache,
    InMemoryEmbeddingStore,
    SQLiteEmbeddingStore,
    create_embedding_cache,
)
from su_advisor.indexing.vector_store import VectorStore, build_where_clause

__all__ = [
    "EmbeddingProvider",
    "get_embedding_provider",
    "clear_provider_cache",
    "EmbeddingCache",
    "InMemoryEmbeddingStore",
    "SQLiteEmbeddingStore",
    "create_embedding_cache",
    "VectorStore",
    "build_where_clause",
]
