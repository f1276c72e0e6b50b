"""
Service Module - Process-wide wiring of the RAG pipeline.
=========================================================

RagService owns the shared, long-lived pieces (embedding cache, vector
store, catalog, rate limiter, providers) and exposes the three operations
used by the HTTP and CLI surfaces:
- ask(): stream an answer
- get_similar_chunks(): plain vector search
- ingest_documents(): chunk and store new text

One service is built per process through ``get_rag_service()``; tests
construct their own with injected fakes.
"""

from typing import Any, AsyncIterator, Optional, Union

from su_advisor.indexing.embedding_cache import EmbeddingCache, create_embedding_cache
from su_advisor.indexing.vector_store import VectorStore
from su_advisor.ingestion.ingestor import DocumentIngestor
from su_advisor.rag.catalog import CourseCatalog
from su_advisor.rag.gateway import GenerationGateway
from su_advisor.rag.local_context import LocalContextResolver
from su_advisor.rag.prompts import PromptBuilder
from su_advisor.rag.providers.base import GenerationProvider
from su_advisor.rag.query_expander import QueryExpander
from su_advisor.rag.rate_limiter import IntervalRateLimiter
from su_advisor.rag.retriever import HybridRetriever
from su_advisor.rag.web_snippet import WebSnippetProvider
from su_advisor.shared.config import get_settings
from su_advisor.shared.logging import get_logger
from su_advisor.shared.schemas import AskChunk, AskRequest, IngestResult, Passage

logger = get_logger(__name__)


class RagService:
    """
    Facade over the RAG pipeline.

    Example:
        >>> service = get_rag_service()
        >>> async for chunk in service.ask(AskRequest(question="CS412 zor mu?")):
        ...     print(chunk.chunk, end="")
    """

    def __init__(
        self,
        embedding_cache: Optional[EmbeddingCache] = None,
        vector_store: Optional[VectorStore] = None,
        catalog: Optional[CourseCatalog] = None,
        generation_provider: Optional[GenerationProvider] = None,
        web_snippets: Optional[WebSnippetProvider] = None,
        prompt_builder: Optional[PromptBuilder] = None,
        rate_limiter: Optional[IntervalRateLimiter] = None,
        expander: Optional[QueryExpander] = None,
    ):
        settings = get_settings()

        self.embedding_cache = embedding_cache or create_embedding_cache()
        self.vector_store = vector_store or VectorStore(self.embedding_cache)
        self.catalog = catalog or CourseCatalog()

        if web_snippets is None and settings.local_context.web_snippet_enabled:
            web_snippets = WebSnippetProvider()
        self.web_snippets = web_snippets

        self.retriever = HybridRetriever(self.vector_store)
        self.local_context = LocalContextResolver(self.catalog, self.web_snippets)
        self.rate_limiter = rate_limiter or IntervalRateLimiter(
            settings.generation.rate_limit_interval
        )
        self.gateway = GenerationGateway(
            expander=expander or QueryExpander(),
            retriever=self.retriever,
            local_context=self.local_context,
            prompt_builder=prompt_builder or PromptBuilder(),
            rate_limiter=self.rate_limiter,
            provider=generation_provider,
        )
        self.ingestor = DocumentIngestor(self.vector_store)

        self.default_collection = settings.vector_store.collections.reviews
        self.similar_default_top_k = settings.retrieval.similar_default_top_k

    async def startup(self) -> list[str]:
        """Prepare the configured collections; returns the ready ones."""
        collections = get_settings().vector_store.collections
        return await self.vector_store.ensure_collections([collections.reviews, collections.exams])

    def ask(self, request: AskRequest) -> AsyncIterator[AskChunk]:
        """Stream the answer to a question (see GenerationGateway.ask)."""
        return self.gateway.ask(request)

    async def get_similar_chunks(
        self,
        query: str,
        collection: Optional[str] = None,
        top_k: Optional[int] = None,
        filters: Optional[dict[str, Any]] = None,
    ) -> list[Passage]:
        """
        Plain vector search without expansion or rerank.

        Args:
            query: Query text
            collection: Collection name (reviews by default)
            top_k: Maximum results
            filters: Exact-match metadata filters
        """
        return await self.vector_store.query(
            collection or self.default_collection,
            query,
            top_k or self.similar_default_top_k,
            filters,
        )

    async def ingest_documents(
        self,
        document_type: str,
        content: Union[bytes, str],
        metadata: Optional[dict[str, str]] = None,
        batch_id: Optional[str] = None,
    ) -> IngestResult:
        """Chunk, embed and store a document (see DocumentIngestor.ingest)."""
        return await self.ingestor.ingest(document_type, content, metadata, batch_id)

    async def info(self) -> dict[str, Any]:
        """Get a summary of configuration and cache state."""
        settings = get_settings()
        return {
            "embedding_provider": settings.get_effective_embedding_provider(),
            "generation_provider": settings.get_effective_generation_provider(),
            "collections": {
                "reviews": settings.vector_store.collections.reviews,
                "exams": settings.vector_store.collections.exams,
            },
            "catalog_loaded": self.catalog.is_loaded,
            "catalog_courses": len(self.catalog),
            "rate_limit_interval": self.rate_limiter.interval,
            "embedding_cache": await self.embedding_cache.stats(),
        }

    async def aclose(self) -> None:
        await self.embedding_cache.close()
        if self.web_snippets is not None:
            await self.web_snippets.aclose()
        await self.gateway.aclose()


# ─────────────────────────────────────────────────────────────────────────────
# Singleton
# ─────────────────────────────────────────────────────────────────────────────


_service: Optional[RagService] = None


def get_rag_service() -> RagService:
    """Get or create the process-wide RagService."""
    global _service
    if _service is None:
        _service = RagService()
    return _service


def reset_rag_service() -> None:
    """Forget the process-wide service (does not close it)."""
    global _service
    _service = None
