"""
Retriever Module - Multi-query hybrid search over the vector store.
==================================================================

Handles retrieval of relevant passages for a question:
- One vector query per expanded question variant, issued concurrently
- Merge by passage id keeping the best score
- Lexical rerank through a swappable Reranker strategy
"""

import asyncio
from typing import Any, Optional

from su_advisor.indexing.vector_store import VectorStore
from su_advisor.rag.reranker import LexicalOverlapReranker, Reranker
from su_advisor.shared.config import get_settings
from su_advisor.shared.logging import get_logger
from su_advisor.shared.schemas import Passage

logger = get_logger(__name__)


def merge_by_id(result_sets: list[list[Passage]]) -> list[Passage]:
    """
    Merge result sets, keeping the higher-scoring passage per id.

    Returns:
        Merged passages sorted by score descending
    """
    best: dict[str, Passage] = {}
    for passages in result_sets:
        for passage in passages:
            existing = best.get(passage.id)
            if existing is None or existing.score < passage.score:
                best[passage.id] = passage

    return sorted(best.values(), key=lambda p: p.score, reverse=True)


class HybridRetriever:
    """
    Retrieves passages for several query variants at once.

    Example:
        >>> retriever = HybridRetriever(vector_store)
        >>> hits = await retriever.hybrid_search("su_reviews", ["CS412 zor mu?", "CS412 zor mu"], top_k=8)
        >>> top = retriever.rerank("CS412 zor mu?", hits, top_n=4)
    """

    def __init__(
        self,
        vector_store: VectorStore,
        reranker: Optional[Reranker] = None,
    ):
        """
        Initialize the retriever.

        Args:
            vector_store: Store used for every variant query
            reranker: Rerank strategy (lexical overlap by default)
        """
        settings = get_settings()

        self._vector_store = vector_store
        self._reranker = reranker or LexicalOverlapReranker(
            boost=settings.retrieval.lexical_boost
        )

    @property
    def vector_store(self) -> VectorStore:
        return self._vector_store

    @property
    def reranker(self) -> Reranker:
        return self._reranker

    async def hybrid_search(
        self,
        collection: str,
        queries: list[str],
        top_k: int,
        filters: Optional[dict[str, Any]] = None,
    ) -> list[Passage]:
        """
        Query every variant concurrently and merge the results.

        Args:
            collection: Collection to search
            queries: Query variants (typically from QueryExpander)
            top_k: Results per variant and maximum merged results
            filters: Exact-match metadata filters

        Returns:
            At most ``top_k`` passages, unique by id, highest score first
        """
        if not queries or top_k <= 0:
            return []

        tasks = [
            asyncio.ensure_future(self._vector_store.query(collection, q, top_k, filters))
            for q in queries
        ]
        try:
            result_sets = await asyncio.gather(*tasks)
        finally:
            # A failed or cancelled search leaves no variant query running
            pending = [task for task in tasks if not task.done()]
            for task in pending:
                task.cancel()
            if pending:
                await asyncio.gather(*pending, return_exceptions=True)

        merged = merge_by_id(list(result_sets))
        logger.debug(
            f"Hybrid search: {len(queries)} queries → {len(merged)} unique passages"
        )
        return merged[:top_k]

    def rerank(self, question: str, passages: list[Passage], top_n: int) -> list[Passage]:
        """Rerank passages for the original question and keep ``top_n``."""
        return self._reranker.rerank(question, passages, top_n)
