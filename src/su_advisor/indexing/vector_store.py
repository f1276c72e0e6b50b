"""
Vector Store Module - Async ChromaDB wrapper for storage and retrieval.
======================================================================

Provides a high-level interface to ChromaDB for:
- Named collections (reviews, exams), created on first use
- Adding documents embedded through the shared EmbeddingCache
- Nearest-neighbour search with exact-match metadata filters
- Remote (HTTP) or local persistent clients

The chromadb client is blocking, so every call runs in a worker thread and
the event loop stays free for other requests.
"""

import asyncio
from typing import Any, Optional

import chromadb
from chromadb.config import Settings as ChromaSettings

from su_advisor.indexing.embedding_cache import EmbeddingCache
from su_advisor.shared.config import get_settings
from su_advisor.shared.errors import ProviderUnavailableError
from su_advisor.shared.logging import get_logger
from su_advisor.shared.schemas import IngestDocument, Passage

logger = get_logger(__name__)


def create_chroma_client(mode: Optional[str] = None) -> Any:
    """
    Create a ChromaDB client from settings.

    Args:
        mode: "http" for a ChromaDB server, "persistent" for a local directory

    Returns:
        chromadb client instance
    """
    settings = get_settings()
    mode = (mode or settings.vector_store.mode).lower()
    chroma_settings = ChromaSettings(anonymized_telemetry=False)

    if mode == "persistent":
        persist_dir = settings.resolve_path(settings.vector_store.persist_dir)
        persist_dir.mkdir(parents=True, exist_ok=True)
        return chromadb.PersistentClient(path=str(persist_dir), settings=chroma_settings)

    if mode == "http":
        host, port = settings.get_chroma_address()
        return chromadb.HttpClient(host=host, port=port, settings=chroma_settings)

    raise ValueError(f"Unknown vector store mode: {mode}. Valid options: http, persistent")


def build_where_clause(filters: Optional[dict[str, Any]]) -> Optional[dict[str, Any]]:
    """
    Build a ChromaDB where clause with exact-match equality per field.

    ``None`` values are skipped; every other value, the empty string
    included, must match exactly.

    Example:
        >>> build_where_clause({"courseCode": "CS412"})
        {'courseCode': {'$eq': 'CS412'}}
    """
    if not filters:
        return None

    conditions = [
        {key: {"$eq": value}}
        for key, value in filters.items()
        if value is not None
    ]

    if not conditions:
        return None
    if len(conditions) == 1:
        return conditions[0]
    return {"$and": conditions}


# ─────────────────────────────────────────────────────────────────────────────
# Vector Store Class
# ─────────────────────────────────────────────────────────────────────────────


class VectorStore:
    """
    Async ChromaDB wrapper.

    Example:
        >>> store = VectorStore(embedding_cache=cache)
        >>> await store.add_documents("su_reviews", docs)
        >>> passages = await store.query("su_reviews", "CS412 zor mu?", top_k=5)
        >>> for p in passages:
        ...     print(p.score, p.text[:50])
    """

    def __init__(
        self,
        embedding_cache: EmbeddingCache,
        client: Optional[Any] = None,
    ):
        """
        Initialize the vector store.

        Args:
            embedding_cache: Shared cache used to embed documents and queries
            client: Pre-built chromadb client (created from settings if None)
        """
        self._embedding_cache = embedding_cache
        self._client = client
        self._collections: dict[str, Any] = {}
        self._lock = asyncio.Lock()

    @property
    def embedding_cache(self) -> EmbeddingCache:
        return self._embedding_cache

    async def _get_client(self) -> Any:
        if self._client is None:
            try:
                self._client = await asyncio.to_thread(create_chroma_client)
            except ValueError:
                raise
            except Exception as e:
                raise ProviderUnavailableError("chroma", str(e)) from e
            logger.info("ChromaDB client initialized")
        return self._client

    async def get_collection(self, name: str) -> Any:
        """Get or create a collection (cosine space), cached per name."""
        collection = self._collections.get(name)
        if collection is not None:
            return collection

        async with self._lock:
            if name not in self._collections:
                client = await self._get_client()
                try:
                    self._collections[name] = await asyncio.to_thread(
                        client.get_or_create_collection,
                        name=name,
                        metadata={"hnsw:space": "cosine"},
                    )
                except Exception as e:
                    raise ProviderUnavailableError("chroma", f"collection {name}: {e}") from e
                logger.debug(f"Collection ready: {name}")
            return self._collections[name]

    async def ensure_collections(self, names: list[str]) -> list[str]:
        """
        Pre-create collections at startup.

        Returns:
            Names of the collections that are ready; failures are logged
        """
        ready = []
        for name in names:
            try:
                await self.get_collection(name)
                ready.append(name)
            except ProviderUnavailableError as e:
                logger.warning(f"Could not prepare collection {name}: {e}")
        return ready

    async def add_documents(self, collection: str, documents: list[IngestDocument]) -> int:
        """
        Embed and insert documents into a collection.

        Embeddings are requested concurrently, one call per document.

        Returns:
            Number of documents added
        """
        if not documents:
            return 0

        embeddings = await asyncio.gather(
            *(self._embedding_cache.embed(doc.text) for doc in documents)
        )

        target = await self.get_collection(collection)
        try:
            await asyncio.to_thread(
                target.add,
                ids=[doc.id for doc in documents],
                documents=[doc.text for doc in documents],
                embeddings=list(embeddings),
                metadatas=[doc.metadata or None for doc in documents],
            )
        except Exception as e:
            raise ProviderUnavailableError("chroma", f"add to {collection}: {e}") from e

        logger.info(f"Added {len(documents)} documents to {collection}")
        return len(documents)

    async def query(
        self,
        collection: str,
        query_text: str,
        top_k: int = 8,
        filters: Optional[dict[str, Any]] = None,
    ) -> list[Passage]:
        """
        Query a collection for passages similar to the text.

        Args:
            collection: Collection name
            query_text: Query text to embed and search for
            top_k: Maximum number of results
            filters: Exact-match metadata filters (e.g., {"courseCode": "CS412"})

        Returns:
            Passages sorted by score (1 - distance), highest first
        """
        if not query_text or not query_text.strip() or top_k <= 0:
            return []

        query_embedding = await self._embedding_cache.embed(query_text)
        target = await self.get_collection(collection)

        try:
            results = await asyncio.to_thread(
                target.query,
                query_embeddings=[query_embedding],
                n_results=top_k,
                where=build_where_clause(filters),
                include=["documents", "metadatas", "distances"],
            )
        except Exception as e:
            raise ProviderUnavailableError("chroma", f"query {collection}: {e}") from e

        return self._results_to_passages(results)[:top_k]

    async def count(self, collection: str) -> int:
        """Get the number of items in a collection."""
        target = await self.get_collection(collection)
        try:
            return await asyncio.to_thread(target.count)
        except Exception as e:
            raise ProviderUnavailableError("chroma", f"count {collection}: {e}") from e

    def _results_to_passages(self, results: dict) -> list[Passage]:
        """Convert ChromaDB parallel result arrays to Passages."""
        if not results or not results.get("ids") or not results["ids"][0]:
            return []

        ids = results["ids"][0]
        documents = (results.get("documents") or [[]])[0]
        metadatas = (results.get("metadatas") or [[]])[0]
        distances = (results.get("distances") or [[]])[0] or []

        passages = []
        for i, passage_id in enumerate(ids):
            # cosine distance → similarity; a missing distance counts as no similarity
            distance = distances[i] if i < len(distances) and distances[i] is not None else 1.0
            passages.append(
                Passage(
                    id=passage_id,
                    text=documents[i] if documents else "",
                    score=1.0 - distance,
                    metadata=metadatas[i] if metadatas and metadatas[i] else {},
                )
            )

        passages.sort(key=lambda p: p.score, reverse=True)
        return passages
