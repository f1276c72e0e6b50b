"""
Embedding Cache Module - Durable text → vector cache.
=====================================================

Sits in front of a remote EmbeddingProvider:
- Lookup is by exact text (no normalization) within one provider model
- On a miss the provider is called with exactly that text and the result is
  upserted by model and text, so concurrent misses for the same text converge
- Provider errors propagate to the caller; there is no offline fallback
- A capacity limit and an optional TTL bound the cache size

Stores:
- SQLiteEmbeddingStore: durable, stdlib sqlite3 run off the event loop
- InMemoryEmbeddingStore: process-local, used in tests
"""

import asyncio
import json
import sqlite3
import threading
import time
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from su_advisor.indexing.embeddings_base import EmbeddingProvider, get_embedding_provider
from su_advisor.shared.config import get_settings
from su_advisor.shared.logging import get_logger
from su_advisor.shared.schemas import EmbeddingCacheEntry

logger = get_logger(__name__)


# ─────────────────────────────────────────────────────────────────────────────
# Stores
# ─────────────────────────────────────────────────────────────────────────────


class EmbeddingStore(ABC):
    """
    Key-value storage for embedding cache entries.

    Entries are keyed by ``(model, text_key)``; vectors of different models
    never answer for each other.
    """

    @abstractmethod
    async def get(self, text_key: str, model: str = "") -> Optional[EmbeddingCacheEntry]:
        """Get the entry for an exact text under one model, or None."""

    @abstractmethod
    async def upsert(self, entry: EmbeddingCacheEntry) -> None:
        """Insert or replace the entry keyed by its model and text."""

    @abstractmethod
    async def evict_oldest(self, max_entries: int) -> int:
        """Drop the oldest entries beyond ``max_entries``; return how many."""

    @abstractmethod
    async def size(self) -> int:
        """Number of stored entries."""

    async def close(self) -> None:
        """Release resources."""


class InMemoryEmbeddingStore(EmbeddingStore):
    """Dictionary-backed store; insertion order doubles as age order."""

    def __init__(self) -> None:
        self._entries: dict[tuple[str, str], EmbeddingCacheEntry] = {}

    async def get(self, text_key: str, model: str = "") -> Optional[EmbeddingCacheEntry]:
        return self._entries.get((model, text_key))

    async def upsert(self, entry: EmbeddingCacheEntry) -> None:
        key = (entry.model, entry.text_key)
        self._entries.pop(key, None)
        self._entries[key] = entry

    async def evict_oldest(self, max_entries: int) -> int:
        overflow = len(self._entries) - max_entries
        if overflow <= 0:
            return 0
        for key in list(self._entries)[:overflow]:
            del self._entries[key]
        return overflow

    async def size(self) -> int:
        return len(self._entries)


_SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS embedding_vectors (
    model TEXT NOT NULL,
    text_key TEXT NOT NULL,
    vector_json TEXT NOT NULL,
    created_at REAL NOT NULL,
    PRIMARY KEY (model, text_key)
);
CREATE INDEX IF NOT EXISTS idx_embedding_vectors_created_at
    ON embedding_vectors (created_at);
"""


class SQLiteEmbeddingStore(EmbeddingStore):
    """
    SQLite-backed store.

    A single connection is shared across worker threads and serialized by a
    lock; WAL mode keeps readers from blocking on writes.
    """

    def __init__(self, db_path: Path | str):
        self.db_path = Path(db_path)
        if str(db_path) != ":memory:":
            self.db_path.parent.mkdir(parents=True, exist_ok=True)

        self._lock = threading.Lock()
        self._conn = sqlite3.connect(str(db_path), check_same_thread=False)
        self._conn.execute("PRAGMA journal_mode=WAL")
        self._conn.executescript(_SCHEMA_SQL)
        self._conn.commit()

    def _get_sync(self, text_key: str, model: str) -> Optional[EmbeddingCacheEntry]:
        with self._lock:
            row = self._conn.execute(
                "SELECT vector_json, created_at FROM embedding_vectors "
                "WHERE model = ? AND text_key = ?",
                (model, text_key),
            ).fetchone()
        if row is None:
            return None
        return EmbeddingCacheEntry(
            text_key=text_key,
            model=model,
            vector=json.loads(row[0]),
            created_at=datetime.fromtimestamp(row[1], tz=timezone.utc),
        )

    def _upsert_sync(self, entry: EmbeddingCacheEntry) -> None:
        with self._lock:
            self._conn.execute(
                """
                INSERT INTO embedding_vectors (model, text_key, vector_json, created_at)
                VALUES (?, ?, ?, ?)
                ON CONFLICT(model, text_key) DO UPDATE SET
                    vector_json = excluded.vector_json,
                    created_at = excluded.created_at
                """,
                (
                    entry.model,
                    entry.text_key,
                    json.dumps(entry.vector),
                    entry.created_at.timestamp(),
                ),
            )
            self._conn.commit()

    def _evict_sync(self, max_entries: int) -> int:
        with self._lock:
            cursor = self._conn.execute(
                """
                DELETE FROM embedding_vectors WHERE rowid IN (
                    SELECT rowid FROM embedding_vectors
                    ORDER BY created_at DESC
                    LIMIT -1 OFFSET ?
                )
                """,
                (max_entries,),
            )
            self._conn.commit()
            return cursor.rowcount

    def _size_sync(self) -> int:
        with self._lock:
            return self._conn.execute("SELECT COUNT(*) FROM embedding_vectors").fetchone()[0]

    async def get(self, text_key: str, model: str = "") -> Optional[EmbeddingCacheEntry]:
        return await asyncio.to_thread(self._get_sync, text_key, model)

    async def upsert(self, entry: EmbeddingCacheEntry) -> None:
        await asyncio.to_thread(self._upsert_sync, entry)

    async def evict_oldest(self, max_entries: int) -> int:
        return await asyncio.to_thread(self._evict_sync, max_entries)

    async def size(self) -> int:
        return await asyncio.to_thread(self._size_sync)

    async def close(self) -> None:
        with self._lock:
            self._conn.close()


# ─────────────────────────────────────────────────────────────────────────────
# Cache
# ─────────────────────────────────────────────────────────────────────────────


class EmbeddingCache:
    """
    Text → embedding cache in front of a remote provider.

    One instance is shared by every request in the process.

    Example:
        >>> cache = EmbeddingCache(provider, InMemoryEmbeddingStore())
        >>> v1 = await cache.embed("CS412 zor mu?")   # provider call
        >>> v2 = await cache.embed("CS412 zor mu?")   # cache hit
        >>> v1 == v2
        True
    """

    def __init__(
        self,
        provider: Optional[EmbeddingProvider] = None,
        store: Optional[EmbeddingStore] = None,
        max_entries: int = 0,
        ttl_days: int = 0,
    ):
        """
        Initialize the cache.

        Args:
            provider: Remote embedding provider used on misses (configured
                provider, resolved on first miss, if None)
            store: Backing store (in-memory if None)
            max_entries: Capacity; oldest entries are evicted beyond it (0 = unbounded)
            ttl_days: Entries older than this are treated as misses (0 = never expire)
        """
        self._provider = provider
        self._store = store or InMemoryEmbeddingStore()
        self._max_entries = max_entries
        self._ttl_seconds = ttl_days * 86400
        self.hits = 0
        self.misses = 0

    @property
    def provider(self) -> EmbeddingProvider:
        """
        Get the embedding provider.

        Raises:
            ConfigurationMissingError: If the configured provider has no API key
        """
        if self._provider is None:
            self._provider = get_embedding_provider()
        return self._provider

    @property
    def model_key(self) -> str:
        """Namespace of cached vectors: ``<provider>/<model>``."""
        provider = self.provider
        return f"{provider.provider_name}/{provider.model_name}"

    def _is_expired(self, entry: EmbeddingCacheEntry) -> bool:
        if not self._ttl_seconds:
            return False
        return time.time() - entry.created_at.timestamp() > self._ttl_seconds

    async def embed(self, text: str) -> list[float]:
        """
        Get the embedding for an exact text, calling the provider on a miss.

        Vectors cached for another provider or model are never returned.

        Raises:
            ProviderUnavailableError: If the provider call fails
        """
        model = self.model_key
        entry = await self._store.get(text, model)
        if entry is not None and not self._is_expired(entry):
            self.hits += 1
            return entry.vector

        self.misses += 1
        vector = await self.provider.embed_text(text)

        await self._store.upsert(EmbeddingCacheEntry(text_key=text, model=model, vector=vector))
        if self._max_entries:
            evicted = await self._store.evict_oldest(self._max_entries)
            if evicted:
                logger.debug(f"Evicted {evicted} embedding cache entries")

        return vector

    async def stats(self) -> dict:
        """Get hit/miss counters and current size."""
        stats = {
            "hits": self.hits,
            "misses": self.misses,
            "size": await self._store.size(),
            "max_entries": self._max_entries,
            "ttl_days": self._ttl_seconds // 86400,
        }
        if self._provider is not None:
            stats.update(self._provider.get_info())
        return stats

    async def close(self) -> None:
        await self._store.close()
        if self._provider is not None:
            await self._provider.aclose()


def create_embedding_cache(provider: Optional[EmbeddingProvider] = None) -> EmbeddingCache:
    """Create the embedding cache described by the settings.

    The provider is resolved on the first cache miss, so a missing API key
    fails that request rather than startup.
    """
    settings = get_settings()
    cache_config = settings.embeddings.cache

    store: EmbeddingStore
    if cache_config.backend == "memory":
        store = InMemoryEmbeddingStore()
    else:
        store = SQLiteEmbeddingStore(settings.resolve_path(cache_config.path))

    return EmbeddingCache(
        provider=provider,
        store=store,
        max_entries=cache_config.max_entries,
        ttl_days=cache_config.ttl_days,
    )
