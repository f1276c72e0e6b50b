"""
Pytest Configuration and Fixtures.
===================================

Shared fixtures for all test modules:
- Sample data fixtures (passages, catalog file)
- Fake backends (embedding provider, ChromaDB client, generation provider)
- Pipeline builders
- Singleton and settings resets

No test talks to the network.
"""

import asyncio
import json
import math
import tempfile
from pathlib import Path
from typing import AsyncIterator, Generator, Optional

import pytest

from su_advisor.indexing.embeddings_base import EmbeddingProvider
from su_advisor.rag.providers.base import ChatStream, GenerationProvider
from su_advisor.shared.errors import ProviderUnavailableError
from su_advisor.shared.schemas import TokenUsage


# ─────────────────────────────────────────────────────────────────────────────
# Path Fixtures
# ─────────────────────────────────────────────────────────────────────────────


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for test files."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def project_root() -> Path:
    """Get the project root directory."""
    return Path(__file__).parent.parent


# ─────────────────────────────────────────────────────────────────────────────
# Sample Data Fixtures
# ─────────────────────────────────────────────────────────────────────────────


CATALOG_ROWS = [
    {
        "course_id": "CS412",
        "title": "Machine Learning",
        "su_credits": 3,
        "ects": 6,
        "description": "Supervised and unsupervised learning methods.",
        "meetings": [{"instructors": "Berrin Yanıkoğlu"}],
    },
    {
        "subj_code": "CS",
        "crse_numb": "300",
        "title": "Data Structures",
        "su_credits": "3",
        "ects": "6",
        "description": "Lists, trees, hash tables and graphs.",
        "instructors": ["Gülşen Demiröz"],
    },
    {
        "Major": "MATH",
        "Code": "201",
        "Course_Name": "Linear Algebra",
        "SU_credit": 3,
        "ECTS": 6,
        "Instructors": "Kağan Kurşungöz",
        "Description": "Vector spaces and linear maps.",
    },
]


@pytest.fixture
def catalog_file(temp_dir: Path) -> Path:
    """Write a small catalog JSONL file (both record layouts)."""
    path = temp_dir / "courses.jsonl"
    with open(path, "w", encoding="utf-8") as f:
        for row in CATALOG_ROWS:
            f.write(json.dumps(row, ensure_ascii=False) + "\n")
        f.write("this line is not json\n")
    return path


@pytest.fixture
def catalog(catalog_file: Path):
    """Unloaded CourseCatalog over the sample file."""
    from su_advisor.rag.catalog import CourseCatalog
    return CourseCatalog(catalog_file)


@pytest.fixture
def sample_passages():
    """Retrieved passages, highest score first."""
    from su_advisor.shared.schemas import Passage

    return [
        Passage(
            id="rev-1",
            text="CS412 projeleri ağır ama öğretici.",
            score=0.82,
            metadata={"courseCode": "CS412"},
        ),
        Passage(
            id="rev-2",
            text="Final sınavı derste çözülen sorulara benziyordu.",
            score=0.74,
            metadata={"courseCode": "CS412"},
        ),
        Passage(
            id="rev-3",
            text="MATH201 ödevleri haftalık veriliyor.",
            score=0.51,
            metadata={"courseCode": "MATH201"},
        ),
    ]


# ─────────────────────────────────────────────────────────────────────────────
# Fake Embedding Provider
# ─────────────────────────────────────────────────────────────────────────────


def fake_vector(text: str, dim: int = 16) -> list[float]:
    """Deterministic bag-of-words vector."""
    vector = [0.0] * dim
    for word in text.lower().split():
        vector[sum(map(ord, word)) % dim] += 1.0
    return vector


class FakeEmbeddingProvider(EmbeddingProvider):
    """Counts calls and returns deterministic vectors."""

    def __init__(self, fail: bool = False):
        self.calls: list[str] = []
        self.fail = fail
        self.closed = False

    @property
    def provider_name(self) -> str:
        return "fake"

    @property
    def model_name(self) -> str:
        return "fake-embed"

    async def embed_text(self, text: str) -> list[float]:
        self.calls.append(text)
        if self.fail:
            raise ProviderUnavailableError("fake-embed", "offline", 503)
        return fake_vector(text)

    async def aclose(self) -> None:
        self.closed = True


@pytest.fixture
def fake_embedding_provider() -> FakeEmbeddingProvider:
    return FakeEmbeddingProvider()


@pytest.fixture
def embedding_cache(fake_embedding_provider):
    """In-memory EmbeddingCache over the fake provider."""
    from su_advisor.indexing.embedding_cache import EmbeddingCache, InMemoryEmbeddingStore
    return EmbeddingCache(fake_embedding_provider, InMemoryEmbeddingStore())


# ─────────────────────────────────────────────────────────────────────────────
# Fake ChromaDB
# ─────────────────────────────────────────────────────────────────────────────


def _cosine_distance(a: list[float], b: list[float]) -> float:
    norm_a = math.sqrt(sum(x * x for x in a))
    norm_b = math.sqrt(sum(x * x for x in b))
    if not norm_a or not norm_b:
        return 1.0
    return 1.0 - sum(x * y for x, y in zip(a, b)) / (norm_a * norm_b)


def _matches_where(metadata: dict, where: Optional[dict]) -> bool:
    if not where:
        return True
    if "$and" in where:
        return all(_matches_where(metadata, clause) for clause in where["$and"])
    return all(metadata.get(key) == cond["$eq"] for key, cond in where.items())


class FakeCollection:
    """In-memory stand-in for a chromadb Collection."""

    def __init__(self, name: str):
        self.name = name
        self.records: dict[str, tuple[str, list[float], dict]] = {}
        self.queries: list[dict] = []

    def add(self, ids, documents, embeddings, metadatas=None):
        metadatas = metadatas or [None] * len(ids)
        for doc_id, text, embedding, metadata in zip(ids, documents, embeddings, metadatas):
            self.records[doc_id] = (text, list(embedding), dict(metadata or {}))

    def count(self) -> int:
        return len(self.records)

    def query(self, query_embeddings, n_results, where=None, include=None):
        self.queries.append({"n_results": n_results, "where": where})
        query = query_embeddings[0]

        rows = [
            (doc_id, text, metadata, _cosine_distance(query, embedding))
            for doc_id, (text, embedding, metadata) in self.records.items()
            if _matches_where(metadata, where)
        ]
        rows.sort(key=lambda r: r[3])
        rows = rows[:n_results]

        return {
            "ids": [[r[0] for r in rows]],
            "documents": [[r[1] for r in rows]],
            "metadatas": [[r[2] for r in rows]],
            "distances": [[r[3] for r in rows]],
        }


class FakeChromaClient:
    """Hands out FakeCollections; names in ``fail_on`` raise."""

    def __init__(self, fail_on: Optional[set[str]] = None):
        self.collections: dict[str, FakeCollection] = {}
        self.create_calls: list[tuple[str, Optional[dict]]] = []
        self.fail_on = fail_on or set()

    def get_or_create_collection(self, name, metadata=None):
        self.create_calls.append((name, metadata))
        if name in self.fail_on:
            raise RuntimeError(f"cannot create {name}")
        if name not in self.collections:
            self.collections[name] = FakeCollection(name)
        return self.collections[name]


@pytest.fixture
def chroma_client() -> FakeChromaClient:
    return FakeChromaClient()


@pytest.fixture
def vector_store(embedding_cache, chroma_client):
    """VectorStore over the fake cache and fake ChromaDB client."""
    from su_advisor.indexing.vector_store import VectorStore
    return VectorStore(embedding_cache, client=chroma_client)


# ─────────────────────────────────────────────────────────────────────────────
# Scripted Generation Provider
# ─────────────────────────────────────────────────────────────────────────────


class ScriptedStream(ChatStream):
    """Replays a fixed token list, optionally slowly or ending in an error."""

    def __init__(
        self,
        model: str,
        tokens: list[str],
        completed: bool = True,
        usage: tuple[int, int] = (0, 0),
        error: Optional[Exception] = None,
        delay: float = 0.0,
    ):
        super().__init__(model)
        self._tokens = tokens
        self._complete = completed
        self._usage = usage
        self._error = error
        self._delay = delay
        self.started = False
        self.finished = False

    async def _generate(self) -> AsyncIterator[str]:
        self.started = True
        try:
            for token in self._tokens:
                if self._delay:
                    await asyncio.sleep(self._delay)
                yield token
            if self._error is not None:
                raise self._error
            self.usage = TokenUsage(
                prompt_tokens=self._usage[0], completion_tokens=self._usage[1]
            )
            self.completed = self._complete
        finally:
            self.finished = True


class ScriptedProvider(GenerationProvider):
    """Generation provider returning ScriptedStreams; records every call."""

    def __init__(self, **stream_kwargs):
        self.stream_kwargs = stream_kwargs
        self.streams: list[ScriptedStream] = []
        self.messages: list[list[dict]] = []
        self.call_times: list[float] = []
        self.closed = False

    @property
    def provider_name(self) -> str:
        return "scripted"

    @property
    def model_name(self) -> str:
        return "scripted-model"

    def stream_chat(self, messages):
        self.messages.append(messages)
        self.call_times.append(asyncio.get_running_loop().time())
        stream = ScriptedStream(self.model_name, **self.stream_kwargs)
        self.streams.append(stream)
        return stream

    async def aclose(self) -> None:
        self.closed = True


@pytest.fixture
def make_provider():
    """Build a ScriptedProvider: ``make_provider(tokens=[...], completed=True, ...)``."""

    def factory(tokens=None, **kwargs) -> ScriptedProvider:
        return ScriptedProvider(tokens=list(tokens or ["Merhaba", " dünya"]), **kwargs)

    return factory


@pytest.fixture
def make_gateway(vector_store, catalog):
    """Build a GenerationGateway over the fake backends."""
    from su_advisor.rag.gateway import GenerationGateway
    from su_advisor.rag.local_context import LocalContextResolver
    from su_advisor.rag.prompts import PromptBuilder
    from su_advisor.rag.query_expander import QueryExpander
    from su_advisor.rag.rate_limiter import IntervalRateLimiter
    from su_advisor.rag.retriever import HybridRetriever

    def factory(provider=None, rate_limiter=None, local_context="default") -> GenerationGateway:
        if local_context == "default":
            local_context = LocalContextResolver(catalog)
        return GenerationGateway(
            expander=QueryExpander(),
            retriever=HybridRetriever(vector_store),
            local_context=local_context,
            prompt_builder=PromptBuilder(),
            rate_limiter=rate_limiter or IntervalRateLimiter(0.0),
            provider=provider,
            collection="su_reviews",
        )

    return factory


# ─────────────────────────────────────────────────────────────────────────────
# Singletons
# ─────────────────────────────────────────────────────────────────────────────


@pytest.fixture(autouse=True)
def reset_singletons():
    """Reset settings and provider caches between tests."""
    from su_advisor.indexing.embeddings_base import clear_provider_cache
    from su_advisor.rag.providers.base import clear_generation_provider_cache
    from su_advisor.service import reset_rag_service
    from su_advisor.shared.config import get_settings

    get_settings.cache_clear()
    clear_provider_cache()
    clear_generation_provider_cache()
    reset_rag_service()

    yield

    get_settings.cache_clear()
    clear_provider_cache()
    clear_generation_provider_cache()
    reset_rag_service()
