"""
Tests for retrieval.
====================

Tests for:
- Query expansion
- Result merging and hybrid multi-query search
- Lexical rerank
"""

import asyncio

import pytest


# ─────────────────────────────────────────────────────────────────────────────
# Query Expander Tests
# ─────────────────────────────────────────────────────────────────────────────


class TestQueryExpander:
    """Tests for QueryExpander."""

    def test_turkish_question(self):
        """Test original, synonym and declarative variants in order."""
        from su_advisor.rag.query_expander import QueryExpander

        expander = QueryExpander()

        assert expander.expand("Hangi ders zor?") == [
            "Hangi ders zor?",
            "Hangi ders zor? kurs",
            "ders zor",
        ]

    def test_english_question(self):
        """Test that English domain terms and interrogatives are handled."""
        from su_advisor.rag.query_expander import QueryExpander

        expanded = QueryExpander().expand("What is the grade policy?")

        assert expanded == [
            "What is the grade policy?",
            "What is the grade policy? score",
            "is the grade policy",
        ]

    def test_first_element_is_trimmed_question(self):
        """Test that surrounding whitespace is dropped."""
        from su_advisor.rag.query_expander import QueryExpander

        expanded = QueryExpander().expand("   CS412 hoca kim?  ")

        assert expanded[0] == "CS412 hoca kim?"
        assert 1 <= len(expanded) <= 3
        assert len(set(expanded)) == len(expanded)

    def test_duplicates_removed(self):
        """Test that a plain statement without domain terms yields one variant."""
        from su_advisor.rag.query_expander import QueryExpander

        assert QueryExpander().expand("CS412") == ["CS412"]

    def test_empty_question(self):
        """Test that blank input yields no variants."""
        from su_advisor.rag.query_expander import QueryExpander

        expander = QueryExpander()

        assert expander.expand("") == []
        assert expander.expand("   ") == []

    def test_deterministic(self):
        """Test that the same question always expands the same way."""
        from su_advisor.rag.query_expander import QueryExpander

        question = "Mezuniyet için hangi dersler gerekli?"

        assert QueryExpander().expand(question) == QueryExpander().expand(question)

    def test_custom_tables(self):
        """Test that injected synonyms and interrogatives are used."""
        from su_advisor.rag.query_expander import QueryExpander

        expander = QueryExpander(synonyms={"lab": ["laboratuvar"]}, interrogatives=["kaç"])

        assert expander.expand("Kaç lab var?") == [
            "Kaç lab var?",
            "Kaç lab var? laboratuvar",
            "lab var",
        ]


# ─────────────────────────────────────────────────────────────────────────────
# Hybrid Search Tests
# ─────────────────────────────────────────────────────────────────────────────


def _passage(pid, score, text="text"):
    from su_advisor.shared.schemas import Passage
    return Passage(id=pid, text=text, score=score)


class _StubVectorStore:
    """Returns canned results per query text and records calls."""

    def __init__(self, results):
        self.results = results
        self.calls = []

    async def query(self, collection, query_text, top_k=8, filters=None):
        self.calls.append((collection, query_text, top_k, filters))
        return self.results.get(query_text, [])[:top_k]


class TestMergeById:
    """Tests for merge_by_id."""

    def test_keeps_best_score_per_id(self):
        """Test that duplicates collapse to their highest score."""
        from su_advisor.rag.retriever import merge_by_id

        merged = merge_by_id([
            [_passage("a", 0.5), _passage("b", 0.7)],
            [_passage("a", 0.9), _passage("c", 0.1)],
        ])

        assert [(p.id, p.score) for p in merged] == [("a", 0.9), ("b", 0.7), ("c", 0.1)]


class TestHybridRetriever:
    """Tests for HybridRetriever."""

    @pytest.mark.asyncio
    async def test_hybrid_search_dedupes_and_caps(self):
        """Test unique ids, descending scores and the top_k cap."""
        from su_advisor.rag.retriever import HybridRetriever

        store = _StubVectorStore({
            "q1": [_passage("a", 0.6), _passage("b", 0.5), _passage("c", 0.4)],
            "q2": [_passage("b", 0.8), _passage("d", 0.3)],
        })
        retriever = HybridRetriever(store)

        results = await retriever.hybrid_search("su_reviews", ["q1", "q2"], top_k=3)

        assert [p.id for p in results] == ["b", "a", "c"]
        assert results[0].score == 0.8
        assert len(store.calls) == 2
        assert all(call[2] == 3 for call in store.calls)

    @pytest.mark.asyncio
    async def test_failed_variant_cancels_the_others(self):
        """Test that one failing variant query stops the slower ones."""
        from su_advisor.rag.retriever import HybridRetriever
        from su_advisor.shared.errors import ProviderUnavailableError

        cancelled = []

        class FlakyStore:
            async def query(self, collection, query_text, top_k=8, filters=None):
                if query_text == "broken":
                    raise ProviderUnavailableError("chroma", "down")
                try:
                    await asyncio.sleep(30)
                except asyncio.CancelledError:
                    cancelled.append(query_text)
                    raise
                return []

        retriever = HybridRetriever(FlakyStore())

        with pytest.raises(ProviderUnavailableError):
            await asyncio.wait_for(
                retriever.hybrid_search("su_reviews", ["slow-1", "broken", "slow-2"], 4),
                timeout=5,
            )

        assert sorted(cancelled) == ["slow-1", "slow-2"]

    @pytest.mark.asyncio
    async def test_filters_passed_to_every_query(self):
        """Test that metadata filters apply to each variant."""
        from su_advisor.rag.retriever import HybridRetriever

        store = _StubVectorStore({})
        retriever = HybridRetriever(store)

        await retriever.hybrid_search("su_exams", ["q1", "q2"], 4, filters={"courseCode": "CS412"})

        assert {call[3]["courseCode"] for call in store.calls} == {"CS412"}

    @pytest.mark.asyncio
    async def test_no_queries(self):
        """Test that no variants or non-positive top_k return nothing."""
        from su_advisor.rag.retriever import HybridRetriever

        store = _StubVectorStore({"q": [_passage("a", 1.0)]})
        retriever = HybridRetriever(store)

        assert await retriever.hybrid_search("su_reviews", [], 5) == []
        assert await retriever.hybrid_search("su_reviews", ["q"], 0) == []
        assert store.calls == []

    @pytest.mark.asyncio
    async def test_against_fake_chroma(self, vector_store):
        """Test hybrid search end to end over the fake collection."""
        from su_advisor.rag.retriever import HybridRetriever
        from su_advisor.shared.schemas import IngestDocument

        await vector_store.add_documents("su_reviews", [
            IngestDocument(id=f"r-{i}", text=text)
            for i, text in enumerate(["ders zor", "ders kolay", "hoca iyi", "final zor"])
        ])
        retriever = HybridRetriever(vector_store)

        results = await retriever.hybrid_search("su_reviews", ["ders zor", "final zor"], top_k=3)

        ids = [p.id for p in results]
        assert len(ids) == len(set(ids)) == 3
        assert set(ids[:2]) == {"r-0", "r-3"}
        assert [p.score for p in results] == sorted((p.score for p in results), reverse=True)


# ─────────────────────────────────────────────────────────────────────────────
# Rerank Tests
# ─────────────────────────────────────────────────────────────────────────────


class TestLexicalOverlapReranker:
    """Tests for LexicalOverlapReranker."""

    def test_overlap_boost_changes_order(self):
        """Test that question tokens in the text lift a passage."""
        from su_advisor.rag.reranker import LexicalOverlapReranker

        passages = [
            _passage("plain", 0.50, "nothing relevant here"),
            _passage("match", 0.46, "CS412 final çok zor"),
        ]

        ranked = LexicalOverlapReranker(boost=0.05).rerank("CS412 zor mu", passages, top_n=2)

        assert [p.id for p in ranked] == ["match", "plain"]
        assert ranked[0].score == pytest.approx(0.56)
        assert ranked[1].score == pytest.approx(0.50)

    def test_top_n_and_stability(self):
        """Test the top_n cap and that ties keep incoming order."""
        from su_advisor.rag.reranker import LexicalOverlapReranker

        passages = [_passage(pid, 0.3, "x") for pid in ["first", "second", "third"]]

        ranked = LexicalOverlapReranker().rerank("unrelated", passages, top_n=2)

        assert [p.id for p in ranked] == ["first", "second"]

    def test_non_positive_top_n(self):
        """Test that top_n <= 0 returns nothing."""
        from su_advisor.rag.reranker import LexicalOverlapReranker

        assert LexicalOverlapReranker().rerank("q", [_passage("a", 1.0)], top_n=0) == []

    def test_retriever_uses_reranker(self):
        """Test that HybridRetriever.rerank delegates to its strategy."""
        from su_advisor.rag.reranker import Reranker
        from su_advisor.rag.retriever import HybridRetriever

        class ReverseReranker(Reranker):
            def rerank(self, question, passages, top_n):
                return list(reversed(passages))[:top_n]

        retriever = HybridRetriever(_StubVectorStore({}), reranker=ReverseReranker())
        ranked = retriever.rerank("q", [_passage("a", 0.9), _passage("b", 0.1)], top_n=1)

        assert [p.id for p in ranked] == ["b"]
