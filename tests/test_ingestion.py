"""
Tests for the ingestion module.
===============================

Tests for:
- Word-window chunking
- Document building (ids, metadata)
- DocumentIngestor routing and failure reporting
"""

import pytest


def _words(n):
    return " ".join(f"w{i}" for i in range(n))


# ─────────────────────────────────────────────────────────────────────────────
# Chunker Tests
# ─────────────────────────────────────────────────────────────────────────────


class TestChunkerConfig:
    """Tests for ChunkerConfig."""

    def test_default_sizes(self):
        """Test word counts derived from the token estimate."""
        from su_advisor.ingestion.chunker import ChunkerConfig

        config = ChunkerConfig()

        assert config.words_per_chunk == 230
        assert config.overlap_words == 38
        assert config.step == 192

    def test_settings_defaults(self):
        """Test that the chunker reads its sizes from settings."""
        from su_advisor.ingestion.chunker import WordWindowChunker

        chunker = WordWindowChunker()

        assert chunker.config.target_tokens == 300
        assert chunker.config.overlap_tokens == 50


class TestWordWindowChunker:
    """Tests for WordWindowChunker.split."""

    def test_windows_overlap(self):
        """Test window sizes and the overlap between neighbours."""
        from su_advisor.ingestion.chunker import ChunkerConfig, WordWindowChunker

        chunks = WordWindowChunker(ChunkerConfig()).split(_words(500))

        assert len(chunks) == 3
        first, second, third = (c.split() for c in chunks)
        assert len(first) == 230
        assert len(second) == 230
        assert len(third) == 500 - 384
        assert first[-38:] == second[:38]
        assert second[0] == "w192"
        assert third[-1] == "w499"

    def test_short_text_single_chunk(self):
        """Test that text shorter than a window is one chunk."""
        from su_advisor.ingestion.chunker import ChunkerConfig, WordWindowChunker

        chunker = WordWindowChunker(ChunkerConfig())

        assert chunker.split("  Final   sınavı\nçok zordu  ") == ["Final sınavı çok zordu"]

    def test_empty_text(self):
        """Test that blank text produces no chunks."""
        from su_advisor.ingestion.chunker import ChunkerConfig, WordWindowChunker

        chunker = WordWindowChunker(ChunkerConfig())

        assert chunker.split("") == []
        assert chunker.split("   \n\t") == []

    def test_small_windows(self):
        """Test the documented small-window example."""
        from su_advisor.ingestion.chunker import ChunkerConfig, WordWindowChunker

        chunker = WordWindowChunker(ChunkerConfig(target_tokens=13, overlap_tokens=3))

        assert chunker.split("a b c d e f g h i j k l m n o") == [
            "a b c d e f g h i j",
            "i j k l m n o",
        ]


# ─────────────────────────────────────────────────────────────────────────────
# Ingestor Tests
# ─────────────────────────────────────────────────────────────────────────────


@pytest.fixture
def ingestor(vector_store):
    """DocumentIngestor over the fake vector store with small windows."""
    from su_advisor.ingestion.chunker import ChunkerConfig, WordWindowChunker
    from su_advisor.ingestion.ingestor import DocumentIngestor

    chunker = WordWindowChunker(ChunkerConfig(target_tokens=13, overlap_tokens=3))
    return DocumentIngestor(vector_store, chunker=chunker)


class TestDocumentIngestor:
    """Tests for DocumentIngestor."""

    def test_build_documents(self, ingestor):
        """Test ids and metadata of built documents."""
        docs = ingestor.build_documents(_words(15), "batch-1", {"courseCode": "CS412", "year": "2024"})

        assert [d.id for d in docs] == ["batch-1-0", "batch-1-1"]
        assert docs[1].metadata == {
            "courseCode": "CS412",
            "batchId": "batch-1",
            "chunkIndex": "1",
            "year": "2024",
        }

    def test_build_documents_without_course(self, ingestor):
        """Test that courseCode defaults to an empty string."""
        docs = ingestor.build_documents("tek parça", "b", {})

        assert docs[0].metadata["courseCode"] == ""

    @pytest.mark.asyncio
    async def test_ingest_review(self, ingestor, chroma_client):
        """Test that reviews go to the reviews collection."""
        result = await ingestor.ingest(
            "review",
            _words(15),
            {"courseCode": "CS412", "instructor": "Berrin Yanıkoğlu"},
            batch_id="rev-batch",
        )

        assert result.success
        assert result.chunks_stored == 2
        assert result.batch_id == "rev-batch"

        records = chroma_client.collections["su_reviews"].records
        assert set(records) == {"rev-batch-0", "rev-batch-1"}
        assert records["rev-batch-0"][2]["instructor"] == "Berrin Yanıkoğlu"

    @pytest.mark.asyncio
    async def test_ingest_exam_bytes(self, ingestor, chroma_client):
        """Test that exam text arrives as bytes and goes to the exams collection."""
        result = await ingestor.ingest("exam_pdf", "Soru 1: Türev alın.".encode("utf-8"))

        assert result.success
        assert result.chunks_stored == 1
        assert result.batch_id

        (text, _, metadata), = chroma_client.collections["su_exams"].records.values()
        assert text == "Soru 1: Türev alın."
        assert metadata["batchId"] == result.batch_id

    @pytest.mark.asyncio
    async def test_unknown_document_type(self, ingestor, chroma_client):
        """Test that unknown types are reported, not raised."""
        result = await ingestor.ingest("pdf", "text")

        assert not result.success
        assert result.error == "Unknown document type: pdf"
        assert result.chunks_stored == 0
        assert chroma_client.collections == {}

    @pytest.mark.asyncio
    async def test_invalid_utf8(self, ingestor):
        """Test that undecodable bytes fail the batch."""
        result = await ingestor.ingest("review", b"\xff\xfe\xfa")

        assert not result.success
        assert result.error

    @pytest.mark.asyncio
    async def test_embedding_failure(self, ingestor, fake_embedding_provider):
        """Test that provider failures are reported in the result."""
        fake_embedding_provider.fail = True

        result = await ingestor.ingest("review", "bir yorum")

        assert not result.success
        assert "offline" in result.error

    @pytest.mark.asyncio
    async def test_empty_content(self, ingestor):
        """Test that empty content succeeds with nothing stored."""
        result = await ingestor.ingest("review", "")

        assert result.success
        assert result.chunks_stored == 0
