"""
Ingestor Module - Feed new text into the vector store.
======================================================

Turns an uploaded document into chunked, embedded passages:

    content (bytes | str) → decode → word-window chunks → IngestDocuments → VectorStore

Document types and their collections:
- exam_pdf: exam text already extracted upstream → exams collection
- review: pre-parsed student review text → reviews collection

Failures are reported in the IngestResult, never raised.
"""

import uuid
from typing import Optional, Union

from su_advisor.indexing.vector_store import VectorStore
from su_advisor.ingestion.chunker import WordWindowChunker
from su_advisor.shared.config import get_settings
from su_advisor.shared.logging import get_logger
from su_advisor.shared.schemas import DocumentType, IngestDocument, IngestResult

logger = get_logger(__name__)


def decode_content(content: Union[bytes, str]) -> str:
    if isinstance(content, bytes):
        return content.decode("utf-8")
    return content


class DocumentIngestor:
    """
    Chunks, embeds and stores documents.

    Example:
        >>> ingestor = DocumentIngestor(vector_store)
        >>> result = await ingestor.ingest("exam_pdf", pdf_text, {"courseCode": "CS412"})
        >>> result.chunks_stored
        3
    """

    def __init__(
        self,
        vector_store: VectorStore,
        chunker: Optional[WordWindowChunker] = None,
        collections: Optional[dict[str, str]] = None,
    ):
        """
        Initialize the ingestor.

        Args:
            vector_store: Target vector store
            chunker: Text chunker (configured word windows if None)
            collections: Document type → collection name (configured collections if None)
        """
        configured = get_settings().vector_store.collections

        self.vector_store = vector_store
        self.chunker = chunker or WordWindowChunker()
        self.collections = collections or {
            DocumentType.EXAM_PDF.value: configured.exams,
            DocumentType.REVIEW.value: configured.reviews,
        }

    def collection_for(self, document_type: str) -> Optional[str]:
        return self.collections.get(document_type)

    def build_documents(
        self,
        text: str,
        batch_id: str,
        metadata: dict[str, str],
    ) -> list[IngestDocument]:
        """Chunk text into documents with ``<batch_id>-<i>`` ids."""
        course_code = metadata.get("courseCode") or metadata.get("course_code") or ""

        return [
            IngestDocument(
                id=f"{batch_id}-{i}",
                text=chunk,
                metadata={
                    "courseCode": course_code,
                    "batchId": batch_id,
                    "chunkIndex": str(i),
                    **metadata,
                },
            )
            for i, chunk in enumerate(self.chunker.split(text))
        ]

    async def ingest(
        self,
        document_type: str,
        content: Union[bytes, str],
        metadata: Optional[dict[str, str]] = None,
        batch_id: Optional[str] = None,
    ) -> IngestResult:
        """
        Ingest one document.

        Args:
            document_type: "exam_pdf" or "review"
            content: Document text (bytes are decoded as UTF-8)
            metadata: Metadata attached to every chunk (e.g., courseCode, instructor)
            batch_id: Batch identifier (random UUID if not given)

        Returns:
            IngestResult; ``success=False`` with an error message on failure
        """
        batch_id = batch_id or str(uuid.uuid4())
        metadata = {str(k): str(v) for k, v in (metadata or {}).items() if v is not None}

        collection = self.collection_for(document_type)
        if collection is None:
            logger.warning(f"Rejected ingest of unknown document type: {document_type}")
            return IngestResult(
                batch_id=batch_id,
                success=False,
                error=f"Unknown document type: {document_type}",
            )

        try:
            text = decode_content(content)
            documents = self.build_documents(text, batch_id, metadata)
            if documents:
                await self.vector_store.add_documents(collection, documents)
        except Exception as e:
            logger.error(f"Ingest failed for batch {batch_id}: {e}")
            return IngestResult(batch_id=batch_id, success=False, error=str(e))

        logger.info(
            f"Ingested {len(documents)} chunks into {collection} "
            f"(type={document_type}, batch={batch_id})"
        )
        return IngestResult(batch_id=batch_id, chunks_stored=len(documents), success=True)
