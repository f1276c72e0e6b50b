"""
Ingestion Module - Chunk and store new documents.
=================================================

- chunker: Overlapping word-window chunking
- ingestor: Document type routing and vector store insertion
"""

from su_advisor.ingestion.chunker import ChunkerConfig, WordWindowChunker
from su_advisor.ingestion.ingestor import DocumentIngestor

__all__ = [
    "ChunkerConfig",
    "WordWindowChunker",
    "DocumentIngestor",
]
