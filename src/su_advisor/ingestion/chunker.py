"""
Chunker Module - Overlapping word-window chunking for vector storage.
====================================================================

Splits plain text into windows sized by an estimated token count:
- Tokens are estimated as words × 1.3
- Consecutive windows overlap so context is not cut mid-thought
- Chunk ids are ``<batch_id>-<index>``, deterministic for a batch
"""

import math
import re
from dataclasses import dataclass
from typing import Optional

from su_advisor.shared.config import get_settings
from su_advisor.shared.logging import get_logger

logger = get_logger(__name__)


@dataclass
class ChunkerConfig:
    """Configuration for text chunking."""

    target_tokens: int = 300
    overlap_tokens: int = 50
    tokens_per_word: float = 1.3

    @property
    def words_per_chunk(self) -> int:
        return max(1, math.floor(self.target_tokens / self.tokens_per_word))

    @property
    def overlap_words(self) -> int:
        return max(0, math.floor(self.overlap_tokens / self.tokens_per_word))

    @property
    def step(self) -> int:
        return max(1, self.words_per_chunk - self.overlap_words)


class WordWindowChunker:
    """
    Splits text into overlapping word windows.

    Example:
        >>> chunker = WordWindowChunker(ChunkerConfig(target_tokens=13, overlap_tokens=3))
        >>> chunker.split("a b c d e f g h i j k l m n o")
        ['a b c d e f g h i j', 'i j k l m n o']
    """

    def __init__(self, config: Optional[ChunkerConfig] = None):
        if config is None:
            ingestion = get_settings().ingestion
            config = ChunkerConfig(
                target_tokens=ingestion.target_tokens,
                overlap_tokens=ingestion.overlap_tokens,
                tokens_per_word=ingestion.tokens_per_word,
            )
        self.config = config

    def split(self, text: str) -> list[str]:
        """Split text into windows; empty text gives no chunks."""
        words = [w for w in re.split(r"\s+", text) if w]
        size = self.config.words_per_chunk
        step = self.config.step

        chunks = []
        for start in range(0, len(words), step):
            chunks.append(" ".join(words[start:start + size]))

        logger.debug(f"Split {len(words)} words into {len(chunks)} chunks")
        return chunks
