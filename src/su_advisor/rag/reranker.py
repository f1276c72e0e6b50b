"""
Reranker Module - Secondary scoring pass over retrieved passages.
================================================================

Rerankers reorder and trim candidates after the vector search. The default
is a lexical-overlap boost layered on top of the semantic score; a model
based reranker can be substituted without touching retrieval or prompting.
"""

from abc import ABC, abstractmethod

from su_advisor.shared.schemas import Passage


class Reranker(ABC):
    """Reorders passages for a question and keeps the best ``top_n``."""

    @abstractmethod
    def rerank(self, question: str, passages: list[Passage], top_n: int) -> list[Passage]:
        """Return at most ``top_n`` passages sorted by score, highest first."""


class LexicalOverlapReranker(Reranker):
    """
    Adds a fixed boost per question token found in the passage text.

    Tokens are the whitespace-split, lowercased question words; a token hits
    when it occurs as a substring of the lowercased passage text. Ties keep
    their incoming order.

    Example:
        >>> reranker = LexicalOverlapReranker(boost=0.05)
        >>> top = reranker.rerank("cs412 zor mu", passages, top_n=4)
    """

    def __init__(self, boost: float = 0.05):
        self.boost = boost

    def score(self, question_terms: list[str], passage: Passage) -> float:
        text = passage.text.lower()
        hits = sum(1 for term in question_terms if term in text)
        return passage.score + self.boost * hits

    def rerank(self, question: str, passages: list[Passage], top_n: int) -> list[Passage]:
        if top_n <= 0:
            return []

        terms = question.lower().split()
        boosted = [p.with_score(self.score(terms, p)) for p in passages]

        # sorted() is stable, so equal scores keep their retrieval order
        boosted = sorted(boosted, key=lambda p: p.score, reverse=True)
        return boosted[:top_n]
