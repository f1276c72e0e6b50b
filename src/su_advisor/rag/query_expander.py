"""
Query Expander Module - Cheap recall-widening query variants.
============================================================

Derives up to three search variants from a question:
1. The trimmed question itself
2. The question followed by the first synonym of the first domain term found
3. A declarative form (trailing question mark and leading interrogative removed)

The expansion is deterministic for a given question and synonym table.
"""

import re
from typing import Optional

from su_advisor.shared.config import get_settings
from su_advisor.shared.logging import get_logger

logger = get_logger(__name__)

MAX_EXPANSIONS = 3

# Scanned in order; the first key found in the lowercased question wins
DEFAULT_SYNONYMS: dict[str, list[str]] = {
    "ders": ["kurs", "course", "lecture"],
    "hoca": ["öğretim üyesi", "instructor", "professor"],
    "not": ["grade", "puan", "skor"],
    "geçmek": ["başarmak", "pass etmek"],
    "önkoşul": ["prerequisite", "gereksinim"],
    "mezuniyet": ["graduation", "bitirme"],
    "dönem": ["semester", "yarıyıl"],
    "plan": ["planlama", "schedule"],
    "course": ["class", "lecture"],
    "instructor": ["professor", "lecturer"],
    "grade": ["score", "mark"],
    "prerequisite": ["requirement", "prereq"],
    "graduation": ["degree requirements", "graduate"],
    "semester": ["term"],
}

DEFAULT_INTERROGATIVES: list[str] = [
    "ne", "nasıl", "hangi", "kim", "neden",
    "what", "how", "which", "who", "why",
]


class QueryExpander:
    """
    Expands a question into 1-3 unique retrieval variants.

    Example:
        >>> expander = QueryExpander()
        >>> expander.expand("Hangi ders zor?")
        ['Hangi ders zor?', 'Hangi ders zor? kurs', 'ders zor']
    """

    def __init__(
        self,
        synonyms: Optional[dict[str, list[str]]] = None,
        interrogatives: Optional[list[str]] = None,
    ):
        settings = get_settings()
        expansion_config = settings.query_expansion

        self.synonyms = synonyms or expansion_config.synonyms or DEFAULT_SYNONYMS
        self.interrogatives = (
            interrogatives or expansion_config.interrogatives or DEFAULT_INTERROGATIVES
        )

        words = "|".join(re.escape(w) for w in self.interrogatives)
        self._interrogative_pattern = re.compile(rf"^({words})\s+", re.IGNORECASE)

    def synonym_variant(self, question: str) -> Optional[str]:
        """Append the first synonym of the first matching table key."""
        lowered = question.lower()
        for term, alternatives in self.synonyms.items():
            if alternatives and term.lower() in lowered:
                return f"{question} {alternatives[0]}"
        return None

    def declarative_form(self, question: str) -> str:
        """Strip a trailing question mark and a leading interrogative word."""
        text = re.sub(r"\?$", "", question)
        text = self._interrogative_pattern.sub("", text)
        return text.strip()

    def expand(self, question: str) -> list[str]:
        """
        Expand a question into search variants.

        Args:
            question: Raw user question

        Returns:
            Unique variants in order: original, synonym-expanded, declarative.
            Empty list for an empty question.
        """
        original = (question or "").strip()
        if not original:
            return []

        candidates = [original, self.synonym_variant(original), self.declarative_form(original)]

        expansions: list[str] = []
        for candidate in candidates:
            if candidate and candidate not in expansions:
                expansions.append(candidate)

        logger.debug(f"Expanded queries: {' | '.join(expansions)}")
        return expansions[:MAX_EXPANSIONS]
