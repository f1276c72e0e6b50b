"""
Local Context Module - Synthetic passages from structured course data.
=====================================================================

For questions about instructors, course difficulty or advice, builds
passages that do not come from the vector store:
- One passage per referenced course code found in the catalog (max 4)
- One passage for the best-matching instructor and the courses they teach
- An optional web snippet passage (best effort)

Local passages are placed ahead of retrieved ones and capped jointly.
"""

import re
from typing import Optional

from su_advisor.rag.catalog import CourseCatalog, InstructorMatch
from su_advisor.rag.web_snippet import WebSnippetProvider
from su_advisor.shared.config import get_settings
from su_advisor.shared.logging import get_logger
from su_advisor.shared.schemas import CourseContextEntry, Passage
from su_advisor.shared.utils import fold_text, normalize_code, truncate_text

logger = get_logger(__name__)

# Trailing letter only when it ends the word, so "CS412de" still yields CS412
COURSE_CODE_PATTERN = re.compile(
    r"(?<![A-Za-z])([A-Za-z]{2,6}\s?\d{3,5}(?:[A-Za-z](?![A-Za-z]))?)(?!\d)"
)

# Matched against folded (ASCII, lowercase) text
TRIGGER_PATTERN = re.compile(
    r"\b("
    r"hoca\w*|ogretim (uyesi|gorevlisi)|instructor\w*|professor\w*|prof|lecturer\w*"
    r"|zor\w*|kolay\w*|agir|difficult\w*|hard|easy|tough"
    r"|tavsiye\w*|oneri\w*|oner\w*|advice|advise\w*|recommend\w*"
    r")\b"
)

SOURCE_COURSE = "local_course"
SOURCE_INSTRUCTOR = "local_instructor"
SOURCE_WEB = "web"


def is_triggered(question: str) -> bool:
    """Check whether a question asks about instructors, difficulty or advice."""
    return bool(TRIGGER_PATTERN.search(fold_text(question)))


def extract_course_codes(text: str, limit: int = 4) -> list[str]:
    """
    Extract distinct normalized course codes in order of appearance.

    Example:
        >>> extract_course_codes("CS 412 mi CS412 mi yoksa math201 mi?")
        ['CS412', 'MATH201']
    """
    codes: list[str] = []
    for match in COURSE_CODE_PATTERN.finditer(text):
        code = normalize_code(match.group(1))
        if code not in codes:
            codes.append(code)
        if len(codes) >= limit:
            break
    return codes


def _format_credit(value: Optional[float]) -> str:
    if value is None:
        return "?"
    return f"{value:g}"


def merge_context(
    local: list[Passage],
    retrieved: list[Passage],
    limit: int = 6,
) -> list[Passage]:
    """
    Combine local and retrieved passages, local first.

    Retrieved passages whose id is already present are dropped; the result
    is capped at ``limit``.
    """
    merged: list[Passage] = []
    seen: set[str] = set()
    for passage in [*local, *retrieved]:
        if passage.id in seen:
            continue
        seen.add(passage.id)
        merged.append(passage)
        if len(merged) >= limit:
            break
    return merged


class LocalContextResolver:
    """
    Builds synthetic context passages for a question.

    Example:
        >>> resolver = LocalContextResolver(catalog)
        >>> passages = await resolver.resolve("CS412 zor mu?")
        >>> "CS412" in passages[0].text
        True
    """

    def __init__(
        self,
        catalog: CourseCatalog,
        web_snippets: Optional[WebSnippetProvider] = None,
        max_course_codes: Optional[int] = None,
        description_cap: Optional[int] = None,
    ):
        """
        Initialize the resolver.

        Args:
            catalog: Course catalog (loaded lazily on first resolve)
            web_snippets: Optional web snippet provider; no web lookup if None
            max_course_codes: Maximum distinct course codes looked up per question
            description_cap: Maximum characters of course description in a passage
        """
        config = get_settings().local_context

        self.catalog = catalog
        self.web_snippets = web_snippets
        self.max_course_codes = max_course_codes or config.max_course_codes
        self.description_cap = description_cap or config.description_cap

    async def resolve(self, question: str) -> list[Passage]:
        """
        Get synthetic passages for a question.

        Returns:
            Course passages, then an instructor passage, then a web snippet
            passage; empty when the question does not ask for local context
        """
        if not question or not is_triggered(question):
            return []

        await self.catalog.load()

        passages: list[Passage] = []
        for code in extract_course_codes(question, self.max_course_codes):
            entry = self.catalog.get(code)
            if entry is not None:
                passages.append(self.course_passage(entry))

        instructor = self.catalog.instructors.match(question)
        if instructor is not None:
            passages.append(self.instructor_passage(instructor))

        if self.web_snippets is not None:
            snippet = await self.web_snippets.lookup(question)
            if snippet:
                passages.append(
                    Passage(
                        id="local:web",
                        text=f"Web özeti: {snippet}",
                        score=1.0,
                        metadata={"source": SOURCE_WEB},
                    )
                )

        logger.debug(f"Local context: {len(passages)} passages")
        return passages

    def course_passage(self, entry: CourseContextEntry) -> Passage:
        heading = entry.header_text or (f"{entry.code} - {entry.title}" if entry.title else entry.code)
        lines = [
            f"Ders: {heading}",
            f"Kredi: {_format_credit(entry.su_credit)} SU / {_format_credit(entry.ects)} ECTS",
        ]
        if entry.instructors:
            lines.append(f"Son bilinen hocalar: {', '.join(entry.instructors)}")
        if entry.description:
            lines.append(f"Açıklama: {truncate_text(entry.description, self.description_cap)}")

        return Passage(
            id=f"local:course:{entry.code}",
            text="\n".join(lines),
            score=1.0,
            metadata={"source": SOURCE_COURSE, "courseCode": entry.code},
        )

    def instructor_passage(self, match: InstructorMatch) -> Passage:
        return Passage(
            id=f"local:instructor:{fold_text(match.name).replace(' ', '_')}",
            text=f"Hoca: {match.name}\nVerdiği dersler: {', '.join(match.courses)}",
            score=1.0,
            metadata={"source": SOURCE_INSTRUCTOR, "instructor": match.name},
        )
