"""
Catalog Module - In-memory course and instructor index.
=======================================================

Builds read-only lookup structures from the line-delimited JSON course
catalog feed:
- CourseContextEntry per normalized course code
- InstructorIndex: name token → course codes, full name → course codes

The catalog is loaded once, lazily, the first time a request needs it.
Two record layouts are accepted: course pages (``course_id``, ``title``,
``su_credits``, ...) and legacy rows (``Major``, ``Code``, ``Course_Name``, ...).
Records appearing later in the feed win, so the last term seen provides
the "last-known" instructors.
"""

import asyncio
import re
from collections import defaultdict
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Optional

from su_advisor.shared.config import get_settings
from su_advisor.shared.logging import get_logger
from su_advisor.shared.schemas import CourseContextEntry
from su_advisor.shared.utils import fold_text, load_jsonl, name_tokens, normalize_code

logger = get_logger(__name__)

MIN_INSTRUCTOR_TOKEN_MATCHES = 2


# ─────────────────────────────────────────────────────────────────────────────
# Record Parsing
# ─────────────────────────────────────────────────────────────────────────────


def _to_float(value: Any) -> Optional[float]:
    if value is None or value == "":
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def _split_names(raw: Any) -> list[str]:
    if not raw:
        return []
    if isinstance(raw, str):
        parts = re.split(r"[,;]+", raw)
    else:
        parts = [str(p) for p in raw]
    return [p.strip() for p in parts if p and p.strip()]


def _meeting_instructors(meetings: Any) -> list[str]:
    names: list[str] = []
    for meeting in meetings or []:
        if not isinstance(meeting, dict):
            continue
        for name in _split_names(meeting.get("instructors") or meeting.get("instructor")):
            if name not in names:
                names.append(name)
    return names


def parse_catalog_record(row: dict[str, Any]) -> Optional[CourseContextEntry]:
    """
    Convert one catalog feed record to a CourseContextEntry.

    Returns:
        Entry, or None if the record has no usable course code
    """
    code = row.get("course_id") or row.get("code") or ""
    if not code:
        subject = row.get("subj_code") or row.get("Major") or ""
        number = row.get("crse_numb") or row.get("Code") or ""
        code = f"{subject}{number}" if subject and number else ""

    code = normalize_code(str(code))
    if not code:
        return None

    instructors = _split_names(
        row.get("instructors") or row.get("Instructors") or row.get("Instructor")
    ) or _meeting_instructors(row.get("meetings"))

    return CourseContextEntry(
        code=code,
        title=str(row.get("title") or row.get("Course_Name") or row.get("Name") or "").strip(),
        header_text=str(row.get("header_text") or "").strip(),
        description=str(row.get("description") or row.get("Description") or "").strip(),
        su_credit=_to_float(row.get("su_credits", row.get("SU_credit", row.get("SU_Credit")))),
        ects=_to_float(row.get("ects", row.get("ECTS"))),
        instructors=instructors,
    )


# ─────────────────────────────────────────────────────────────────────────────
# Instructor Index
# ─────────────────────────────────────────────────────────────────────────────


@dataclass
class InstructorMatch:
    """Best instructor found in a piece of text."""

    name: str
    courses: list[str]
    matched_tokens: int


class InstructorIndex:
    """
    Maps instructor name tokens and full names to the courses they teach.

    Names are folded (case and diacritics removed) before indexing, so
    "Hüsnü Yenigün" and "husnu yenigun" are the same instructor.
    """

    def __init__(self) -> None:
        self.token_courses: dict[str, set[str]] = defaultdict(set)
        self.name_courses: dict[str, set[str]] = defaultdict(set)
        self._display_names: dict[str, str] = {}
        self._name_tokens: dict[str, set[str]] = {}
        self._token_names: dict[str, set[str]] = defaultdict(set)

    def add(self, name: str, course_code: str) -> None:
        tokens = name_tokens(name)
        if not tokens:
            return

        key = " ".join(tokens)
        self._display_names.setdefault(key, name.strip())
        self._name_tokens[key] = set(tokens)
        self.name_courses[key].add(course_code)

        for token in tokens:
            self.token_courses[token].add(course_code)
            self._token_names[token].add(key)

    def __len__(self) -> int:
        return len(self.name_courses)

    def courses_for_token(self, token: str) -> set[str]:
        return set(self.token_courses.get(fold_text(token), set()))

    def courses_for_name(self, name: str) -> set[str]:
        return set(self.name_courses.get(" ".join(name_tokens(name)), set()))

    def match(self, text: str) -> Optional[InstructorMatch]:
        """
        Find the instructor best referenced by the text.

        A candidate needs at least two of its name tokens present in the text.
        Among candidates, the one with the most courses wins; ties go to more
        matched tokens, then to the alphabetically first name.
        """
        text_tokens = set(name_tokens(text))

        candidates: set[str] = set()
        for token in text_tokens:
            candidates.update(self._token_names.get(token, set()))

        matches = {
            key: len(self._name_tokens[key] & text_tokens) for key in candidates
        }
        eligible = [k for k, n in matches.items() if n >= MIN_INSTRUCTOR_TOKEN_MATCHES]
        if not eligible:
            return None

        key = min(eligible, key=lambda k: (-len(self.name_courses[k]), -matches[k], k))
        return InstructorMatch(
            name=self._display_names[key],
            courses=sorted(self.name_courses[key]),
            matched_tokens=matches[key],
        )


# ─────────────────────────────────────────────────────────────────────────────
# Course Catalog
# ─────────────────────────────────────────────────────────────────────────────


class CourseCatalog:
    """
    Lazily loaded, read-only course catalog.

    Example:
        >>> catalog = CourseCatalog(Path("data/catalog/courses.jsonl"))
        >>> await catalog.load()
        >>> catalog.get("cs 412").title
        'Machine Learning'
    """

    def __init__(self, catalog_file: Optional[Path] = None):
        if catalog_file is None:
            settings = get_settings()
            catalog_file = settings.resolve_path(settings.local_context.catalog_file)

        self.catalog_file = Path(catalog_file)
        self._courses: dict[str, CourseContextEntry] = {}
        self._instructors = InstructorIndex()
        self._loaded = False
        self._lock = asyncio.Lock()

    @classmethod
    def from_entries(cls, entries: list[CourseContextEntry]) -> "CourseCatalog":
        """Build an already-loaded catalog from entries."""
        catalog = cls(catalog_file=Path("<memory>"))
        catalog._index(entries)
        return catalog

    @property
    def is_loaded(self) -> bool:
        return self._loaded

    @property
    def instructors(self) -> InstructorIndex:
        return self._instructors

    def __len__(self) -> int:
        return len(self._courses)

    def get(self, code: str) -> Optional[CourseContextEntry]:
        return self._courses.get(normalize_code(code))

    async def load(self) -> None:
        """Load the catalog file once; later calls return immediately."""
        if self._loaded:
            return

        async with self._lock:
            if self._loaded:
                return
            entries = await asyncio.to_thread(self._read_entries)
            self._index(entries)
            logger.info(
                f"Course catalog loaded: {len(self._courses)} courses, "
                f"{len(self._instructors)} instructors"
            )

    def _read_entries(self) -> list[CourseContextEntry]:
        if not self.catalog_file.exists():
            logger.warning(f"Course catalog not found: {self.catalog_file}")
            return []

        entries = []
        for row in load_jsonl(self.catalog_file):
            entry = parse_catalog_record(row)
            if entry is not None:
                entries.append(entry)
        return entries

    def _index(self, entries: list[CourseContextEntry]) -> None:
        courses: dict[str, CourseContextEntry] = {}
        for entry in entries:
            previous = courses.get(entry.code)
            if previous is not None and not entry.instructors and previous.instructors:
                entry = entry.model_copy(update={"instructors": previous.instructors})
            courses[entry.code] = entry

        instructors = InstructorIndex()
        for entry in courses.values():
            for name in entry.instructors:
                instructors.add(name, entry.code)

        self._courses = courses
        self._instructors = instructors
        self._loaded = True
