"""
Schemas Module - Pydantic data models for the application.
==========================================================

Defines all data contracts used across the application:
- Retrieval models (Passage)
- Local catalog models (CourseContextEntry)
- Embedding cache entries
- Ask request/stream models
- Ingestion results
"""

import json
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


# ─────────────────────────────────────────────────────────────────────────────
# Enums
# ─────────────────────────────────────────────────────────────────────────────


class ContextType(str, Enum):
    """Question context types; each selects a prompt template."""

    COURSE_QA = "course_qa"
    GRADUATION_CHECK = "graduation_check"
    INSTRUCTOR_REVIEW = "instructor_review"
    PATH_ADVISOR = "path_advisor"


DEFAULT_CONTEXT_TYPE = ContextType.COURSE_QA.value


class DocumentType(str, Enum):
    """Document types accepted by ingestion."""

    EXAM_PDF = "exam_pdf"
    REVIEW = "review"


# ─────────────────────────────────────────────────────────────────────────────
# Retrieval Models
# ─────────────────────────────────────────────────────────────────────────────


def _stringify_metadata(value: Any) -> dict[str, str]:
    if not value:
        return {}
    return {str(k): str(v) for k, v in dict(value).items() if v is not None}


class Passage(BaseModel):
    """
    A scored unit of text with metadata.

    Returned from vector store queries, and also synthesized from the
    local course catalog. Higher score is better.
    """

    model_config = ConfigDict(frozen=True)

    id: str = Field(..., description="Passage identifier")
    text: str = Field(..., description="Passage text content")
    score: float = Field(default=0.0, description="Similarity score, roughly [-1, 1]")
    metadata: dict[str, str] = Field(default_factory=dict, description="Passage metadata")

    @field_validator("metadata", mode="before")
    @classmethod
    def coerce_metadata(cls, v: Any) -> dict[str, str]:
        return _stringify_metadata(v)

    def with_score(self, score: float) -> "Passage":
        """Return a copy carrying a new score."""
        return self.model_copy(update={"score": score})

    @property
    def course_code(self) -> str:
        """Get course code from metadata."""
        return self.metadata.get("courseCode", "")

    @property
    def source(self) -> str:
        """Get the passage origin (vector store or local context)."""
        return self.metadata.get("source", "vector")


class EmbeddingCacheEntry(BaseModel):
    """A cached embedding keyed by the embedding model and its exact text."""

    text_key: str
    vector: list[float]
    model: str = ""
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


# ─────────────────────────────────────────────────────────────────────────────
# Catalog Models
# ─────────────────────────────────────────────────────────────────────────────


class CourseContextEntry(BaseModel):
    """
    Structured course record built from the catalog feed.

    ``code`` is normalized (upper case, no whitespace), e.g. ``CS412``.
    """

    model_config = ConfigDict(frozen=True)

    code: str
    title: str = ""
    header_text: str = ""
    description: str = ""
    su_credit: Optional[float] = None
    ects: Optional[float] = None
    instructors: list[str] = Field(default_factory=list)


# ─────────────────────────────────────────────────────────────────────────────
# Ask Models
# ─────────────────────────────────────────────────────────────────────────────


class AskRequest(BaseModel):
    """One user turn sent to the pipeline."""

    question: str
    student_id: str = ""
    major: str = ""
    completed_courses: list[str] = Field(default_factory=list)
    current_semester: int = 0
    context_type: str = DEFAULT_CONTEXT_TYPE
    extra_context: dict[str, str] = Field(default_factory=dict)

    @field_validator("question", mode="before")
    @classmethod
    def strip_question(cls, v: Any) -> str:
        return str(v or "").strip()

    @field_validator("context_type", mode="before")
    @classmethod
    def default_context_type(cls, v: Any) -> str:
        if isinstance(v, ContextType):
            return v.value
        return str(v).strip() if v else DEFAULT_CONTEXT_TYPE

    @field_validator("extra_context", mode="before")
    @classmethod
    def coerce_extra_context(cls, v: Any) -> dict[str, str]:
        return _stringify_metadata(v)


class TokenUsage(BaseModel):
    """Token accounting reported by a generation provider."""

    prompt_tokens: int = 0
    completion_tokens: int = 0


class AskChunk(BaseModel):
    """
    One streamed unit of an answer.

    ``done=True`` marks the terminal chunk, which also carries the full
    answer, the source passage ids and token accounting.
    """

    chunk: str = ""
    done: bool = False
    answer: str = ""
    source_chunks: list[str] = Field(default_factory=list)
    model: str = ""
    prompt_tokens: int = 0
    completion_tokens: int = 0
    context_type: str = DEFAULT_CONTEXT_TYPE

    def to_sse(self) -> str:
        """Render the chunk as one Server-Sent Events data line."""
        return f"data: {json.dumps(self.model_dump(), ensure_ascii=False)}\n\n"


# ─────────────────────────────────────────────────────────────────────────────
# Ingestion Models
# ─────────────────────────────────────────────────────────────────────────────


class IngestDocument(BaseModel):
    """A single text unit to be embedded and stored."""

    id: str
    text: str
    metadata: dict[str, str] = Field(default_factory=dict)

    @field_validator("metadata", mode="before")
    @classmethod
    def coerce_metadata(cls, v: Any) -> dict[str, str]:
        return _stringify_metadata(v)


class IngestResult(BaseModel):
    """Outcome of an ingestion batch."""

    batch_id: str
    chunks_stored: int = 0
    success: bool = True
    error: Optional[str] = None
