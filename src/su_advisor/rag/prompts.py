"""
Prompts Module - Template-based prompt construction.
====================================================

Builds the system prompt for a question from:
- A named template per context type (``prompts/<context_type>.txt``)
- Retrieved and local passages, numbered as ``[1] text``
- Student parameters (major, completed courses, semester)
- Caller-provided extra placeholders
- A shared few-shot block (``prompts/few_shots/*.txt``) prepended to every prompt

Unknown context types fall back to a minimal "context + question" prompt.
Templates and few-shots are read once, at construction; ``build`` is pure.
"""

import re
from pathlib import Path
from typing import Optional

from su_advisor.shared.config import get_settings
from su_advisor.shared.errors import ConfigurationMissingError
from su_advisor.shared.logging import get_logger
from su_advisor.shared.schemas import ContextType, Passage

logger = get_logger(__name__)

TEMPLATE_FILES: dict[str, str] = {
    ContextType.COURSE_QA.value: "course_qa.txt",
    ContextType.GRADUATION_CHECK.value: "graduation_check.txt",
    ContextType.INSTRUCTOR_REVIEW.value: "instructor_review.txt",
    ContextType.PATH_ADVISOR.value: "path_advisor.txt",
}

FEW_SHOTS_DIR = "few_shots"
FEW_SHOT_EXCLUDE = "instructor"
FEW_SHOT_SEPARATOR = "\n\n---\n\n"

NONE_MARKER = "Yok"
UNKNOWN_MARKER = "Bilinmiyor"

_QUESTION_PATTERN = re.compile(r"SORU:\s*([\s\S]*?)\n(?:DÜŞÜN:|DUSUN:|YANIT:)", re.IGNORECASE)
_ANSWER_PATTERN = re.compile(r"YANIT:\s*([\s\S]*)$", re.IGNORECASE)
_PLACEHOLDER_PATTERN = re.compile(r"\{(\w+)\}")


# ─────────────────────────────────────────────────────────────────────────────
# Few-shot Examples
# ─────────────────────────────────────────────────────────────────────────────


def format_few_shot(raw: str) -> str:
    """
    Render one few-shot file as an example block.

    Files follow the ``SORU: ... DÜŞÜN: ... YANIT: ...`` layout; the reasoning
    part is dropped. A file without a question becomes an answer-only example.
    """
    question_match = _QUESTION_PATTERN.search(raw)
    answer_match = _ANSWER_PATTERN.search(raw)

    question = question_match.group(1).strip() if question_match else ""
    answer = answer_match.group(1).strip() if answer_match else raw.strip()

    if not question:
        return f"YANIT ORNEGI:\n{answer}"
    return f"SORU ORNEGI: {question}\nYANIT ORNEGI:\n{answer}"


def load_few_shots(few_shots_dir: Path) -> str:
    """Load and join every few-shot file except instructor-review examples."""
    if not few_shots_dir.is_dir():
        return ""

    files = sorted(
        f for f in few_shots_dir.glob("*.txt")
        if FEW_SHOT_EXCLUDE not in f.name.lower()
    )
    blocks = [format_few_shot(f.read_text(encoding="utf-8")) for f in files]
    return FEW_SHOT_SEPARATOR.join(b for b in blocks if b)


def format_context(passages: list[Passage]) -> str:
    """Number passages as ``[i] text`` separated by blank lines."""
    return "\n\n".join(f"[{i}] {p.text}" for i, p in enumerate(passages, 1))


# ─────────────────────────────────────────────────────────────────────────────
# Prompt Builder
# ─────────────────────────────────────────────────────────────────────────────


class PromptBuilder:
    """
    Builds prompts from named templates.

    Example:
        >>> builder = PromptBuilder()
        >>> prompt = builder.build(
        ...     context_type="course_qa",
        ...     question="CS412 zor mu?",
        ...     passages=passages,
        ... )
    """

    def __init__(self, prompts_dir: Optional[Path] = None):
        """
        Load templates and few-shot examples.

        Args:
            prompts_dir: Template directory (configured or packaged templates if None)

        Raises:
            ConfigurationMissingError: If the template directory does not exist
        """
        self.prompts_dir = Path(prompts_dir) if prompts_dir else get_settings().get_prompts_dir()
        if not self.prompts_dir.is_dir():
            raise ConfigurationMissingError(f"Prompt template directory not found: {self.prompts_dir}")

        self.templates: dict[str, str] = {}
        for context_type, filename in TEMPLATE_FILES.items():
            path = self.prompts_dir / filename
            if path.exists():
                self.templates[context_type] = path.read_text(encoding="utf-8")
            else:
                logger.warning(f"Prompt template missing for {context_type}: {path}")

        self.few_shots = load_few_shots(self.prompts_dir / FEW_SHOTS_DIR)

        logger.debug(
            f"Prompt builder loaded {len(self.templates)} templates from {self.prompts_dir}"
        )

    def has_template(self, context_type: str) -> bool:
        return context_type in self.templates

    def build(
        self,
        context_type: str,
        question: str,
        passages: list[Passage],
        major: str = "",
        completed_courses: Optional[list[str]] = None,
        current_semester: int = 0,
        extra_context: Optional[dict[str, str]] = None,
    ) -> str:
        """
        Build the prompt for a question.

        Args:
            context_type: Template name; unknown types use the minimal template
            question: User question
            passages: Context passages, in prompt order
            major: Student major
            completed_courses: Completed course codes
            current_semester: Current semester; values <= 0 render as unknown
            extra_context: Additional ``{key}`` placeholder values

        Returns:
            Prompt text with the few-shot block prepended
        """
        template = self.templates.get(context_type)
        if template is None:
            prompt = self._fallback(question, passages)
        else:
            prompt = self._fill(
                template,
                question=question,
                passages=passages,
                major=major,
                completed_courses=completed_courses or [],
                current_semester=current_semester,
                extra_context=extra_context or {},
            )

        if self.few_shots:
            prompt = f"ÖRNEK YANITLAR:\n{self.few_shots}{FEW_SHOT_SEPARATOR}{prompt}"

        return prompt

    def _fill(
        self,
        template: str,
        question: str,
        passages: list[Passage],
        major: str,
        completed_courses: list[str],
        current_semester: int,
        extra_context: dict[str, str],
    ) -> str:
        context_text = format_context(passages)
        completed_text = ", ".join(completed_courses) or NONE_MARKER
        semester_text = str(current_semester) if current_semester and current_semester > 0 else UNKNOWN_MARKER

        # Built-in placeholders take precedence over extra_context keys
        values = {
            **extra_context,
            "context": context_text,
            "review_chunks": context_text,
            "question": question,
            "major": major,
            "completed_courses": completed_text,
            "completed": completed_text,
            "current_semester": semester_text,
            "semester": semester_text,
        }

        # Single pass, so placeholder-like text inside values stays literal
        return _PLACEHOLDER_PATTERN.sub(
            lambda m: values.get(m.group(1), m.group(0)), template
        )

    def _fallback(self, question: str, passages: list[Passage]) -> str:
        context_text = "\n\n".join(p.text for p in passages)
        return f"Bağlam:\n{context_text}\n\nSoru: {question}\n\nYanıtla:"
