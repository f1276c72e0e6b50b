"""
Utilities Module - Common helper functions.
==========================================

Provides utility functions for:
- Course code and name normalization
- JSONL file reading
- Text truncation and whitespace cleanup
"""

import json
import re
import unicodedata
from pathlib import Path
from typing import Any, Iterator

from su_advisor.shared.logging import get_logger

logger = get_logger(__name__)


# ─────────────────────────────────────────────────────────────────────────────
# Normalization
# ─────────────────────────────────────────────────────────────────────────────


def normalize_code(code: str) -> str:
    """
    Normalize a course code for lookups.

    Example:
        >>> normalize_code(" cs 412 ")
        'CS412'
    """
    return re.sub(r"\s+", "", code).upper()


# Turkish letters that NFKD does not fold to ASCII
_TURKISH_FOLD = str.maketrans({"ı": "i", "İ": "i", "ş": "s", "Ş": "s", "ğ": "g", "Ğ": "g"})


def fold_text(text: str) -> str:
    """
    Lowercase and strip diacritics so that names match regardless of spelling.

    Example:
        >>> fold_text("Hüsnü Yenigün")
        'husnu yenigun'
    """
    text = text.translate(_TURKISH_FOLD)
    decomposed = unicodedata.normalize("NFKD", text)
    stripped = "".join(c for c in decomposed if not unicodedata.combining(c))
    return stripped.casefold()


def name_tokens(text: str, min_length: int = 2) -> list[str]:
    """Split folded text into word tokens of at least ``min_length`` characters."""
    return [t for t in re.findall(r"\w+", fold_text(text)) if len(t) >= min_length]


# ─────────────────────────────────────────────────────────────────────────────
# JSONL File I/O
# ─────────────────────────────────────────────────────────────────────────────


def load_jsonl(file_path: Path) -> Iterator[dict[str, Any]]:
    """
    Load data from a JSONL (JSON Lines) file.

    Yields one record at a time; invalid lines are logged and skipped.
    """
    file_path = Path(file_path)

    with open(file_path, "r", encoding="utf-8") as f:
        for line_num, line in enumerate(f, 1):
            line = line.strip()
            if not line:
                continue
            try:
                yield json.loads(line)
            except json.JSONDecodeError as e:
                logger.warning(f"Invalid JSON at line {line_num} in {file_path}: {e}")
                continue


# ─────────────────────────────────────────────────────────────────────────────
# Text Utilities
# ─────────────────────────────────────────────────────────────────────────────


def truncate_text(text: str, max_length: int = 100, suffix: str = "...") -> str:
    """
    Truncate text to a maximum length, suffix included.

    Example:
        >>> truncate_text("abcdefghij", 8)
        'abcde...'
    """
    if len(text) <= max_length:
        return text
    return text[: max_length - len(suffix)] + suffix


def clean_whitespace(text: str) -> str:
    """Collapse runs of spaces/tabs and excessive blank lines."""
    text = re.sub(r"[ \t]+", " ", text)
    text = re.sub(r"\n{3,}", "\n\n", text)
    return text.strip()
