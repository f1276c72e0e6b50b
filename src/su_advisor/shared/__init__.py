"""
Shared Module - Common utilities, configuration, schemas, and logging.
======================================================================

This module provides foundational components used across all other modules:

- config: Configuration loading and management
- logging: Structured logging setup
- errors: Exception hierarchy
- schemas: Pydantic data models
- utils: Utility functions (normalization, JSONL, truncation)
"""

from su_advisor.shared.config import get_settings, Settings
from su_advisor.shared.logging import get_logger, setup_logging
from su_advisor.shared.errors import (
    SUAdvisorError,
    ProviderUnavailableError,
    MalformedUpstreamChunkError,
    ConfigurationMissingError,
)
from su_advisor.shared.schemas import (
    Passage,
    CourseContextEntry,
    AskRequest,
    AskChunk,
    ContextType,
    IngestResult,
    TokenUsage,
)
from su_advisor.shared.utils import (
    normalize_code,
    fold_text,
    load_jsonl,
    truncate_text,
)

__all__ = [
    # Config
    "get_settings",
    "Settings",
    # Logging
    "get_logger",
    "setup_logging",
    # Errors
    "SUAdvisorError",
    "ProviderUnavailableError",
    "MalformedUpstreamChunkError",
    "ConfigurationMissingError",
    # Schemas
    "Passage",
    "CourseContextEntry",
    "AskRequest",
    "AskChunk",
    "ContextType",
    "IngestResult",
    "TokenUsage",
    # Utils
    "normalize_code",
    "fold_text",
    "load_jsonl",
    "truncate_text",
]
