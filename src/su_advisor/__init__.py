"""
SU Advisor - RAG Question Answering for University Courses
==========================================================

A Retrieval-Augmented Generation pipeline that answers free-text questions
about courses, instructors and graduation requirements:

- Query expansion into several search variants
- Embedding through a durable cache in front of a remote provider
- Hybrid multi-query vector search with a lexical rerank
- Local structured context from the course catalog
- Template-based prompts and rate-limited, streamed generation

Entry points: the ``su-advisor`` CLI and the FastAPI app in ``su_advisor.api``.
"""

__version__ = "0.1.0"
__author__ = "SU Advisor Team"
__license__ = "MIT"

# Public API - lazy imports to avoid circular dependencies and speed up startup
__all__ = [
    # Version info
    "__version__",
    "__author__",
    "__license__",
    # Main modules (imported on demand)
    "shared",
    "indexing",
    "ingestion",
    "rag",
    "service",
    "api",
    "cli",
]
