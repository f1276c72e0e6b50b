"""
Errors Module - Exception hierarchy for the RAG pipeline.
=========================================================

- ProviderUnavailableError: an embedding, vector or generation backend is
  unreachable or answered with a non-success status
- MalformedUpstreamChunkError: a single streamed line could not be parsed
  (always recovered inside the provider by skipping the line)
- ConfigurationMissingError: a required credential or template is absent

Invalid user input is not an error here: empty questions, unknown context
types and non-positive semesters fall back to defaults.
"""

from typing import Optional


class SUAdvisorError(Exception):
    """Base class for all pipeline errors."""


class ProviderUnavailableError(SUAdvisorError):
    """A backend could not be reached or returned a failure status."""

    def __init__(self, provider: str, message: str, status_code: Optional[int] = None):
        self.provider = provider
        self.status_code = status_code
        detail = f"{provider}: {message}"
        if status_code is not None:
            detail = f"{provider} [{status_code}]: {message}"
        super().__init__(detail)


class MalformedUpstreamChunkError(SUAdvisorError):
    """One line of an upstream stream failed to parse."""

    def __init__(self, line: str, reason: str):
        self.line = line
        super().__init__(f"Malformed stream line ({reason}): {line[:80]!r}")


class ConfigurationMissingError(SUAdvisorError):
    """A required setting, credential or template is missing."""
