"""
Exception types for bridge-recall.

Only validation problems are surfaced to callers as exceptions. Collaborator
failures during search are caught by the pipeline and reported through
diagnostics instead.
"""

from typing import List, Optional


class RecallError(Exception):
    """Base class for all bridge-recall errors."""


class QualityFilterError(RecallError, ValueError):
    """
    A quality filter expression could not be parsed or failed validation.

    Attributes:
        code: Machine-readable error code (e.g. "UNKNOWN_QUALITY")
        errors: Every validation message collected for the expression
    """

    def __init__(self, message: str, code: str, errors: Optional[List[str]] = None):
        super().__init__(message)
        self.code = code
        self.errors = errors or [message]


class TemporalFilterError(RecallError, ValueError):
    """A temporal filter value could not be parsed into a timestamp."""


class CollaboratorError(RecallError):
    """An embedding provider or vector store call failed."""

    def __init__(self, context: str, cause: Exception):
        super().__init__(f"{context} failed: {cause}")
        self.context = context
        self.cause = cause
