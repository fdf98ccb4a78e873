"""
Exception hierarchy for vidrecall retrieval

Validation errors are raised before any storage access. Retrieval errors
wrap storage or embedding failures and name the failing source.
"""

from __future__ import annotations

from typing import Any


class VidRecallError(Exception):
    """Base exception for all vidrecall errors"""

    def __init__(
        self,
        message: str,
        error_code: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.error_code = error_code or self.__class__.__name__.upper()
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        """Convert exception to a dict for logging/serialization"""
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "error_code": self.error_code,
            "details": self.details,
        }

    def __str__(self) -> str:
        if self.details:
            return f"[{self.error_code}] {self.message} (details: {self.details})"
        return f"[{self.error_code}] {self.message}"


class QueryValidationError(VidRecallError, ValueError):
    """Query text or retrieval options are invalid"""

    def __init__(self, message: str, field: str | None = None, value: Any = None):
        details = {}
        if field is not None:
            details["field"] = field
        if value is not None:
            details["value"] = repr(value)[:100]
        super().__init__(message, error_code="INVALID_QUERY", details=details)
        self.field = field


class EmbeddingShapeError(QueryValidationError, TypeError):
    """Query embedding has the wrong type, dimension, or contents"""

    def __init__(self, message: str, expected_dim: int, actual: Any = None):
        super().__init__(message, field="query_embedding")
        self.error_code = "INVALID_EMBEDDING"
        self.details["expected_dim"] = expected_dim
        if actual is not None:
            self.details["actual"] = actual


class RetrievalError(VidRecallError, RuntimeError):
    """A retriever or the embedding collaborator failed during a request"""

    def __init__(self, message: str, source: str, details: dict[str, Any] | None = None):
        merged = {"source": source}
        if details:
            merged.update(details)
        super().__init__(message, error_code="RETRIEVAL_FAILED", details=merged)
        self.source = source
