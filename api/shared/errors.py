"""
Error taxonomy for the upload/ingestion flow.

Every ingestion failure carries its own HTTP status so the exception
handlers in ``main.py`` can answer with ``{"error", "details"}`` without
inspecting the message.
"""

from __future__ import annotations

from typing import Any, Dict, Optional


class IngestionError(Exception):
    """Base class for failures that terminate an ingestion call."""

    status_code = 400
    error = "Ingestion failed"

    def __init__(self, details: str, **context: Any):
        super().__init__(details)
        self.details = details
        self.context: Dict[str, Any] = context

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"error": self.error, "details": self.details}
        if self.context:
            payload["context"] = self.context
        return payload


class UnsupportedFormatError(IngestionError):
    error = "Unsupported file type"


class FileTooLargeError(IngestionError):
    status_code = 413
    error = "File too large"


class RowLimitExceededError(IngestionError):
    status_code = 413
    error = "Row limit exceeded"


class ParseError(IngestionError):
    error = "Invalid file content"


class EmptyDatasetError(IngestionError):
    error = "Empty dataset"


class IngestionCancelledError(IngestionError):
    # nginx convention for "client closed request"
    status_code = 499
    error = "Ingestion cancelled"


class StorageUnavailableError(Exception):
    """Registry or cache write failed after a successful parse."""

    status_code = 503
    error = "Storage unavailable"

    def __init__(self, details: str, cause: Optional[BaseException] = None):
        super().__init__(details)
        self.details = details
        self.cause = cause

    def to_dict(self) -> Dict[str, Any]:
        return {"error": self.error, "details": self.details}
