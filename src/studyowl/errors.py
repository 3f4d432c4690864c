"""Exception hierarchy shared by the ingestion and chat services."""
from __future__ import annotations


class StudyOwlError(RuntimeError):
    """Base class for errors raised by the service layer."""


class InputValidationError(StudyOwlError):
    """Raised when a request is missing required identifiers or content."""


class DocumentNotFoundError(StudyOwlError):
    """Raised when a document has no stored fragments."""

    def __init__(self, document_id: str) -> None:
        super().__init__(f"No fragments found for document {document_id!r}")
        self.document_id = document_id


class UpstreamServiceError(StudyOwlError):
    """Raised when an external collaborator (analysis, storage) fails."""

    def __init__(self, message: str, *, cause: Exception | None = None) -> None:
        super().__init__(message)
        self.__cause__ = cause


class LayoutAnalysisError(UpstreamServiceError):
    """Raised when the layout analyzer cannot process a document."""


class ProgressTransitionError(StudyOwlError):
    """Raised when a progress update would move an ingestion backwards."""


__all__ = [
    "DocumentNotFoundError",
    "InputValidationError",
    "LayoutAnalysisError",
    "ProgressTransitionError",
    "StudyOwlError",
    "UpstreamServiceError",
]
