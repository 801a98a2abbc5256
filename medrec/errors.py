"""Exceptions raised by the records services and mapped to HTTP responses."""

from __future__ import annotations


class RecordsError(Exception):
    """Base class for errors raised by the records services."""


class ValidationError(RecordsError):
    """Request content rejected before any store mutation."""


class InvalidFileType(ValidationError):
    """Uploaded file declared a MIME type outside the allowed set."""

    def __init__(self, content_type: str | None) -> None:
        super().__init__("Invalid file type. Only images are allowed.")
        self.content_type = content_type


class MissingUpload(ValidationError):
    """A required multipart file field was not sent."""

    def __init__(self, field: str) -> None:
        super().__init__("No file uploaded")
        self.field = field


class NotFound(RecordsError):
    """Requested record does not exist."""


class PatientNotFound(NotFound):
    def __init__(self, patient_id: int) -> None:
        super().__init__("Patient not found")
        self.patient_id = patient_id


class StoreError(RecordsError):
    """A database operation failed; the original error is chained."""


__all__ = [
    "InvalidFileType",
    "MissingUpload",
    "NotFound",
    "PatientNotFound",
    "RecordsError",
    "StoreError",
    "ValidationError",
]
