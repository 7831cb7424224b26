"""Custom exception hierarchy for the transcript backend."""
import traceback
from typing import Any, Dict


class TranscriptBackendError(Exception):
    """Base error."""
    def __init__(self, message: str, code: str = "TRANSCRIPT_BACKEND_ERROR"):
        self.message = message
        self.code = code
        super().__init__(message)


class ValidationError(TranscriptBackendError):
    """Missing or malformed request field. Nothing was written."""
    def __init__(self, message: str = "Validation failed"):
        super().__init__(message, code="VALIDATION_ERROR")


class AuthError(TranscriptBackendError):
    """Missing or unverifiable credentials."""
    def __init__(self, message: str = "Authentication failed"):
        super().__init__(message, code="AUTH_ERROR")


class AuthorizationError(TranscriptBackendError):
    """Caller does not own the record, or the record is absent.

    Surfaced as not-found so existence is never leaked.
    """
    def __init__(self, message: str = "Not found"):
        super().__init__(message, code="NOT_FOUND")


class StoreError(TranscriptBackendError):
    """Document store failure."""
    def __init__(self, message: str = "Document store failure", code: str = "STORE_ERROR"):
        super().__init__(message, code=code)


class DocumentNotFoundError(StoreError):
    """An update targeted a document that does not exist."""
    def __init__(self, path: str):
        self.path = path
        super().__init__(f"No document to update: {path}", code="STORE_NOT_FOUND")


class DocumentExistsError(StoreError):
    """A create targeted a document that already exists."""
    def __init__(self, path: str):
        self.path = path
        super().__init__(f"Document already exists: {path}", code="STORE_ALREADY_EXISTS")


class UpstreamServiceError(TranscriptBackendError):
    """External speech-recognition service failure."""
    def __init__(self, message: str = "Speech service failure", code: str = "UPSTREAM_ERROR"):
        super().__init__(message, code=code)


class ExportFormatError(TranscriptBackendError):
    """Requested export format is not supported."""
    def __init__(self, message: str = "Unsupported export format"):
        super().__init__(message, code="EXPORT_FORMAT_ERROR")


_SCALARS = (str, int, float, bool)


def serialize_error(error: BaseException) -> Dict[str, Any]:
    """Plain-field representation of an exception, safe to persist or return.

    Keys whose value is None are dropped; the document store cannot hold them
    in a merge without clearing the stored field.
    """
    serialized: Dict[str, Any] = {
        "name": type(error).__name__,
        "message": getattr(error, "message", None) or str(error),
        "code": getattr(error, "code", None),
        "stack": "".join(
            traceback.format_exception(type(error), error, error.__traceback__)
        ).strip() or None,
    }
    for key, value in vars(error).items():
        if key.startswith("_") or key in serialized:
            continue
        if isinstance(value, _SCALARS):
            serialized[key] = value
    if error.__cause__ is not None:
        serialized["cause"] = serialize_error(error.__cause__)
    return {k: v for k, v in serialized.items() if v is not None}
