"""Error taxonomy for document rendering."""

from typing import Any, Optional


class DocumentError(Exception):
    """Base class for errors reported back to the caller."""

    status_code = 500
    retryable = False

    def __init__(self, message: str, details: Optional[dict] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> dict:
        body: dict[str, Any] = {"status": "error", "message": self.message}
        if self.details:
            body["details"] = self.details
        return body


class ValidationFailure(DocumentError):
    """Malformed input: watermark, placeholders or disallowed markup."""

    status_code = 400


class RenderingFailure(DocumentError):
    """A backend could not produce bytes for the requested format."""

    status_code = 500

    def __init__(self, message: str, document_type: str, cause: Optional[BaseException] = None):
        details = {"documentType": document_type}
        if cause is not None:
            details["error"] = str(cause) or type(cause).__name__
        super().__init__(message, details)
        self.document_type = document_type
        self.cause = cause


class ResourceExhaustion(DocumentError):
    """No browser instance became available in time. Safe to retry."""

    status_code = 503
    retryable = True
