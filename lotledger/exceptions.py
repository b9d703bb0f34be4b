"""
Custom exceptions for LotLedger.

Provides a hierarchy of exceptions with error codes for consistent error handling.
"""
from typing import Optional, Dict, Any


class LotLedgerError(Exception):
    """
    Base exception for all LotLedger errors.

    Attributes:
        error_code: Unique error code (e.g., LL-001)
        message: Human-readable error message
        details: Additional error context
    """
    error_code: str = "LL-000"
    http_status: int = 500

    def __init__(
        self,
        message: str = "An unexpected error occurred",
        details: Optional[Dict[str, Any]] = None,
        error_code: Optional[str] = None,
    ):
        self.message = message
        self.details = details or {}
        if error_code:
            self.error_code = error_code
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for API response."""
        return {
            "error": True,
            "error_code": self.error_code,
            "message": self.message,
            "details": self.details,
        }


# Input Errors (LL-1XX)
class InputError(LotLedgerError):
    """No document bytes or text were supplied."""
    error_code = "LL-100"
    http_status = 400

    def __init__(self, message: str = "Missing file payload or text", **kwargs):
        super().__init__(message, **kwargs)


class PayloadTooLargeError(InputError):
    """Document exceeds maximum size limit."""
    error_code = "LL-101"
    http_status = 413

    def __init__(self, size: int, max_size: int, **kwargs):
        message = f"File too large. Maximum size: {max_size // (1024*1024)}MB"
        super().__init__(message, details={"size": size, "max_size": max_size}, **kwargs)


# Extraction Errors (LL-2XX)
class ExtractionEmptyError(LotLedgerError):
    """Every extraction strategy yielded zero line items."""
    error_code = "LL-200"
    http_status = 422

    def __init__(self, message: str = "Could not read line items from document", **kwargs):
        super().__init__(message, **kwargs)


class UnreadableDocumentError(ExtractionEmptyError):
    """No text could be extracted from the document at all."""
    error_code = "LL-201"
    http_status = 422

    def __init__(self, filename: Optional[str] = None, **kwargs):
        message = "No text could be extracted from the provided file"
        super().__init__(message, details={"filename": filename}, **kwargs)


# External Service Errors (LL-9XX)
class CollaboratorUnavailableError(LotLedgerError):
    """External extraction, OCR or embedding service call failed."""
    error_code = "LL-900"
    http_status = 502

    def __init__(self, service_name: str, message: str = None, **kwargs):
        msg = message or f"External service '{service_name}' is unavailable"
        details = kwargs.pop("details", {})
        details["service"] = service_name
        super().__init__(msg, details=details, **kwargs)
        self.service_name = service_name


class StructuredPayloadError(CollaboratorUnavailableError):
    """Collaborator returned JSON that failed schema validation."""
    error_code = "LL-901"

    def __init__(self, service_name: str, errors: list = None, **kwargs):
        super().__init__(
            service_name,
            f"External service '{service_name}' returned an invalid payload",
            details={"errors": errors or []},
            **kwargs,
        )
