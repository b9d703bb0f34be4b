"""
Unit tests for custom exceptions.

Tests exception hierarchy and error formatting.
"""
import pytest

from lotledger.exceptions import (
    CollaboratorUnavailableError,
    ExtractionEmptyError,
    InputError,
    LotLedgerError,
    PayloadTooLargeError,
    StructuredPayloadError,
    UnreadableDocumentError,
)


class TestExceptionHierarchy:
    """Tests for exception class hierarchy."""

    def test_base_exception(self):
        """Test base LotLedgerError."""
        exc = LotLedgerError("Test error")

        assert exc.error_code == "LL-000"
        assert exc.message == "Test error"
        assert exc.http_status == 500

    def test_input_error(self):
        exc = InputError()

        assert isinstance(exc, LotLedgerError)
        assert exc.error_code == "LL-100"
        assert exc.http_status == 400
        assert "Missing" in exc.message

    def test_payload_too_large(self):
        """Test PayloadTooLargeError reports both sizes."""
        exc = PayloadTooLargeError(size=60 * 1024 * 1024, max_size=50 * 1024 * 1024)

        assert isinstance(exc, InputError)
        assert exc.error_code == "LL-101"
        assert exc.http_status == 413
        assert "50MB" in exc.message
        assert exc.details == {"size": 60 * 1024 * 1024, "max_size": 50 * 1024 * 1024}

    def test_extraction_empty(self):
        exc = ExtractionEmptyError()

        assert exc.error_code == "LL-200"
        assert exc.http_status == 422

    def test_unreadable_document(self):
        """Test UnreadableDocumentError is a kind of empty extraction."""
        exc = UnreadableDocumentError(filename="scan.pdf")

        assert isinstance(exc, ExtractionEmptyError)
        assert exc.error_code == "LL-201"
        assert exc.details["filename"] == "scan.pdf"


class TestCollaboratorErrors:
    """Tests for collaborator failures."""

    def test_unavailable(self):
        exc = CollaboratorUnavailableError("openai")

        assert exc.error_code == "LL-900"
        assert exc.http_status == 502
        assert exc.service_name == "openai"
        assert "openai" in exc.message
        assert exc.details["service"] == "openai"

    def test_unavailable_custom_message(self):
        exc = CollaboratorUnavailableError("tesseract", "binary not found")
        assert exc.message == "binary not found"

    def test_structured_payload(self):
        """Test StructuredPayloadError carries the validation errors."""
        exc = StructuredPayloadError("openai", errors=["income: not a list"])

        assert isinstance(exc, CollaboratorUnavailableError)
        assert exc.error_code == "LL-901"
        assert exc.details == {"errors": ["income: not a list"], "service": "openai"}


class TestExceptionDetails:
    """Tests for exception details handling."""

    def test_to_dict(self):
        exc = ExtractionEmptyError(details={"filename": "pnl.pdf"})

        assert exc.to_dict() == {
            "error": True,
            "error_code": "LL-200",
            "message": "Could not read line items from document",
            "details": {"filename": "pnl.pdf"},
        }

    def test_error_code_override(self):
        exc = LotLedgerError("Custom", error_code="LL-999")
        assert exc.error_code == "LL-999"
        assert LotLedgerError.error_code == "LL-000"

    def test_exception_can_be_raised(self):
        """Test that exceptions can be raised and caught."""
        with pytest.raises(LotLedgerError) as exc_info:
            raise UnreadableDocumentError()

        assert exc_info.value.error_code == "LL-201"
