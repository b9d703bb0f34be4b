"""
Document text loading.

Turns uploaded bytes into text: pdfplumber for native PDFs, Tesseract OCR
for scanned PDFs, and plain UTF-8 decoding for delimited exports.
"""
import io
from pathlib import PurePath
from typing import Callable, List, Optional

import pdfplumber
import structlog
from PIL import Image

from lotledger.config import get_settings
from lotledger.exceptions import (
    CollaboratorUnavailableError,
    InputError,
    PayloadTooLargeError,
    UnreadableDocumentError,
)

logger = structlog.get_logger(__name__)

PDF_MAGIC = b"%PDF"

# image-in / text-out collaborator
ImageToText = Callable[[Image.Image], str]


def tesseract_image_to_text(image: Image.Image) -> str:
    """Run Tesseract on a rendered page image."""
    import pytesseract

    settings = get_settings()
    if settings.tesseract_cmd:
        pytesseract.pytesseract.tesseract_cmd = settings.tesseract_cmd

    try:
        return pytesseract.image_to_string(image)
    except (pytesseract.TesseractError, pytesseract.TesseractNotFoundError, OSError) as e:
        raise CollaboratorUnavailableError("tesseract", f"OCR failed: {e}") from e


class DocumentTextLoader:
    """
    Loader for uploaded documents.

    PDFs are read with pdfplumber. When the native text layer is shorter
    than ``min_text_chars`` the document is treated as scanned and each
    page is rendered and passed through the OCR collaborator. Anything that
    is not a PDF is decoded as UTF-8.
    """

    def __init__(
        self,
        image_to_text: Optional[ImageToText] = None,
        min_text_chars: Optional[int] = None,
        max_size_bytes: Optional[int] = None,
        resolution: int = 300,
    ):
        settings = get_settings()
        self._image_to_text = image_to_text or tesseract_image_to_text
        self._min_text_chars = min_text_chars if min_text_chars is not None else settings.ocr_min_text_chars
        self._max_size_bytes = max_size_bytes if max_size_bytes is not None else settings.max_upload_size_bytes
        self._resolution = resolution

    def load(self, data: bytes, filename: Optional[str] = None) -> str:
        """
        Extract text from document bytes.

        Args:
            data: Raw document bytes.
            filename: Original filename, used only for extension sniffing.

        Returns:
            Extracted text, possibly empty.

        Raises:
            PayloadTooLargeError: If the document exceeds the size limit.
        """
        if len(data) > self._max_size_bytes:
            raise PayloadTooLargeError(len(data), self._max_size_bytes)

        if self.is_pdf(data, filename):
            return self._load_pdf(data, filename)

        logger.debug("Decoding document as text", filename=filename, size=len(data))
        return data.decode("utf-8-sig", errors="replace")

    @staticmethod
    def is_pdf(data: bytes, filename: Optional[str] = None) -> bool:
        """Check the extension hint, then the magic bytes."""
        if filename and PurePath(filename).suffix.lower() == ".pdf":
            return True
        return data[:1024].lstrip().startswith(PDF_MAGIC)

    def _load_pdf(self, data: bytes, filename: Optional[str]) -> str:
        logger.info("Extracting text from PDF", filename=filename, size=len(data))

        with pdfplumber.open(io.BytesIO(data)) as pdf:
            pages: List[str] = [page.extract_text() or "" for page in pdf.pages]
            text = "\n\n".join(pages).strip()

            if len(text) >= self._min_text_chars:
                return text

            logger.info(
                "PDF appears scanned, using OCR",
                filename=filename,
                native_chars=len(text),
                page_count=len(pdf.pages),
            )
            ocr_pages = [self._ocr_page(page, number) for number, page in enumerate(pdf.pages, start=1)]

        ocr_text = "\n\n".join(p for p in ocr_pages if p).strip()
        return ocr_text if len(ocr_text) > len(text) else text

    def _ocr_page(self, page, page_num: int) -> str:
        """
        Perform OCR on a single page.

        Returns an empty string when OCR is unavailable; the caller keeps
        whatever native text was found.
        """
        try:
            image = page.to_image(resolution=self._resolution).original
            return self._image_to_text(image) or ""
        except CollaboratorUnavailableError as e:
            logger.warning("OCR failed for page", page=page_num, error=e.message)
            return ""


# Singleton instance
_loader_instance: Optional[DocumentTextLoader] = None


def get_document_loader() -> DocumentTextLoader:
    """Get singleton DocumentTextLoader instance."""
    global _loader_instance
    if _loader_instance is None:
        _loader_instance = DocumentTextLoader()
    return _loader_instance


def load_input_text(
    document: Optional[bytes] = None,
    filename: Optional[str] = None,
    text: Optional[str] = None,
    loader: Optional[DocumentTextLoader] = None,
) -> str:
    """
    Resolve the text of an upload.

    Pre-extracted text wins over document bytes.

    Raises:
        InputError: Neither bytes nor text were supplied.
        UnreadableDocumentError: No text could be extracted.
    """
    if not document and not text:
        raise InputError()

    if text and text.strip():
        return text

    extracted = (loader or get_document_loader()).load(document, filename) if document else ""
    if not extracted.strip():
        raise UnreadableDocumentError(filename=filename)
    return extracted
