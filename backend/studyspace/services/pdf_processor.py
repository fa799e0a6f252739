"""Text extraction from stored PDF sources (PyMuPDF)."""

import base64
import binascii
import logging
import re

import pymupdf

logger = logging.getLogger(__name__)

# NUL and other control characters break prompts and TEXT columns
_CONTROL_CHARS = re.compile(r"[\x00-\x08\x0b\x0c\x0e-\x1f]")

_PDF_DATA_URL_PREFIX = "data:application/pdf"

PAGE_SEPARATOR = "\n\n"


def decode_pdf_content(content: str) -> bytes:
    """
    Raw bytes of a stored PDF body.

    The body is plain base64 or a `data:application/pdf;base64,...` URL.

    Raises:
        ValueError: Empty body or invalid base64
    """
    raw = content.strip()
    if raw.startswith(_PDF_DATA_URL_PREFIX):
        _, _, raw = raw.partition(",")
    if not raw:
        raise ValueError("PDF content is empty")
    try:
        return base64.b64decode(raw, validate=True)
    except (binascii.Error, ValueError) as e:
        raise ValueError(f"PDF content is not valid base64: {e}") from e


def _failed(error: str, page_count: int = 0) -> dict:
    return {"text": "", "page_count": page_count, "status": "failed", "error": error}


class PDFProcessor:
    """
    Extracts page text from PDFs.

    Results are plain dicts `{text, page_count, status, error?}` with status
    "success" or "failed"; extraction problems are reported, never raised, so
    the caller can store them on the source.
    """

    @staticmethod
    async def extract_text(pdf_bytes: bytes) -> dict:
        """
        Extract the text of every page, pages separated by a blank line.

        Args:
            pdf_bytes: Raw bytes of the PDF file

        Returns:
            Dictionary with:
                - text: Text of all pages, control characters removed
                - page_count: Number of pages, 0 when the file could not be opened
                - status: 'success' or 'failed'
                - error: Why extraction failed (only when status is 'failed')

        Example:
            >>> result = await pdf_processor.extract_text(pdf_data)
            >>> if result['status'] == 'failed':
            ...     source.extraction_error = result['error']
        """
        try:
            with pymupdf.open(stream=pdf_bytes, filetype="pdf") as doc:
                pages = [page.get_text() for page in doc]
        except Exception as e:
            logger.warning("PyMuPDF could not read PDF: %s", e)
            return _failed(str(e))

        text = _CONTROL_CHARS.sub("", PAGE_SEPARATOR.join(pages))
        if not text.strip():
            return _failed("No extractable text (the PDF may be scanned images)", len(pages))
        return {"text": text, "page_count": len(pages), "status": "success"}

    async def extract_from_content(self, content: str) -> dict:
        """
        Decode a stored source body, check it is a PDF, then extract its text.

        Args:
            content: Base64 or `data:application/pdf;base64,` body of a source

        Returns:
            The same dictionary as `extract_text`; decoding and validation
            problems come back as status 'failed'
        """
        try:
            pdf_bytes = decode_pdf_content(content)
        except ValueError as e:
            return _failed(str(e))
        if not await self.validate_pdf(pdf_bytes):
            return _failed("The uploaded file is not a valid PDF.")
        return await self.extract_text(pdf_bytes)

    @staticmethod
    async def validate_pdf(pdf_bytes: bytes) -> bool:
        """
        Check that bytes are a readable PDF.

        Args:
            pdf_bytes: Raw bytes to check

        Returns:
            True when PyMuPDF opens them as a PDF with at least one page
        """
        try:
            with pymupdf.open(stream=pdf_bytes, filetype="pdf") as doc:
                return doc.page_count > 0
        except Exception:
            return False


pdf_processor = PDFProcessor()
