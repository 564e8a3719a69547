"""PDF text extraction.

Uses pypdf for page text and falls back to pdfplumber when pypdf returns
nothing (some statement generators embed fonts pypdf can't map). Scanned,
image-only statements are out of scope: no OCR is attempted.
"""

import asyncio
import io
import logging

from pypdf import PdfReader

logger = logging.getLogger(__name__)


class TextExtractionError(Exception):
    """Raised when no usable text can be extracted from a document."""

    pass


def _extract_with_pypdf(pdf_bytes: bytes) -> list[str]:
    reader = PdfReader(io.BytesIO(pdf_bytes))
    if reader.is_encrypted:
        # Some PDFs are encrypted with an empty user password.
        if not reader.decrypt(""):
            raise TextExtractionError("PDF is password-protected")
    return [page.extract_text() or "" for page in reader.pages]


def _extract_with_pdfplumber(pdf_bytes: bytes) -> list[str]:
    import pdfplumber

    with pdfplumber.open(io.BytesIO(pdf_bytes)) as pdf:
        return [page.extract_text() or "" for page in pdf.pages]


class PdfTextExtractor:
    """Convert a PDF byte string to plain text, one page per block.

    Example:
        >>> extractor = PdfTextExtractor()
        >>> text = await extractor.extract(pdf_bytes)
    """

    def extract_sync(self, pdf_bytes: bytes) -> str:
        """Blocking extraction; see extract()."""
        if not pdf_bytes:
            raise TextExtractionError("Document is empty")

        try:
            pages = _extract_with_pypdf(pdf_bytes)
        except TextExtractionError:
            raise
        except Exception as e:
            logger.warning("pypdf extraction failed", extra={"error_type": type(e).__name__})
            pages = []

        if not any(p.strip() for p in pages):
            logger.info("pypdf returned no text, falling back to pdfplumber")
            try:
                pages = _extract_with_pdfplumber(pdf_bytes)
            except Exception as e:
                raise TextExtractionError(f"Failed to extract text from PDF: {e}") from e

        text = "\n".join(p.strip() for p in pages if p.strip())
        if not text:
            raise TextExtractionError("No text could be extracted from the PDF.")

        logger.info("Extracted statement text", extra={"pages": len(pages), "chars": len(text)})
        return text

    async def extract(self, pdf_bytes: bytes) -> str:
        """Extract plain text from a PDF without blocking the event loop.

        Raises:
            TextExtractionError: If the document is empty, encrypted,
                corrupted, or contains no extractable text
        """
        return await asyncio.to_thread(self.extract_sync, pdf_bytes)
