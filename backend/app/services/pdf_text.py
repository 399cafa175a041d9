from __future__ import annotations

from dataclasses import dataclass, field
from io import BytesIO
import logging

from pdfminer.psparser import PSException
import pdfplumber
from pdfplumber.utils.exceptions import PdfminerException
from pypdf import PdfReader
from pypdf.errors import PdfReadError

logger = logging.getLogger("cvtailor.pdf")


class ResumeParseError(ValueError):
    """Raised when an uploaded resume cannot be read as a PDF."""


@dataclass(frozen=True)
class PdfText:
    text: str
    num_pages: int
    info: dict[str, str] = field(default_factory=dict)


def _join_pages(page_texts) -> str:
    return "\n\n".join(text.strip() for text in page_texts if text and text.strip())


def _read_with_pypdf(pdf_content: bytes) -> PdfText:
    reader = PdfReader(BytesIO(pdf_content))
    text = _join_pages(page.extract_text() for page in reader.pages)
    metadata = reader.metadata or {}
    info = {str(key).lstrip("/"): str(value) for key, value in metadata.items() if value is not None}
    return PdfText(text=text, num_pages=len(reader.pages), info=info)


def _read_with_pdfplumber(pdf_content: bytes) -> PdfText:
    with pdfplumber.open(BytesIO(pdf_content)) as pdf:
        text = _join_pages(page.extract_text() for page in pdf.pages)
        info = {str(key): str(value) for key, value in (pdf.metadata or {}).items() if value is not None}
        return PdfText(text=text, num_pages=len(pdf.pages), info=info)


def extract_pdf_text(pdf_content: bytes) -> PdfText:
    """Extract the text of every page, separated by blank lines.

    pypdf is tried first; pdfplumber reads the file when pypdf cannot.
    """
    if not pdf_content:
        raise ResumeParseError("Empty file provided")

    try:
        return _read_with_pypdf(pdf_content)
    except (PdfReadError, ValueError, KeyError) as exc:
        logger.warning(
            "pypdf failed, falling back to pdfplumber",
            extra={"event": "pdf_parse_fallback", "reason": exc.__class__.__name__},
        )

    try:
        return _read_with_pdfplumber(pdf_content)
    except (PdfminerException, PSException, ValueError, KeyError) as exc:
        logger.warning(
            "Failed to parse PDF",
            extra={"event": "pdf_parse_failed", "reason": exc.__class__.__name__},
        )
        raise ResumeParseError(f"Failed to parse PDF: {exc}") from exc
