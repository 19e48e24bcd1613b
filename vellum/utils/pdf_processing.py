"""
PDF inspection helpers.

    page_count: Quick page count without full extraction (PyPDF2).
    extract_text: Plain text of a PDF for keyword analysis (pdfplumber).
"""

import io
from pathlib import Path
from typing import Optional, Union

import pdfplumber
from PyPDF2 import PdfReader

PDF_MAGIC = b"%PDF"


def is_pdf(content: bytes) -> bool:
    """Check whether a byte buffer starts with the PDF header."""
    return content[: len(PDF_MAGIC)] == PDF_MAGIC


def page_count(pdf_path: Path) -> Optional[int]:
    """Get page count from PDF, or None if unreadable."""
    try:
        reader = PdfReader(str(pdf_path))
        return len(reader.pages)
    except Exception:
        return None


def extract_text(pdf: Union[Path, bytes], max_pages: int = 10) -> str:
    """
    Extract plain text from a PDF, page by page.

    Args:
        pdf: Path to a PDF file or raw PDF bytes
        max_pages: Maximum number of pages to read

    Returns:
        Page texts joined with blank lines (empty pages skipped)
    """
    source = io.BytesIO(pdf) if isinstance(pdf, bytes) else pdf
    with pdfplumber.open(source) as document:
        pages = [page.extract_text() or "" for page in document.pages[:max_pages]]
    return "\n\n".join(text.strip() for text in pages if text.strip())
