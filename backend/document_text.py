# backend/document_text.py
import io
from pathlib import Path
from typing import List

import structlog
from pypdf import PdfReader
from pypdf.errors import PyPdfError

from errors import ErrorCode, TextUnavailableError

logger = structlog.get_logger()

PDF_SUFFIXES = {".pdf"}
PLAIN_TEXT_SUFFIXES = {".txt", ".text", ".md", ".csv"}


def extract_text_from_pdf(data: bytes) -> str:
    """
    Extract the text layer of every page, one page per block.

    Line breaks are kept: labeled fields ("Client: ...") are anchored on
    them. Pages that fail to extract are skipped.
    """
    try:
        reader = PdfReader(io.BytesIO(data))
        pages = list(reader.pages)
    except (PyPdfError, ValueError, OSError) as e:
        raise TextUnavailableError(
            "PDF could not be read",
            code=ErrorCode.UNREADABLE_DOCUMENT,
            details={"reason": str(e)},
        ) from e

    page_texts: List[str] = []
    for page_num, page in enumerate(pages, start=1):
        try:
            page_text = page.extract_text() or ""
        except Exception as e:
            logger.warning("pdf_page_extraction_failed", page=page_num, error=str(e))
            continue
        if page_text.strip():
            page_texts.append(page_text)

    logger.debug(
        "pdf_text_extracted",
        page_count=len(pages),
        pages_with_text=len(page_texts),
    )
    return "\n".join(page_texts)


def decode_plain_text(data: bytes) -> str:
    return data.decode("utf-8-sig", errors="replace")


def extract_requirements_text(filename: str, data: bytes) -> str:
    """
    Turn an uploaded requirements document into one text string.

    Raises TextUnavailableError for unsupported formats, unreadable PDFs
    and documents without any text (e.g. scanned PDFs with no text layer).
    """
    suffix = Path(filename or "").suffix.lower()

    if suffix in PDF_SUFFIXES:
        text = extract_text_from_pdf(data)
    elif suffix in PLAIN_TEXT_SUFFIXES:
        text = decode_plain_text(data)
    else:
        raise TextUnavailableError(
            f"Unsupported file type: {suffix or 'none'}",
            code=ErrorCode.UNSUPPORTED_FORMAT,
            details={"filename": filename},
        )

    if not text.strip():
        raise TextUnavailableError(
            "No extractable text found in document",
            code=ErrorCode.EMPTY_DOCUMENT,
            details={"filename": filename},
        )

    logger.info("requirements_text_extracted", filename=filename, text_length=len(text))
    return text
