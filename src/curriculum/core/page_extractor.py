"""Per-page text extraction.

Responsibilities:
- Extract text from a single page of a PDF or scanned image
- Decide per page whether the text layer is usable or the page is a scan
- Fall back to OCR (Tesseract) on rasterized scans
- Extract the bounded initial sample used for structural analysis

A page whose text layer holds no more words than a noise threshold is treated
as a scanned image: it is rendered at a fixed upscale factor and passed to
Tesseract. Render and OCR failures are logged and the page contributes an
empty string; they never abort a walk over the document.

Dependencies:
- pymupdf (fitz)
- pytesseract + Pillow
"""

from __future__ import annotations

import io
from dataclasses import dataclass
from pathlib import Path

import fitz
import pytesseract
import structlog
from PIL import Image

from curriculum.core.language_detector import ocr_language_code

logger = structlog.get_logger(__name__)

# Constants
SAMPLE_MIN_TEXT_ITEMS = 30  # Initial sample: this many words or fewer -> scanned
DEEP_INDEX_MIN_TEXT_ITEMS = 20  # Background walk uses a looser threshold
DEFAULT_OCR_SCALE = 2.0
DEFAULT_SAMPLE_PAGES = 15

SUPPORTED_SUFFIXES = (".pdf", ".png", ".jpg", ".jpeg", ".tif", ".tiff", ".bmp")


class PageExtractionError(Exception):
    """Raised when a document cannot be opened at all."""

    pass


class ProtectedDocumentError(PageExtractionError):
    """Raised when the PDF is password-protected."""

    def __init__(self, file_path: Path):
        self.file_path = file_path
        super().__init__(f"Password-protected PDF: {file_path.name}")


@dataclass
class SampleResult:
    """Text of the first pages of a document."""

    text: str
    pages_read: int
    total_pages: int
    ocr_pages: int = 0


def open_document(file_path: Path) -> fitz.Document:
    """Open a PDF or image as a PyMuPDF document.

    Images become single-page documents without a text layer, so every page
    of a scanned upload goes through OCR.

    Raises:
        PageExtractionError: If the file cannot be opened
        ProtectedDocumentError: If the PDF is encrypted
    """
    file_path = Path(file_path)
    try:
        doc = fitz.open(file_path)
    except Exception as e:
        raise PageExtractionError(f"Cannot open document {file_path.name}: {e}") from e

    if doc.is_encrypted:
        doc.close()
        raise ProtectedDocumentError(file_path)

    return doc


def count_text_items(page: fitz.Page) -> int:
    """Number of words in the page's text layer."""
    return len(page.get_text("words"))


def extract_page_text(
    doc: fitz.Document,
    page_index: int,
    language: str,
    min_text_items: int = SAMPLE_MIN_TEXT_ITEMS,
    ocr_scale: float = DEFAULT_OCR_SCALE,
) -> str:
    """Extract the text of one page.

    Args:
        doc: Open PyMuPDF document
        page_index: Page number (0-indexed)
        language: Content language ("ar" or "en"), selects the OCR model
        min_text_items: At or below this word count the page is OCRed
        ocr_scale: Upscale factor used to rasterize scanned pages

    Returns:
        Page text, or "" if the page could not be read
    """
    text, _ = _read_page(doc, page_index, language, min_text_items, ocr_scale)
    return text


def _read_page(
    doc: fitz.Document,
    page_index: int,
    language: str,
    min_text_items: int,
    ocr_scale: float,
) -> tuple[str, bool]:
    """Return (text, used_ocr) for one page; failures give ("", used_ocr)."""
    used_ocr = False
    try:
        page = doc[page_index]
        if count_text_items(page) > min_text_items:
            return page.get_text(), False
        used_ocr = True
        return ocr_page(page, language, ocr_scale), True
    except Exception as e:
        logger.warning(
            "page_extractor.page_failed",
            page=page_index + 1,
            language=language,
            ocr=used_ocr,
            error=str(e),
        )
        return "", used_ocr


def ocr_page(page: fitz.Page, language: str, scale: float = DEFAULT_OCR_SCALE) -> str:
    """Rasterize a page and run Tesseract on it.

    Raises whatever rendering or Tesseract raise; extract_page_text turns
    those into an empty page.
    """
    pix = page.get_pixmap(matrix=fitz.Matrix(scale, scale))
    image = Image.open(io.BytesIO(pix.tobytes("png")))

    text = pytesseract.image_to_string(image, lang=ocr_language_code(language))

    logger.debug(
        "page_extractor.ocr",
        page=page.number + 1,
        language=language,
        chars=len(text),
    )
    return text


def extract_sample(
    file_path: Path,
    language: str,
    max_pages: int = DEFAULT_SAMPLE_PAGES,
    min_text_items: int = SAMPLE_MIN_TEXT_ITEMS,
    ocr_scale: float = DEFAULT_OCR_SCALE,
) -> SampleResult:
    """Extract the initial text sample (first N pages) of a document.

    Args:
        file_path: PDF or image file
        language: Requested language, used for OCR of scanned pages
        max_pages: Number of leading pages to read
        min_text_items: Scanned-page threshold
        ocr_scale: OCR upscale factor

    Returns:
        SampleResult with the concatenated text and page counts

    Raises:
        PageExtractionError: If the document cannot be opened
    """
    doc = open_document(file_path)
    try:
        total_pages = len(doc)
        pages_read = min(max_pages, total_pages)
        parts = []
        ocr_pages = 0

        for page_index in range(pages_read):
            page_text, used_ocr = _read_page(
                doc, page_index, language, min_text_items, ocr_scale
            )
            parts.append(page_text.rstrip("\n") + "\n")
            if used_ocr:
                ocr_pages += 1
    finally:
        doc.close()

    text = "".join(parts)

    logger.info(
        "page_extractor.sample",
        file=Path(file_path).name,
        pages_read=pages_read,
        total_pages=total_pages,
        ocr_pages=ocr_pages,
        chars=len(text),
    )

    return SampleResult(
        text=text,
        pages_read=pages_read,
        total_pages=total_pages,
        ocr_pages=ocr_pages,
    )
