"""Content language detection.

Classifies text as Arabic or English by the share of characters in the
Arabic Unicode block. Runs once per ingestion on the initial sample; the
result is stored on the document and picks the OCR model for the rest of
its life.
"""

from __future__ import annotations

import re
from typing import Literal

import structlog

logger = structlog.get_logger(__name__)

Language = Literal["ar", "en"]

SUPPORTED_LANGUAGES: tuple[Language, ...] = ("ar", "en")
DEFAULT_LANGUAGE: Language = "en"

ARABIC_CHARS = re.compile(r"[\u0600-\u06FF]")
ARABIC_RATIO_THRESHOLD = 0.1

# Tesseract traineddata names
OCR_LANGUAGE_CODES: dict[str, str] = {
    "ar": "ara",
    "en": "eng",
}


def detect_language(text: str) -> Language:
    """Detect the content language of text.

    Args:
        text: Accumulated text sample

    Returns:
        "ar" if Arabic characters exceed 10% of the text length, else "en"
    """
    arabic_count = len(ARABIC_CHARS.findall(text))
    language: Language = (
        "ar" if arabic_count > len(text) * ARABIC_RATIO_THRESHOLD else DEFAULT_LANGUAGE
    )

    logger.debug(
        "language_detector.detected",
        language=language,
        arabic_chars=arabic_count,
        total_chars=len(text),
    )
    return language


def normalize_language(language: str | None) -> Language:
    """Map a requested language code onto a supported one."""
    if language in SUPPORTED_LANGUAGES:
        return language  # type: ignore[return-value]
    return DEFAULT_LANGUAGE


def ocr_language_code(language: str | None) -> str:
    """Tesseract language code for a content language."""
    return OCR_LANGUAGE_CODES[normalize_language(language)]
