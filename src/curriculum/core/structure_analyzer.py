"""Document structure detection.

Turns the initial text sample of a document into an outline: ordered
chapters plus an optional summary and grade level.

Detection strategies, tried in order until one returns a non-empty outline:
1. content_service: ask the content-generation service for the table of
   contents (chapters may come back as strings or {title, page} objects)
2. pattern: line-by-line regex scan (unit/chapter/lesson headers, numbered
   lines, "title ..... page" TOC entries) for the document language
3. fallback: a single synthetic "General Content" chapter

The analyzer never raises: a failing or empty tier hands over to the next
one, and the last tier always succeeds.
"""

from __future__ import annotations

import re
import time
from dataclasses import dataclass, field
from typing import Any, Protocol, Sequence

import structlog

from curriculum.core.language_detector import Language, normalize_language
from curriculum.llm.client import LLMClient, LLMError

logger = structlog.get_logger(__name__)

# =============================================================================
# CONSTANTS
# =============================================================================

SAMPLE_CHAR_BUDGET = 12000

AI_CONTEXT = "Extracted via AI"
TOC_CONTEXT = "Extracted from TOC"
FALLBACK_TITLE = "General Content"
FALLBACK_CONTEXT = "Generated Fallback"
UNTITLED_LESSON = "Untitled Lesson"

# Accepted title length (exclusive bounds)
MIN_TITLE_LENGTH = 5
MAX_TITLE_LENGTH = 100

_ARABIC_ORDINALS = (
    "الأول|الثاني|الثالث|الرابع|الخامس|السادس|السابع|الثامن|التاسع|العاشر"
)

# Ordered per language; the first matching pattern wins for a line
CHAPTER_PATTERNS: dict[str, list[re.Pattern[str]]] = {
    "ar": [
        # "الوحدة الأولى: ..." / "الفصل 3 - ..."
        re.compile(
            rf"(?:الوحدة|الفصل|الباب|الجزء)\s+(?:{_ARABIC_ORDINALS}|\d+)\s*[:\-\.]?\s*(.+)"
        ),
        # "الدرس الثاني: ..."
        re.compile(
            r"(?:الدرس)\s+(?:الأول|الثاني|الثالث|الرابع|الخامس|\d+)\s*[:\-\.]?\s*(.+)"
        ),
        # "3- ..." / "3. ..."
        re.compile(r"^\s*\d+[\-\.]\s+(.+)"),
        # "الموضوع: ..." / "العنوان: ..."
        re.compile(r"(?:الموضوع|العنوان)\s*[:\-\.]?\s*(.+)"),
        # "Title ....... 12"
        re.compile(r"(.+?)\s*\.{3,}\s*\d+"),
    ],
    "en": [
        re.compile(r"(?:Unit|Chapter|Section)\s+\d+\s*[:\-\.]?\s*(.+)", re.IGNORECASE),
        re.compile(r"(?:Lesson)\s+\d+\s*[:\-\.]?\s*(.+)", re.IGNORECASE),
        re.compile(r"^\s*\d+[\-\.]\s+(.+)"),
        re.compile(r"(.+?)\s*\.{3,}\s*\d+"),
    ],
}

CONTENT_SERVICE_SYSTEM_PROMPT = """You index school textbooks.
Return ONLY a JSON object with this shape:
{"chapters": [{"title": "...", "page": 1}], "summary": "...", "grade": "..."}
List the units/chapters/lessons of the table of contents in order.
Write titles in the language of the book."""

CONTENT_SERVICE_USER_PROMPT = """Subject: {subject}
Language: {language}

Text from the first pages of the book:
<<<
{context}
>>>"""


# =============================================================================
# DATA CLASSES
# =============================================================================


@dataclass(frozen=True)
class ChapterEntry:
    """A recovered structural segment of a document."""

    title: str
    context: str

    @property
    def is_fallback(self) -> bool:
        """True for the synthetic chapter (recognized by its context tag)."""
        return self.context == FALLBACK_CONTEXT

    def to_dict(self) -> dict[str, str]:
        return {"title": self.title, "context": self.context}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ChapterEntry:
        return cls(title=str(data.get("title", "")), context=str(data.get("context", "")))


@dataclass
class Outline:
    """Structure recovered from a document sample."""

    chapters: list[ChapterEntry]
    summary: str | None = None
    grade: str | None = None
    method: str = "fallback"

    @property
    def is_fallback(self) -> bool:
        return is_fallback_outline(self.chapters)


@dataclass
class AnalysisRequest:
    """Input of a structural analysis."""

    text: str
    subject: str = ""
    language: Language = "en"


@dataclass
class AnalysisReport:
    """Which strategies ran and how each ended."""

    method_used: str
    attempts: list[dict[str, Any]] = field(default_factory=list)


def fallback_chapter() -> ChapterEntry:
    """The synthetic chapter stored when no structure is recoverable."""
    return ChapterEntry(title=FALLBACK_TITLE, context=FALLBACK_CONTEXT)


def is_fallback_outline(chapters: Sequence[ChapterEntry]) -> bool:
    """True when chapters is exactly the synthetic sentinel."""
    return len(chapters) == 1 and chapters[0].is_fallback


def chapters_from_dicts(items: Sequence[dict[str, Any]]) -> list[ChapterEntry]:
    """Rebuild chapter entries from their persisted form."""
    return [ChapterEntry.from_dict(item) for item in items]


# =============================================================================
# STRATEGIES
# =============================================================================


class StructuralAnalysisStrategy(Protocol):
    """One tier of the structural analysis chain."""

    name: str

    def analyze(self, request: AnalysisRequest) -> Outline | None:
        """Return an outline, or None to hand over to the next tier."""
        ...


class ContentServiceStrategy:
    """Ask the content-generation service for the table of contents.

    The call is retried with exponential backoff; the client itself enforces
    the request timeout.
    """

    name = "content_service"

    def __init__(
        self,
        client: LLMClient,
        char_budget: int = SAMPLE_CHAR_BUDGET,
        max_retries: int = 2,
        retry_backoff_seconds: float = 1.0,
        sleep=time.sleep,
    ):
        self.client = client
        self.char_budget = char_budget
        self.max_retries = max_retries
        self.retry_backoff_seconds = retry_backoff_seconds
        self._sleep = sleep

    def analyze(self, request: AnalysisRequest) -> Outline | None:
        if not self.client.is_available():
            logger.warning("structure_analyzer.service_unavailable")
            return None

        result = self._request(request)
        if result is None:
            return None

        raw_chapters = result.get("chapters")
        if not isinstance(raw_chapters, list):
            logger.info("structure_analyzer.service_no_chapters", keys=sorted(result))
            return None

        chapters = [_chapter_from_service(item) for item in raw_chapters]
        chapters = [c for c in chapters if c is not None]
        if not chapters:
            return None

        metadata = result.get("metadata")
        grade = result.get("grade")
        if not grade and isinstance(metadata, dict):
            grade = metadata.get("grade")

        summary = result.get("summary")

        return Outline(
            chapters=chapters,
            summary=str(summary) if summary else None,
            grade=str(grade) if grade else None,
            method=self.name,
        )

    def _request(self, request: AnalysisRequest) -> dict[str, Any] | None:
        user_message = CONTENT_SERVICE_USER_PROMPT.format(
            subject=request.subject or "-",
            language=request.language,
            context=request.text[: self.char_budget],
        )

        for attempt in range(self.max_retries + 1):
            try:
                return self.client.simple_json(
                    system_prompt=CONTENT_SERVICE_SYSTEM_PROMPT,
                    user_message=user_message,
                )
            except LLMError as e:
                logger.warning(
                    "structure_analyzer.service_failed",
                    attempt=attempt + 1,
                    max_attempts=self.max_retries + 1,
                    error=str(e),
                )
            if attempt < self.max_retries:
                self._sleep(self.retry_backoff_seconds * (2**attempt))

        return None


class PatternStrategy:
    """Deterministic regex scan of the sample, line by line."""

    name = "pattern"

    def analyze(self, request: AnalysisRequest) -> Outline | None:
        chapters = parse_toc_text(request.text, request.language)
        if not chapters:
            return None
        return Outline(chapters=chapters, method=self.name)


class SyntheticFallbackStrategy:
    """Terminal tier: one synthetic chapter covering the whole document."""

    name = "fallback"

    def analyze(self, request: AnalysisRequest) -> Outline:
        return Outline(chapters=[fallback_chapter()], method=self.name)


# =============================================================================
# MAIN FUNCTIONS
# =============================================================================


def parse_toc_text(text: str, language: str) -> list[ChapterEntry]:
    """Detect chapter titles with the language-specific patterns.

    The whole match (stripped) becomes the title when its length is strictly
    between MIN_TITLE_LENGTH and MAX_TITLE_LENGTH. The first pattern that
    matches a line decides it; a rejected match does not try later patterns.
    """
    patterns = CHAPTER_PATTERNS[normalize_language(language)]
    chapters: list[ChapterEntry] = []

    for line in text.splitlines():
        clean_line = line.strip()
        for pattern in patterns:
            match = pattern.search(clean_line)
            if match:
                title = match.group(0).strip()
                if MIN_TITLE_LENGTH < len(title) < MAX_TITLE_LENGTH:
                    chapters.append(ChapterEntry(title=title, context=TOC_CONTEXT))
                break

    logger.debug("structure_analyzer.pattern_scan", language=language, chapters=len(chapters))
    return chapters


def default_strategies(client: LLMClient | None = None, **service_kwargs) -> list:
    """Standard chain; the service tier is skipped when no client is given."""
    strategies: list = []
    if client is not None:
        strategies.append(ContentServiceStrategy(client, **service_kwargs))
    strategies.extend([PatternStrategy(), SyntheticFallbackStrategy()])
    return strategies


def analyze_structure(
    request: AnalysisRequest,
    strategies: Sequence[StructuralAnalysisStrategy] | None = None,
) -> tuple[Outline, AnalysisReport]:
    """Run the strategy chain and return the first non-empty outline.

    Args:
        request: Sample text, subject hint and language
        strategies: Ordered tiers (defaults to pattern + fallback)

    Returns:
        (Outline, AnalysisReport). The outline always has at least one chapter.
    """
    if strategies is None:
        strategies = default_strategies()

    attempts: list[dict[str, Any]] = []

    for strategy in strategies:
        try:
            outline = strategy.analyze(request)
        except Exception as e:
            logger.warning(
                "structure_analyzer.strategy_error",
                strategy=strategy.name,
                error=str(e),
            )
            attempts.append({"strategy": strategy.name, "result": "error", "error": str(e)})
            continue

        if outline is None or not outline.chapters:
            attempts.append({"strategy": strategy.name, "result": "empty"})
            continue

        attempts.append(
            {"strategy": strategy.name, "result": "ok", "chapters": len(outline.chapters)}
        )
        logger.info(
            "structure_analyzer.success",
            method=outline.method,
            chapters=len(outline.chapters),
            language=request.language,
        )
        return outline, AnalysisReport(method_used=outline.method, attempts=attempts)

    # Only reached with a custom chain that lacks the terminal tier
    logger.warning("structure_analyzer.all_strategies_empty")
    outline = SyntheticFallbackStrategy().analyze(request)
    attempts.append({"strategy": "fallback", "result": "ok", "chapters": 1})
    return outline, AnalysisReport(method_used=outline.method, attempts=attempts)


def _chapter_from_service(item: Any) -> ChapterEntry | None:
    """Map one service chapter (string or {title, page}) onto ChapterEntry."""
    if isinstance(item, str):
        title = item.strip()
        if not title:
            return None
        return ChapterEntry(title=title, context=AI_CONTEXT)

    if isinstance(item, dict):
        title = str(item.get("title") or "").strip() or UNTITLED_LESSON
        page = item.get("page")
        context = f"{AI_CONTEXT} - Page {page}" if page else AI_CONTEXT
        return ChapterEntry(title=title, context=context)

    return None
