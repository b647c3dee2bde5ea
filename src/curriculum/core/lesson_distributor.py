"""Lesson distribution across teaching days.

Responsibilities:
- Map the document's chapters onto the generated teaching days
- Compute week numbers from the weekly frequency
- Regenerate a document's schedule atomically

Distribution rules:
- One lesson per teaching day
- Day i takes chapter min(i, chapters - 1): once days outnumber chapters,
  every remaining day repeats the last chapter (no wrap-around)
- When the chapters are only the synthetic "General Content" entry, titles
  fall back to "Lesson N" while the context keeps the shared content
- With no chapters at all, "Lesson N" placeholders are used
- week_number = i // weekly_frequency + 1
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import Sequence

import structlog

from curriculum.core.deep_indexer import registry
from curriculum.core.schedule_generator import ScheduleConfig, generate_teaching_days
from curriculum.core.structure_analyzer import (
    ChapterEntry,
    chapters_from_dicts,
    is_fallback_outline,
)
from curriculum.db.documents_repository import get_document
from curriculum.db.lessons_repository import replace_lessons

logger = structlog.get_logger(__name__)

LESSON_WORD = {
    "en": "Lesson",
    "ar": "درس",
}
PLACEHOLDER_CONTEXT = "Generated Placeholder"


@dataclass(frozen=True)
class LessonDraft:
    """A lesson computed for one teaching day, before persistence."""

    date: date
    title: str
    content_context: str
    week_number: int


@dataclass
class ScheduleResult:
    """Result of a schedule regeneration."""

    document_id: int
    lessons_created: int
    teaching_days: list[date]
    used_fallback_titles: bool


class ScheduleInputError(Exception):
    """Raised when a schedule cannot be generated from the given inputs."""

    pass


def content_index_for(day_index: int, chapter_count: int) -> int:
    """Chapter index used for a teaching day (clamped to the last chapter)."""
    return min(day_index, chapter_count - 1)


def generic_lesson_title(number: int, language: str = "en") -> str:
    """Numbered title such as "Lesson 3"."""
    return f"{LESSON_WORD.get(language, LESSON_WORD['en'])} {number}"


def distribute_lessons(
    teaching_days: Sequence[date],
    chapters: Sequence[ChapterEntry],
    weekly_frequency: int,
    language: str = "en",
) -> list[LessonDraft]:
    """Build one lesson draft per teaching day.

    Args:
        teaching_days: Ascending teaching days
        chapters: Document chapters in order
        weekly_frequency: Teaching days per week in the pattern used
        language: Document language (for generic titles)

    Returns:
        Lesson drafts, same length and order as teaching_days
    """
    if not teaching_days:
        return []

    if chapters:
        source_units = list(chapters)
    else:
        source_units = [
            ChapterEntry(
                title=generic_lesson_title(i + 1, language),
                context=PLACEHOLDER_CONTEXT,
            )
            for i in range(len(teaching_days))
        ]

    numbered_titles = is_fallback_outline(source_units)
    frequency = max(1, weekly_frequency)

    drafts = []
    for i, day in enumerate(teaching_days):
        unit = source_units[content_index_for(i, len(source_units))]
        title = generic_lesson_title(i + 1, language) if numbered_titles else unit.title
        drafts.append(
            LessonDraft(
                date=day,
                title=title,
                content_context=unit.context,
                week_number=i // frequency + 1,
            )
        )

    return drafts


def regenerate_schedule(
    document_id: int | None,
    config: ScheduleConfig | None,
) -> ScheduleResult:
    """Replace a document's lessons with a freshly distributed schedule.

    Inputs are validated before any write; existing lessons are deleted and
    the new set inserted in one transaction.

    Raises:
        ScheduleInputError: If the document or date range is missing, or the
            inputs produce no teaching days
    """
    if document_id is None:
        raise ScheduleInputError("Select a document before generating a schedule")
    if config is None or config.start_date is None or config.end_date is None:
        raise ScheduleInputError("A start and end date are required")

    document = get_document(document_id)
    if document is None:
        raise ScheduleInputError(f"Document not found: {document_id}")

    teaching_days = generate_teaching_days(config)
    if not teaching_days:
        raise ScheduleInputError(
            "No teaching days between "
            f"{config.start_date.isoformat()} and {config.end_date.isoformat()} "
            "for the selected weekdays"
        )

    chapters = chapters_from_dicts(document.chapters)
    drafts = distribute_lessons(
        teaching_days,
        chapters,
        weekly_frequency=config.weekly_frequency,
        language=document.detected_language,
    )

    if registry.is_running(document_id):
        # Indexing only touches full_text; the two writers do not overlap
        logger.info("schedule.indexing_in_progress", document_id=document_id)

    created = replace_lessons(document_id, drafts)

    logger.info(
        "schedule.regenerated",
        document_id=document_id,
        lessons=created,
        chapters=len(chapters),
        weekly_frequency=config.weekly_frequency,
    )

    return ScheduleResult(
        document_id=document_id,
        lessons_created=created,
        teaching_days=teaching_days,
        used_fallback_titles=is_fallback_outline(chapters),
    )
