"""Classroom progress synchronization.

The teacher marks "I am actually here" on a lesson; the document's lesson
pointer follows, so the schedule reflects real classroom pace without
deleting or reordering any lesson.

- sync_progress: the only write path for current_lesson_pointer
- select_active_lesson: "what is today's lesson" / "what is next"
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import Literal

import structlog

from curriculum.db.database import get_db
from curriculum.db.documents_repository import get_document
from curriculum.db.lessons_repository import LessonRecord, get_lesson, list_lessons

logger = structlog.get_logger(__name__)

ActiveKind = Literal["today", "next"]


@dataclass
class SyncResult:
    """Outcome of a progress sync."""

    document_id: int
    lesson_id: int
    position: int
    previous_pointer: int
    current_pointer: int
    status: str


@dataclass
class ActiveLesson:
    """The lesson the teacher should look at now."""

    lesson: LessonRecord
    kind: ActiveKind


class ProgressSyncError(Exception):
    """Raised when a sync request is invalid."""

    pass


def sync_progress(document_id: int, lesson_id: int) -> SyncResult:
    """Move the document's pointer to a lesson.

    The pointer becomes the lesson's 1-based position in the date-sorted
    lesson list; it never moves backwards. A pending lesson becomes planned.

    Raises:
        ProgressSyncError: If the document or lesson doesn't exist, or the
            lesson belongs to another document
    """
    document = get_document(document_id)
    if document is None:
        raise ProgressSyncError(f"Document not found: {document_id}")

    lesson = get_lesson(lesson_id)
    if lesson is None:
        raise ProgressSyncError(f"Lesson not found: {lesson_id}")
    if lesson.document_id != document_id:
        raise ProgressSyncError(
            f"Lesson {lesson_id} belongs to document {lesson.document_id}, not {document_id}"
        )

    ordered_ids = [item.lesson_id for item in list_lessons(document_id)]
    position = ordered_ids.index(lesson_id) + 1

    new_status = "planned" if lesson.status == "pending" else lesson.status

    with get_db() as conn:
        row = conn.execute(
            "SELECT current_lesson_pointer FROM documents WHERE document_id = ?",
            (document_id,),
        ).fetchone()
        previous = row["current_lesson_pointer"]
        pointer = max(previous, position)

        conn.execute(
            """
            UPDATE documents SET current_lesson_pointer = ?, updated_at = datetime('now')
            WHERE document_id = ?
            """,
            (pointer, document_id),
        )
        if new_status != lesson.status:
            conn.execute(
                "UPDATE lessons SET status = ? WHERE lesson_id = ?",
                (new_status, lesson_id),
            )

    if position < previous:
        logger.warning(
            "progress_sync.behind_pointer",
            document_id=document_id,
            position=position,
            pointer=previous,
        )

    logger.info(
        "progress_sync.synced",
        document_id=document_id,
        lesson_id=lesson_id,
        position=position,
        pointer=pointer,
        status=new_status,
    )

    return SyncResult(
        document_id=document_id,
        lesson_id=lesson_id,
        position=position,
        previous_pointer=previous,
        current_pointer=pointer,
        status=new_status,
    )


def select_active_lesson(document_id: int, today: date | None = None) -> ActiveLesson | None:
    """Find today's lesson, or the next one.

    Pending lessons are sorted by date and the first pointer - 1 are skipped
    (already behind the teacher). Among the rest, an exact match on today
    wins; otherwise the earliest future lesson is returned.

    Returns:
        ActiveLesson, or None if no pending lesson remains ahead
    """
    document = get_document(document_id)
    if document is None:
        return None

    today = today or date.today()
    pending = list_lessons(document_id, status="pending")
    remaining = pending[document.current_lesson_pointer - 1 :]

    for lesson in remaining:
        if lesson.date == today:
            return ActiveLesson(lesson=lesson, kind="today")

    for lesson in remaining:
        if lesson.date > today:
            return ActiveLesson(lesson=lesson, kind="next")

    return None
