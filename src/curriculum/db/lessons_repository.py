"""Repository functions for lessons table.

Lessons are created and destroyed in bulk per document by
`replace_lessons`; afterwards only their status changes.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import Any, Iterable

import structlog

from curriculum.db.database import get_db

logger = structlog.get_logger(__name__)

LESSON_STATUSES = ("pending", "planned", "completed", "skipped")


@dataclass(frozen=True)
class LessonRecord:
    """Lesson record from database."""

    lesson_id: int
    document_id: int
    date: date
    title: str
    content_context: str
    status: str
    week_number: int
    created_at: str = ""


def replace_lessons(document_id: int, drafts: Iterable[Any]) -> int:
    """Replace every lesson of a document in one transaction.

    Deletes all existing lessons for the document and inserts the new set;
    readers never observe a partial schedule.

    Args:
        document_id: Owning document
        drafts: Objects with date, title, content_context and week_number

    Returns:
        Number of lessons inserted
    """
    rows = [
        (
            document_id,
            draft.date.isoformat(),
            draft.title,
            draft.content_context,
            "pending",
            draft.week_number,
        )
        for draft in drafts
    ]

    with get_db() as conn:
        deleted = conn.execute(
            "DELETE FROM lessons WHERE document_id = ?", (document_id,)
        ).rowcount
        conn.executemany(
            """
            INSERT INTO lessons (
                document_id, date, title, content_context, status, week_number
            ) VALUES (?, ?, ?, ?, ?, ?)
            """,
            rows,
        )

    logger.info(
        "lessons.replaced",
        document_id=document_id,
        deleted=deleted,
        inserted=len(rows),
    )
    return len(rows)


def list_lessons(document_id: int, status: str | None = None) -> list[LessonRecord]:
    """Get the lessons of a document sorted by date (ties by id).

    Args:
        document_id: Owning document
        status: Optional status filter
    """
    query = "SELECT * FROM lessons WHERE document_id = ?"
    params: list[Any] = [document_id]
    if status is not None:
        query += " AND status = ?"
        params.append(status)
    query += " ORDER BY date ASC, lesson_id ASC"

    with get_db() as conn:
        rows = conn.execute(query, params).fetchall()

    return [_row_to_record(row) for row in rows]


def list_all_lessons() -> list[LessonRecord]:
    """Get every lesson of every document."""
    with get_db() as conn:
        rows = conn.execute(
            "SELECT * FROM lessons ORDER BY document_id ASC, date ASC, lesson_id ASC"
        ).fetchall()

    return [_row_to_record(row) for row in rows]


def get_lesson(lesson_id: int) -> LessonRecord | None:
    """Get lesson by ID."""
    with get_db() as conn:
        row = conn.execute(
            "SELECT * FROM lessons WHERE lesson_id = ?", (lesson_id,)
        ).fetchone()

    if row is None:
        return None

    return _row_to_record(row)


def update_lesson_status(lesson_id: int, status: str) -> bool:
    """Update lesson status.

    Args:
        lesson_id: Lesson to update
        status: One of pending, planned, completed, skipped

    Returns:
        True if updated, False if the lesson doesn't exist

    Raises:
        ValueError: If status is not a valid lesson status
    """
    if status not in LESSON_STATUSES:
        raise ValueError(
            f"Invalid lesson status: {status} (expected one of {', '.join(LESSON_STATUSES)})"
        )

    with get_db() as conn:
        cursor = conn.execute(
            "UPDATE lessons SET status = ? WHERE lesson_id = ?",
            (status, lesson_id),
        )

    updated = cursor.rowcount > 0
    if updated:
        logger.debug("lessons.status_updated", lesson_id=lesson_id, status=status)

    return updated


def _row_to_record(row) -> LessonRecord:
    """Convert database row to LessonRecord."""
    return LessonRecord(
        lesson_id=row["lesson_id"],
        document_id=row["document_id"],
        date=date.fromisoformat(row["date"]),
        title=row["title"],
        content_context=row["content_context"],
        status=row["status"],
        week_number=row["week_number"],
        created_at=row["created_at"],
    )
