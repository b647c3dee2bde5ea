"""Full backup and restore of documents and lessons.

A snapshot is a JSON object with two required lists, "documents" and
"lessons". Restore validates the whole file before touching the database,
then replaces both tables in a single transaction.
"""

from __future__ import annotations

import json
import sqlite3
from datetime import datetime, timezone
from typing import Any

import structlog

from curriculum.core.language_detector import SUPPORTED_LANGUAGES
from curriculum.db.database import get_db
from curriculum.db.documents_repository import INDEXING_STATUSES
from curriculum.db.lessons_repository import LESSON_STATUSES

logger = structlog.get_logger(__name__)

BACKUP_VERSION = 1

DOCUMENT_COLUMNS = (
    "document_id",
    "title",
    "subject",
    "grade",
    "source_path",
    "sha256",
    "full_text",
    "outline_summary",
    "chapters",
    "outline_method",
    "detected_language",
    "current_lesson_pointer",
    "total_pages",
    "indexed_pages",
    "indexing_status",
    "created_at",
    "updated_at",
)
DOCUMENT_REQUIRED = ("document_id", "title", "source_path", "sha256", "chapters")

LESSON_COLUMNS = (
    "lesson_id",
    "document_id",
    "date",
    "title",
    "content_context",
    "status",
    "week_number",
    "created_at",
)
LESSON_REQUIRED = ("lesson_id", "document_id", "date", "title", "week_number")

# NOT NULL text columns; optional ones fall back to their default when absent
DOCUMENT_TEXT_FIELDS = ("title", "source_path", "sha256", "subject", "full_text")
LESSON_TEXT_FIELDS = ("title", "content_context")


class BackupFormatError(Exception):
    """Raised when a backup file cannot be restored."""

    pass


def export_backup() -> dict[str, Any]:
    """Snapshot every document and lesson.

    Chapters are exported as lists, not as their stored JSON text.
    """
    with get_db() as conn:
        documents = [dict(row) for row in conn.execute(
            "SELECT * FROM documents ORDER BY document_id"
        ).fetchall()]
        lessons = [dict(row) for row in conn.execute(
            "SELECT * FROM lessons ORDER BY lesson_id"
        ).fetchall()]

    for document in documents:
        document["chapters"] = json.loads(document["chapters"] or "[]")

    logger.info("backup.exported", documents=len(documents), lessons=len(lessons))

    return {
        "version": BACKUP_VERSION,
        "exported_at": datetime.now(timezone.utc).isoformat(),
        "documents": documents,
        "lessons": lessons,
    }


def validate_backup(data: Any) -> None:
    """Check a snapshot can be restored.

    Every value that the database would refuse is rejected here, so a
    snapshot that validates can be written as-is.

    Raises:
        BackupFormatError: On a missing key, a non-list value, a record
            without its required fields, a value outside its column's
            constraints or a lesson without its document
    """
    if not isinstance(data, dict):
        raise BackupFormatError("Backup must be a JSON object")

    for key in ("documents", "lessons"):
        if key not in data:
            raise BackupFormatError(f"Invalid backup file: missing '{key}'")
        if not isinstance(data[key], list):
            raise BackupFormatError(f"Invalid backup file: '{key}' must be a list")

    document_ids: set[int] = set()
    for i, document in enumerate(data["documents"]):
        label = f"documents[{i}]"
        _require(document, DOCUMENT_REQUIRED, label)
        document_id = _require_id(document, "document_id", label, document_ids)
        _require_text(document, DOCUMENT_TEXT_FIELDS, label)
        if not isinstance(document["chapters"], list):
            raise BackupFormatError(f"{label}.chapters must be a list")

        language = document.get("detected_language", "en")
        if language not in SUPPORTED_LANGUAGES:
            raise BackupFormatError(f"{label} has invalid detected_language {language!r}")

        pointer = document.get("current_lesson_pointer", 1)
        if not _is_int(pointer) or pointer < 1:
            raise BackupFormatError(
                f"{label}.current_lesson_pointer must be an integer >= 1, got {pointer!r}"
            )

        for field_name in ("total_pages", "indexed_pages"):
            value = document.get(field_name, 0)
            if not _is_int(value) or value < 0:
                raise BackupFormatError(
                    f"{label}.{field_name} must be a non-negative integer, got {value!r}"
                )

        indexing_status = document.get("indexing_status", "pending")
        if indexing_status not in INDEXING_STATUSES:
            raise BackupFormatError(
                f"{label} has invalid indexing_status {indexing_status!r}"
            )

        document_ids.add(document_id)

    lesson_ids: set[int] = set()
    for i, lesson in enumerate(data["lessons"]):
        label = f"lessons[{i}]"
        _require(lesson, LESSON_REQUIRED, label)
        lesson_ids.add(_require_id(lesson, "lesson_id", label, lesson_ids))
        _require_text(lesson, LESSON_TEXT_FIELDS, label)
        if lesson["document_id"] not in document_ids:
            raise BackupFormatError(
                f"{label} references unknown document {lesson['document_id']}"
            )
        status = lesson.get("status", "pending")
        if status not in LESSON_STATUSES:
            raise BackupFormatError(f"{label} has invalid status {status!r}")
        if not _is_int(lesson["week_number"]):
            raise BackupFormatError(
                f"{label}.week_number must be an integer, got {lesson['week_number']!r}"
            )
        try:
            datetime.strptime(str(lesson["date"]), "%Y-%m-%d")
        except ValueError as e:
            raise BackupFormatError(f"{label} has invalid date {lesson['date']!r}") from e


def restore_backup(data: Any) -> dict[str, int]:
    """Replace all documents and lessons with a snapshot.

    Returns:
        Counts of restored documents and lessons

    Raises:
        BackupFormatError: If the snapshot is invalid (nothing is written)
    """
    validate_backup(data)

    document_rows = [_document_row(d) for d in data["documents"]]
    lesson_rows = [_lesson_row(lesson) for lesson in data["lessons"]]

    try:
        with get_db() as conn:
            conn.execute("DELETE FROM lessons")
            conn.execute("DELETE FROM documents")
            conn.executemany(
                f"INSERT INTO documents ({', '.join(DOCUMENT_COLUMNS)}) "
                f"VALUES ({', '.join('?' for _ in DOCUMENT_COLUMNS)})",
                document_rows,
            )
            conn.executemany(
                f"INSERT INTO lessons ({', '.join(LESSON_COLUMNS)}) "
                f"VALUES ({', '.join('?' for _ in LESSON_COLUMNS)})",
                lesson_rows,
            )
    except sqlite3.IntegrityError as e:
        # get_db rolled the transaction back
        logger.warning("backup.restore_rejected", error=str(e))
        raise BackupFormatError(f"Backup violates database constraints: {e}") from e

    logger.info("backup.restored", documents=len(document_rows), lessons=len(lesson_rows))
    return {"documents": len(document_rows), "lessons": len(lesson_rows)}


def _require(record: Any, fields: tuple[str, ...], label: str) -> None:
    if not isinstance(record, dict):
        raise BackupFormatError(f"{label} must be an object")
    missing = [f for f in fields if f not in record]
    if missing:
        raise BackupFormatError(f"{label} is missing {', '.join(missing)}")


def _is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def _require_id(record: dict[str, Any], field_name: str, label: str, seen: set[int]) -> int:
    value = record[field_name]
    if not _is_int(value):
        raise BackupFormatError(f"{label}.{field_name} must be an integer, got {value!r}")
    if value in seen:
        raise BackupFormatError(f"{label} has duplicate {field_name} {value}")
    return value


def _require_text(record: dict[str, Any], fields: tuple[str, ...], label: str) -> None:
    for field_name in fields:
        if field_name in record and not isinstance(record[field_name], str):
            raise BackupFormatError(f"{label}.{field_name} must be a string")


def _document_row(document: dict[str, Any]) -> tuple:
    now = datetime.now(timezone.utc).strftime("%Y-%m-%d %H:%M:%S")
    defaults = {
        "subject": "",
        "grade": None,
        "full_text": "",
        "outline_summary": None,
        "outline_method": None,
        "detected_language": "en",
        "current_lesson_pointer": 1,
        "total_pages": 0,
        "indexed_pages": 0,
        "indexing_status": "pending",
        "created_at": now,
        "updated_at": now,
    }
    values = {**defaults, **document}
    values["chapters"] = json.dumps(document["chapters"], ensure_ascii=False)
    # Tasks of the previous process are gone
    if values["indexing_status"] == "running":
        values["indexing_status"] = "pending"
    return tuple(values[column] for column in DOCUMENT_COLUMNS)


def _lesson_row(lesson: dict[str, Any]) -> tuple:
    defaults = {
        "content_context": "",
        "status": "pending",
        "created_at": datetime.now(timezone.utc).strftime("%Y-%m-%d %H:%M:%S"),
    }
    values = {**defaults, **lesson}
    values["date"] = str(lesson["date"])[:10]
    return tuple(values[column] for column in LESSON_COLUMNS)
