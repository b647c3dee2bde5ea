"""Repository functions for documents table.

Provides CRUD operations for the documents table. The lesson pointer is
readable here but has no writer: it is moved only by
curriculum.core.progress_sync.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field

import structlog

from curriculum.db.database import get_db

logger = structlog.get_logger(__name__)

INDEXING_STATUSES = ("pending", "running", "completed", "cancelled", "failed")


@dataclass(frozen=True)
class DocumentRecord:
    """Document record from database."""

    document_id: int
    title: str
    subject: str
    grade: str | None
    source_path: str
    sha256: str
    outline_summary: str | None
    chapters: list[dict] = field(default_factory=list)
    outline_method: str | None = None
    detected_language: str = "en"
    current_lesson_pointer: int = 1
    total_pages: int = 0
    indexed_pages: int = 0
    indexing_status: str = "pending"
    created_at: str = ""
    updated_at: str = ""


def insert_document(
    title: str,
    subject: str,
    grade: str | None,
    source_path: str,
    sha256: str,
    full_text: str,
    outline_summary: str | None,
    chapters: list[dict],
    outline_method: str | None,
    detected_language: str,
    total_pages: int,
    indexed_pages: int,
) -> int:
    """Insert a new document record.

    Args:
        title: Document title
        subject: Subject hint given at upload
        grade: Grade level (given or inferred), may be None
        source_path: Path to the stored source binary
        sha256: File hash
        full_text: Initial text (the analyzed sample)
        outline_summary: Short synopsis from structural analysis
        chapters: Ordered list of {"title", "context"} dicts
        outline_method: Strategy that produced the outline
        detected_language: "ar" or "en"
        total_pages: Page count of the source
        indexed_pages: Pages already contained in full_text

    Returns:
        The new document_id
    """
    status = "completed" if indexed_pages >= total_pages else "pending"

    with get_db() as conn:
        cursor = conn.execute(
            """
            INSERT INTO documents (
                title, subject, grade, source_path, sha256, full_text,
                outline_summary, chapters, outline_method, detected_language,
                total_pages, indexed_pages, indexing_status
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                title,
                subject,
                grade,
                source_path,
                sha256,
                full_text,
                outline_summary,
                json.dumps(chapters, ensure_ascii=False),
                outline_method,
                detected_language,
                total_pages,
                indexed_pages,
                status,
            ),
        )
        document_id = cursor.lastrowid

    logger.debug("documents.inserted", document_id=document_id, title=title)
    return document_id


def get_document(document_id: int) -> DocumentRecord | None:
    """Get document by ID.

    Returns:
        DocumentRecord if found, None otherwise
    """
    with get_db() as conn:
        row = conn.execute(
            "SELECT * FROM documents WHERE document_id = ?", (document_id,)
        ).fetchone()

    if row is None:
        return None

    return _row_to_record(row)


def get_document_by_sha256(sha256: str) -> DocumentRecord | None:
    """Get the most recent document ingested from a file with this hash."""
    with get_db() as conn:
        row = conn.execute(
            "SELECT * FROM documents WHERE sha256 = ? ORDER BY document_id DESC",
            (sha256,),
        ).fetchone()

    if row is None:
        return None

    return _row_to_record(row)


def list_documents() -> list[DocumentRecord]:
    """Get all documents, newest first."""
    with get_db() as conn:
        rows = conn.execute(
            "SELECT * FROM documents ORDER BY created_at DESC, document_id DESC"
        ).fetchall()

    return [_row_to_record(row) for row in rows]


def get_full_text(document_id: int) -> str | None:
    """Get the persisted full text of a document."""
    with get_db() as conn:
        row = conn.execute(
            "SELECT full_text FROM documents WHERE document_id = ?", (document_id,)
        ).fetchone()

    if row is None:
        return None

    return row["full_text"]


def append_full_text(document_id: int, text: str, indexed_pages: int) -> bool:
    """Append text to a document's full text.

    Reads the current value and writes the extended one back in the same
    transaction; existing text is never replaced.

    Args:
        document_id: Document to extend
        text: Text to append
        indexed_pages: Number of pages now contained in full_text

    Returns:
        True if the document exists, False otherwise
    """
    with get_db() as conn:
        row = conn.execute(
            "SELECT full_text FROM documents WHERE document_id = ?", (document_id,)
        ).fetchone()
        if row is None:
            return False

        conn.execute(
            """
            UPDATE documents SET
                full_text = ?,
                indexed_pages = ?,
                updated_at = datetime('now')
            WHERE document_id = ?
            """,
            ((row["full_text"] or "") + text, indexed_pages, document_id),
        )

    logger.debug(
        "documents.full_text_appended",
        document_id=document_id,
        chars=len(text),
        indexed_pages=indexed_pages,
    )
    return True


def update_indexing_status(document_id: int, status: str) -> None:
    """Update the deep indexing marker.

    Raises:
        ValueError: If status is not a known indexing status
    """
    if status not in INDEXING_STATUSES:
        raise ValueError(f"Invalid indexing status: {status}")

    with get_db() as conn:
        conn.execute(
            """
            UPDATE documents SET indexing_status = ?, updated_at = datetime('now')
            WHERE document_id = ?
            """,
            (status, document_id),
        )

    logger.debug("documents.indexing_status", document_id=document_id, status=status)


def update_outline(
    document_id: int,
    chapters: list[dict],
    outline_summary: str | None,
    grade: str | None,
    outline_method: str | None,
) -> None:
    """Rewrite the recovered structure (explicit re-ingestion only).

    Raises:
        ValueError: If document_id doesn't exist
    """
    with get_db() as conn:
        cursor = conn.execute(
            """
            UPDATE documents SET
                chapters = ?,
                outline_summary = ?,
                grade = COALESCE(?, grade),
                outline_method = ?,
                updated_at = datetime('now')
            WHERE document_id = ?
            """,
            (
                json.dumps(chapters, ensure_ascii=False),
                outline_summary,
                grade,
                outline_method,
                document_id,
            ),
        )

        if cursor.rowcount == 0:
            raise ValueError(f"Document not found: {document_id}")

    logger.debug("documents.outline_updated", document_id=document_id, chapters=len(chapters))


def delete_document(document_id: int) -> bool:
    """Delete document by ID (its lessons cascade).

    Returns:
        True if deleted, False if not found
    """
    with get_db() as conn:
        cursor = conn.execute(
            "DELETE FROM documents WHERE document_id = ?", (document_id,)
        )

    deleted = cursor.rowcount > 0
    if deleted:
        logger.debug("documents.deleted", document_id=document_id)

    return deleted


def _row_to_record(row) -> DocumentRecord:
    """Convert database row to DocumentRecord."""
    return DocumentRecord(
        document_id=row["document_id"],
        title=row["title"],
        subject=row["subject"],
        grade=row["grade"],
        source_path=row["source_path"],
        sha256=row["sha256"],
        outline_summary=row["outline_summary"],
        chapters=json.loads(row["chapters"]) if row["chapters"] else [],
        outline_method=row["outline_method"],
        detected_language=row["detected_language"],
        current_lesson_pointer=row["current_lesson_pointer"],
        total_pages=row["total_pages"],
        indexed_pages=row["indexed_pages"],
        indexing_status=row["indexing_status"],
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )
