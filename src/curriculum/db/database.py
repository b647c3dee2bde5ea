"""SQLite database connection and schema management.

Provides connection management and schema initialization for the curriculum
pipeline. Every `get_db()` block is one transaction: it commits when the
block exits normally and rolls back when it raises.
"""

from __future__ import annotations

import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Generator

import structlog

logger = structlog.get_logger(__name__)

# Default database location
DEFAULT_DB_PATH = Path("db/curriculum.db")

# Current database path (module-level; one per process)
_db_path: Path | None = None


def init_db(db_path: Path | None = None) -> None:
    """Initialize database with schema.

    Creates the database file and all required tables if they don't exist.

    Args:
        db_path: Path to database file. Defaults to db/curriculum.db
    """
    global _db_path
    _db_path = db_path or DEFAULT_DB_PATH

    # Ensure directory exists
    _db_path.parent.mkdir(parents=True, exist_ok=True)

    with get_db() as conn:
        _create_schema(conn)

    logger.info("database.initialized", path=str(_db_path))


def get_db_path() -> Path:
    """Return the database file currently in use."""
    return _db_path or DEFAULT_DB_PATH


@contextmanager
def get_db() -> Generator[sqlite3.Connection, None, None]:
    """Get database connection as context manager.

    Yields:
        SQLite connection with row factory set to sqlite3.Row

    Example:
        with get_db() as conn:
            cursor = conn.execute("SELECT * FROM documents")
            rows = cursor.fetchall()
    """
    db_path = get_db_path()

    # Ensure directory exists
    db_path.parent.mkdir(parents=True, exist_ok=True)

    conn = sqlite3.connect(db_path, timeout=30)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA foreign_keys = ON")

    try:
        yield conn
        conn.commit()
    except Exception:
        conn.rollback()
        raise
    finally:
        conn.close()


def _create_schema(conn: sqlite3.Connection) -> None:
    """Create database schema.

    Uses IF NOT EXISTS for idempotency.
    """
    conn.executescript(
        """
        -- One row per ingested textbook.
        -- full_text is append-only after creation.
        CREATE TABLE IF NOT EXISTS documents (
            document_id INTEGER PRIMARY KEY AUTOINCREMENT,
            title TEXT NOT NULL,
            subject TEXT NOT NULL DEFAULT '',
            grade TEXT,
            source_path TEXT NOT NULL,
            sha256 TEXT NOT NULL,
            full_text TEXT NOT NULL DEFAULT '',
            outline_summary TEXT,
            chapters TEXT NOT NULL DEFAULT '[]',
            outline_method TEXT,
            detected_language TEXT NOT NULL DEFAULT 'en'
                CHECK(detected_language IN ('ar', 'en')),
            current_lesson_pointer INTEGER NOT NULL DEFAULT 1
                CHECK(current_lesson_pointer >= 1),
            total_pages INTEGER NOT NULL DEFAULT 0,
            indexed_pages INTEGER NOT NULL DEFAULT 0,
            indexing_status TEXT NOT NULL DEFAULT 'pending'
                CHECK(indexing_status IN ('pending', 'running', 'completed', 'cancelled', 'failed')),
            created_at TEXT NOT NULL DEFAULT (datetime('now')),
            updated_at TEXT NOT NULL DEFAULT (datetime('now'))
        );

        -- Lessons are written in bulk per document by schedule regeneration
        CREATE TABLE IF NOT EXISTS lessons (
            lesson_id INTEGER PRIMARY KEY AUTOINCREMENT,
            document_id INTEGER NOT NULL
                REFERENCES documents(document_id) ON DELETE CASCADE,
            date TEXT NOT NULL,
            title TEXT NOT NULL,
            content_context TEXT NOT NULL DEFAULT '',
            status TEXT NOT NULL DEFAULT 'pending'
                CHECK(status IN ('pending', 'planned', 'completed', 'skipped')),
            week_number INTEGER NOT NULL,
            created_at TEXT NOT NULL DEFAULT (datetime('now'))
        );

        CREATE INDEX IF NOT EXISTS idx_documents_sha256 ON documents(sha256);
        CREATE INDEX IF NOT EXISTS idx_lessons_document_date ON lessons(document_id, date);
        CREATE INDEX IF NOT EXISTS idx_lessons_status ON lessons(status);
        """
    )
