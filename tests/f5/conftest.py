"""Fixtures for F5 tests - Progress synchronization."""

import tempfile
from datetime import date
from pathlib import Path

import pytest

from curriculum.core.lesson_distributor import regenerate_schedule
from curriculum.core.schedule_generator import ScheduleConfig
from curriculum.db.database import init_db
from curriculum.db.documents_repository import insert_document
from curriculum.db.lessons_repository import list_lessons


@pytest.fixture
def temp_dir():
    """Create a temporary directory for test data."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def test_db(temp_dir):
    """Initialize test database."""
    db_path = temp_dir / "db" / "curriculum.db"
    init_db(db_path)
    return db_path


def _insert(title: str) -> int:
    return insert_document(
        title=title,
        subject="Science",
        grade=None,
        source_path="/tmp/source.pdf",
        sha256="0" * 64,
        full_text="sample",
        outline_summary=None,
        chapters=[
            {"title": "Chapter 1: Motion", "context": "Extracted from TOC"},
            {"title": "Chapter 2: Energy", "context": "Extracted from TOC"},
            {"title": "Chapter 3: Waves", "context": "Extracted from TOC"},
        ],
        outline_method="pattern",
        detected_language="en",
        total_pages=3,
        indexed_pages=3,
    )


@pytest.fixture
def scheduled_document(test_db):
    """Document with six lessons: Mon/Wed from 2024-09-02 to 2024-09-18.

    Lesson dates: 09-02, 09-04, 09-09, 09-11, 09-16, 09-18.
    """
    document_id = _insert("Physics 8")
    regenerate_schedule(
        document_id,
        ScheduleConfig(date(2024, 9, 2), date(2024, 9, 18), {1, 3}),
    )
    return document_id


@pytest.fixture
def lessons(scheduled_document):
    """Lessons of the scheduled document, in date order."""
    return list_lessons(scheduled_document)


@pytest.fixture
def other_document(test_db):
    """A second scheduled document."""
    document_id = _insert("Chemistry 8")
    regenerate_schedule(
        document_id,
        ScheduleConfig(date(2024, 9, 2), date(2024, 9, 6), {1, 3}),
    )
    return document_id
