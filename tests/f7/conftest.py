"""Fixtures for F7 tests - Calendar export and backup."""

import tempfile
from datetime import date
from pathlib import Path

import pytest

from curriculum.core.lesson_distributor import regenerate_schedule
from curriculum.core.schedule_generator import ScheduleConfig
from curriculum.db.database import init_db
from curriculum.db.documents_repository import insert_document


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


@pytest.fixture
def scheduled_document(test_db):
    """Three-chapter document with Mon/Wed lessons over two weeks (4 lessons)."""
    document_id = insert_document(
        title="Physics 8",
        subject="Physics",
        grade="8",
        source_path="/tmp/physics.pdf",
        sha256="a" * 64,
        full_text="Chapter 1: Motion\nChapter 2: Energy\nChapter 3: Waves\n",
        outline_summary="Mechanics and waves",
        chapters=[
            {"title": "Chapter 1: Motion", "context": "Extracted from TOC"},
            {"title": "Chapter 2: Energy", "context": "Extracted from TOC"},
            {"title": "Chapter 3: Waves", "context": "Extracted from TOC"},
        ],
        outline_method="pattern",
        detected_language="en",
        total_pages=40,
        indexed_pages=15,
    )
    regenerate_schedule(
        document_id,
        ScheduleConfig(date(2024, 9, 2), date(2024, 9, 15), {1, 3}),
    )
    return document_id
