"""Fixtures for F3 tests - Scheduling."""

import tempfile
from pathlib import Path

import pytest

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
def make_document(test_db):
    """Factory: insert a document with the given chapters."""

    def _make(chapters: list[dict], language: str = "en") -> int:
        return insert_document(
            title="Test Book",
            subject="Science",
            grade=None,
            source_path="/tmp/source.pdf",
            sha256="0" * 64,
            full_text="sample",
            outline_summary=None,
            chapters=chapters,
            outline_method="pattern",
            detected_language=language,
            total_pages=3,
            indexed_pages=3,
        )

    return _make


@pytest.fixture
def three_chapters():
    return [
        {"title": "Chapter 1: Motion", "context": "Extracted from TOC"},
        {"title": "Chapter 2: Energy", "context": "Extracted from TOC"},
        {"title": "Chapter 3: Waves", "context": "Extracted from TOC"},
    ]
