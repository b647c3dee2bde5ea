"""Fixtures for F6 tests - Deep indexing."""

import tempfile
from pathlib import Path

import pytest

from curriculum.db.database import init_db
from curriculum.db.documents_repository import insert_document

# 40 words: above the deep indexing scanned-page threshold
FILLER = (
    "The quick brown fox jumps over the lazy dog while students read carefully "
    "and the teacher writes notes on the board about forces energy motion and "
    "waves so that every learner can follow the lesson plan for the whole week "
    "without missing any important idea today"
)


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
def make_book(temp_dir, test_db):
    """Factory: PDF of N numbered pages plus its stored document.

    Page k holds "Page k" followed by filler text; a page number listed in
    blank_pages is left without a text layer. The document is stored as if
    ingestion had already read indexed_pages pages.
    """
    import fitz

    def _make(
        page_count: int,
        indexed_pages: int = 0,
        blank_pages: tuple[int, ...] = (),
        name: str = "book.pdf",
    ) -> tuple[int, Path]:
        pdf_path = temp_dir / name
        doc = fitz.open()
        for number in range(1, page_count + 1):
            page = doc.new_page()
            if number not in blank_pages:
                page.insert_textbox(
                    fitz.Rect(50, 50, 545, 790),
                    f"Page {number}\n{FILLER}",
                    fontsize=10,
                )
        doc.save(str(pdf_path))
        doc.close()

        document_id = insert_document(
            title=pdf_path.stem,
            subject="Physics",
            grade=None,
            source_path=str(pdf_path),
            sha256="0" * 64,
            full_text="SAMPLE\n",
            outline_summary=None,
            chapters=[{"title": "General Content", "context": "Generated"}],
            outline_method="fallback",
            detected_language="en",
            total_pages=page_count,
            indexed_pages=indexed_pages,
        )
        return document_id, pdf_path

    return _make
