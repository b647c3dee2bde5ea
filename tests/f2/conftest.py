"""Fixtures for F2 tests - Document ingestion."""

import tempfile
from pathlib import Path

import pytest

from curriculum.db.database import init_db

# 40 words: comfortably above both scanned-page thresholds
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
def data_dir(temp_dir):
    """Create data directory structure."""
    data = temp_dir / "data"
    data.mkdir()
    return data


@pytest.fixture
def test_db(temp_dir):
    """Initialize test database."""
    db_path = temp_dir / "db" / "curriculum.db"
    init_db(db_path)
    return db_path


@pytest.fixture
def make_pdf(temp_dir):
    """Factory: build a PDF whose pages hold the given texts ("" = blank page)."""
    import fitz

    def _make(pages: list[str], name: str = "book.pdf") -> Path:
        pdf_path = temp_dir / name
        doc = fitz.open()
        for text in pages:
            page = doc.new_page()
            if text:
                page.insert_textbox(fitz.Rect(50, 50, 545, 790), text, fontsize=10)
        doc.save(str(pdf_path))
        doc.close()
        return pdf_path

    return _make


@pytest.fixture
def toc_pdf(make_pdf):
    """Three-page PDF whose first page is an English table of contents."""
    toc = "\n".join(
        [
            "Contents",
            "Chapter 1: Motion and Forces",
            "Chapter 2: Work and Energy",
            "Chapter 3: Waves and Sound",
            FILLER,
        ]
    )
    return make_pdf([toc, FILLER, FILLER])
