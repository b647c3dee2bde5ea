"""Fixtures for F9 tests - Web API."""

import tempfile
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from curriculum.db.database import init_db
from curriculum.web.api import create_app
from curriculum.web.routes.documents import get_data_dir, get_llm_client

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
def client(temp_dir):
    """Test client on a temporary database, without the content service."""
    init_db(temp_dir / "db" / "web.db")
    app = create_app()
    app.dependency_overrides[get_llm_client] = lambda: None
    app.dependency_overrides[get_data_dir] = lambda: temp_dir / "data"
    return TestClient(app)


@pytest.fixture
def toc_pdf_bytes():
    """Three-page PDF whose first page lists three chapters."""
    import fitz

    toc = "\n".join(
        [
            "Contents",
            "Chapter 1: Motion and Forces",
            "Chapter 2: Work and Energy",
            "Chapter 3: Waves and Sound",
            FILLER,
        ]
    )
    doc = fitz.open()
    for text in (toc, FILLER, FILLER):
        page = doc.new_page()
        page.insert_textbox(fitz.Rect(50, 50, 545, 790), text, fontsize=10)
    data = doc.tobytes()
    doc.close()
    return data


@pytest.fixture
def document_id(client, toc_pdf_bytes):
    """Document uploaded through the API."""
    response = client.post(
        "/api/documents",
        files={"file": ("physics.pdf", toc_pdf_bytes, "application/pdf")},
        data={"title": "Physics 8", "subject": "Physics"},
    )
    assert response.status_code == 201, response.text
    return response.json()["document"]["document_id"]


@pytest.fixture
def scheduled(client, document_id):
    """Mon/Wed lessons from 2024-09-02 to 2024-09-15 (4 lessons)."""
    response = client.post(
        f"/api/documents/{document_id}/schedule",
        json={
            "start_date": "2024-09-02",
            "end_date": "2024-09-15",
            "weekdays": ["mon", "wed"],
        },
    )
    assert response.status_code == 200, response.text
    return document_id
