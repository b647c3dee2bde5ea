"""Fixtures for F8 tests - Configuration and CLI."""

import pytest

from curriculum.config.app_config import clear_config_cache

# 40 words: comfortably above both scanned-page thresholds
FILLER = (
    "The quick brown fox jumps over the lazy dog while students read carefully "
    "and the teacher writes notes on the board about forces energy motion and "
    "waves so that every learner can follow the lesson plan for the whole week "
    "without missing any important idea today"
)


@pytest.fixture
def workdir(tmp_path, monkeypatch):
    """Run in an empty directory so data/ and db/ resolve inside it."""
    monkeypatch.chdir(tmp_path)
    clear_config_cache()
    yield tmp_path
    clear_config_cache()


@pytest.fixture
def make_pdf(workdir):
    """Factory: build a PDF whose pages hold the given texts."""
    import fitz

    def _make(pages: list[str], name: str = "book.pdf"):
        pdf_path = workdir / name
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
    """Three-page PDF whose first page lists three chapters."""
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
