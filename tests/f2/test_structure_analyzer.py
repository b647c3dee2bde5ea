"""Tests for chapter detection (F2).

Chain: content service -> TOC patterns -> synthetic "General Content".
"""

from unittest.mock import MagicMock

import pytest

from curriculum.core.structure_analyzer import (
    AI_CONTEXT,
    FALLBACK_CONTEXT,
    FALLBACK_TITLE,
    TOC_CONTEXT,
    UNTITLED_LESSON,
    AnalysisRequest,
    ChapterEntry,
    ContentServiceStrategy,
    PatternStrategy,
    SyntheticFallbackStrategy,
    analyze_structure,
    chapters_from_dicts,
    default_strategies,
    fallback_chapter,
    is_fallback_outline,
    parse_toc_text,
)
from curriculum.llm.client import LLMConnectionError

ENGLISH_TOC = """Table of Contents
Chapter 1: Motion and Forces
Unit 2 - Work and Energy
Lesson 3: Waves
1. Introduction to Physics
Heat and Temperature ....... 42
just some ordinary body text here
"""

ARABIC_TOC = """الفهرس
الوحدة الأولى: الحركة والقوة
الفصل 2 - الطاقة والشغل
الدرس الثاني: الموجات
الموضوع: الحرارة
"""


@pytest.fixture
def mock_client():
    """Content service client returning a valid outline."""
    client = MagicMock()
    client.simple_json.return_value = {
        "chapters": [
            "Motion",
            {"title": "Energy", "page": 12},
            {"page": 30},
        ],
        "summary": "An introductory physics book.",
        "grade": "Grade 8",
    }
    return client


class TestParseTocText:
    """Tests for the deterministic pattern tier."""

    def test_english_patterns(self):
        chapters = parse_toc_text(ENGLISH_TOC, "en")
        titles = [c.title for c in chapters]

        assert titles == [
            "Chapter 1: Motion and Forces",
            "Unit 2 - Work and Energy",
            "Lesson 3: Waves",
            "1. Introduction to Physics",
            "Heat and Temperature ....... 42",
        ]
        assert all(c.context == TOC_CONTEXT for c in chapters)

    def test_arabic_patterns(self):
        chapters = parse_toc_text(ARABIC_TOC, "ar")
        titles = [c.title for c in chapters]

        assert titles == [
            "الوحدة الأولى: الحركة والقوة",
            "الفصل 2 - الطاقة والشغل",
            "الدرس الثاني: الموجات",
            "الموضوع: الحرارة",
        ]

    def test_english_patterns_ignore_arabic_headers(self):
        assert parse_toc_text(ARABIC_TOC, "en") == []

    def test_title_length_bounds(self):
        """Titles must be longer than 5 and shorter than 100 characters."""
        text = "\n".join(
            [
                "2. Ab",  # 5 characters: rejected
                "3. Abc",  # 6 characters: kept
                "Chapter 4: " + "x" * 100,  # too long
            ]
        )
        titles = [c.title for c in parse_toc_text(text, "en")]

        assert titles == ["3. Abc"]

    def test_no_matches(self):
        assert parse_toc_text("Nothing that looks like a heading", "en") == []


class TestContentServiceStrategy:
    """Tests for the content service tier."""

    def test_maps_strings_and_objects(self, mock_client):
        strategy = ContentServiceStrategy(mock_client)

        outline = strategy.analyze(AnalysisRequest(text="sample", subject="Physics"))

        assert outline.method == "content_service"
        assert outline.chapters == [
            ChapterEntry(title="Motion", context=AI_CONTEXT),
            ChapterEntry(title="Energy", context=f"{AI_CONTEXT} - Page 12"),
            ChapterEntry(title=UNTITLED_LESSON, context=f"{AI_CONTEXT} - Page 30"),
        ]
        assert outline.grade == "Grade 8"
        assert outline.summary == "An introductory physics book."

    def test_sample_is_truncated(self, mock_client):
        strategy = ContentServiceStrategy(mock_client, char_budget=100)

        strategy.analyze(AnalysisRequest(text="a" * 500 + "TAIL"))

        user_message = mock_client.simple_json.call_args.kwargs["user_message"]
        assert "a" * 100 in user_message
        assert "a" * 101 not in user_message
        assert "TAIL" not in user_message

    def test_grade_from_metadata(self):
        client = MagicMock()
        client.simple_json.return_value = {
            "chapters": ["Algebra"],
            "metadata": {"grade": "Grade 10"},
        }

        outline = ContentServiceStrategy(client).analyze(AnalysisRequest(text="x"))

        assert outline.grade == "Grade 10"

    def test_missing_or_empty_chapters(self):
        client = MagicMock()
        strategy = ContentServiceStrategy(client)

        client.simple_json.return_value = {"summary": "no chapters"}
        assert strategy.analyze(AnalysisRequest(text="x")) is None

        client.simple_json.return_value = {"chapters": []}
        assert strategy.analyze(AnalysisRequest(text="x")) is None

    def test_unreachable_service_is_skipped(self, mock_client):
        mock_client.is_available.return_value = False

        assert ContentServiceStrategy(mock_client).analyze(AnalysisRequest(text="x")) is None
        mock_client.simple_json.assert_not_called()

    def test_retries_with_backoff(self):
        client = MagicMock()
        client.simple_json.side_effect = LLMConnectionError("offline")
        sleep = MagicMock()

        strategy = ContentServiceStrategy(
            client, max_retries=2, retry_backoff_seconds=1.0, sleep=sleep
        )

        assert strategy.analyze(AnalysisRequest(text="x")) is None
        assert client.simple_json.call_count == 3
        assert [c.args[0] for c in sleep.call_args_list] == [1.0, 2.0]

    def test_recovers_after_transient_error(self, mock_client):
        mock_client.simple_json.side_effect = [
            LLMConnectionError("timeout"),
            mock_client.simple_json.return_value,
        ]
        strategy = ContentServiceStrategy(mock_client, sleep=MagicMock())

        outline = strategy.analyze(AnalysisRequest(text="x"))

        assert outline is not None
        assert len(outline.chapters) == 3


class TestAnalyzeStructure:
    """Tests for the full strategy chain."""

    def test_service_wins(self, mock_client):
        request = AnalysisRequest(text=ENGLISH_TOC, language="en")

        outline, report = analyze_structure(request, default_strategies(mock_client))

        assert report.method_used == "content_service"
        assert outline.chapters[0].title == "Motion"

    def test_falls_back_to_patterns(self):
        client = MagicMock()
        client.simple_json.side_effect = LLMConnectionError("offline")
        request = AnalysisRequest(text=ENGLISH_TOC, language="en")

        outline, report = analyze_structure(
            request,
            default_strategies(client, max_retries=0),
        )

        assert report.method_used == "pattern"
        assert len(outline.chapters) == 5
        assert [a["strategy"] for a in report.attempts] == ["content_service", "pattern"]
        assert report.attempts[0]["result"] == "empty"

    def test_sentinel_when_nothing_found(self):
        """Service failure and zero pattern matches give one sentinel chapter."""
        client = MagicMock()
        client.simple_json.side_effect = LLMConnectionError("offline")
        request = AnalysisRequest(text="plain prose without headings", language="en")

        outline, report = analyze_structure(
            request,
            default_strategies(client, max_retries=0),
        )

        assert report.method_used == "fallback"
        assert outline.chapters == [
            ChapterEntry(title=FALLBACK_TITLE, context=FALLBACK_CONTEXT)
        ]
        assert outline.is_fallback

    def test_default_chain_without_client(self):
        outline, report = analyze_structure(AnalysisRequest(text=ENGLISH_TOC))

        assert report.method_used == "pattern"
        assert report.attempts[0]["strategy"] == "pattern"

    def test_strategy_exception_is_contained(self):
        broken = MagicMock()
        broken.name = "broken"
        broken.analyze.side_effect = RuntimeError("boom")

        outline, report = analyze_structure(
            AnalysisRequest(text=ENGLISH_TOC),
            [broken, PatternStrategy(), SyntheticFallbackStrategy()],
        )

        assert report.method_used == "pattern"
        assert report.attempts[0] == {"strategy": "broken", "result": "error", "error": "boom"}

    def test_chain_without_terminal_tier_still_returns_sentinel(self):
        outline, report = analyze_structure(
            AnalysisRequest(text="no headings"),
            [PatternStrategy()],
        )

        assert outline.is_fallback
        assert report.method_used == "fallback"


class TestChapterHelpers:
    """Tests for chapter helpers."""

    def test_fallback_detection(self):
        assert is_fallback_outline([fallback_chapter()])
        assert not is_fallback_outline([fallback_chapter(), fallback_chapter()])
        assert not is_fallback_outline([ChapterEntry("General Content", TOC_CONTEXT)])
        assert not is_fallback_outline([])

    def test_roundtrip_dicts(self):
        chapters = [ChapterEntry("Motion", AI_CONTEXT), fallback_chapter()]

        assert chapters_from_dicts([c.to_dict() for c in chapters]) == chapters
