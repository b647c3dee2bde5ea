"""Pydantic schemas for the Web API.

Serialization models for documents, lessons, schedules and backups.
"""

from __future__ import annotations

import datetime as dt
from typing import Literal

from pydantic import BaseModel, Field


# =============================================================================
# DOCUMENT SCHEMAS
# =============================================================================


class ChapterResponse(BaseModel):
    """One chapter of a document outline."""

    title: str
    context: str


class DocumentSummary(BaseModel):
    """Document entry in a list."""

    document_id: int
    title: str
    subject: str
    grade: str | None = None
    detected_language: str
    total_chapters: int
    current_lesson_pointer: int
    indexing_status: str


class DocumentDetail(BaseModel):
    """Full document with its outline."""

    document_id: int
    title: str
    subject: str
    grade: str | None = None
    detected_language: str
    outline_summary: str | None = None
    outline_method: str | None = None
    chapters: list[ChapterResponse]
    current_lesson_pointer: int
    total_pages: int
    indexed_pages: int
    indexing_status: str
    created_at: str
    updated_at: str


class DocumentListResponse(BaseModel):
    """Response for list of documents."""

    documents: list[DocumentSummary]
    count: int


class AnalysisAttempt(BaseModel):
    """One tier of the structural analysis chain."""

    strategy: str
    result: str
    chapters: int | None = None
    error: str | None = None


class IngestionResponse(BaseModel):
    """Response for an uploaded document."""

    document: DocumentDetail
    method_used: str
    attempts: list[AnalysisAttempt]
    pages_sampled: int
    indexing_started: bool


class IndexStatusResponse(BaseModel):
    """Deep indexing state of a document."""

    document_id: int
    status: str
    indexed_pages: int
    total_pages: int
    progress: int
    running: bool


# =============================================================================
# SCHEDULE / LESSON SCHEMAS
# =============================================================================


class ScheduleRequest(BaseModel):
    """Request body for generating a schedule."""

    start_date: dt.date
    end_date: dt.date
    weekdays: list[int | str] = Field(
        ..., description="Teaching weekdays: names ('sun') or indices (0 = Sunday)"
    )
    holidays: list[dt.date] = Field(default_factory=list)


class LessonResponse(BaseModel):
    """Response for a lesson."""

    lesson_id: int
    document_id: int
    date: dt.date
    title: str
    content_context: str
    status: str
    week_number: int

    model_config = {"from_attributes": True}


class LessonListResponse(BaseModel):
    """Response for list of lessons."""

    lessons: list[LessonResponse]
    count: int
    current_lesson_pointer: int


class ScheduleResponse(BaseModel):
    """Response for a generated schedule."""

    document_id: int
    lessons_created: int
    used_fallback_titles: bool
    lessons: list[LessonResponse]


class LessonStatusUpdate(BaseModel):
    """Request body for changing a lesson's status."""

    status: Literal["pending", "planned", "completed", "skipped"]


class SyncRequest(BaseModel):
    """Request body for "I am actually here"."""

    lesson_id: int


class SyncResponse(BaseModel):
    """Response for a progress sync."""

    document_id: int
    lesson_id: int
    position: int
    previous_pointer: int
    current_pointer: int
    status: str


class ActiveLessonResponse(BaseModel):
    """Today's lesson, or the next one."""

    kind: Literal["today", "next"]
    lesson: LessonResponse


# =============================================================================
# BACKUP SCHEMAS
# =============================================================================


class RestoreResponse(BaseModel):
    """Response for a restored backup."""

    documents: int
    lessons: int


# =============================================================================
# HEALTH
# =============================================================================


class HealthResponse(BaseModel):
    """Health check response."""

    status: str = "ok"
    version: str = "0.1.0"
    timestamp: str = Field(default_factory=lambda: dt.datetime.now(dt.timezone.utc).isoformat())
