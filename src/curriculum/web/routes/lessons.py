"""Schedule and lesson endpoints."""

from datetime import date

import structlog
from fastapi import APIRouter, HTTPException, Query, Response, status

from curriculum.core.calendar_export import export_calendar
from curriculum.core.lesson_distributor import ScheduleInputError, regenerate_schedule
from curriculum.core.progress_sync import (
    ProgressSyncError,
    select_active_lesson,
    sync_progress,
)
from curriculum.core.schedule_generator import ScheduleConfig, parse_weekdays
from curriculum.db.documents_repository import get_document
from curriculum.db.lessons_repository import get_lesson, list_lessons, update_lesson_status
from curriculum.web.schemas import (
    ActiveLessonResponse,
    LessonListResponse,
    LessonResponse,
    LessonStatusUpdate,
    ScheduleRequest,
    ScheduleResponse,
    SyncRequest,
    SyncResponse,
)

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/api", tags=["lessons"])


def _document_not_found(document_id: int) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_404_NOT_FOUND,
        detail=f"Document '{document_id}' not found",
    )


@router.post("/documents/{document_id}/schedule", response_model=ScheduleResponse)
async def generate_schedule(document_id: int, request: ScheduleRequest) -> ScheduleResponse:
    """Generate (or regenerate) a document's lessons."""
    if get_document(document_id) is None:
        raise _document_not_found(document_id)

    try:
        config = ScheduleConfig(
            start_date=request.start_date,
            end_date=request.end_date,
            weekly_pattern=parse_weekdays(request.weekdays),
            holidays=frozenset(request.holidays),
        )
        result = regenerate_schedule(document_id, config)
    except (ValueError, ScheduleInputError) as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(e),
        )

    lessons = [LessonResponse.model_validate(lesson) for lesson in list_lessons(document_id)]
    return ScheduleResponse(
        document_id=document_id,
        lessons_created=result.lessons_created,
        used_fallback_titles=result.used_fallback_titles,
        lessons=lessons,
    )


@router.get("/documents/{document_id}/lessons", response_model=LessonListResponse)
async def get_lessons(
    document_id: int,
    status_filter: str | None = Query(None, alias="status"),
) -> LessonListResponse:
    """List a document's lessons in date order."""
    document = get_document(document_id)
    if document is None:
        raise _document_not_found(document_id)

    lessons = [
        LessonResponse.model_validate(lesson)
        for lesson in list_lessons(document_id, status=status_filter)
    ]
    return LessonListResponse(
        lessons=lessons,
        count=len(lessons),
        current_lesson_pointer=document.current_lesson_pointer,
    )


@router.get("/documents/{document_id}/active", response_model=ActiveLessonResponse)
async def get_active_lesson(document_id: int, today: date | None = None) -> ActiveLessonResponse:
    """Today's lesson, or the next pending one."""
    if get_document(document_id) is None:
        raise _document_not_found(document_id)

    active = select_active_lesson(document_id, today=today)
    if active is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="No upcoming lessons",
        )

    return ActiveLessonResponse(
        kind=active.kind,
        lesson=LessonResponse.model_validate(active.lesson),
    )


@router.post("/documents/{document_id}/sync", response_model=SyncResponse)
async def sync_document_progress(document_id: int, request: SyncRequest) -> SyncResponse:
    """Mark "I am actually here" on a lesson."""
    try:
        result = sync_progress(document_id, request.lesson_id)
    except ProgressSyncError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(e),
        )

    return SyncResponse(
        document_id=result.document_id,
        lesson_id=result.lesson_id,
        position=result.position,
        previous_pointer=result.previous_pointer,
        current_pointer=result.current_pointer,
        status=result.status,
    )


@router.get("/documents/{document_id}/calendar.ics")
async def get_calendar(document_id: int) -> Response:
    """Lesson schedule as an iCalendar file."""
    document = get_document(document_id)
    if document is None:
        raise _document_not_found(document_id)

    content = export_calendar(list_lessons(document_id), calendar_name=document.title)
    return Response(
        content=content,
        media_type="text/calendar; charset=utf-8",
        headers={"Content-Disposition": f'attachment; filename="lessons-{document_id}.ics"'},
    )


@router.get("/lessons/{lesson_id}", response_model=LessonResponse)
async def get_single_lesson(lesson_id: int) -> LessonResponse:
    """Get a lesson by ID."""
    lesson = get_lesson(lesson_id)
    if lesson is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Lesson '{lesson_id}' not found",
        )
    return LessonResponse.model_validate(lesson)


@router.patch("/lessons/{lesson_id}", response_model=LessonResponse)
async def set_lesson_status(lesson_id: int, update: LessonStatusUpdate) -> LessonResponse:
    """Change a lesson's status."""
    if not update_lesson_status(lesson_id, update.status):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Lesson '{lesson_id}' not found",
        )
    logger.info("api.lesson_status", lesson_id=lesson_id, status=update.status)
    return LessonResponse.model_validate(get_lesson(lesson_id))
