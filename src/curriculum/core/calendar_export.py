"""iCalendar export of a lesson schedule.

One all-day VEVENT per lesson with its title and date, so the schedule can
be imported into any calendar application.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Sequence

import structlog

from curriculum.db.lessons_repository import LessonRecord

logger = structlog.get_logger(__name__)

PRODID = "-//Curriculum Pipeline//Lesson Schedule//EN"
UID_DOMAIN = "curriculum.local"
MAX_LINE_OCTETS = 75


def _escape(text: str) -> str:
    """Escape a TEXT value (RFC 5545 3.3.11)."""
    return (
        text.replace("\\", "\\\\")
        .replace(";", "\\;")
        .replace(",", "\\,")
        .replace("\r\n", "\\n")
        .replace("\n", "\\n")
    )


def _fold(line: str) -> list[str]:
    """Fold a content line at 75 octets without splitting characters."""
    folded = []
    current = ""
    for char in line:
        limit = MAX_LINE_OCTETS if not folded else MAX_LINE_OCTETS - 1
        if len((current + char).encode("utf-8")) > limit:
            folded.append(current)
            current = char
        else:
            current += char
    folded.append(current)
    return [folded[0]] + [" " + part for part in folded[1:]]


def export_calendar(
    lessons: Sequence[LessonRecord],
    calendar_name: str = "Lessons",
    now: datetime | None = None,
) -> str:
    """Render lessons as an iCalendar document.

    Args:
        lessons: Lessons to export
        calendar_name: X-WR-CALNAME shown by calendar clients
        now: DTSTAMP value (defaults to current UTC time)

    Returns:
        The .ics content with CRLF line endings
    """
    stamp = (now or datetime.now(timezone.utc)).strftime("%Y%m%dT%H%M%SZ")

    lines = [
        "BEGIN:VCALENDAR",
        "VERSION:2.0",
        f"PRODID:{PRODID}",
        "CALSCALE:GREGORIAN",
        "METHOD:PUBLISH",
        f"X-WR-CALNAME:{_escape(calendar_name)}",
    ]

    for lesson in lessons:
        end = lesson.date + timedelta(days=1)
        lines.extend(
            [
                "BEGIN:VEVENT",
                f"UID:lesson-{lesson.lesson_id}@{UID_DOMAIN}",
                f"DTSTAMP:{stamp}",
                f"DTSTART;VALUE=DATE:{lesson.date.strftime('%Y%m%d')}",
                f"DTEND;VALUE=DATE:{end.strftime('%Y%m%d')}",
                f"SUMMARY:{_escape(lesson.title)}",
                f"DESCRIPTION:{_escape(lesson.content_context)}",
                "END:VEVENT",
            ]
        )

    lines.append("END:VCALENDAR")

    logger.debug("calendar_export.rendered", events=len(lessons))

    output = []
    for line in lines:
        output.extend(_fold(line))
    return "\r\n".join(output) + "\r\n"
