"""Teaching-day generation.

Turns a semester date range, a weekly recurrence and a holiday set into the
ordered list of teaching days. Weekday indices follow the school calendar
used by the product: 0 = Sunday, 1 = Monday, ... 6 = Saturday.

Degenerate inputs (empty pattern, end before start) give an empty list;
callers decide what an empty schedule means for them.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import Iterable

import structlog

logger = structlog.get_logger(__name__)

WEEKDAY_NAMES = ("sun", "mon", "tue", "wed", "thu", "fri", "sat")


@dataclass
class ScheduleConfig:
    """Inputs of one schedule generation (not persisted)."""

    start_date: date
    end_date: date
    weekly_pattern: frozenset[int]
    holidays: frozenset[date] = field(default_factory=frozenset)

    def __post_init__(self):
        self.weekly_pattern = frozenset(self.weekly_pattern)
        self.holidays = frozenset(self.holidays)
        invalid = [d for d in self.weekly_pattern if not 0 <= d <= 6]
        if invalid:
            raise ValueError(f"Weekday indices must be 0-6 (0 = Sunday), got {sorted(invalid)}")

    @property
    def weekly_frequency(self) -> int:
        """Number of teaching days per week."""
        return len(self.weekly_pattern)


def school_weekday(day: date) -> int:
    """Weekday index with Sunday as 0."""
    return (day.weekday() + 1) % 7


def parse_weekdays(values: Iterable[str | int]) -> frozenset[int]:
    """Parse weekday names ("mon") or indices ("1", 1) into indices.

    Raises:
        ValueError: If a value is not a weekday
    """
    result = set()
    for value in values:
        if isinstance(value, int):
            index = value
        else:
            token = value.strip().lower()
            if token.isdigit():
                index = int(token)
            elif token[:3] in WEEKDAY_NAMES:
                index = WEEKDAY_NAMES.index(token[:3])
            else:
                raise ValueError(f"Unknown weekday: {value!r}")
        if not 0 <= index <= 6:
            raise ValueError(f"Weekday index out of range: {index}")
        result.add(index)
    return frozenset(result)


def generate_teaching_days(config: ScheduleConfig) -> list[date]:
    """List the teaching days of a schedule.

    Every returned date lies in [start_date, end_date], falls on a weekday of
    the pattern and is not a holiday. Dates are ascending and unique.
    """
    if not config.weekly_pattern or config.end_date < config.start_date:
        logger.info(
            "schedule.empty_inputs",
            weekly_pattern=sorted(config.weekly_pattern),
            start=config.start_date.isoformat(),
            end=config.end_date.isoformat(),
        )
        return []

    days = []
    current = config.start_date
    while current <= config.end_date:
        if school_weekday(current) in config.weekly_pattern and current not in config.holidays:
            days.append(current)
        current += timedelta(days=1)

    logger.debug(
        "schedule.teaching_days",
        count=len(days),
        start=config.start_date.isoformat(),
        end=config.end_date.isoformat(),
    )
    return days
