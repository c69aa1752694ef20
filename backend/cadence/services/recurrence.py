"""Recurrence calculation.

Pure functions over civil timestamps. Arithmetic is calendar based: "monthly"
and "yearly" move by calendar months, clamping the day to the length of the
target month, and the wall-clock time of day is kept exactly.
"""

import calendar
from datetime import datetime, timedelta
from typing import Optional, Union

from cadence.constants import RECURRENCE_NONE, RecurrencePattern
from cadence.exceptions import InvalidRecurrencePatternError

PatternLike = Union[RecurrencePattern, str, None]


def parse_pattern(value: PatternLike) -> Optional[RecurrencePattern]:
    """Normalise user or stored input into a pattern, or None for "not recurring".

    Raises InvalidRecurrencePatternError for anything outside the closed set.
    """
    if value is None or isinstance(value, RecurrencePattern):
        return value
    if value in ("", RECURRENCE_NONE):
        return None
    try:
        return RecurrencePattern(value)
    except ValueError as e:
        raise InvalidRecurrencePatternError(value) from e


def _require_pattern(value: PatternLike) -> RecurrencePattern:
    pattern = parse_pattern(value)
    if pattern is None:
        raise InvalidRecurrencePatternError(value)
    return pattern


def add_months(ts: datetime, months: int) -> datetime:
    """Shift by whole calendar months, clamping the day to the target month."""
    month_index = ts.month - 1 + months
    year = ts.year + month_index // 12
    month = month_index % 12 + 1
    day = min(ts.day, calendar.monthrange(year, month)[1])
    return ts.replace(year=year, month=month, day=day)


def next_due_date(current_due_date: datetime, pattern: PatternLike) -> datetime:
    """Advance a due date by exactly one unit of the recurrence pattern.

    Operates on the wall-clock value in the timestamp's own zone, so callers
    should pass a civil timestamp (see ``CivilClock.to_civil``).
    """
    pattern = _require_pattern(pattern)

    if pattern is RecurrencePattern.DAILY:
        return current_due_date + timedelta(days=1)
    elif pattern is RecurrencePattern.WEEKLY:
        return current_due_date + timedelta(weeks=1)
    elif pattern is RecurrencePattern.MONTHLY:
        return add_months(current_due_date, 1)
    elif pattern is RecurrencePattern.YEARLY:
        return add_months(current_due_date, 12)

    raise InvalidRecurrencePatternError(pattern)


def next_occurrences(start_date: datetime, pattern: PatternLike, count: int) -> list[datetime]:
    """The first ``count`` occurrences starting at (and including) ``start_date``.

    Each element is ``next_due_date`` applied to the previous one, so a
    clamped month-end carries forward (Jan 31, Feb 28, Mar 28, ...).
    """
    if count < 0:
        raise ValueError("count must be non-negative")
    pattern = _require_pattern(pattern)

    occurrences: list[datetime] = []
    current = start_date
    for _ in range(count):
        occurrences.append(current)
        current = next_due_date(current, pattern)
    return occurrences
