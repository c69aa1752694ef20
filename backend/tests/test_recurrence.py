"""Tests for next-occurrence arithmetic."""

from datetime import datetime
from zoneinfo import ZoneInfo

import pytest

from cadence.constants import RecurrencePattern
from cadence.exceptions import InvalidRecurrencePatternError
from cadence.services.recurrence import add_months, next_due_date, next_occurrences, parse_pattern

SGT = ZoneInfo("Asia/Singapore")


def at(*args) -> datetime:
    return datetime(*args, tzinfo=SGT)


class TestNextDueDate:
    def test_daily(self):
        assert next_due_date(at(2026, 2, 28, 8, 30), "daily") == at(2026, 3, 1, 8, 30)

    def test_weekly(self):
        assert next_due_date(at(2026, 2, 10, 14, 0), RecurrencePattern.WEEKLY) == at(2026, 2, 17, 14, 0)

    def test_monthly_clamps_to_month_end(self):
        assert next_due_date(at(2026, 1, 31, 17, 0), "monthly") == at(2026, 2, 28, 17, 0)

    def test_monthly_does_not_restore_clamped_day(self):
        assert next_due_date(at(2026, 2, 28, 17, 0), "monthly") == at(2026, 3, 28, 17, 0)

    def test_monthly_leap_year(self):
        assert next_due_date(at(2028, 1, 30, 9, 0), "monthly") == at(2028, 2, 29, 9, 0)

    def test_monthly_crosses_year(self):
        assert next_due_date(at(2026, 12, 31, 23, 59), "monthly") == at(2027, 1, 31, 23, 59)

    def test_yearly_from_leap_day(self):
        assert next_due_date(at(2028, 2, 29, 12, 0), "yearly") == at(2029, 2, 28, 12, 0)

    def test_yearly(self):
        assert next_due_date(at(2026, 12, 31, 10, 0), "yearly") == at(2027, 12, 31, 10, 0)

    def test_keeps_timezone(self):
        assert next_due_date(at(2026, 5, 5, 5, 5), "daily").tzinfo == SGT

    @pytest.mark.parametrize("pattern", [None, "none", "", "fortnightly", "DAILY"])
    def test_rejects_non_patterns(self, pattern):
        with pytest.raises(InvalidRecurrencePatternError):
            next_due_date(at(2026, 1, 1, 0, 0), pattern)


class TestNextOccurrences:
    def test_starts_with_start_date(self):
        start = at(2026, 2, 10, 14, 0)
        occurrences = next_occurrences(start, "weekly", 5)
        assert len(occurrences) == 5
        assert occurrences[0] == start
        assert occurrences[-1] == at(2026, 3, 10, 14, 0)

    def test_is_repeatable(self):
        start = at(2026, 1, 31, 17, 0)
        assert next_occurrences(start, "monthly", 5) == next_occurrences(start, "monthly", 5)

    def test_clamped_day_carries_forward(self):
        occurrences = next_occurrences(at(2026, 1, 31, 17, 0), "monthly", 3)
        assert [o.day for o in occurrences] == [31, 28, 28]

    def test_zero_count(self):
        assert next_occurrences(at(2026, 1, 1, 0, 0), "daily", 0) == []

    def test_negative_count(self):
        with pytest.raises(ValueError):
            next_occurrences(at(2026, 1, 1, 0, 0), "daily", -1)

    def test_invalid_pattern(self):
        with pytest.raises(InvalidRecurrencePatternError):
            next_occurrences(at(2026, 1, 1, 0, 0), "hourly", 3)


def test_parse_pattern():
    assert parse_pattern(None) is None
    assert parse_pattern("none") is None
    assert parse_pattern("") is None
    assert parse_pattern("monthly") is RecurrencePattern.MONTHLY
    assert parse_pattern(RecurrencePattern.YEARLY) is RecurrencePattern.YEARLY
    with pytest.raises(InvalidRecurrencePatternError):
        parse_pattern("biweekly")


def test_add_months_negative():
    assert add_months(at(2026, 3, 31, 0, 0), -1) == at(2026, 2, 28, 0, 0)
