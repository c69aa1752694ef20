"""Tests for the month calendar."""

from datetime import date, datetime

import pytest

from cadence.exceptions import ConflictError, InvalidInputError
from cadence.models.holiday import Holiday
from cadence.services.calendar import CalendarService, build_month_grid, parse_month, todo_intensity
from cadence.services.todo import TodoService


@pytest.mark.parametrize(
    "count, expected",
    [(0, "none"), (1, "low"), (2, "medium"), (3, "medium"), (5, "high"), (6, "max")],
)
def test_intensity(count, expected):
    assert todo_intensity(count) == expected


def test_parse_month():
    assert parse_month("2026-02") == (2026, 2)
    for bad in ("2026", "2026-13", "feb-2026", ""):
        with pytest.raises(InvalidInputError):
            parse_month(bad)


def test_grid_starts_on_sunday():
    weeks = build_month_grid(2026, 2, date(2026, 2, 1), {date(2026, 2, 14): 2})
    # Feb 2026 begins on a Sunday and spans exactly four weeks
    assert len(weeks) == 4
    assert weeks[0][0].date == date(2026, 2, 1)
    assert weeks[0][0].is_today
    assert all(day.in_month for week in weeks for day in week)
    valentine = weeks[1][6]
    assert valentine.date == date(2026, 2, 14)
    assert valentine.intensity == "medium"


def test_grid_pads_neighbouring_days():
    weeks = build_month_grid(2026, 3, date(2026, 2, 1), {})
    assert weeks[0][0].date == date(2026, 3, 1)
    assert weeks[-1][-1].date == date(2026, 4, 4)
    assert not weeks[-1][-1].in_month


def test_recurring_holiday_matches_every_year():
    holiday = Holiday(date=date(2020, 12, 25), name="Christmas", is_recurring=True)
    weeks = build_month_grid(2026, 12, date(2026, 2, 1), {}, [holiday])
    christmas = next(d for w in weeks for d in w if d.date == date(2026, 12, 25))
    assert christmas.is_holiday
    assert christmas.holiday_name == "Christmas"


async def test_month_view_groups_by_civil_date(db, user, clock):
    todos = TodoService(db, clock)
    await todos.create_todo(user_id=user.id, title="Late", due_date=datetime(2026, 2, 28, 23, 30))
    await todos.create_todo(user_id=user.id, title="Early", due_date=datetime(2026, 3, 1, 0, 30))
    await todos.create_todo(user_id=user.id, title="Mid", due_date=datetime(2026, 2, 14, 12, 0))

    service = CalendarService(db, clock)
    await service.create_holiday(date(2026, 2, 17), "Lunar New Year")

    view = await service.month_view(user.id, 2026, 2)
    assert view["month"] == "2026-02"
    assert view["counts"] == {date(2026, 2, 14): 1, date(2026, 2, 28): 1}
    assert [h.name for h in view["holidays"]] == ["Lunar New Year"]


async def test_duplicate_holiday_conflicts(db, clock):
    service = CalendarService(db, clock)
    await service.create_holiday(date(2026, 8, 9), "National Day")
    with pytest.raises(ConflictError):
        await service.create_holiday(date(2026, 8, 9), "Again")
