"""Month calendar view: todos grouped by civil date, heat-map intensity, holidays."""

import calendar
import datetime
from collections import defaultdict
from dataclasses import dataclass
from typing import Optional, Sequence

import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from cadence.exceptions import ConflictError, InvalidInputError, NotFoundError
from cadence.models.holiday import Holiday
from cadence.models.todo import Todo
from cadence.utils.clock import CivilClock

logger = structlog.get_logger()

# Sunday-start weeks
_month_calendar = calendar.Calendar(firstweekday=calendar.SUNDAY)


@dataclass
class CalendarDay:
    date: datetime.date
    in_month: bool
    is_today: bool
    is_holiday: bool
    holiday_name: Optional[str]
    todo_count: int

    @property
    def intensity(self) -> str:
        return todo_intensity(self.todo_count)


def todo_intensity(count: int) -> str:
    """Heat-map bucket for a day's todo count."""
    if count <= 0:
        return "none"
    if count == 1:
        return "low"
    if count <= 3:
        return "medium"
    if count <= 5:
        return "high"
    return "max"


def parse_month(value: str) -> tuple[int, int]:
    """Parse ``YYYY-MM``."""
    try:
        year_str, month_str = value.split("-")
        year, month = int(year_str), int(month_str)
    except ValueError as e:
        raise InvalidInputError("Month must be formatted as YYYY-MM") from e
    if not 1 <= month <= 12 or not datetime.MINYEAR <= year <= datetime.MAXYEAR:
        raise InvalidInputError("Month must be formatted as YYYY-MM")
    return year, month


def holiday_on(day: datetime.date, holidays: Sequence[Holiday]) -> Optional[Holiday]:
    for holiday in holidays:
        if holiday.occurs_on(day):
            return holiday
    return None


def build_month_grid(
    year: int,
    month: int,
    today: datetime.date,
    todo_counts: dict[datetime.date, int],
    holidays: Sequence[Holiday] = (),
) -> list[list[CalendarDay]]:
    """Whole weeks covering the month, padded with neighbouring days."""
    weeks: list[list[CalendarDay]] = []
    for week in _month_calendar.monthdatescalendar(year, month):
        row = []
        for day in week:
            holiday = holiday_on(day, holidays)
            row.append(
                CalendarDay(
                    date=day,
                    in_month=day.month == month,
                    is_today=day == today,
                    is_holiday=holiday is not None,
                    holiday_name=holiday.name if holiday else None,
                    todo_count=todo_counts.get(day, 0),
                )
            )
        weeks.append(row)
    return weeks


class CalendarService:
    """Reads a user's month and manages the shared holiday list."""

    def __init__(self, db: AsyncSession, clock: CivilClock):
        self.db = db
        self.clock = clock

    async def todos_in_month(self, user_id: int, year: int, month: int) -> list[Todo]:
        first = datetime.date(year, month, 1)
        last = datetime.date(year, month, calendar.monthrange(year, month)[1])
        result = await self.db.execute(
            select(Todo)
            .where(
                Todo.user_id == user_id,
                Todo.due_date >= self.clock.start_of_day(first),
                Todo.due_date <= self.clock.end_of_day(last),
            )
            .order_by(Todo.due_date)
        )
        return list(result.scalars().all())

    async def holidays_in_month(self, year: int, month: int) -> list[Holiday]:
        holidays = await self.list_holidays()
        return [
            h for h in holidays
            if h.date.month == month and (h.is_recurring or h.date.year == year)
        ]

    async def month_view(self, user_id: int, year: int, month: int) -> dict:
        todos = await self.todos_in_month(user_id, year, month)
        holidays = await self.holidays_in_month(year, month)

        todos_by_date: dict[datetime.date, list[Todo]] = defaultdict(list)
        for todo in todos:
            todos_by_date[self.clock.to_civil(todo.due_date).date()].append(todo)
        counts = {day: len(items) for day, items in todos_by_date.items()}

        return {
            "month": f"{year:04d}-{month:02d}",
            "todos_by_date": dict(todos_by_date),
            "counts": counts,
            "holidays": holidays,
            "weeks": build_month_grid(year, month, self.clock.today(), counts, holidays),
        }

    # =========================================================================
    # Holidays
    # =========================================================================

    async def list_holidays(self) -> list[Holiday]:
        result = await self.db.execute(select(Holiday).order_by(Holiday.date))
        return list(result.scalars().all())

    async def create_holiday(
        self, day: datetime.date, name: str, is_recurring: bool = False
    ) -> Holiday:
        existing = await self.db.execute(select(Holiday).where(Holiday.date == day))
        if existing.scalar_one_or_none() is not None:
            raise ConflictError("A holiday already exists on that date")

        holiday = Holiday(date=day, name=name.strip(), is_recurring=is_recurring)
        self.db.add(holiday)
        await self.db.commit()

        logger.info("holiday_created", holiday_id=holiday.id, date=day.isoformat())
        return holiday

    async def delete_holiday(self, holiday_id: int) -> None:
        holiday = await self.db.get(Holiday, holiday_id)
        if holiday is None:
            raise NotFoundError("Holiday", holiday_id)
        await self.db.delete(holiday)
        await self.db.commit()
        logger.info("holiday_deleted", holiday_id=holiday_id)
