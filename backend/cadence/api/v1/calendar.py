"""Calendar API endpoints."""

import datetime

import structlog
from fastapi import APIRouter, Depends, Query, status
from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy.ext.asyncio import AsyncSession

from cadence.api.v1.auth import CurrentUser
from cadence.api.v1.errors import handle_domain_error
from cadence.api.v1.todos import TodoResponse, todo_to_response
from cadence.db.session import get_db_session
from cadence.exceptions import CadenceError
from cadence.services.calendar import CalendarService, parse_month, todo_intensity
from cadence.utils.clock import ClockDep

router = APIRouter()
logger = structlog.get_logger()


class HolidayCreate(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    date: datetime.date
    name: str = Field(..., min_length=1, max_length=200)
    is_recurring: bool = False


class HolidayResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    date: datetime.date
    name: str
    is_recurring: bool


class DayCountResponse(BaseModel):
    count: int
    intensity: str


class CalendarDayResponse(BaseModel):
    date: datetime.date
    in_month: bool
    is_today: bool
    is_holiday: bool
    holiday_name: str | None
    todo_count: int
    intensity: str


class CalendarResponse(BaseModel):
    month: str
    todos_by_date: dict[str, list[TodoResponse]]
    counts: dict[str, DayCountResponse]
    holidays: list[HolidayResponse]
    weeks: list[list[CalendarDayResponse]]


@router.get("", response_model=CalendarResponse)
async def get_month(
    current_user: CurrentUser,
    clock: ClockDep,
    db: AsyncSession = Depends(get_db_session),
    month: str | None = Query(None, description="YYYY-MM; defaults to the current month"),
) -> dict:
    """A month of todos grouped by civil date, with holidays and heat-map buckets."""
    try:
        if month:
            year, month_number = parse_month(month)
        else:
            today = clock.today()
            year, month_number = today.year, today.month
    except CadenceError as e:
        raise handle_domain_error(e)

    view = await CalendarService(db, clock).month_view(current_user.id, year, month_number)
    return {
        "month": view["month"],
        "todos_by_date": {
            day.isoformat(): [todo_to_response(t, clock) for t in todos]
            for day, todos in sorted(view["todos_by_date"].items())
        },
        "counts": {
            day.isoformat(): {"count": count, "intensity": todo_intensity(count)}
            for day, count in sorted(view["counts"].items())
        },
        "holidays": [HolidayResponse.model_validate(h) for h in view["holidays"]],
        "weeks": [
            [
                {
                    "date": d.date,
                    "in_month": d.in_month,
                    "is_today": d.is_today,
                    "is_holiday": d.is_holiday,
                    "holiday_name": d.holiday_name,
                    "todo_count": d.todo_count,
                    "intensity": d.intensity,
                }
                for d in week
            ]
            for week in view["weeks"]
        ],
    }


@router.get("/holidays", response_model=list[HolidayResponse])
async def list_holidays(
    current_user: CurrentUser,
    clock: ClockDep,
    db: AsyncSession = Depends(get_db_session),
) -> list:
    holidays = await CalendarService(db, clock).list_holidays()
    return [HolidayResponse.model_validate(h) for h in holidays]


@router.post("/holidays", response_model=HolidayResponse, status_code=status.HTTP_201_CREATED)
async def create_holiday(
    holiday_data: HolidayCreate,
    current_user: CurrentUser,
    clock: ClockDep,
    db: AsyncSession = Depends(get_db_session),
) -> HolidayResponse:
    try:
        holiday = await CalendarService(db, clock).create_holiday(
            holiday_data.date, holiday_data.name, holiday_data.is_recurring
        )
    except CadenceError as e:
        raise handle_domain_error(e)
    return HolidayResponse.model_validate(holiday)


@router.delete("/holidays/{holiday_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_holiday(
    holiday_id: int,
    current_user: CurrentUser,
    clock: ClockDep,
    db: AsyncSession = Depends(get_db_session),
) -> None:
    try:
        await CalendarService(db, clock).delete_holiday(holiday_id)
    except CadenceError as e:
        raise handle_domain_error(e)
