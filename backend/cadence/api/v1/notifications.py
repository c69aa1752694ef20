"""Reminder polling endpoints."""

from datetime import timedelta

import structlog
from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from cadence.api.v1.auth import CurrentUser
from cadence.api.v1.todos import TodoResponse, todo_to_response
from cadence.config import get_settings
from cadence.constants import REMINDER_OPTIONS
from cadence.db.session import get_db_session
from cadence.services.reminders import ReminderService
from cadence.utils.clock import ClockDep

router = APIRouter()
logger = structlog.get_logger()
settings = get_settings()


class ReminderResponse(BaseModel):
    todo: TodoResponse
    minutes_until_due: int
    due_in: str


class ReminderCheckResponse(BaseModel):
    reminders: list[ReminderResponse]


class ReminderOptionResponse(BaseModel):
    value: int
    label: str
    short_label: str


@router.get("/check", response_model=ReminderCheckResponse)
async def check_reminders(
    current_user: CurrentUser,
    clock: ClockDep,
    db: AsyncSession = Depends(get_db_session),
) -> dict:
    """Reminders due now. Each one is marked sent so the next poll skips it."""
    service = ReminderService(
        db, clock, dedup_window=timedelta(minutes=settings.reminder_dedup_minutes)
    )
    reminders = await service.check_and_mark(current_user.id)
    return {
        "reminders": [
            {
                "todo": todo_to_response(r.todo, clock),
                "minutes_until_due": r.minutes_until_due,
                "due_in": r.due_in,
            }
            for r in reminders
        ]
    }


@router.get("/reminder-options", response_model=list[ReminderOptionResponse])
async def reminder_options() -> list[dict]:
    """The fixed reminder lead times."""
    return [
        {"value": o.minutes, "label": o.label, "short_label": o.short_label}
        for o in REMINDER_OPTIONS
    ]
