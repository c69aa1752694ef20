"""Reminder window evaluation and the check-and-mark service."""

from collections.abc import Iterable
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional, Protocol

import structlog
from sqlalchemy import or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.attributes import set_committed_value

from cadence.models.todo import Todo
from cadence.utils.clock import CivilClock

logger = structlog.get_logger()

DEFAULT_DEDUP_WINDOW = timedelta(minutes=5)


class Remindable(Protocol):
    completed: bool
    due_date: datetime
    reminder_minutes: Optional[int]
    last_notification_sent: Optional[datetime]


@dataclass
class DueReminder:
    todo: Todo
    minutes_until_due: int

    @property
    def due_in(self) -> str:
        return format_lead_time(self.minutes_until_due)


def _plural(n: int, unit: str) -> str:
    return f"{n} {unit}{'' if n == 1 else 's'}"


def format_lead_time(minutes: int) -> str:
    """Human hint for time remaining. Rounds down to the largest whole unit."""
    if minutes < 60:
        return _plural(minutes, "minute")
    hours = minutes // 60
    if hours < 24:
        return _plural(hours, "hour")
    return _plural(hours // 24, "day")


def in_reminder_window(todo: Remindable, now: datetime) -> bool:
    """True when ``now`` falls in the half-open window [due - lead, due)."""
    if todo.reminder_minutes is None:
        return False
    reminder_time = todo.due_date - timedelta(minutes=todo.reminder_minutes)
    return reminder_time <= now < todo.due_date


def recently_notified(
    todo: Remindable, now: datetime, dedup_window: timedelta = DEFAULT_DEDUP_WINDOW
) -> bool:
    if todo.last_notification_sent is None:
        return False
    return now - todo.last_notification_sent < dedup_window


def minutes_until(due_date: datetime, now: datetime) -> int:
    return round((due_date - now).total_seconds() / 60)


def due_reminders(
    now: datetime,
    todos: Iterable[Remindable],
    dedup_window: timedelta = DEFAULT_DEDUP_WINDOW,
) -> list[DueReminder]:
    """Todos whose reminder should fire at ``now``.

    Pure: nothing is marked. The caller records ``last_notification_sent`` for
    every returned todo.
    """
    reminders: list[DueReminder] = []
    for todo in todos:
        if todo.completed:
            continue
        if todo.reminder_minutes is None:
            continue
        if not in_reminder_window(todo, now):
            continue
        if recently_notified(todo, now, dedup_window):
            continue
        reminders.append(DueReminder(todo=todo, minutes_until_due=minutes_until(todo.due_date, now)))
    return reminders


class ReminderService:
    """Runs the evaluator against fresh store state and claims what it returns."""

    def __init__(
        self,
        db: AsyncSession,
        clock: CivilClock,
        dedup_window: timedelta = DEFAULT_DEDUP_WINDOW,
    ):
        self.db = db
        self.clock = clock
        self.dedup_window = dedup_window

    async def get_candidates(self, user_id: int) -> list[Todo]:
        result = await self.db.execute(
            select(Todo)
            .where(
                Todo.user_id == user_id,
                Todo.completed.is_(False),
                Todo.reminder_minutes.is_not(None),
            )
            .order_by(Todo.due_date)
            .execution_options(populate_existing=True)
        )
        return list(result.scalars().all())

    async def claim(self, todo: Todo, now: datetime) -> bool:
        """Stamp ``last_notification_sent`` unless another poller got there first."""
        cutoff = now - self.dedup_window
        result = await self.db.execute(
            update(Todo)
            .where(
                Todo.id == todo.id,
                or_(
                    Todo.last_notification_sent.is_(None),
                    Todo.last_notification_sent <= cutoff,
                ),
            )
            .values(last_notification_sent=now, updated_at=now)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            return False
        set_committed_value(todo, "last_notification_sent", now)
        set_committed_value(todo, "updated_at", now)
        return True

    async def check_and_mark(self, user_id: int) -> list[DueReminder]:
        """Evaluate the user's reminders now and mark each returned one as sent."""
        now = self.clock.now()
        candidates = await self.get_candidates(user_id)
        reminders = due_reminders(now, candidates, self.dedup_window)

        claimed: list[DueReminder] = []
        for reminder in reminders:
            if await self.claim(reminder.todo, now):
                claimed.append(reminder)
            else:
                logger.info(
                    "reminder_claim_lost",
                    user_id=user_id,
                    todo_id=reminder.todo.id,
                )
        await self.db.commit()

        if claimed:
            logger.info(
                "reminders_dispatched",
                user_id=user_id,
                count=len(claimed),
                todo_ids=[r.todo.id for r in claimed],
            )
        return claimed
