"""Recurrence advancement: stamping out the next instance of a completed recurring todo."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional, Sequence

import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from cadence.exceptions import NotRecurringError
from cadence.models.tag import TodoTag
from cadence.models.todo import Subtask, Todo
from cadence.services.recurrence import next_due_date, parse_pattern
from cadence.utils.clock import CivilClock

logger = structlog.get_logger()


@dataclass
class NextInstancePlan:
    """Everything needed to write the successor of a recurring todo."""

    user_id: int
    title: str
    due_date: datetime
    priority: str
    recurrence_pattern: str
    reminder_minutes: Optional[int]
    tag_ids: list[int] = field(default_factory=list)
    # Titles in position order; written as fresh, incomplete subtasks
    subtask_titles: list[str] = field(default_factory=list)


def build_next_instance(
    todo: Todo,
    tag_ids: Sequence[int],
    subtasks: Sequence[Subtask],
    clock: CivilClock,
) -> NextInstancePlan:
    """Plan the successor of ``todo``.

    Reminder history is not carried over and subtask completion is reset.
    Raises NotRecurringError when ``todo`` has no recurrence pattern.
    """
    pattern = parse_pattern(todo.recurrence_pattern)
    if pattern is None:
        raise NotRecurringError(todo.id)

    next_due = next_due_date(clock.to_civil(todo.due_date), pattern)

    return NextInstancePlan(
        user_id=todo.user_id,
        title=todo.title,
        due_date=next_due,
        priority=todo.priority,
        recurrence_pattern=pattern.value,
        reminder_minutes=todo.reminder_minutes,
        tag_ids=list(tag_ids),
        subtask_titles=[s.title for s in sorted(subtasks, key=lambda s: s.position)],
    )


class RecurringTodoService:
    """Writes the successor of a completed recurring todo.

    Only flushes. The caller owns the transaction so that completing the
    original and creating its successor commit or roll back together.
    """

    def __init__(self, db: AsyncSession, clock: CivilClock):
        self.db = db
        self.clock = clock

    async def get_tag_ids(self, todo_id: int) -> list[int]:
        result = await self.db.execute(
            select(TodoTag.tag_id).where(TodoTag.todo_id == todo_id).order_by(TodoTag.tag_id)
        )
        return list(result.scalars().all())

    async def get_subtasks(self, todo_id: int) -> list[Subtask]:
        result = await self.db.execute(
            select(Subtask).where(Subtask.todo_id == todo_id).order_by(Subtask.position)
        )
        return list(result.scalars().all())

    async def persist(self, plan: NextInstancePlan) -> Todo:
        next_todo = Todo(
            user_id=plan.user_id,
            title=plan.title,
            due_date=plan.due_date,
            priority=plan.priority,
            recurrence_pattern=plan.recurrence_pattern,
            reminder_minutes=plan.reminder_minutes,
            completed=False,
            last_notification_sent=None,
        )
        self.db.add(next_todo)
        await self.db.flush()  # Get todo ID

        for position, title in enumerate(plan.subtask_titles):
            self.db.add(
                Subtask(todo_id=next_todo.id, title=title, position=position, completed=False)
            )
        for tag_id in plan.tag_ids:
            self.db.add(TodoTag(todo_id=next_todo.id, tag_id=tag_id))
        await self.db.flush()

        return next_todo

    async def spawn_next(self, todo: Todo) -> Todo:
        """Create the next instance of ``todo`` inside the current transaction."""
        tag_ids = await self.get_tag_ids(todo.id)
        subtasks = await self.get_subtasks(todo.id)
        plan = build_next_instance(todo, tag_ids, subtasks, self.clock)
        next_todo = await self.persist(plan)

        logger.info(
            "recurring_todo_spawned",
            todo_id=todo.id,
            next_todo_id=next_todo.id,
            recurrence_pattern=plan.recurrence_pattern,
            next_due_date=plan.due_date.isoformat(),
            tags_copied=len(plan.tag_ids),
            subtasks_copied=len(plan.subtask_titles),
        )
        return next_todo
