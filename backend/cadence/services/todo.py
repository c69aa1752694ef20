"""Todo store service: CRUD, completion toggling and tag assignment."""

from collections.abc import Sequence
from datetime import datetime
from typing import Any, Optional

import structlog
from sqlalchemy import case, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from cadence.constants import PRIORITY_SORT_ORDER, Priority, REMINDER_MINUTES
from cadence.exceptions import (
    InvalidInputError,
    NotFoundError,
    PermissionDeniedError,
    RecurrenceAdvancementError,
)
from cadence.models.tag import Tag
from cadence.models.todo import Subtask, Todo
from cadence.services.recurrence import parse_pattern
from cadence.services.recurring_todo import RecurringTodoService
from cadence.utils.clock import CivilClock

logger = structlog.get_logger()

UPDATABLE_FIELDS = ("title", "due_date", "priority", "recurrence_pattern", "reminder_minutes")

priority_rank = case(
    {p.value: rank for p, rank in PRIORITY_SORT_ORDER.items()},
    value=Todo.priority,
    else_=len(PRIORITY_SORT_ORDER),
)


def todo_progress(todo: Todo) -> dict[str, int]:
    """Subtask completion summary."""
    total = len(todo.subtasks)
    completed = sum(1 for s in todo.subtasks if s.completed)
    percentage = round(completed / total * 100) if total else 0
    return {"completed": completed, "total": total, "percentage": percentage}


class TodoService:
    """Service for todos owned by a single user."""

    def __init__(self, db: AsyncSession, clock: CivilClock):
        self.db = db
        self.clock = clock

    # =========================================================================
    # Reads
    # =========================================================================

    async def _load(self, todo_id: int) -> Optional[Todo]:
        result = await self.db.execute(
            select(Todo)
            .options(selectinload(Todo.subtasks), selectinload(Todo.tags))
            .where(Todo.id == todo_id)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def get_todo(self, todo_id: int, user_id: int) -> Todo:
        """Fetch a todo with relations, enforcing ownership."""
        todo = await self._load(todo_id)
        if todo is None:
            raise NotFoundError("Todo", todo_id)
        if todo.user_id != user_id:
            raise PermissionDeniedError("Todo", todo_id)
        return todo

    async def list_todos(
        self,
        user_id: int,
        include_completed: bool = False,
    ) -> list[Todo]:
        """Incomplete first, then high to low priority, then soonest due."""
        query = (
            select(Todo)
            .options(selectinload(Todo.subtasks), selectinload(Todo.tags))
            .where(Todo.user_id == user_id)
        )
        if not include_completed:
            query = query.where(Todo.completed.is_(False))

        query = query.order_by(Todo.completed.asc(), priority_rank, Todo.due_date.asc())
        result = await self.db.execute(query.execution_options(populate_existing=True))
        return list(result.scalars().all())

    async def get_owned_tags(self, user_id: int, tag_ids: Sequence[int]) -> list[Tag]:
        """Resolve tag ids, rejecting any the user does not own."""
        unique_ids = list(dict.fromkeys(tag_ids))
        if not unique_ids:
            return []
        result = await self.db.execute(
            select(Tag).where(Tag.id.in_(unique_ids), Tag.user_id == user_id)
        )
        tags = list(result.scalars().all())
        if len(tags) != len(unique_ids):
            missing = sorted(set(unique_ids) - {t.id for t in tags})
            raise InvalidInputError(
                "One or more tags do not exist or do not belong to you",
                details=[f"tag_id={tag_id}" for tag_id in missing],
            )
        return tags

    # =========================================================================
    # Validation
    # =========================================================================

    def _validate_fields(self, values: dict[str, Any]) -> None:
        if "title" in values and not values["title"]:
            raise InvalidInputError("Title is required")
        if "due_date" in values and values["due_date"] is None:
            raise InvalidInputError("Due date is required")
        if "priority" in values and values["priority"] not in {p.value for p in Priority}:
            raise InvalidInputError(f"Invalid priority: {values['priority']}")
        if values.get("reminder_minutes") is not None:
            if values["reminder_minutes"] not in REMINDER_MINUTES:
                raise InvalidInputError(f"Invalid reminder lead time: {values['reminder_minutes']}")

    def normalize_due_date(self, due_date: datetime) -> datetime:
        """Naive input is civil wall-clock time."""
        return self.clock.localize(due_date)

    # =========================================================================
    # Writes
    # =========================================================================

    async def create_todo(
        self,
        user_id: int,
        title: str,
        due_date: datetime,
        priority: str = Priority.MEDIUM.value,
        recurrence_pattern: Optional[str] = None,
        reminder_minutes: Optional[int] = None,
        tag_ids: Sequence[int] = (),
        subtask_titles: Sequence[str] = (),
    ) -> Todo:
        """Create a todo. The due date must not be in the past."""
        title = title.strip()
        self._validate_fields(
            {"title": title, "priority": priority, "reminder_minutes": reminder_minutes}
        )
        pattern = parse_pattern(recurrence_pattern)
        due_date = self.normalize_due_date(due_date)
        if self.clock.is_past(due_date):
            raise InvalidInputError("Due date cannot be in the past")

        tags = await self.get_owned_tags(user_id, tag_ids)

        todo = Todo(
            user_id=user_id,
            title=title,
            due_date=due_date,
            priority=priority,
            recurrence_pattern=pattern.value if pattern else None,
            reminder_minutes=reminder_minutes,
            completed=False,
            tags=tags,
            subtasks=[
                Subtask(title=t.strip(), position=i, completed=False)
                for i, t in enumerate(subtask_titles)
            ],
        )
        self.db.add(todo)
        await self.db.commit()

        logger.info(
            "todo_created",
            todo_id=todo.id,
            user_id=user_id,
            recurrence_pattern=todo.recurrence_pattern,
            reminder_minutes=reminder_minutes,
        )
        return await self.get_todo(todo.id, user_id)

    async def update_todo(
        self, todo: Todo, changes: dict[str, Any]
    ) -> tuple[Todo, Optional[Todo]]:
        """Apply a field-level update.

        Marking a recurring todo complete spawns its successor in the same
        transaction; if the spawn fails nothing is saved and
        RecurrenceAdvancementError is raised. Returns ``(todo, next_todo)``.
        """
        todo_id = todo.id
        user_id = todo.user_id
        values = {k: v for k, v in changes.items() if k in UPDATABLE_FIELDS}

        if "title" in values and values["title"] is not None:
            values["title"] = values["title"].strip()
        self._validate_fields(values)
        if "recurrence_pattern" in values:
            pattern = parse_pattern(values["recurrence_pattern"])
            values["recurrence_pattern"] = pattern.value if pattern else None
        if values.get("due_date") is not None:
            values["due_date"] = self.normalize_due_date(values["due_date"])

        for key, value in values.items():
            setattr(todo, key, value)

        completed = changes.get("completed")
        completing = completed is True and not todo.completed
        spawning = False
        if completing:
            todo.completed = True
            todo.completed_at = self.clock.now()
            spawning = todo.is_recurring
        elif completed is False and todo.completed:
            todo.completed = False
            todo.completed_at = None

        next_todo_id: Optional[int] = None
        try:
            if spawning:
                next_todo = await RecurringTodoService(self.db, self.clock).spawn_next(todo)
                next_todo_id = next_todo.id
            await self.db.commit()
        except Exception as e:
            await self.db.rollback()
            if spawning:
                logger.exception("recurrence_advancement_failed", todo_id=todo_id)
                raise RecurrenceAdvancementError(todo_id, e) from e
            raise

        if completing:
            logger.info("todo_completed", todo_id=todo_id, spawned_todo_id=next_todo_id)
        logger.info("todo_updated", todo_id=todo_id, fields=sorted(changes))

        updated = await self.get_todo(todo_id, user_id)
        spawned = await self.get_todo(next_todo_id, user_id) if next_todo_id else None
        return updated, spawned

    async def set_tags(self, todo: Todo, tag_ids: Sequence[int]) -> Todo:
        """Replace the todo's tag set."""
        tags = await self.get_owned_tags(todo.user_id, tag_ids)
        todo.tags = tags
        await self.db.commit()

        logger.info("todo_tags_set", todo_id=todo.id, tag_ids=[t.id for t in tags])
        return await self.get_todo(todo.id, todo.user_id)

    async def delete_todo(self, todo: Todo) -> None:
        """Delete a todo; subtasks and tag links go with it."""
        todo_id = todo.id
        await self.db.delete(todo)
        await self.db.commit()
        logger.info("todo_deleted", todo_id=todo_id)
