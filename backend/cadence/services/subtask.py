"""Subtask service. Keeps positions within a todo dense and zero-based."""

from typing import Optional

import structlog
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from cadence.exceptions import InvalidInputError, NotFoundError, PermissionDeniedError
from cadence.models.todo import Subtask, Todo

logger = structlog.get_logger()


def renumber(subtasks: list[Subtask]) -> None:
    """Rewrite positions as 0..N-1 in list order."""
    for position, subtask in enumerate(subtasks):
        if subtask.position != position:
            subtask.position = position


class SubtaskService:
    """Service for a todo's checklist."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def _get_owned_todo(self, todo_id: int, user_id: int) -> Todo:
        result = await self.db.execute(select(Todo).where(Todo.id == todo_id))
        todo = result.scalar_one_or_none()
        if todo is None:
            raise NotFoundError("Todo", todo_id)
        if todo.user_id != user_id:
            raise PermissionDeniedError("Todo", todo_id)
        return todo

    async def get_subtask(self, subtask_id: int, user_id: int) -> Subtask:
        """Fetch a subtask, enforcing ownership through its todo."""
        result = await self.db.execute(
            select(Subtask, Todo.user_id)
            .join(Todo, Todo.id == Subtask.todo_id)
            .where(Subtask.id == subtask_id)
            .execution_options(populate_existing=True)
        )
        row = result.one_or_none()
        if row is None:
            raise NotFoundError("Subtask", subtask_id)
        subtask, owner_id = row
        if owner_id != user_id:
            raise PermissionDeniedError("Subtask", subtask_id)
        return subtask

    async def list_for_todo(self, todo_id: int) -> list[Subtask]:
        result = await self.db.execute(
            select(Subtask)
            .where(Subtask.todo_id == todo_id)
            .order_by(Subtask.position, Subtask.created_at, Subtask.id)
            .execution_options(populate_existing=True)
        )
        return list(result.scalars().all())

    async def create_subtask(self, todo_id: int, user_id: int, title: str) -> Subtask:
        """Append a subtask at the end of the todo's list."""
        await self._get_owned_todo(todo_id, user_id)
        title = title.strip()
        if not title:
            raise InvalidInputError("Subtask title is required")

        count_result = await self.db.execute(
            select(func.count()).select_from(Subtask).where(Subtask.todo_id == todo_id)
        )
        position = count_result.scalar_one()

        subtask = Subtask(todo_id=todo_id, title=title, position=position, completed=False)
        self.db.add(subtask)
        await self.db.commit()

        logger.info("subtask_created", subtask_id=subtask.id, todo_id=todo_id, position=position)
        return subtask

    async def update_subtask(
        self,
        subtask: Subtask,
        title: Optional[str] = None,
        completed: Optional[bool] = None,
    ) -> Subtask:
        if title is not None:
            title = title.strip()
            if not title:
                raise InvalidInputError("Subtask title is required")
            subtask.title = title
        if completed is not None:
            subtask.completed = completed

        await self.db.commit()
        logger.info("subtask_updated", subtask_id=subtask.id)
        return subtask

    async def delete_subtask(self, subtask: Subtask) -> None:
        """Delete a subtask and close the gap it leaves."""
        subtask_id = subtask.id
        todo_id = subtask.todo_id
        await self.db.delete(subtask)
        await self.db.flush()

        remaining = await self.list_for_todo(todo_id)
        renumber(remaining)
        await self.db.commit()

        logger.info("subtask_deleted", subtask_id=subtask_id, todo_id=todo_id)

    async def reorder(self, subtask: Subtask, new_position: int) -> list[Subtask]:
        """Move a subtask to ``new_position``, shifting the items in between."""
        siblings = await self.list_for_todo(subtask.todo_id)
        if new_position < 0 or new_position >= len(siblings):
            raise InvalidInputError("Invalid position")

        # Normalise first so a list index and a position always agree
        renumber(siblings)
        old_position = siblings.index(subtask)
        if old_position != new_position:
            siblings.insert(new_position, siblings.pop(old_position))
            renumber(siblings)
        await self.db.commit()

        logger.info(
            "subtask_reordered",
            subtask_id=subtask.id,
            todo_id=subtask.todo_id,
            old_position=old_position,
            new_position=new_position,
        )
        return siblings
