"""Todo template service."""

from datetime import datetime, timedelta
from typing import Any, Optional, Sequence

import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from cadence.constants import Priority, TemplateCategory
from cadence.exceptions import InvalidInputError, NotFoundError, PermissionDeniedError
from cadence.models.template import Template
from cadence.models.todo import Subtask, Todo
from cadence.services.todo import TodoService
from cadence.utils.clock import CivilClock

logger = structlog.get_logger()

UPDATABLE_FIELDS = ("name", "category", "title", "priority", "due_offset_days", "subtasks")
REQUIRED_FIELDS = ("name", "title", "priority", "due_offset_days")


def serialize_subtasks(titles: Sequence[str]) -> list[dict[str, Any]]:
    return [{"title": title.strip(), "position": i} for i, title in enumerate(titles)]


class TemplateService:
    """Service for saving and instantiating todo templates."""

    def __init__(self, db: AsyncSession, clock: CivilClock):
        self.db = db
        self.clock = clock

    async def get_template(self, template_id: int, user_id: int) -> Template:
        result = await self.db.execute(
            select(Template)
            .where(Template.id == template_id)
            .execution_options(populate_existing=True)
        )
        template = result.scalar_one_or_none()
        if template is None:
            raise NotFoundError("Template", template_id)
        if template.user_id != user_id:
            raise PermissionDeniedError("Template", template_id)
        return template

    async def list_templates(
        self, user_id: int, category: Optional[TemplateCategory] = None
    ) -> list[Template]:
        query = select(Template).where(Template.user_id == user_id)
        if category is not None:
            query = query.where(Template.category == category.value)
        result = await self.db.execute(query.order_by(Template.name))
        return list(result.scalars().all())

    async def create_template(
        self,
        user_id: int,
        name: str,
        title: str,
        priority: str = Priority.MEDIUM.value,
        category: Optional[TemplateCategory] = None,
        due_offset_days: int = 0,
        subtask_titles: Sequence[str] = (),
    ) -> Template:
        template = Template(
            user_id=user_id,
            name=name.strip(),
            category=category.value if category else None,
            title=title.strip(),
            priority=priority,
            due_offset_days=due_offset_days,
            subtasks=serialize_subtasks(subtask_titles),
        )
        self.db.add(template)
        await self.db.commit()

        logger.info("template_created", template_id=template.id, user_id=user_id)
        return template

    async def create_from_todo(
        self,
        todo: Todo,
        name: str,
        category: Optional[TemplateCategory] = None,
        due_offset_days: int = 0,
    ) -> Template:
        """Capture an existing todo's title, priority and subtask titles."""
        return await self.create_template(
            user_id=todo.user_id,
            name=name,
            title=todo.title,
            priority=todo.priority,
            category=category,
            due_offset_days=due_offset_days,
            subtask_titles=[s.title for s in sorted(todo.subtasks, key=lambda s: s.position)],
        )

    async def update_template(self, template: Template, changes: dict[str, Any]) -> Template:
        for key, value in changes.items():
            if key not in UPDATABLE_FIELDS:
                continue
            if value is None and key in REQUIRED_FIELDS:
                continue
            if key == "subtasks":
                value = serialize_subtasks(value or [])
            elif key == "category":
                value = TemplateCategory(value).value if value else None
            elif isinstance(value, str):
                value = value.strip()
            setattr(template, key, value)

        await self.db.commit()
        logger.info("template_updated", template_id=template.id, fields=sorted(changes))
        return template

    async def delete_template(self, template: Template) -> None:
        template_id = template.id
        await self.db.delete(template)
        await self.db.commit()
        logger.info("template_deleted", template_id=template_id)

    async def use_template(
        self, template: Template, due_date_override: Optional[datetime] = None
    ) -> Todo:
        """Create a todo from a template.

        Due at civil now plus the template's offset, unless an override is
        given, in which case the override must not be in the past.
        """
        if due_date_override is not None:
            due_date = self.clock.localize(due_date_override)
            if self.clock.is_past(due_date):
                raise InvalidInputError("Due date cannot be in the past")
        else:
            due_date = self.clock.now() + timedelta(days=template.due_offset_days)

        subtasks = sorted(template.subtasks or [], key=lambda s: s.get("position", 0))
        todo = Todo(
            user_id=template.user_id,
            title=template.title,
            due_date=due_date,
            priority=template.priority,
            completed=False,
            subtasks=[
                Subtask(title=s["title"], position=i, completed=False)
                for i, s in enumerate(subtasks)
            ],
        )
        self.db.add(todo)
        await self.db.commit()

        logger.info("template_used", template_id=template.id, todo_id=todo.id)
        return await TodoService(self.db, self.clock).get_todo(todo.id, template.user_id)
