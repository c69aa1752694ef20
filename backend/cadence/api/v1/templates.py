"""Todo template API endpoints."""

from datetime import datetime
from typing import Any

import structlog
from fastapi import APIRouter, Depends, Query, status
from pydantic import BaseModel, ConfigDict, Field, model_validator
from sqlalchemy.ext.asyncio import AsyncSession

from cadence.api.v1.auth import CurrentUser
from cadence.api.v1.errors import handle_domain_error
from cadence.api.v1.todos import TodoResponse, todo_to_response
from cadence.constants import (
    SUBTASK_TITLE_MAX_LENGTH,
    TEMPLATE_NAME_MAX_LENGTH,
    TITLE_MAX_LENGTH,
    Priority,
    TemplateCategory,
)
from cadence.db.session import get_db_session
from cadence.exceptions import CadenceError
from cadence.models.template import Template
from cadence.services.template import TemplateService
from cadence.services.todo import TodoService
from cadence.utils.clock import CivilClock, ClockDep

router = APIRouter()
logger = structlog.get_logger()


class TemplateSubtask(BaseModel):
    title: str
    position: int


class TemplateCreate(BaseModel):
    """Create a template from explicit fields or by capturing an existing todo."""

    model_config = ConfigDict(str_strip_whitespace=True)

    name: str = Field(..., min_length=1, max_length=TEMPLATE_NAME_MAX_LENGTH)
    category: TemplateCategory | None = None
    due_offset_days: int = Field(0, ge=0)
    todo_id: int | None = None
    title: str | None = Field(None, min_length=1, max_length=TITLE_MAX_LENGTH)
    priority: Priority = Priority.MEDIUM
    subtasks: list[str] = Field(default_factory=list)

    @model_validator(mode="after")
    def require_source(self) -> "TemplateCreate":
        if self.todo_id is None and not self.title:
            raise ValueError("Either todo_id or title is required")
        if any(not t.strip() or len(t.strip()) > SUBTASK_TITLE_MAX_LENGTH for t in self.subtasks):
            raise ValueError(f"Subtask titles must be 1-{SUBTASK_TITLE_MAX_LENGTH} characters")
        return self


class TemplateUpdate(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    name: str | None = Field(None, min_length=1, max_length=TEMPLATE_NAME_MAX_LENGTH)
    category: TemplateCategory | None = None
    title: str | None = Field(None, min_length=1, max_length=TITLE_MAX_LENGTH)
    priority: Priority | None = None
    due_offset_days: int | None = Field(None, ge=0)
    subtasks: list[str] | None = None


class TemplateUse(BaseModel):
    due_date_override: datetime | None = None


class TemplateResponse(BaseModel):
    id: int
    name: str
    category: str | None
    title: str
    priority: str
    due_offset_days: int
    subtasks: list[TemplateSubtask]
    created_at: str
    updated_at: str


class TemplateListResponse(BaseModel):
    templates: list[TemplateResponse]


def template_to_response(template: Template, clock: CivilClock) -> dict[str, Any]:
    return {
        "id": template.id,
        "name": template.name,
        "category": template.category,
        "title": template.title,
        "priority": template.priority,
        "due_offset_days": template.due_offset_days,
        "subtasks": template.subtasks or [],
        "created_at": clock.format(template.created_at),
        "updated_at": clock.format(template.updated_at),
    }


@router.get("", response_model=TemplateListResponse)
async def list_templates(
    current_user: CurrentUser,
    clock: ClockDep,
    db: AsyncSession = Depends(get_db_session),
    category: TemplateCategory | None = Query(None),
) -> dict:
    """List templates, optionally in one category."""
    templates = await TemplateService(db, clock).list_templates(current_user.id, category)
    return {"templates": [template_to_response(t, clock) for t in templates]}


@router.post("", response_model=TemplateResponse, status_code=status.HTTP_201_CREATED)
async def create_template(
    template_data: TemplateCreate,
    current_user: CurrentUser,
    clock: ClockDep,
    db: AsyncSession = Depends(get_db_session),
) -> dict:
    """Save a template."""
    service = TemplateService(db, clock)
    try:
        if template_data.todo_id is not None:
            todo = await TodoService(db, clock).get_todo(template_data.todo_id, current_user.id)
            template = await service.create_from_todo(
                todo,
                name=template_data.name,
                category=template_data.category,
                due_offset_days=template_data.due_offset_days,
            )
        else:
            template = await service.create_template(
                user_id=current_user.id,
                name=template_data.name,
                title=template_data.title or "",
                priority=template_data.priority.value,
                category=template_data.category,
                due_offset_days=template_data.due_offset_days,
                subtask_titles=template_data.subtasks,
            )
    except CadenceError as e:
        raise handle_domain_error(e)
    return template_to_response(template, clock)


@router.get("/{template_id}", response_model=TemplateResponse)
async def get_template(
    template_id: int,
    current_user: CurrentUser,
    clock: ClockDep,
    db: AsyncSession = Depends(get_db_session),
) -> dict:
    try:
        template = await TemplateService(db, clock).get_template(template_id, current_user.id)
    except CadenceError as e:
        raise handle_domain_error(e)
    return template_to_response(template, clock)


@router.patch("/{template_id}", response_model=TemplateResponse)
async def update_template(
    template_id: int,
    updates: TemplateUpdate,
    current_user: CurrentUser,
    clock: ClockDep,
    db: AsyncSession = Depends(get_db_session),
) -> dict:
    service = TemplateService(db, clock)
    changes = updates.model_dump(exclude_unset=True)
    if isinstance(changes.get("priority"), Priority):
        changes["priority"] = changes["priority"].value
    try:
        template = await service.get_template(template_id, current_user.id)
        template = await service.update_template(template, changes)
    except CadenceError as e:
        raise handle_domain_error(e)
    return template_to_response(template, clock)


@router.delete("/{template_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_template(
    template_id: int,
    current_user: CurrentUser,
    clock: ClockDep,
    db: AsyncSession = Depends(get_db_session),
) -> None:
    service = TemplateService(db, clock)
    try:
        template = await service.get_template(template_id, current_user.id)
        await service.delete_template(template)
    except CadenceError as e:
        raise handle_domain_error(e)


@router.post(
    "/{template_id}/use",
    response_model=TodoResponse,
    status_code=status.HTTP_201_CREATED,
)
async def use_template(
    template_id: int,
    current_user: CurrentUser,
    clock: ClockDep,
    use_data: TemplateUse | None = None,
    db: AsyncSession = Depends(get_db_session),
) -> dict:
    """Create a todo from a template."""
    service = TemplateService(db, clock)
    override = use_data.due_date_override if use_data else None
    try:
        template = await service.get_template(template_id, current_user.id)
        todo = await service.use_template(template, due_date_override=override)
    except CadenceError as e:
        raise handle_domain_error(e)
    return todo_to_response(todo, clock)
