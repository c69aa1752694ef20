"""Subtask API endpoints."""

import structlog
from fastapi import APIRouter, Depends, status
from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy.ext.asyncio import AsyncSession

from cadence.api.v1.auth import CurrentUser
from cadence.api.v1.errors import handle_domain_error
from cadence.api.v1.todos import SubtaskResponse
from cadence.constants import SUBTASK_TITLE_MAX_LENGTH
from cadence.db.session import get_db_session
from cadence.exceptions import CadenceError
from cadence.services.subtask import SubtaskService

router = APIRouter()
logger = structlog.get_logger()


class SubtaskCreate(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    todo_id: int
    title: str = Field(..., min_length=1, max_length=SUBTASK_TITLE_MAX_LENGTH)


class SubtaskUpdate(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    title: str | None = Field(None, min_length=1, max_length=SUBTASK_TITLE_MAX_LENGTH)
    completed: bool | None = None


class SubtaskReorder(BaseModel):
    subtask_id: int
    new_position: int


class SubtaskListResponse(BaseModel):
    subtasks: list[SubtaskResponse]


@router.post("", response_model=SubtaskResponse, status_code=status.HTTP_201_CREATED)
async def create_subtask(
    subtask_data: SubtaskCreate,
    current_user: CurrentUser,
    db: AsyncSession = Depends(get_db_session),
) -> SubtaskResponse:
    """Append a subtask to a todo."""
    try:
        subtask = await SubtaskService(db).create_subtask(
            subtask_data.todo_id, current_user.id, subtask_data.title
        )
    except CadenceError as e:
        raise handle_domain_error(e)
    return SubtaskResponse.model_validate(subtask, from_attributes=True)


@router.post("/reorder", response_model=SubtaskListResponse)
async def reorder_subtask(
    reorder: SubtaskReorder,
    current_user: CurrentUser,
    db: AsyncSession = Depends(get_db_session),
) -> dict:
    """Move a subtask to a new position within its todo."""
    service = SubtaskService(db)
    try:
        subtask = await service.get_subtask(reorder.subtask_id, current_user.id)
        siblings = await service.reorder(subtask, reorder.new_position)
    except CadenceError as e:
        raise handle_domain_error(e)
    return {
        "subtasks": [SubtaskResponse.model_validate(s, from_attributes=True) for s in siblings]
    }


@router.patch("/{subtask_id}", response_model=SubtaskResponse)
async def update_subtask(
    subtask_id: int,
    updates: SubtaskUpdate,
    current_user: CurrentUser,
    db: AsyncSession = Depends(get_db_session),
) -> SubtaskResponse:
    """Rename a subtask or tick it off."""
    service = SubtaskService(db)
    try:
        subtask = await service.get_subtask(subtask_id, current_user.id)
        subtask = await service.update_subtask(
            subtask, title=updates.title, completed=updates.completed
        )
    except CadenceError as e:
        raise handle_domain_error(e)
    return SubtaskResponse.model_validate(subtask, from_attributes=True)


@router.delete("/{subtask_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_subtask(
    subtask_id: int,
    current_user: CurrentUser,
    db: AsyncSession = Depends(get_db_session),
) -> None:
    """Delete a subtask; the remaining ones are renumbered."""
    service = SubtaskService(db)
    try:
        subtask = await service.get_subtask(subtask_id, current_user.id)
        await service.delete_subtask(subtask)
    except CadenceError as e:
        raise handle_domain_error(e)
