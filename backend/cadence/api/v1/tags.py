"""Tag API endpoints."""

import structlog
from fastapi import APIRouter, Depends, Query, status
from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy.ext.asyncio import AsyncSession

from cadence.api.v1.auth import CurrentUser
from cadence.api.v1.errors import handle_domain_error
from cadence.constants import TAG_COLOR_PATTERN, TAG_NAME_MAX_LENGTH
from cadence.db.session import get_db_session
from cadence.exceptions import CadenceError
from cadence.services.tag import TagService

router = APIRouter()
logger = structlog.get_logger()


class TagCreate(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    name: str = Field(..., min_length=1, max_length=TAG_NAME_MAX_LENGTH)
    color: str | None = Field(None, pattern=TAG_COLOR_PATTERN)


class TagUpdate(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    name: str | None = Field(None, min_length=1, max_length=TAG_NAME_MAX_LENGTH)
    color: str | None = Field(None, pattern=TAG_COLOR_PATTERN)


class TagResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    color: str
    usage_count: int | None = None


class TagListResponse(BaseModel):
    tags: list[TagResponse]


@router.get("", response_model=TagListResponse)
async def list_tags(
    current_user: CurrentUser,
    db: AsyncSession = Depends(get_db_session),
    with_count: bool = Query(False),
) -> dict:
    """List tags by name, optionally with how many todos use each."""
    service = TagService(db)
    if with_count:
        rows = await service.list_tags_with_count(current_user.id)
        tags = [
            {"id": tag.id, "name": tag.name, "color": tag.color, "usage_count": count}
            for tag, count in rows
        ]
    else:
        tags = [TagResponse.model_validate(t) for t in await service.list_tags(current_user.id)]
    return {"tags": tags}


@router.post("", response_model=TagResponse, status_code=status.HTTP_201_CREATED)
async def create_tag(
    tag_data: TagCreate,
    current_user: CurrentUser,
    db: AsyncSession = Depends(get_db_session),
) -> TagResponse:
    """Create a tag. A random palette colour is used when none is given."""
    try:
        tag = await TagService(db).create_tag(current_user.id, tag_data.name, tag_data.color)
    except CadenceError as e:
        raise handle_domain_error(e)
    return TagResponse.model_validate(tag)


@router.patch("/{tag_id}", response_model=TagResponse)
async def update_tag(
    tag_id: int,
    updates: TagUpdate,
    current_user: CurrentUser,
    db: AsyncSession = Depends(get_db_session),
) -> TagResponse:
    """Rename or recolour a tag."""
    service = TagService(db)
    try:
        tag = await service.get_tag(tag_id, current_user.id)
        tag = await service.update_tag(tag, name=updates.name, color=updates.color)
    except CadenceError as e:
        raise handle_domain_error(e)
    return TagResponse.model_validate(tag)


@router.delete("/{tag_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_tag(
    tag_id: int,
    current_user: CurrentUser,
    db: AsyncSession = Depends(get_db_session),
) -> None:
    """Delete a tag and detach it from every todo."""
    service = TagService(db)
    try:
        tag = await service.get_tag(tag_id, current_user.id)
        await service.delete_tag(tag)
    except CadenceError as e:
        raise handle_domain_error(e)
