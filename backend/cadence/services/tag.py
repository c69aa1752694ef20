"""Tag service."""

import re
from typing import Optional

import structlog
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from cadence.constants import TAG_COLOR_PATTERN, TAG_NAME_MAX_LENGTH, random_tag_color
from cadence.exceptions import (
    ConflictError,
    InvalidInputError,
    NotFoundError,
    PermissionDeniedError,
)
from cadence.models.tag import Tag, TodoTag

logger = structlog.get_logger()

_color_re = re.compile(TAG_COLOR_PATTERN)


def clean_tag_name(name: str) -> str:
    name = name.strip()
    if not name or len(name) > TAG_NAME_MAX_LENGTH:
        raise InvalidInputError(f"Tag name must be 1-{TAG_NAME_MAX_LENGTH} characters")
    return name


def is_valid_color(color: str) -> bool:
    return bool(_color_re.match(color))


def validate_color(color: str) -> str:
    if not is_valid_color(color):
        raise InvalidInputError("Invalid color format. Use hex (e.g., #3B82F6)")
    return color


class TagService:
    """Service for a user's tags."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_tag(self, tag_id: int, user_id: int) -> Tag:
        result = await self.db.execute(
            select(Tag).where(Tag.id == tag_id).execution_options(populate_existing=True)
        )
        tag = result.scalar_one_or_none()
        if tag is None:
            raise NotFoundError("Tag", tag_id)
        if tag.user_id != user_id:
            raise PermissionDeniedError("Tag", tag_id)
        return tag

    async def list_tags(self, user_id: int) -> list[Tag]:
        result = await self.db.execute(
            select(Tag).where(Tag.user_id == user_id).order_by(Tag.name)
        )
        return list(result.scalars().all())

    async def list_tags_with_count(self, user_id: int) -> list[tuple[Tag, int]]:
        """Tags ordered by name, each with the number of todos using it."""
        result = await self.db.execute(
            select(Tag, func.count(TodoTag.todo_id))
            .outerjoin(TodoTag, TodoTag.tag_id == Tag.id)
            .where(Tag.user_id == user_id)
            .group_by(Tag.id)
            .order_by(Tag.name)
        )
        return [(tag, count) for tag, count in result.all()]

    async def find_by_name(self, user_id: int, name: str) -> Optional[Tag]:
        result = await self.db.execute(
            select(Tag).where(Tag.user_id == user_id, Tag.name == name)
        )
        return result.scalar_one_or_none()

    async def create_tag(self, user_id: int, name: str, color: Optional[str] = None) -> Tag:
        name = clean_tag_name(name)
        if await self.find_by_name(user_id, name):
            raise ConflictError("Tag name already exists")
        color = validate_color(color) if color else random_tag_color()

        tag = Tag(user_id=user_id, name=name, color=color)
        self.db.add(tag)
        await self.db.commit()

        logger.info("tag_created", tag_id=tag.id, user_id=user_id, name=name)
        return tag

    async def update_tag(
        self, tag: Tag, name: Optional[str] = None, color: Optional[str] = None
    ) -> Tag:
        if name is not None:
            name = clean_tag_name(name)
            existing = await self.find_by_name(tag.user_id, name)
            if existing and existing.id != tag.id:
                raise ConflictError("Tag name already exists")
            tag.name = name
        if color is not None:
            tag.color = validate_color(color)

        await self.db.commit()
        logger.info("tag_updated", tag_id=tag.id)
        return tag

    async def delete_tag(self, tag: Tag) -> None:
        """Delete a tag; its todo associations cascade."""
        tag_id = tag.id
        await self.db.delete(tag)
        await self.db.commit()
        logger.info("tag_deleted", tag_id=tag_id)
