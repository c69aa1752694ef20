"""Export and import of a user's todos, tags and templates."""

from datetime import date, datetime
from typing import Any, Optional

import orjson
import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from cadence.constants import (
    REMINDER_MINUTES,
    SUBTASK_TITLE_MAX_LENGTH,
    TAG_NAME_MAX_LENGTH,
    TEMPLATE_NAME_MAX_LENGTH,
    TITLE_MAX_LENGTH,
    Priority,
    RecurrencePattern,
    TemplateCategory,
    random_tag_color,
)
from cadence.exceptions import CadenceError, InvalidInputError
from cadence.models.tag import Tag, TodoTag
from cadence.models.template import Template
from cadence.models.todo import Subtask, Todo
from cadence.services.tag import is_valid_color
from cadence.utils.clock import CivilClock

logger = structlog.get_logger()

EXPORT_VERSION = "1.0"
PRIORITIES = {p.value for p in Priority}
RECURRENCE_VALUES = {p.value for p in RecurrencePattern}
CATEGORIES = {c.value for c in TemplateCategory}


def _is_one_of(value: Any, allowed: set[str]) -> bool:
    return isinstance(value, str) and value in allowed


def export_filename(day: date) -> str:
    return f"todos-backup-{day.isoformat()}.json"


def _parse_timestamp(value: Any) -> Optional[datetime]:
    if not isinstance(value, str) or not value:
        return None
    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None


def _is_text(value: Any, max_length: int) -> bool:
    return isinstance(value, str) and 0 < len(value.strip()) <= max_length


def _is_ref(value: Any) -> bool:
    """Export ids are ints, hand-written backups sometimes use strings."""
    return isinstance(value, (int, str)) and not isinstance(value, bool)


def _raw_template_subtasks(raw: dict[str, Any]) -> Any:
    subtasks = raw.get("subtasks")
    if subtasks is None and isinstance(raw.get("subtasks_json"), str):
        try:
            subtasks = orjson.loads(raw["subtasks_json"])
        except orjson.JSONDecodeError:
            return None
    return [] if subtasks is None else subtasks


def _subtask_errors(prefix: str, subtasks: Any) -> list[str]:
    if not isinstance(subtasks, list):
        return [f"{prefix}: subtasks must be an array"]
    errors = []
    for index, subtask in enumerate(subtasks):
        if not isinstance(subtask, dict):
            errors.append(f"{prefix}.subtasks[{index}]: expected object")
            continue
        if not _is_text(subtask.get("title"), SUBTASK_TITLE_MAX_LENGTH):
            errors.append(f"{prefix}.subtasks[{index}]: missing or invalid title")
        position = subtask.get("position", 0)
        if not isinstance(position, int) or isinstance(position, bool):
            errors.append(f"{prefix}.subtasks[{index}]: invalid position")
    return errors


def validate_export_data(data: Any) -> list[str]:
    """Structural checks on an export document. Returns error messages.

    Anything that passes here can be written without further type checks.
    """
    errors: list[str] = []

    if not isinstance(data, dict):
        return ["Invalid data structure: expected object"]
    if not data.get("version"):
        errors.append("Missing version field")
    body = data.get("data")
    if not isinstance(body, dict):
        errors.append("Missing data field")
        return errors

    todos = body.get("todos")
    if not isinstance(todos, list):
        errors.append("data.todos must be an array")
    else:
        for index, todo in enumerate(todos):
            prefix = f"todos[{index}]"
            if not isinstance(todo, dict):
                errors.append(f"{prefix}: expected object")
                continue
            if not _is_text(todo.get("title"), TITLE_MAX_LENGTH):
                errors.append(f"{prefix}: missing or invalid title")
            if not _is_one_of(todo.get("priority"), PRIORITIES):
                errors.append(f"{prefix}: invalid priority")
            if _parse_timestamp(todo.get("due_date")) is None:
                errors.append(f"{prefix}: missing or invalid due_date")
            errors.extend(_subtask_errors(prefix, todo.get("subtasks") or []))
            tag_ids = todo.get("tag_ids") or []
            if not isinstance(tag_ids, list):
                errors.append(f"{prefix}: tag_ids must be an array")
            elif not all(_is_ref(tag_id) for tag_id in tag_ids):
                errors.append(f"{prefix}: invalid tag_ids")

    tags = body.get("tags")
    if not isinstance(tags, list):
        errors.append("data.tags must be an array")
    else:
        for index, tag in enumerate(tags):
            if not isinstance(tag, dict):
                errors.append(f"tags[{index}]: expected object")
                continue
            if not _is_text(tag.get("name"), TAG_NAME_MAX_LENGTH):
                errors.append(f"tags[{index}]: missing or invalid name")
            if not isinstance(tag.get("color"), str) or not tag.get("color"):
                errors.append(f"tags[{index}]: missing or invalid color")
            if "id" in tag and not _is_ref(tag["id"]):
                errors.append(f"tags[{index}]: invalid id")

    templates = body.get("templates")
    if not isinstance(templates, list):
        errors.append("data.templates must be an array")
    else:
        for index, template in enumerate(templates):
            prefix = f"templates[{index}]"
            if not isinstance(template, dict):
                errors.append(f"{prefix}: expected object")
                continue
            if not _is_text(template.get("title"), TITLE_MAX_LENGTH):
                errors.append(f"{prefix}: missing or invalid title")
            # Name falls back to the title on import
            name = template.get("name") or template.get("title")
            if not _is_text(name, TEMPLATE_NAME_MAX_LENGTH):
                errors.append(f"{prefix}: missing or invalid name")
            subtasks = _raw_template_subtasks(template)
            if subtasks is None:
                errors.append(f"{prefix}: invalid subtasks_json")
            else:
                errors.extend(_subtask_errors(prefix, subtasks))

    return errors


def _template_subtasks(raw: dict[str, Any]) -> list[dict[str, Any]]:
    items = sorted(_raw_template_subtasks(raw), key=lambda s: s.get("position", 0))
    return [{"title": s["title"].strip(), "position": i} for i, s in enumerate(items)]


class TransferService:
    """Builds export documents and restores them."""

    def __init__(self, db: AsyncSession, clock: CivilClock):
        self.db = db
        self.clock = clock

    async def _load_all(self, user_id: int) -> tuple[list[Todo], list[Tag], list[Template]]:
        todos = await self.db.execute(
            select(Todo)
            .where(Todo.user_id == user_id)
            .order_by(Todo.id)
            .execution_options(populate_existing=True)
        )
        tags = await self.db.execute(select(Tag).where(Tag.user_id == user_id).order_by(Tag.name))
        templates = await self.db.execute(
            select(Template).where(Template.user_id == user_id).order_by(Template.id)
        )
        return (
            list(todos.scalars().all()),
            list(tags.scalars().all()),
            list(templates.scalars().all()),
        )

    # =========================================================================
    # Export
    # =========================================================================

    async def export(self, user_id: int) -> dict[str, Any]:
        todos, tags, templates = await self._load_all(user_id)
        fmt = self.clock.format

        todo_items = [
            {
                "id": t.id,
                "title": t.title,
                "due_date": fmt(t.due_date),
                "priority": t.priority,
                "completed": t.completed,
                "completed_at": fmt(t.completed_at),
                "recurrence_pattern": t.recurrence_pattern,
                "reminder_minutes": t.reminder_minutes,
                "created_at": fmt(t.created_at),
                "subtasks": [
                    {
                        "id": s.id,
                        "title": s.title,
                        "completed": s.completed,
                        "position": s.position,
                    }
                    for s in t.subtasks
                ],
                "tag_ids": sorted(tag.id for tag in t.tags),
            }
            for t in todos
        ]

        return {
            "version": EXPORT_VERSION,
            "exported_at": fmt(self.clock.now()),
            "user_id": user_id,
            "data": {
                "todos": todo_items,
                "tags": [
                    {"id": t.id, "name": t.name, "color": t.color, "created_at": fmt(t.created_at)}
                    for t in tags
                ],
                "templates": [
                    {
                        "id": t.id,
                        "name": t.name,
                        "category": t.category,
                        "title": t.title,
                        "priority": t.priority,
                        "due_offset_days": t.due_offset_days,
                        "subtasks": t.subtasks,
                        "created_at": fmt(t.created_at),
                    }
                    for t in templates
                ],
            },
            "metadata": {
                "total_todos": len(todos),
                "total_tags": len(tags),
                "total_templates": len(templates),
                "total_subtasks": sum(len(t.subtasks) for t in todos),
            },
        }

    # =========================================================================
    # Import
    # =========================================================================

    async def _existing_tag_names(self, user_id: int) -> dict[str, int]:
        result = await self.db.execute(select(Tag.name, Tag.id).where(Tag.user_id == user_id))
        return {name.lower(): tag_id for name, tag_id in result.all()}

    async def preview(self, user_id: int, data: Any) -> dict[str, Any]:
        """Describe what an import would do without writing anything."""
        errors = validate_export_data(data)
        if errors:
            return {"valid": False, "errors": errors}

        body = data["data"]
        existing = await self._existing_tag_names(user_id)
        merging = [t["name"].strip() for t in body["tags"] if t["name"].strip().lower() in existing]

        return {
            "valid": True,
            "preview": {
                "todos_to_import": len(body["todos"]),
                "tags_to_create": len(body["tags"]) - len(merging),
                "tags_to_merge": len(merging),
                "templates_to_import": len(body["templates"]),
                "subtasks_to_import": sum(len(t.get("subtasks") or []) for t in body["todos"]),
            },
            "merging_tags": merging,
        }

    async def import_data(self, user_id: int, data: Any) -> dict[str, int]:
        """Restore an export document as new rows owned by ``user_id``.

        All-or-nothing: any failure rolls the whole import back.
        """
        errors = validate_export_data(data)
        if errors:
            raise InvalidInputError("Invalid import data", details=errors)

        body = data["data"]
        try:
            counts = await self._write(user_id, body)
            await self.db.commit()
        except CadenceError:
            await self.db.rollback()
            raise
        except Exception:
            await self.db.rollback()
            logger.exception("import_failed", user_id=user_id)
            raise

        logger.info("import_completed", user_id=user_id, **counts)
        return counts

    async def _write(self, user_id: int, body: dict[str, Any]) -> dict[str, int]:
        tag_id_map: dict[Any, int] = {}
        existing = await self._existing_tag_names(user_id)
        tags_created = 0

        for raw in body["tags"]:
            name = raw["name"].strip()
            key = name.lower()
            if key not in existing:
                color = raw["color"] if is_valid_color(raw["color"]) else random_tag_color()
                tag = Tag(user_id=user_id, name=name, color=color)
                self.db.add(tag)
                await self.db.flush()
                existing[key] = tag.id
                tags_created += 1
            if "id" in raw:
                tag_id_map[raw["id"]] = existing[key]

        subtask_count = 0
        for raw in body["todos"]:
            completed = bool(raw.get("completed"))
            pattern = raw.get("recurrence_pattern")
            reminder = raw.get("reminder_minutes")
            completed_at = _parse_timestamp(raw.get("completed_at")) if completed else None
            if completed and completed_at is None:
                completed_at = self.clock.now()

            todo = Todo(
                user_id=user_id,
                title=raw["title"].strip(),
                due_date=self.clock.localize(_parse_timestamp(raw["due_date"])),
                priority=raw["priority"],
                completed=completed,
                completed_at=self.clock.localize(completed_at) if completed_at else None,
                recurrence_pattern=pattern if _is_one_of(pattern, RECURRENCE_VALUES) else None,
                reminder_minutes=reminder if isinstance(reminder, int) and reminder in REMINDER_MINUTES else None,
            )
            self.db.add(todo)
            await self.db.flush()

            raw_subtasks = sorted(raw.get("subtasks") or [], key=lambda s: s.get("position", 0))
            for position, s in enumerate(raw_subtasks):
                self.db.add(
                    Subtask(
                        todo_id=todo.id,
                        title=s["title"].strip(),
                        position=position,
                        completed=bool(s.get("completed")),
                    )
                )
            subtask_count += len(raw_subtasks)

            linked: set[int] = set()
            for old_tag_id in raw.get("tag_ids") or []:
                new_tag_id = tag_id_map.get(old_tag_id)
                if new_tag_id is not None and new_tag_id not in linked:
                    self.db.add(TodoTag(todo_id=todo.id, tag_id=new_tag_id))
                    linked.add(new_tag_id)

        for raw in body["templates"]:
            category = raw.get("category")
            offset = raw.get("due_offset_days")
            self.db.add(
                Template(
                    user_id=user_id,
                    name=(raw.get("name") or raw["title"]).strip(),
                    category=category if _is_one_of(category, CATEGORIES) else None,
                    title=raw["title"].strip(),
                    priority=raw["priority"] if _is_one_of(raw.get("priority"), PRIORITIES) else Priority.MEDIUM.value,
                    due_offset_days=offset if isinstance(offset, int) and offset >= 0 else 0,
                    subtasks=_template_subtasks(raw),
                )
            )

        await self.db.flush()
        return {
            "todos": len(body["todos"]),
            "tags": len(body["tags"]),
            "tags_created": tags_created,
            "tags_merged": len(body["tags"]) - tags_created,
            "templates": len(body["templates"]),
            "subtasks": subtask_count,
        }
