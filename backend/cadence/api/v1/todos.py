"""Todo API endpoints."""

from datetime import date, datetime
from typing import Annotated, Any

import orjson
import structlog
from fastapi import APIRouter, Body, Depends, HTTPException, Query, Response, status
from pydantic import AfterValidator, BaseModel, ConfigDict, Field, field_validator
from sqlalchemy.ext.asyncio import AsyncSession

from cadence.api.v1.auth import CurrentUser
from cadence.api.v1.errors import handle_domain_error
from cadence.config import get_settings
from cadence.constants import (
    RECURRENCE_LABELS,
    REMINDER_MINUTES,
    REMINDER_OPTIONS,
    SUBTASK_TITLE_MAX_LENGTH,
    TITLE_MAX_LENGTH,
    Priority,
    RecurrencePattern,
)
from cadence.db.session import get_db_session
from cadence.exceptions import CadenceError, InvalidRecurrencePatternError
from cadence.models.todo import Todo
from cadence.services.recurrence import next_occurrences, parse_pattern
from cadence.services.search import CompletionStatus, SearchMode, SearchOptions, TodoFilter, filter_todos
from cadence.services.todo import TodoService, todo_progress
from cadence.services.transfer import TransferService, export_filename
from cadence.utils.clock import CivilClock, ClockDep

router = APIRouter()
logger = structlog.get_logger()
settings = get_settings()


def _check_pattern(value: str | None) -> str | None:
    try:
        pattern = parse_pattern(value)
    except InvalidRecurrencePatternError as e:
        raise ValueError(e.message) from e
    return pattern.value if pattern else None


def _check_reminder(value: int | None) -> int | None:
    if value is not None and value not in REMINDER_MINUTES:
        raise ValueError(f"reminder_minutes must be one of {sorted(REMINDER_MINUTES)}")
    return value


PatternField = Annotated[str | None, AfterValidator(_check_pattern)]
ReminderField = Annotated[int | None, AfterValidator(_check_reminder)]


# Request/Response Models
class TodoCreate(BaseModel):
    """Create a new todo."""

    model_config = ConfigDict(str_strip_whitespace=True)

    title: str = Field(..., min_length=1, max_length=TITLE_MAX_LENGTH)
    due_date: datetime
    priority: Priority = Priority.MEDIUM
    recurrence_pattern: PatternField = None
    reminder_minutes: ReminderField = None
    tag_ids: list[int] = Field(default_factory=list)
    subtasks: list[str] = Field(default_factory=list)

    @field_validator("subtasks")
    @classmethod
    def validate_subtasks(cls, v: list[str]) -> list[str]:
        titles = [t.strip() for t in v]
        if any(not t or len(t) > SUBTASK_TITLE_MAX_LENGTH for t in titles):
            raise ValueError(f"Subtask titles must be 1-{SUBTASK_TITLE_MAX_LENGTH} characters")
        return titles


class TodoUpdate(BaseModel):
    """Update a todo. Only the fields sent are changed."""

    model_config = ConfigDict(str_strip_whitespace=True)

    title: str | None = Field(None, min_length=1, max_length=TITLE_MAX_LENGTH)
    due_date: datetime | None = None
    priority: Priority | None = None
    recurrence_pattern: PatternField = None
    reminder_minutes: ReminderField = None
    completed: bool | None = None


class TodoTagsUpdate(BaseModel):
    tag_ids: list[int]


class SubtaskResponse(BaseModel):
    id: int
    todo_id: int
    title: str
    completed: bool
    position: int


class TagSummary(BaseModel):
    id: int
    name: str
    color: str


class ProgressResponse(BaseModel):
    completed: int
    total: int
    percentage: int


class TodoResponse(BaseModel):
    """Todo response. Timestamps are rendered in the civil timezone."""

    id: int
    title: str
    due_date: str
    priority: str
    completed: bool
    completed_at: str | None
    recurrence_pattern: str | None
    reminder_minutes: int | None
    last_notification_sent: str | None
    is_overdue: bool
    created_at: str
    updated_at: str
    subtasks: list[SubtaskResponse]
    tags: list[TagSummary]
    progress: ProgressResponse


class TodoListResponse(BaseModel):
    todos: list[TodoResponse]
    total: int


class TodoUpdateResponse(BaseModel):
    todo: TodoResponse
    next_todo: TodoResponse | None = None


class RecurrencePreviewResponse(BaseModel):
    pattern: str
    occurrences: list[str]


class OptionItem(BaseModel):
    value: str | int | None
    label: str
    description: str | None = None


class TodoOptionsResponse(BaseModel):
    priorities: list[OptionItem]
    recurrence_patterns: list[OptionItem]
    reminder_options: list[OptionItem]


class ImportResponse(BaseModel):
    success: bool = True
    imported: dict[str, int]


def todo_to_response(todo: Todo, clock: CivilClock) -> dict[str, Any]:
    """Serialize a todo loaded with subtasks and tags."""
    return {
        "id": todo.id,
        "title": todo.title,
        "due_date": clock.format(todo.due_date),
        "priority": todo.priority,
        "completed": todo.completed,
        "completed_at": clock.format(todo.completed_at),
        "recurrence_pattern": todo.recurrence_pattern,
        "reminder_minutes": todo.reminder_minutes,
        "last_notification_sent": clock.format(todo.last_notification_sent),
        "is_overdue": not todo.completed and clock.is_past(todo.due_date),
        "created_at": clock.format(todo.created_at),
        "updated_at": clock.format(todo.updated_at),
        "subtasks": [
            {
                "id": s.id,
                "todo_id": s.todo_id,
                "title": s.title,
                "completed": s.completed,
                "position": s.position,
            }
            for s in todo.subtasks
        ],
        "tags": [{"id": t.id, "name": t.name, "color": t.color} for t in todo.tags],
        "progress": todo_progress(todo),
    }


# =============================================================================
# Collection endpoints
# =============================================================================


@router.post("", response_model=TodoResponse, status_code=status.HTTP_201_CREATED)
async def create_todo(
    todo_data: TodoCreate,
    current_user: CurrentUser,
    clock: ClockDep,
    db: AsyncSession = Depends(get_db_session),
) -> dict:
    """Create a new todo."""
    service = TodoService(db, clock)
    try:
        todo = await service.create_todo(
            user_id=current_user.id,
            title=todo_data.title,
            due_date=todo_data.due_date,
            priority=todo_data.priority.value,
            recurrence_pattern=todo_data.recurrence_pattern,
            reminder_minutes=todo_data.reminder_minutes,
            tag_ids=todo_data.tag_ids,
            subtask_titles=todo_data.subtasks,
        )
    except CadenceError as e:
        raise handle_domain_error(e)
    return todo_to_response(todo, clock)


@router.get("", response_model=TodoListResponse)
async def list_todos(
    current_user: CurrentUser,
    clock: ClockDep,
    db: AsyncSession = Depends(get_db_session),
    include_completed: bool = Query(False),
    priority: Priority | None = Query(None),
    tag_id: int | None = Query(None),
    q: str | None = Query(None, max_length=TITLE_MAX_LENGTH),
    search_mode: SearchMode = Query(SearchMode.SIMPLE),
    exact: bool = Query(False),
    case_sensitive: bool = Query(False),
    search_subtasks: bool = Query(True),
    completion: CompletionStatus | None = Query(None, alias="status"),
    date_from: date | None = Query(None),
    date_to: date | None = Query(None),
) -> dict:
    """List todos: incomplete first, then by priority, then by due date."""
    if completion is None:
        completion = CompletionStatus.ALL if include_completed else CompletionStatus.INCOMPLETE

    service = TodoService(db, clock)
    todos = await service.list_todos(
        current_user.id,
        include_completed=completion != CompletionStatus.INCOMPLETE,
    )

    todo_filter = TodoFilter(
        query=(q or "").strip(),
        priority=priority.value if priority else None,
        tag_id=tag_id,
        status=completion,
        date_from=date_from,
        date_to=date_to,
    )
    options = SearchOptions(
        mode=search_mode,
        case_sensitive=case_sensitive,
        exact=exact,
        search_subtasks=search_subtasks,
    )
    todos = filter_todos(todos, todo_filter, options, clock)

    return {"todos": [todo_to_response(t, clock) for t in todos], "total": len(todos)}


@router.get("/recurrence-preview", response_model=RecurrencePreviewResponse)
async def recurrence_preview(
    clock: ClockDep,
    current_user: CurrentUser,
    start: datetime = Query(...),
    pattern: RecurrencePattern = Query(...),
    count: int | None = Query(None, ge=0),
) -> dict:
    """Upcoming occurrences of a pattern, for display only."""
    count = settings.recurrence_preview_count if count is None else count
    if count > settings.recurrence_preview_max:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"count must be at most {settings.recurrence_preview_max}",
        )

    occurrences = next_occurrences(clock.localize(start), pattern, count)
    return {"pattern": pattern.value, "occurrences": [clock.format(o) for o in occurrences]}


@router.get("/options", response_model=TodoOptionsResponse)
async def todo_options(current_user: CurrentUser) -> dict:
    """Enumerations offered by the todo form."""
    return {
        "priorities": [{"value": p.value, "label": p.value.capitalize()} for p in Priority],
        "recurrence_patterns": [
            {"value": value, "label": label, "description": description}
            for value, (label, description) in RECURRENCE_LABELS.items()
        ],
        "reminder_options": [
            {"value": o.minutes, "label": o.short_label, "description": o.label}
            for o in REMINDER_OPTIONS
        ],
    }


# =============================================================================
# Export / import
# =============================================================================


@router.get("/export")
async def export_todos(
    current_user: CurrentUser,
    clock: ClockDep,
    db: AsyncSession = Depends(get_db_session),
) -> Response:
    """Download every todo, tag and template as a JSON backup."""
    document = await TransferService(db, clock).export(current_user.id)
    logger.info(
        "todos_exported",
        user_id=current_user.id,
        total_todos=document["metadata"]["total_todos"],
    )
    return Response(
        content=orjson.dumps(document, option=orjson.OPT_INDENT_2),
        media_type="application/json",
        headers={
            "Content-Disposition": f'attachment; filename="{export_filename(clock.today())}"'
        },
    )


@router.post("/import/preview")
async def preview_import(
    current_user: CurrentUser,
    clock: ClockDep,
    payload: Any = Body(...),
    db: AsyncSession = Depends(get_db_session),
) -> dict:
    """Validate a backup and report what importing it would do."""
    return await TransferService(db, clock).preview(current_user.id, payload)


@router.post("/import", response_model=ImportResponse)
async def import_todos(
    current_user: CurrentUser,
    clock: ClockDep,
    payload: Any = Body(...),
    db: AsyncSession = Depends(get_db_session),
) -> dict:
    """Restore a backup. Existing tags are merged by name, case-insensitively."""
    try:
        counts = await TransferService(db, clock).import_data(current_user.id, payload)
    except CadenceError as e:
        raise handle_domain_error(e)
    return {"success": True, "imported": counts}


# =============================================================================
# Item endpoints
# =============================================================================


@router.get("/{todo_id}", response_model=TodoResponse)
async def get_todo(
    todo_id: int,
    current_user: CurrentUser,
    clock: ClockDep,
    db: AsyncSession = Depends(get_db_session),
) -> dict:
    """Get a specific todo."""
    try:
        todo = await TodoService(db, clock).get_todo(todo_id, current_user.id)
    except CadenceError as e:
        raise handle_domain_error(e)
    return todo_to_response(todo, clock)


@router.patch("/{todo_id}", response_model=TodoUpdateResponse)
async def update_todo(
    todo_id: int,
    updates: TodoUpdate,
    current_user: CurrentUser,
    clock: ClockDep,
    db: AsyncSession = Depends(get_db_session),
) -> dict:
    """Update a todo. Completing a recurring todo creates its next instance."""
    service = TodoService(db, clock)
    update_data = updates.model_dump(exclude_unset=True)
    if isinstance(update_data.get("priority"), Priority):
        update_data["priority"] = update_data["priority"].value

    try:
        todo = await service.get_todo(todo_id, current_user.id)
        todo, next_todo = await service.update_todo(todo, update_data)
    except CadenceError as e:
        raise handle_domain_error(e)

    return {
        "todo": todo_to_response(todo, clock),
        "next_todo": todo_to_response(next_todo, clock) if next_todo else None,
    }


@router.put("/{todo_id}/tags", response_model=TodoResponse)
async def set_todo_tags(
    todo_id: int,
    tags_data: TodoTagsUpdate,
    current_user: CurrentUser,
    clock: ClockDep,
    db: AsyncSession = Depends(get_db_session),
) -> dict:
    """Replace a todo's tags."""
    service = TodoService(db, clock)
    try:
        todo = await service.get_todo(todo_id, current_user.id)
        todo = await service.set_tags(todo, tags_data.tag_ids)
    except CadenceError as e:
        raise handle_domain_error(e)
    return todo_to_response(todo, clock)


@router.delete("/{todo_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_todo(
    todo_id: int,
    current_user: CurrentUser,
    clock: ClockDep,
    db: AsyncSession = Depends(get_db_session),
) -> None:
    """Delete a todo along with its subtasks and tag links."""
    service = TodoService(db, clock)
    try:
        todo = await service.get_todo(todo_id, current_user.id)
        await service.delete_todo(todo)
    except CadenceError as e:
        raise handle_domain_error(e)
