"""In-memory search and filtering over loaded todos."""

from collections.abc import Iterable
from dataclasses import dataclass
from datetime import date
from enum import Enum
from typing import Optional

from cadence.models.todo import Todo
from cadence.utils.clock import CivilClock


class SearchMode(str, Enum):
    SIMPLE = "simple"  # title only
    ADVANCED = "advanced"  # title, tag names, subtask titles


class CompletionStatus(str, Enum):
    ALL = "all"
    INCOMPLETE = "incomplete"
    COMPLETE = "complete"


@dataclass
class SearchOptions:
    mode: SearchMode = SearchMode.SIMPLE
    case_sensitive: bool = False
    exact: bool = False
    search_subtasks: bool = True


@dataclass
class TodoFilter:
    query: str = ""
    priority: Optional[str] = None
    tag_id: Optional[int] = None
    status: CompletionStatus = CompletionStatus.INCOMPLETE
    date_from: Optional[date] = None
    date_to: Optional[date] = None


def _text_matches(text: str, term: str, options: SearchOptions) -> bool:
    if not options.case_sensitive:
        text = text.lower()
    if options.exact:
        return text == term
    return term in text


def matches_query(todo: Todo, query: str, options: SearchOptions) -> bool:
    term = query if options.case_sensitive else query.lower()

    if _text_matches(todo.title, term, options):
        return True
    if options.mode == SearchMode.SIMPLE:
        return False

    if any(_text_matches(tag.name, term, options) for tag in todo.tags):
        return True
    if options.search_subtasks:
        return any(_text_matches(s.title, term, options) for s in todo.subtasks)
    return False


def filter_todos(
    todos: Iterable[Todo],
    todo_filter: TodoFilter,
    options: SearchOptions,
    clock: CivilClock,
) -> list[Todo]:
    """Apply text search then attribute filters, keeping the input order."""
    results = list(todos)

    if todo_filter.query:
        results = [t for t in results if matches_query(t, todo_filter.query, options)]

    if todo_filter.priority:
        results = [t for t in results if t.priority == todo_filter.priority]

    if todo_filter.tag_id:
        results = [t for t in results if any(tag.id == todo_filter.tag_id for tag in t.tags)]

    if todo_filter.status == CompletionStatus.INCOMPLETE:
        results = [t for t in results if not t.completed]
    elif todo_filter.status == CompletionStatus.COMPLETE:
        results = [t for t in results if t.completed]

    # Inclusive civil range; the end date runs to the last microsecond of the day
    if todo_filter.date_from and todo_filter.date_to:
        start = clock.start_of_day(todo_filter.date_from)
        end = clock.end_of_day(todo_filter.date_to)
        results = [t for t in results if start <= t.due_date <= end]

    return results
