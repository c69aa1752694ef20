"""SQLAlchemy models package."""

from cadence.models.holiday import Holiday
from cadence.models.tag import Tag, TodoTag
from cadence.models.template import Template
from cadence.models.todo import Subtask, Todo
from cadence.models.user import User

__all__ = [
    "Holiday",
    "Subtask",
    "Tag",
    "Template",
    "Todo",
    "TodoTag",
    "User",
]
