"""Enumerations and fixed option sets shared by models, services and the API."""

import random
from dataclasses import dataclass
from enum import Enum


class Priority(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


PRIORITY_SORT_ORDER = {Priority.HIGH: 0, Priority.MEDIUM: 1, Priority.LOW: 2}


class RecurrencePattern(str, Enum):
    """The closed set of recurrence intervals.

    "Not recurring" is represented by ``None`` rather than a member, so code
    holding a ``RecurrencePattern`` always has an interval to apply.
    """

    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    YEARLY = "yearly"


RECURRENCE_NONE = "none"

RECURRENCE_LABELS: dict[str, tuple[str, str]] = {
    RECURRENCE_NONE: ("Does not repeat", "One-time task"),
    RecurrencePattern.DAILY.value: ("Daily", "Repeats every day"),
    RecurrencePattern.WEEKLY.value: ("Weekly", "Repeats every week"),
    RecurrencePattern.MONTHLY.value: ("Monthly", "Repeats every month"),
    RecurrencePattern.YEARLY.value: ("Yearly", "Repeats every year"),
}


class TemplateCategory(str, Enum):
    WORK = "work"
    PERSONAL = "personal"
    OTHER = "other"


@dataclass(frozen=True)
class ReminderOption:
    minutes: int
    label: str
    short_label: str


REMINDER_OPTIONS: tuple[ReminderOption, ...] = (
    ReminderOption(15, "15 minutes before", "15 min"),
    ReminderOption(30, "30 minutes before", "30 min"),
    ReminderOption(60, "1 hour before", "1 hr"),
    ReminderOption(120, "2 hours before", "2 hrs"),
    ReminderOption(1440, "1 day before", "1 day"),
    ReminderOption(2880, "2 days before", "2 days"),
    ReminderOption(10080, "1 week before", "1 wk"),
)

REMINDER_MINUTES: frozenset[int] = frozenset(o.minutes for o in REMINDER_OPTIONS)


# Tag colour palette
TAG_COLORS = (
    "#EF4444",  # Red
    "#F59E0B",  # Amber
    "#10B981",  # Green
    "#3B82F6",  # Blue
    "#6366F1",  # Indigo
    "#8B5CF6",  # Purple
    "#EC4899",  # Pink
    "#14B8A6",  # Teal
    "#F97316",  # Orange
    "#84CC16",  # Lime
)

TAG_COLOR_PATTERN = r"^#[0-9A-Fa-f]{6}$"


def random_tag_color() -> str:
    """Pick a palette colour for a tag created without one."""
    return random.choice(TAG_COLORS)


TITLE_MAX_LENGTH = 500
SUBTASK_TITLE_MAX_LENGTH = 200
TAG_NAME_MAX_LENGTH = 30
TEMPLATE_NAME_MAX_LENGTH = 100
