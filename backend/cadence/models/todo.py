"""Todo and Subtask models."""

from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import Boolean, ForeignKey, Integer, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from cadence.constants import Priority
from cadence.db.base import BaseModel, UTCDateTime

if TYPE_CHECKING:
    from cadence.models.tag import Tag
    from cadence.models.user import User


class Todo(BaseModel):
    """A dated item on a user's list, optionally recurring and with a reminder."""

    __tablename__ = "todos"

    user_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    title: Mapped[str] = mapped_column(String(500), nullable=False)
    due_date: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False, index=True)
    priority: Mapped[str] = mapped_column(
        String(20), nullable=False, default=Priority.MEDIUM.value
    )  # high, medium, low

    completed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, index=True)
    completed_at: Mapped[datetime | None] = mapped_column(UTCDateTime(), nullable=True)

    # Recurrence and reminders
    recurrence_pattern: Mapped[str | None] = mapped_column(
        String(20), nullable=True
    )  # daily, weekly, monthly, yearly
    reminder_minutes: Mapped[int | None] = mapped_column(Integer, nullable=True)
    last_notification_sent: Mapped[datetime | None] = mapped_column(UTCDateTime(), nullable=True)

    # Relationships
    user: Mapped["User"] = relationship("User", back_populates="todos")
    subtasks: Mapped[list["Subtask"]] = relationship(
        "Subtask",
        back_populates="todo",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="Subtask.position",
        lazy="selectin",
    )
    tags: Mapped[list["Tag"]] = relationship(
        "Tag",
        secondary="todo_tags",
        order_by="Tag.name",
        lazy="selectin",
    )

    @property
    def is_recurring(self) -> bool:
        return self.recurrence_pattern is not None

    def __repr__(self) -> str:
        return f"<Todo {self.id} {self.title!r}>"


class Subtask(BaseModel):
    """Checklist item under a todo. Positions are dense and zero-based."""

    __tablename__ = "subtasks"

    todo_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("todos.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    completed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    position: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    todo: Mapped["Todo"] = relationship("Todo", back_populates="subtasks")
