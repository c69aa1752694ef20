"""Todo template model."""

from typing import TYPE_CHECKING, Any

from sqlalchemy import JSON, ForeignKey, Integer, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from cadence.constants import Priority
from cadence.db.base import BaseModel

if TYPE_CHECKING:
    from cadence.models.user import User


class Template(BaseModel):
    """Reusable todo blueprint with a relative due offset and subtask titles."""

    __tablename__ = "templates"

    user_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    category: Mapped[str | None] = mapped_column(String(20), nullable=True)  # work, personal, other
    title: Mapped[str] = mapped_column(String(500), nullable=False)
    priority: Mapped[str] = mapped_column(String(20), nullable=False, default=Priority.MEDIUM.value)
    due_offset_days: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    # [{"title": str, "position": int}, ...]
    subtasks: Mapped[list[dict[str, Any]]] = mapped_column(JSON, nullable=False, default=list)

    user: Mapped["User"] = relationship("User", back_populates="templates")
