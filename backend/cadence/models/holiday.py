"""Holiday model for the calendar view."""

import datetime

from sqlalchemy import Boolean, Date, String
from sqlalchemy.orm import Mapped, mapped_column

from cadence.db.base import BaseModel


class Holiday(BaseModel):
    """A named date. Recurring holidays match the same month and day every year."""

    __tablename__ = "holidays"

    date: Mapped[datetime.date] = mapped_column(Date, unique=True, nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    is_recurring: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    def occurs_on(self, day: datetime.date) -> bool:
        if self.is_recurring:
            return (self.date.month, self.date.day) == (day.month, day.day)
        return self.date == day
