"""Civil-time clock.

All "now" readings and due-date comparisons go through a ``CivilClock`` bound
to the single configured IANA zone. Stored timestamps are UTC instants; the
clock converts them into civil time before any calendar arithmetic so day,
month and year boundaries match the user's wall clock.
"""

from datetime import date, datetime, time, timezone
from functools import lru_cache
from typing import Annotated, Callable, Optional
from zoneinfo import ZoneInfo

from fastapi import Depends

from cadence.config import get_settings


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class CivilClock:
    """Clock fixed to one civil timezone, with an injectable time source."""

    def __init__(self, tz_name: str, now_fn: Optional[Callable[[], datetime]] = None):
        self.tz_name = tz_name
        self.tz = ZoneInfo(tz_name)
        self._now_fn = now_fn or _utc_now

    def now(self) -> datetime:
        """Current instant in the civil zone."""
        current = self._now_fn()
        if current.tzinfo is None:
            raise ValueError("Clock time source must return an aware datetime")
        return current.astimezone(self.tz)

    def today(self) -> date:
        return self.now().date()

    def to_civil(self, ts: datetime) -> datetime:
        """Convert a timestamp into the civil zone.

        Naive values are treated as UTC instants, which is how the store hands
        them back on backends without native timezone support.
        """
        if ts.tzinfo is None:
            ts = ts.replace(tzinfo=timezone.utc)
        return ts.astimezone(self.tz)

    def localize(self, ts: datetime) -> datetime:
        """Interpret a naive wall-clock value as civil time.

        Aware values are only converted.
        """
        if ts.tzinfo is None:
            return ts.replace(tzinfo=self.tz)
        return ts.astimezone(self.tz)

    def start_of_day(self, day: date) -> datetime:
        return datetime.combine(day, time.min, tzinfo=self.tz)

    def end_of_day(self, day: date) -> datetime:
        return datetime.combine(day, time.max, tzinfo=self.tz)

    def is_past(self, ts: datetime) -> bool:
        return self.to_civil(ts) < self.now()

    def format(self, ts: Optional[datetime]) -> Optional[str]:
        """ISO-8601 rendering in the civil zone."""
        if ts is None:
            return None
        return self.to_civil(ts).isoformat()


@lru_cache
def get_clock() -> CivilClock:
    """Application clock built from settings, for dependency injection."""
    return CivilClock(get_settings().civil_timezone)


# Type alias for dependency injection
ClockDep = Annotated[CivilClock, Depends(get_clock)]
