"""Cadence: personal todo tracking with recurrence and reminders."""

__version__ = "0.1.0"
