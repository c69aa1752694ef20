"""Database package."""

from cadence.db.base import Base, BaseModel, UTCDateTime
from cadence.db.session import get_db_session

__all__ = ["Base", "BaseModel", "UTCDateTime", "get_db_session"]
