"""Database package."""

from taskload.db.base import Base, BaseModel, ensure_utc, utcnow
from taskload.db.session import DBSession, get_db_session

__all__ = ["Base", "BaseModel", "DBSession", "ensure_utc", "get_db_session", "utcnow"]
