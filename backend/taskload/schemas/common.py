"""Shared schema building blocks."""

from datetime import datetime
from typing import Annotated
from uuid import UUID

from pydantic import AfterValidator, BaseModel, ConfigDict

from taskload.db.base import ensure_utc

# Datetimes come back naive from SQLite; responses are always UTC-aware
UTCDateTime = Annotated[datetime, AfterValidator(ensure_utc)]


class UserSummary(BaseModel):
    """Compact user reference embedded in other responses."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    username: str
    email: str
    first_name: str | None = None
    last_name: str | None = None
    profile_image: str | None = None


class Pagination(BaseModel):
    total: int
    page: int
    limit: int
    pages: int

    @classmethod
    def build(cls, total: int, page: int, limit: int) -> "Pagination":
        return cls(total=total, page=page, limit=limit, pages=(total + limit - 1) // limit)


class MessageResponse(BaseModel):
    message: str
