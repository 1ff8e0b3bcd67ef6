"""Team schemas."""

from typing import Any, Generic, TypeVar
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from taskload.schemas.common import UTCDateTime, UserSummary

T = TypeVar("T")


class Envelope(BaseModel, Generic[T]):
    """Team endpoints wrap payloads as {"status": "success", "data": ...}."""

    status: str = "success"
    data: T


class TeamCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    description: str | None = Field(None, max_length=500)
    tags: list[str] = Field(default_factory=list)
    member_ids: list[UUID] = Field(default_factory=list)
    custom_fields: dict = Field(default_factory=dict)


class TeamUpdate(BaseModel):
    name: str | None = Field(None, min_length=1, max_length=100)
    description: str | None = Field(None, max_length=500)
    tags: list[str] | None = None
    is_active: bool | None = None


class TeamMemberAdd(BaseModel):
    user_id: UUID


class CustomFieldsUpdate(BaseModel):
    custom_fields: dict[str, Any]


class TeamMemberResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    user_id: UUID
    role: str
    user: UserSummary | None = None


class TeamProjectSummary(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    name: str
    status: str
    progress: int


class TeamResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    name: str
    description: str | None
    leader_id: UUID
    tags: list[str]
    is_active: bool
    custom_fields: dict
    members: list[TeamMemberResponse] = []
    projects: list[TeamProjectSummary] = []
    created_at: UTCDateTime
    updated_at: UTCDateTime


class TeamStats(BaseModel):
    member_count: int
    project_count: int
    task_count: int
    tasks_by_status: dict[str, int]
