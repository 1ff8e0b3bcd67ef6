"""Project schemas."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, model_validator

from taskload.schemas.common import UTCDateTime, UserSummary

PROJECT_STATUS_PATTERN = "^(planning|active|on_hold|completed|cancelled)$"


class Budget(BaseModel):
    estimated: float = Field(default=0, ge=0)
    actual: float = Field(default=0, ge=0)


class ProjectSettings(BaseModel):
    allow_comments: bool = True
    allow_attachments: bool = True
    notifications: bool = True


class ProjectCreate(BaseModel):
    """Create a new project."""

    name: str = Field(..., min_length=1, max_length=100)
    description: str | None = Field(None, max_length=500)
    status: str = Field(default="planning", pattern=PROJECT_STATUS_PATTERN)
    color: str = Field(default="#1976d2", max_length=20)
    start_date: datetime | None = None
    end_date: datetime | None = None
    team_id: UUID | None = None
    budget: Budget = Field(default_factory=Budget)
    tags: list[str] = Field(default_factory=list)
    custom_fields: dict = Field(default_factory=dict)
    settings: ProjectSettings = Field(default_factory=ProjectSettings)

    @model_validator(mode="after")
    def check_dates(self) -> "ProjectCreate":
        if self.start_date and self.end_date and self.end_date < self.start_date:
            raise ValueError("End date must be after start date")
        return self


class ProjectUpdate(BaseModel):
    """Update a project. Dates are re-validated against stored values."""

    name: str | None = Field(None, min_length=1, max_length=100)
    description: str | None = Field(None, max_length=500)
    status: str | None = Field(None, pattern=PROJECT_STATUS_PATTERN)
    color: str | None = Field(None, max_length=20)
    start_date: datetime | None = None
    end_date: datetime | None = None
    team_id: UUID | None = None
    budget: Budget | None = None
    tags: list[str] | None = None
    custom_fields: dict | None = None
    settings: ProjectSettings | None = None


class MemberAdd(BaseModel):
    user_id: UUID
    role: str = Field(default="member", pattern="^(admin|member)$")


class MemberRoleUpdate(BaseModel):
    role: str = Field(..., pattern="^(admin|member)$")


class ProjectMemberResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    user_id: UUID
    role: str
    user: UserSummary | None = None
    created_at: UTCDateTime


class ProjectResponse(BaseModel):
    """Project response."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    name: str
    description: str | None
    status: str
    color: str
    start_date: UTCDateTime | None
    end_date: UTCDateTime | None
    owner_id: UUID
    team_id: UUID | None
    budget: dict
    progress: int
    tags: list[str]
    custom_fields: dict
    settings: dict
    members: list[ProjectMemberResponse] = []
    created_at: UTCDateTime
    updated_at: UTCDateTime
