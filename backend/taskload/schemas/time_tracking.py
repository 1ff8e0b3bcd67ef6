"""Time tracking schemas."""

from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, model_validator

from taskload.schemas.common import UTCDateTime


class SessionStart(BaseModel):
    task_id: UUID | None = None
    project_id: UUID | None = None
    notes: str | None = Field(None, max_length=1000)
    metadata: dict = Field(default_factory=dict)

    @model_validator(mode="after")
    def require_target(self) -> "SessionStart":
        if self.task_id is None and self.project_id is None:
            raise ValueError("Either task_id or project_id is required")
        return self


class SessionStop(BaseModel):
    notes: str | None = Field(None, max_length=1000)


class HeartbeatRequest(BaseModel):
    metadata: dict = Field(default_factory=dict)


class SessionResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    user_id: UUID
    task_id: UUID | None
    project_id: UUID | None
    start_time: UTCDateTime
    end_time: UTCDateTime | None
    duration: int
    is_active: bool
    notes: str | None
    metadata: dict = Field(validation_alias="extra_data")


class SummaryBucket(BaseModel):
    key: str
    total_duration: int
    session_count: int


class TimeSummary(BaseModel):
    group_by: str
    total_duration: int
    buckets: list[SummaryBucket]
