"""Notification schemas."""

from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from taskload.schemas.common import Pagination, UTCDateTime, UserSummary


class NotificationResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    type: str = Field(validation_alias="notification_type")
    content: str
    sender: UserSummary | None = None
    related_project_id: UUID | None
    related_task_id: UUID | None
    is_read: bool
    read_at: UTCDateTime | None
    expires_at: UTCDateTime | None
    metadata: dict = Field(validation_alias="extra_data")
    created_at: UTCDateTime


class NotificationListResponse(BaseModel):
    notifications: list[NotificationResponse]
    pagination: Pagination


class UnreadCount(BaseModel):
    count: int
