"""Chat schemas."""

from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from taskload.schemas.common import UTCDateTime, UserSummary

CHAT_TYPE_PATTERN = "^(direct|group|project|task)$"


class DirectChatRequest(BaseModel):
    user_id: UUID


class ChatRoomCreate(BaseModel):
    type: str = Field(default="group", pattern=CHAT_TYPE_PATTERN)
    name: str | None = Field(None, max_length=200)
    participants: list[UUID] = Field(default_factory=list)
    project_id: UUID | None = None


class MessageCreate(BaseModel):
    content: str = Field(..., min_length=1, max_length=5000)


class ChatMessageResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    sender_id: UUID | None
    sender: UserSummary | None = None
    content: str
    timestamp: UTCDateTime
    read_by: list[str]


class ChatRoomResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    room_id: str
    name: str | None
    type: str
    participant_ids: list[UUID]
    project_id: UUID | None
    task_id: UUID | None
    last_activity: UTCDateTime


class ChatHistoryResponse(BaseModel):
    room: ChatRoomResponse
    messages: list[ChatMessageResponse]
