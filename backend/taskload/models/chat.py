"""Chat rooms and messages."""

from datetime import datetime
from typing import TYPE_CHECKING
from uuid import UUID

from sqlalchemy import DateTime, ForeignKey, String, Text, UniqueConstraint, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from taskload.db.base import BaseModel, JSONType, utcnow

CHAT_TYPES = ("direct", "group", "project", "task")

if TYPE_CHECKING:
    from taskload.models.user import User


class ChatRoom(BaseModel):
    """Conversation between participants, optionally tied to a project or task."""

    __tablename__ = "chat_rooms"

    # Public room key used by clients (direct_<a>_<b>, task_<id>_<ms>, ...)
    room_id: Mapped[str] = mapped_column(String(120), unique=True, nullable=False, index=True)
    name: Mapped[str | None] = mapped_column(String(200), nullable=True)
    type: Mapped[str] = mapped_column(
        String(20), nullable=False, default="direct"
    )  # direct, group, project, task

    project_id: Mapped[UUID | None] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("projects.id", ondelete="CASCADE"),
        nullable=True,
        index=True,
    )
    task_id: Mapped[UUID | None] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("tasks.id", ondelete="CASCADE"),
        nullable=True,
        index=True,
    )

    last_activity: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow, index=True
    )
    extra_data: Mapped[dict] = mapped_column(JSONType, nullable=False, default=dict)

    # Relationships
    participants: Mapped[list["ChatParticipant"]] = relationship(
        "ChatParticipant",
        back_populates="room",
        lazy="selectin",
        cascade="all, delete-orphan",
    )

    @property
    def participant_ids(self) -> list[UUID]:
        return [p.user_id for p in self.participants]

    def has_participant(self, user_id: UUID) -> bool:
        return any(p.user_id == user_id for p in self.participants)

    def __repr__(self) -> str:
        return f"<ChatRoom {self.room_id}>"


class ChatParticipant(BaseModel):
    """Membership of a user in a chat room."""

    __tablename__ = "chat_participants"
    __table_args__ = (UniqueConstraint("room_id", "user_id", name="uq_chat_participant"),)

    room_id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("chat_rooms.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    user_id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    room: Mapped["ChatRoom"] = relationship("ChatRoom", back_populates="participants")
    user: Mapped["User"] = relationship("User", lazy="selectin")


class ChatMessage(BaseModel):
    """A single message posted to a room."""

    __tablename__ = "chat_messages"

    room_id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("chat_rooms.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    # Null sender means the assistant
    sender_id: Mapped[UUID | None] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
    )
    content: Mapped[str] = mapped_column(Text, nullable=False)
    timestamp: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow, index=True
    )
    read_by: Mapped[list[str]] = mapped_column(JSONType, nullable=False, default=list)

    sender: Mapped["User | None"] = relationship("User", lazy="selectin")

    def __repr__(self) -> str:
        return f"<ChatMessage {self.id} room={self.room_id}>"
