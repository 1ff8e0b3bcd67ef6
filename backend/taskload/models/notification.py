"""User notifications."""

from datetime import datetime
from typing import TYPE_CHECKING
from uuid import UUID

from sqlalchemy import Boolean, DateTime, ForeignKey, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from taskload.db.base import BaseModel, JSONType

NOTIFICATION_TYPES = ("task", "project", "chat", "deadline", "mention", "system")

if TYPE_CHECKING:
    from taskload.models.user import User


class Notification(BaseModel):
    """
    Notification delivered to one recipient.

    Fan-out to several users creates one row per recipient so each
    keeps its own read state.
    """

    __tablename__ = "notifications"

    notification_type: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        index=True,
        comment="task, project, chat, deadline, mention or system",
    )
    content: Mapped[str] = mapped_column(Text, nullable=False)

    # Recipient
    user_id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    sender_id: Mapped[UUID | None] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
    )

    # Target entities (for navigation)
    related_project_id: Mapped[UUID | None] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("projects.id", ondelete="CASCADE"),
        nullable=True,
        index=True,
    )
    related_task_id: Mapped[UUID | None] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("tasks.id", ondelete="CASCADE"),
        nullable=True,
        index=True,
    )

    # Status
    is_read: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, index=True)
    read_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    expires_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    extra_data: Mapped[dict] = mapped_column(JSONType, nullable=False, default=dict)

    # Relationships
    sender: Mapped["User | None"] = relationship(
        "User", foreign_keys=[sender_id], lazy="selectin"
    )

    def __repr__(self) -> str:
        return f"<Notification {self.notification_type} user={self.user_id}>"
