"""Time tracking sessions."""

from datetime import datetime
from typing import TYPE_CHECKING
from uuid import UUID

from sqlalchemy import Boolean, DateTime, ForeignKey, Integer, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from taskload.db.base import BaseModel, JSONType, ensure_utc

if TYPE_CHECKING:
    from taskload.models.project import Project, Task
    from taskload.models.user import User


class TimeTrackingSession(BaseModel):
    """A span of work by one user on a task and/or project."""

    __tablename__ = "time_tracking_sessions"

    user_id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    task_id: Mapped[UUID | None] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("tasks.id", ondelete="CASCADE"),
        nullable=True,
        index=True,
    )
    project_id: Mapped[UUID | None] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("projects.id", ondelete="CASCADE"),
        nullable=True,
        index=True,
    )

    start_time: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    end_time: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    duration: Mapped[int] = mapped_column(Integer, nullable=False, default=0)  # seconds
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, index=True)
    notes: Mapped[str | None] = mapped_column(String(1000), nullable=True)

    # Client info, last heartbeat, etc.
    extra_data: Mapped[dict] = mapped_column(JSONType, nullable=False, default=dict)

    # Relationships
    user: Mapped["User"] = relationship("User", lazy="selectin")
    task: Mapped["Task | None"] = relationship("Task", lazy="selectin")
    project: Mapped["Project | None"] = relationship("Project", lazy="selectin")

    def stop(self, end_time: datetime) -> None:
        """Close the session and record its length in whole seconds."""
        self.end_time = end_time
        self.is_active = False
        elapsed = ensure_utc(end_time) - ensure_utc(self.start_time)
        self.duration = max(0, int(elapsed.total_seconds()))

    def __repr__(self) -> str:
        return f"<TimeTrackingSession {self.id} user={self.user_id} active={self.is_active}>"
