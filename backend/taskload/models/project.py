"""Project and Task models."""

from datetime import datetime
from typing import TYPE_CHECKING
from uuid import UUID

from sqlalchemy import (
    Boolean,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
    Uuid,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from taskload.db.base import BaseModel, JSONType

PROJECT_STATUSES = ("planning", "active", "on_hold", "completed", "cancelled")
PROJECT_ROLES = ("owner", "admin", "member")
TASK_STATUSES = ("new", "assigned", "todo", "in_progress", "reviewing", "completed")
TASK_PRIORITIES = ("low", "medium", "high", "urgent")

if TYPE_CHECKING:
    from taskload.models.team import Team
    from taskload.models.user import User


def default_budget() -> dict:
    return {"estimated": 0, "actual": 0}


def default_project_settings() -> dict:
    return {"allow_comments": True, "allow_attachments": True, "notifications": True}


class Project(BaseModel):
    """Project grouping tasks, owned by one user and shared with members."""

    __tablename__ = "projects"

    # Basic info
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    description: Mapped[str | None] = mapped_column(String(500), nullable=True)
    color: Mapped[str] = mapped_column(String(20), nullable=False, default="#1976d2")

    status: Mapped[str] = mapped_column(
        String(50), nullable=False, default="planning"
    )  # planning, active, on_hold, completed, cancelled

    # Timeline
    start_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    end_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    # Ownership
    owner_id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    team_id: Mapped[UUID | None] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("teams.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )

    budget: Mapped[dict] = mapped_column(JSONType, nullable=False, default=default_budget)
    progress: Mapped[int] = mapped_column(Integer, nullable=False, default=0)  # 0-100
    tags: Mapped[list[str]] = mapped_column(JSONType, nullable=False, default=list)
    custom_fields: Mapped[dict] = mapped_column(JSONType, nullable=False, default=dict)
    settings: Mapped[dict] = mapped_column(
        JSONType, nullable=False, default=default_project_settings
    )

    # Relationships
    owner: Mapped["User"] = relationship("User", foreign_keys=[owner_id], lazy="selectin")
    team: Mapped["Team | None"] = relationship("Team", back_populates="projects")
    members: Mapped[list["ProjectMember"]] = relationship(
        "ProjectMember",
        back_populates="project",
        lazy="selectin",
        cascade="all, delete-orphan",
    )

    def member_role(self, user_id: UUID) -> str | None:
        """Role of the user in this project, or None when not a member."""
        if self.owner_id == user_id:
            return "owner"
        for member in self.members:
            if member.user_id == user_id:
                return member.role
        return None

    def has_access(self, user_id: UUID) -> bool:
        return self.member_role(user_id) is not None

    def has_role(self, user_id: UUID, *roles: str) -> bool:
        return self.member_role(user_id) in roles

    def __repr__(self) -> str:
        try:
            return f"<Project {self.name}>"
        except Exception:
            return f"<Project id={self.id}>"


class ProjectMember(BaseModel):
    """Project membership with role-based access."""

    __tablename__ = "project_members"
    __table_args__ = (
        UniqueConstraint("project_id", "user_id", name="uq_project_member"),
    )

    project_id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("projects.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    user_id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    role: Mapped[str] = mapped_column(
        String(50), nullable=False, default="member"
    )  # owner, admin, member (supervisor when granted by an admin)

    # Relationships
    project: Mapped["Project"] = relationship("Project", back_populates="members")
    user: Mapped["User"] = relationship("User", lazy="selectin")

    def __repr__(self) -> str:
        return f"<ProjectMember project={self.project_id} user={self.user_id}>"


class Task(BaseModel):
    """Task within a project."""

    __tablename__ = "tasks"

    # Basic info
    title: Mapped[str] = mapped_column(String(100), nullable=False)
    description: Mapped[str | None] = mapped_column(String(500), nullable=True)

    # Status and priority
    status: Mapped[str] = mapped_column(
        String(50), nullable=False, default="todo", index=True
    )  # new, assigned, todo, in_progress, reviewing, completed
    priority: Mapped[str] = mapped_column(
        String(20), nullable=False, default="medium"
    )  # low, medium, high, urgent

    # Ownership and assignment
    project_id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("projects.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    created_by_id: Mapped[UUID | None] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    assigned_to_id: Mapped[UUID | None] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )

    # Timeline
    start_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    due_date: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True, index=True
    )
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    # Effort
    estimated_hours: Mapped[float | None] = mapped_column(Float, nullable=True)
    actual_hours: Mapped[float | None] = mapped_column(Float, nullable=True)

    tags: Mapped[list[str]] = mapped_column(JSONType, nullable=False, default=list)
    dependencies: Mapped[list[str]] = mapped_column(JSONType, nullable=False, default=list)
    custom_fields: Mapped[dict] = mapped_column(JSONType, nullable=False, default=dict)

    # Room id of the task's chat (task_<id>_<epoch ms>)
    chat_room_id: Mapped[str | None] = mapped_column(String(120), nullable=True)

    # Relationships
    project: Mapped["Project"] = relationship("Project", lazy="selectin")
    created_by: Mapped["User | None"] = relationship(
        "User", foreign_keys=[created_by_id], lazy="selectin"
    )
    assigned_to: Mapped["User | None"] = relationship(
        "User", foreign_keys=[assigned_to_id], lazy="selectin"
    )
    subtasks: Mapped[list["Subtask"]] = relationship(
        "Subtask",
        back_populates="task",
        lazy="selectin",
        cascade="all, delete-orphan",
        order_by="Subtask.position",
    )
    comments: Mapped[list["TaskComment"]] = relationship(
        "TaskComment",
        back_populates="task",
        lazy="selectin",
        cascade="all, delete-orphan",
        order_by="TaskComment.created_at",
    )

    @property
    def subtask_progress(self) -> int:
        """Percentage of completed subtasks (0 when there are none)."""
        if not self.subtasks:
            return 0
        done = sum(1 for s in self.subtasks if s.completed)
        return round(done * 100 / len(self.subtasks))

    def __repr__(self) -> str:
        try:
            return f"<Task {self.title[:30]}>"
        except Exception:
            return "<Task detached>"


class Subtask(BaseModel):
    """Checklist item inside a task."""

    __tablename__ = "subtasks"

    task_id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("tasks.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    completed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    position: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    task: Mapped["Task"] = relationship("Task", back_populates="subtasks")

    def __repr__(self) -> str:
        return f"<Subtask {self.id} on task={self.task_id}>"


class TaskComment(BaseModel):
    """Comment on a task."""

    __tablename__ = "task_comments"

    task_id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("tasks.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    user_id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
    )
    content: Mapped[str] = mapped_column(Text, nullable=False)

    # Relationships
    task: Mapped["Task"] = relationship("Task", back_populates="comments")
    user: Mapped["User"] = relationship("User", lazy="selectin")

    def __repr__(self) -> str:
        return f"<TaskComment {self.id} on task={self.task_id}>"
