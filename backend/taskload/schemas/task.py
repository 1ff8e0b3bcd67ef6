"""Task, subtask and comment schemas."""

from datetime import datetime
from typing import Any
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator

from taskload.models.project import TASK_STATUSES, Task
from taskload.schemas.common import Pagination, UTCDateTime, UserSummary

TASK_STATUS_PATTERN = "^(" + "|".join(TASK_STATUSES) + ")$"
TASK_PRIORITY_PATTERN = "^(low|medium|high|urgent)$"


def _empty_to_none(v: Any) -> Any:
    # The SPA sends "" for an unassigned task
    if v == "":
        return None
    return v


class TaskCreate(BaseModel):
    """Create a new task."""

    title: str = Field(..., min_length=1, max_length=100)
    description: str | None = Field(None, max_length=500)
    project_id: UUID
    status: str = Field(default="todo", pattern=TASK_STATUS_PATTERN)
    priority: str = Field(default="medium", pattern=TASK_PRIORITY_PATTERN)
    assigned_to: UUID | None = None
    start_date: datetime | None = None
    due_date: datetime | None = None
    tags: list[str] = Field(default_factory=list)
    estimated_hours: float | None = Field(None, ge=0)
    actual_hours: float | None = Field(None, ge=0)
    dependencies: list[UUID] = Field(default_factory=list)
    custom_fields: dict = Field(default_factory=dict)
    subtasks: list[str] = Field(default_factory=list)

    @field_validator("assigned_to", mode="before")
    @classmethod
    def normalize_assignee(cls, v: Any) -> Any:
        return _empty_to_none(v)


class TaskUpdate(BaseModel):
    """Update a task."""

    title: str | None = Field(None, min_length=1, max_length=100)
    description: str | None = Field(None, max_length=500)
    status: str | None = Field(None, pattern=TASK_STATUS_PATTERN)
    priority: str | None = Field(None, pattern=TASK_PRIORITY_PATTERN)
    assigned_to: UUID | None = None
    start_date: datetime | None = None
    due_date: datetime | None = None
    tags: list[str] | None = None
    estimated_hours: float | None = Field(None, ge=0)
    actual_hours: float | None = Field(None, ge=0)
    dependencies: list[UUID] | None = None
    custom_fields: dict | None = None

    @field_validator("assigned_to", mode="before")
    @classmethod
    def normalize_assignee(cls, v: Any) -> Any:
        return _empty_to_none(v)


class TaskStatusUpdate(BaseModel):
    # Checked in the service so the error reads "Invalid status value"
    status: str


class SubtaskCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=200)


class SubtaskUpdate(BaseModel):
    title: str | None = Field(None, min_length=1, max_length=200)
    completed: bool | None = None


class SubtaskResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    title: str
    completed: bool
    position: int


class CommentCreate(BaseModel):
    content: str = Field(..., min_length=1, max_length=5000)


class CommentResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    task_id: UUID
    user_id: UUID
    content: str
    user: UserSummary | None = None
    created_at: UTCDateTime
    updated_at: UTCDateTime


class TaskResponse(BaseModel):
    """Task response."""

    id: UUID
    title: str
    description: str | None
    status: str
    priority: str
    project_id: UUID
    project_name: str | None = None
    created_by: UUID | None
    assigned_to: UUID | None
    assignee: UserSummary | None = None
    start_date: UTCDateTime | None
    due_date: UTCDateTime | None
    completed_at: UTCDateTime | None
    estimated_hours: float | None
    actual_hours: float | None
    tags: list[str]
    dependencies: list[str]
    custom_fields: dict
    chat_room_id: str | None
    subtasks: list[SubtaskResponse] = []
    progress: int = 0
    comment_count: int = 0
    created_at: UTCDateTime
    updated_at: UTCDateTime

    @classmethod
    def from_task(cls, task: Task) -> "TaskResponse":
        return cls(
            id=task.id,
            title=task.title,
            description=task.description,
            status=task.status,
            priority=task.priority,
            project_id=task.project_id,
            project_name=task.project.name if task.project else None,
            created_by=task.created_by_id,
            assigned_to=task.assigned_to_id,
            assignee=UserSummary.model_validate(task.assigned_to) if task.assigned_to else None,
            start_date=task.start_date,
            due_date=task.due_date,
            completed_at=task.completed_at,
            estimated_hours=task.estimated_hours,
            actual_hours=task.actual_hours,
            tags=task.tags or [],
            dependencies=task.dependencies or [],
            custom_fields=task.custom_fields or {},
            chat_room_id=task.chat_room_id,
            subtasks=[SubtaskResponse.model_validate(s) for s in task.subtasks],
            progress=task.subtask_progress,
            comment_count=len(task.comments),
            created_at=task.created_at,
            updated_at=task.updated_at,
        )


class TaskListResponse(BaseModel):
    tasks: list[TaskResponse]
    pagination: Pagination


class TaskStats(BaseModel):
    total: int
    completed: int
    in_progress: int
    todo: int
    overdue: int
    due_today: int
    due_this_week: int
    by_priority: dict[str, int]
    completion_rate: float
