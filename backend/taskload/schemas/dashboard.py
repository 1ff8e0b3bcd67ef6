"""Dashboard schemas."""

from pydantic import BaseModel

from taskload.schemas.project import ProjectResponse
from taskload.schemas.task import TaskResponse, TaskStats


class DashboardOverview(BaseModel):
    tasks: list[TaskResponse]
    projects: list[ProjectResponse]
    stats: TaskStats


class ActivityDay(BaseModel):
    date: str
    created: int
    completed: int
