"""SQLAlchemy models package."""

from taskload.models.user import User
from taskload.models.team import Team, TeamMember
from taskload.models.project import (
    Project,
    ProjectMember,
    Subtask,
    Task,
    TaskComment,
)
from taskload.models.time_tracking import TimeTrackingSession
from taskload.models.chat import ChatMessage, ChatParticipant, ChatRoom
from taskload.models.notification import Notification

__all__ = [
    "User",
    "Team",
    "TeamMember",
    "Project",
    "ProjectMember",
    "Task",
    "Subtask",
    "TaskComment",
    "TimeTrackingSession",
    "ChatRoom",
    "ChatParticipant",
    "ChatMessage",
    "Notification",
]
