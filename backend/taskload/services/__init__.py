"""Services package."""

from taskload.services.auth import AuthService
from taskload.services.cache import CacheService, cache
from taskload.services.chat import ChatService, TaskChatService
from taskload.services.chatbot import ChatbotService, get_chatbot
from taskload.services.dashboard import DashboardService
from taskload.services.notification import NotificationService
from taskload.services.project import ProjectService
from taskload.services.task import TaskService
from taskload.services.team import TeamService
from taskload.services.time_tracking import TimeTrackingService

__all__ = [
    "AuthService",
    "CacheService",
    "cache",
    "ChatService",
    "TaskChatService",
    "ChatbotService",
    "get_chatbot",
    "DashboardService",
    "NotificationService",
    "ProjectService",
    "TaskService",
    "TeamService",
    "TimeTrackingService",
]
