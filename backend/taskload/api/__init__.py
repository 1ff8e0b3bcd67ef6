"""API router package."""

from fastapi import APIRouter

from taskload.api.v1 import (
    auth,
    chat,
    dashboard,
    health,
    notifications,
    projects,
    tasks,
    teams,
    time_tracking,
    users,
    websocket,
)

router = APIRouter()

# Include all API routers
router.include_router(health.router, tags=["Health"])
router.include_router(auth.router, prefix="/auth", tags=["Authentication"])
router.include_router(users.router, prefix="/users", tags=["Users"])
router.include_router(projects.router, prefix="/projects", tags=["Projects"])
router.include_router(tasks.router, prefix="/tasks", tags=["Tasks"])
router.include_router(teams.router, prefix="/teams", tags=["Teams"])
router.include_router(time_tracking.router, prefix="/time-tracking", tags=["Time Tracking"])
router.include_router(chat.router, prefix="/chat", tags=["Chat"])
router.include_router(notifications.router, prefix="/notifications", tags=["Notifications"])
router.include_router(dashboard.router, prefix="/dashboard", tags=["Dashboard"])
router.include_router(websocket.router, tags=["WebSocket"])
