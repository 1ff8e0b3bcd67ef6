"""Dashboard aggregation for the current user."""

from datetime import timedelta

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from taskload.db.base import ensure_utc, utcnow
from taskload.models.project import Task
from taskload.models.user import User
from taskload.services.project import ProjectService
from taskload.services.task import TaskService


def day_label(day) -> str:
    """Short label like "Mar 5"."""
    return f"{day.strftime('%b')} {day.day}"


class DashboardService:
    def __init__(self, db: AsyncSession):
        self.db = db
        self.tasks = TaskService(db)

    async def overview(self, user: User, task_limit: int = 10) -> dict:
        tasks = await self.tasks.recent(user, limit=task_limit)
        projects = await ProjectService(self.db).list_for_user(user.id)
        stats = await self.tasks.stats(user)
        return {"tasks": tasks, "projects": projects, "stats": stats}

    async def activity(self, user: User, days: int = 7) -> list[dict]:
        """Per-day counts of tasks created and completed, oldest day first."""
        days = max(1, min(days, 90))
        today = utcnow().replace(hour=0, minute=0, second=0, microsecond=0)
        since = today - timedelta(days=days - 1)
        scope = self.tasks._scope(user.id)

        created = await self.db.execute(
            select(Task.created_at).where(scope, Task.created_at >= since)
        )
        completed = await self.db.execute(
            select(Task.completed_at).where(
                scope, Task.status == "completed", Task.completed_at >= since
            )
        )

        buckets = {
            (since + timedelta(days=i)).date(): {"created": 0, "completed": 0}
            for i in range(days)
        }
        for (value,) in created.all():
            day = ensure_utc(value).date()
            if day in buckets:
                buckets[day]["created"] += 1
        for (value,) in completed.all():
            day = ensure_utc(value).date()
            if day in buckets:
                buckets[day]["completed"] += 1

        return [
            {"date": day_label(day), **counts}
            for day, counts in sorted(buckets.items())
        ]

