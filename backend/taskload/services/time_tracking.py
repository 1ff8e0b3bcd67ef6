"""Time tracking service."""

from collections import defaultdict
from datetime import datetime
from typing import Callable
from uuid import UUID

import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from taskload.db.base import ensure_utc, utcnow
from taskload.errors import BadRequestError, ForbiddenError, NotFoundError
from taskload.models.project import Project, Task
from taskload.models.time_tracking import TimeTrackingSession
from taskload.models.user import User
from taskload.realtime.manager import notify_project
from taskload.schemas.time_tracking import SessionStart, SummaryBucket, TimeSummary

logger = structlog.get_logger()

USER_GROUPINGS = ("day", "week", "month", "project", "task")
PROJECT_GROUPINGS = ("user", "task", "date")


def _bucket_key(group_by: str) -> Callable[[TimeTrackingSession], str]:
    def by_start(fmt: str) -> Callable[[TimeTrackingSession], str]:
        return lambda s: ensure_utc(s.start_time).strftime(fmt)

    keys: dict[str, Callable[[TimeTrackingSession], str]] = {
        "day": by_start("%Y-%m-%d"),
        "date": by_start("%Y-%m-%d"),
        "week": by_start("%G-W%V"),
        "month": by_start("%Y-%m"),
        "project": lambda s: str(s.project_id) if s.project_id else "none",
        "task": lambda s: str(s.task_id) if s.task_id else "none",
        "user": lambda s: str(s.user_id),
    }
    return keys[group_by]


def summarize(sessions: list[TimeTrackingSession], group_by: str) -> TimeSummary:
    """Total duration and session count per bucket, buckets sorted by key."""
    key_for = _bucket_key(group_by)
    durations: dict[str, int] = defaultdict(int)
    counts: dict[str, int] = defaultdict(int)
    for session in sessions:
        key = key_for(session)
        durations[key] += session.duration
        counts[key] += 1

    buckets = [
        SummaryBucket(key=key, total_duration=durations[key], session_count=counts[key])
        for key in sorted(durations)
    ]
    return TimeSummary(
        group_by=group_by,
        total_duration=sum(durations.values()),
        buckets=buckets,
    )


class TimeTrackingService:
    """Start/stop sessions and report on tracked time."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def _resolve_target(
        self, user: User, task_id: UUID | None, project_id: UUID | None
    ) -> tuple[UUID | None, UUID | None]:
        """Validate the task/project and fill in the task's project."""
        if task_id is not None:
            task = await self.db.get(Task, task_id)
            if task is None:
                raise NotFoundError("Task not found")
            if project_id is not None and project_id != task.project_id:
                raise BadRequestError("Task does not belong to the given project")
            project_id = task.project_id
        if project_id is not None:
            project = await self.db.get(Project, project_id)
            if project is None:
                raise NotFoundError("Project not found")
            if not project.has_access(user.id):
                raise ForbiddenError("You don't have permission to access this project")
        return task_id, project_id

    async def _get_own(self, session_id: UUID, user: User) -> TimeTrackingSession:
        session = await self.db.get(TimeTrackingSession, session_id)
        if session is None or session.user_id != user.id:
            raise NotFoundError("Session not found")
        return session

    async def start(self, data: SessionStart, user: User) -> TimeTrackingSession:
        task_id, project_id = await self._resolve_target(user, data.task_id, data.project_id)

        # Only one running session per user and target
        conditions = [
            TimeTrackingSession.user_id == user.id,
            TimeTrackingSession.is_active.is_(True),
        ]
        if task_id is not None:
            conditions.append(TimeTrackingSession.task_id == task_id)
        else:
            conditions.append(TimeTrackingSession.project_id == project_id)
            conditions.append(TimeTrackingSession.task_id.is_(None))
        running = await self.db.execute(select(TimeTrackingSession).where(*conditions))
        now = utcnow()
        for previous in running.scalars():
            previous.stop(now)
            logger.info("Auto-stopped time tracking session", session_id=str(previous.id))

        session = TimeTrackingSession(
            user_id=user.id,
            task_id=task_id,
            project_id=project_id,
            start_time=now,
            is_active=True,
            duration=0,
            notes=data.notes,
            extra_data={**data.metadata, "last_heartbeat": now.isoformat()},
        )
        self.db.add(session)
        await self.db.flush()

        logger.info("Time tracking started", session_id=str(session.id), user_id=str(user.id))
        if project_id is not None:
            notify_project(
                self.db,
                project_id,
                "timeTracking:memberStarted",
                {
                    "session_id": str(session.id),
                    "user_id": str(user.id),
                    "username": user.username,
                    "task_id": str(task_id) if task_id else None,
                    "start_time": now,
                },
                exclude_user=user.id,
            )
        return session

    async def stop(
        self, session_id: UUID, user: User, notes: str | None = None
    ) -> TimeTrackingSession:
        session = await self._get_own(session_id, user)
        if not session.is_active:
            raise BadRequestError("Session already stopped")

        session.stop(utcnow())
        if notes is not None:
            session.notes = notes
        await self.db.flush()

        logger.info("Time tracking stopped", session_id=str(session_id), duration=session.duration)
        if session.project_id is not None:
            notify_project(
                self.db,
                session.project_id,
                "timeTracking:memberStopped",
                {
                    "session_id": str(session.id),
                    "user_id": str(user.id),
                    "username": user.username,
                    "duration": session.duration,
                },
                exclude_user=user.id,
            )
        return session

    async def heartbeat(
        self, session_id: UUID, user: User, metadata: dict | None = None
    ) -> TimeTrackingSession:
        session = await self._get_own(session_id, user)
        if not session.is_active:
            raise BadRequestError("Session already stopped")
        session.extra_data = {
            **(session.extra_data or {}),
            **(metadata or {}),
            "last_heartbeat": utcnow().isoformat(),
        }
        await self.db.flush()
        return session

    async def active_sessions(self, user: User) -> list[TimeTrackingSession]:
        result = await self.db.execute(
            select(TimeTrackingSession)
            .where(TimeTrackingSession.user_id == user.id, TimeTrackingSession.is_active.is_(True))
            .order_by(TimeTrackingSession.start_time.desc())
        )
        return list(result.scalars().all())

    async def history(
        self,
        user: User,
        start_date: datetime | None = None,
        end_date: datetime | None = None,
        task_id: UUID | None = None,
        project_id: UUID | None = None,
        limit: int = 50,
        skip: int = 0,
    ) -> list[TimeTrackingSession]:
        query = select(TimeTrackingSession).where(TimeTrackingSession.user_id == user.id)
        if start_date:
            query = query.where(TimeTrackingSession.start_time >= start_date)
        if end_date:
            query = query.where(TimeTrackingSession.start_time <= end_date)
        if task_id:
            query = query.where(TimeTrackingSession.task_id == task_id)
        if project_id:
            query = query.where(TimeTrackingSession.project_id == project_id)
        result = await self.db.execute(
            query.order_by(TimeTrackingSession.start_time.desc()).offset(skip).limit(limit)
        )
        return list(result.scalars().all())

    async def user_summary(
        self,
        user: User,
        group_by: str = "day",
        start_date: datetime | None = None,
        end_date: datetime | None = None,
    ) -> TimeSummary:
        if group_by not in USER_GROUPINGS:
            raise BadRequestError(f"group_by must be one of: {', '.join(USER_GROUPINGS)}")
        sessions = await self._completed(
            TimeTrackingSession.user_id == user.id, start_date, end_date
        )
        return summarize(sessions, group_by)

    async def project_summary(
        self,
        project_id: UUID,
        user: User,
        group_by: str = "user",
        start_date: datetime | None = None,
        end_date: datetime | None = None,
    ) -> TimeSummary:
        if group_by not in PROJECT_GROUPINGS:
            raise BadRequestError(f"group_by must be one of: {', '.join(PROJECT_GROUPINGS)}")
        project = await self.db.get(Project, project_id)
        if project is None:
            raise NotFoundError("Project not found")
        if not project.has_access(user.id):
            raise ForbiddenError("You don't have permission to access this project")

        sessions = await self._completed(
            TimeTrackingSession.project_id == project_id, start_date, end_date
        )
        return summarize(sessions, group_by)

    async def _completed(
        self, condition, start_date: datetime | None, end_date: datetime | None
    ) -> list[TimeTrackingSession]:
        query = select(TimeTrackingSession).where(
            condition, TimeTrackingSession.is_active.is_(False)
        )
        if start_date:
            query = query.where(TimeTrackingSession.start_time >= start_date)
        if end_date:
            query = query.where(TimeTrackingSession.start_time <= end_date)
        result = await self.db.execute(query)
        return list(result.scalars().all())
