"""Periodic deadline warnings pushed to assignees' sockets."""

import asyncio
from datetime import timedelta

import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from taskload.config import get_settings
from taskload.db import session as db_session
from taskload.db.base import ensure_utc, utcnow
from taskload.models.project import Task
from taskload.realtime.manager import ConnectionManager, manager

logger = structlog.get_logger()


async def tasks_due_soon(db: AsyncSession, window_minutes: int) -> list[Task]:
    """Open, assigned tasks whose due date falls within the next window."""
    now = utcnow()
    result = await db.execute(
        select(Task)
        .where(
            Task.due_date.is_not(None),
            Task.due_date > now,
            Task.due_date <= now + timedelta(minutes=window_minutes),
            Task.status != "completed",
            Task.assigned_to_id.is_not(None),
        )
        .order_by(Task.due_date.asc())
    )
    return list(result.scalars().all())


def deadline_payload(task: Task) -> dict:
    assignee = task.assigned_to
    return {
        "task_id": str(task.id),
        "title": task.title,
        "due_date": ensure_utc(task.due_date),
        "assigned_to": str(task.assigned_to_id),
        "assigned_to_name": assignee.full_name if assignee else None,
    }


async def send_deadline_warnings(
    window_minutes: int | None = None,
    connections: ConnectionManager = manager,
) -> int:
    """Run one check. Returns the number of warnings delivered."""
    window = window_minutes or get_settings().deadline_warning_minutes
    async with db_session.async_session_factory() as db:
        tasks = await tasks_due_soon(db, window)

    delivered = 0
    for task in tasks:
        delivered += await connections.send_to_user(
            str(task.assigned_to_id), "deadlineWarning", deadline_payload(task)
        )
    if tasks:
        logger.info("Deadline warnings sent", tasks=len(tasks), delivered=delivered)
    return delivered


async def deadline_warning_loop(interval_seconds: int | None = None) -> None:
    """Check for approaching deadlines until cancelled."""
    interval = interval_seconds or get_settings().deadline_check_interval_seconds
    logger.info("Deadline warning loop started", interval_seconds=interval)
    while True:
        try:
            await send_deadline_warnings()
        except asyncio.CancelledError:
            raise
        except Exception:
            logger.exception("Deadline warning check failed")
        await asyncio.sleep(interval)
