"""Celery background tasks."""

import asyncio

import structlog

from taskload.worker import celery_app

logger = structlog.get_logger()


@celery_app.task(bind=True, name="taskload.tasks.check_due_date_notifications")
def check_due_date_notifications(self) -> dict:
    """
    Persist a deadline reminder for every open task due within a day.

    Scheduled hourly through the beat schedule in ``taskload.worker``.
    """
    async def _process():
        from taskload.db.session import async_session_factory
        from taskload.services.notification import NotificationService

        async with async_session_factory() as db:
            created = await NotificationService(db).check_due_date_notifications()
            await db.commit()
            return len(created)

    try:
        created = asyncio.run(_process())
        logger.info("due_date_notifications_processed", created=created)
        return {"status": "success", "created": created}
    except Exception as e:
        logger.error("due_date_notifications_failed", error=str(e))
        return {"status": "error", "error": str(e)}
