"""Celery worker configuration."""

from celery import Celery

from taskload.config import get_settings

settings = get_settings()

celery_app = Celery(
    "taskload",
    broker=settings.celery_broker_url,
    backend=settings.celery_result_backend,
)

celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,
    task_track_started=True,
    task_time_limit=300,  # 5 minutes
    task_soft_time_limit=240,  # 4 minutes
    beat_schedule={
        "check-due-date-notifications": {
            "task": "taskload.tasks.check_due_date_notifications",
            "schedule": 3600.0,
        },
    },
)

# Auto-discover tasks from taskload.tasks module
celery_app.autodiscover_tasks(["taskload"])
