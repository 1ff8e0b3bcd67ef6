from taskload.worker import celery_app


def test_due_date_task_is_registered_and_scheduled():
    import taskload.tasks  # noqa: F401

    name = "taskload.tasks.check_due_date_notifications"
    assert name in celery_app.tasks
    schedule = celery_app.conf.beat_schedule["check-due-date-notifications"]
    assert schedule["task"] == name
    assert schedule["schedule"] == 3600.0
