import uuid

import pytest
from httpx import AsyncClient

from conftest import API


@pytest.fixture
async def shared_project(client: AsyncClient, project, auth_headers, other_user):
    other, _ = other_user
    await client.post(
        f"{API}/projects/{project['id']}/members", json={"user_id": other["id"]}, headers=auth_headers
    )
    return project


@pytest.mark.asyncio
async def test_member_is_notified(client: AsyncClient, shared_project, other_user):
    _, other_headers = other_user

    response = await client.get(f"{API}/notifications", headers=other_headers)

    assert response.status_code == 200
    body = response.json()
    assert body["pagination"]["total"] == 1
    notification = body["notifications"][0]
    assert notification["type"] == "project"
    assert notification["is_read"] is False
    assert notification["related_project_id"] == shared_project["id"]


@pytest.mark.asyncio
async def test_unread_count_and_mark_read(
    client: AsyncClient, shared_project, auth_headers, other_user, create_task
):
    _, other_headers = other_user
    await create_task(auth_headers, shared_project["id"])

    count = await client.get(f"{API}/notifications/count", headers=other_headers)
    assert count.json() == {"count": 2}

    unread = await client.get(f"{API}/notifications/unread", headers=other_headers)
    first = unread.json()[0]

    marked = await client.patch(f"{API}/notifications/{first['id']}/read", headers=other_headers)
    assert marked.json()["is_read"] is True
    assert marked.json()["read_at"] is not None

    count = await client.get(f"{API}/notifications/count", headers=other_headers)
    assert count.json() == {"count": 1}

    everything = await client.patch(f"{API}/notifications/read-all", headers=other_headers)
    assert everything.json()["message"] == "1 notifications marked as read"


@pytest.mark.asyncio
async def test_cannot_touch_someone_elses_notification(
    client: AsyncClient, shared_project, auth_headers, other_user
):
    _, other_headers = other_user
    notification_id = (await client.get(f"{API}/notifications", headers=other_headers)).json()[
        "notifications"
    ][0]["id"]

    response = await client.delete(f"{API}/notifications/{notification_id}", headers=auth_headers)

    assert response.status_code == 404


@pytest.mark.asyncio
async def test_delete_notification(client: AsyncClient, shared_project, other_user):
    _, other_headers = other_user
    notification_id = (await client.get(f"{API}/notifications", headers=other_headers)).json()[
        "notifications"
    ][0]["id"]

    response = await client.delete(f"{API}/notifications/{notification_id}", headers=other_headers)
    assert response.json()["message"] == "Notification deleted successfully"

    missing = await client.patch(f"{API}/notifications/{uuid.uuid4()}/read", headers=other_headers)
    assert missing.status_code == 404


@pytest.mark.asyncio
async def test_due_date_reminders(db_session, user, project, create_task):
    from datetime import datetime, timedelta, timezone

    from taskload.services.notification import NotificationService

    _, headers = user
    due = (datetime.now(timezone.utc) + timedelta(hours=5)).isoformat()
    await create_task(headers, project["id"], due_date=due)

    service = NotificationService(db_session)
    created = await service.check_due_date_notifications()
    await db_session.commit()
    assert len(created) == 1
    assert created[0].notification_type == "deadline"

    # One reminder per task
    assert await service.check_due_date_notifications() == []
