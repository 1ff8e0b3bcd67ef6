import uuid

import pytest
from httpx import AsyncClient

from conftest import API


@pytest.mark.asyncio
async def test_create_task_defaults(client: AsyncClient, user, project, create_task):
    profile, headers = user
    task = await create_task(
        headers, project["id"], title="Write launch notes", subtasks=["Outline", "Draft"]
    )

    assert task["title"] == "Write launch notes"
    assert task["status"] == "todo"
    assert task["priority"] == "medium"
    assert task["created_by"] == profile["id"]
    # Unassigned tasks go to their creator
    assert task["assigned_to"] == profile["id"]
    assert task["project_name"] == project["name"]
    assert task["chat_room_id"].startswith(f"task_{task['id']}_")
    assert [s["title"] for s in task["subtasks"]] == ["Outline", "Draft"]
    assert task["progress"] == 0


@pytest.mark.asyncio
async def test_create_task_empty_assignee_means_creator(
    client: AsyncClient, user, project, create_task
):
    profile, headers = user
    task = await create_task(headers, project["id"], assigned_to="")

    assert task["assigned_to"] == profile["id"]


@pytest.mark.asyncio
async def test_create_task_validation(client: AsyncClient, project, auth_headers):
    response = await client.post(
        f"{API}/tasks",
        json={"title": "", "project_id": project["id"], "priority": "critical"},
        headers=auth_headers,
    )

    assert response.status_code == 400
    message = response.json()["error"]["message"]
    assert message.startswith("Validation Error")
    assert "title" in message
    assert "priority" in message


@pytest.mark.asyncio
async def test_create_task_in_foreign_project(client: AsyncClient, project, other_user):
    _, other_headers = other_user
    response = await client.post(
        f"{API}/tasks", json={"title": "Sneaky", "project_id": project["id"]}, headers=other_headers
    )

    assert response.status_code == 403


@pytest.mark.asyncio
async def test_create_task_unknown_project(client: AsyncClient, auth_headers):
    response = await client.post(
        f"{API}/tasks", json={"title": "Orphan", "project_id": str(uuid.uuid4())}, headers=auth_headers
    )

    assert response.status_code == 404
    assert response.json()["error"]["message"] == "Project not found"


@pytest.mark.asyncio
async def test_list_filters_sort_and_pagination(
    client: AsyncClient, project, auth_headers, create_task
):
    await create_task(auth_headers, project["id"], title="Alpha", priority="low",
                      due_date="2030-01-03T00:00:00Z")
    await create_task(auth_headers, project["id"], title="Bravo", priority="urgent",
                      due_date="2030-01-01T00:00:00Z", status="in_progress")
    await create_task(auth_headers, project["id"], title="Charlie", priority="high",
                      due_date="2030-01-02T00:00:00Z")

    by_due = await client.get(f"{API}/tasks", headers=auth_headers)
    assert by_due.status_code == 200
    assert [t["title"] for t in by_due.json()["tasks"]] == ["Bravo", "Charlie", "Alpha"]
    assert by_due.json()["pagination"] == {"total": 3, "page": 1, "limit": 10, "pages": 1}

    by_priority = await client.get(
        f"{API}/tasks", params={"sort": "priority", "order": "desc"}, headers=auth_headers
    )
    assert [t["title"] for t in by_priority.json()["tasks"]] == ["Bravo", "Charlie", "Alpha"]

    in_progress = await client.get(f"{API}/tasks", params={"status": "in_progress"}, headers=auth_headers)
    assert [t["title"] for t in in_progress.json()["tasks"]] == ["Bravo"]

    searched = await client.get(f"{API}/tasks", params={"search": "char"}, headers=auth_headers)
    assert [t["title"] for t in searched.json()["tasks"]] == ["Charlie"]

    page_two = await client.get(f"{API}/tasks", params={"limit": 2, "page": 2}, headers=auth_headers)
    assert [t["title"] for t in page_two.json()["tasks"]] == ["Alpha"]
    assert page_two.json()["pagination"]["pages"] == 2


@pytest.mark.asyncio
async def test_list_excludes_other_users_tasks(
    client: AsyncClient, project, auth_headers, other_user, create_task
):
    _, other_headers = other_user
    await create_task(auth_headers, project["id"])

    response = await client.get(f"{API}/tasks", headers=other_headers)

    assert response.json()["tasks"] == []
    assert response.json()["pagination"]["total"] == 0


@pytest.mark.asyncio
async def test_get_missing_task(client: AsyncClient, auth_headers):
    response = await client.get(f"{API}/tasks/{uuid.uuid4()}", headers=auth_headers)

    assert response.status_code == 404
    assert response.json() == {
        "success": False,
        "error": {"message": "Task not found", "status_code": 404},
    }


@pytest.mark.asyncio
async def test_outsider_cannot_update_or_delete(
    client: AsyncClient, project, auth_headers, other_user, create_task
):
    _, other_headers = other_user
    task = await create_task(auth_headers, project["id"])

    update = await client.patch(
        f"{API}/tasks/{task['id']}", json={"title": "Hijacked"}, headers=other_headers
    )
    assert update.status_code == 403

    delete = await client.delete(f"{API}/tasks/{task['id']}", headers=other_headers)
    assert delete.status_code == 403


@pytest.mark.asyncio
async def test_update_task_fields(client: AsyncClient, project, auth_headers, create_task):
    task = await create_task(auth_headers, project["id"])

    response = await client.patch(
        f"{API}/tasks/{task['id']}",
        json={"title": "Renamed", "status": "completed", "tags": ["docs"]},
        headers=auth_headers,
    )

    assert response.status_code == 200
    data = response.json()
    assert data["title"] == "Renamed"
    assert data["status"] == "completed"
    assert data["completed_at"] is not None
    assert data["tags"] == ["docs"]


@pytest.mark.asyncio
async def test_reassign_notifies_new_assignee(
    client: AsyncClient, project, auth_headers, other_user, create_task
):
    other, other_headers = other_user
    await client.post(
        f"{API}/projects/{project['id']}/members", json={"user_id": other["id"]}, headers=auth_headers
    )
    task = await create_task(auth_headers, project["id"])

    response = await client.patch(
        f"{API}/tasks/{task['id']}", json={"assigned_to": other["id"]}, headers=auth_headers
    )
    assert response.json()["assigned_to"] == other["id"]

    inbox = await client.get(f"{API}/notifications", headers=other_headers)
    contents = [n["content"] for n in inbox.json()["notifications"]]
    assert f"You were assigned to task: {task['title']}" in contents


@pytest.mark.asyncio
async def test_status_endpoint(client: AsyncClient, project, auth_headers, create_task):
    task = await create_task(auth_headers, project["id"])

    bad = await client.patch(
        f"{API}/tasks/{task['id']}/status", json={"status": "done"}, headers=auth_headers
    )
    assert bad.status_code == 400
    assert bad.json()["error"]["message"] == "Invalid status value"

    good = await client.patch(
        f"{API}/tasks/{task['id']}/status", json={"status": "reviewing"}, headers=auth_headers
    )
    assert good.status_code == 200
    assert good.json()["status"] == "reviewing"


@pytest.mark.asyncio
async def test_delete_task(client: AsyncClient, project, auth_headers, create_task):
    task = await create_task(auth_headers, project["id"])

    response = await client.delete(f"{API}/tasks/{task['id']}", headers=auth_headers)

    assert response.status_code == 200
    assert response.json()["message"] == "Task deleted successfully"
    assert (await client.get(f"{API}/tasks/{task['id']}", headers=auth_headers)).status_code == 404


@pytest.mark.asyncio
async def test_subtasks_drive_status(client: AsyncClient, project, auth_headers, create_task):
    task = await create_task(auth_headers, project["id"], subtasks=["One", "Two"])
    first, second = task["subtasks"]

    partly = await client.patch(
        f"{API}/tasks/{task['id']}/subtasks/{first['id']}",
        json={"completed": True},
        headers=auth_headers,
    )
    assert partly.json()["status"] == "in_progress"
    assert partly.json()["progress"] == 50

    done = await client.patch(
        f"{API}/tasks/{task['id']}/subtasks/{second['id']}",
        json={"completed": True},
        headers=auth_headers,
    )
    assert done.json()["status"] == "completed"
    assert done.json()["progress"] == 100

    reopened = await client.post(
        f"{API}/tasks/{task['id']}/subtasks", json={"title": "Three"}, headers=auth_headers
    )
    assert reopened.status_code == 201
    assert reopened.json()["status"] == "in_progress"

    third = reopened.json()["subtasks"][-1]
    trimmed = await client.delete(
        f"{API}/tasks/{task['id']}/subtasks/{third['id']}", headers=auth_headers
    )
    assert len(trimmed.json()["subtasks"]) == 2
    assert trimmed.json()["status"] == "completed"


@pytest.mark.asyncio
async def test_comments(client: AsyncClient, project, auth_headers, other_user, create_task):
    _, other_headers = other_user
    task = await create_task(auth_headers, project["id"])

    created = await client.post(
        f"{API}/tasks/{task['id']}/comments", json={"content": "Looks good"}, headers=auth_headers
    )
    assert created.status_code == 201
    comment = created.json()
    assert comment["content"] == "Looks good"

    listed = await client.get(f"{API}/tasks/{task['id']}/comments", headers=auth_headers)
    assert [c["id"] for c in listed.json()] == [comment["id"]]

    denied = await client.delete(
        f"{API}/tasks/{task['id']}/comments/{comment['id']}", headers=other_headers
    )
    assert denied.status_code == 403

    deleted = await client.delete(
        f"{API}/tasks/{task['id']}/comments/{comment['id']}", headers=auth_headers
    )
    assert deleted.json()["message"] == "Comment deleted successfully"


@pytest.mark.asyncio
async def test_stats_and_upcoming(client: AsyncClient, project, auth_headers, create_task):
    from datetime import datetime, timedelta, timezone

    soon = (datetime.now(timezone.utc) + timedelta(days=2)).isoformat()
    past = (datetime.now(timezone.utc) - timedelta(days=2)).isoformat()
    await create_task(auth_headers, project["id"], due_date=soon, priority="high")
    await create_task(auth_headers, project["id"], due_date=past)
    await create_task(auth_headers, project["id"], status="completed")

    stats = (await client.get(f"{API}/tasks/stats", headers=auth_headers)).json()
    assert stats["total"] == 3
    assert stats["completed"] == 1
    assert stats["todo"] == 2
    assert stats["overdue"] == 1
    assert stats["due_this_week"] == 1
    assert stats["by_priority"]["high"] == 1
    assert stats["completion_rate"] == pytest.approx(33.33)

    upcoming = (await client.get(f"{API}/tasks/upcoming", headers=auth_headers)).json()
    assert len(upcoming) == 1


@pytest.mark.asyncio
async def test_date_range_requires_both_bounds(client: AsyncClient, auth_headers):
    response = await client.get(
        f"{API}/tasks/date-range", params={"start_date": "2030-01-01T00:00:00Z"}, headers=auth_headers
    )

    assert response.status_code == 400


@pytest.mark.asyncio
async def test_task_chat(client: AsyncClient, project, auth_headers, create_task):
    task = await create_task(auth_headers, project["id"])

    sent = await client.post(
        f"{API}/tasks/{task['id']}/chat", json={"content": "Kickoff at 10"}, headers=auth_headers
    )
    assert sent.status_code == 201

    history = await client.get(f"{API}/tasks/{task['id']}/chat", headers=auth_headers)
    body = history.json()
    assert body["room"]["room_id"] == task["chat_room_id"]
    assert [m["content"] for m in body["messages"]] == ["Kickoff at 10"]
