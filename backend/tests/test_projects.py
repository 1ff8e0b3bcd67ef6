import pytest
from httpx import AsyncClient

from conftest import API


@pytest.mark.asyncio
async def test_create_project_defaults(client: AsyncClient, user, create_project):
    profile, headers = user
    project = await create_project(headers, name="Website relaunch")

    assert project["name"] == "Website relaunch"
    assert project["status"] == "planning"
    assert project["color"] == "#1976d2"
    assert project["owner_id"] == profile["id"]
    assert project["progress"] == 0
    assert project["budget"] == {"estimated": 0, "actual": 0}
    assert project["settings"]["allow_comments"] is True
    assert [m["role"] for m in project["members"]] == ["owner"]


@pytest.mark.asyncio
async def test_create_project_rejects_inverted_dates(client: AsyncClient, auth_headers):
    response = await client.post(
        f"{API}/projects",
        json={
            "name": "Backwards",
            "start_date": "2025-05-10T00:00:00Z",
            "end_date": "2025-05-01T00:00:00Z",
        },
        headers=auth_headers,
    )

    assert response.status_code == 400
    assert "End date must be after start date" in response.json()["error"]["message"]


@pytest.mark.asyncio
async def test_list_only_accessible_projects(
    client: AsyncClient, user, other_user, create_project
):
    _, headers = user
    _, other_headers = other_user
    mine = await create_project(headers)
    await create_project(other_headers)

    response = await client.get(f"{API}/projects", headers=headers)

    assert response.status_code == 200
    assert [p["id"] for p in response.json()] == [mine["id"]]


@pytest.mark.asyncio
async def test_get_project_forbidden_for_outsider(
    client: AsyncClient, project, other_user
):
    _, other_headers = other_user
    response = await client.get(f"{API}/projects/{project['id']}", headers=other_headers)

    assert response.status_code == 403


@pytest.mark.asyncio
async def test_update_project(client: AsyncClient, project, auth_headers):
    response = await client.put(
        f"{API}/projects/{project['id']}",
        json={"status": "active", "tags": ["q3"], "name": None},
        headers=auth_headers,
    )

    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "active"
    assert data["tags"] == ["q3"]
    assert data["name"] == project["name"]


@pytest.mark.asyncio
async def test_members_lifecycle(client: AsyncClient, project, auth_headers, other_user):
    other, other_headers = other_user
    pid = project["id"]

    added = await client.post(
        f"{API}/projects/{pid}/members", json={"user_id": other["id"]}, headers=auth_headers
    )
    assert added.status_code == 200
    assert {m["user_id"] for m in added.json()["members"]} == {project["owner_id"], other["id"]}

    # The new member can now read the project
    visible = await client.get(f"{API}/projects/{pid}", headers=other_headers)
    assert visible.status_code == 200

    duplicate = await client.post(
        f"{API}/projects/{pid}/members", json={"user_id": other["id"]}, headers=auth_headers
    )
    assert duplicate.status_code == 400

    promoted = await client.patch(
        f"{API}/projects/{pid}/members/{other['id']}", json={"role": "admin"}, headers=auth_headers
    )
    roles = {m["user_id"]: m["role"] for m in promoted.json()["members"]}
    assert roles[other["id"]] == "admin"

    removed = await client.delete(f"{API}/projects/{pid}/members/{other['id']}", headers=auth_headers)
    assert removed.status_code == 200
    assert [m["user_id"] for m in removed.json()["members"]] == [project["owner_id"]]


@pytest.mark.asyncio
async def test_owner_cannot_be_removed(client: AsyncClient, project, auth_headers):
    response = await client.delete(
        f"{API}/projects/{project['id']}/members/{project['owner_id']}", headers=auth_headers
    )

    assert response.status_code == 400
    assert response.json()["error"]["message"] == "Cannot remove the project owner"


@pytest.mark.asyncio
async def test_progress_follows_completed_tasks(
    client: AsyncClient, project, auth_headers, create_task
):
    first = await create_task(auth_headers, project["id"])
    await create_task(auth_headers, project["id"])

    await client.patch(
        f"{API}/tasks/{first['id']}/status", json={"status": "completed"}, headers=auth_headers
    )

    response = await client.get(f"{API}/projects/{project['id']}", headers=auth_headers)
    assert response.json()["progress"] == 50


@pytest.mark.asyncio
async def test_delete_project_removes_tasks(
    client: AsyncClient, project, auth_headers, create_task
):
    task = await create_task(auth_headers, project["id"])

    response = await client.delete(f"{API}/projects/{project['id']}", headers=auth_headers)
    assert response.status_code == 200
    assert response.json()["message"] == "Project deleted successfully"

    gone = await client.get(f"{API}/tasks/{task['id']}", headers=auth_headers)
    assert gone.status_code == 404


@pytest.mark.asyncio
async def test_only_owner_deletes_project(client: AsyncClient, project, other_user):
    _, other_headers = other_user
    response = await client.delete(f"{API}/projects/{project['id']}", headers=other_headers)

    assert response.status_code == 403
