"""Dashboard, user directory and health endpoints."""
import uuid

import pytest
from httpx import AsyncClient

from conftest import API
from taskload.services.dashboard import day_label


@pytest.mark.asyncio
async def test_dashboard_overview(client: AsyncClient, project, auth_headers, create_task):
    await create_task(auth_headers, project["id"], title="First")
    await create_task(auth_headers, project["id"], title="Second", status="completed")

    response = await client.get(f"{API}/dashboard", headers=auth_headers)

    assert response.status_code == 200
    body = response.json()
    assert {t["title"] for t in body["tasks"]} == {"First", "Second"}
    assert [p["id"] for p in body["projects"]] == [project["id"]]
    assert body["stats"]["total"] == 2
    assert body["stats"]["completed"] == 1


@pytest.mark.asyncio
async def test_dashboard_activity(client: AsyncClient, project, auth_headers, create_task):
    await create_task(auth_headers, project["id"], status="completed")

    response = await client.get(f"{API}/dashboard/activity", params={"days": 3}, headers=auth_headers)

    days = response.json()
    assert len(days) == 3
    assert days[-1]["created"] == 1
    assert days[-1]["completed"] == 1
    assert days[0]["created"] == 0


@pytest.mark.asyncio
async def test_user_directory_search(client: AsyncClient, register):
    _, headers = await register(username="grace_hopper", first_name="Grace")
    await register(username="alan_turing", first_name="Alan")

    response = await client.get(f"{API}/users", params={"search": "grace"}, headers=headers)

    assert response.status_code == 200
    assert [u["username"] for u in response.json()["users"]] == ["grace_hopper"]
    assert response.json()["pagination"]["total"] == 1


@pytest.mark.asyncio
async def test_get_unknown_user(client: AsyncClient, auth_headers):
    response = await client.get(f"{API}/users/{uuid.uuid4()}", headers=auth_headers)

    assert response.status_code == 404
    assert response.json()["error"]["message"] == "User not found"


@pytest.mark.asyncio
async def test_health(client: AsyncClient):
    basic = await client.get(f"{API}/health")
    assert basic.json()["status"] == "healthy"
    assert basic.json()["environment"] == "test"

    ready = await client.get(f"{API}/health/ready")
    assert ready.json()["checks"] == {"database": "healthy"}

    root = await client.get("/health")
    assert root.status_code == 200


@pytest.mark.asyncio
async def test_request_id_header(client: AsyncClient):
    response = await client.get(f"{API}/health", headers={"X-Request-ID": "abc-123"})

    assert response.headers["X-Request-ID"] == "abc-123"


def test_day_label():
    from datetime import date

    assert day_label(date(2025, 3, 5)) == "Mar 5"
