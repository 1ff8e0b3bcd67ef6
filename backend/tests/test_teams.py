import pytest
from httpx import AsyncClient

from conftest import API


@pytest.fixture
def create_team(client: AsyncClient):
    async def _create(headers: dict, **overrides) -> dict:
        data = {"name": "Platform", "description": "Core services"}
        data.update(overrides)
        response = await client.post(f"{API}/teams", json=data, headers=headers)
        assert response.status_code == 201, response.text
        body = response.json()
        assert body["status"] == "success"
        return body["data"]

    return _create


@pytest.mark.asyncio
async def test_create_team_makes_leader_a_member(client: AsyncClient, user, create_team):
    profile, headers = user
    team = await create_team(headers)

    assert team["leader_id"] == profile["id"]
    assert [(m["user_id"], m["role"]) for m in team["members"]] == [(profile["id"], "leader")]


@pytest.mark.asyncio
async def test_list_and_get_team(client: AsyncClient, user, other_user, create_team):
    _, headers = user
    _, other_headers = other_user
    team = await create_team(headers)

    listed = await client.get(f"{API}/teams", headers=headers)
    assert [t["id"] for t in listed.json()["data"]] == [team["id"]]

    outsider = await client.get(f"{API}/teams/{team['id']}", headers=other_headers)
    assert outsider.status_code == 403


@pytest.mark.asyncio
async def test_member_management(client: AsyncClient, user, other_user, create_team):
    _, headers = user
    other, other_headers = other_user
    team = await create_team(headers)

    added = await client.post(
        f"{API}/teams/{team['id']}/members", json={"user_id": other["id"]}, headers=headers
    )
    assert added.status_code == 200
    assert other["id"] in {m["user_id"] for m in added.json()["data"]["members"]}

    again = await client.post(
        f"{API}/teams/{team['id']}/members", json={"user_id": other["id"]}, headers=headers
    )
    assert again.status_code == 400

    # Only the leader edits the team
    rename = await client.put(
        f"{API}/teams/{team['id']}", json={"name": "Renamed"}, headers=other_headers
    )
    assert rename.status_code == 403

    # Members may leave on their own
    left = await client.delete(
        f"{API}/teams/{team['id']}/members/{other['id']}", headers=other_headers
    )
    assert left.status_code == 200
    assert other["id"] not in {m["user_id"] for m in left.json()["data"]["members"]}


@pytest.mark.asyncio
async def test_leader_cannot_be_removed(client: AsyncClient, user, create_team):
    profile, headers = user
    team = await create_team(headers)

    response = await client.delete(
        f"{API}/teams/{team['id']}/members/{profile['id']}", headers=headers
    )

    assert response.status_code == 400


@pytest.mark.asyncio
async def test_team_projects_and_stats(
    client: AsyncClient, user, create_team, project, create_task
):
    _, headers = user
    team = await create_team(headers)
    await create_task(headers, project["id"])
    await create_task(headers, project["id"], status="completed")

    linked = await client.post(
        f"{API}/teams/{team['id']}/projects/{project['id']}", headers=headers
    )
    assert [p["id"] for p in linked.json()["data"]["projects"]] == [project["id"]]

    stats = await client.get(f"{API}/teams/{team['id']}/stats", headers=headers)
    assert stats.json()["data"] == {
        "member_count": 1,
        "project_count": 1,
        "task_count": 2,
        "tasks_by_status": {"todo": 1, "completed": 1},
    }

    unlinked = await client.delete(
        f"{API}/teams/{team['id']}/projects/{project['id']}", headers=headers
    )
    assert unlinked.json()["data"]["projects"] == []


@pytest.mark.asyncio
async def test_custom_fields_merge(client: AsyncClient, user, create_team):
    _, headers = user
    team = await create_team(headers, custom_fields={"region": "eu"})

    response = await client.put(
        f"{API}/teams/{team['id']}/custom-fields",
        json={"custom_fields": {"budget_code": "X-1"}},
        headers=headers,
    )

    assert response.json()["data"]["custom_fields"] == {"region": "eu", "budget_code": "X-1"}


@pytest.mark.asyncio
async def test_delete_team_detaches_projects(
    client: AsyncClient, user, create_team, project
):
    _, headers = user
    team = await create_team(headers)
    await client.post(f"{API}/teams/{team['id']}/projects/{project['id']}", headers=headers)

    response = await client.delete(f"{API}/teams/{team['id']}", headers=headers)
    assert response.json()["data"]["message"] == "Team deleted successfully"

    refreshed = await client.get(f"{API}/projects/{project['id']}", headers=headers)
    assert refreshed.json()["team_id"] is None
