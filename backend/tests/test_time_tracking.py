from datetime import datetime, timedelta, timezone
from types import SimpleNamespace
import uuid

import pytest
from httpx import AsyncClient

from conftest import API
from taskload.services.time_tracking import summarize


@pytest.mark.asyncio
async def test_start_requires_target(client: AsyncClient, auth_headers):
    response = await client.post(f"{API}/time-tracking/start", json={}, headers=auth_headers)

    assert response.status_code == 400
    assert "Either task_id or project_id is required" in response.json()["error"]["message"]


@pytest.mark.asyncio
async def test_start_on_task_fills_project(
    client: AsyncClient, project, auth_headers, create_task
):
    task = await create_task(auth_headers, project["id"])

    response = await client.post(
        f"{API}/time-tracking/start", json={"task_id": task["id"]}, headers=auth_headers
    )

    assert response.status_code == 201
    session = response.json()
    assert session["project_id"] == project["id"]
    assert session["is_active"] is True
    assert session["duration"] == 0
    assert "last_heartbeat" in session["metadata"]


@pytest.mark.asyncio
async def test_starting_again_stops_previous(
    client: AsyncClient, project, auth_headers, create_task
):
    task = await create_task(auth_headers, project["id"])
    first = await client.post(
        f"{API}/time-tracking/start", json={"task_id": task["id"]}, headers=auth_headers
    )
    second = await client.post(
        f"{API}/time-tracking/start", json={"task_id": task["id"]}, headers=auth_headers
    )

    active = await client.get(f"{API}/time-tracking/active", headers=auth_headers)
    assert [s["id"] for s in active.json()] == [second.json()["id"]]

    history = await client.get(f"{API}/time-tracking/history", headers=auth_headers)
    previous = next(s for s in history.json() if s["id"] == first.json()["id"])
    assert previous["is_active"] is False
    assert previous["end_time"] is not None


@pytest.mark.asyncio
async def test_stop_and_heartbeat(client: AsyncClient, project, auth_headers):
    started = await client.post(
        f"{API}/time-tracking/start", json={"project_id": project["id"]}, headers=auth_headers
    )
    sid = started.json()["id"]

    beat = await client.post(
        f"{API}/time-tracking/{sid}/heartbeat", json={"metadata": {"tab": "board"}}, headers=auth_headers
    )
    assert beat.status_code == 200
    assert beat.json()["metadata"]["tab"] == "board"

    stopped = await client.post(
        f"{API}/time-tracking/{sid}/stop", json={"notes": "Planning"}, headers=auth_headers
    )
    assert stopped.status_code == 200
    assert stopped.json()["is_active"] is False
    assert stopped.json()["notes"] == "Planning"

    twice = await client.post(f"{API}/time-tracking/{sid}/stop", headers=auth_headers)
    assert twice.status_code == 400
    assert twice.json()["error"]["message"] == "Session already stopped"


@pytest.mark.asyncio
async def test_other_users_session_is_not_found(
    client: AsyncClient, project, auth_headers, other_user
):
    _, other_headers = other_user
    started = await client.post(
        f"{API}/time-tracking/start", json={"project_id": project["id"]}, headers=auth_headers
    )

    response = await client.post(
        f"{API}/time-tracking/{started.json()['id']}/stop", headers=other_headers
    )

    assert response.status_code == 404


@pytest.mark.asyncio
async def test_start_in_foreign_project(client: AsyncClient, project, other_user):
    _, other_headers = other_user
    response = await client.post(
        f"{API}/time-tracking/start", json={"project_id": project["id"]}, headers=other_headers
    )

    assert response.status_code == 403


@pytest.mark.asyncio
async def test_summary_rejects_unknown_grouping(client: AsyncClient, auth_headers):
    response = await client.get(
        f"{API}/time-tracking/summary", params={"group_by": "year"}, headers=auth_headers
    )

    assert response.status_code == 400


@pytest.mark.asyncio
async def test_project_summary_counts_finished_sessions(
    client: AsyncClient, user, project, auth_headers
):
    profile, _ = user
    started = await client.post(
        f"{API}/time-tracking/start", json={"project_id": project["id"]}, headers=auth_headers
    )
    await client.post(f"{API}/time-tracking/{started.json()['id']}/stop", headers=auth_headers)
    # Still running, so left out
    await client.post(
        f"{API}/time-tracking/start", json={"project_id": project["id"]}, headers=auth_headers
    )

    response = await client.get(
        f"{API}/time-tracking/projects/{project['id']}/summary", headers=auth_headers
    )

    assert response.status_code == 200
    summary = response.json()
    assert summary["group_by"] == "user"
    assert [b["key"] for b in summary["buckets"]] == [profile["id"]]
    assert summary["buckets"][0]["session_count"] == 1


class TestSummarize:
    def _session(self, start: datetime, duration: int, project_id=None, task_id=None):
        return SimpleNamespace(
            start_time=start,
            duration=duration,
            project_id=project_id,
            task_id=task_id,
            user_id=uuid.UUID(int=1),
        )

    def test_group_by_day(self):
        day = datetime(2025, 3, 3, 9, tzinfo=timezone.utc)
        sessions = [
            self._session(day, 600),
            self._session(day + timedelta(hours=3), 300),
            self._session(day + timedelta(days=1), 120),
        ]

        summary = summarize(sessions, "day")

        assert summary.total_duration == 1020
        assert [(b.key, b.total_duration, b.session_count) for b in summary.buckets] == [
            ("2025-03-03", 900, 2),
            ("2025-03-04", 120, 1),
        ]

    def test_group_by_week_uses_iso_weeks(self):
        sunday = datetime(2025, 3, 9, 12, tzinfo=timezone.utc)
        monday = sunday + timedelta(days=1)

        summary = summarize([self._session(sunday, 60), self._session(monday, 60)], "week")

        assert [b.key for b in summary.buckets] == ["2025-W10", "2025-W11"]

    def test_group_by_project_without_project(self):
        summary = summarize([self._session(datetime.now(timezone.utc), 30)], "project")

        assert summary.buckets[0].key == "none"

    def test_naive_start_times_are_treated_as_utc(self):
        naive = datetime(2025, 1, 31, 23, 30)

        summary = summarize([self._session(naive, 10)], "month")

        assert summary.buckets[0].key == "2025-01"
