"""Behaviour with the Redis cache switched on."""
import uuid

import pytest
from httpx import AsyncClient
from sqlalchemy import update

from conftest import API, user_payload
from taskload.models.project import Task
from taskload.services.chatbot import ChatbotService


@pytest.mark.asyncio
async def test_task_list_served_from_cache_until_a_write(
    client: AsyncClient, redis_cache, db_session, auth_headers, project, create_task
):
    task = await create_task(auth_headers, project["id"], title="Original title")

    first = await client.get(f"{API}/tasks", headers=auth_headers)
    assert [t["title"] for t in first.json()["tasks"]] == ["Original title"]

    # Changed behind the service's back, so only a cache hit returns the old title
    await db_session.execute(
        update(Task).where(Task.id == uuid.UUID(task["id"])).values(title="Changed in db")
    )
    await db_session.commit()

    cached = await client.get(f"{API}/tasks", headers=auth_headers)
    assert [t["title"] for t in cached.json()["tasks"]] == ["Original title"]

    patched = await client.patch(
        f"{API}/tasks/{task['id']}", json={"priority": "high"}, headers=auth_headers
    )
    assert patched.status_code == 200

    fresh = await client.get(f"{API}/tasks", headers=auth_headers)
    assert [t["title"] for t in fresh.json()["tasks"]] == ["Changed in db"]
    assert fresh.json()["tasks"][0]["priority"] == "high"


@pytest.mark.asyncio
async def test_task_stats_cached_and_invalidated(
    client: AsyncClient, redis_cache, user, project, create_task
):
    profile, headers = user
    task = await create_task(headers, project["id"])

    stats = await client.get(f"{API}/tasks/stats", headers=headers)
    assert stats.json()["total"] == 1
    assert await redis_cache._redis.exists(f"task_stats:{profile['id']}") == 1

    await client.patch(
        f"{API}/tasks/{task['id']}/status", json={"status": "completed"}, headers=headers
    )
    assert await redis_cache._redis.exists(f"task_stats:{profile['id']}") == 0

    stats = await client.get(f"{API}/tasks/stats", headers=headers)
    assert stats.json()["completed"] == 1
    assert stats.json()["completion_rate"] == 100.0


@pytest.mark.asyncio
async def test_refresh_token_rejected_after_logout(client: AsyncClient, redis_cache):
    registered = await client.post(f"{API}/auth/register", json=user_payload())
    body = registered.json()
    user_id = body["user"]["id"]
    headers = {"Authorization": f"Bearer {body['token']}"}
    assert await redis_cache.get_refresh_token(user_id) == body["refresh_token"]

    logout = await client.post(f"{API}/auth/logout", headers=headers)
    assert logout.status_code == 200
    assert await redis_cache.get_refresh_token(user_id) is None

    response = await client.post(
        f"{API}/auth/refresh-token", json={"refresh_token": body["refresh_token"]}
    )
    assert response.status_code == 401
    assert response.json()["error"]["message"] == "Refresh token has been revoked"


@pytest.mark.asyncio
async def test_chatbot_context_lives_in_redis(redis_cache):
    first = ChatbotService(provider=None, cache_service=redis_cache, context_size=4)
    second = ChatbotService(provider=None, cache_service=redis_cache, context_size=4)

    await first.reply("room-1", "@ai hello")

    # A second worker sees the same conversation
    context = await second.get_context("room-1")
    assert [turn["role"] for turn in context] == ["user", "assistant"]
    assert context[0]["content"] == "hello"
    assert await redis_cache._redis.ttl("ai:context:room-1") > 0

    await second.clear_context("room-1")
    assert await redis_cache._redis.exists("ai:context:room-1") == 0
