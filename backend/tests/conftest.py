"""
TaskLoad - Test Configuration and Fixtures
"""
import os
from typing import AsyncGenerator

import pytest
from fakeredis import FakeAsyncRedis, FakeServer
from faker import Faker
from httpx import ASGITransport, AsyncClient

# Set testing environment before the app reads its settings
os.environ["ENVIRONMENT"] = "test"
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///./test_taskload.db"
os.environ["CACHE_ENABLED"] = "false"
os.environ["DEADLINE_WARNINGS_ENABLED"] = "false"
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ["BCRYPT_ROUNDS"] = "4"
os.environ["JWT_SECRET"] = "test-jwt-secret"
os.environ["JWT_REFRESH_SECRET"] = "test-jwt-refresh-secret"
os.environ["GEMINI_API_KEY"] = ""

from taskload.db.base import Base  # noqa: E402
from taskload.db.session import async_session_factory, engine  # noqa: E402
from taskload.main import app  # noqa: E402
from taskload.services.cache import cache  # noqa: E402
import taskload.models  # noqa: E402,F401

fake = Faker()

API = "/api/v1"


@pytest.fixture
async def db_tables() -> AsyncGenerator[None, None]:
    """Fresh schema for each test"""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


@pytest.fixture
async def db_session(db_tables):
    async with async_session_factory() as session:
        yield session
        await session.rollback()


@pytest.fixture
async def client(db_tables) -> AsyncGenerator[AsyncClient, None]:
    """HTTP client bound to the ASGI app"""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


def user_payload(**overrides) -> dict:
    data = {
        "username": fake.unique.user_name()[:20],
        "email": f"{fake.unique.user_name()}@taskload.io",
        "password": "testpassword123",
        "first_name": fake.first_name(),
        "last_name": fake.last_name(),
    }
    data.update(overrides)
    return data


@pytest.fixture
def register(client: AsyncClient):
    """Register a user; returns (user json, auth headers)."""

    async def _register(**overrides) -> tuple[dict, dict]:
        response = await client.post(f"{API}/auth/register", json=user_payload(**overrides))
        assert response.status_code == 201, response.text
        body = response.json()
        return body["user"], {"Authorization": f"Bearer {body['token']}"}

    return _register


@pytest.fixture
async def user(register) -> tuple[dict, dict]:
    return await register()


@pytest.fixture
async def other_user(register) -> tuple[dict, dict]:
    return await register()


@pytest.fixture
def auth_headers(user) -> dict:
    return user[1]


@pytest.fixture
def create_project(client: AsyncClient):
    async def _create(headers: dict, **overrides) -> dict:
        data = {"name": fake.catch_phrase()[:80], "description": "Test project"}
        data.update(overrides)
        response = await client.post(f"{API}/projects", json=data, headers=headers)
        assert response.status_code == 201, response.text
        return response.json()

    return _create


@pytest.fixture
def create_task(client: AsyncClient):
    async def _create(headers: dict, project_id: str, **overrides) -> dict:
        data = {"title": fake.sentence(nb_words=4)[:90], "project_id": project_id}
        data.update(overrides)
        response = await client.post(f"{API}/tasks", json=data, headers=headers)
        assert response.status_code == 201, response.text
        return response.json()

    return _create


@pytest.fixture
async def project(create_project, auth_headers) -> dict:
    return await create_project(auth_headers)


@pytest.fixture
async def redis_cache():
    """Switch the shared cache on, backed by an in-process Redis server."""
    previous = cache.enabled, cache._redis
    cache._redis = FakeAsyncRedis(server=FakeServer(), decode_responses=True)
    cache.enabled = True
    yield cache
    await cache._redis.aclose()
    cache.enabled, cache._redis = previous
