"""Per-client request rate limits."""
import pytest
from httpx import AsyncClient

from conftest import API
from taskload.config import get_settings
from taskload.rate_limit import limiter

settings = get_settings()


@pytest.fixture
def rate_limits():
    limiter.reset()
    limiter.enabled = True
    yield limiter
    limiter.enabled = False
    limiter.reset()


@pytest.mark.asyncio
async def test_login_is_throttled(client: AsyncClient, rate_limits):
    credentials = {"email": "nobody@taskload.io", "password": "wrongpassword"}

    for _ in range(settings.rate_limit_auth_requests_per_minute):
        response = await client.post(f"{API}/auth/login", json=credentials)
        assert response.status_code == 401

    response = await client.post(f"{API}/auth/login", json=credentials)
    assert response.status_code == 429
    assert response.json() == {
        "success": False,
        "error": {"message": "Too many requests, please try again later", "status_code": 429},
    }
    assert response.headers["Retry-After"] == "60"


@pytest.mark.asyncio
async def test_default_limit_covers_other_routes(client: AsyncClient, auth_headers, rate_limits):
    for _ in range(settings.rate_limit_requests_per_minute):
        response = await client.get(f"{API}/notifications/count", headers=auth_headers)
        assert response.status_code == 200

    response = await client.get(f"{API}/notifications/count", headers=auth_headers)
    assert response.status_code == 429


@pytest.mark.asyncio
async def test_health_checks_are_exempt(client: AsyncClient, rate_limits):
    for _ in range(settings.rate_limit_requests_per_minute + 5):
        response = await client.get(f"{API}/health")
        assert response.status_code == 200


@pytest.mark.asyncio
async def test_disabled_limiter_lets_everything_through(client: AsyncClient):
    credentials = {"email": "nobody@taskload.io", "password": "wrongpassword"}

    for _ in range(settings.rate_limit_auth_requests_per_minute + 2):
        response = await client.post(f"{API}/auth/login", json=credentials)
        assert response.status_code == 401
