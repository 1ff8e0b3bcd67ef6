import pytest
from httpx import AsyncClient

from conftest import API, user_payload
from taskload.api.v1.auth import create_access_token, create_refresh_token, decode_token
from jose import JWTError


@pytest.mark.asyncio
async def test_register_returns_tokens(client: AsyncClient):
    payload = user_payload()
    response = await client.post(f"{API}/auth/register", json=payload)

    assert response.status_code == 201
    data = response.json()
    assert data["user"]["email"] == payload["email"].lower()
    assert data["user"]["username"] == payload["username"]
    assert data["token"]
    assert data["refresh_token"]
    assert data["token_type"] == "bearer"
    assert "password" not in data["user"]


@pytest.mark.asyncio
async def test_register_duplicate_email(client: AsyncClient):
    payload = user_payload()
    await client.post(f"{API}/auth/register", json=payload)

    response = await client.post(
        f"{API}/auth/register", json={**payload, "username": "someoneelse"}
    )

    assert response.status_code == 400
    body = response.json()
    assert body["success"] is False
    assert body["error"]["message"] == "User with this email already exists"


@pytest.mark.asyncio
async def test_register_validation_error(client: AsyncClient):
    response = await client.post(
        f"{API}/auth/register",
        json={"username": "ab", "email": "not-an-email", "password": "123"},
    )

    assert response.status_code == 400
    assert response.json()["error"]["message"].startswith("Validation Error")


@pytest.mark.asyncio
async def test_login_success_and_failure(client: AsyncClient):
    payload = user_payload()
    await client.post(f"{API}/auth/register", json=payload)

    ok = await client.post(
        f"{API}/auth/login", json={"email": payload["email"], "password": payload["password"]}
    )
    assert ok.status_code == 200
    assert ok.json()["user"]["username"] == payload["username"]

    bad = await client.post(
        f"{API}/auth/login", json={"email": payload["email"], "password": "wrong-password"}
    )
    assert bad.status_code == 401
    assert bad.json()["error"]["message"] == "Invalid credentials"


@pytest.mark.asyncio
async def test_me_requires_token(client: AsyncClient):
    response = await client.get(f"{API}/auth/me")

    assert response.status_code == 401
    assert response.json()["error"]["message"] == "Not authenticated"


@pytest.mark.asyncio
async def test_me_with_invalid_token(client: AsyncClient):
    response = await client.get(
        f"{API}/auth/me", headers={"Authorization": "Bearer not-a-token"}
    )

    assert response.status_code == 401
    assert response.json()["error"]["message"] == "Invalid token"


@pytest.mark.asyncio
async def test_me_and_profile_update(client: AsyncClient, user):
    profile, headers = user

    me = await client.get(f"{API}/auth/me", headers=headers)
    assert me.status_code == 200
    assert me.json()["id"] == profile["id"]
    assert me.json()["role"] == "user"

    updated = await client.put(
        f"{API}/auth/me",
        json={"first_name": "Ada", "preferences": {"theme": "dark"}},
        headers=headers,
    )
    assert updated.status_code == 200
    assert updated.json()["first_name"] == "Ada"
    assert updated.json()["preferences"]["theme"] == "dark"


@pytest.mark.asyncio
async def test_refresh_token_issues_new_pair(client: AsyncClient):
    registered = await client.post(f"{API}/auth/register", json=user_payload())
    refresh = registered.json()["refresh_token"]

    response = await client.post(f"{API}/auth/refresh-token", json={"refresh_token": refresh})

    assert response.status_code == 200
    assert response.json()["token"]


@pytest.mark.asyncio
async def test_access_token_cannot_refresh(client: AsyncClient):
    registered = await client.post(f"{API}/auth/register", json=user_payload())
    access = registered.json()["token"]

    response = await client.post(f"{API}/auth/refresh-token", json={"refresh_token": access})

    assert response.status_code == 401


@pytest.mark.asyncio
async def test_logout(client: AsyncClient, auth_headers):
    response = await client.post(f"{API}/auth/logout", headers=auth_headers)

    assert response.status_code == 200
    assert response.json()["message"] == "Successfully logged out"


@pytest.mark.asyncio
async def test_forgot_and_reset_password(client: AsyncClient, db_session):
    from taskload.services.auth import AuthService

    payload = user_payload()
    await client.post(f"{API}/auth/register", json=payload)

    generic = await client.post(
        f"{API}/auth/forgot-password", json={"email": "nobody@taskload.io"}
    )
    assert generic.status_code == 200

    token = await AuthService(db_session).create_password_reset(payload["email"])
    await db_session.commit()

    reset = await client.post(
        f"{API}/auth/reset-password", json={"token": token, "password": "brand-new-pass"}
    )
    assert reset.status_code == 200

    login = await client.post(
        f"{API}/auth/login", json={"email": payload["email"], "password": "brand-new-pass"}
    )
    assert login.status_code == 200

    reused = await client.post(
        f"{API}/auth/reset-password", json={"token": token, "password": "another-pass"}
    )
    assert reused.status_code == 400


class TestTokens:
    def test_decode_roundtrip(self):
        import uuid

        user_id = uuid.uuid4()
        assert decode_token(create_access_token(user_id)) == user_id
        assert decode_token(create_refresh_token(user_id), "refresh") == user_id

    def test_refresh_token_rejected_as_access(self):
        import uuid

        with pytest.raises(JWTError):
            decode_token(create_refresh_token(uuid.uuid4()), "access")
