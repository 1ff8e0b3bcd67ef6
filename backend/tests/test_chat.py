import pytest
from httpx import AsyncClient

from conftest import API
from taskload.services.chat import direct_room_id


@pytest.mark.asyncio
async def test_direct_chat_is_reused(client: AsyncClient, user, other_user):
    profile, headers = user
    other, other_headers = other_user

    first = await client.post(f"{API}/chat/direct", json={"user_id": other["id"]}, headers=headers)
    second = await client.post(
        f"{API}/chat/direct", json={"user_id": profile["id"]}, headers=other_headers
    )

    assert first.status_code == 200
    assert first.json()["id"] == second.json()["id"]
    assert first.json()["type"] == "direct"
    assert set(first.json()["participant_ids"]) == {profile["id"], other["id"]}


@pytest.mark.asyncio
async def test_direct_chat_with_self(client: AsyncClient, user):
    profile, headers = user
    response = await client.post(
        f"{API}/chat/direct", json={"user_id": profile["id"]}, headers=headers
    )

    assert response.status_code == 400


@pytest.mark.asyncio
async def test_messages_and_read_receipts(client: AsyncClient, user, other_user):
    _, headers = user
    other, other_headers = other_user
    room = (
        await client.post(f"{API}/chat/direct", json={"user_id": other["id"]}, headers=headers)
    ).json()

    sent = await client.post(
        f"{API}/chat/rooms/{room['room_id']}/messages", json={"content": "Hi there"}, headers=headers
    )
    assert sent.status_code == 201
    assert sent.json()["content"] == "Hi there"

    history = await client.get(f"{API}/chat/rooms/{room['room_id']}/messages", headers=other_headers)
    assert [m["content"] for m in history.json()] == ["Hi there"]

    marked = await client.patch(f"{API}/chat/rooms/{room['room_id']}/read", headers=other_headers)
    assert marked.json()["message"] == "1 messages marked as read"

    rooms = await client.get(f"{API}/chat/rooms", headers=other_headers)
    assert [r["room_id"] for r in rooms.json()] == [room["room_id"]]


@pytest.mark.asyncio
async def test_outsider_cannot_read_room(client: AsyncClient, user, other_user, register):
    _, headers = user
    other, _ = other_user
    _, stranger_headers = await register()
    room = (
        await client.post(f"{API}/chat/direct", json={"user_id": other["id"]}, headers=headers)
    ).json()

    response = await client.get(
        f"{API}/chat/rooms/{room['room_id']}/messages", headers=stranger_headers
    )

    assert response.status_code == 403


@pytest.mark.asyncio
async def test_group_room_includes_creator(client: AsyncClient, user, other_user):
    profile, headers = user
    other, _ = other_user

    response = await client.post(
        f"{API}/chat/rooms",
        json={"type": "group", "name": "Standup", "participants": [other["id"]]},
        headers=headers,
    )

    assert response.status_code == 201
    assert set(response.json()["participant_ids"]) == {profile["id"], other["id"]}


def test_direct_room_id_is_order_independent():
    import uuid

    a, b = uuid.uuid4(), uuid.uuid4()
    assert direct_room_id(a, b) == direct_room_id(b, a)
