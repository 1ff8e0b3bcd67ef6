"""Chat rooms API endpoints.

Messages sent over REST are relayed to the room's websocket subscribers
as ``chat:message``, the same frame the socket handler emits.
"""

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from taskload.api.v1.auth import CurrentUser
from taskload.db.session import get_db_session
from taskload.models.chat import ChatRoom
from taskload.realtime.manager import chat_room, queue_event
from taskload.schemas.chat import (
    ChatMessageResponse,
    ChatRoomCreate,
    ChatRoomResponse,
    DirectChatRequest,
    MessageCreate,
)
from taskload.schemas.common import MessageResponse
from taskload.services.chat import ChatService

router = APIRouter()


@router.get("/rooms", response_model=list[ChatRoomResponse])
async def list_rooms(
    current_user: CurrentUser,
    db: AsyncSession = Depends(get_db_session),
) -> list[ChatRoom]:
    return await ChatService(db).list_user_rooms(current_user.id)


@router.post("/direct", response_model=ChatRoomResponse)
async def open_direct_chat(
    request: DirectChatRequest,
    current_user: CurrentUser,
    db: AsyncSession = Depends(get_db_session),
) -> ChatRoom:
    """Return the one-to-one room with another user, creating it if needed."""
    return await ChatService(db).get_or_create_direct(current_user.id, request.user_id)


@router.post("/rooms", response_model=ChatRoomResponse, status_code=status.HTTP_201_CREATED)
async def create_room(
    request: ChatRoomCreate,
    current_user: CurrentUser,
    db: AsyncSession = Depends(get_db_session),
) -> ChatRoom:
    return await ChatService(db).create_group(
        current_user.id,
        request.type,
        request.participants,
        name=request.name,
        project_id=request.project_id,
    )


@router.get("/rooms/{room_id}/messages", response_model=list[ChatMessageResponse])
async def get_messages(
    room_id: str,
    current_user: CurrentUser,
    db: AsyncSession = Depends(get_db_session),
    limit: int = Query(50, ge=1, le=200),
    skip: int = Query(0, ge=0),
):
    chat = ChatService(db)
    room = await chat.require_room(room_id, current_user.id)
    return await chat.history(room, limit=limit, skip=skip)


@router.post(
    "/rooms/{room_id}/messages",
    response_model=ChatMessageResponse,
    status_code=status.HTTP_201_CREATED,
)
async def send_message(
    room_id: str,
    request: MessageCreate,
    current_user: CurrentUser,
    db: AsyncSession = Depends(get_db_session),
) -> ChatMessageResponse:
    chat = ChatService(db)
    room = await chat.require_room(room_id, current_user.id)
    message = ChatMessageResponse.model_validate(
        await chat.save_message(room, current_user.id, request.content)
    )
    queue_event(
        db,
        chat_room(room.room_id),
        "chat:message",
        {**message.model_dump(mode="json"), "room_id": room.room_id},
    )
    return message


@router.patch("/rooms/{room_id}/read", response_model=MessageResponse)
async def mark_room_read(
    room_id: str,
    current_user: CurrentUser,
    db: AsyncSession = Depends(get_db_session),
) -> MessageResponse:
    chat = ChatService(db)
    room = await chat.require_room(room_id, current_user.id)
    updated = await chat.mark_read(room, current_user.id)
    return MessageResponse(message=f"{updated} messages marked as read")
