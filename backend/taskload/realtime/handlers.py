"""Inbound websocket event handlers.

Each client frame is ``{"event": name, "data": {...}}``. Handlers are
registered by event name with ``@on(...)``; ``dispatch`` validates the
payload, opens a database session when the handler needs one and turns
failures into a ``<namespace>:error`` frame back to the sender.
"""

from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Any, AsyncIterator, Awaitable, Callable
from uuid import UUID

import structlog
from fastapi import WebSocket
from pydantic import BaseModel, Field, ValidationError
from sqlalchemy.ext.asyncio import AsyncSession

from taskload.db import session as db_session
from taskload.errors import AppError, UnauthorizedError
from taskload.models.user import User
from taskload.realtime.manager import (
    ConnectionManager,
    chat_room,
    chatbot_room,
    discard_events,
    flush_events,
    manager,
    notification_channel,
    project_room,
    queue_event,
    task_room,
)
from taskload.schemas.chat import ChatMessageResponse
from taskload.schemas.task import CommentResponse
from taskload.schemas.time_tracking import SessionResponse, SessionStart
from taskload.services.chat import ChatService, TaskChatService
from taskload.services.chatbot import ASSISTANT_ID, get_chatbot, is_ai_message
from taskload.services.notification import NotificationService
from taskload.services.project import ProjectService
from taskload.services.task import TaskService
from taskload.services.time_tracking import TimeTrackingService

logger = structlog.get_logger()


@dataclass
class SocketContext:
    """The connection an event arrived on."""

    websocket: WebSocket
    user_id: UUID
    username: str
    connections: ConnectionManager = manager

    async def send(self, event: str, data: Any) -> None:
        await self.connections.send(self.websocket, event, data)

    async def emit(self, room: str, event: str, data: Any, include_self: bool = True) -> None:
        await self.connections.emit(
            room, event, data, exclude=None if include_self else self.websocket
        )

    def emit_after_commit(
        self, db: AsyncSession, room: str, event: str, data: Any, include_self: bool = True
    ) -> None:
        queue_event(
            db,
            room,
            event,
            data,
            connections=self.connections,
            exclude=None if include_self else self.websocket,
        )

    def send_after_commit(self, db: AsyncSession, event: str, data: Any) -> None:
        queue_event(
            db, None, event, data, connections=self.connections, websocket=self.websocket
        )

    def join(self, room: str) -> None:
        self.connections.join(self.websocket, room)

    def leave(self, room: str) -> None:
        self.connections.leave(self.websocket, room)


Handler = Callable[..., Awaitable[None]]


@dataclass
class _Registration:
    handler: Handler
    payload: type[BaseModel] | None
    needs_db: bool


HANDLERS: dict[str, _Registration] = {}


def on(event: str, payload: type[BaseModel] | None = None, needs_db: bool = False):
    """Register a handler for an inbound event."""

    def decorator(func: Handler) -> Handler:
        HANDLERS[event] = _Registration(func, payload, needs_db)
        return func

    return decorator


def error_event(event: str) -> str:
    """``chat:message`` errors go out as ``chat:error``; bare events as ``error``."""
    namespace, sep, _ = event.partition(":")
    return f"{namespace}:error" if sep else "error"


@asynccontextmanager
async def session_scope() -> AsyncIterator[AsyncSession]:
    async with db_session.async_session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            discard_events(session)
            await session.rollback()
            raise
        await flush_events(session)


async def _load_user(db: AsyncSession, ctx: SocketContext) -> User:
    user = await db.get(User, ctx.user_id)
    if user is None or not user.is_active:
        raise UnauthorizedError("User not found")
    return user


async def dispatch(ctx: SocketContext, message: Any) -> None:
    if not isinstance(message, dict) or not isinstance(message.get("event"), str):
        await ctx.send("error", {"error": "Malformed message"})
        return

    event = message["event"]
    registration = HANDLERS.get(event)
    if registration is None:
        await ctx.send("error", {"error": f"Unknown event: {event}"})
        return

    raw = message.get("data") or {}
    try:
        data = registration.payload.model_validate(raw) if registration.payload else raw
        if registration.needs_db:
            async with session_scope() as db:
                await registration.handler(ctx, data, db)
        else:
            await registration.handler(ctx, data)
    except ValidationError as e:
        details = "; ".join(err["msg"] for err in e.errors())
        await ctx.send(error_event(event), {"error": f"Invalid {event} data: {details}"})
    except AppError as e:
        await ctx.send(error_event(event), {"error": e.message, "status_code": e.status_code})
    except Exception:
        logger.exception("WebSocket handler failed", event_name=event, user_id=str(ctx.user_id))
        await ctx.send(error_event(event), {"error": f"Failed to process {event}"})


# ========== Payloads ==========


class RoomPayload(BaseModel):
    room_id: str = Field(..., min_length=1)


class RoomMessagePayload(RoomPayload):
    content: str = Field(..., min_length=1, max_length=5000)


class TypingPayload(RoomPayload):
    is_typing: bool = True


class TaskPayload(BaseModel):
    task_id: UUID


class TaskMessagePayload(TaskPayload):
    content: str = Field(..., min_length=1, max_length=5000)


class TaskTypingPayload(TaskPayload):
    is_typing: bool = True


class CommentDeletePayload(TaskPayload):
    comment_id: UUID


class ProjectPayload(BaseModel):
    project_id: UUID


class NotificationPayload(BaseModel):
    notification_id: UUID


class ChannelsPayload(BaseModel):
    channels: list[str] = Field(default_factory=list)


class NotificationRecipients(BaseModel):
    users: list[UUID] = Field(default_factory=list)
    channels: list[str] = Field(default_factory=list)


class NotificationSendPayload(BaseModel):
    type: str
    content: str = Field(..., min_length=1, max_length=1000)
    recipients: NotificationRecipients
    metadata: dict = Field(default_factory=dict)


class SessionPayload(BaseModel):
    session_id: UUID
    notes: str | None = None
    metadata: dict = Field(default_factory=dict)


# ========== Presence ==========


@on("ping")
async def handle_ping(ctx: SocketContext, data: dict) -> None:
    await ctx.send("pong", {})


@on("user:login")
async def handle_login(ctx: SocketContext, data: dict) -> None:
    await ctx.connections.broadcast(
        "user:online", {"user_id": str(ctx.user_id)}, exclude=ctx.websocket
    )
    await ctx.send("user:onlineUsers", {"users": ctx.connections.online_users()})


# ========== Chat ==========


@on("chat:join", RoomPayload, needs_db=True)
async def handle_chat_join(ctx: SocketContext, data: RoomPayload, db: AsyncSession) -> None:
    await ChatService(db).require_room(data.room_id, ctx.user_id)
    ctx.join(chat_room(data.room_id))
    await ctx.send("chat:joined", {"room_id": data.room_id})


@on("chat:leave", RoomPayload)
async def handle_chat_leave(ctx: SocketContext, data: RoomPayload) -> None:
    ctx.leave(chat_room(data.room_id))


@on("chat:message", RoomMessagePayload, needs_db=True)
async def handle_chat_message(
    ctx: SocketContext, data: RoomMessagePayload, db: AsyncSession
) -> None:
    chat = ChatService(db)
    room = await chat.require_room(data.room_id, ctx.user_id)
    message = await chat.save_message(room, ctx.user_id, data.content)
    payload = ChatMessageResponse.model_validate(message).model_dump(mode="json")
    ctx.emit_after_commit(
        db, chat_room(room.room_id), "chat:message", {**payload, "room_id": room.room_id}
    )


@on("chat:typing", TypingPayload)
async def handle_chat_typing(ctx: SocketContext, data: TypingPayload) -> None:
    await ctx.emit(
        chat_room(data.room_id),
        "chat:typing",
        {"room_id": data.room_id, "user_id": str(ctx.user_id), "is_typing": data.is_typing},
        include_self=False,
    )


@on("chat:markRead", RoomPayload, needs_db=True)
async def handle_chat_mark_read(ctx: SocketContext, data: RoomPayload, db: AsyncSession) -> None:
    chat = ChatService(db)
    room = await chat.require_room(data.room_id, ctx.user_id)
    updated = await chat.mark_read(room, ctx.user_id)
    ctx.emit_after_commit(
        db,
        chat_room(room.room_id),
        "chat:messageRead",
        {"room_id": room.room_id, "user_id": str(ctx.user_id), "count": updated},
        include_self=False,
    )


# ========== Task chat ==========


async def _task_for_chat(db: AsyncSession, ctx: SocketContext, task_id: UUID):
    user = await _load_user(db, ctx)
    return await TaskService(db).get_for_view(task_id, user), user


@on("taskChat:join", TaskPayload, needs_db=True)
async def handle_task_chat_join(ctx: SocketContext, data: TaskPayload, db: AsyncSession) -> None:
    task, _ = await _task_for_chat(db, ctx, data.task_id)
    room, messages = await TaskChatService(db).history(task)
    ctx.join(chat_room(room.room_id))
    await ctx.send(
        "taskChat:history",
        {
            "task_id": str(task.id),
            "room_id": room.room_id,
            "messages": [
                ChatMessageResponse.model_validate(m).model_dump(mode="json") for m in messages
            ],
        },
    )


@on("taskChat:leave", TaskPayload, needs_db=True)
async def handle_task_chat_leave(ctx: SocketContext, data: TaskPayload, db: AsyncSession) -> None:
    task = await TaskService(db).get(data.task_id)
    if task.chat_room_id:
        ctx.leave(chat_room(task.chat_room_id))


@on("taskChat:message", TaskMessagePayload, needs_db=True)
async def handle_task_chat_message(
    ctx: SocketContext, data: TaskMessagePayload, db: AsyncSession
) -> None:
    task, user = await _task_for_chat(db, ctx, data.task_id)
    message = await TaskChatService(db).send_message(task, user, data.content)
    payload = ChatMessageResponse.model_validate(message).model_dump(mode="json")
    ctx.emit_after_commit(
        db,
        chat_room(task.chat_room_id),
        "taskChat:message",
        {**payload, "task_id": str(task.id), "room_id": task.chat_room_id},
    )


@on("taskChat:typing", TaskTypingPayload, needs_db=True)
async def handle_task_chat_typing(
    ctx: SocketContext, data: TaskTypingPayload, db: AsyncSession
) -> None:
    task = await TaskService(db).get(data.task_id)
    if not task.chat_room_id:
        return
    await ctx.emit(
        chat_room(task.chat_room_id),
        "taskChat:typing",
        {"task_id": str(task.id), "user_id": str(ctx.user_id), "is_typing": data.is_typing},
        include_self=False,
    )


@on("taskChat:markRead", TaskPayload, needs_db=True)
async def handle_task_chat_mark_read(
    ctx: SocketContext, data: TaskPayload, db: AsyncSession
) -> None:
    task, _ = await _task_for_chat(db, ctx, data.task_id)
    updated = await TaskChatService(db).mark_read(task, ctx.user_id)
    ctx.emit_after_commit(
        db,
        chat_room(task.chat_room_id),
        "taskChat:messageRead",
        {"task_id": str(task.id), "user_id": str(ctx.user_id), "count": updated},
        include_self=False,
    )


# ========== Chatbot ==========


@on("chatbot:join", RoomPayload, needs_db=True)
async def handle_chatbot_join(ctx: SocketContext, data: RoomPayload, db: AsyncSession) -> None:
    await ChatService(db).require_room(data.room_id, ctx.user_id)
    ctx.join(chatbot_room(data.room_id))
    await ctx.emit(
        chatbot_room(data.room_id),
        "chatbot:userJoined",
        {"room_id": data.room_id, "user_id": str(ctx.user_id)},
        include_self=False,
    )


@on("chatbot:leave", RoomPayload)
async def handle_chatbot_leave(ctx: SocketContext, data: RoomPayload) -> None:
    ctx.leave(chatbot_room(data.room_id))
    await ctx.emit(
        chatbot_room(data.room_id),
        "chatbot:userLeft",
        {"room_id": data.room_id, "user_id": str(ctx.user_id)},
    )


@on("chatbot:message", RoomMessagePayload)
async def handle_chatbot_message(ctx: SocketContext, data: RoomMessagePayload) -> None:
    # The model call runs between two short transactions, never inside one
    async with session_scope() as db:
        chat = ChatService(db)
        room = await chat.require_room(data.room_id, ctx.user_id)
        message = await chat.save_message(room, ctx.user_id, data.content)
        room_id = room.room_id
        payload = ChatMessageResponse.model_validate(message).model_dump(mode="json")
        target = chatbot_room(room_id)
        ctx.emit_after_commit(
            db, target, "chatbot:message", {**payload, "room_id": room_id, "is_ai": False}
        )

    if not is_ai_message(data.content):
        return

    typing = {"room_id": room_id, "user_id": ASSISTANT_ID}
    await ctx.emit(target, "chatbot:typing", {**typing, "is_typing": True})
    try:
        answer = await get_chatbot().reply(room_id, data.content)
    finally:
        await ctx.emit(target, "chatbot:typing", {**typing, "is_typing": False})

    async with session_scope() as db:
        chat = ChatService(db)
        room = await chat.require_room(room_id, ctx.user_id)
        reply = await chat.save_message(room, None, answer)
        reply_payload = ChatMessageResponse.model_validate(reply).model_dump(mode="json")
        ctx.emit_after_commit(
            db,
            target,
            "chatbot:message",
            {**reply_payload, "sender_id": ASSISTANT_ID, "room_id": room_id, "is_ai": True},
        )


@on("chatbot:typing", TypingPayload)
async def handle_chatbot_typing(ctx: SocketContext, data: TypingPayload) -> None:
    await ctx.emit(
        chatbot_room(data.room_id),
        "chatbot:typing",
        {"room_id": data.room_id, "user_id": str(ctx.user_id), "is_typing": data.is_typing},
        include_self=False,
    )


@on("chatbot:markRead", RoomPayload, needs_db=True)
async def handle_chatbot_mark_read(
    ctx: SocketContext, data: RoomPayload, db: AsyncSession
) -> None:
    chat = ChatService(db)
    room = await chat.require_room(data.room_id, ctx.user_id)
    updated = await chat.mark_read(room, ctx.user_id)
    ctx.emit_after_commit(
        db,
        chatbot_room(room.room_id),
        "chatbot:messageRead",
        {"room_id": room.room_id, "user_id": str(ctx.user_id), "count": updated},
        include_self=False,
    )


@on("chatbot:getOnlineUsers", RoomPayload, needs_db=True)
async def handle_chatbot_online_users(
    ctx: SocketContext, data: RoomPayload, db: AsyncSession
) -> None:
    room = await ChatService(db).require_room(data.room_id, ctx.user_id)
    online = [
        str(uid) for uid in room.participant_ids if ctx.connections.is_online(str(uid))
    ]
    await ctx.send("chatbot:onlineUsers", {"room_id": room.room_id, "online_users": online})


# ========== Comments ==========


@on("task:join", TaskPayload, needs_db=True)
async def handle_task_join(ctx: SocketContext, data: TaskPayload, db: AsyncSession) -> None:
    user = await _load_user(db, ctx)
    await TaskService(db).get_for_view(data.task_id, user)
    ctx.join(task_room(data.task_id))


@on("task:leave", TaskPayload)
async def handle_task_leave(ctx: SocketContext, data: TaskPayload) -> None:
    ctx.leave(task_room(data.task_id))


@on("comment:new", TaskMessagePayload, needs_db=True)
async def handle_comment_new(
    ctx: SocketContext, data: TaskMessagePayload, db: AsyncSession
) -> None:
    user = await _load_user(db, ctx)
    # The service broadcasts newComment to the task room
    await TaskService(db).add_comment(data.task_id, data.content, user)
    # Adding a comment ends the author's typing indicator
    ctx.emit_after_commit(
        db,
        task_room(data.task_id),
        "comment:typingUpdate",
        {"task_id": str(data.task_id), "user_id": str(ctx.user_id), "is_typing": False},
        include_self=False,
    )


@on("comment:typing", TaskTypingPayload)
async def handle_comment_typing(ctx: SocketContext, data: TaskTypingPayload) -> None:
    await ctx.emit(
        task_room(data.task_id),
        "comment:typingUpdate",
        {
            "task_id": str(data.task_id),
            "user_id": str(ctx.user_id),
            "username": ctx.username,
            "is_typing": data.is_typing,
        },
        include_self=False,
    )


@on("comment:getAll", TaskPayload, needs_db=True)
async def handle_comment_get_all(ctx: SocketContext, data: TaskPayload, db: AsyncSession) -> None:
    user = await _load_user(db, ctx)
    comments = await TaskService(db).list_comments(data.task_id, user)
    await ctx.send(
        "comment:allComments",
        {
            "task_id": str(data.task_id),
            "comments": [CommentResponse.model_validate(c).model_dump(mode="json") for c in comments],
        },
    )


@on("comment:delete", CommentDeletePayload, needs_db=True)
async def handle_comment_delete(
    ctx: SocketContext, data: CommentDeletePayload, db: AsyncSession
) -> None:
    user = await _load_user(db, ctx)
    await TaskService(db).delete_comment(data.task_id, data.comment_id, user)
    body = {"task_id": str(data.task_id), "comment_id": str(data.comment_id)}
    ctx.emit_after_commit(db, task_room(data.task_id), "comment:deleted", body)
    ctx.send_after_commit(db, "comment:deleteSuccess", body)


# ========== Notifications ==========


@on("notification:subscribe", ChannelsPayload)
async def handle_notification_subscribe(ctx: SocketContext, data: ChannelsPayload) -> None:
    # The private user room is joined on connect; channels add topic rooms
    for channel in data.channels:
        ctx.join(notification_channel(channel))
    await ctx.send("notification:subscribed", {"channels": data.channels})


@on("notification:unsubscribe", ChannelsPayload)
async def handle_notification_unsubscribe(ctx: SocketContext, data: ChannelsPayload) -> None:
    for channel in data.channels:
        ctx.leave(notification_channel(channel))
    await ctx.send("notification:unsubscribed", {"channels": data.channels})


@on("notification:send", NotificationSendPayload, needs_db=True)
async def handle_notification_send(
    ctx: SocketContext, data: NotificationSendPayload, db: AsyncSession
) -> None:
    created = await NotificationService(db).send(
        ctx.user_id,
        data.type,
        data.content,
        user_ids=data.recipients.users,
        channels=data.recipients.channels,
        extra_data=data.metadata,
    )
    ctx.send_after_commit(
        db,
        "notification:sent",
        {"success": True, "notification_ids": [str(n.id) for n in created]},
    )


@on("notification:markRead", NotificationPayload, needs_db=True)
async def handle_notification_mark_read(
    ctx: SocketContext, data: NotificationPayload, db: AsyncSession
) -> None:
    await NotificationService(db).mark_read(data.notification_id, ctx.user_id)
    ctx.send_after_commit(
        db,
        "notification:marked",
        {"notification_id": str(data.notification_id), "status": "read"},
    )


@on("notification:getUnreadCount", needs_db=True)
async def handle_unread_count(ctx: SocketContext, data: dict, db: AsyncSession) -> None:
    count = await NotificationService(db).unread_count(ctx.user_id)
    await ctx.send("notification:unreadCount", {"count": count})


# ========== Time tracking ==========


@on("timeTracking:start", SessionStart, needs_db=True)
async def handle_tracking_start(ctx: SocketContext, data: SessionStart, db: AsyncSession) -> None:
    user = await _load_user(db, ctx)
    session = await TimeTrackingService(db).start(data, user)
    ctx.send_after_commit(
        db, "timeTracking:started", SessionResponse.model_validate(session).model_dump(mode="json")
    )


@on("timeTracking:stop", SessionPayload, needs_db=True)
async def handle_tracking_stop(ctx: SocketContext, data: SessionPayload, db: AsyncSession) -> None:
    user = await _load_user(db, ctx)
    session = await TimeTrackingService(db).stop(data.session_id, user, data.notes)
    ctx.send_after_commit(
        db, "timeTracking:stopped", SessionResponse.model_validate(session).model_dump(mode="json")
    )


@on("timeTracking:heartbeat", SessionPayload, needs_db=True)
async def handle_tracking_heartbeat(
    ctx: SocketContext, data: SessionPayload, db: AsyncSession
) -> None:
    user = await _load_user(db, ctx)
    session = await TimeTrackingService(db).heartbeat(data.session_id, user, data.metadata)
    ctx.send_after_commit(
        db,
        "timeTracking:heartbeatAck",
        {"session_id": str(session.id), "last_heartbeat": session.extra_data["last_heartbeat"]},
    )


@on("timeTracking:getActive", needs_db=True)
async def handle_tracking_active(ctx: SocketContext, data: dict, db: AsyncSession) -> None:
    user = await _load_user(db, ctx)
    sessions = await TimeTrackingService(db).active_sessions(user)
    await ctx.send(
        "timeTracking:activeSessions",
        {"sessions": [SessionResponse.model_validate(s).model_dump(mode="json") for s in sessions]},
    )


# ========== Projects ==========


@on("project:join", ProjectPayload, needs_db=True)
async def handle_project_join(ctx: SocketContext, data: ProjectPayload, db: AsyncSession) -> None:
    await ProjectService(db).get_accessible(data.project_id, ctx.user_id)
    ctx.join(project_room(data.project_id))
    await ctx.emit(
        project_room(data.project_id),
        "project:userJoined",
        {"project_id": str(data.project_id), "user_id": str(ctx.user_id)},
        include_self=False,
    )


@on("project:leave", ProjectPayload)
async def handle_project_leave(ctx: SocketContext, data: ProjectPayload) -> None:
    ctx.leave(project_room(data.project_id))
    await ctx.emit(
        project_room(data.project_id),
        "project:userLeft",
        {"project_id": str(data.project_id), "user_id": str(ctx.user_id)},
    )
