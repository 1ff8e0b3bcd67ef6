"""WebSocket connection manager with named rooms.

Rooms are plain strings: ``user:<id>``, ``chat:<room id>``, ``task:<id>``,
``project:<id>``, ``chatbot:<room id>`` and ``notification:<channel>``. Every
outbound frame is a JSON envelope
``{"event": <name>, "data": <payload>}``.
"""

from collections import defaultdict
from dataclasses import dataclass
from typing import Any

import structlog
from fastapi import WebSocket
from fastapi.encoders import jsonable_encoder
from sqlalchemy.ext.asyncio import AsyncSession

logger = structlog.get_logger()


def user_room(user_id: Any) -> str:
    return f"user:{user_id}"


def project_room(project_id: Any) -> str:
    return f"project:{project_id}"


def task_room(task_id: Any) -> str:
    return f"task:{task_id}"


def chat_room(room_id: str) -> str:
    return f"chat:{room_id}"


def chatbot_room(room_id: str) -> str:
    return f"chatbot:{room_id}"


def notification_channel(channel: str) -> str:
    return f"notification:{channel}"


class ConnectionManager:
    """Tracks sockets per user and per room and fans out events."""

    def __init__(self):
        # room -> sockets subscribed to it
        self.rooms: dict[str, set[WebSocket]] = defaultdict(set)
        # user_id -> that user's open sockets (one per tab/device)
        self.user_connections: dict[str, set[WebSocket]] = defaultdict(set)
        # socket -> (user_id, rooms joined)
        self._sockets: dict[WebSocket, tuple[str, set[str]]] = {}

    async def connect(self, websocket: WebSocket, user_id: str) -> None:
        """Accept the socket and subscribe it to the user's private room."""
        await websocket.accept()
        self.register(websocket, user_id)

    def register(self, websocket: WebSocket, user_id: str) -> None:
        self.user_connections[user_id].add(websocket)
        self._sockets[websocket] = (user_id, set())
        self.join(websocket, user_room(user_id))

    def disconnect(self, websocket: WebSocket) -> str | None:
        """Forget the socket; returns its user id if it was registered."""
        entry = self._sockets.pop(websocket, None)
        if entry is None:
            return None
        user_id, joined = entry
        for room in joined:
            self._discard(room, websocket)
        self.user_connections[user_id].discard(websocket)
        if not self.user_connections[user_id]:
            del self.user_connections[user_id]
        return user_id

    def join(self, websocket: WebSocket, room: str) -> None:
        self.rooms[room].add(websocket)
        if websocket in self._sockets:
            self._sockets[websocket][1].add(room)

    def leave(self, websocket: WebSocket, room: str) -> None:
        self._discard(room, websocket)
        if websocket in self._sockets:
            self._sockets[websocket][1].discard(room)

    def _discard(self, room: str, websocket: WebSocket) -> None:
        members = self.rooms.get(room)
        if members is None:
            return
        members.discard(websocket)
        if not members:
            del self.rooms[room]

    def user_for(self, websocket: WebSocket) -> str | None:
        entry = self._sockets.get(websocket)
        return entry[0] if entry else None

    def is_online(self, user_id: str) -> bool:
        return bool(self.user_connections.get(user_id))

    def online_users(self) -> list[str]:
        return list(self.user_connections)

    def room_users(self, room: str) -> list[str]:
        users = {self.user_for(ws) for ws in self.rooms.get(room, ())}
        return sorted(u for u in users if u)

    @staticmethod
    def envelope(event: str, data: Any) -> dict:
        return {"event": event, "data": jsonable_encoder(data)}

    async def send(self, websocket: WebSocket, event: str, data: Any) -> None:
        await websocket.send_json(self.envelope(event, data))

    async def emit(
        self,
        room: str,
        event: str,
        data: Any,
        exclude: WebSocket | None = None,
        exclude_user: str | None = None,
    ) -> int:
        """Send an event to every socket in a room. Returns the delivery count."""
        message = self.envelope(event, data)
        delivered = 0
        for connection in list(self.rooms.get(room, ())):
            if connection is exclude:
                continue
            if exclude_user and self.user_for(connection) == exclude_user:
                continue
            try:
                await connection.send_json(message)
                delivered += 1
            except Exception as e:
                # Socket closed under us; the receive loop cleans it up
                logger.debug("WebSocket send failed", room=room, event=event, error=str(e))
        return delivered

    async def send_to_user(self, user_id: str, event: str, data: Any) -> int:
        return await self.emit(user_room(user_id), event, data)

    async def broadcast(self, event: str, data: Any, exclude: WebSocket | None = None) -> int:
        message = self.envelope(event, data)
        delivered = 0
        for connection in list(self._sockets):
            if connection is exclude:
                continue
            try:
                await connection.send_json(message)
                delivered += 1
            except Exception as e:
                logger.debug("WebSocket broadcast failed", event=event, error=str(e))
        return delivered


# Global connection manager instance
manager = ConnectionManager()


# Events raised during a database transaction wait on the session until it
# commits; a rollback drops them.

PENDING_EVENTS = "pending_events"


@dataclass
class PendingEvent:
    connections: ConnectionManager
    room: str | None
    event: str
    data: Any
    exclude: WebSocket | None = None
    exclude_user: str | None = None
    # Set for a reply to a single socket instead of a room
    websocket: WebSocket | None = None


def queue_event(
    db: AsyncSession,
    room: str | None,
    event: str,
    data: Any,
    connections: ConnectionManager | None = None,
    exclude: WebSocket | None = None,
    exclude_user: Any = None,
    websocket: WebSocket | None = None,
) -> None:
    """Hold an event on the session until its transaction commits."""
    db.info.setdefault(PENDING_EVENTS, []).append(
        PendingEvent(
            connections=connections or manager,
            room=room,
            event=event,
            data=jsonable_encoder(data),
            exclude=exclude,
            exclude_user=str(exclude_user) if exclude_user else None,
            websocket=websocket,
        )
    )


def discard_events(db: AsyncSession) -> int:
    return len(db.info.pop(PENDING_EVENTS, None) or [])


async def flush_events(db: AsyncSession) -> int:
    """Deliver the events queued on a committed session, in order."""
    delivered = 0
    for pending in db.info.pop(PENDING_EVENTS, None) or []:
        if pending.websocket is not None:
            try:
                await pending.connections.send(pending.websocket, pending.event, pending.data)
                delivered += 1
            except Exception as e:
                logger.debug("WebSocket send failed", event=pending.event, error=str(e))
            continue
        delivered += await pending.connections.emit(
            pending.room,
            pending.event,
            pending.data,
            exclude=pending.exclude,
            exclude_user=pending.exclude_user,
        )
    return delivered


# Helpers used by services to push events once their transaction commits


def notify_user(db: AsyncSession, user_id: Any, event: str, data: Any) -> None:
    queue_event(db, user_room(user_id), event, data)


def notify_project(
    db: AsyncSession, project_id: Any, event: str, data: Any, exclude_user: Any = None
) -> None:
    queue_event(db, project_room(project_id), event, data, exclude_user=exclude_user)


def notify_task(
    db: AsyncSession, task_id: Any, event: str, data: Any, exclude_user: Any = None
) -> None:
    queue_event(db, task_room(task_id), event, data, exclude_user=exclude_user)
