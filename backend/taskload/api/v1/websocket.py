"""WebSocket endpoint for the realtime relay.

Clients connect to ``/ws?token=<access token>`` and exchange JSON frames
``{"event": name, "data": {...}}``. See ``taskload.realtime.handlers`` for
the inbound events.
"""

import orjson
import structlog
from fastapi import APIRouter, Query, WebSocket, WebSocketDisconnect
from jose import JWTError

from taskload.api.v1.auth import decode_token
from taskload.db import session as db_session
from taskload.models.user import User
from taskload.realtime.handlers import SocketContext, dispatch
from taskload.realtime.manager import manager

router = APIRouter()
logger = structlog.get_logger()

# Application close code for a rejected handshake
CLOSE_UNAUTHORIZED = 4001


async def _authenticate(token: str | None) -> User | None:
    if not token:
        return None
    try:
        user_id = decode_token(token, "access")
    except JWTError:
        return None
    async with db_session.async_session_factory() as db:
        user = await db.get(User, user_id)
    if user is None or not user.is_active:
        return None
    return user


@router.websocket("/ws")
async def websocket_endpoint(
    websocket: WebSocket,
    token: str | None = Query(None),
):
    """Main WebSocket endpoint; one connection per browser tab."""
    user = await _authenticate(token)
    if user is None:
        await websocket.close(code=CLOSE_UNAUTHORIZED, reason="Authentication failed")
        return

    user_id = str(user.id)
    was_online = manager.is_online(user_id)
    await manager.connect(websocket, user_id)
    logger.info("WebSocket connected", user_id=user_id)
    if not was_online:
        await manager.broadcast("user:online", {"user_id": user_id}, exclude=websocket)

    ctx = SocketContext(websocket=websocket, user_id=user.id, username=user.username)
    try:
        while True:
            frame = await websocket.receive()
            if frame["type"] == "websocket.disconnect":
                break
            text = frame.get("text")
            if text is None:
                await ctx.send("error", {"error": "Binary frames are not supported"})
                continue
            try:
                message = orjson.loads(text)
            except orjson.JSONDecodeError:
                await ctx.send("error", {"error": "Invalid JSON"})
                continue
            await dispatch(ctx, message)
    except WebSocketDisconnect:
        pass
    finally:
        manager.disconnect(websocket)
        logger.info("WebSocket disconnected", user_id=user_id)
        if not manager.is_online(user_id):
            await manager.broadcast("user:offline", {"user_id": user_id})
