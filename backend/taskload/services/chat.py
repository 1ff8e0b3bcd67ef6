"""Chat rooms and message persistence."""

import time
from uuid import UUID

import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from taskload.db.base import utcnow
from taskload.errors import BadRequestError, ForbiddenError, NotFoundError
from taskload.models.chat import ChatMessage, ChatParticipant, ChatRoom
from taskload.models.project import Project, Task
from taskload.models.user import User
from taskload.services.notification import NotificationService

logger = structlog.get_logger()


def direct_room_id(user_a: UUID, user_b: UUID) -> str:
    """Stable room key for a one-to-one conversation."""
    first, second = sorted((str(user_a), str(user_b)))
    return f"direct_{first}_{second}"


def task_room_id(task_id: UUID) -> str:
    return f"task_{task_id}_{int(time.time() * 1000)}"


class ChatService:
    """Rooms, membership and message history."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_room(self, room_id: str) -> ChatRoom | None:
        result = await self.db.execute(select(ChatRoom).where(ChatRoom.room_id == room_id))
        return result.scalar_one_or_none()

    async def require_room(self, room_id: str, user_id: UUID | None = None) -> ChatRoom:
        """Load a room, optionally checking that the user participates in it."""
        room = await self.get_room(room_id)
        if room is None:
            raise NotFoundError("Chat room not found")
        if user_id is not None and not room.has_participant(user_id):
            raise ForbiddenError("You are not a participant of this chat")
        return room

    async def create_room(
        self,
        room_id: str,
        room_type: str,
        participant_ids: list[UUID],
        name: str | None = None,
        project_id: UUID | None = None,
        task_id: UUID | None = None,
        extra_data: dict | None = None,
    ) -> ChatRoom:
        room = ChatRoom(
            room_id=room_id,
            type=room_type,
            name=name,
            project_id=project_id,
            task_id=task_id,
            last_activity=utcnow(),
            extra_data=extra_data or {},
        )
        room.participants = [ChatParticipant(user_id=uid) for uid in dict.fromkeys(participant_ids)]
        self.db.add(room)
        await self.db.flush()
        logger.info("Chat room created", room_id=room_id, type=room_type)
        return room

    async def get_or_create_direct(self, user_id: UUID, other_id: UUID) -> ChatRoom:
        if user_id == other_id:
            raise BadRequestError("Cannot start a chat with yourself")
        if await self.db.get(User, other_id) is None:
            raise NotFoundError("User not found")

        room_id = direct_room_id(user_id, other_id)
        room = await self.get_room(room_id)
        if room is None:
            room = await self.create_room(room_id, "direct", [user_id, other_id])
        return room

    async def create_group(
        self,
        creator_id: UUID,
        room_type: str,
        participant_ids: list[UUID],
        name: str | None = None,
        project_id: UUID | None = None,
    ) -> ChatRoom:
        participants = [creator_id, *participant_ids]
        if project_id is not None:
            project = await self.db.get(Project, project_id)
            if project is None:
                raise NotFoundError("Project not found")
            if not project.has_access(creator_id):
                raise ForbiddenError("You don't have permission to access this project")
            if room_type == "project":
                participants.extend(m.user_id for m in project.members)

        prefix = f"project_{project_id}" if room_type == "project" else room_type
        room_id = f"{prefix}_{int(time.time() * 1000)}"
        return await self.create_room(
            room_id, room_type, participants, name=name, project_id=project_id
        )

    async def add_participant(self, room: ChatRoom, user_id: UUID) -> None:
        if not room.has_participant(user_id):
            room.participants.append(ChatParticipant(user_id=user_id))
            await self.db.flush()

    async def list_user_rooms(self, user_id: UUID) -> list[ChatRoom]:
        joined = select(ChatParticipant.room_id).where(ChatParticipant.user_id == user_id)
        result = await self.db.execute(
            select(ChatRoom).where(ChatRoom.id.in_(joined)).order_by(ChatRoom.last_activity.desc())
        )
        return list(result.scalars().all())

    async def save_message(
        self, room: ChatRoom, sender_id: UUID | None, content: str
    ) -> ChatMessage:
        """Persist a message; a None sender marks an assistant reply."""
        now = utcnow()
        message = ChatMessage(
            room_id=room.id,
            sender_id=sender_id,
            content=content,
            timestamp=now,
            read_by=[str(sender_id)] if sender_id else [],
        )
        room.last_activity = now
        self.db.add(message)
        await self.db.flush()

        # Load the sender for serialization
        result = await self.db.execute(
            select(ChatMessage)
            .where(ChatMessage.id == message.id)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one()

    async def history(self, room: ChatRoom, limit: int = 50, skip: int = 0) -> list[ChatMessage]:
        """Messages oldest-first, paging back from the most recent."""
        result = await self.db.execute(
            select(ChatMessage)
            .where(ChatMessage.room_id == room.id)
            .order_by(ChatMessage.timestamp.desc())
            .offset(skip)
            .limit(limit)
        )
        return list(reversed(result.scalars().all()))

    async def mark_read(self, room: ChatRoom, user_id: UUID) -> int:
        marker = str(user_id)
        result = await self.db.execute(select(ChatMessage).where(ChatMessage.room_id == room.id))
        updated = 0
        for message in result.scalars():
            if marker not in (message.read_by or []):
                # Reassign so the JSON column is flagged dirty
                message.read_by = [*(message.read_by or []), marker]
                updated += 1
        await self.db.flush()
        return updated

    async def unread_count(self, room: ChatRoom, user_id: UUID) -> int:
        result = await self.db.execute(
            select(ChatMessage.read_by).where(ChatMessage.room_id == room.id)
        )
        marker = str(user_id)
        return sum(1 for read_by in result.scalars() if marker not in (read_by or []))


class TaskChatService:
    """Chat rooms attached to tasks."""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.chat = ChatService(db)

    async def _participants(self, task: Task) -> list[UUID]:
        ids = [uid for uid in (task.created_by_id, task.assigned_to_id) if uid]
        project = await self.db.get(Project, task.project_id)
        if project is not None:
            ids.append(project.owner_id)
            ids.extend(m.user_id for m in project.members)
        return list(dict.fromkeys(ids))

    async def create_or_get_room(self, task: Task) -> ChatRoom:
        """Return the task's room, creating it (and linking the task) when missing."""
        if task.chat_room_id:
            room = await self.chat.get_room(task.chat_room_id)
            if room is not None:
                return room

        room = await self.chat.create_room(
            task_room_id(task.id),
            "task",
            await self._participants(task),
            name=task.title,
            project_id=task.project_id,
            task_id=task.id,
        )
        task.chat_room_id = room.room_id
        await self.db.flush()
        return room

    async def send_message(self, task: Task, sender: User, content: str) -> ChatMessage:
        room = await self.create_or_get_room(task)
        await self.chat.add_participant(room, sender.id)
        message = await self.chat.save_message(room, sender.id, content)

        await NotificationService(self.db).notify_many(
            room.participant_ids,
            "chat",
            f"New message in task '{task.title}' from {sender.username}",
            sender_id=sender.id,
            related_project_id=task.project_id,
            related_task_id=task.id,
            extra_data={"room_id": room.room_id},
        )
        return message

    async def history(self, task: Task, limit: int = 50, skip: int = 0) -> tuple[ChatRoom, list[ChatMessage]]:
        room = await self.create_or_get_room(task)
        return room, await self.chat.history(room, limit=limit, skip=skip)

    async def mark_read(self, task: Task, user_id: UUID) -> int:
        room = await self.create_or_get_room(task)
        return await self.chat.mark_read(room, user_id)
