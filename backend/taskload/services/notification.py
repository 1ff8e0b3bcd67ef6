"""Notification service for creating in-app notifications."""

from datetime import datetime, timedelta
from uuid import UUID

import structlog
from sqlalchemy import and_, delete, func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from taskload.db.base import utcnow
from taskload.errors import BadRequestError, NotFoundError
from taskload.models.notification import NOTIFICATION_TYPES, Notification
from taskload.models.project import Project, Task
from taskload.realtime.manager import notification_channel, notify_user, queue_event

logger = structlog.get_logger()

DUE_SOON_WINDOW = timedelta(hours=24)


def notification_payload(notification: Notification) -> dict:
    """Realtime payload for a freshly created notification."""
    return {
        "id": str(notification.id),
        "type": notification.notification_type,
        "content": notification.content,
        "sender_id": str(notification.sender_id) if notification.sender_id else None,
        "related_project_id": (
            str(notification.related_project_id) if notification.related_project_id else None
        ),
        "related_task_id": (
            str(notification.related_task_id) if notification.related_task_id else None
        ),
        "is_read": notification.is_read,
        "metadata": notification.extra_data or {},
        "created_at": notification.created_at,
    }


class NotificationService:
    """Service for creating and managing user notifications."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def notify(
        self,
        user_id: UUID,
        notification_type: str,
        content: str,
        sender_id: UUID | None = None,
        related_project_id: UUID | None = None,
        related_task_id: UUID | None = None,
        extra_data: dict | None = None,
        expires_at: datetime | None = None,
        push: bool = True,
    ) -> Notification | None:
        """
        Create a notification for a user and push it to their open sockets.

        Returns None when the recipient is the sender.
        """
        # Don't notify users about their own actions
        if sender_id and sender_id == user_id:
            logger.debug(
                "skipping_self_notification",
                user_id=str(user_id),
                notification_type=notification_type,
            )
            return None

        notification = Notification(
            user_id=user_id,
            notification_type=notification_type,
            content=content,
            sender_id=sender_id,
            related_project_id=related_project_id,
            related_task_id=related_task_id,
            extra_data=extra_data or {},
            expires_at=expires_at,
            is_read=False,
        )
        self.db.add(notification)
        await self.db.flush()

        logger.info(
            "notification_created",
            notification_id=str(notification.id),
            user_id=str(user_id),
            notification_type=notification_type,
        )

        if push:
            notify_user(self.db, user_id, "notification:new", notification_payload(notification))
        return notification

    async def notify_many(
        self,
        user_ids: list[UUID],
        notification_type: str,
        content: str,
        **kwargs,
    ) -> list[Notification]:
        """Create notifications for several users, skipping duplicates and the sender."""
        created = []
        for user_id in dict.fromkeys(user_ids):
            notification = await self.notify(user_id, notification_type, content, **kwargs)
            if notification:
                created.append(notification)
        return created

    async def create_task_notification(self, task: Task, project: Project) -> list[Notification]:
        """Tell project members and the assignee about a new task."""
        recipients = [m.user_id for m in project.members]
        recipients.append(project.owner_id)
        if task.assigned_to_id:
            recipients.append(task.assigned_to_id)

        return await self.notify_many(
            recipients,
            "task",
            f"New task created: {task.title}",
            sender_id=task.created_by_id,
            related_project_id=project.id,
            related_task_id=task.id,
        )

    async def send(
        self,
        sender_id: UUID,
        notification_type: str,
        content: str,
        user_ids: list[UUID] | None = None,
        channels: list[str] | None = None,
        extra_data: dict | None = None,
    ) -> list[Notification]:
        """
        Deliver an ad-hoc notification to users and topic channels.

        Users get a stored notification each; channel subscribers get the
        payload over their sockets only.
        """
        if notification_type not in NOTIFICATION_TYPES:
            raise BadRequestError("Invalid notification type")
        if not user_ids and not channels:
            raise BadRequestError("Notification needs at least one recipient")

        created = await self.notify_many(
            user_ids or [],
            notification_type,
            content,
            sender_id=sender_id,
            extra_data=extra_data,
        )
        payload = {
            "type": notification_type,
            "content": content,
            "sender_id": str(sender_id),
            "metadata": extra_data or {},
            "created_at": utcnow(),
        }
        for channel in dict.fromkeys(channels or []):
            queue_event(self.db, notification_channel(channel), "notification:new", payload)

        logger.info(
            "notification_sent",
            sender_id=str(sender_id),
            users=len(created),
            channels=len(channels or []),
        )
        return created

    async def check_due_date_notifications(self) -> list[Notification]:
        """
        Create one deadline reminder per open task due within the next day.

        Tasks that already have a deadline reminder are skipped.
        """
        now = utcnow()
        result = await self.db.execute(
            select(Task).where(
                Task.due_date.is_not(None),
                Task.due_date > now,
                Task.due_date <= now + DUE_SOON_WINDOW,
                Task.status != "completed",
            )
        )
        created = []
        for task in result.scalars():
            recipient = task.assigned_to_id or task.created_by_id
            if recipient is None:
                continue

            existing = await self.db.execute(
                select(Notification.id).where(
                    Notification.related_task_id == task.id,
                    Notification.notification_type == "deadline",
                ).limit(1)
            )
            if existing.scalar_one_or_none() is not None:
                continue

            notification = await self.notify(
                recipient,
                "deadline",
                f"Reminder: task '{task.title}' is due soon",
                related_project_id=task.project_id,
                related_task_id=task.id,
                extra_data={"due_date": task.due_date.isoformat()},
                expires_at=task.due_date,
            )
            if notification:
                created.append(notification)

        logger.info("Due date check completed", created=len(created))
        return created

    # ========== Queries ==========

    def _visible(self, user_id: UUID):
        now = utcnow()
        return and_(
            Notification.user_id == user_id,
            or_(Notification.expires_at.is_(None), Notification.expires_at > now),
        )

    async def list_for_user(
        self,
        user_id: UUID,
        page: int = 1,
        limit: int = 20,
        unread_only: bool = False,
    ) -> tuple[list[Notification], int]:
        conditions = [self._visible(user_id)]
        if unread_only:
            conditions.append(Notification.is_read.is_(False))

        total = (
            await self.db.execute(select(func.count(Notification.id)).where(*conditions))
        ).scalar() or 0
        result = await self.db.execute(
            select(Notification)
            .where(*conditions)
            .order_by(Notification.created_at.desc())
            .offset((page - 1) * limit)
            .limit(limit)
        )
        return list(result.scalars().all()), total

    async def unread_count(self, user_id: UUID) -> int:
        result = await self.db.execute(
            select(func.count(Notification.id)).where(
                self._visible(user_id), Notification.is_read.is_(False)
            )
        )
        return result.scalar() or 0

    async def _get_owned(self, notification_id: UUID, user_id: UUID) -> Notification:
        notification = await self.db.get(Notification, notification_id)
        if notification is None or notification.user_id != user_id:
            raise NotFoundError("Notification not found")
        return notification

    async def mark_read(self, notification_id: UUID, user_id: UUID) -> Notification:
        notification = await self._get_owned(notification_id, user_id)
        if not notification.is_read:
            notification.is_read = True
            notification.read_at = utcnow()
            await self.db.flush()
        return notification

    async def mark_all_read(self, user_id: UUID) -> int:
        result = await self.db.execute(
            update(Notification)
            .where(Notification.user_id == user_id, Notification.is_read.is_(False))
            .values(is_read=True, read_at=utcnow())
        )
        return result.rowcount or 0

    async def delete(self, notification_id: UUID, user_id: UUID) -> None:
        await self._get_owned(notification_id, user_id)
        await self.db.execute(delete(Notification).where(Notification.id == notification_id))
