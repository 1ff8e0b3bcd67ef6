"""Notifications API endpoints."""

from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from taskload.api.v1.auth import CurrentUser
from taskload.db.session import get_db_session
from taskload.models.notification import Notification
from taskload.schemas.common import MessageResponse, Pagination
from taskload.schemas.notification import (
    NotificationListResponse,
    NotificationResponse,
    UnreadCount,
)
from taskload.services.notification import NotificationService

router = APIRouter()


@router.get("", response_model=NotificationListResponse)
async def list_notifications(
    current_user: CurrentUser,
    db: AsyncSession = Depends(get_db_session),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    unread_only: bool = Query(False),
) -> NotificationListResponse:
    """The user's unexpired notifications, newest first."""
    notifications, total = await NotificationService(db).list_for_user(
        current_user.id, page=page, limit=limit, unread_only=unread_only
    )
    return NotificationListResponse(
        notifications=[NotificationResponse.model_validate(n) for n in notifications],
        pagination=Pagination.build(total, page, limit),
    )


@router.get("/unread", response_model=list[NotificationResponse])
async def list_unread_notifications(
    current_user: CurrentUser,
    db: AsyncSession = Depends(get_db_session),
    limit: int = Query(50, ge=1, le=100),
) -> list[Notification]:
    notifications, _ = await NotificationService(db).list_for_user(
        current_user.id, limit=limit, unread_only=True
    )
    return notifications


@router.get("/count", response_model=UnreadCount)
async def get_unread_count(
    current_user: CurrentUser,
    db: AsyncSession = Depends(get_db_session),
) -> UnreadCount:
    return UnreadCount(count=await NotificationService(db).unread_count(current_user.id))


@router.patch("/read-all", response_model=MessageResponse)
async def mark_all_notifications_read(
    current_user: CurrentUser,
    db: AsyncSession = Depends(get_db_session),
) -> MessageResponse:
    updated = await NotificationService(db).mark_all_read(current_user.id)
    return MessageResponse(message=f"{updated} notifications marked as read")


@router.patch("/{notification_id}/read", response_model=NotificationResponse)
async def mark_notification_read(
    notification_id: UUID,
    current_user: CurrentUser,
    db: AsyncSession = Depends(get_db_session),
) -> Notification:
    return await NotificationService(db).mark_read(notification_id, current_user.id)


@router.delete("/{notification_id}", response_model=MessageResponse)
async def delete_notification(
    notification_id: UUID,
    current_user: CurrentUser,
    db: AsyncSession = Depends(get_db_session),
) -> MessageResponse:
    await NotificationService(db).delete(notification_id, current_user.id)
    return MessageResponse(message="Notification deleted successfully")
