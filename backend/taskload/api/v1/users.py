"""User directory endpoints."""

from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from taskload.api.v1.auth import CurrentUser
from taskload.db.session import get_db_session
from taskload.errors import NotFoundError
from taskload.models.user import User
from taskload.schemas.common import Pagination, UserSummary
from taskload.schemas.user import UserListResponse, UserResponse

router = APIRouter()


@router.get("", response_model=UserListResponse)
async def list_users(
    current_user: CurrentUser,
    db: AsyncSession = Depends(get_db_session),
    search: str | None = Query(None, min_length=1, max_length=100),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
) -> UserListResponse:
    """List active users for member pickers.

    ``search`` matches username, email, first or last name.
    """
    conditions = [User.is_active.is_(True)]
    if search:
        pattern = f"%{search}%"
        conditions.append(
            or_(
                User.username.ilike(pattern),
                User.email.ilike(pattern),
                User.first_name.ilike(pattern),
                User.last_name.ilike(pattern),
            )
        )

    total = (await db.execute(select(func.count(User.id)).where(*conditions))).scalar() or 0
    result = await db.execute(
        select(User)
        .where(*conditions)
        .order_by(User.username)
        .offset((page - 1) * limit)
        .limit(limit)
    )
    return UserListResponse(
        users=[UserSummary.model_validate(u) for u in result.scalars().all()],
        pagination=Pagination.build(total, page, limit),
    )


@router.get("/{user_id}", response_model=UserResponse)
async def get_user(
    user_id: UUID,
    current_user: CurrentUser,
    db: AsyncSession = Depends(get_db_session),
) -> User:
    user = await db.get(User, user_id)
    if user is None:
        raise NotFoundError("User not found")
    return user
