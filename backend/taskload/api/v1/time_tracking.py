"""Time tracking API endpoints."""

from datetime import datetime
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from taskload.api.v1.auth import CurrentUser
from taskload.db.session import get_db_session
from taskload.models.time_tracking import TimeTrackingSession
from taskload.schemas.time_tracking import (
    HeartbeatRequest,
    SessionResponse,
    SessionStart,
    SessionStop,
    TimeSummary,
)
from taskload.services.time_tracking import TimeTrackingService

router = APIRouter()


@router.post("/start", response_model=SessionResponse, status_code=status.HTTP_201_CREATED)
async def start_session(
    session_data: SessionStart,
    current_user: CurrentUser,
    db: AsyncSession = Depends(get_db_session),
) -> TimeTrackingSession:
    """Start tracking; a running session on the same task or project is stopped first."""
    return await TimeTrackingService(db).start(session_data, current_user)


@router.post("/{session_id}/stop", response_model=SessionResponse)
async def stop_session(
    session_id: UUID,
    current_user: CurrentUser,
    db: AsyncSession = Depends(get_db_session),
    stop_data: SessionStop | None = None,
) -> TimeTrackingSession:
    notes = stop_data.notes if stop_data else None
    return await TimeTrackingService(db).stop(session_id, current_user, notes)


@router.post("/{session_id}/heartbeat", response_model=SessionResponse)
async def heartbeat(
    session_id: UUID,
    current_user: CurrentUser,
    db: AsyncSession = Depends(get_db_session),
    heartbeat_data: HeartbeatRequest | None = None,
) -> TimeTrackingSession:
    metadata = heartbeat_data.metadata if heartbeat_data else None
    return await TimeTrackingService(db).heartbeat(session_id, current_user, metadata)


@router.get("/active", response_model=list[SessionResponse])
async def active_sessions(
    current_user: CurrentUser,
    db: AsyncSession = Depends(get_db_session),
) -> list[TimeTrackingSession]:
    return await TimeTrackingService(db).active_sessions(current_user)


@router.get("/history", response_model=list[SessionResponse])
async def session_history(
    current_user: CurrentUser,
    db: AsyncSession = Depends(get_db_session),
    start_date: datetime | None = Query(None),
    end_date: datetime | None = Query(None),
    task_id: UUID | None = Query(None),
    project_id: UUID | None = Query(None),
    limit: int = Query(50, ge=1, le=500),
    skip: int = Query(0, ge=0),
) -> list[TimeTrackingSession]:
    return await TimeTrackingService(db).history(
        current_user,
        start_date=start_date,
        end_date=end_date,
        task_id=task_id,
        project_id=project_id,
        limit=limit,
        skip=skip,
    )


@router.get("/summary", response_model=TimeSummary)
async def user_summary(
    current_user: CurrentUser,
    db: AsyncSession = Depends(get_db_session),
    group_by: str = Query("day"),
    start_date: datetime | None = Query(None),
    end_date: datetime | None = Query(None),
) -> TimeSummary:
    """Tracked seconds for the user grouped by day, week, month, project or task."""
    return await TimeTrackingService(db).user_summary(
        current_user, group_by=group_by, start_date=start_date, end_date=end_date
    )


@router.get("/projects/{project_id}/summary", response_model=TimeSummary)
async def project_summary(
    project_id: UUID,
    current_user: CurrentUser,
    db: AsyncSession = Depends(get_db_session),
    group_by: str = Query("user"),
    start_date: datetime | None = Query(None),
    end_date: datetime | None = Query(None),
) -> TimeSummary:
    return await TimeTrackingService(db).project_summary(
        project_id, current_user, group_by=group_by, start_date=start_date, end_date=end_date
    )
