"""Dashboard API endpoints."""

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from taskload.api.v1.auth import CurrentUser
from taskload.db.session import get_db_session
from taskload.schemas.dashboard import ActivityDay, DashboardOverview
from taskload.schemas.project import ProjectResponse
from taskload.schemas.task import TaskResponse
from taskload.services.dashboard import DashboardService

router = APIRouter()


@router.get("", response_model=DashboardOverview)
async def get_dashboard(
    current_user: CurrentUser,
    db: AsyncSession = Depends(get_db_session),
    task_limit: int = Query(10, ge=1, le=50),
) -> DashboardOverview:
    """Recent tasks, the user's projects and task counts in one call."""
    overview = await DashboardService(db).overview(current_user, task_limit=task_limit)
    return DashboardOverview(
        tasks=[TaskResponse.from_task(t) for t in overview["tasks"]],
        projects=[ProjectResponse.model_validate(p) for p in overview["projects"]],
        stats=overview["stats"],
    )


@router.get("/activity", response_model=list[ActivityDay])
async def get_activity(
    current_user: CurrentUser,
    db: AsyncSession = Depends(get_db_session),
    days: int = Query(7, ge=1, le=90),
) -> list[dict]:
    return await DashboardService(db).activity(current_user, days=days)
