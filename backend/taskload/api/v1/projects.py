"""Projects API endpoints."""

from uuid import UUID

import structlog
from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from taskload.api.v1.auth import CurrentUser
from taskload.db.session import get_db_session
from taskload.models.project import Project
from taskload.schemas.common import MessageResponse
from taskload.schemas.project import (
    MemberAdd,
    MemberRoleUpdate,
    ProjectCreate,
    ProjectResponse,
    ProjectUpdate,
)
from taskload.schemas.task import TaskResponse
from taskload.services.project import ProjectService

router = APIRouter()
logger = structlog.get_logger()


@router.get("", response_model=list[ProjectResponse])
async def list_projects(
    current_user: CurrentUser,
    db: AsyncSession = Depends(get_db_session),
) -> list[Project]:
    """Projects the user owns or is a member of, most recently updated first."""
    return await ProjectService(db).list_for_user(current_user.id)


@router.post("", response_model=ProjectResponse, status_code=status.HTTP_201_CREATED)
async def create_project(
    project_data: ProjectCreate,
    current_user: CurrentUser,
    db: AsyncSession = Depends(get_db_session),
) -> Project:
    return await ProjectService(db).create(project_data, current_user)


@router.get("/{project_id}", response_model=ProjectResponse)
async def get_project(
    project_id: UUID,
    current_user: CurrentUser,
    db: AsyncSession = Depends(get_db_session),
) -> Project:
    return await ProjectService(db).get_accessible(project_id, current_user.id)


@router.put("/{project_id}", response_model=ProjectResponse)
async def update_project(
    project_id: UUID,
    project_data: ProjectUpdate,
    current_user: CurrentUser,
    db: AsyncSession = Depends(get_db_session),
) -> Project:
    return await ProjectService(db).update(project_id, project_data, current_user)


@router.delete("/{project_id}", response_model=MessageResponse)
async def delete_project(
    project_id: UUID,
    current_user: CurrentUser,
    db: AsyncSession = Depends(get_db_session),
) -> MessageResponse:
    """Delete a project and all of its tasks. Owner only."""
    await ProjectService(db).delete(project_id, current_user)
    return MessageResponse(message="Project deleted successfully")


@router.get("/{project_id}/tasks", response_model=list[TaskResponse])
async def list_project_tasks(
    project_id: UUID,
    current_user: CurrentUser,
    db: AsyncSession = Depends(get_db_session),
) -> list[TaskResponse]:
    tasks = await ProjectService(db).list_tasks(project_id, current_user.id)
    return [TaskResponse.from_task(t) for t in tasks]


# ========== Members ==========


@router.post("/{project_id}/members", response_model=ProjectResponse)
async def add_project_member(
    project_id: UUID,
    member_data: MemberAdd,
    current_user: CurrentUser,
    db: AsyncSession = Depends(get_db_session),
) -> Project:
    return await ProjectService(db).add_member(project_id, member_data, current_user)


@router.delete("/{project_id}/members/{user_id}", response_model=ProjectResponse)
async def remove_project_member(
    project_id: UUID,
    user_id: UUID,
    current_user: CurrentUser,
    db: AsyncSession = Depends(get_db_session),
) -> Project:
    return await ProjectService(db).remove_member(project_id, user_id, current_user)


@router.patch("/{project_id}/members/{user_id}", response_model=ProjectResponse)
async def update_project_member_role(
    project_id: UUID,
    user_id: UUID,
    role_data: MemberRoleUpdate,
    current_user: CurrentUser,
    db: AsyncSession = Depends(get_db_session),
) -> Project:
    return await ProjectService(db).update_member_role(
        project_id, user_id, role_data.role, current_user
    )
