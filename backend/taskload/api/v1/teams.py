"""Teams API endpoints.

Responses are wrapped as ``{"status": "success", "data": ...}``.
"""

from uuid import UUID

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from taskload.api.v1.auth import CurrentUser
from taskload.db.session import get_db_session
from taskload.schemas.common import MessageResponse
from taskload.schemas.team import (
    CustomFieldsUpdate,
    Envelope,
    TeamCreate,
    TeamMemberAdd,
    TeamResponse,
    TeamStats,
    TeamUpdate,
)
from taskload.services.team import TeamService

router = APIRouter()


def _wrap(team) -> Envelope[TeamResponse]:
    return Envelope[TeamResponse](data=TeamResponse.model_validate(team))


@router.get("", response_model=Envelope[list[TeamResponse]])
async def list_teams(
    current_user: CurrentUser,
    db: AsyncSession = Depends(get_db_session),
) -> Envelope[list[TeamResponse]]:
    """Teams the user leads or belongs to."""
    teams = await TeamService(db).list_for_user(current_user.id)
    return Envelope[list[TeamResponse]](data=[TeamResponse.model_validate(t) for t in teams])


@router.post("", response_model=Envelope[TeamResponse], status_code=status.HTTP_201_CREATED)
async def create_team(
    team_data: TeamCreate,
    current_user: CurrentUser,
    db: AsyncSession = Depends(get_db_session),
) -> Envelope[TeamResponse]:
    return _wrap(await TeamService(db).create(team_data, current_user))


@router.get("/{team_id}", response_model=Envelope[TeamResponse])
async def get_team(
    team_id: UUID,
    current_user: CurrentUser,
    db: AsyncSession = Depends(get_db_session),
) -> Envelope[TeamResponse]:
    return _wrap(await TeamService(db).get_for_member(team_id, current_user.id))


@router.put("/{team_id}", response_model=Envelope[TeamResponse])
async def update_team(
    team_id: UUID,
    team_data: TeamUpdate,
    current_user: CurrentUser,
    db: AsyncSession = Depends(get_db_session),
) -> Envelope[TeamResponse]:
    return _wrap(await TeamService(db).update(team_id, team_data, current_user))


@router.delete("/{team_id}", response_model=Envelope[MessageResponse])
async def delete_team(
    team_id: UUID,
    current_user: CurrentUser,
    db: AsyncSession = Depends(get_db_session),
) -> Envelope[MessageResponse]:
    await TeamService(db).delete(team_id, current_user)
    return Envelope[MessageResponse](data=MessageResponse(message="Team deleted successfully"))


@router.get("/{team_id}/stats", response_model=Envelope[TeamStats])
async def get_team_stats(
    team_id: UUID,
    current_user: CurrentUser,
    db: AsyncSession = Depends(get_db_session),
) -> Envelope[TeamStats]:
    return Envelope[TeamStats](data=await TeamService(db).stats(team_id, current_user))


@router.put("/{team_id}/custom-fields", response_model=Envelope[TeamResponse])
async def update_team_custom_fields(
    team_id: UUID,
    fields: CustomFieldsUpdate,
    current_user: CurrentUser,
    db: AsyncSession = Depends(get_db_session),
) -> Envelope[TeamResponse]:
    return _wrap(
        await TeamService(db).update_custom_fields(team_id, fields.custom_fields, current_user)
    )


# ========== Members ==========


@router.post("/{team_id}/members", response_model=Envelope[TeamResponse])
async def add_team_member(
    team_id: UUID,
    member_data: TeamMemberAdd,
    current_user: CurrentUser,
    db: AsyncSession = Depends(get_db_session),
) -> Envelope[TeamResponse]:
    return _wrap(await TeamService(db).add_member(team_id, member_data.user_id, current_user))


@router.delete("/{team_id}/members/{user_id}", response_model=Envelope[TeamResponse])
async def remove_team_member(
    team_id: UUID,
    user_id: UUID,
    current_user: CurrentUser,
    db: AsyncSession = Depends(get_db_session),
) -> Envelope[TeamResponse]:
    return _wrap(await TeamService(db).remove_member(team_id, user_id, current_user))


# ========== Projects ==========


@router.post("/{team_id}/projects/{project_id}", response_model=Envelope[TeamResponse])
async def add_team_project(
    team_id: UUID,
    project_id: UUID,
    current_user: CurrentUser,
    db: AsyncSession = Depends(get_db_session),
) -> Envelope[TeamResponse]:
    return _wrap(await TeamService(db).add_project(team_id, project_id, current_user))


@router.delete("/{team_id}/projects/{project_id}", response_model=Envelope[TeamResponse])
async def remove_team_project(
    team_id: UUID,
    project_id: UUID,
    current_user: CurrentUser,
    db: AsyncSession = Depends(get_db_session),
) -> Envelope[TeamResponse]:
    return _wrap(await TeamService(db).remove_project(team_id, project_id, current_user))
