"""Team service."""

from uuid import UUID

import structlog
from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from taskload.errors import BadRequestError, ForbiddenError, NotFoundError
from taskload.models.project import Project, Task
from taskload.models.team import Team, TeamMember
from taskload.models.user import User
from taskload.schemas.team import TeamCreate, TeamStats, TeamUpdate

logger = structlog.get_logger()


class TeamService:
    """Teams, their members and the projects they share."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get(self, team_id: UUID, *, refresh: bool = False) -> Team:
        query = select(Team).where(Team.id == team_id)
        if refresh:
            query = query.execution_options(populate_existing=True)
        team = (await self.db.execute(query)).scalar_one_or_none()
        if team is None:
            raise NotFoundError("Team not found")
        return team

    async def get_for_member(self, team_id: UUID, user_id: UUID) -> Team:
        team = await self.get(team_id)
        if not team.is_member(user_id):
            raise ForbiddenError("You are not a member of this team")
        return team

    async def get_for_leader(self, team_id: UUID, user_id: UUID) -> Team:
        team = await self.get(team_id)
        if team.leader_id != user_id:
            raise ForbiddenError("Only the team leader can perform this action")
        return team

    async def list_for_user(self, user_id: UUID) -> list[Team]:
        member_teams = select(TeamMember.team_id).where(TeamMember.user_id == user_id)
        result = await self.db.execute(
            select(Team)
            .where(or_(Team.leader_id == user_id, Team.id.in_(member_teams)))
            .order_by(Team.name)
        )
        return list(result.scalars().all())

    async def create(self, data: TeamCreate, leader: User) -> Team:
        team = Team(
            name=data.name,
            description=data.description,
            leader_id=leader.id,
            tags=data.tags,
            custom_fields=data.custom_fields,
        )
        members = [TeamMember(user_id=leader.id, role="leader")]
        for user_id in dict.fromkeys(data.member_ids):
            if user_id == leader.id:
                continue
            if await self.db.get(User, user_id) is None:
                raise NotFoundError("User not found")
            members.append(TeamMember(user_id=user_id, role="member"))
        team.members = members
        team.projects = []
        self.db.add(team)
        await self.db.flush()

        logger.info("Team created", team_id=str(team.id), leader_id=str(leader.id))
        return await self.get(team.id, refresh=True)

    async def update(self, team_id: UUID, data: TeamUpdate, user: User) -> Team:
        team = await self.get_for_leader(team_id, user.id)
        for field, value in data.model_dump(exclude_unset=True).items():
            if value is not None:
                setattr(team, field, value)
        await self.db.flush()
        return await self.get(team_id, refresh=True)

    async def delete(self, team_id: UUID, user: User) -> None:
        team = await self.get_for_leader(team_id, user.id)
        for project in team.projects:
            project.team_id = None
        await self.db.delete(team)
        await self.db.flush()
        logger.info("Team deleted", team_id=str(team_id))

    async def add_member(self, team_id: UUID, user_id: UUID, user: User) -> Team:
        team = await self.get_for_leader(team_id, user.id)
        if await self.db.get(User, user_id) is None:
            raise NotFoundError("User not found")
        if team.is_member(user_id):
            raise BadRequestError("User is already a member of this team")

        team.members.append(TeamMember(user_id=user_id, role="member"))
        await self.db.flush()
        logger.info("Team member added", team_id=str(team_id), user_id=str(user_id))
        return await self.get(team_id, refresh=True)

    async def remove_member(self, team_id: UUID, user_id: UUID, user: User) -> Team:
        team = await self.get(team_id)
        # Members may leave on their own
        if user_id != user.id and team.leader_id != user.id:
            raise ForbiddenError("Only the team leader can perform this action")
        if user_id == team.leader_id:
            raise BadRequestError("Cannot remove the team leader")

        member = next((m for m in team.members if m.user_id == user_id), None)
        if member is None:
            raise NotFoundError("Member not found")
        team.members.remove(member)
        await self.db.flush()
        return await self.get(team_id, refresh=True)

    async def add_project(self, team_id: UUID, project_id: UUID, user: User) -> Team:
        team = await self.get_for_member(team_id, user.id)
        project = await self.db.get(Project, project_id)
        if project is None:
            raise NotFoundError("Project not found")
        if not project.has_role(user.id, "owner", "admin"):
            raise ForbiddenError("You don't have permission to update this project")

        project.team_id = team.id
        await self.db.flush()
        return await self.get(team_id, refresh=True)

    async def remove_project(self, team_id: UUID, project_id: UUID, user: User) -> Team:
        team = await self.get_for_member(team_id, user.id)
        project = await self.db.get(Project, project_id)
        if project is None or project.team_id != team.id:
            raise NotFoundError("Project not found in this team")
        if team.leader_id != user.id and not project.has_role(user.id, "owner", "admin"):
            raise ForbiddenError("You don't have permission to update this project")

        project.team_id = None
        await self.db.flush()
        return await self.get(team_id, refresh=True)

    async def update_custom_fields(self, team_id: UUID, fields: dict, user: User) -> Team:
        team = await self.get_for_leader(team_id, user.id)
        team.custom_fields = {**(team.custom_fields or {}), **fields}
        await self.db.flush()
        return await self.get(team_id, refresh=True)

    async def stats(self, team_id: UUID, user: User) -> TeamStats:
        team = await self.get_for_member(team_id, user.id)
        project_ids = select(Project.id).where(Project.team_id == team.id)
        rows = await self.db.execute(
            select(Task.status, func.count(Task.id))
            .where(Task.project_id.in_(project_ids))
            .group_by(Task.status)
        )
        by_status = {status: count for status, count in rows.all()}
        return TeamStats(
            member_count=len(team.members),
            project_count=len(team.projects),
            task_count=sum(by_status.values()),
            tasks_by_status=by_status,
        )
