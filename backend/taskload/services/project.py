"""Project service."""

from uuid import UUID

import structlog
from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from taskload.db.base import ensure_utc
from taskload.errors import BadRequestError, ForbiddenError, NotFoundError
from taskload.models.project import Project, ProjectMember, Task
from taskload.models.team import Team
from taskload.models.user import User
from taskload.realtime.manager import notify_project
from taskload.schemas.project import MemberAdd, ProjectCreate, ProjectUpdate
from taskload.services.cache import cache
from taskload.services.notification import NotificationService
from taskload.services.permissions import can_edit_project

logger = structlog.get_logger()

REQUIRED_FIELDS = ("name", "status", "color", "budget", "tags", "custom_fields", "settings")


class ProjectService:
    """Project CRUD, membership and progress."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get(self, project_id: UUID, *, refresh: bool = False) -> Project:
        query = select(Project).where(Project.id == project_id)
        if refresh:
            query = query.execution_options(populate_existing=True)
        result = await self.db.execute(query)
        project = result.scalar_one_or_none()
        if project is None:
            raise NotFoundError("Project not found")
        return project

    async def get_accessible(self, project_id: UUID, user_id: UUID) -> Project:
        project = await self.get(project_id)
        if not project.has_access(user_id):
            raise ForbiddenError("You don't have permission to access this project")
        return project

    async def list_for_user(self, user_id: UUID) -> list[Project]:
        member_projects = select(ProjectMember.project_id).where(ProjectMember.user_id == user_id)
        result = await self.db.execute(
            select(Project)
            .where(or_(Project.owner_id == user_id, Project.id.in_(member_projects)))
            .order_by(Project.updated_at.desc())
        )
        return list(result.scalars().all())

    async def _check_team(self, team_id: UUID | None, user_id: UUID) -> None:
        if team_id is None:
            return
        team = await self.db.get(Team, team_id)
        if team is None:
            raise NotFoundError("Team not found")
        if not team.is_member(user_id):
            raise ForbiddenError("You are not a member of this team")

    async def create(self, data: ProjectCreate, owner: User) -> Project:
        await self._check_team(data.team_id, owner.id)

        project = Project(
            name=data.name,
            description=data.description,
            status=data.status,
            color=data.color,
            start_date=data.start_date,
            end_date=data.end_date,
            team_id=data.team_id,
            owner_id=owner.id,
            budget=data.budget.model_dump(),
            tags=data.tags,
            custom_fields=data.custom_fields,
            settings=data.settings.model_dump(),
        )
        project.members = [ProjectMember(user_id=owner.id, role="owner")]
        self.db.add(project)
        await self.db.flush()

        logger.info("Project created", project_id=str(project.id), owner_id=str(owner.id))
        return await self.get(project.id, refresh=True)

    async def update(self, project_id: UUID, data: ProjectUpdate, user: User) -> Project:
        project = await self.get(project_id)
        if not can_edit_project(project, user.id):
            raise ForbiddenError("You don't have permission to update this project")

        updates = data.model_dump(exclude_unset=True)
        start = updates.get("start_date", project.start_date)
        end = updates.get("end_date", project.end_date)
        if start and end and ensure_utc(end) < ensure_utc(start):
            raise BadRequestError("End date must be after start date")
        if "team_id" in updates and updates["team_id"] != project.team_id:
            await self._check_team(updates["team_id"], user.id)

        for field, value in updates.items():
            if value is None and field in REQUIRED_FIELDS:
                continue
            setattr(project, field, value)
        await self.db.flush()

        project = await self.get(project_id, refresh=True)
        logger.info("Project updated", project_id=str(project_id), fields=sorted(updates))
        notify_project(
            self.db,
            project_id,
            "projectUpdate",
            {"project_id": str(project_id), "updated_by": str(user.id), "changes": sorted(updates)},
        )
        return project

    async def delete(self, project_id: UUID, user: User) -> None:
        project = await self.get(project_id)
        if project.owner_id != user.id:
            raise ForbiddenError("Only the project owner can delete the project")

        # Tasks go first so their subtasks and comments cascade through the ORM
        tasks = await self.db.execute(select(Task).where(Task.project_id == project_id))
        for task in tasks.scalars():
            await self.db.delete(task)
        await self.db.delete(project)
        await self.db.flush()
        await cache.invalidate_tasks()

        logger.info("Project deleted", project_id=str(project_id))

    async def list_tasks(self, project_id: UUID, user_id: UUID) -> list[Task]:
        await self.get_accessible(project_id, user_id)
        result = await self.db.execute(
            select(Task)
            .where(Task.project_id == project_id)
            .order_by(Task.due_date.asc().nulls_last(), Task.created_at.desc())
        )
        return list(result.scalars().all())

    # ========== Membership ==========

    async def add_member(self, project_id: UUID, data: MemberAdd, user: User) -> Project:
        project = await self.get(project_id)
        if not can_edit_project(project, user.id):
            raise ForbiddenError("You don't have permission to manage project members")

        new_member = await self.db.get(User, data.user_id)
        if new_member is None:
            raise NotFoundError("User not found")
        if project.has_access(data.user_id):
            raise BadRequestError("User is already a member of this project")

        project.members.append(ProjectMember(user_id=data.user_id, role=data.role))
        await self.db.flush()

        await NotificationService(self.db).notify(
            data.user_id,
            "project",
            f"You were added to project: {project.name}",
            sender_id=user.id,
            related_project_id=project.id,
        )
        notify_project(
            self.db,
            project_id,
            "memberAdd",
            {"project_id": str(project_id), "user_id": str(data.user_id), "role": data.role},
        )
        logger.info("Project member added", project_id=str(project_id), user_id=str(data.user_id))
        return await self.get(project_id, refresh=True)

    async def remove_member(self, project_id: UUID, member_id: UUID, user: User) -> Project:
        project = await self.get(project_id)
        # Members may remove themselves
        if member_id != user.id and not can_edit_project(project, user.id):
            raise ForbiddenError("You don't have permission to manage project members")
        if member_id == project.owner_id:
            raise BadRequestError("Cannot remove the project owner")

        member = next((m for m in project.members if m.user_id == member_id), None)
        if member is None:
            raise NotFoundError("Member not found")
        project.members.remove(member)
        await self.db.flush()

        notify_project(
            self.db,
            project_id,
            "memberRemove",
            {"project_id": str(project_id), "user_id": str(member_id)},
        )
        logger.info("Project member removed", project_id=str(project_id), user_id=str(member_id))
        return await self.get(project_id, refresh=True)

    async def update_member_role(
        self, project_id: UUID, member_id: UUID, role: str, user: User
    ) -> Project:
        project = await self.get(project_id)
        if project.owner_id != user.id:
            raise ForbiddenError("Only the project owner can change member roles")
        if member_id == project.owner_id:
            raise BadRequestError("Cannot change the owner's role")

        member = next((m for m in project.members if m.user_id == member_id), None)
        if member is None:
            raise NotFoundError("Member not found")
        member.role = role
        await self.db.flush()
        return await self.get(project_id, refresh=True)

    # ========== Progress ==========

    async def recalculate_progress(self, project_id: UUID) -> int:
        """Set progress to the share of completed tasks (0-100)."""
        project = await self.db.get(Project, project_id)
        if project is None:
            return 0
        total, completed = (
            await self.db.execute(
                select(
                    func.count(Task.id),
                    func.count(Task.id).filter(Task.status == "completed"),
                ).where(Task.project_id == project_id)
            )
        ).one()
        project.progress = round(completed * 100 / total) if total else 0
        await self.db.flush()
        return project.progress
