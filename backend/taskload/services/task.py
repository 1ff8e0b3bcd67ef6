"""Task service: CRUD, listing, stats, subtasks and comments."""

import hashlib
from datetime import datetime, timedelta
from typing import Any
from uuid import UUID

import orjson
import structlog
from sqlalchemy import case, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from taskload.db.base import utcnow
from taskload.errors import BadRequestError, ForbiddenError, NotFoundError
from taskload.models.project import TASK_STATUSES, Project, Subtask, Task, TaskComment
from taskload.models.user import User
from taskload.realtime.manager import notify_task, notify_user
from taskload.schemas.common import Pagination
from taskload.schemas.task import (
    CommentResponse,
    SubtaskUpdate,
    TaskCreate,
    TaskListResponse,
    TaskResponse,
    TaskStats,
    TaskUpdate,
)
from taskload.services.cache import cache
from taskload.services.chat import TaskChatService
from taskload.services.notification import NotificationService
from taskload.services.permissions import can_delete_task, can_modify_task, can_view_task
from taskload.services.project import ProjectService

logger = structlog.get_logger()

PRIORITY_RANK = {"low": 0, "medium": 1, "high": 2, "urgent": 3}

SORT_COLUMNS = {
    "due_date": Task.due_date,
    "dueDate": Task.due_date,
    "start_date": Task.start_date,
    "startDate": Task.start_date,
    "status": Task.status,
    "title": Task.title,
    "created_at": Task.created_at,
    "createdAt": Task.created_at,
    "updated_at": Task.updated_at,
    "updatedAt": Task.updated_at,
}

MAX_PAGE_SIZE = 100


def _day_bounds(day: datetime) -> tuple[datetime, datetime]:
    start = day.replace(hour=0, minute=0, second=0, microsecond=0)
    return start, start + timedelta(days=1)


class TaskService:
    """Task operations scoped to the acting user."""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.projects = ProjectService(db)
        self.notifications = NotificationService(db)

    # ========== Loading ==========

    async def get(self, task_id: UUID, *, refresh: bool = False) -> Task:
        query = select(Task).where(Task.id == task_id)
        if refresh:
            query = query.execution_options(populate_existing=True)
        task = (await self.db.execute(query)).scalar_one_or_none()
        if task is None:
            raise NotFoundError("Task not found")
        return task

    async def _project(self, task: Task) -> Project | None:
        return await self.db.get(Project, task.project_id)

    async def get_for_view(self, task_id: UUID, user: User) -> Task:
        task = await self.get(task_id)
        if not can_view_task(task, await self._project(task), user.id):
            raise ForbiddenError("You don't have permission to view this task")
        return task

    async def get_for_modify(self, task_id: UUID, user: User) -> Task:
        task = await self.get(task_id)
        if not can_modify_task(task, await self._project(task), user.id):
            raise ForbiddenError("You don't have permission to update this task")
        return task

    def _scope(self, user_id: UUID):
        return or_(Task.created_by_id == user_id, Task.assigned_to_id == user_id)

    # ========== Listing ==========

    async def list_tasks(
        self,
        user: User,
        *,
        status: str | None = None,
        priority: str | None = None,
        project: UUID | None = None,
        team: UUID | None = None,
        assigned_to: str | None = None,
        search: str | None = None,
        due_date: datetime | None = None,
        start_date: datetime | None = None,
        end_date: datetime | None = None,
        sort: str = "due_date",
        order: str = "asc",
        page: int = 1,
        limit: int = 10,
    ) -> TaskListResponse:
        page = max(page, 1)
        limit = min(max(limit, 1), MAX_PAGE_SIZE)
        params = {
            "status": status, "priority": priority, "project": project, "team": team,
            "assigned_to": assigned_to, "search": search, "due_date": due_date,
            "start_date": start_date, "end_date": end_date, "sort": sort, "order": order,
            "page": page, "limit": limit,
        }
        digest = hashlib.sha1(orjson.dumps(params, default=str, option=orjson.OPT_SORT_KEYS)).hexdigest()
        cache_key = f"{cache.PREFIX_TASKS}{user.id}:{digest}"
        cached = await cache.get_json(cache_key)
        if cached is not None:
            return TaskListResponse.model_validate(cached)

        conditions: list[Any] = [self._scope(user.id)]
        if status:
            conditions.append(Task.status == status)
        if priority:
            conditions.append(Task.priority == priority)
        if project:
            conditions.append(Task.project_id == project)
        if team:
            conditions.append(Task.project_id.in_(select(Project.id).where(Project.team_id == team)))
        if assigned_to == "me":
            conditions.append(Task.assigned_to_id == user.id)
        elif assigned_to:
            try:
                conditions.append(Task.assigned_to_id == UUID(assigned_to))
            except ValueError:
                raise BadRequestError("Invalid assigned_to value")
        if search:
            pattern = f"%{search}%"
            conditions.append(or_(Task.title.ilike(pattern), Task.description.ilike(pattern)))
        if due_date:
            day_start, day_end = _day_bounds(due_date)
            conditions.append(Task.due_date >= day_start)
            conditions.append(Task.due_date < day_end)
        if start_date:
            conditions.append(Task.due_date >= start_date)
        if end_date:
            conditions.append(Task.due_date <= end_date)

        total = (await self.db.execute(select(func.count(Task.id)).where(*conditions))).scalar() or 0

        if sort == "priority":
            column = case(PRIORITY_RANK, value=Task.priority, else_=-1)
        else:
            column = SORT_COLUMNS.get(sort, Task.due_date)
        ordering = column.desc() if order.lower() == "desc" else column.asc()

        result = await self.db.execute(
            select(Task)
            .where(*conditions)
            .order_by(ordering.nulls_last(), Task.created_at.desc())
            .offset((page - 1) * limit)
            .limit(limit)
        )
        response = TaskListResponse(
            tasks=[TaskResponse.from_task(t) for t in result.scalars().all()],
            pagination=Pagination.build(total, page, limit),
        )
        await cache.set_json(cache_key, response.model_dump(mode="json"))
        return response

    async def stats(self, user: User) -> TaskStats:
        cache_key = f"{cache.PREFIX_TASK_STATS}{user.id}"
        cached = await cache.get_json(cache_key)
        if cached is not None:
            return TaskStats.model_validate(cached)

        now = utcnow()
        today_start, today_end = _day_bounds(now)
        open_task = Task.status != "completed"

        row = (
            await self.db.execute(
                select(
                    func.count(Task.id),
                    func.count(Task.id).filter(Task.status == "completed"),
                    func.count(Task.id).filter(Task.status == "in_progress"),
                    func.count(Task.id).filter(Task.status == "todo"),
                    func.count(Task.id).filter(Task.due_date < now, open_task),
                    func.count(Task.id).filter(
                        Task.due_date >= today_start, Task.due_date < today_end, open_task
                    ),
                    func.count(Task.id).filter(
                        Task.due_date >= now, Task.due_date < now + timedelta(days=7), open_task
                    ),
                ).where(self._scope(user.id))
            )
        ).one()
        total, completed, in_progress, todo, overdue, due_today, due_this_week = row

        priority_rows = await self.db.execute(
            select(Task.priority, func.count(Task.id))
            .where(self._scope(user.id))
            .group_by(Task.priority)
        )
        by_priority = {p: 0 for p in PRIORITY_RANK}
        by_priority.update({p: c for p, c in priority_rows.all()})

        stats = TaskStats(
            total=total,
            completed=completed,
            in_progress=in_progress,
            todo=todo,
            overdue=overdue,
            due_today=due_today,
            due_this_week=due_this_week,
            by_priority=by_priority,
            completion_rate=round(completed * 100 / total, 2) if total else 0.0,
        )
        await cache.set_json(cache_key, stats.model_dump(mode="json"))
        return stats

    async def recent(self, user: User, limit: int = 5) -> list[Task]:
        result = await self.db.execute(
            select(Task)
            .where(self._scope(user.id))
            .order_by(Task.updated_at.desc())
            .limit(min(max(limit, 1), MAX_PAGE_SIZE))
        )
        return list(result.scalars().all())

    async def upcoming(self, user: User, days: int = 7) -> list[Task]:
        now = utcnow()
        result = await self.db.execute(
            select(Task)
            .where(
                self._scope(user.id),
                Task.status != "completed",
                Task.due_date >= now,
                Task.due_date <= now + timedelta(days=days),
            )
            .order_by(Task.due_date.asc())
        )
        return list(result.scalars().all())

    async def in_date_range(
        self, user: User, start_date: datetime | None, end_date: datetime | None
    ) -> list[Task]:
        if start_date is None or end_date is None:
            raise BadRequestError("Start date and end date are required")
        if end_date < start_date:
            raise BadRequestError("End date must be after start date")
        result = await self.db.execute(
            select(Task)
            .where(
                self._scope(user.id),
                or_(
                    Task.due_date.between(start_date, end_date),
                    Task.start_date.between(start_date, end_date),
                ),
            )
            .order_by(Task.due_date.asc().nulls_last())
        )
        return list(result.scalars().all())

    # ========== Mutations ==========

    async def _check_assignee(self, user_id: UUID) -> None:
        if await self.db.get(User, user_id) is None:
            raise NotFoundError("Assignee not found")

    def _apply_status(self, task: Task, status: str) -> None:
        task.status = status
        task.completed_at = utcnow() if status == "completed" else None

    async def _after_write(self, task: Task) -> None:
        await self.projects.recalculate_progress(task.project_id)
        await cache.invalidate_tasks()

    async def _announce_assignment(self, task: Task, actor: User) -> None:
        if not task.assigned_to_id or task.assigned_to_id == actor.id:
            return
        await self.notifications.notify(
            task.assigned_to_id,
            "task",
            f"You were assigned to task: {task.title}",
            sender_id=actor.id,
            related_project_id=task.project_id,
            related_task_id=task.id,
        )
        notify_user(
            self.db,
            task.assigned_to_id,
            "task:assigned",
            {"task_id": str(task.id), "title": task.title, "assigned_by": str(actor.id)},
        )

    async def create(self, data: TaskCreate, user: User) -> Task:
        project = await self.projects.get(data.project_id)
        if not project.has_access(user.id):
            raise ForbiddenError("You don't have permission to create tasks in this project")

        assignee_id = data.assigned_to or user.id
        if assignee_id != user.id:
            await self._check_assignee(assignee_id)

        task = Task(
            title=data.title,
            description=data.description,
            priority=data.priority,
            project_id=project.id,
            created_by_id=user.id,
            assigned_to_id=assignee_id,
            start_date=data.start_date,
            due_date=data.due_date,
            tags=data.tags,
            estimated_hours=data.estimated_hours,
            actual_hours=data.actual_hours,
            dependencies=[str(d) for d in data.dependencies],
            custom_fields=data.custom_fields,
        )
        self._apply_status(task, data.status)
        task.subtasks = [Subtask(title=title, position=i) for i, title in enumerate(data.subtasks)]
        task.comments = []
        self.db.add(task)
        await self.db.flush()

        await TaskChatService(self.db).create_or_get_room(task)
        await self.notifications.create_task_notification(task, project)
        if assignee_id != user.id:
            notify_user(
                self.db,
                assignee_id,
                "task:assigned",
                {"task_id": str(task.id), "title": task.title, "assigned_by": str(user.id)},
            )
        await self._after_write(task)

        logger.info("Task created", task_id=str(task.id), project_id=str(project.id))
        return await self.get(task.id, refresh=True)

    async def update(self, task_id: UUID, data: TaskUpdate, user: User) -> Task:
        task = await self.get_for_modify(task_id, user)
        updates = data.model_dump(exclude_unset=True)

        previous_assignee = task.assigned_to_id
        if "assigned_to" in updates:
            assignee = updates.pop("assigned_to")
            if assignee is not None and assignee != task.assigned_to_id:
                await self._check_assignee(assignee)
            task.assigned_to_id = assignee
        if "status" in updates:
            status = updates.pop("status")
            if status is not None and status != task.status:
                self._apply_status(task, status)
        if "dependencies" in updates:
            deps = updates.pop("dependencies")
            task.dependencies = [str(d) for d in deps or []]
        for field, value in updates.items():
            if value is None and field in ("title", "priority", "tags", "custom_fields"):
                continue
            setattr(task, field, value)
        await self.db.flush()

        if task.assigned_to_id != previous_assignee:
            if task.assigned_to_id and task.chat_room_id:
                task_chat = TaskChatService(self.db)
                room = await task_chat.create_or_get_room(task)
                await task_chat.chat.add_participant(room, task.assigned_to_id)
            await self._announce_assignment(task, user)
        await self._after_write(task)

        logger.info("Task updated", task_id=str(task_id), fields=sorted(data.model_fields_set))
        return await self.get(task_id, refresh=True)

    async def update_status(self, task_id: UUID, status: str, user: User) -> Task:
        if status not in TASK_STATUSES:
            raise BadRequestError("Invalid status value")
        task = await self.get_for_modify(task_id, user)
        self._apply_status(task, status)
        await self.db.flush()
        await self._after_write(task)

        notify_task(
            self.db, task.id, "task:statusChanged", {"task_id": str(task.id), "status": status}
        )
        logger.info("Task status changed", task_id=str(task_id), status=status)
        return await self.get(task_id, refresh=True)

    async def delete(self, task_id: UUID, user: User) -> None:
        task = await self.get(task_id)
        if not can_delete_task(task, await self._project(task), user.id):
            raise ForbiddenError("You don't have permission to delete this task")

        project_id = task.project_id
        await self.db.delete(task)
        await self.db.flush()
        await self.projects.recalculate_progress(project_id)
        await cache.invalidate_tasks()

        logger.info("Task deleted", task_id=str(task_id))

    # ========== Subtasks ==========

    def _sync_status_with_subtasks(self, task: Task) -> None:
        """All subtasks done completes the task; any progress moves it to in_progress."""
        progress = task.subtask_progress
        if progress == 100:
            if task.status != "completed":
                self._apply_status(task, "completed")
        elif progress > 0 and task.status != "in_progress":
            self._apply_status(task, "in_progress")

    async def add_subtask(self, task_id: UUID, title: str, user: User) -> Task:
        task = await self.get_for_modify(task_id, user)
        task.subtasks.append(Subtask(title=title, position=len(task.subtasks)))
        # A new open item means the task is no longer complete
        if task.status == "completed":
            self._apply_status(task, "in_progress")
        await self.db.flush()
        await self._after_write(task)
        return await self.get(task_id, refresh=True)

    async def update_subtask(
        self, task_id: UUID, subtask_id: UUID, data: SubtaskUpdate, user: User
    ) -> Task:
        task = await self.get_for_modify(task_id, user)
        subtask = next((s for s in task.subtasks if s.id == subtask_id), None)
        if subtask is None:
            raise NotFoundError("Subtask not found")

        if data.title is not None:
            subtask.title = data.title
        if data.completed is not None:
            subtask.completed = data.completed
            self._sync_status_with_subtasks(task)
        await self.db.flush()
        await self._after_write(task)
        return await self.get(task_id, refresh=True)

    async def delete_subtask(self, task_id: UUID, subtask_id: UUID, user: User) -> Task:
        task = await self.get_for_modify(task_id, user)
        subtask = next((s for s in task.subtasks if s.id == subtask_id), None)
        if subtask is None:
            raise NotFoundError("Subtask not found")
        task.subtasks.remove(subtask)
        if task.subtasks:
            self._sync_status_with_subtasks(task)
        await self.db.flush()
        await self._after_write(task)
        return await self.get(task_id, refresh=True)

    # ========== Comments ==========

    async def list_comments(self, task_id: UUID, user: User) -> list[TaskComment]:
        task = await self.get_for_view(task_id, user)
        return list(task.comments)

    async def add_comment(self, task_id: UUID, content: str, user: User) -> TaskComment:
        task = await self.get_for_view(task_id, user)
        project = await self._project(task)
        if project is not None and not project.settings.get("allow_comments", True):
            raise ForbiddenError("Comments are disabled for this project")

        comment = TaskComment(task_id=task.id, user_id=user.id, content=content)
        self.db.add(comment)
        await self.db.flush()
        comment = (
            await self.db.execute(
                select(TaskComment)
                .where(TaskComment.id == comment.id)
                .execution_options(populate_existing=True)
            )
        ).scalar_one()

        recipients = [uid for uid in (task.created_by_id, task.assigned_to_id) if uid]
        await self.notifications.notify_many(
            recipients,
            "mention" if f"@{user.username}" in content else "task",
            f"{user.username} commented on task: {task.title}",
            sender_id=user.id,
            related_project_id=task.project_id,
            related_task_id=task.id,
        )
        notify_task(
            self.db,
            task.id,
            "newComment",
            CommentResponse.model_validate(comment).model_dump(mode="json"),
        )
        logger.info("Comment added", task_id=str(task_id), comment_id=str(comment.id))
        return comment

    async def delete_comment(self, task_id: UUID, comment_id: UUID, user: User) -> None:
        comment = await self.db.get(TaskComment, comment_id)
        if comment is None or comment.task_id != task_id:
            raise NotFoundError("Comment not found")
        if comment.user_id != user.id:
            raise ForbiddenError("You don't have permission to delete this comment")
        await self.db.delete(comment)
        await self.db.flush()
        logger.info("Comment deleted", task_id=str(task_id), comment_id=str(comment_id))
