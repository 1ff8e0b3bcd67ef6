"""Task and project permission rules."""

from uuid import UUID

from taskload.models.project import Project, Task

# Project roles allowed to manage every task in a project
TASK_MANAGER_ROLES = ("owner", "admin", "supervisor")
TASK_DELETE_ROLES = ("owner", "admin")
PROJECT_EDIT_ROLES = ("owner", "admin")


def _is_involved(task: Task, user_id: UUID) -> bool:
    return user_id in (task.created_by_id, task.assigned_to_id)


def can_view_task(task: Task, project: Project | None, user_id: UUID) -> bool:
    if _is_involved(task, user_id):
        return True
    return project is not None and project.has_access(user_id)


def can_modify_task(task: Task, project: Project | None, user_id: UUID) -> bool:
    if _is_involved(task, user_id):
        return True
    return project is not None and project.has_role(user_id, *TASK_MANAGER_ROLES)


def can_delete_task(task: Task, project: Project | None, user_id: UUID) -> bool:
    if task.created_by_id == user_id:
        return True
    return project is not None and project.has_role(user_id, *TASK_DELETE_ROLES)


def can_edit_project(project: Project, user_id: UUID) -> bool:
    return project.has_role(user_id, *PROJECT_EDIT_ROLES)
