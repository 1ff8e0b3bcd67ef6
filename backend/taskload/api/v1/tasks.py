"""Tasks API endpoints."""

from datetime import datetime
from uuid import UUID

import structlog
from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from taskload.api.v1.auth import CurrentUser
from taskload.db.session import get_db_session
from taskload.models.project import TaskComment
from taskload.schemas.chat import ChatHistoryResponse, ChatMessageResponse, ChatRoomResponse, MessageCreate
from taskload.schemas.common import MessageResponse
from taskload.schemas.task import (
    CommentCreate,
    CommentResponse,
    SubtaskCreate,
    SubtaskUpdate,
    TaskCreate,
    TaskListResponse,
    TaskResponse,
    TaskStats,
    TaskStatusUpdate,
    TaskUpdate,
)
from taskload.services.chat import TaskChatService
from taskload.services.task import TaskService

router = APIRouter()
logger = structlog.get_logger()


@router.get("", response_model=TaskListResponse)
async def list_tasks(
    current_user: CurrentUser,
    db: AsyncSession = Depends(get_db_session),
    task_status: str | None = Query(None, alias="status"),
    priority: str | None = Query(None),
    project: UUID | None = Query(None),
    team: UUID | None = Query(None),
    assigned_to: str | None = Query(None),
    search: str | None = Query(None, max_length=200),
    due_date: datetime | None = Query(None),
    start_date: datetime | None = Query(None),
    end_date: datetime | None = Query(None),
    sort: str = Query("due_date"),
    order: str = Query("asc", pattern="^(asc|desc)$"),
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
) -> TaskListResponse:
    """List the user's tasks (created or assigned) with filters, sorting and paging."""
    return await TaskService(db).list_tasks(
        current_user,
        status=task_status,
        priority=priority,
        project=project,
        team=team,
        assigned_to=assigned_to,
        search=search,
        due_date=due_date,
        start_date=start_date,
        end_date=end_date,
        sort=sort,
        order=order,
        page=page,
        limit=limit,
    )


@router.post("", response_model=TaskResponse, status_code=status.HTTP_201_CREATED)
async def create_task(
    task_data: TaskCreate,
    current_user: CurrentUser,
    db: AsyncSession = Depends(get_db_session),
) -> TaskResponse:
    task = await TaskService(db).create(task_data, current_user)
    return TaskResponse.from_task(task)


# Fixed paths must be declared before /{task_id}


@router.get("/stats", response_model=TaskStats)
async def get_task_stats(
    current_user: CurrentUser,
    db: AsyncSession = Depends(get_db_session),
) -> TaskStats:
    return await TaskService(db).stats(current_user)


@router.get("/recent", response_model=list[TaskResponse])
async def get_recent_tasks(
    current_user: CurrentUser,
    db: AsyncSession = Depends(get_db_session),
    limit: int = Query(5, ge=1, le=100),
) -> list[TaskResponse]:
    tasks = await TaskService(db).recent(current_user, limit=limit)
    return [TaskResponse.from_task(t) for t in tasks]


@router.get("/upcoming", response_model=list[TaskResponse])
async def get_upcoming_tasks(
    current_user: CurrentUser,
    db: AsyncSession = Depends(get_db_session),
    days: int = Query(7, ge=1, le=365),
) -> list[TaskResponse]:
    """Open tasks due within the next ``days`` days, soonest first."""
    tasks = await TaskService(db).upcoming(current_user, days=days)
    return [TaskResponse.from_task(t) for t in tasks]


@router.get("/date-range", response_model=list[TaskResponse])
async def get_tasks_in_date_range(
    current_user: CurrentUser,
    db: AsyncSession = Depends(get_db_session),
    start_date: datetime | None = Query(None),
    end_date: datetime | None = Query(None),
) -> list[TaskResponse]:
    tasks = await TaskService(db).in_date_range(current_user, start_date, end_date)
    return [TaskResponse.from_task(t) for t in tasks]


@router.get("/{task_id}", response_model=TaskResponse)
async def get_task(
    task_id: UUID,
    current_user: CurrentUser,
    db: AsyncSession = Depends(get_db_session),
) -> TaskResponse:
    task = await TaskService(db).get_for_view(task_id, current_user)
    return TaskResponse.from_task(task)


@router.patch("/{task_id}", response_model=TaskResponse)
async def update_task(
    task_id: UUID,
    task_data: TaskUpdate,
    current_user: CurrentUser,
    db: AsyncSession = Depends(get_db_session),
) -> TaskResponse:
    task = await TaskService(db).update(task_id, task_data, current_user)
    return TaskResponse.from_task(task)


@router.patch("/{task_id}/status", response_model=TaskResponse)
async def update_task_status(
    task_id: UUID,
    status_data: TaskStatusUpdate,
    current_user: CurrentUser,
    db: AsyncSession = Depends(get_db_session),
) -> TaskResponse:
    task = await TaskService(db).update_status(task_id, status_data.status, current_user)
    return TaskResponse.from_task(task)


@router.delete("/{task_id}", response_model=MessageResponse)
async def delete_task(
    task_id: UUID,
    current_user: CurrentUser,
    db: AsyncSession = Depends(get_db_session),
) -> MessageResponse:
    await TaskService(db).delete(task_id, current_user)
    return MessageResponse(message="Task deleted successfully")


# ========== Subtasks ==========


@router.post(
    "/{task_id}/subtasks", response_model=TaskResponse, status_code=status.HTTP_201_CREATED
)
async def add_subtask(
    task_id: UUID,
    subtask_data: SubtaskCreate,
    current_user: CurrentUser,
    db: AsyncSession = Depends(get_db_session),
) -> TaskResponse:
    task = await TaskService(db).add_subtask(task_id, subtask_data.title, current_user)
    return TaskResponse.from_task(task)


@router.patch("/{task_id}/subtasks/{subtask_id}", response_model=TaskResponse)
async def update_subtask(
    task_id: UUID,
    subtask_id: UUID,
    subtask_data: SubtaskUpdate,
    current_user: CurrentUser,
    db: AsyncSession = Depends(get_db_session),
) -> TaskResponse:
    """Rename or (un)complete a subtask; the task status follows subtask progress."""
    task = await TaskService(db).update_subtask(task_id, subtask_id, subtask_data, current_user)
    return TaskResponse.from_task(task)


@router.delete("/{task_id}/subtasks/{subtask_id}", response_model=TaskResponse)
async def delete_subtask(
    task_id: UUID,
    subtask_id: UUID,
    current_user: CurrentUser,
    db: AsyncSession = Depends(get_db_session),
) -> TaskResponse:
    task = await TaskService(db).delete_subtask(task_id, subtask_id, current_user)
    return TaskResponse.from_task(task)


# ========== Comments ==========


@router.get("/{task_id}/comments", response_model=list[CommentResponse])
async def list_task_comments(
    task_id: UUID,
    current_user: CurrentUser,
    db: AsyncSession = Depends(get_db_session),
) -> list[TaskComment]:
    return await TaskService(db).list_comments(task_id, current_user)


@router.post(
    "/{task_id}/comments", response_model=CommentResponse, status_code=status.HTTP_201_CREATED
)
async def create_task_comment(
    task_id: UUID,
    comment_data: CommentCreate,
    current_user: CurrentUser,
    db: AsyncSession = Depends(get_db_session),
) -> TaskComment:
    return await TaskService(db).add_comment(task_id, comment_data.content, current_user)


@router.delete("/{task_id}/comments/{comment_id}", response_model=MessageResponse)
async def delete_task_comment(
    task_id: UUID,
    comment_id: UUID,
    current_user: CurrentUser,
    db: AsyncSession = Depends(get_db_session),
) -> MessageResponse:
    await TaskService(db).delete_comment(task_id, comment_id, current_user)
    return MessageResponse(message="Comment deleted successfully")


# ========== Task chat ==========


@router.get("/{task_id}/chat", response_model=ChatHistoryResponse)
async def get_task_chat(
    task_id: UUID,
    current_user: CurrentUser,
    db: AsyncSession = Depends(get_db_session),
    limit: int = Query(50, ge=1, le=200),
    skip: int = Query(0, ge=0),
) -> ChatHistoryResponse:
    """The task's chat room and its messages, creating the room on first use."""
    task = await TaskService(db).get_for_view(task_id, current_user)
    room, messages = await TaskChatService(db).history(task, limit=limit, skip=skip)
    return ChatHistoryResponse(
        room=ChatRoomResponse.model_validate(room),
        messages=[ChatMessageResponse.model_validate(m) for m in messages],
    )


@router.post(
    "/{task_id}/chat", response_model=ChatMessageResponse, status_code=status.HTTP_201_CREATED
)
async def send_task_chat_message(
    task_id: UUID,
    message_data: MessageCreate,
    current_user: CurrentUser,
    db: AsyncSession = Depends(get_db_session),
) -> ChatMessageResponse:
    task = await TaskService(db).get_for_view(task_id, current_user)
    message = await TaskChatService(db).send_message(task, current_user, message_data.content)
    return ChatMessageResponse.model_validate(message)


@router.patch("/{task_id}/chat/read", response_model=MessageResponse)
async def mark_task_chat_read(
    task_id: UUID,
    current_user: CurrentUser,
    db: AsyncSession = Depends(get_db_session),
) -> MessageResponse:
    task = await TaskService(db).get_for_view(task_id, current_user)
    updated = await TaskChatService(db).mark_read(task, current_user.id)
    return MessageResponse(message=f"{updated} messages marked as read")
