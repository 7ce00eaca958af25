# routers/tasks.py - Task visibility, mutations, assignees, comments, archive
from datetime import datetime
from typing import Optional, List

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from archive import ArchiveService
from auth import get_current_user, UserContext
from database import get_db_session
from models import TaskStatus
from store import TaskStore
from task_service import TaskService
from task_visibility import TaskVisibilityService

router = APIRouter(prefix="/api/v1/tasks", tags=["Tasks"])


# ============================================================
# SCHEMAS
# ============================================================

class TaskCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=500)
    description: str = Field(..., min_length=1)
    priority: int = Field(default=5, ge=1, le=10)
    due_date: datetime
    assignee_ids: List[str] = Field(..., min_length=1, max_length=5)
    project_id: Optional[str] = None
    parent_task_id: Optional[str] = None
    tags: List[str] = Field(default_factory=list)


class TaskUpdate(BaseModel):
    title: Optional[str] = Field(None, min_length=1, max_length=500)
    description: Optional[str] = None
    priority: Optional[int] = Field(None, ge=1, le=10)
    due_date: Optional[datetime] = None


class StatusUpdate(BaseModel):
    status: TaskStatus


class AssigneeAdd(BaseModel):
    user_id: str = Field(..., min_length=1)


class CommentBody(BaseModel):
    content: str = Field(..., min_length=1, max_length=5000)


# ============================================================
# READS
# ============================================================

@router.get("/mine")
async def my_tasks(
    include_archived: bool = Query(default=False),
    db: AsyncSession = Depends(get_db_session),
    user: UserContext = Depends(get_current_user),
):
    return await TaskVisibilityService(TaskStore(db)).get_user_tasks(user.user_id, include_archived)


@router.get("/department")
async def department_tasks(
    db: AsyncSession = Depends(get_db_session),
    user: UserContext = Depends(get_current_user),
):
    return await TaskVisibilityService(TaskStore(db)).get_department_tasks_for_user(user)


@router.get("/dashboard")
async def dashboard_tasks(
    db: AsyncSession = Depends(get_db_session),
    user: UserContext = Depends(get_current_user),
):
    return await TaskVisibilityService(TaskStore(db)).get_dashboard_tasks(user)


@router.get("/parent-candidates")
async def parent_candidates(
    db: AsyncSession = Depends(get_db_session),
    user: UserContext = Depends(get_current_user),
):
    return await TaskVisibilityService(TaskStore(db)).get_available_parent_tasks(user.user_id)


@router.get("/{task_id}")
async def get_task(
    task_id: str,
    db: AsyncSession = Depends(get_db_session),
    user: UserContext = Depends(get_current_user),
):
    return await TaskVisibilityService(TaskStore(db)).get_task(task_id, user)


@router.get("/{task_id}/subtasks")
async def get_subtasks(
    task_id: str,
    db: AsyncSession = Depends(get_db_session),
    user: UserContext = Depends(get_current_user),
):
    return await TaskVisibilityService(TaskStore(db)).get_subtasks(task_id, user)


@router.get("/{task_id}/logs")
async def get_task_logs(
    task_id: str,
    db: AsyncSession = Depends(get_db_session),
    user: UserContext = Depends(get_current_user),
):
    return await TaskVisibilityService(TaskStore(db)).get_task_logs(task_id, user)


# ============================================================
# MUTATIONS
# ============================================================

@router.post("", status_code=201)
async def create_task(
    data: TaskCreate,
    db: AsyncSession = Depends(get_db_session),
    user: UserContext = Depends(get_current_user),
):
    return await TaskService(TaskStore(db)).create_task(user, **data.model_dump())


@router.patch("/{task_id}")
async def update_task(
    task_id: str,
    data: TaskUpdate,
    db: AsyncSession = Depends(get_db_session),
    user: UserContext = Depends(get_current_user),
):
    return await TaskService(TaskStore(db)).update_task(task_id, user, **data.model_dump(exclude_unset=True))


@router.post("/{task_id}/status")
async def update_status(
    task_id: str,
    data: StatusUpdate,
    db: AsyncSession = Depends(get_db_session),
    user: UserContext = Depends(get_current_user),
):
    return await TaskService(TaskStore(db)).update_status(task_id, data.status, user)


@router.post("/{task_id}/assignees", status_code=201)
async def add_assignee(
    task_id: str,
    data: AssigneeAdd,
    db: AsyncSession = Depends(get_db_session),
    user: UserContext = Depends(get_current_user),
):
    return await TaskService(TaskStore(db)).add_assignee(task_id, data.user_id, user)


@router.delete("/{task_id}/assignees/{assignee_id}")
async def remove_assignee(
    task_id: str,
    assignee_id: str,
    db: AsyncSession = Depends(get_db_session),
    user: UserContext = Depends(get_current_user),
):
    return await TaskService(TaskStore(db)).remove_assignee(task_id, assignee_id, user)


@router.post("/{task_id}/archive")
async def archive_task(
    task_id: str,
    db: AsyncSession = Depends(get_db_session),
    user: UserContext = Depends(get_current_user),
):
    return await ArchiveService(TaskStore(db)).archive_task(task_id, user)


# ============================================================
# COMMENTS
# ============================================================

@router.post("/{task_id}/comments", status_code=201)
async def add_comment(
    task_id: str,
    data: CommentBody,
    db: AsyncSession = Depends(get_db_session),
    user: UserContext = Depends(get_current_user),
):
    return await TaskService(TaskStore(db)).add_comment(task_id, data.content, user)


@router.patch("/comments/{comment_id}")
async def update_comment(
    comment_id: str,
    data: CommentBody,
    db: AsyncSession = Depends(get_db_session),
    user: UserContext = Depends(get_current_user),
):
    return await TaskService(TaskStore(db)).update_comment(comment_id, data.content, user)
