# routers/projects.py - Project visibility, creation, sharing and collaborators
from typing import Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from auth import get_current_user, UserContext
from collaboration import CollaborationService
from database import get_db_session
from project_service import ProjectService
from store import TaskStore

router = APIRouter(prefix="/api/v1/projects", tags=["Projects"])


class ProjectCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = None
    priority: int = Field(default=5, ge=1, le=10)


class DepartmentAccessGrant(BaseModel):
    department_id: str = Field(..., min_length=1)


@router.get("")
async def list_projects(
    is_archived: bool = Query(default=False),
    db: AsyncSession = Depends(get_db_session),
    user: UserContext = Depends(get_current_user),
):
    return await ProjectService(TaskStore(db)).list_visible(user, is_archived=is_archived)


@router.post("", status_code=201)
async def create_project(
    data: ProjectCreate,
    db: AsyncSession = Depends(get_db_session),
    user: UserContext = Depends(get_current_user),
):
    return await ProjectService(TaskStore(db)).create_project(user, **data.model_dump())


@router.get("/{project_id}")
async def get_project(
    project_id: str,
    db: AsyncSession = Depends(get_db_session),
    user: UserContext = Depends(get_current_user),
):
    return await ProjectService(TaskStore(db)).get_project(project_id, user)


@router.post("/{project_id}/department-access", status_code=201)
async def grant_department_access(
    project_id: str,
    data: DepartmentAccessGrant,
    db: AsyncSession = Depends(get_db_session),
    user: UserContext = Depends(get_current_user),
):
    return await ProjectService(TaskStore(db)).grant_department_access(project_id, data.department_id, user)


# ============================================================
# COLLABORATORS
# ============================================================

@router.get("/{project_id}/collaborators")
async def list_collaborators(
    project_id: str,
    db: AsyncSession = Depends(get_db_session),
    user: UserContext = Depends(get_current_user),
):
    return await CollaborationService(TaskStore(db)).get_project_collaborators(project_id, user)


@router.delete("/{project_id}/collaborators/{user_id}")
async def remove_collaborator(
    project_id: str,
    user_id: str,
    db: AsyncSession = Depends(get_db_session),
    user: UserContext = Depends(get_current_user),
):
    return await CollaborationService(TaskStore(db)).remove_project_collaborator(project_id, user_id, user)
