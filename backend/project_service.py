# project_service.py - Project creation and cross-department sharing

import logging
from typing import Dict, Optional

from authorization import can_edit_project, policy_for
from database import unit_of_work
from errors import AuthorizationError, NotFoundError, ValidationError
from hierarchy import HierarchyResolver
from models import Project, ProjectStatus
from project_visibility import get_visible_project, get_visible_projects_for_user, project_record
from store import TaskStore

logger = logging.getLogger("taskmgr.projects")


class ProjectService:
    def __init__(self, store: TaskStore, resolver: Optional[HierarchyResolver] = None):
        self.store = store
        self.resolver = resolver or HierarchyResolver(store)

    async def list_visible(self, user, is_archived: Optional[bool] = False):
        return await get_visible_projects_for_user(
            self.store, user, self.resolver.get_subordinate_departments, is_archived=is_archived,
        )

    async def create_project(
        self,
        user,
        *,
        name: str,
        description: Optional[str] = None,
        priority: int = 5,
    ) -> Dict:
        name = (name or "").strip()
        if not name:
            raise ValidationError("Project name is required")
        if not 1 <= int(priority) <= 10:
            raise ValidationError("Priority must be between 1 and 10")
        if await self.store.find_project_by_name(name) is not None:
            raise ValidationError(
                f'A project named "{name}" already exists. Please choose a different name.',
                code="duplicate_project_name",
            )

        async with unit_of_work(self.store.session):
            project = await self.store.add_project(Project(
                name=name,
                description=description,
                priority=int(priority),
                status=ProjectStatus.ACTIVE,
                department_id=user.department_id,
                creator_id=user.user_id,
            ))

        logger.info(f"Project {project.id} '{name}' created by {user.user_id}")
        return project_record(project, True)

    async def get_project(self, project_id: str, user) -> Dict:
        project = await self.store.find_project_by_id(project_id)
        if project is None:
            raise NotFoundError("Project not found")
        record = await get_visible_project(self.store, project, user, self.resolver.get_subordinate_departments)
        if record is None:
            raise AuthorizationError("Unauthorized: You do not have access to this project")
        return record

    async def grant_department_access(self, project_id: str, department_id: str, user) -> Dict:
        """Share a project with another department; granting twice is a no-op"""
        project = await self.store.find_project_by_id(project_id)
        if project is None:
            raise NotFoundError("Project not found")

        policy = policy_for(user.role)
        if not policy.sees_all_projects:
            hierarchy = await self.resolver.get_subordinate_departments(user.department_id)
            if not policy.can_manage_collaborators or not can_edit_project(project, user, hierarchy):
                raise AuthorizationError("Unauthorized: Only managers of the owning department can share this project")

        if await self.store.find_department_by_id(department_id) is None:
            raise NotFoundError("Department not found")

        existing = await self.store.find_project_department_access(project_id, department_id)
        if existing:
            grant = existing[0]
            created = False
        else:
            async with unit_of_work(self.store.session):
                grant = await self.store.create_project_department_access(project_id, department_id)
            created = True
            logger.info(f"Project {project_id} shared with department {department_id} by {user.user_id}")

        return {
            "project_id": grant.project_id,
            "department_id": grant.department_id,
            "granted_at": grant.granted_at,
            "created": created,
        }
