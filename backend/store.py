# store.py - Relational store access for the task manager core
# Every query the services need lives here so they never build SQL themselves.
# Methods stage writes (add + flush); committing is the caller's unit of work.

from typing import Iterable, List, Optional, Sequence, Tuple

from sqlalchemy import select, update, delete, func, or_, and_
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from models import (
    Department, UserProfile, Project, ProjectDepartmentAccess, ProjectCollaborator,
    Task, TaskAssignment, Tag, TaskTag, Comment, TaskLog, LogAction, utcnow,
)

_UNSET = object()


def _task_load_options():
    return (
        selectinload(Task.department),
        selectinload(Task.project),
        selectinload(Task.assignments).selectinload(TaskAssignment.user).selectinload(UserProfile.department),
        selectinload(Task.tags).selectinload(TaskTag.tag),
        selectinload(Task.comments).selectinload(Comment.author),
    )


class TaskStore:
    """Async repository over one request-scoped session"""

    def __init__(self, session: AsyncSession):
        self.session = session

    # ============================================================
    # DEPARTMENTS
    # ============================================================

    async def find_department_by_id(self, department_id: str) -> Optional[Department]:
        return await self.session.get(Department, department_id)

    async def find_departments_by_parent(self, parent_id: str) -> List[Department]:
        result = await self.session.execute(
            select(Department).where(Department.parent_id == parent_id).order_by(Department.name)
        )
        return list(result.scalars().all())

    async def find_all_departments(self) -> List[Department]:
        result = await self.session.execute(select(Department).order_by(Department.name))
        return list(result.scalars().all())

    # ============================================================
    # USER PROFILES
    # ============================================================

    async def find_user_profile(self, user_id: str) -> Optional[UserProfile]:
        if not user_id:
            return None
        result = await self.session.execute(
            select(UserProfile)
            .where(UserProfile.id == user_id)
            .options(selectinload(UserProfile.department))
        )
        return result.scalar_one_or_none()

    async def find_user_profiles(self, user_ids: Iterable[str]) -> List[UserProfile]:
        ids = list(user_ids)
        if not ids:
            return []
        result = await self.session.execute(
            select(UserProfile)
            .where(UserProfile.id.in_(ids))
            .options(selectinload(UserProfile.department))
        )
        return list(result.scalars().all())

    # ============================================================
    # TASKS
    # ============================================================

    async def find_task_by_id(self, task_id: str, for_update: bool = False) -> Optional[Task]:
        stmt = (
            select(Task)
            .where(Task.id == task_id)
            .options(*_task_load_options())
            .execution_options(populate_existing=True)
        )
        if for_update:
            stmt = stmt.with_for_update()
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def find_tasks_by_filter(
        self,
        *,
        department_ids: Optional[Iterable[str]] = None,
        assigned_in_departments: Optional[Iterable[str]] = None,
        assignee_id: Optional[str] = None,
        project_id: Optional[str] = None,
        parent_task_id=_UNSET,
        top_level_only: bool = False,
        is_archived: Optional[bool] = False,
        for_update: bool = False,
    ) -> List[Task]:
        """Tasks ordered by due date ascending.

        department_ids and assigned_in_departments are OR'd together when both
        are given; every other filter is AND'd. is_archived=None means either.
        """
        stmt = select(Task)

        scope = []
        if department_ids is not None:
            scope.append(Task.department_id.in_(list(department_ids)))
        if assigned_in_departments is not None:
            assigned = (
                select(TaskAssignment.task_id)
                .join(UserProfile, UserProfile.id == TaskAssignment.user_id)
                .where(
                    UserProfile.department_id.in_(list(assigned_in_departments)),
                    UserProfile.is_active.is_(True),
                )
            )
            scope.append(Task.id.in_(assigned))
        if scope:
            stmt = stmt.where(or_(*scope))

        if assignee_id is not None:
            stmt = stmt.where(
                Task.id.in_(select(TaskAssignment.task_id).where(TaskAssignment.user_id == assignee_id))
            )
        if project_id is not None:
            stmt = stmt.where(Task.project_id == project_id)
        if parent_task_id is not _UNSET:
            stmt = stmt.where(Task.parent_task_id == parent_task_id)
        if top_level_only:
            stmt = stmt.where(Task.parent_task_id.is_(None))
        if is_archived is not None:
            stmt = stmt.where(Task.is_archived.is_(is_archived))

        stmt = (
            stmt.options(*_task_load_options())
            .order_by(Task.due_date.asc(), Task.created_at.asc())
            .execution_options(populate_existing=True)
        )
        if for_update:
            stmt = stmt.with_for_update()
        result = await self.session.execute(stmt)
        return list(result.scalars().unique().all())

    async def find_subtask_ids(self, parent_ids: Sequence[str], for_update: bool = False) -> List[str]:
        if not parent_ids:
            return []
        stmt = select(Task.id).where(Task.parent_task_id.in_(list(parent_ids)))
        if for_update:
            stmt = stmt.with_for_update()
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def add_task(self, task: Task) -> Task:
        self.session.add(task)
        await self.session.flush()
        return task

    async def update_task_archive_state(self, task_ids: Sequence[str], is_archived: bool) -> int:
        if not task_ids:
            return 0
        result = await self.session.execute(
            update(Task)
            .where(Task.id.in_(list(task_ids)))
            .values(is_archived=is_archived, updated_at=utcnow())
            .execution_options(synchronize_session=False)
        )
        return result.rowcount

    # ============================================================
    # ASSIGNMENTS
    # ============================================================

    async def create_task_assignment(self, task_id: str, user_id: str, assigned_by_id: str) -> TaskAssignment:
        assignment = TaskAssignment(task_id=task_id, user_id=user_id, assigned_by_id=assigned_by_id)
        self.session.add(assignment)
        await self.session.flush()
        return assignment

    async def delete_task_assignment(self, task_id: str, user_id: str) -> int:
        result = await self.session.execute(
            delete(TaskAssignment)
            .where(TaskAssignment.task_id == task_id, TaskAssignment.user_id == user_id)
            .execution_options(synchronize_session="fetch")
        )
        return result.rowcount

    # ============================================================
    # PROJECTS
    # ============================================================

    async def find_project_by_id(self, project_id: str) -> Optional[Project]:
        return await self.session.get(Project, project_id)

    async def find_project_by_name(self, name: str) -> Optional[Project]:
        result = await self.session.execute(select(Project).where(Project.name == name))
        return result.scalar_one_or_none()

    async def find_projects_by_filter(
        self,
        *,
        department_ids: Optional[Iterable[str]] = None,
        is_archived: Optional[bool] = False,
    ) -> List[Project]:
        """Projects owned by, or granted to, any of department_ids (all projects when None)"""
        stmt = select(Project)
        if department_ids is not None:
            ids = list(department_ids)
            granted = select(ProjectDepartmentAccess.project_id).where(
                ProjectDepartmentAccess.department_id.in_(ids)
            )
            stmt = stmt.where(or_(Project.department_id.in_(ids), Project.id.in_(granted)))
        if is_archived is not None:
            stmt = stmt.where(Project.is_archived.is_(is_archived))
        stmt = stmt.order_by(Project.priority.desc(), Project.name.asc())
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def add_project(self, project: Project) -> Project:
        self.session.add(project)
        await self.session.flush()
        return project

    async def find_project_department_access(
        self, project_id: str, department_id: Optional[str] = None
    ) -> List[ProjectDepartmentAccess]:
        stmt = select(ProjectDepartmentAccess).where(ProjectDepartmentAccess.project_id == project_id)
        if department_id is not None:
            stmt = stmt.where(ProjectDepartmentAccess.department_id == department_id)
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def create_project_department_access(self, project_id: str, department_id: str) -> ProjectDepartmentAccess:
        grant = ProjectDepartmentAccess(project_id=project_id, department_id=department_id)
        self.session.add(grant)
        await self.session.flush()
        return grant

    # ============================================================
    # COLLABORATORS
    # ============================================================

    async def find_project_collaborator(self, project_id: str, user_id: str) -> Optional[ProjectCollaborator]:
        return await self.session.get(ProjectCollaborator, (project_id, user_id))

    async def create_project_collaborator(self, project_id: str, user_id: str, department_id: str) -> ProjectCollaborator:
        collaborator = ProjectCollaborator(project_id=project_id, user_id=user_id, department_id=department_id)
        self.session.add(collaborator)
        await self.session.flush()
        return collaborator

    async def delete_project_collaborator(self, project_id: str, user_id: str) -> int:
        result = await self.session.execute(
            delete(ProjectCollaborator)
            .where(ProjectCollaborator.project_id == project_id, ProjectCollaborator.user_id == user_id)
            .execution_options(synchronize_session="fetch")
        )
        return result.rowcount

    async def count_active_project_assignments(self, project_id: str, user_id: str) -> int:
        """Assignments of user_id on non-archived tasks (any depth) of the project"""
        result = await self.session.execute(
            select(func.count())
            .select_from(TaskAssignment)
            .join(Task, Task.id == TaskAssignment.task_id)
            .where(
                TaskAssignment.user_id == user_id,
                Task.project_id == project_id,
                Task.is_archived.is_(False),
            )
        )
        return result.scalar() or 0

    async def find_project_assignment_pairs(self, task_ids: Sequence[str]) -> List[Tuple[str, str]]:
        """Distinct (project_id, user_id) for assignees of the given project tasks"""
        if not task_ids:
            return []
        result = await self.session.execute(
            select(Task.project_id, TaskAssignment.user_id)
            .join(TaskAssignment, TaskAssignment.task_id == Task.id)
            .where(Task.id.in_(list(task_ids)), Task.project_id.is_not(None))
            .distinct()
        )
        return [(project_id, user_id) for project_id, user_id in result.all()]

    async def find_project_assignees(self, project_id: str) -> List[UserProfile]:
        """Distinct users assigned to any non-archived top-level task of the project"""
        stmt = (
            select(UserProfile)
            .join(TaskAssignment, TaskAssignment.user_id == UserProfile.id)
            .join(Task, Task.id == TaskAssignment.task_id)
            .where(
                and_(
                    Task.project_id == project_id,
                    Task.parent_task_id.is_(None),
                    Task.is_archived.is_(False),
                )
            )
            .options(selectinload(UserProfile.department))
            .distinct()
            .order_by(UserProfile.name)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    # ============================================================
    # TAGS, COMMENTS, LOGS
    # ============================================================

    async def get_or_create_tags(self, names: Iterable[str]) -> List[Tag]:
        wanted = []
        for name in names:
            name = name.strip()
            if name and name not in wanted:
                wanted.append(name)
        if not wanted:
            return []
        result = await self.session.execute(select(Tag).where(Tag.name.in_(wanted)))
        existing = {tag.name: tag for tag in result.scalars().all()}
        tags = []
        for name in wanted:
            tag = existing.get(name)
            if tag is None:
                tag = Tag(name=name)
                self.session.add(tag)
            tags.append(tag)
        await self.session.flush()
        return tags

    async def attach_tags(self, task_id: str, tags: Iterable[Tag]) -> None:
        for tag in tags:
            self.session.add(TaskTag(task_id=task_id, tag_id=tag.id))
        await self.session.flush()

    async def find_comment_by_id(self, comment_id: str) -> Optional[Comment]:
        return await self.session.get(Comment, comment_id)

    async def add_comment(self, task_id: str, user_id: str, content: str) -> Comment:
        comment = Comment(task_id=task_id, user_id=user_id, content=content)
        self.session.add(comment)
        await self.session.flush()
        return comment

    async def add_task_log(
        self,
        task_id: str,
        user_id: str,
        action: LogAction,
        changes: Optional[dict] = None,
        details: Optional[dict] = None,
        field_name: Optional[str] = None,
    ) -> TaskLog:
        log = TaskLog(
            task_id=task_id,
            user_id=user_id,
            action=action,
            field_name=field_name,
            changes=changes or {},
            details=details or {},
        )
        self.session.add(log)
        await self.session.flush()
        return log

    async def find_task_logs(self, task_id: str) -> List[TaskLog]:
        result = await self.session.execute(
            select(TaskLog)
            .where(TaskLog.task_id == task_id)
            .options(selectinload(TaskLog.user))
            .order_by(TaskLog.created_at.desc())
        )
        return list(result.scalars().all())
