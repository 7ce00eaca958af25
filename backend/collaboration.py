# collaboration.py - Project collaborators derived from task assignments
# - Involved departments of a task (assignee home departments, owner department first)
# - Listing and removing project collaborators
# - Collaborator side effect of a new assignment, pruned when the last one goes

import logging
from typing import Dict, Iterable, List, Optional

from sqlalchemy.exc import IntegrityError

from authorization import policy_for
from database import unit_of_work
from errors import AuthorizationError, InvariantViolation, NotFoundError
from hierarchy import HierarchyResolver
from models import LogAction, Task, UserProfile
from project_visibility import get_visible_project
from store import TaskStore

logger = logging.getLogger("taskmgr.collaboration")


def derive_involved_departments(assignments: Iterable, parent_department_id: Optional[str] = None) -> List[Dict]:
    """Unique {id, name} of the assignees' home departments in first-seen order.

    parent_department_id, when given, is always first. Its name is taken from
    an assignee in that department, or left None for the caller to fill.
    """
    involved: Dict[str, Optional[str]] = {}
    if parent_department_id is not None:
        involved[parent_department_id] = None

    for assignment in assignments:
        user = assignment.user
        if user is None or user.department_id is None:
            continue
        name = user.department.name if user.department is not None else None
        if user.department_id not in involved:
            involved[user.department_id] = name
        elif involved[user.department_id] is None:
            involved[user.department_id] = name

    return [{"id": dept_id, "name": name} for dept_id, name in involved.items()]


def collaborator_record(user: UserProfile) -> Dict:
    return {
        "id": user.id,
        "name": user.name,
        "email": user.email,
        "role": user.role.value if hasattr(user.role, "value") else user.role,
        "department_id": user.department_id,
        "department_name": user.department.name if user.department is not None else None,
    }


class CollaborationService:
    def __init__(self, store: TaskStore, resolver: Optional[HierarchyResolver] = None):
        self.store = store
        self.resolver = resolver or HierarchyResolver(store)

    async def get_project_collaborators(self, project_id: str, user) -> List[Dict]:
        project = await self.store.find_project_by_id(project_id)
        if project is None:
            raise NotFoundError("Project not found")
        visible = await get_visible_project(self.store, project, user, self.resolver.get_subordinate_departments)
        if visible is None:
            raise AuthorizationError("Unauthorized: You do not have access to this project")
        users = await self.store.find_project_assignees(project_id)
        return [collaborator_record(u) for u in users]

    async def register_assignment(self, task: Task, assignee: UserProfile) -> bool:
        """Ensure the assignee is a collaborator of the task's project; True if newly added"""
        if not task.project_id:
            return False
        existing = await self.store.find_project_collaborator(task.project_id, assignee.id)
        if existing is not None:
            return False
        # Concurrent first assignments race on the primary key.
        try:
            async with self.store.session.begin_nested():
                await self.store.create_project_collaborator(task.project_id, assignee.id, assignee.department_id)
        except IntegrityError:
            logger.info(f"User {assignee.id} already joined project {task.project_id} concurrently")
            return False
        logger.info(f"User {assignee.id} joined project {task.project_id} via task {task.id}")
        return True

    async def prune_collaborator(self, project_id: str, user_id: str) -> bool:
        """Drop the collaborator row once the user has no live assignment left in the project"""
        if not project_id:
            return False
        if await self.store.count_active_project_assignments(project_id, user_id) > 0:
            return False
        removed = await self.store.delete_project_collaborator(project_id, user_id)
        if removed:
            logger.info(f"User {user_id} left project {project_id}: no active assignments remain")
        return bool(removed)

    async def remove_project_collaborator(self, project_id: str, user_id: str, user) -> Dict:
        """Unassign user_id from every live task of the project and drop the collaborator row.

        All-or-nothing: if any task would be left without assignees nothing is written.
        """
        if not policy_for(user.role).can_manage_collaborators:
            raise AuthorizationError("Only managers can remove collaborators from projects")

        session = self.store.session
        async with unit_of_work(session):
            project = await self.store.find_project_by_id(project_id)
            if project is None:
                raise NotFoundError("Project not found")

            tasks = await self.store.find_tasks_by_filter(
                project_id=project_id,
                assignee_id=user_id,
                is_archived=False,
                for_update=True,
            )
            collaborator = await self.store.find_project_collaborator(project_id, user_id)
            if collaborator is None and not tasks:
                raise NotFoundError("Collaborator not found")

            for task in tasks:
                if len(task.assignments) <= 1:
                    raise InvariantViolation(
                        f'Cannot remove user from task "{task.title}": task must have at least one assignee'
                    )

            for task in tasks:
                await self.store.delete_task_assignment(task.id, user_id)
                await self.store.add_task_log(
                    task.id,
                    user.user_id,
                    LogAction.ASSIGNMENT_CHANGED,
                    changes={"removed": [user_id]},
                    details={"reason": "collaborator_removed", "project_id": project_id},
                    field_name="assignees",
                )
            await self.store.delete_project_collaborator(project_id, user_id)

        logger.info(
            f"Removed collaborator {user_id} from project {project_id} "
            f"({len(tasks)} assignment(s)) by {user.user_id}"
        )
        return {"project_id": project_id, "user_id": user_id, "removed_assignments": len(tasks)}
