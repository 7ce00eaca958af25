# task_visibility.py - Which tasks a user sees, and whether they may edit each one
# Every listing excludes archived tasks unless asked otherwise.

import logging
from typing import Dict, List, Optional, Set, Tuple

from auth import resolve_user_context
from authorization import can_edit_task, policy_for
from collaboration import derive_involved_departments
from errors import AuthenticationError, AuthorizationError, NotFoundError
from hierarchy import HierarchyResolver
from models import Task, TaskLog, TaskStatus
from store import TaskStore

logger = logging.getLogger("taskmgr.visibility")


def _enum_value(value):
    return value.value if hasattr(value, "value") else value


def task_record(task: Task, can_edit: bool) -> Dict:
    """Flatten a loaded task into the record handed to callers"""
    involved = derive_involved_departments(task.assignments, task.department_id)
    for dept in involved:
        if dept["name"] is None and dept["id"] == task.department_id and task.department is not None:
            dept["name"] = task.department.name

    return {
        "id": task.id,
        "title": task.title,
        "description": task.description,
        "priority": task.priority,
        "due_date": task.due_date,
        "status": _enum_value(task.status),
        "owner_id": task.owner_id,
        "department_id": task.department_id,
        "department_name": task.department.name if task.department is not None else None,
        "project_id": task.project_id,
        "project_name": task.project.name if task.project is not None else None,
        "parent_task_id": task.parent_task_id,
        "is_archived": task.is_archived,
        "start_date": task.start_date,
        "created_at": task.created_at,
        "updated_at": task.updated_at,
        "assignees": [
            {
                "id": a.user.id,
                "name": a.user.name,
                "email": a.user.email,
                "department_id": a.user.department_id,
            }
            for a in task.assignments
            if a.user is not None
        ],
        "tags": [tt.tag.name for tt in task.tags if tt.tag is not None],
        "comments": [
            {
                "id": c.id,
                "content": c.content,
                "user_id": c.user_id,
                "author_name": c.author.name if c.author is not None else None,
                "created_at": c.created_at,
                "updated_at": c.updated_at,
            }
            for c in task.comments
        ],
        "involved_departments": involved,
        "can_edit": can_edit,
    }


def log_record(log: TaskLog) -> Dict:
    return {
        "id": log.id,
        "task_id": log.task_id,
        "user_id": log.user_id,
        "user_name": log.user.name if log.user is not None else None,
        "action": _enum_value(log.action),
        "field_name": log.field_name,
        "changes": log.changes or {},
        "details": log.details or {},
        "created_at": log.created_at,
    }


def status_metrics(records: List[Dict]) -> Dict[str, int]:
    metrics = {"to_do": 0, "in_progress": 0, "completed": 0, "blocked": 0}
    for record in records:
        key = TaskStatus(record["status"]).value.lower()
        metrics[key] += 1
    return metrics


class TaskVisibilityService:
    def __init__(self, store: TaskStore, resolver: Optional[HierarchyResolver] = None):
        self.store = store
        self.resolver = resolver or HierarchyResolver(store)

    async def _hierarchy(self, user) -> Set[str]:
        return await self.resolver.get_subordinate_departments(user.department_id)

    async def get_user_tasks(self, user_id: str, include_archived: bool = False) -> List[Dict]:
        """Tasks assigned to user_id; the assignee may edit all of them"""
        if not user_id or not user_id.strip():
            raise AuthenticationError("User not authenticated")
        tasks = await self.store.find_tasks_by_filter(
            assignee_id=user_id,
            is_archived=None if include_archived else False,
        )
        return [task_record(t, True) for t in tasks]

    async def get_department_tasks_for_user(self, user) -> List[Dict]:
        """All live tasks owned by departments in the user's hierarchy, subtasks included"""
        hierarchy = await self._hierarchy(user)
        if not hierarchy:
            return []
        tasks = await self.store.find_tasks_by_filter(department_ids=hierarchy, is_archived=False)
        return [task_record(t, can_edit_task(t, user, hierarchy)) for t in tasks]

    async def get_dashboard_tasks(self, user) -> Dict:
        """Manager dashboard: tasks of the hierarchy or assigned into it, plus status counts.

        Staff callers get their department view instead.
        """
        policy = policy_for(user.role)
        if policy.uses_blanket_dashboard:
            hierarchy = await self._hierarchy(user)
            if hierarchy:
                tasks = await self.store.find_tasks_by_filter(
                    department_ids=hierarchy,
                    assigned_in_departments=hierarchy,
                    is_archived=False,
                )
            else:
                tasks = []
            records = [task_record(t, True) for t in tasks]
        else:
            records = await self.get_department_tasks_for_user(user)

        return {"tasks": records, "metrics": status_metrics(records)}

    async def get_available_parent_tasks(self, user_id: str) -> List[Dict]:
        """Top-level live tasks the user may hang a new subtask under"""
        user = await resolve_user_context(self.store, user_id)
        policy = policy_for(user.role)
        hierarchy = await self._hierarchy(user)

        if policy.parent_tasks_assigned_only:
            tasks = await self.store.find_tasks_by_filter(
                assignee_id=user.user_id, top_level_only=True, is_archived=False,
            )
        else:
            if not hierarchy:
                return []
            tasks = await self.store.find_tasks_by_filter(
                department_ids=hierarchy, top_level_only=True, is_archived=False,
            )
        return [task_record(t, can_edit_task(t, user, hierarchy)) for t in tasks]

    async def load_visible_task(self, task_id: str, user) -> Tuple[Task, Set[str]]:
        task = await self.store.find_task_by_id(task_id)
        if task is None:
            raise NotFoundError("Task not found")
        hierarchy = await self._hierarchy(user)
        if not policy_for(user.role).can_view_task(task, user, hierarchy):
            raise AuthorizationError("Unauthorized: You do not have access to this task")
        return task, hierarchy

    async def get_task(self, task_id: str, user) -> Dict:
        task, hierarchy = await self.load_visible_task(task_id, user)
        return task_record(task, can_edit_task(task, user, hierarchy))

    async def get_subtasks(self, parent_task_id: str, user) -> List[Dict]:
        _, hierarchy = await self.load_visible_task(parent_task_id, user)
        subtasks = await self.store.find_tasks_by_filter(parent_task_id=parent_task_id, is_archived=False)
        return [task_record(t, can_edit_task(t, user, hierarchy)) for t in subtasks]

    async def get_task_logs(self, task_id: str, user) -> List[Dict]:
        await self.load_visible_task(task_id, user)
        return [log_record(log) for log in await self.store.find_task_logs(task_id)]
