# task_service.py - Task mutations
# - Create tasks and subtasks (depth 2, due-date bounded by the parent)
# - Edit fields and status, manage assignees (1..5), comments
# - Every mutation writes an audit log row in the same commit
# - Notifications go out only after the commit

import logging
from datetime import datetime
from typing import Dict, Iterable, List, Optional, Tuple

from authorization import can_edit_task, can_view_task, policy_for
from collaboration import CollaborationService
from database import unit_of_work
from errors import AuthorizationError, InvariantViolation, NotFoundError, ValidationError
from hierarchy import HierarchyResolver
from models import LogAction, NotificationType, Task, TaskStatus, as_utc, utcnow
from notifications import NotificationDispatcher
from store import TaskStore
from task_visibility import task_record

logger = logging.getLogger("taskmgr.tasks")

MIN_PRIORITY = 1
MAX_PRIORITY = 10
MAX_ASSIGNEES = 5


def _check_priority(priority: int) -> None:
    if priority is None or not MIN_PRIORITY <= int(priority) <= MAX_PRIORITY:
        raise ValidationError(f"Priority must be between {MIN_PRIORITY} and {MAX_PRIORITY}")


def _unique(ids: Iterable[str]) -> List[str]:
    seen = []
    for value in ids:
        if value and value not in seen:
            seen.append(value)
    return seen


def comment_record(comment) -> Dict:
    return {
        "id": comment.id,
        "task_id": comment.task_id,
        "user_id": comment.user_id,
        "content": comment.content,
        "created_at": comment.created_at,
        "updated_at": comment.updated_at,
    }


class TaskService:
    def __init__(
        self,
        store: TaskStore,
        notifier: Optional[NotificationDispatcher] = None,
        resolver: Optional[HierarchyResolver] = None,
    ):
        self.store = store
        self.notifier = notifier or NotificationDispatcher(store)
        self.resolver = resolver or HierarchyResolver(store)
        self.collaboration = CollaborationService(store, self.resolver)

    # ============================================================
    # HELPERS
    # ============================================================

    async def _load_task(self, task_id: str) -> Task:
        task = await self.store.find_task_by_id(task_id)
        if task is None:
            raise NotFoundError("Task not found")
        if task.is_archived:
            raise InvariantViolation("Cannot modify an archived task")
        return task

    async def _load_editable(self, task_id: str, user) -> Tuple[Task, set]:
        task = await self._load_task(task_id)
        hierarchy = await self.resolver.get_subordinate_departments(user.department_id)
        if not can_edit_task(task, user, hierarchy):
            raise AuthorizationError("Unauthorized: You do not have permission to edit this task")
        return task, hierarchy

    async def _record(self, task_id: str, user, hierarchy) -> Dict:
        task = await self.store.find_task_by_id(task_id)
        return task_record(task, can_edit_task(task, user, hierarchy))

    async def _actor_name(self, user) -> str:
        profile = await self.store.find_user_profile(user.user_id)
        if profile is None:
            return "Someone"
        return profile.name or profile.email

    async def _notify_all(self, pending: List[Tuple]) -> None:
        for user_id, kind, title, message, task_id in pending:
            await self.notifier.notify(user_id, kind, title, message, task_id=task_id)

    async def _collaboration_notice(self, project_id: str, user_id: str, task_id: str) -> Tuple:
        project = await self.store.find_project_by_id(project_id)
        return (
            user_id,
            NotificationType.PROJECT_COLLABORATION_ADDED,
            "Added to Project",
            f'You\'ve been added as a collaborator on project "{project.name}"',
            task_id,
        )

    # ============================================================
    # CREATE
    # ============================================================

    async def create_task(
        self,
        creator,
        *,
        title: str,
        description: str,
        priority: int,
        due_date: datetime,
        assignee_ids: Iterable[str],
        project_id: Optional[str] = None,
        parent_task_id: Optional[str] = None,
        tags: Optional[Iterable[str]] = None,
    ) -> Dict:
        title = (title or "").strip()
        description = (description or "").strip()
        if not title:
            raise ValidationError("Title is required")
        if not description:
            raise ValidationError("Description is required")
        _check_priority(priority)
        if due_date is None:
            raise ValidationError("Due date is required")
        due_date = as_utc(due_date)

        assignee_ids = _unique(assignee_ids or [])
        if not assignee_ids:
            raise ValidationError("At least one assignee is required")
        if len(assignee_ids) > MAX_ASSIGNEES:
            raise ValidationError(f"Maximum {MAX_ASSIGNEES} assignees allowed per task")

        if project_id:
            if await self.store.find_project_by_id(project_id) is None:
                raise NotFoundError("Project not found")

        if parent_task_id:
            parent = await self.store.find_task_by_id(parent_task_id)
            if parent is None:
                raise NotFoundError("Parent task not found")
            if parent.parent_task_id:
                raise ValidationError("Maximum subtask depth is 2 levels")
            if parent.is_archived:
                raise InvariantViolation("Cannot add a subtask to an archived task")
            if due_date > as_utc(parent.due_date):
                raise ValidationError("Subtask due date cannot be after the parent task due date")
            project_id = project_id or parent.project_id

        assignees = await self.store.find_user_profiles(assignee_ids)
        if len(assignees) != len(assignee_ids):
            raise NotFoundError("One or more assignees not found")
        if not all(a.is_active for a in assignees):
            raise ValidationError("One or more assignees are inactive")
        by_id = {a.id: a for a in assignees}

        new_collaborators = []
        async with unit_of_work(self.store.session):
            task = await self.store.add_task(Task(
                title=title,
                description=description,
                priority=int(priority),
                due_date=due_date,
                status=TaskStatus.TO_DO,
                owner_id=creator.user_id,
                department_id=creator.department_id,
                project_id=project_id,
                parent_task_id=parent_task_id,
            ))
            for assignee_id in assignee_ids:
                await self.store.create_task_assignment(task.id, assignee_id, creator.user_id)
                if await self.collaboration.register_assignment(task, by_id[assignee_id]):
                    new_collaborators.append(assignee_id)
            if tags:
                await self.store.attach_tags(task.id, await self.store.get_or_create_tags(tags))
            await self.store.add_task_log(
                task.id,
                creator.user_id,
                LogAction.CREATED,
                changes={"title": title, "assignees": assignee_ids},
                details={"parent_task_id": parent_task_id, "project_id": project_id},
            )
            task_id = task.id

        logger.info(f"Task {task_id} created by {creator.user_id} in {creator.department_id}")

        pending = [
            (
                assignee_id,
                NotificationType.TASK_ASSIGNED,
                "New Task Assignment",
                f'You have been assigned to task "{title}"',
                task_id,
            )
            for assignee_id in assignee_ids
            if assignee_id != creator.user_id
        ]
        for user_id in new_collaborators:
            pending.append(await self._collaboration_notice(project_id, user_id, task_id))
        await self._notify_all(pending)

        hierarchy = await self.resolver.get_subordinate_departments(creator.department_id)
        return await self._record(task_id, creator, hierarchy)

    # ============================================================
    # UPDATE
    # ============================================================

    async def update_task(
        self,
        task_id: str,
        user,
        *,
        title: Optional[str] = None,
        description: Optional[str] = None,
        priority: Optional[int] = None,
        due_date: Optional[datetime] = None,
    ) -> Dict:
        task, hierarchy = await self._load_editable(task_id, user)
        changes = {}

        if title is not None:
            title = title.strip()
            if not title:
                raise ValidationError("Title is required")
            if title != task.title:
                changes["title"] = {"from": task.title, "to": title}
        if description is not None:
            description = description.strip()
            if not description:
                raise ValidationError("Description is required")
            if description != task.description:
                changes["description"] = {"from": task.description, "to": description}
        if priority is not None:
            _check_priority(priority)
            if int(priority) != task.priority:
                changes["priority"] = {"from": task.priority, "to": int(priority)}
        if due_date is not None:
            due_date = as_utc(due_date)
            await self._check_due_date(task, due_date)
            if due_date != as_utc(task.due_date):
                changes["due_date"] = {
                    "from": as_utc(task.due_date).isoformat(),
                    "to": due_date.isoformat(),
                }

        if not changes:
            return task_record(task, True)

        async with unit_of_work(self.store.session):
            if "title" in changes:
                task.title = title
            if "description" in changes:
                task.description = description
            if "priority" in changes:
                task.priority = int(priority)
            if "due_date" in changes:
                task.due_date = due_date
            task.updated_at = utcnow()
            await self.store.add_task_log(task.id, user.user_id, LogAction.UPDATED, changes=changes)

        actor = await self._actor_name(user)
        await self._notify_all([
            (
                a.user_id,
                NotificationType.TASK_UPDATED,
                "Task Updated",
                f'{actor} updated "{task.title}"',
                task.id,
            )
            for a in task.assignments
            if a.user_id != user.user_id
        ])
        return await self._record(task.id, user, hierarchy)

    async def _check_due_date(self, task: Task, due_date: datetime) -> None:
        if task.parent_task_id:
            parent = await self.store.find_task_by_id(task.parent_task_id)
            if parent is not None and due_date > as_utc(parent.due_date):
                raise ValidationError("Subtask due date cannot be after the parent task due date")
        else:
            subtasks = await self.store.find_tasks_by_filter(parent_task_id=task.id, is_archived=False)
            if any(as_utc(st.due_date) > due_date for st in subtasks):
                raise ValidationError("Parent task due date cannot be before its subtasks' due dates")

    async def update_status(self, task_id: str, status, user) -> Dict:
        try:
            status = TaskStatus(status)
        except ValueError:
            raise ValidationError(f"Invalid status: {status}")

        task, hierarchy = await self._load_editable(task_id, user)
        previous = task.status
        if previous == status:
            return task_record(task, True)

        async with unit_of_work(self.store.session):
            task.status = status
            if status == TaskStatus.IN_PROGRESS and task.start_date is None:
                task.start_date = utcnow()
            task.updated_at = utcnow()
            await self.store.add_task_log(
                task.id,
                user.user_id,
                LogAction.STATUS_CHANGED,
                changes={"status": {"from": TaskStatus(previous).value, "to": status.value}},
                field_name="status",
            )

        actor = await self._actor_name(user)
        await self._notify_all([
            (
                a.user_id,
                NotificationType.TASK_UPDATED,
                "Task Status Changed",
                f'{actor} changed the status of "{task.title}" to {status.value}',
                task.id,
            )
            for a in task.assignments
            if a.user_id != user.user_id
        ])
        return await self._record(task.id, user, hierarchy)

    # ============================================================
    # ASSIGNEES
    # ============================================================

    async def _locked_assignees(self, task_id: str) -> List[str]:
        """Assignee ids read under a row lock on the task, so floor and cap checks serialize"""
        task = await self.store.find_task_by_id(task_id, for_update=True)
        if task is None:
            raise NotFoundError("Task not found")
        if task.is_archived:
            raise InvariantViolation("Cannot modify an archived task")
        return [a.user_id for a in task.assignments]

    @staticmethod
    def _check_can_add(current: List[str], assignee_id: str) -> None:
        if assignee_id in current:
            raise ValidationError("User is already assigned to this task")
        if len(current) >= MAX_ASSIGNEES:
            raise ValidationError(f"Maximum {MAX_ASSIGNEES} assignees allowed per task")

    @staticmethod
    def _check_can_remove(current: List[str], assignee_id: str) -> None:
        if assignee_id not in current:
            raise NotFoundError("User is not assigned to this task")
        if len(current) <= 1:
            raise InvariantViolation("Cannot remove the last assignee: task must have at least one assignee")

    async def add_assignee(self, task_id: str, assignee_id: str, user) -> Dict:
        task, hierarchy = await self._load_editable(task_id, user)
        self._check_can_add([a.user_id for a in task.assignments], assignee_id)

        assignee = await self.store.find_user_profile(assignee_id)
        if assignee is None:
            raise NotFoundError("Assignee not found")
        if not assignee.is_active:
            raise ValidationError("Assignee is inactive")

        async with unit_of_work(self.store.session):
            self._check_can_add(await self._locked_assignees(task.id), assignee_id)
            await self.store.create_task_assignment(task.id, assignee_id, user.user_id)
            is_new_collaborator = await self.collaboration.register_assignment(task, assignee)
            await self.store.add_task_log(
                task.id,
                user.user_id,
                LogAction.ASSIGNMENT_CHANGED,
                changes={"added": [assignee_id]},
                field_name="assignees",
            )

        pending = []
        if assignee_id != user.user_id:
            pending.append((
                assignee_id,
                NotificationType.TASK_ASSIGNED,
                "New Task Assignment",
                f'You have been assigned to task "{task.title}"',
                task.id,
            ))
        if is_new_collaborator:
            pending.append(await self._collaboration_notice(task.project_id, assignee_id, task.id))
        await self._notify_all(pending)
        return await self._record(task.id, user, hierarchy)

    async def remove_assignee(self, task_id: str, assignee_id: str, user) -> Dict:
        if not policy_for(user.role).can_remove_assignees:
            raise AuthorizationError("Unauthorized: Only managers can remove assignees")

        task, hierarchy = await self._load_editable(task_id, user)
        self._check_can_remove([a.user_id for a in task.assignments], assignee_id)

        async with unit_of_work(self.store.session):
            self._check_can_remove(await self._locked_assignees(task.id), assignee_id)
            await self.store.delete_task_assignment(task.id, assignee_id)
            await self.store.add_task_log(
                task.id,
                user.user_id,
                LogAction.ASSIGNMENT_CHANGED,
                changes={"removed": [assignee_id]},
                field_name="assignees",
            )
            await self.collaboration.prune_collaborator(task.project_id, assignee_id)

        await self._notify_all([(
            assignee_id,
            NotificationType.ASSIGNEE_REMOVED,
            "Removed from Task",
            f'You have been removed from task "{task.title}"',
            task.id,
        )])
        return await self._record(task.id, user, hierarchy)

    # ============================================================
    # COMMENTS
    # ============================================================

    async def add_comment(self, task_id: str, content: str, user) -> Dict:
        content = (content or "").strip()
        if not content:
            raise ValidationError("Comment content cannot be empty")

        task = await self._load_task(task_id)
        hierarchy = await self.resolver.get_subordinate_departments(user.department_id)
        if not can_view_task(task, user, hierarchy):
            raise AuthorizationError("Unauthorized: You do not have access to this task")

        async with unit_of_work(self.store.session):
            comment = await self.store.add_comment(task.id, user.user_id, content)
            await self.store.add_task_log(
                task.id,
                user.user_id,
                LogAction.COMMENT_ADDED,
                details={"comment_id": comment.id},
            )

        actor = await self._actor_name(user)
        await self._notify_all([
            (
                a.user_id,
                NotificationType.COMMENT_ADDED,
                "New Comment",
                f'{actor} commented on "{task.title}"',
                task.id,
            )
            for a in task.assignments
            if a.user_id != user.user_id
        ])
        return comment_record(comment)

    async def update_comment(self, comment_id: str, content: str, user) -> Dict:
        content = (content or "").strip()
        if not content:
            raise ValidationError("Comment content cannot be empty")

        comment = await self.store.find_comment_by_id(comment_id)
        if comment is None:
            raise NotFoundError("Comment not found")
        if comment.user_id != user.user_id:
            raise AuthorizationError("Only the comment author can edit this comment")
        await self._load_task(comment.task_id)

        async with unit_of_work(self.store.session):
            previous = comment.content
            comment.content = content
            comment.updated_at = utcnow()
            await self.store.add_task_log(
                comment.task_id,
                user.user_id,
                LogAction.UPDATED,
                changes={"comment": {"from": previous, "to": content}},
                details={"comment_id": comment.id},
                field_name="comment",
            )
        return comment_record(comment)
