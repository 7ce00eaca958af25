# archive.py - Archive cascade
# Archiving a task archives its whole subtask tree in one transaction.
# There is no un-archive path. Assignees left without live project work stop being collaborators.

import logging
from collections import deque
from dataclasses import dataclass, field
from typing import Dict, List

from authorization import policy_for
from collaboration import CollaborationService
from database import unit_of_work
from errors import AuthorizationError, NotFoundError
from hierarchy import HierarchyResolver
from models import LogAction
from store import TaskStore

logger = logging.getLogger("taskmgr.archive")


@dataclass
class ArchivePlan:
    root_task_id: str
    task_ids: List[str] = field(default_factory=list)

    @property
    def subtask_ids(self) -> List[str]:
        return [tid for tid in self.task_ids if tid != self.root_task_id]


class ArchiveService:
    def __init__(self, store: TaskStore, resolver: HierarchyResolver = None):
        self.store = store
        self.resolver = resolver or HierarchyResolver(store)
        self.collaboration = CollaborationService(store, self.resolver)

    async def collect_plan(self, task_id: str) -> ArchivePlan:
        """Root plus every transitive subtask, breadth-first, rows locked for update"""
        plan = ArchivePlan(root_task_id=task_id, task_ids=[task_id])
        seen = {task_id}
        frontier = deque([task_id])
        while frontier:
            batch = list(frontier)
            frontier.clear()
            for child_id in await self.store.find_subtask_ids(batch, for_update=True):
                if child_id in seen:
                    continue
                seen.add(child_id)
                plan.task_ids.append(child_id)
                frontier.append(child_id)
        return plan

    async def archive_task(self, task_id: str, user) -> Dict:
        policy = policy_for(user.role)
        if not policy.can_archive:
            raise AuthorizationError("Unauthorized: Only managers can archive tasks")

        async with unit_of_work(self.store.session):
            task = await self.store.find_task_by_id(task_id, for_update=True)
            if task is None:
                raise NotFoundError("Task not found")

            hierarchy = await self.resolver.get_subordinate_departments(user.department_id)
            if task.department_id not in hierarchy:
                raise AuthorizationError("Unauthorized: Task is outside your department hierarchy")

            plan = await self.collect_plan(task.id)
            await self.store.update_task_archive_state(plan.task_ids, True)
            for archived_id in plan.task_ids:
                await self.store.add_task_log(
                    archived_id,
                    user.user_id,
                    LogAction.ARCHIVED,
                    changes={"is_archived": True},
                    details={"root_task_id": plan.root_task_id},
                )
            pruned = 0
            for project_id, assignee_id in await self.store.find_project_assignment_pairs(plan.task_ids):
                if await self.collaboration.prune_collaborator(project_id, assignee_id):
                    pruned += 1

        logger.info(
            f"Archived task {plan.root_task_id} with {len(plan.subtask_ids)} subtask(s) by {user.user_id}, "
            f"{pruned} collaborator(s) pruned"
        )
        return {
            "id": plan.root_task_id,
            "is_archived": True,
            "archived_task_ids": plan.task_ids,
        }
