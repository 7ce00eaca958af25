# authorization.py - Role policies for viewing and editing tasks and projects
#
# Each role is one policy object implementing the same contract:
#   can_edit_task / can_view_task / can_edit_project / project_scope
# plus capability flags consulted by the services. Decisions are pure.
#
# Edit decision table:
#   STAFF     assigned to the task                 -> edit (department irrelevant)
#   MANAGER   task department inside the hierarchy -> edit (assignment irrelevant)
#   HR_ADMIN  task department inside the hierarchy -> edit

from typing import Awaitable, Callable, Collection, Dict, Set

from models import Project, Task, UserRole

SubordinateLookup = Callable[[str], Awaitable[Set[str]]]


def is_assigned(task: Task, user_id: str) -> bool:
    return any(a.user_id == user_id for a in task.assignments)


class RolePolicy:
    role: UserRole

    can_archive = False
    can_manage_collaborators = False
    can_remove_assignees = False
    sees_all_projects = False
    parent_tasks_assigned_only = True
    uses_blanket_dashboard = False

    def can_edit_task(self, task: Task, user, hierarchy: Collection[str]) -> bool:
        return task.department_id in hierarchy

    def can_view_task(self, task: Task, user, hierarchy: Collection[str]) -> bool:
        return is_assigned(task, user.user_id) or task.department_id in hierarchy

    def can_edit_project(self, project: Project, user, hierarchy: Collection[str]) -> bool:
        return project.department_id in hierarchy

    async def project_scope(self, user, get_subordinate_departments: SubordinateLookup) -> Set[str]:
        return set(await get_subordinate_departments(user.department_id))


class StaffPolicy(RolePolicy):
    role = UserRole.STAFF

    def can_edit_task(self, task, user, hierarchy):
        return is_assigned(task, user.user_id)

    def can_edit_project(self, project, user, hierarchy):
        return project.creator_id == user.user_id

    async def project_scope(self, user, get_subordinate_departments):
        # staff see their own department only, never its subtree
        return {user.department_id}


class ManagerPolicy(RolePolicy):
    role = UserRole.MANAGER

    can_archive = True
    can_manage_collaborators = True
    can_remove_assignees = True
    parent_tasks_assigned_only = False
    uses_blanket_dashboard = True


class HrAdminPolicy(RolePolicy):
    role = UserRole.HR_ADMIN

    can_archive = True
    can_remove_assignees = True
    sees_all_projects = True
    uses_blanket_dashboard = True

    def can_edit_project(self, project, user, hierarchy):
        return True


POLICIES: Dict[UserRole, RolePolicy] = {
    UserRole.STAFF: StaffPolicy(),
    UserRole.MANAGER: ManagerPolicy(),
    UserRole.HR_ADMIN: HrAdminPolicy(),
}


def policy_for(role) -> RolePolicy:
    return POLICIES[UserRole(role)]


def can_edit_task(task: Task, user, hierarchy: Collection[str]) -> bool:
    return policy_for(user.role).can_edit_task(task, user, hierarchy)


def can_view_task(task: Task, user, hierarchy: Collection[str]) -> bool:
    return policy_for(user.role).can_view_task(task, user, hierarchy)


def can_edit_project(project: Project, user, hierarchy: Collection[str]) -> bool:
    return policy_for(user.role).can_edit_project(project, user, hierarchy)
