# project_visibility.py - Projects a user may see
# Visible = owned by a department in scope OR granted to a department in scope.
# The hierarchy lookup is passed in, so callers choose its source.

from typing import Dict, List, Optional

from authorization import SubordinateLookup, policy_for
from errors import AuthenticationError
from models import Project
from store import TaskStore


def project_record(project: Project, can_edit: bool) -> Dict:
    return {
        "id": project.id,
        "name": project.name,
        "description": project.description,
        "priority": project.priority,
        "status": project.status.value if hasattr(project.status, "value") else project.status,
        "department_id": project.department_id,
        "creator_id": project.creator_id,
        "is_archived": project.is_archived,
        "created_at": project.created_at,
        "updated_at": project.updated_at,
        "can_edit": can_edit,
    }


async def get_visible_projects_for_user(
    store: TaskStore,
    user,
    get_subordinate_departments: SubordinateLookup,
    *,
    is_archived: Optional[bool] = False,
) -> List[Dict]:
    if not user.user_id or not user.user_id.strip():
        raise AuthenticationError("User not authenticated")

    policy = policy_for(user.role)
    if policy.sees_all_projects:
        projects = await store.find_projects_by_filter(is_archived=is_archived)
        return [project_record(p, True) for p in projects]

    scope = await policy.project_scope(user, get_subordinate_departments)
    if not scope:
        return []

    projects = await store.find_projects_by_filter(department_ids=scope, is_archived=is_archived)
    return [project_record(p, policy.can_edit_project(p, user, scope)) for p in projects]


async def get_visible_project(
    store: TaskStore,
    project: Project,
    user,
    get_subordinate_departments: SubordinateLookup,
) -> Optional[Dict]:
    """Record for one project, or None when it is outside the user's scope (archived or not)"""
    if not user.user_id or not user.user_id.strip():
        raise AuthenticationError("User not authenticated")

    policy = policy_for(user.role)
    if policy.sees_all_projects:
        return project_record(project, True)

    scope = await policy.project_scope(user, get_subordinate_departments)
    if not scope:
        return None
    if project.department_id not in scope:
        grants = await store.find_project_department_access(project.id)
        if not any(grant.department_id in scope for grant in grants):
            return None
    return project_record(project, policy.can_edit_project(project, user, scope))
