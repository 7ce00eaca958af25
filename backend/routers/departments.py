# routers/departments.py - Read-only department tree
from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from auth import get_current_user, UserContext
from database import get_db_session
from errors import NotFoundError
from hierarchy import HierarchyResolver
from store import TaskStore

router = APIRouter(prefix="/api/v1/departments", tags=["Departments"])


def _dept_out(d) -> dict:
    return {
        "id": d.id,
        "name": d.name,
        "parent_id": d.parent_id,
        "is_active": d.is_active,
    }


@router.get("")
async def list_departments(
    db: AsyncSession = Depends(get_db_session),
    user: UserContext = Depends(get_current_user),
):
    return [_dept_out(d) for d in await TaskStore(db).find_all_departments()]


@router.get("/{department_id}/subordinates")
async def subordinate_departments(
    department_id: str,
    db: AsyncSession = Depends(get_db_session),
    user: UserContext = Depends(get_current_user),
):
    store = TaskStore(db)
    tree = await HierarchyResolver(store).load_tree()
    if department_id not in tree:
        raise NotFoundError("Department not found")
    ids = tree.subordinates(department_id)
    return {
        "root_id": department_id,
        "departments": sorted(
            (_dept_out(tree.nodes[i]) for i in ids), key=lambda d: d["name"]
        ),
    }
