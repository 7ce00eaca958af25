"""Tests for project visibility across departments and bridge grants."""
import pytest

from errors import AuthenticationError, AuthorizationError, NotFoundError
from hierarchy import HierarchyResolver
from models import ProjectDepartmentAccess
from project_service import ProjectService
from project_visibility import get_visible_projects_for_user
from store import TaskStore
from tests.conftest import ctx, make_project


async def _visible(db_session, user, **kwargs):
    store = TaskStore(db_session)
    resolver = HierarchyResolver(store)
    records = await get_visible_projects_for_user(store, user, resolver.get_subordinate_departments, **kwargs)
    return {r["id"]: r for r in records}


@pytest.mark.asyncio
async def test_grant_bridges_sibling_department(db_session, users):
    u = users
    await make_project(db_session, "P", creator=u["dev1"], department_id="dept-developers")
    db_session.add(ProjectDepartmentAccess(project_id="P", department_id="dept-support"))
    await db_session.commit()

    assert "P" in await _visible(db_session, ctx(u["support1"]))
    assert "P" not in await _visible(db_session, ctx(u["outsider"]))


@pytest.mark.asyncio
async def test_staff_scope_is_own_department_only(db_session, users):
    u = users
    await make_project(db_session, "child-project", creator=u["dev1"], department_id="dept-developers")
    staff_in_parent = ctx(u["eng_manager"]).model_copy(update={"role": "STAFF"})

    assert await _visible(db_session, staff_in_parent) == {}


@pytest.mark.asyncio
async def test_manager_sees_subtree_projects_and_edit_flags(db_session, users):
    u = users
    await make_project(db_session, "dev-project", creator=u["dev1"], department_id="dept-developers")
    await make_project(db_session, "hr-project", creator=u["hr_admin"], department_id="dept-hr")

    visible = await _visible(db_session, ctx(u["eng_manager"]))
    assert set(visible) == {"dev-project"}
    assert visible["dev-project"]["can_edit"] is True

    staff_view = await _visible(db_session, ctx(u["dev2"]))
    assert staff_view["dev-project"]["can_edit"] is False
    assert (await _visible(db_session, ctx(u["dev1"])))["dev-project"]["can_edit"] is True


@pytest.mark.asyncio
async def test_hr_admin_sees_everything_without_resolver(db_session, users):
    u = users
    await make_project(db_session, "a", creator=u["dev1"])
    await make_project(db_session, "b", creator=u["outsider"])

    async def exploding_resolver(_):
        raise AssertionError("resolver must not be consulted")

    records = await get_visible_projects_for_user(TaskStore(db_session), ctx(u["hr_admin"]), exploding_resolver)
    assert {r["id"] for r in records} == {"a", "b"}
    assert all(r["can_edit"] for r in records)


@pytest.mark.asyncio
async def test_archived_filter_is_exact(db_session, users):
    u = users
    await make_project(db_session, "live", creator=u["dev1"])
    await make_project(db_session, "done", creator=u["dev1"], is_archived=True)

    assert set(await _visible(db_session, ctx(u["dev1"]))) == {"live"}
    assert set(await _visible(db_session, ctx(u["dev1"]), is_archived=True)) == {"done"}


@pytest.mark.asyncio
async def test_unknown_department_yields_nothing(db_session, users):
    u = users
    await make_project(db_session, "live", creator=u["dev1"])
    ghost = ctx(u["eng_manager"]).model_copy(update={"department_id": "dept-missing"})

    assert await _visible(db_session, ghost) == {}


@pytest.mark.asyncio
async def test_blank_user_is_rejected(db_session, users):
    anonymous = ctx(users["dev1"]).model_copy(update={"user_id": ""})
    with pytest.raises(AuthenticationError, match="User not authenticated"):
        await _visible(db_session, anonymous)


@pytest.mark.asyncio
async def test_single_project_lookup_checks_scope_and_grants(db_session, users):
    u = users
    await make_project(db_session, "P", creator=u["dev1"], department_id="dept-developers", is_archived=True)
    service = ProjectService(TaskStore(db_session))

    with pytest.raises(AuthorizationError):
        await service.get_project("P", ctx(u["support1"]))
    with pytest.raises(NotFoundError, match="Project not found"):
        await service.get_project("missing", ctx(u["support1"]))

    db_session.add(ProjectDepartmentAccess(project_id="P", department_id="dept-support"))
    await db_session.commit()

    shared = await service.get_project("P", ctx(u["support1"]))
    assert shared["is_archived"] is True
    assert shared["can_edit"] is False
    assert (await service.get_project("P", ctx(u["eng_manager"])))["can_edit"] is True
    assert (await service.get_project("P", ctx(u["hr_admin"])))["can_edit"] is True

    with pytest.raises(AuthorizationError):
        await service.get_project("P", ctx(u["outsider"]))
