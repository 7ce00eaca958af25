"""Tests for the archive cascade."""
import pytest
from sqlalchemy import select

from archive import ArchiveService
from errors import AuthorizationError, InvariantViolation, NotFoundError
from models import LogAction, ProjectCollaborator, Task, TaskLog
from store import TaskStore
from task_service import TaskService
from task_visibility import TaskVisibilityService
from tests.conftest import ctx, make_project, make_task


async def _archived_flags(db_session, *task_ids):
    result = await db_session.execute(
        select(Task.id, Task.is_archived)
        .where(Task.id.in_(task_ids))
        .execution_options(populate_existing=True)
    )
    return dict(result.all())


@pytest.fixture
def family():
    async def build(db_session, users):
        owner = users["dev1"]
        await make_task(db_session, "parent", owner=owner, assignees=[owner], due=10)
        await make_task(db_session, "sub-a", owner=owner, assignees=[owner], parent_task_id="parent", due=5)
        await make_task(db_session, "sub-b", owner=owner, assignees=[owner], parent_task_id="parent", due=6)
    return build


@pytest.mark.asyncio
async def test_manager_archive_cascades_to_subtasks(db_session, users, family):
    await family(db_session, users)
    store = TaskStore(db_session)

    result = await ArchiveService(store).archive_task("parent", ctx(users["eng_manager"]))

    assert result["is_archived"] is True
    assert set(result["archived_task_ids"]) == {"parent", "sub-a", "sub-b"}
    assert await _archived_flags(db_session, "parent", "sub-a", "sub-b") == {
        "parent": True, "sub-a": True, "sub-b": True,
    }

    subtasks = await TaskVisibilityService(store).get_subtasks("parent", ctx(users["eng_manager"]))
    assert subtasks == []

    logs = (await db_session.execute(
        select(TaskLog).where(TaskLog.action == LogAction.ARCHIVED)
    )).scalars().all()
    assert sorted(log.task_id for log in logs) == ["parent", "sub-a", "sub-b"]


@pytest.mark.asyncio
async def test_staff_cannot_archive_even_when_assigned(db_session, users, family):
    await family(db_session, users)

    with pytest.raises(AuthorizationError, match="Unauthorized: Only managers can archive tasks"):
        await ArchiveService(TaskStore(db_session)).archive_task("parent", ctx(users["dev1"]))

    assert await _archived_flags(db_session, "parent") == {"parent": False}


@pytest.mark.asyncio
async def test_archive_outside_hierarchy_is_rejected(db_session, users, family):
    await family(db_session, users)

    with pytest.raises(AuthorizationError):
        await ArchiveService(TaskStore(db_session)).archive_task("parent", ctx(users["hr_admin"]))

    assert await _archived_flags(db_session, "parent", "sub-a") == {"parent": False, "sub-a": False}


@pytest.mark.asyncio
async def test_archive_missing_task(db_session, users):
    with pytest.raises(NotFoundError, match="Task not found"):
        await ArchiveService(TaskStore(db_session)).archive_task("nope", ctx(users["eng_manager"]))


@pytest.mark.asyncio
async def test_archiving_a_subtask_leaves_parent_alone(db_session, users, family):
    await family(db_session, users)

    await ArchiveService(TaskStore(db_session)).archive_task("sub-a", ctx(users["dev_manager"]))

    assert await _archived_flags(db_session, "parent", "sub-a", "sub-b") == {
        "parent": False, "sub-a": True, "sub-b": False,
    }


@pytest.mark.asyncio
async def test_archive_is_monotonic(db_session, users, family):
    await family(db_session, users)
    store = TaskStore(db_session)
    manager = ctx(users["eng_manager"])

    await ArchiveService(store).archive_task("parent", manager)
    again = await ArchiveService(store).archive_task("parent", manager)
    assert again["is_archived"] is True
    assert await _archived_flags(db_session, "parent", "sub-a", "sub-b") == {
        "parent": True, "sub-a": True, "sub-b": True,
    }

    with pytest.raises(InvariantViolation, match="archived"):
        await TaskService(store).update_status("sub-a", "IN_PROGRESS", manager)


@pytest.mark.asyncio
async def test_archive_prunes_collaborators_without_live_project_work(db_session, users):
    u = users
    await make_project(db_session, "proj", creator=u["eng_manager"])
    await make_task(db_session, "parent", owner=u["dev1"], assignees=[u["dev1"]], project_id="proj", due=10)
    await make_task(db_session, "sub", owner=u["dev1"], assignees=[u["support1"]],
                    project_id="proj", parent_task_id="parent", due=5)
    await make_task(db_session, "other", owner=u["dev1"], assignees=[u["dev2"], u["support1"]], project_id="proj")
    for user_id, department_id in (
        ("dev1", "dept-developers"), ("dev2", "dept-developers"), ("support1", "dept-support"),
    ):
        db_session.add(ProjectCollaborator(project_id="proj", user_id=user_id, department_id=department_id))
    await db_session.commit()

    await ArchiveService(TaskStore(db_session)).archive_task("parent", ctx(u["eng_manager"]))

    remaining = (await db_session.execute(
        select(ProjectCollaborator.user_id).where(ProjectCollaborator.project_id == "proj")
    )).scalars().all()
    assert sorted(remaining) == ["dev2", "support1"]
