"""Tests for task creation and mutation rules."""
import pytest
from sqlalchemy import select

from errors import AuthorizationError, InvariantViolation, NotFoundError, ValidationError
from models import (
    LogAction, Notification, NotificationType, ProjectCollaborator, TaskAssignment, TaskLog, TaskStatus,
)
from store import TaskStore
from task_service import TaskService
from tests.conftest import ctx, due_in, make_project, make_task


def _new_task(**overrides):
    data = {
        "title": "Write report",
        "description": "Quarterly numbers",
        "priority": 5,
        "due_date": due_in(7),
        "assignee_ids": ["dev1"],
    }
    data.update(overrides)
    return data


@pytest.mark.asyncio
async def test_create_task_records_everything(db_session, users):
    service = TaskService(TaskStore(db_session))
    record = await service.create_task(
        ctx(users["dev1"]),
        **_new_task(assignee_ids=["dev1", "dev2", "dev1"], tags=["q3", "finance", "q3"]),
    )

    assert record["department_id"] == "dept-developers"
    assert record["owner_id"] == "dev1"
    assert record["status"] == "TO_DO"
    assert [a["id"] for a in record["assignees"]] == ["dev1", "dev2"]
    assert sorted(record["tags"]) == ["finance", "q3"]
    assert record["can_edit"] is True

    logs = (await db_session.execute(select(TaskLog).where(TaskLog.task_id == record["id"]))).scalars().all()
    assert [log.action for log in logs] == [LogAction.CREATED]

    notified = (await db_session.execute(
        select(Notification.user_id).where(Notification.type == NotificationType.TASK_ASSIGNED)
    )).scalars().all()
    assert notified == ["dev2"]


@pytest.mark.asyncio
@pytest.mark.parametrize("overrides,message", [
    ({"title": "  "}, "Title is required"),
    ({"priority": 11}, "Priority must be between 1 and 10"),
    ({"priority": 0}, "Priority must be between 1 and 10"),
    ({"assignee_ids": []}, "At least one assignee is required"),
    ({"assignee_ids": ["dev1", "dev2", "support1", "eng-manager", "hr-admin", "outsider"]}, "Maximum 5 assignees"),
    ({"assignee_ids": ["inactive"]}, "One or more assignees are inactive"),
])
async def test_create_task_validation(db_session, users, overrides, message):
    service = TaskService(TaskStore(db_session))
    with pytest.raises(ValidationError, match=message):
        await service.create_task(ctx(users["dev1"]), **_new_task(**overrides))


@pytest.mark.asyncio
async def test_create_task_missing_references(db_session, users):
    service = TaskService(TaskStore(db_session))
    with pytest.raises(NotFoundError, match="One or more assignees not found"):
        await service.create_task(ctx(users["dev1"]), **_new_task(assignee_ids=["ghost"]))
    with pytest.raises(NotFoundError, match="Project not found"):
        await service.create_task(ctx(users["dev1"]), **_new_task(project_id="nope"))
    with pytest.raises(NotFoundError, match="Parent task not found"):
        await service.create_task(ctx(users["dev1"]), **_new_task(parent_task_id="nope"))


@pytest.mark.asyncio
async def test_subtask_depth_and_due_date(db_session, users):
    u = users
    await make_project(db_session, "proj", creator=u["dev1"])
    await make_task(db_session, "parent", owner=u["dev1"], assignees=[u["dev1"]], due=10, project_id="proj")
    await make_task(db_session, "child", owner=u["dev1"], assignees=[u["dev1"]], due=5, parent_task_id="parent")
    service = TaskService(TaskStore(db_session))
    staff = ctx(u["dev1"])

    with pytest.raises(ValidationError, match="Maximum subtask depth is 2 levels"):
        await service.create_task(staff, **_new_task(parent_task_id="child", due_date=due_in(1)))
    with pytest.raises(ValidationError, match="Subtask due date cannot be after"):
        await service.create_task(staff, **_new_task(parent_task_id="parent", due_date=due_in(20)))

    record = await service.create_task(staff, **_new_task(parent_task_id="parent", due_date=due_in(3)))
    assert record["parent_task_id"] == "parent"
    assert record["project_id"] == "proj"


@pytest.mark.asyncio
async def test_parent_due_date_cannot_precede_subtasks(db_session, users):
    u = users
    await make_task(db_session, "parent", owner=u["dev1"], assignees=[u["dev1"]], due=10)
    await make_task(db_session, "child", owner=u["dev1"], assignees=[u["dev1"]], due=8, parent_task_id="parent")
    service = TaskService(TaskStore(db_session))

    with pytest.raises(ValidationError, match="Parent task due date cannot be before"):
        await service.update_task("parent", ctx(u["dev1"]), due_date=due_in(2))
    with pytest.raises(ValidationError, match="Subtask due date cannot be after"):
        await service.update_task("child", ctx(u["dev1"]), due_date=due_in(12))

    record = await service.update_task("parent", ctx(u["dev1"]), due_date=due_in(9), title="Renamed")
    assert record["title"] == "Renamed"


@pytest.mark.asyncio
async def test_update_requires_edit_rights(db_session, users):
    u = users
    await make_task(db_session, "t", owner=u["dev1"], assignees=[u["dev1"]])
    service = TaskService(TaskStore(db_session))

    with pytest.raises(AuthorizationError):
        await service.update_task("t", ctx(u["dev2"]), title="Nope")
    record = await service.update_task("t", ctx(u["eng_manager"]), priority=9)
    assert record["priority"] == 9

    updates = (await db_session.execute(
        select(Notification).where(Notification.type == NotificationType.TASK_UPDATED)
    )).scalars().all()
    assert [n.user_id for n in updates] == ["dev1"]


@pytest.mark.asyncio
async def test_status_change_stamps_start_date_once(db_session, users):
    u = users
    await make_task(db_session, "t", owner=u["dev1"], assignees=[u["dev1"]])
    service = TaskService(TaskStore(db_session))
    staff = ctx(u["dev1"])

    first = await service.update_status("t", "IN_PROGRESS", staff)
    assert first["status"] == "IN_PROGRESS"
    started = first["start_date"]
    assert started is not None

    await service.update_status("t", TaskStatus.BLOCKED, staff)
    again = await service.update_status("t", TaskStatus.IN_PROGRESS, staff)
    assert again["start_date"] == started

    with pytest.raises(ValidationError, match="Invalid status"):
        await service.update_status("t", "DONE", staff)


@pytest.mark.asyncio
async def test_assignee_limits(db_session, users):
    u = users
    await make_task(db_session, "t", owner=u["eng_manager"],
                    assignees=[u["dev1"], u["dev2"], u["support1"], u["dev_manager"], u["eng_manager"]])
    service = TaskService(TaskStore(db_session))
    manager = ctx(u["eng_manager"])

    with pytest.raises(ValidationError, match="Maximum 5 assignees"):
        await service.add_assignee("t", "outsider", manager)
    with pytest.raises(ValidationError, match="already assigned"):
        await service.add_assignee("t", "dev1", manager)


@pytest.mark.asyncio
async def test_add_assignee_validates_profile(db_session, users):
    u = users
    await make_task(db_session, "t", owner=u["dev1"], assignees=[u["dev1"]])
    service = TaskService(TaskStore(db_session))

    with pytest.raises(NotFoundError, match="Assignee not found"):
        await service.add_assignee("t", "ghost", ctx(u["dev1"]))
    with pytest.raises(ValidationError, match="Assignee is inactive"):
        await service.add_assignee("t", "inactive", ctx(u["dev1"]))

    record = await service.add_assignee("t", "dev2", ctx(u["dev1"]))
    assert {a["id"] for a in record["assignees"]} == {"dev1", "dev2"}


@pytest.mark.asyncio
async def test_remove_assignee_rules(db_session, users):
    u = users
    await make_task(db_session, "pair", owner=u["dev1"], assignees=[u["dev1"], u["dev2"]])
    await make_task(db_session, "solo", owner=u["dev1"], assignees=[u["dev1"]])
    service = TaskService(TaskStore(db_session))

    with pytest.raises(AuthorizationError, match="Unauthorized: Only managers can remove assignees"):
        await service.remove_assignee("pair", "dev2", ctx(u["dev1"]))
    with pytest.raises(InvariantViolation, match="must have at least one assignee"):
        await service.remove_assignee("solo", "dev1", ctx(u["eng_manager"]))

    record = await service.remove_assignee("pair", "dev2", ctx(u["eng_manager"]))
    assert [a["id"] for a in record["assignees"]] == ["dev1"]

    removed = (await db_session.execute(
        select(Notification).where(Notification.type == NotificationType.ASSIGNEE_REMOVED)
    )).scalar_one()
    assert removed.user_id == "dev2"


@pytest.mark.asyncio
async def test_comments(db_session, users):
    u = users
    await make_task(db_session, "t", owner=u["dev1"], assignees=[u["dev1"], u["dev2"]])
    service = TaskService(TaskStore(db_session))

    comment = await service.add_comment("t", "Looks good", ctx(u["dev2"]))
    assert comment["content"] == "Looks good"

    with pytest.raises(AuthorizationError, match="Only the comment author"):
        await service.update_comment(comment["id"], "Edited", ctx(u["dev1"]))
    edited = await service.update_comment(comment["id"], "Edited", ctx(u["dev2"]))
    assert edited["content"] == "Edited"

    with pytest.raises(ValidationError, match="cannot be empty"):
        await service.add_comment("t", "   ", ctx(u["dev1"]))
    with pytest.raises(AuthorizationError):
        await service.add_comment("t", "Hi", ctx(u["outsider"]))

    notified = (await db_session.execute(
        select(Notification.user_id).where(Notification.type == NotificationType.COMMENT_ADDED)
    )).scalars().all()
    assert notified == ["dev1"]


@pytest.mark.asyncio
async def test_archived_task_rejects_mutation(db_session, users):
    u = users
    await make_task(db_session, "t", owner=u["dev1"], assignees=[u["dev1"]], is_archived=True)
    service = TaskService(TaskStore(db_session))

    with pytest.raises(InvariantViolation, match="Cannot modify an archived task"):
        await service.update_task("t", ctx(u["dev1"]), title="x")
    with pytest.raises(InvariantViolation, match="Cannot modify an archived task"):
        await service.add_comment("t", "x", ctx(u["dev1"]))


async def _collaborator_ids(db_session, project_id):
    result = await db_session.execute(
        select(ProjectCollaborator.user_id).where(ProjectCollaborator.project_id == project_id)
    )
    return sorted(result.scalars().all())


@pytest.mark.asyncio
async def test_removing_last_project_assignment_drops_collaborator(db_session, users):
    u = users
    await make_project(db_session, "proj", creator=u["eng_manager"])
    service = TaskService(TaskStore(db_session))
    manager = ctx(u["eng_manager"])
    first = await service.create_task(manager, **_new_task(assignee_ids=["dev1", "dev2"], project_id="proj"))
    second = await service.create_task(
        manager, **_new_task(title="Follow-up", assignee_ids=["dev1", "dev2"], project_id="proj"),
    )

    await service.remove_assignee(first["id"], "dev1", manager)
    assert await _collaborator_ids(db_session, "proj") == ["dev1", "dev2"]

    await service.remove_assignee(second["id"], "dev1", manager)
    assert await _collaborator_ids(db_session, "proj") == ["dev2"]

    await service.add_assignee(first["id"], "dev1", manager)
    assert await _collaborator_ids(db_session, "proj") == ["dev1", "dev2"]
    joined = (await db_session.execute(
        select(Notification).where(
            Notification.user_id == "dev1",
            Notification.type == NotificationType.PROJECT_COLLABORATION_ADDED,
        )
    )).scalars().all()
    assert len(joined) == 2


@pytest.mark.asyncio
async def test_assignee_floor_is_checked_on_the_locked_row(db_session, users, monkeypatch):
    u = users
    await make_task(db_session, "pair", owner=u["dev1"], assignees=[u["dev1"], u["dev2"]])
    store = TaskStore(db_session)
    read_task = store.find_task_by_id
    locked = []

    async def read_after_competing_removal(task_id, for_update=False):
        if for_update:
            locked.append(task_id)
            await store.delete_task_assignment(task_id, "dev2")
        return await read_task(task_id, for_update=for_update)

    monkeypatch.setattr(store, "find_task_by_id", read_after_competing_removal)

    with pytest.raises(InvariantViolation, match="must have at least one assignee"):
        await TaskService(store).remove_assignee("pair", "dev1", ctx(u["eng_manager"]))

    assert locked == ["pair"]
    assignees = (await db_session.execute(
        select(TaskAssignment.user_id).where(TaskAssignment.task_id == "pair")
    )).scalars().all()
    assert sorted(assignees) == ["dev1", "dev2"]
