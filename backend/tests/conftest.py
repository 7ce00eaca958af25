# tests/conftest.py - Shared test fixtures
#
# Department tree used throughout:
#   Engineering -> {Developers, Support}
#   HR
#   Unrelated
import os
from datetime import datetime, timedelta, timezone

import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker

# Use SQLite for tests
TEST_DB_URL = "sqlite+aiosqlite:///./test.db"
os.environ["DATABASE_URL"] = TEST_DB_URL
os.environ["JWT_SECRET_KEY"] = "test-secret-key-for-unit-tests-only-min-32-chars"
os.environ["ENVIRONMENT"] = "test"
os.environ["EMAIL_API_URL"] = ""

from models import (  # noqa: E402
    Base, Department, UserProfile, UserRole, Project, Task, TaskAssignment, TaskStatus,
)
from auth import UserContext, create_access_token  # noqa: E402
from database import get_db_session  # noqa: E402
from main import app  # noqa: E402


@pytest_asyncio.fixture(scope="function")
async def db_engine():
    engine = create_async_engine(TEST_DB_URL, echo=False)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest_asyncio.fixture(scope="function")
async def db_session(db_engine):
    session_factory = async_sessionmaker(db_engine, class_=AsyncSession, expire_on_commit=False)
    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture(scope="function")
async def client(db_engine):
    """HTTP test client with overridden DB dependency"""
    session_factory = async_sessionmaker(db_engine, class_=AsyncSession, expire_on_commit=False)

    async def override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db_session] = override_get_db
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()


@pytest_asyncio.fixture
async def departments(db_session):
    """Engineering with two children, plus HR and an unrelated root"""
    engineering = Department(id="dept-engineering", name="Engineering")
    developers = Department(id="dept-developers", name="Developers", parent_id="dept-engineering")
    support = Department(id="dept-support", name="Support", parent_id="dept-engineering")
    hr = Department(id="dept-hr", name="HR")
    unrelated = Department(id="dept-unrelated", name="Unrelated")
    db_session.add_all([engineering, developers, support, hr, unrelated])
    await db_session.commit()
    return {
        "engineering": engineering,
        "developers": developers,
        "support": support,
        "hr": hr,
        "unrelated": unrelated,
    }


def _profile(user_id, name, role, department_id, **kwargs):
    return UserProfile(
        id=user_id,
        email=f"{user_id}@example.com",
        name=name,
        role=role,
        department_id=department_id,
        **kwargs,
    )


@pytest_asyncio.fixture
async def users(db_session, departments):
    """One user per interesting position in the tree"""
    people = {
        "eng_manager": _profile("eng-manager", "Erin Manager", UserRole.MANAGER, "dept-engineering"),
        "dev_manager": _profile("dev-manager", "Dana Lead", UserRole.MANAGER, "dept-developers"),
        "dev1": _profile("dev1", "Dev One", UserRole.STAFF, "dept-developers"),
        "dev2": _profile("dev2", "Dev Two", UserRole.STAFF, "dept-developers"),
        "support1": _profile("support1", "Sam Support", UserRole.STAFF, "dept-support"),
        "hr_admin": _profile("hr-admin", "Harper Admin", UserRole.HR_ADMIN, "dept-hr"),
        "outsider": _profile("outsider", "Olly Outsider", UserRole.STAFF, "dept-unrelated"),
        "inactive": _profile("inactive", "Ina Gone", UserRole.STAFF, "dept-developers", is_active=False),
    }
    db_session.add_all(people.values())
    await db_session.commit()
    return people


def ctx(user: UserProfile) -> UserContext:
    return UserContext(user_id=user.id, role=user.role, department_id=user.department_id)


def due_in(days: int) -> datetime:
    return datetime.now(timezone.utc) + timedelta(days=days)


async def make_task(
    session,
    task_id,
    *,
    owner,
    department_id=None,
    assignees=(),
    due=7,
    parent_task_id=None,
    project_id=None,
    status=TaskStatus.TO_DO,
    is_archived=False,
):
    """Insert a task directly, bypassing the service validations"""
    task = Task(
        id=task_id,
        title=task_id,
        description=f"{task_id} description",
        priority=5,
        due_date=due_in(due),
        status=status,
        owner_id=owner.id,
        department_id=department_id or owner.department_id,
        parent_task_id=parent_task_id,
        project_id=project_id,
        is_archived=is_archived,
    )
    session.add(task)
    assigned_at = datetime.now(timezone.utc)
    for offset, user in enumerate(assignees):
        session.add(TaskAssignment(
            task_id=task_id,
            user_id=user.id,
            assigned_by_id=owner.id,
            assigned_at=assigned_at + timedelta(seconds=offset),
        ))
    await session.commit()
    return task


async def make_project(session, project_id, *, creator, department_id=None, name=None, is_archived=False):
    project = Project(
        id=project_id,
        name=name or project_id,
        department_id=department_id or creator.department_id,
        creator_id=creator.id,
        is_archived=is_archived,
    )
    session.add(project)
    await session.commit()
    return project


def get_auth_headers(user: UserProfile) -> dict:
    """Generate auth headers for a user"""
    token = create_access_token(user.id, email=user.email)
    return {"Authorization": f"Bearer {token}"}
