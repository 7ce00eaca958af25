"""Tests for bearer-token identity resolution."""
from datetime import timedelta

import pytest

from auth import create_access_token, resolve_user_context, verify_token
from errors import AuthenticationError, NotFoundError
from models import UserRole
from store import TaskStore
from tests.conftest import get_auth_headers


def test_token_round_trip_carries_subject():
    payload = verify_token(create_access_token("dev1"))
    assert payload["sub"] == "dev1"
    assert payload["type"] == "access"


def test_expired_token_rejected():
    token = create_access_token("dev1", expires_delta=timedelta(seconds=-5))
    with pytest.raises(AuthenticationError, match="Token expired"):
        verify_token(token)


@pytest.mark.asyncio
async def test_resolve_user_context(db_session, users):
    store = TaskStore(db_session)
    user = await resolve_user_context(store, "eng-manager")
    assert user.role == UserRole.MANAGER
    assert user.department_id == "dept-engineering"

    with pytest.raises(AuthenticationError, match="User not authenticated"):
        await resolve_user_context(store, "")
    with pytest.raises(NotFoundError, match="User profile not found"):
        await resolve_user_context(store, "ghost")
    with pytest.raises(NotFoundError, match="User profile not found"):
        await resolve_user_context(store, "inactive")


@pytest.mark.asyncio
async def test_missing_bearer_is_401(client, users):
    resp = await client.get("/api/v1/tasks/mine")
    assert resp.status_code == 401
    body = resp.json()
    assert body["detail"] == "User not authenticated"
    assert body["code"] == "unauthenticated"
    assert body["request_id"]


@pytest.mark.asyncio
async def test_garbage_token_is_401(client, users):
    resp = await client.get("/api/v1/tasks/mine", headers={"Authorization": "Bearer not-a-jwt"})
    assert resp.status_code == 401
    assert resp.json()["detail"] == "Invalid token"


@pytest.mark.asyncio
async def test_token_for_unknown_profile_is_404(client, users):
    headers = {"Authorization": f"Bearer {create_access_token('ghost')}"}
    resp = await client.get("/api/v1/tasks/mine", headers=headers)
    assert resp.status_code == 404
    assert resp.json()["detail"] == "User profile not found"


@pytest.mark.asyncio
async def test_request_id_is_echoed(client, users):
    headers = get_auth_headers(users["dev1"])
    headers["X-Request-ID"] = "req-123"
    resp = await client.get("/api/v1/tasks/mine", headers=headers)
    assert resp.status_code == 200
    assert resp.headers["X-Request-ID"] == "req-123"
    assert "X-Response-Time" in resp.headers


@pytest.mark.asyncio
async def test_health(client):
    resp = await client.get("/health")
    assert resp.status_code == 200
    assert resp.json()["database"] == "connected"
