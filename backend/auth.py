# auth.py - Request identity for the task manager
# Features:
# - Verifies bearer JWTs issued by the external identity provider (HS256, sub = user id)
# - Resolves the per-request UserContext {user_id, role, department_id} from the user profile
# - Mints tokens in the same format for tests and local tooling
#
# Credentials, login and password flows belong to the identity provider.

import os
import uuid
import secrets
import logging
from datetime import datetime, timedelta, timezone
from typing import Optional, Dict, Any

from jose import jwt, JWTError, ExpiredSignatureError
from fastapi import Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from database import get_db_session
from errors import AuthenticationError, NotFoundError
from models import UserRole
from store import TaskStore

logger = logging.getLogger("taskmgr.auth")

# ============================================================
# CONFIGURATION
# ============================================================

SECRET_KEY = os.getenv("JWT_SECRET_KEY", "")
if not SECRET_KEY or SECRET_KEY == "change-this-to-a-secure-random-key-in-production":
    SECRET_KEY = secrets.token_urlsafe(64)
    logger.warning(
        "JWT_SECRET_KEY not set or insecure. Generated ephemeral key. "
        "Set JWT_SECRET_KEY in production!"
    )

ALGORITHM = os.getenv("JWT_ALGORITHM", "HS256")
ACCESS_TOKEN_EXPIRE_MINUTES = int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", "30"))

security = HTTPBearer(auto_error=False)


# ============================================================
# PYDANTIC SCHEMAS
# ============================================================

class UserContext(BaseModel):
    """Identity and role of the acting user for one request; never persisted"""
    user_id: str
    role: UserRole
    department_id: str


# ============================================================
# TOKENS
# ============================================================

def create_access_token(user_id: str, expires_delta: Optional[timedelta] = None, **claims: Any) -> str:
    now = datetime.now(timezone.utc)
    to_encode: Dict[str, Any] = dict(claims)
    to_encode.update({
        "sub": user_id,
        "exp": now + (expires_delta or timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES)),
        "iat": now,
        "type": "access",
        "jti": str(uuid.uuid4()),
    })
    return jwt.encode(to_encode, SECRET_KEY, algorithm=ALGORITHM)


def verify_token(token: str) -> Dict[str, Any]:
    try:
        return jwt.decode(token, SECRET_KEY, algorithms=[ALGORITHM])
    except ExpiredSignatureError:
        raise AuthenticationError("Token expired", code="token_expired")
    except JWTError:
        raise AuthenticationError("Invalid token", code="invalid_token")


# ============================================================
# USER CONTEXT
# ============================================================

async def resolve_user_context(store: TaskStore, user_id: Optional[str]) -> UserContext:
    """Build the UserContext for user_id from its profile.

    Raises AuthenticationError for a blank id and NotFoundError when no active
    profile exists.
    """
    if not user_id or not str(user_id).strip():
        raise AuthenticationError("User not authenticated")

    profile = await store.find_user_profile(user_id)
    if profile is None or not profile.is_active:
        raise NotFoundError("User profile not found")

    return UserContext(
        user_id=profile.id,
        role=profile.role,
        department_id=profile.department_id,
    )


# ============================================================
# FASTAPI DEPENDENCIES
# ============================================================

async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    db: AsyncSession = Depends(get_db_session),
) -> UserContext:
    if credentials is None or not credentials.credentials:
        raise AuthenticationError("User not authenticated")

    payload = verify_token(credentials.credentials)
    if payload.get("type", "access") != "access":
        raise AuthenticationError("Invalid token type", code="invalid_token")

    return await resolve_user_context(TaskStore(db), payload.get("sub"))
