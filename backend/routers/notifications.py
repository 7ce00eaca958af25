# routers/notifications.py - In-app notifications for the calling user
from typing import Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel
from sqlalchemy import select, func, update
from sqlalchemy.ext.asyncio import AsyncSession

from auth import get_current_user, UserContext
from database import get_db_session
from errors import NotFoundError
from models import Notification

router = APIRouter(prefix="/api/v1/notifications", tags=["Notifications"])


# --- Schemas ---

class NotificationOut(BaseModel):
    id: str
    type: str
    title: str
    message: str
    task_id: Optional[str] = None
    is_read: bool
    created_at: str


def _notif_out(n) -> dict:
    return NotificationOut(
        id=n.id,
        type=n.type.value if hasattr(n.type, "value") else str(n.type),
        title=n.title,
        message=n.message,
        task_id=n.task_id,
        is_read=n.is_read,
        created_at=n.created_at.isoformat(),
    ).model_dump()


# ============================================================
# LIST
# ============================================================

@router.get("")
async def list_notifications(
    unread_only: bool = Query(default=False),
    limit: int = Query(default=50, ge=1, le=200),
    offset: int = Query(default=0, ge=0),
    db: AsyncSession = Depends(get_db_session),
    user: UserContext = Depends(get_current_user),
):
    query = select(Notification).where(Notification.user_id == user.user_id)
    if unread_only:
        query = query.where(Notification.is_read.is_(False))
    query = query.order_by(Notification.created_at.desc()).offset(offset).limit(limit)
    result = await db.execute(query)
    return [_notif_out(n) for n in result.scalars().all()]


# ============================================================
# COUNT
# ============================================================

@router.get("/count")
async def notification_count(
    db: AsyncSession = Depends(get_db_session),
    user: UserContext = Depends(get_current_user),
):
    unread = (await db.execute(
        select(func.count(Notification.id)).where(
            Notification.user_id == user.user_id,
            Notification.is_read.is_(False),
        )
    )).scalar() or 0
    return {"unread": unread}


# ============================================================
# MARK READ
# ============================================================

@router.post("/{notification_id}/read")
async def mark_read(
    notification_id: str,
    db: AsyncSession = Depends(get_db_session),
    user: UserContext = Depends(get_current_user),
):
    result = await db.execute(
        select(Notification).where(
            Notification.id == notification_id,
            Notification.user_id == user.user_id,
        )
    )
    notif = result.scalar_one_or_none()
    if not notif:
        raise NotFoundError("Notification not found")
    notif.is_read = True
    await db.commit()
    return {"status": "read"}


@router.post("/read-all")
async def mark_all_read(
    db: AsyncSession = Depends(get_db_session),
    user: UserContext = Depends(get_current_user),
):
    result = await db.execute(
        update(Notification)
        .where(Notification.user_id == user.user_id, Notification.is_read.is_(False))
        .values(is_read=True)
    )
    await db.commit()
    return {"marked": result.rowcount}
