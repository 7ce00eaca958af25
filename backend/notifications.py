# notifications.py - In-app notifications plus email hand-off
# Callers notify once per logical event, after the triggering commit.
# Email delivery is best effort: failures are logged, never raised.

import os
import logging
from typing import Optional

import httpx

from models import Notification, NotificationType
from store import TaskStore

logger = logging.getLogger("taskmgr.notifications")

EMAIL_API_URL = os.getenv("EMAIL_API_URL", "")
EMAIL_API_KEY = os.getenv("EMAIL_API_KEY", "")
EMAIL_FROM = os.getenv("EMAIL_FROM", "tasks@localhost")


class EmailDispatcher:
    """Posts messages to an HTTP email API; logs and skips when none is configured"""

    def __init__(
        self,
        api_url: Optional[str] = None,
        api_key: Optional[str] = None,
        sender: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.api_url = EMAIL_API_URL if api_url is None else api_url
        self.api_key = EMAIL_API_KEY if api_key is None else api_key
        self.sender = sender or EMAIL_FROM
        self.transport = transport

    @property
    def enabled(self) -> bool:
        return bool(self.api_url)

    async def send(self, to: str, subject: str, body: str) -> bool:
        if not self.enabled:
            logger.debug(f"Email disabled; skipped '{subject}' to {to}")
            return False

        headers = {"Authorization": f"Bearer {self.api_key}"} if self.api_key else {}
        payload = {"from": self.sender, "to": to, "subject": subject, "text": body}
        try:
            async with httpx.AsyncClient(timeout=10, transport=self.transport) as client:
                resp = await client.post(self.api_url, json=payload, headers=headers)
                resp.raise_for_status()
        except httpx.HTTPError:
            logger.warning(f"Email delivery to {to} failed", exc_info=True)
            return False
        return True


class NotificationDispatcher:
    def __init__(self, store: TaskStore, email: Optional[EmailDispatcher] = None):
        self.store = store
        self.email = email or EmailDispatcher()

    async def notify(
        self,
        user_id: str,
        type: NotificationType,
        title: str,
        message: str,
        task_id: Optional[str] = None,
    ) -> Notification:
        session = self.store.session
        notification = Notification(
            user_id=user_id,
            type=type,
            title=title,
            message=message,
            task_id=task_id,
        )
        session.add(notification)
        await session.commit()

        profile = await self.store.find_user_profile(user_id)
        if profile is not None and profile.email:
            await self.email.send(profile.email, title, message)
        return notification
