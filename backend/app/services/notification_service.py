"""
Database-backed notification emitter (in-app notifications).

Delivery over push, socket or email is a separate channel's concern; this
emitter writes the notification row that the client UI polls.
"""

from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import NotFoundException
from app.core.logging import get_logger
from app.models.notification import Notification
from app.repositories.notification_repository import NotificationRepository
from app.services.interfaces.notifier import Notifier

logger = get_logger(__name__)


class DatabaseNotifier(Notifier):
    def __init__(self, db: AsyncSession):
        self.notifications = NotificationRepository(db)

    async def notify(self, kind: str, recipient_id: int, payload: dict[str, Any]) -> None:
        notification = await self.notifications.add(
            Notification(
                user_id=recipient_id,
                kind=kind,
                title=payload["title"],
                message=payload["message"],
                link=payload.get("link"),
                payload=payload.get("data", {}),
            )
        )
        logger.info(
            "notification_created",
            notification_id=notification.id,
            kind=kind,
            recipient_id=recipient_id,
        )


async def list_notifications(db: AsyncSession, user_id: int, unread_only: bool = False) -> list[Notification]:
    return await NotificationRepository(db).list_for_user(user_id, unread_only=unread_only)


async def mark_notification_read(db: AsyncSession, notification_id: int, user_id: int) -> Notification:
    notification = await NotificationRepository(db).mark_read(notification_id, user_id)
    if notification is None:
        raise NotFoundException("Notification not found")
    return notification
