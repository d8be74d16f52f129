from typing import Optional

from sqlalchemy import select

from app.models.notification import Notification
from app.repositories.base_repository import BaseRepository

class NotificationRepository(BaseRepository[Notification]):
    model = Notification

    async def list_for_user(self, user_id: int, unread_only: bool = False, limit: int = 50) -> list[Notification]:
        query = select(Notification).where(Notification.user_id == user_id)
        if unread_only:
            query = query.where(Notification.read.is_(False))
        result = await self.db.execute(
            query.order_by(Notification.created_at.desc(), Notification.id.desc()).limit(limit)
        )
        return list(result.scalars().all())

    async def mark_read(self, notification_id: int, user_id: int) -> Optional[Notification]:
        notification = await self.get(notification_id)
        if notification is None or notification.user_id != user_id:
            return None
        notification.read = True
        return await self.save(notification)
