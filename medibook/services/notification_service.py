"""Notification service - in-app notifications for doctors and patients."""

import logging

from sqlalchemy import select, func, and_
from sqlalchemy.ext.asyncio import AsyncSession

from medibook.models.notification import Notification
from medibook.schemas.notification import NotificationCreate

logger = logging.getLogger(__name__)


class NotificationService:
    """Service class for notification operations."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def create_notification(self, notification_data: NotificationCreate) -> Notification:
        """Store a notification."""
        notification = Notification(**notification_data.model_dump())
        self.db.add(notification)
        await self.db.flush()
        await self.db.refresh(notification)
        return notification

    async def dispatch(
        self,
        user_id: str,
        role: str,
        title: str,
        message: str,
        related_id: str | None = None,
        type: str = "reminder",
    ) -> Notification:
        """Deliver a notification in-app.

        Email delivery lives in a separate service; it is only logged here.
        """
        notification = await self.create_notification(
            NotificationCreate(
                user_id=user_id,
                user_role=role,
                type=type,
                title=title,
                message=message,
                related_id=related_id,
            )
        )
        logger.debug("Email delivery for notification %s left to mail service", notification.id)
        return notification

    async def get_notifications_by_user_id(
        self, user_id: str, unread_only: bool = False, limit: int = 50
    ) -> list[Notification]:
        """Get a user's notifications, newest first."""
        query = select(Notification).where(Notification.user_id == user_id)

        if unread_only:
            query = query.where(Notification.is_read.is_(False))

        result = await self.db.execute(
            query.order_by(Notification.created_at.desc()).limit(limit)
        )
        return list(result.scalars().all())

    async def mark_notification_as_read(self, notification_id: str) -> Notification | None:
        """Mark a notification as read."""
        notification = await self.db.get(Notification, notification_id)
        if not notification:
            return None

        notification.is_read = True
        await self.db.flush()
        await self.db.refresh(notification)
        return notification

    async def count_unread_notifications(self, user_id: str) -> int:
        result = await self.db.execute(
            select(func.count())
            .select_from(Notification)
            .where(
                and_(
                    Notification.user_id == user_id,
                    Notification.is_read.is_(False),
                )
            )
        )
        return result.scalar_one()
