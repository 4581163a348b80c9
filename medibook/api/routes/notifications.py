"""Notification routes - in-app notification inbox."""

from fastapi import APIRouter, HTTPException

from medibook.api.deps import DBSession
from medibook.schemas.notification import NotificationResponse, UnreadCount
from medibook.services.notification_service import NotificationService

router = APIRouter()


@router.get("/user/{user_id}", response_model=list[NotificationResponse])
async def get_user_notifications(
    user_id: str,
    db: DBSession,
    unread_only: bool = False,
    limit: int = 50,
):
    """Get a user's notifications, newest first."""
    service = NotificationService(db)
    return await service.get_notifications_by_user_id(user_id, unread_only, limit)


@router.get("/user/{user_id}/unread-count", response_model=UnreadCount)
async def get_unread_count(user_id: str, db: DBSession):
    """Count a user's unread notifications."""
    service = NotificationService(db)
    return UnreadCount(user_id=user_id, unread=await service.count_unread_notifications(user_id))


@router.patch("/{notification_id}/read", response_model=NotificationResponse)
async def mark_notification_read(notification_id: str, db: DBSession):
    """Mark a notification as read."""
    service = NotificationService(db)
    notification = await service.mark_notification_as_read(notification_id)

    if not notification:
        raise HTTPException(status_code=404, detail="Notification not found")

    return notification
