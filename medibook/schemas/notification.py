from pydantic import BaseModel, Field
from datetime import datetime


class NotificationCreate(BaseModel):
    """Schema for creating a notification."""
    user_id: str = Field(..., description="Doctor ID or Patient ID")
    user_role: str = Field("doctor", description="patient or doctor")
    type: str = Field(..., description="reminder, appointment, system, ...")
    title: str
    message: str
    related_id: str | None = Field(None, description="Appointment ID or other related record")


class NotificationResponse(NotificationCreate):
    """Schema for notification response."""
    id: str
    is_read: bool
    created_at: datetime

    class Config:
        from_attributes = True


class UnreadCount(BaseModel):
    user_id: str
    unread: int
