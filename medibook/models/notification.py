import uuid
from datetime import datetime
from sqlalchemy import String, DateTime, Text, Boolean
from sqlalchemy.orm import Mapped, mapped_column
from medibook.database import Base


def generate_notification_id() -> str:
    return f"notif_{uuid.uuid4().hex}"


class Notification(Base):
    """In-app notification for a doctor or patient."""

    __tablename__ = "notifications"

    id: Mapped[str] = mapped_column(
        String(40),
        primary_key=True,
        default=generate_notification_id,
    )
    user_id: Mapped[str] = mapped_column(
        String(64),
        nullable=False,
        index=True,
    )
    user_role: Mapped[str] = mapped_column(String(20), default="doctor")
    type: Mapped[str] = mapped_column(String(30), nullable=False)
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    message: Mapped[str] = mapped_column(Text, nullable=False)
    related_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    is_read: Mapped[bool] = mapped_column(Boolean, default=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime,
        default=datetime.utcnow,
    )

    def __repr__(self) -> str:
        return f"<Notification {self.user_role}:{self.user_id} {self.type}>"
