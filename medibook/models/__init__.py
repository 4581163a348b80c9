from medibook.models.appointment import (
    Appointment,
    AppointmentStatus,
    PaymentStatus,
    INACTIVE_STATUSES,
    REMINDABLE_STATUSES,
)
from medibook.models.notification import Notification

__all__ = [
    "Appointment",
    "AppointmentStatus",
    "PaymentStatus",
    "INACTIVE_STATUSES",
    "REMINDABLE_STATUSES",
    "Notification",
]
