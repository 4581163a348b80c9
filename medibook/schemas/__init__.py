from medibook.schemas.appointment import (
    AvailableSlot,
    BookingRequest,
    AppointmentCreate,
    AppointmentStatusUpdate,
    AppointmentReschedule,
    AppointmentResponse,
    AppointmentCount,
    BookingResult,
    PaymentInfo,
    RescheduleCheck,
    SlotAvailability,
    ValidationResult,
)
from medibook.schemas.notification import NotificationCreate, NotificationResponse, UnreadCount

__all__ = [
    "AvailableSlot",
    "BookingRequest",
    "AppointmentCreate",
    "AppointmentStatusUpdate",
    "AppointmentReschedule",
    "AppointmentResponse",
    "AppointmentCount",
    "BookingResult",
    "PaymentInfo",
    "RescheduleCheck",
    "SlotAvailability",
    "ValidationResult",
    "NotificationCreate",
    "NotificationResponse",
    "UnreadCount",
]
