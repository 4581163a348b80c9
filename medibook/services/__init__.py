"""Services package - Business logic layer."""

from medibook.services.appointment_service import AppointmentService
from medibook.services.booking_validator import ValidationResult, validate_booking
from medibook.services.notification_service import NotificationService
from medibook.services.reminder_scheduler import ReminderScheduler, ReminderRunResult

__all__ = [
    "AppointmentService",
    "NotificationService",
    "ReminderScheduler",
    "ReminderRunResult",
    "ValidationResult",
    "validate_booking",
]
