"""Booking validator - rejects malformed booking requests before any write."""

from datetime import datetime

from medibook.config import settings
from medibook.schemas.appointment import BookingRequest, ValidationResult
from medibook.utils.clock import now_local
from medibook.utils.timeslots import (
    format_hour,
    is_appointment_in_past,
    is_valid_date,
    is_valid_time,
    is_within_working_hours,
)


def validate_booking(
    data: BookingRequest,
    now: datetime | None = None,
    start_hour: int | None = None,
    end_hour: int | None = None,
) -> ValidationResult:
    """Check a booking request and collect every violated rule.

    The past-date check needs the caller's real wall-clock time: a slot
    earlier today is rejected just like yesterday's.
    """
    now = now or now_local()
    start_hour = settings.working_start_hour if start_hour is None else start_hour
    end_hour = settings.working_end_hour if end_hour is None else end_hour
    errors = []

    if not data.doctor_id:
        errors.append("Doctor ID is required")

    if not data.patient_id:
        errors.append("Patient ID is required")

    appointment_time = data.appointment_time
    time_is_valid = is_valid_time(appointment_time)

    if not data.appointment_date:
        errors.append("Date is required")
    elif not is_valid_date(data.appointment_date):
        errors.append("Invalid date format. Use YYYY-MM-DD")
    elif time_is_valid or not appointment_time:
        if is_appointment_in_past(data.appointment_date, appointment_time or "00:00", now):
            errors.append("Cannot book appointments in the past")

    if not appointment_time:
        errors.append("Time is required")
    elif not time_is_valid:
        errors.append("Invalid time format. Use HH:MM")
    elif not is_within_working_hours(appointment_time, start_hour, end_hour):
        errors.append(
            f"Time must be within working hours ({format_hour(start_hour)} - {format_hour(end_hour)})"
        )

    return ValidationResult(valid=not errors, errors=errors)
