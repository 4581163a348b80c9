from pydantic import BaseModel, Field, computed_field, field_serializer, field_validator
from datetime import datetime, date, time
from medibook.models.appointment import AppointmentStatus
from medibook.utils.timeslots import get_status_message, is_valid_time, to_12_hour, to_24_hour


class AvailableSlot(BaseModel):
    """Schema for a generated slot."""
    time: str = Field(..., description="Slot start (HH:MM, 24-hour)")
    available: bool
    formatted: str = Field(..., description="Human-readable format")


class BookingDetails(BaseModel):
    """Optional display and payment fields carried on a booking."""
    doctor_name: str | None = None
    doctor_specialization: str | None = None
    patient_name: str | None = None
    patient_email: str | None = None
    patient_phone: str | None = None
    reason: str | None = None
    type: str = "consultation"
    location: str | None = None
    notes: str | None = None
    duration_minutes: int | None = Field(None, gt=0, le=480)
    # Written by the checkout service; accepted as initial values only
    payment_status: str | None = None
    payment_method: str | None = None
    payment_transaction_id: str | None = None
    payment_timestamp: datetime | None = None


class BookingRequest(BookingDetails):
    """Raw booking request.

    Identity, date and time are kept as loose strings so the booking
    validator can report every problem at once.
    """
    doctor_id: str | None = None
    patient_id: str | None = None
    appointment_date: str | None = Field(None, description="Appointment date (YYYY-MM-DD)")
    appointment_time: str | None = Field(None, description="Appointment time (HH:MM)")


class AppointmentCreate(BookingDetails):
    """Schema for creating an appointment from a validated request."""
    doctor_id: str = Field(..., min_length=1)
    patient_id: str = Field(..., min_length=1)
    appointment_date: date = Field(..., description="Appointment date (YYYY-MM-DD)")
    appointment_time: time = Field(..., description="Appointment time (HH:MM)")
    status: AppointmentStatus = AppointmentStatus.SCHEDULED


class AppointmentStatusUpdate(BaseModel):
    """Schema for a status transition."""
    status: AppointmentStatus
    notes: str | None = None
    cancellation_reason: str | None = None


class AppointmentReschedule(BaseModel):
    """Schema for moving an appointment to a new slot."""
    appointment_date: date
    appointment_time: str = Field(..., description="New time (HH:MM or H:MM AM/PM)")
    rescheduled_by: str

    @field_validator("appointment_time")
    @classmethod
    def normalize_time(cls, value: str) -> str:
        normalized = to_24_hour(value)
        if not is_valid_time(normalized):
            raise ValueError("Invalid time format. Use HH:MM")
        return normalized


class PaymentInfo(BaseModel):
    """Payment sub-record (read-only here)."""
    status: str
    method: str | None = None
    transaction_id: str | None = None
    timestamp: datetime | None = None


class AppointmentResponse(BaseModel):
    """Schema for appointment response."""
    id: str
    doctor_id: str
    doctor_name: str | None
    doctor_specialization: str | None
    patient_id: str
    patient_name: str | None
    patient_email: str | None
    patient_phone: str | None
    appointment_date: date
    appointment_time: time
    duration_minutes: int
    status: str
    reason: str | None
    type: str
    location: str | None
    notes: str | None
    payment: PaymentInfo
    patient_reminder_sent: bool
    doctor_reminder_sent: bool
    cancelled_by: str | None = None
    cancellation_reason: str | None = None
    previous_date: date | None = None
    previous_time: time | None = None
    rescheduled_by: str | None = None
    created_at: datetime
    updated_at: datetime

    @field_serializer("appointment_time", "previous_time")
    def serialize_time(self, value: time | None) -> str | None:
        return value.strftime("%H:%M") if value is not None else None

    @computed_field
    @property
    def time_display(self) -> str:
        return to_12_hour(self.appointment_time)

    @computed_field
    @property
    def status_message(self) -> str:
        return get_status_message(self.status)

    class Config:
        from_attributes = True


class SlotAvailability(BaseModel):
    """Result of an exact-slot conflict check."""
    available: bool
    conflict: AppointmentResponse | None = None


class ValidationResult(BaseModel):
    """Outcome of booking validation; every violated rule is listed."""
    valid: bool
    errors: list[str] = Field(default_factory=list)


class BookingResult(BaseModel):
    """Outcome of a booking attempt; slot conflicts are values, not errors."""
    can_book: bool
    available: bool = False
    conflict: bool = False
    # Holds another patient's record; never serialized to callers
    conflict_details: AppointmentResponse | None = Field(None, exclude=True)
    suggestions: list[str] = Field(default_factory=list)
    errors: list[str] = Field(default_factory=list)
    message: str = ""
    appointment: AppointmentResponse | None = None


class RescheduleCheck(BaseModel):
    """Whether an appointment may still be moved."""
    can_reschedule: bool
    error: str | None = None


class AppointmentCount(BaseModel):
    doctor_id: str
    start_date: date
    end_date: date
    count: int
