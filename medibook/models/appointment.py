import uuid
from datetime import datetime, date, time
from enum import Enum
from sqlalchemy import String, DateTime, Date, Time, Text, Integer, Boolean, Index, text
from sqlalchemy.orm import Mapped, mapped_column
from medibook.database import Base


class AppointmentStatus(str, Enum):
    """Appointment status enum."""
    SCHEDULED = "scheduled"
    CONFIRMED = "confirmed"
    PENDING = "pending"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    NO_SHOW = "no-show"


class PaymentStatus(str, Enum):
    """Payment status enum (written by the checkout service)."""
    PENDING = "pending"
    PAID = "paid"
    FAILED = "failed"


# Appointments in these states release their slot
INACTIVE_STATUSES = (AppointmentStatus.CANCELLED.value, AppointmentStatus.NO_SHOW.value)

# Statuses the reminder scheduler notifies for
REMINDABLE_STATUSES = (AppointmentStatus.SCHEDULED.value, AppointmentStatus.CONFIRMED.value)

_ACTIVE_SLOT_WHERE = text("status NOT IN ('cancelled', 'no-show')")


def generate_appointment_id() -> str:
    return f"apt_{uuid.uuid4().hex}"


class Appointment(Base):
    """Appointment model."""

    __tablename__ = "appointments"

    id: Mapped[str] = mapped_column(
        String(40),
        primary_key=True,
        default=generate_appointment_id,
    )

    # Participants
    doctor_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    doctor_name: Mapped[str | None] = mapped_column(String(100), nullable=True)
    doctor_specialization: Mapped[str | None] = mapped_column(String(100), nullable=True)
    patient_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    patient_name: Mapped[str | None] = mapped_column(String(100), nullable=True)
    patient_email: Mapped[str | None] = mapped_column(String(255), nullable=True)
    patient_phone: Mapped[str | None] = mapped_column(String(20), nullable=True)

    # Scheduling
    appointment_date: Mapped[date] = mapped_column(Date, nullable=False)
    appointment_time: Mapped[time] = mapped_column(Time, nullable=False)
    duration_minutes: Mapped[int] = mapped_column(Integer, default=30)
    status: Mapped[str] = mapped_column(
        String(20),
        default=AppointmentStatus.SCHEDULED.value,
        index=True,
    )

    # Booking details
    reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    type: Mapped[str] = mapped_column(String(30), default="consultation")
    location: Mapped[str | None] = mapped_column(String(255), nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Payment sub-record
    payment_status: Mapped[str] = mapped_column(
        String(20),
        default=PaymentStatus.PENDING.value,
    )
    payment_method: Mapped[str | None] = mapped_column(String(30), nullable=True)
    payment_transaction_id: Mapped[str | None] = mapped_column(String(100), nullable=True)
    payment_timestamp: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)

    # Reminder flags - set once, cleared only on reschedule
    patient_reminder_sent: Mapped[bool] = mapped_column(Boolean, default=False)
    doctor_reminder_sent: Mapped[bool] = mapped_column(Boolean, default=False)

    # Cancellation / reschedule audit
    cancelled_by: Mapped[str | None] = mapped_column(String(64), nullable=True)
    cancellation_reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    cancelled_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    previous_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    previous_time: Mapped[time | None] = mapped_column(Time, nullable=True)
    rescheduled_by: Mapped[str | None] = mapped_column(String(64), nullable=True)
    rescheduled_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime,
        default=datetime.utcnow,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime,
        default=datetime.utcnow,
        onupdate=datetime.utcnow,
    )

    # Prevent double-booking: one active appointment per doctor/date/time
    __table_args__ = (
        Index(
            "uq_active_doctor_slot",
            "doctor_id",
            "appointment_date",
            "appointment_time",
            unique=True,
            postgresql_where=_ACTIVE_SLOT_WHERE,
            sqlite_where=_ACTIVE_SLOT_WHERE,
        ),
        Index("ix_appointments_doctor_date", "doctor_id", "appointment_date"),
    )

    @property
    def payment(self) -> dict:
        return {
            "status": self.payment_status,
            "method": self.payment_method,
            "transaction_id": self.payment_transaction_id,
            "timestamp": self.payment_timestamp,
        }

    @property
    def is_active(self) -> bool:
        return self.status not in INACTIVE_STATUSES

    def __repr__(self) -> str:
        return f"<Appointment {self.doctor_id} {self.appointment_date} {self.appointment_time}>"
