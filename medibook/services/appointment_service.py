"""Appointment service - the persistence boundary for appointments."""

import logging
from datetime import date, time, datetime, timedelta

import logfire
from sqlalchemy import select, and_, func, or_, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from medibook.config import settings
from medibook.models.appointment import (
    Appointment,
    AppointmentStatus,
    INACTIVE_STATUSES,
    REMINDABLE_STATUSES,
)
from medibook.schemas.appointment import (
    AppointmentCreate,
    AppointmentResponse,
    AvailableSlot,
    BookingRequest,
    BookingResult,
    RescheduleCheck,
    SlotAvailability,
)
from medibook.services.booking_validator import validate_booking
from medibook.utils.clock import now_local, today_local
from medibook.utils.slots import generate_time_slots, mark_availability
from medibook.utils.timeslots import (
    format_time,
    minutes_to_time,
    parse_time,
    time_to_minutes,
    to_24_hour,
)

logger = logging.getLogger(__name__)

# Alternative slot search: 15-minute steps, at most ten of them
SUGGESTION_STEP_MINUTES = 15
SUGGESTION_SCAN_STEPS = 10

RESCHEDULE_CUTOFF = timedelta(hours=2)
NON_RESCHEDULABLE_STATUSES = (
    AppointmentStatus.CANCELLED.value,
    AppointmentStatus.COMPLETED.value,
    AppointmentStatus.NO_SHOW.value,
)

# Columns a status update may not touch; slot moves go through reschedule
PROTECTED_FIELDS = {"id", "doctor_id", "patient_id", "appointment_date", "appointment_time", "created_at"}

CONFLICT_MESSAGE = "Time slot already booked. Please choose another time."


class AppointmentService:
    """Service class for appointment operations."""

    def __init__(self, db: AsyncSession):
        self.db = db

    # ==================== AVAILABILITY ====================

    async def get_booked_times(self, doctor_id: str, appointment_date: date) -> set[str]:
        """HH:MM times held by active appointments for a doctor on a day."""
        result = await self.db.execute(
            select(Appointment.appointment_time).where(
                and_(
                    Appointment.doctor_id == doctor_id,
                    Appointment.appointment_date == appointment_date,
                    Appointment.status.not_in(INACTIVE_STATUSES),
                )
            )
        )
        return {format_time(booked) for booked in result.scalars().all()}

    async def get_available_slots(self, doctor_id: str, appointment_date: date) -> list[AvailableSlot]:
        """Generate the day's slots and mark the booked ones."""
        slots = generate_time_slots(
            settings.working_start_hour,
            settings.working_end_hour,
            settings.slot_interval_minutes,
        )
        booked = await self.get_booked_times(doctor_id, appointment_date)
        return mark_availability(slots, booked)

    async def check_slot_availability(
        self,
        doctor_id: str,
        appointment_date: date,
        appointment_time: time,
        exclude_id: str | None = None,
    ) -> SlotAvailability:
        """Look for an active appointment holding this exact slot."""
        query = select(Appointment).where(
            and_(
                Appointment.doctor_id == doctor_id,
                Appointment.appointment_date == appointment_date,
                Appointment.appointment_time == appointment_time,
                Appointment.status.not_in(INACTIVE_STATUSES),
            )
        )

        if exclude_id:
            query = query.where(Appointment.id != exclude_id)

        result = await self.db.execute(query.limit(1))
        conflict = result.scalar_one_or_none()

        return SlotAvailability(
            available=conflict is None,
            conflict=AppointmentResponse.model_validate(conflict) if conflict else None,
        )

    async def get_next_available_slots(
        self,
        doctor_id: str,
        appointment_date: date,
        appointment_time: time,
        count: int = 3,
    ) -> list[str]:
        """Suggest up to `count` open times after a taken one, within working hours."""
        booked = await self.get_booked_times(doctor_id, appointment_date)
        start = time_to_minutes(appointment_time)
        suggestions = []

        for step in range(1, SUGGESTION_SCAN_STEPS + 1):
            if len(suggestions) >= count:
                break
            minutes = start + step * SUGGESTION_STEP_MINUTES
            if not settings.working_start_hour <= minutes // 60 < settings.working_end_hour:
                continue
            candidate = minutes_to_time(minutes)
            if candidate not in booked:
                suggestions.append(candidate)

        return suggestions

    # ==================== BOOKING ====================

    async def create_appointment(self, appointment_data: AppointmentCreate) -> Appointment | None:
        """Insert an appointment, guarded by the active-slot unique index.

        Returns None when another active appointment already holds the slot.
        """
        values = appointment_data.model_dump(exclude_none=True)
        values["status"] = appointment_data.status.value
        values.setdefault("duration_minutes", settings.default_duration_minutes)
        appointment = Appointment(**values)

        try:
            async with self.db.begin_nested():
                self.db.add(appointment)
                await self.db.flush()
        except IntegrityError:
            logger.info(
                "Slot %s %s already held for doctor %s",
                appointment_data.appointment_date,
                format_time(appointment_data.appointment_time),
                appointment_data.doctor_id,
            )
            return None

        await self.db.refresh(appointment)
        return appointment

    async def book_appointment(self, request: BookingRequest, now: datetime | None = None) -> BookingResult:
        """Validate, conflict-check and insert a booking."""
        if request.appointment_time:
            request = request.model_copy(
                update={"appointment_time": to_24_hour(request.appointment_time)}
            )

        validation = validate_booking(request, now=now)
        if not validation.valid:
            return BookingResult(
                can_book=False,
                errors=validation.errors,
                message="Invalid booking request",
            )

        appointment_date = date.fromisoformat(request.appointment_date)
        appointment_time = parse_time(request.appointment_time)

        availability = await self.check_slot_availability(
            request.doctor_id, appointment_date, appointment_time
        )
        if not availability.available:
            return await self._conflict_result(
                request.doctor_id, appointment_date, appointment_time, availability.conflict
            )

        appointment_data = AppointmentCreate(
            **request.model_dump(exclude={"doctor_id", "patient_id", "appointment_date", "appointment_time"}),
            doctor_id=request.doctor_id,
            patient_id=request.patient_id,
            appointment_date=appointment_date,
            appointment_time=appointment_time,
        )
        appointment = await self.create_appointment(appointment_data)

        if appointment is None:
            # Lost the race to a concurrent booking
            availability = await self.check_slot_availability(
                request.doctor_id, appointment_date, appointment_time
            )
            return await self._conflict_result(
                request.doctor_id, appointment_date, appointment_time, availability.conflict
            )

        logfire.info(
            "appointment_booked",
            appointment_id=appointment.id,
            doctor_id=appointment.doctor_id,
            date=str(appointment_date),
            time=format_time(appointment_time),
        )
        return BookingResult(
            can_book=True,
            available=True,
            message="Appointment booked",
            appointment=AppointmentResponse.model_validate(appointment),
        )

    async def get_booking_details(
        self,
        doctor_id: str,
        appointment_date: str,
        appointment_time: str,
        now: datetime | None = None,
    ) -> BookingResult:
        """Dry-run of a booking: validation plus conflict check, no write."""
        appointment_time = to_24_hour(appointment_time)
        validation = validate_booking(
            BookingRequest(
                doctor_id=doctor_id,
                patient_id="temp",
                appointment_date=appointment_date,
                appointment_time=appointment_time,
            ),
            now=now,
        )
        if not validation.valid:
            return BookingResult(can_book=False, errors=validation.errors, message="Invalid booking request")

        slot_date = date.fromisoformat(appointment_date)
        slot_time = parse_time(appointment_time)
        availability = await self.check_slot_availability(doctor_id, slot_date, slot_time)

        if not availability.available:
            return await self._conflict_result(doctor_id, slot_date, slot_time, availability.conflict)

        return BookingResult(can_book=True, available=True, message="Time slot is available")

    async def _conflict_result(
        self,
        doctor_id: str,
        appointment_date: date,
        appointment_time: time,
        conflict: AppointmentResponse | None,
    ) -> BookingResult:
        suggestions = await self.get_next_available_slots(doctor_id, appointment_date, appointment_time, 3)
        return BookingResult(
            can_book=False,
            conflict=True,
            conflict_details=conflict,
            suggestions=suggestions,
            message=CONFLICT_MESSAGE,
        )

    # ==================== LOOKUPS ====================

    async def get_appointment_by_id(self, appointment_id: str) -> Appointment | None:
        """Get an appointment by ID."""
        if not appointment_id:
            return None
        return await self.db.get(Appointment, appointment_id)

    async def get_appointments_by_doctor_id(
        self,
        doctor_id: str,
        status: AppointmentStatus | None = None,
        appointment_date: date | None = None,
    ) -> list[Appointment]:
        """Get all appointments for a doctor, optionally filtered."""
        query = select(Appointment).where(Appointment.doctor_id == doctor_id)

        if status:
            query = query.where(Appointment.status == status.value)
        if appointment_date:
            query = query.where(Appointment.appointment_date == appointment_date)

        query = query.order_by(Appointment.appointment_date, Appointment.appointment_time)

        result = await self.db.execute(query)
        return list(result.scalars().all())

    async def get_appointments_by_patient_id(
        self, patient_id: str, status: AppointmentStatus | None = None
    ) -> list[Appointment]:
        """Get all appointments for a patient."""
        query = select(Appointment).where(Appointment.patient_id == patient_id)

        if status:
            query = query.where(Appointment.status == status.value)

        query = query.order_by(Appointment.appointment_date, Appointment.appointment_time)

        result = await self.db.execute(query)
        return list(result.scalars().all())

    async def get_today_appointments(self, doctor_id: str, today: date | None = None) -> list[Appointment]:
        """Get a doctor's appointments for today, in time order."""
        today = today or today_local()
        result = await self.db.execute(
            select(Appointment)
            .where(
                and_(
                    Appointment.doctor_id == doctor_id,
                    Appointment.appointment_date == today,
                )
            )
            .order_by(Appointment.appointment_time)
        )
        return list(result.scalars().all())

    async def get_doctor_schedule(self, doctor_id: str, start_date: date, end_date: date) -> list[Appointment]:
        """Non-cancelled appointments for a doctor in an inclusive date range."""
        result = await self.db.execute(
            select(Appointment)
            .where(
                and_(
                    Appointment.doctor_id == doctor_id,
                    Appointment.appointment_date >= start_date,
                    Appointment.appointment_date <= end_date,
                    Appointment.status != AppointmentStatus.CANCELLED.value,
                )
            )
            .order_by(Appointment.appointment_date, Appointment.appointment_time)
        )
        return list(result.scalars().all())

    async def count_appointments_by_date_range(self, doctor_id: str, start_date: date, end_date: date) -> int:
        """Count every appointment (any status) for a doctor in an inclusive range."""
        result = await self.db.execute(
            select(func.count())
            .select_from(Appointment)
            .where(
                and_(
                    Appointment.doctor_id == doctor_id,
                    Appointment.appointment_date >= start_date,
                    Appointment.appointment_date <= end_date,
                )
            )
        )
        return result.scalar_one()

    # ==================== STATUS CHANGES ====================

    async def update_appointment_status(
        self,
        appointment_id: str,
        status: AppointmentStatus | str,
        extra: dict | None = None,
    ) -> Appointment | None:
        """Set a new status and merge extra column values.

        Returns None when the appointment does not exist.
        """
        appointment = await self.get_appointment_by_id(appointment_id)
        if not appointment:
            return None

        columns = Appointment.__table__.columns.keys()
        appointment.status = AppointmentStatus(status).value
        for field, value in (extra or {}).items():
            if field in PROTECTED_FIELDS or field not in columns:
                logger.warning("Ignoring field %r on status update of %s", field, appointment_id)
                continue
            setattr(appointment, field, value)

        await self.db.flush()
        await self.db.refresh(appointment)
        return appointment

    async def cancel_appointment(
        self,
        appointment_id: str,
        cancelled_by: str | None = None,
        cancellation_reason: str | None = None,
    ) -> Appointment | None:
        """Cancel an appointment (soft delete by changing status)."""
        return await self.update_appointment_status(
            appointment_id,
            AppointmentStatus.CANCELLED,
            {
                "cancelled_by": cancelled_by,
                "cancellation_reason": cancellation_reason,
                "cancelled_at": datetime.utcnow(),
            },
        )

    async def mark_as_no_show(self, appointment_id: str) -> Appointment | None:
        return await self.update_appointment_status(appointment_id, AppointmentStatus.NO_SHOW)

    async def can_reschedule(self, appointment_id: str, now: datetime | None = None) -> RescheduleCheck:
        """Appointments can move until two hours before they start."""
        appointment = await self.get_appointment_by_id(appointment_id)
        if not appointment:
            return RescheduleCheck(can_reschedule=False, error="Appointment not found")

        now = now or now_local()
        starts_at = datetime.combine(appointment.appointment_date, appointment.appointment_time)
        if starts_at - now < RESCHEDULE_CUTOFF:
            return RescheduleCheck(
                can_reschedule=False,
                error="Cannot reschedule within 2 hours of the appointment time",
            )

        if appointment.status in NON_RESCHEDULABLE_STATUSES:
            return RescheduleCheck(
                can_reschedule=False,
                error=f"Cannot reschedule a {appointment.status} appointment",
            )

        return RescheduleCheck(can_reschedule=True)

    async def reschedule_appointment(
        self,
        appointment_id: str,
        new_date: date,
        new_time: time,
        rescheduled_by: str,
    ) -> BookingResult | None:
        """Move an appointment to a free slot and re-arm its reminders.

        Returns None when the appointment does not exist.
        """
        appointment = await self.get_appointment_by_id(appointment_id)
        if not appointment:
            return None

        availability = await self.check_slot_availability(
            appointment.doctor_id, new_date, new_time, exclude_id=appointment_id
        )
        if not availability.available:
            return await self._conflict_result(appointment.doctor_id, new_date, new_time, availability.conflict)

        try:
            async with self.db.begin_nested():
                appointment.previous_date = appointment.appointment_date
                appointment.previous_time = appointment.appointment_time
                appointment.appointment_date = new_date
                appointment.appointment_time = new_time
                appointment.rescheduled_by = rescheduled_by
                appointment.rescheduled_at = datetime.utcnow()
                appointment.patient_reminder_sent = False
                appointment.doctor_reminder_sent = False
                await self.db.flush()
        except IntegrityError:
            await self.db.refresh(appointment)
            availability = await self.check_slot_availability(
                appointment.doctor_id, new_date, new_time, exclude_id=appointment_id
            )
            return await self._conflict_result(appointment.doctor_id, new_date, new_time, availability.conflict)

        await self.db.refresh(appointment)
        logger.info("Appointment %s moved to %s %s", appointment_id, new_date, format_time(new_time))
        return BookingResult(
            can_book=True,
            available=True,
            message="Appointment rescheduled",
            appointment=AppointmentResponse.model_validate(appointment),
        )

    # ==================== REMINDERS ====================

    async def get_reminder_candidates(self, today: date) -> list[Appointment]:
        """Today's scheduled/confirmed appointments still owing a reminder."""
        result = await self.db.execute(
            select(Appointment)
            .where(
                and_(
                    Appointment.appointment_date == today,
                    Appointment.status.in_(REMINDABLE_STATUSES),
                    or_(
                        Appointment.patient_reminder_sent.is_(False),
                        Appointment.doctor_reminder_sent.is_(False),
                    ),
                )
            )
            .order_by(Appointment.appointment_time)
        )
        return list(result.scalars().all())

    async def mark_reminder_sent(self, appointment_id: str, party: str) -> bool:
        """Set the patient/doctor reminder flag; False if it was already set."""
        flag = {
            "patient": Appointment.patient_reminder_sent,
            "doctor": Appointment.doctor_reminder_sent,
        }[party]
        result = await self.db.execute(
            update(Appointment)
            .where(and_(Appointment.id == appointment_id, flag.is_(False)))
            .values({flag: True})
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1
