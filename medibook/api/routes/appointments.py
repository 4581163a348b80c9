"""Appointment routes - API endpoints for slot listing, booking and status changes."""

from datetime import date

from fastapi import APIRouter, HTTPException
from sqlalchemy.exc import IntegrityError

from medibook.api.deps import DBSession
from medibook.models.appointment import AppointmentStatus
from medibook.schemas.appointment import (
    AppointmentCount,
    AppointmentReschedule,
    AppointmentResponse,
    AppointmentStatusUpdate,
    AvailableSlot,
    BookingRequest,
    BookingResult,
    RescheduleCheck,
)
from medibook.services.appointment_service import AppointmentService
from medibook.utils.timeslots import parse_time

router = APIRouter()


def _check_range(start_date: date, end_date: date):
    if start_date > end_date:
        raise HTTPException(status_code=400, detail="start_date must not be after end_date")


@router.get("/slots", response_model=list[AvailableSlot])
async def get_available_slots(doctor_id: str, appointment_date: date, db: DBSession):
    """List a doctor's slots for a day with availability."""
    service = AppointmentService(db)
    return await service.get_available_slots(doctor_id, appointment_date)


@router.get("/check", response_model=BookingResult)
async def check_booking(doctor_id: str, appointment_date: str, appointment_time: str, db: DBSession):
    """Validate a prospective booking and report conflicts without booking."""
    service = AppointmentService(db)
    return await service.get_booking_details(doctor_id, appointment_date, appointment_time)


@router.post("/", response_model=AppointmentResponse, status_code=201)
async def create_appointment(booking: BookingRequest, db: DBSession):
    """Book an appointment."""
    service = AppointmentService(db)
    result = await service.book_appointment(booking)

    if result.errors:
        raise HTTPException(
            status_code=422,
            detail={"message": result.message, "errors": result.errors},
        )

    if result.conflict:
        raise HTTPException(
            status_code=409,
            detail=result.model_dump(
                mode="json",
                include={"message", "conflict", "suggestions"},
            ),
        )

    return result.appointment


@router.get("/doctor/{doctor_id}", response_model=list[AppointmentResponse])
async def get_doctor_appointments(
    doctor_id: str,
    db: DBSession,
    status: AppointmentStatus | None = None,
    appointment_date: date | None = None,
):
    """Get all appointments for a doctor."""
    service = AppointmentService(db)
    return await service.get_appointments_by_doctor_id(doctor_id, status, appointment_date)


@router.get("/doctor/{doctor_id}/today", response_model=list[AppointmentResponse])
async def get_today_appointments(doctor_id: str, db: DBSession):
    """Get a doctor's appointments for today."""
    service = AppointmentService(db)
    return await service.get_today_appointments(doctor_id)


@router.get("/doctor/{doctor_id}/schedule", response_model=list[AppointmentResponse])
async def get_doctor_schedule(doctor_id: str, start_date: date, end_date: date, db: DBSession):
    """Get a doctor's non-cancelled appointments in a date range."""
    _check_range(start_date, end_date)
    service = AppointmentService(db)
    return await service.get_doctor_schedule(doctor_id, start_date, end_date)


@router.get("/doctor/{doctor_id}/count", response_model=AppointmentCount)
async def count_doctor_appointments(doctor_id: str, start_date: date, end_date: date, db: DBSession):
    """Count a doctor's appointments in a date range."""
    _check_range(start_date, end_date)
    service = AppointmentService(db)
    count = await service.count_appointments_by_date_range(doctor_id, start_date, end_date)
    return AppointmentCount(doctor_id=doctor_id, start_date=start_date, end_date=end_date, count=count)


@router.get("/patient/{patient_id}", response_model=list[AppointmentResponse])
async def get_patient_appointments(
    patient_id: str,
    db: DBSession,
    status: AppointmentStatus | None = None,
):
    """Get all appointments for a patient."""
    service = AppointmentService(db)
    return await service.get_appointments_by_patient_id(patient_id, status)


@router.get("/{appointment_id}", response_model=AppointmentResponse)
async def get_appointment(appointment_id: str, db: DBSession):
    """Get an appointment by ID."""
    service = AppointmentService(db)
    appointment = await service.get_appointment_by_id(appointment_id)

    if not appointment:
        raise HTTPException(status_code=404, detail="Appointment not found")

    return appointment


@router.patch("/{appointment_id}/status", response_model=AppointmentResponse)
async def update_appointment_status(
    appointment_id: str,
    status_data: AppointmentStatusUpdate,
    db: DBSession,
):
    """Change an appointment's status (doctor/admin action)."""
    service = AppointmentService(db)
    extra = status_data.model_dump(exclude={"status"}, exclude_none=True)

    try:
        appointment = await service.update_appointment_status(appointment_id, status_data.status, extra)
    except IntegrityError:
        raise HTTPException(
            status_code=409,
            detail="Another active appointment already holds this slot.",
        )

    if not appointment:
        raise HTTPException(status_code=404, detail="Appointment not found")

    return appointment


@router.get("/{appointment_id}/can-reschedule", response_model=RescheduleCheck)
async def can_reschedule(appointment_id: str, db: DBSession):
    """Check whether an appointment may still be moved."""
    service = AppointmentService(db)
    return await service.can_reschedule(appointment_id)


@router.post("/{appointment_id}/reschedule", response_model=AppointmentResponse)
async def reschedule_appointment(
    appointment_id: str,
    reschedule_data: AppointmentReschedule,
    db: DBSession,
):
    """Move an appointment to a new date/time."""
    service = AppointmentService(db)

    check = await service.can_reschedule(appointment_id)
    if not check.can_reschedule:
        status_code = 404 if check.error == "Appointment not found" else 400
        raise HTTPException(status_code=status_code, detail=check.error)

    result = await service.reschedule_appointment(
        appointment_id,
        reschedule_data.appointment_date,
        parse_time(reschedule_data.appointment_time),
        reschedule_data.rescheduled_by,
    )

    if result is None:
        raise HTTPException(status_code=404, detail="Appointment not found")

    if result.conflict:
        raise HTTPException(
            status_code=409,
            detail=result.model_dump(
                mode="json",
                include={"message", "conflict", "suggestions"},
            ),
        )

    return result.appointment


@router.post("/{appointment_id}/no-show", response_model=AppointmentResponse)
async def mark_no_show(appointment_id: str, db: DBSession):
    """Mark a patient as not having shown up."""
    service = AppointmentService(db)
    appointment = await service.mark_as_no_show(appointment_id)

    if not appointment:
        raise HTTPException(status_code=404, detail="Appointment not found")

    return appointment


@router.delete("/{appointment_id}", response_model=AppointmentResponse)
async def cancel_appointment(
    appointment_id: str,
    db: DBSession,
    cancelled_by: str | None = None,
    reason: str | None = None,
):
    """Cancel an appointment (soft delete by changing status)."""
    service = AppointmentService(db)
    appointment = await service.get_appointment_by_id(appointment_id)

    if not appointment:
        raise HTTPException(status_code=404, detail="Appointment not found")

    if appointment.status == AppointmentStatus.CANCELLED.value:
        raise HTTPException(status_code=400, detail="Appointment is already cancelled")

    return await service.cancel_appointment(appointment_id, cancelled_by, reason)
