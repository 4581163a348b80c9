"""
Appointment reminder scheduler.

A long-lived asyncio task owned by the application lifespan. Every tick it
looks at today's scheduled/confirmed appointments and sends:
- one patient reminder when the appointment starts within the next hour
- one doctor reminder when it starts within the next 15 minutes

Each reminder flag is set only after its notification went out, so a
failed send is simply skipped and logged; there is no retry.
"""

import asyncio
import logging
from collections.abc import Callable
from datetime import datetime, timedelta
from typing import Any, Protocol

import logfire
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from medibook.config import settings
from medibook.database import AsyncSessionLocal
from medibook.models.appointment import Appointment
from medibook.services.appointment_service import AppointmentService
from medibook.services.notification_service import NotificationService
from medibook.utils.clock import now_local
from medibook.utils.timeslots import to_12_hour

logger = logging.getLogger(__name__)

REMINDER_TITLE = "Appointment Reminder"

# Outcomes of a single reminder send
SENT = "sent"
DUPLICATE = "duplicate"
FAILED = "failed"


class Notifier(Protocol):
    async def dispatch(
        self,
        user_id: str,
        role: str,
        title: str,
        message: str,
        related_id: str | None = None,
    ) -> Any: ...


class ReminderJob(BaseModel):
    """Plain snapshot of an appointment, safe to use after a rollback."""
    appointment_id: str
    doctor_id: str
    doctor_name: str | None = None
    patient_id: str
    patient_name: str | None = None
    starts_at: datetime
    patient_reminder_sent: bool
    doctor_reminder_sent: bool

    @classmethod
    def from_appointment(cls, appointment: Appointment) -> "ReminderJob":
        return cls(
            appointment_id=appointment.id,
            doctor_id=appointment.doctor_id,
            doctor_name=appointment.doctor_name,
            patient_id=appointment.patient_id,
            patient_name=appointment.patient_name,
            starts_at=datetime.combine(appointment.appointment_date, appointment.appointment_time),
            patient_reminder_sent=appointment.patient_reminder_sent,
            doctor_reminder_sent=appointment.doctor_reminder_sent,
        )

    @property
    def display_time(self) -> str:
        return to_12_hour(self.starts_at.time())


class ReminderRunResult(BaseModel):
    """Counts from one reminder pass."""
    patient_sent: int = 0
    doctor_sent: int = 0
    failed: int = 0
    skipped: int = 0

    @property
    def sent(self) -> int:
        return self.patient_sent + self.doctor_sent


class ReminderScheduler:
    """Periodic reminder dispatcher with an explicit start/stop lifecycle."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession] = AsyncSessionLocal,
        notifier_factory: Callable[[AsyncSession], Notifier] = NotificationService,
        interval_seconds: float | None = None,
        patient_lead_minutes: int | None = None,
        doctor_lead_minutes: int | None = None,
        clock: Callable[[], datetime] = now_local,
    ):
        if interval_seconds is None:
            interval_seconds = settings.reminder_interval_seconds
        if patient_lead_minutes is None:
            patient_lead_minutes = settings.patient_reminder_minutes
        if doctor_lead_minutes is None:
            doctor_lead_minutes = settings.doctor_reminder_minutes

        self.session_factory = session_factory
        self.notifier_factory = notifier_factory
        self.interval_seconds = interval_seconds
        self.patient_lead = timedelta(minutes=patient_lead_minutes)
        self.doctor_lead = timedelta(minutes=doctor_lead_minutes)
        self.clock = clock
        self.running = False
        self._task: asyncio.Task | None = None

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self):
        """Start the background loop; the first tick runs immediately."""
        if self.is_running:
            return
        self.running = True
        self._task = asyncio.create_task(self._run(), name="reminder-scheduler")
        logger.info("Reminder scheduler started (every %ss)", self.interval_seconds)

    async def stop(self):
        """Stop the background loop and wait for it to exit."""
        self.running = False
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        logger.info("Reminder scheduler stopped")

    async def _run(self):
        while self.running:
            try:
                result = await self.tick()
                if result.sent or result.failed:
                    logger.info(
                        "Reminders sent: %d patient, %d doctor, %d failed",
                        result.patient_sent,
                        result.doctor_sent,
                        result.failed,
                    )
            except Exception as e:
                logger.error("Error checking reminders: %s", e)
            await asyncio.sleep(self.interval_seconds)

    async def tick(self) -> ReminderRunResult:
        """Run one reminder pass."""
        # Appointment times are minute-granular
        now = self.clock().replace(second=0, microsecond=0)
        patient_horizon = now + self.patient_lead
        doctor_horizon = now + self.doctor_lead
        result = ReminderRunResult()

        async with self.session_factory() as session:
            service = AppointmentService(session)
            notifier = self.notifier_factory(session)

            appointments = await service.get_reminder_candidates(now.date())
            jobs = [ReminderJob.from_appointment(appointment) for appointment in appointments]

            patient_jobs = [
                job for job in jobs
                if not job.patient_reminder_sent and now <= job.starts_at <= patient_horizon
            ]
            doctor_jobs = [
                job for job in jobs
                if not job.doctor_reminder_sent and now <= job.starts_at <= doctor_horizon
            ]

            for party, party_jobs in (("patient", patient_jobs), ("doctor", doctor_jobs)):
                for job in party_jobs:
                    outcome = await self._send(session, service, notifier, job, party, now)
                    if outcome == SENT:
                        if party == "patient":
                            result.patient_sent += 1
                        else:
                            result.doctor_sent += 1
                    elif outcome == DUPLICATE:
                        result.skipped += 1
                    else:
                        result.failed += 1

        return result

    async def _send(
        self,
        session: AsyncSession,
        service: AppointmentService,
        notifier: Notifier,
        job: ReminderJob,
        party: str,
        now: datetime,
    ) -> str:
        minutes_left = int((job.starts_at - now).total_seconds() // 60)
        if party == "patient":
            user_id = job.patient_id
            message = (
                f"Your appointment with {job.doctor_name or 'your doctor'} is in "
                f"{minutes_left} minutes ({job.display_time})."
            )
        else:
            user_id = job.doctor_id
            message = (
                f"You have an appointment with {job.patient_name or 'a patient'} in "
                f"{minutes_left} minutes ({job.display_time})."
            )

        try:
            await notifier.dispatch(user_id, party, REMINDER_TITLE, message, job.appointment_id)
            if not await service.mark_reminder_sent(job.appointment_id, party):
                # Another pass set the flag first; drop this notification with it
                await session.rollback()
                logger.warning("%s reminder for %s was already sent", party.capitalize(), job.appointment_id)
                return DUPLICATE
            await session.commit()
        except Exception as e:
            await session.rollback()
            logger.error("Error sending %s reminder for appointment %s: %s", party, job.appointment_id, e)
            return FAILED

        logfire.info("reminder_sent", appointment_id=job.appointment_id, party=party)
        return SENT
