"""Tests for the reminder scheduler."""

import asyncio
from datetime import date, datetime, time
from types import SimpleNamespace

import pytest
from sqlalchemy import select

from medibook.models.appointment import Appointment
from medibook.models.notification import Notification
from medibook.services.appointment_service import AppointmentService
from medibook.services.reminder_scheduler import ReminderRunResult, ReminderScheduler

NOW = datetime(2030, 1, 7, 10, 0)


class FakeNotifier:
    """Records dispatched reminders; optionally fails for some users."""

    def __init__(self, fail_for=()):
        self.sent = []
        self.fail_for = set(fail_for)

    async def dispatch(self, user_id, role, title, message, related_id=None):
        if user_id in self.fail_for:
            raise ConnectionError("mail relay unavailable")
        self.sent.append((user_id, role, message, related_id))


def _scheduler(session_factory, notifier, **kwargs) -> ReminderScheduler:
    return ReminderScheduler(
        session_factory=session_factory,
        notifier_factory=lambda session: notifier,
        clock=lambda: NOW,
        **kwargs,
    )


async def _load(session_factory, appointment_id) -> Appointment:
    async with session_factory() as session:
        return await session.get(Appointment, appointment_id)


class TestReminderTick:
    """One reminder pass at a fixed clock of 10:00."""

    @pytest.mark.asyncio
    async def test_patient_reminder_within_the_hour(self, session_factory, add_appointment):
        appointment = await add_appointment(time(10, 45))
        notifier = FakeNotifier()
        scheduler = _scheduler(session_factory, notifier)

        result = await scheduler.tick()

        assert result.model_dump() == {"patient_sent": 1, "doctor_sent": 0, "failed": 0, "skipped": 0}
        assert notifier.sent == [
            (
                "pat-1",
                "patient",
                "Your appointment with Dr. Mehta is in 45 minutes (10:45 AM).",
                appointment.id,
            )
        ]
        stored = await _load(session_factory, appointment.id)
        assert stored.patient_reminder_sent is True
        assert stored.doctor_reminder_sent is False

    @pytest.mark.asyncio
    async def test_reminder_sent_only_once(self, session_factory, add_appointment):
        await add_appointment(time(10, 45))
        notifier = FakeNotifier()
        scheduler = _scheduler(session_factory, notifier)

        await scheduler.tick()
        second = await scheduler.tick()

        assert second.sent == 0
        assert len(notifier.sent) == 1

    @pytest.mark.asyncio
    async def test_both_reminders_when_close(self, session_factory, add_appointment):
        appointment = await add_appointment(time(10, 10))
        notifier = FakeNotifier()

        result = await _scheduler(session_factory, notifier).tick()

        assert result.patient_sent == 1
        assert result.doctor_sent == 1
        assert {(user, role) for user, role, _, _ in notifier.sent} == {("pat-1", "patient"), ("doc-1", "doctor")}
        doctor_message = next(message for _, role, message, _ in notifier.sent if role == "doctor")
        assert doctor_message == "You have an appointment with Asha Rao in 10 minutes (10:10 AM)."
        stored = await _load(session_factory, appointment.id)
        assert stored.patient_reminder_sent and stored.doctor_reminder_sent

    @pytest.mark.asyncio
    async def test_window_edges_are_inclusive(self, session_factory, add_appointment):
        await add_appointment(time(11, 0))
        await add_appointment(time(10, 15), patient_id="pat-2", doctor_id="doc-2")
        notifier = FakeNotifier()

        result = await _scheduler(session_factory, notifier).tick()

        assert result.patient_sent == 2
        assert result.doctor_sent == 1

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "appointment_time,appointment_date,status",
        [
            (time(11, 30), NOW.date(), "scheduled"),
            (time(9, 30), NOW.date(), "scheduled"),
            (time(10, 30), NOW.date(), "cancelled"),
            (time(10, 30), NOW.date(), "pending"),
            (time(10, 30), NOW.date(), "completed"),
            (time(10, 30), date(2030, 1, 8), "scheduled"),
        ],
    )
    async def test_nothing_due(self, session_factory, add_appointment, appointment_time, appointment_date, status):
        await add_appointment(appointment_time, appointment_date, status=status)
        notifier = FakeNotifier()

        result = await _scheduler(session_factory, notifier).tick()

        assert result.sent == 0
        assert notifier.sent == []

    @pytest.mark.asyncio
    async def test_confirmed_appointments_are_reminded(self, session_factory, add_appointment):
        await add_appointment(time(10, 30), status="confirmed")

        result = await _scheduler(session_factory, FakeNotifier()).tick()

        assert result.patient_sent == 1

    @pytest.mark.asyncio
    async def test_failed_send_is_isolated(self, session_factory, add_appointment, caplog):
        failing = await add_appointment(time(10, 30))
        healthy = await add_appointment(time(10, 30), doctor_id="doc-2", patient_id="pat-2")
        notifier = FakeNotifier(fail_for={"pat-1"})

        result = await _scheduler(session_factory, notifier).tick()

        assert result.failed == 1
        assert result.patient_sent == 1
        assert (await _load(session_factory, failing.id)).patient_reminder_sent is False
        assert (await _load(session_factory, healthy.id)).patient_reminder_sent is True
        errors = [record for record in caplog.records if record.levelname == "ERROR"]
        assert len(errors) == 1
        assert errors[0].args[:2] == ("patient", failing.id)
        assert "mail relay unavailable" in errors[0].getMessage()

    @pytest.mark.asyncio
    async def test_failed_send_is_retried_next_tick(self, session_factory, add_appointment):
        await add_appointment(time(10, 30))
        notifier = FakeNotifier(fail_for={"pat-1"})
        scheduler = _scheduler(session_factory, notifier)

        await scheduler.tick()
        notifier.fail_for.clear()
        result = await scheduler.tick()

        assert result.patient_sent == 1

    @pytest.mark.asyncio
    async def test_default_notifier_stores_notifications(self, session_factory, add_appointment):
        appointment = await add_appointment(time(10, 5))
        scheduler = ReminderScheduler(session_factory=session_factory, clock=lambda: NOW)

        result = await scheduler.tick()

        assert result.sent == 2
        async with session_factory() as session:
            rows = (await session.execute(select(Notification).order_by(Notification.user_role))).scalars().all()
        assert [(row.user_id, row.user_role) for row in rows] == [("doc-1", "doctor"), ("pat-1", "patient")]
        assert all(row.related_id == appointment.id for row in rows)
        assert all(row.title == "Appointment Reminder" for row in rows)
        assert all(row.type == "reminder" for row in rows)

    @pytest.mark.asyncio
    async def test_stale_snapshot_does_not_duplicate(self, session_factory, add_appointment, monkeypatch):
        appointment = await add_appointment(time(10, 45))
        scheduler = ReminderScheduler(session_factory=session_factory, clock=lambda: NOW)
        await scheduler.tick()

        # A concurrent pass loaded the row before the flag was set
        stale = SimpleNamespace(
            id=appointment.id,
            doctor_id=appointment.doctor_id,
            doctor_name=appointment.doctor_name,
            patient_id=appointment.patient_id,
            patient_name=appointment.patient_name,
            appointment_date=appointment.appointment_date,
            appointment_time=appointment.appointment_time,
            patient_reminder_sent=False,
            doctor_reminder_sent=False,
        )

        async def stale_candidates(self, today):
            return [stale]

        monkeypatch.setattr(AppointmentService, "get_reminder_candidates", stale_candidates)
        result = await scheduler.tick()

        assert result.patient_sent == 0
        assert result.skipped == 1
        assert result.failed == 0
        async with session_factory() as session:
            stored = (
                await session.execute(select(Notification).where(Notification.user_id == "pat-1"))
            ).scalars().all()
        assert len(stored) == 1

    @pytest.mark.asyncio
    async def test_zero_lead_only_reminds_appointments_starting_now(self, session_factory, add_appointment):
        await add_appointment(time(10, 0))
        await add_appointment(time(10, 5), patient_id="pat-2", doctor_id="doc-2")

        result = await _scheduler(
            session_factory, FakeNotifier(), patient_lead_minutes=0, doctor_lead_minutes=0
        ).tick()

        assert result.patient_sent == 1
        assert result.doctor_sent == 1

    @pytest.mark.asyncio
    async def test_rescheduled_appointment_is_reminded_again(self, session_factory, add_appointment):
        appointment = await add_appointment(time(10, 45))
        notifier = FakeNotifier()
        scheduler = _scheduler(session_factory, notifier)
        await scheduler.tick()

        async with session_factory() as session:
            await AppointmentService(session).reschedule_appointment(
                appointment.id, NOW.date(), time(10, 50), "pat-1"
            )
            await session.commit()
        result = await scheduler.tick()

        assert result.patient_sent == 1
        assert len(notifier.sent) == 2
        assert "(10:50 AM)" in notifier.sent[-1][2]


class TestSchedulerLifecycle:
    """Background task start/stop."""

    @pytest.mark.asyncio
    async def test_start_and_stop(self, session_factory):
        scheduler = _scheduler(session_factory, FakeNotifier(), interval_seconds=60)

        scheduler.start()
        assert scheduler.is_running
        await scheduler.stop()

        assert not scheduler.is_running

    @pytest.mark.asyncio
    async def test_stop_without_start(self, session_factory):
        scheduler = _scheduler(session_factory, FakeNotifier())

        await scheduler.stop()

        assert not scheduler.is_running

    @pytest.mark.asyncio
    async def test_loop_survives_a_failing_tick(self, session_factory):
        scheduler = _scheduler(session_factory, FakeNotifier(), interval_seconds=0.01)
        calls = []

        async def flaky_tick():
            calls.append(1)
            if len(calls) == 1:
                raise RuntimeError("database unavailable")
            return ReminderRunResult()

        scheduler.tick = flaky_tick
        scheduler.start()
        for _ in range(100):
            if len(calls) >= 3:
                break
            await asyncio.sleep(0.01)
        await scheduler.stop()

        assert len(calls) >= 3
