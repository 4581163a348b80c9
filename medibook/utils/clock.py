"""Clinic wall clock.

Appointment dates and times are stored as naive wall-clock values in the
configured clinic time zone, so every "now" used for booking and reminders
comes from here.
"""

from datetime import datetime, date
from zoneinfo import ZoneInfo

from medibook.config import settings


def clinic_zone() -> ZoneInfo:
    return ZoneInfo(settings.timezone)


def now_local() -> datetime:
    """Current naive datetime in the clinic time zone."""
    return datetime.now(clinic_zone()).replace(tzinfo=None)


def today_local() -> date:
    return now_local().date()
