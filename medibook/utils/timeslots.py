"""Time and slot helpers - pure functions over date/time strings."""

import re
from datetime import date, datetime, time

_DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")
_TIME_24_RE = re.compile(r"^\d{2}:\d{2}$")
_TIME_12_RE = re.compile(r"^(\d{1,2}):(\d{2})\s*(AM|PM)$", re.IGNORECASE)

DAY_NAMES = ["Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday"]

STATUS_MESSAGES = {
    "scheduled": "Appointment scheduled",
    "confirmed": "Appointment confirmed",
    "pending": "Appointment pending confirmation",
    "completed": "Appointment completed",
    "cancelled": "Appointment cancelled",
    "no-show": "Patient did not show up",
}


def to_24_hour(value: str | None) -> str:
    """Normalize "HH:MM" or "H:MM AM/PM" to "HH:MM".

    Unrecognized input is returned unchanged so validation can report it.
    """
    if not value:
        return ""
    value = value.strip()
    if _TIME_24_RE.match(value):
        return value

    match = _TIME_12_RE.match(value)
    if match:
        hours = int(match.group(1))
        minutes = match.group(2)
        period = match.group(3).upper()
        if period == "PM" and hours != 12:
            hours += 12
        elif period == "AM" and hours == 12:
            hours = 0
        return f"{hours:02d}:{minutes}"

    return value


def to_12_hour(value: str | time) -> str:
    """Render a 24-hour time as "H:MM AM/PM" for display."""
    if isinstance(value, time):
        hours, minutes = value.hour, value.minute
    else:
        hours, minutes = (int(part) for part in value.split(":")[:2])
    period = "PM" if hours >= 12 else "AM"
    display_hours = hours % 12 or 12
    return f"{display_hours}:{minutes:02d} {period}"


def is_valid_date(value: str | None) -> bool:
    """Check YYYY-MM-DD format and that it names a real calendar day."""
    if not value or not _DATE_RE.match(value):
        return False
    try:
        date.fromisoformat(value)
    except ValueError:
        return False
    return True


def is_valid_time(value: str | None) -> bool:
    """Check strict 24-hour HH:MM."""
    if not value or not _TIME_24_RE.match(value):
        return False
    hours, minutes = (int(part) for part in value.split(":"))
    return hours < 24 and minutes < 60


def parse_time(value: str) -> time:
    """Parse either accepted time format into a time object."""
    normalized = to_24_hour(value)
    if not is_valid_time(normalized):
        raise ValueError(f"Invalid time: {value!r}")
    hours, minutes = (int(part) for part in normalized.split(":"))
    return time(hour=hours, minute=minutes)


def format_time(value: time) -> str:
    return value.strftime("%H:%M")


def time_to_minutes(value: str | time) -> int:
    if isinstance(value, str):
        value = parse_time(value)
    return value.hour * 60 + value.minute


def minutes_to_time(total_minutes: int) -> str:
    return f"{total_minutes // 60:02d}:{total_minutes % 60:02d}"


def is_appointment_in_past(appointment_date: str, appointment_time: str, now: datetime) -> bool:
    """True when date+time is strictly before now (today earlier counts as past)."""
    scheduled = datetime.combine(date.fromisoformat(appointment_date), parse_time(appointment_time))
    return scheduled < now


def is_weekend(value: str | date) -> bool:
    if isinstance(value, str):
        value = date.fromisoformat(value)
    return value.weekday() >= 5


def get_day_name(value: str | date) -> str:
    if isinstance(value, str):
        value = date.fromisoformat(value)
    return DAY_NAMES[value.weekday()]


def is_within_working_hours(value: str, start_hour: int = 9, end_hour: int = 17) -> bool:
    """Hour-granular check: [start_hour, end_hour)."""
    hours = int(value.split(":")[0])
    return start_hour <= hours < end_hour


def calculate_end_time(start_time: str, duration_minutes: int = 30) -> str:
    return minutes_to_time(time_to_minutes(start_time) + duration_minutes)


def get_status_message(status: str) -> str:
    return STATUS_MESSAGES.get(status, "Unknown status")


def format_hour(hour: int) -> str:
    """Render an hour of day as "9 AM" / "5 PM"."""
    period = "PM" if hour >= 12 else "AM"
    return f"{hour % 12 or 12} {period}"
