"""Slot generation and availability marking."""

from collections.abc import Iterable

from medibook.schemas.appointment import AvailableSlot
from medibook.utils.timeslots import minutes_to_time, to_12_hour


def generate_time_slots(start_hour: int = 9, end_hour: int = 17, interval: int = 30) -> list[str]:
    """Nominal slot start times from start_hour up to (not including) end_hour."""
    if interval <= 0:
        return []

    slots = []
    current = start_hour * 60
    end = end_hour * 60
    while current < end:
        slots.append(minutes_to_time(current))
        current += interval
    return slots


def mark_availability(slots: Iterable[str], booked_times: Iterable[str]) -> list[AvailableSlot]:
    """Annotate each slot with whether it is free of active bookings."""
    booked = set(booked_times)
    return [
        AvailableSlot(
            time=slot,
            available=slot not in booked,
            formatted=to_12_hour(slot),
        )
        for slot in slots
    ]
