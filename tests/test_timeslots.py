"""Tests for time/slot helper functions."""

import pytest
from datetime import datetime, time

from medibook.utils.timeslots import (
    calculate_end_time,
    format_hour,
    get_day_name,
    get_status_message,
    is_appointment_in_past,
    is_valid_date,
    is_valid_time,
    is_weekend,
    is_within_working_hours,
    parse_time,
    time_to_minutes,
    to_12_hour,
    to_24_hour,
)


class TestTimeConversion:
    """12/24-hour conversions."""

    @pytest.mark.parametrize(
        "value,expected",
        [
            ("02:30 PM", "14:30"),
            ("2:30 pm", "14:30"),
            ("12:00 AM", "00:00"),
            ("12:15 PM", "12:15"),
            ("9:05 AM", "09:05"),
            ("09:00", "09:00"),
        ],
    )
    def test_to_24_hour(self, value, expected):
        assert to_24_hour(value) == expected

    def test_to_24_hour_leaves_garbage_for_validation(self):
        assert to_24_hour("noon") == "noon"
        assert to_24_hour(None) == ""

    def test_to_12_hour(self):
        assert to_12_hour("14:30") == "2:30 PM"
        assert to_12_hour("00:05") == "12:05 AM"
        assert to_12_hour(time(12, 0)) == "12:00 PM"

    def test_parse_time_accepts_both_forms(self):
        assert parse_time("10:45") == time(10, 45)
        assert parse_time("10:45 PM") == time(22, 45)

    def test_parse_time_rejects_invalid(self):
        with pytest.raises(ValueError):
            parse_time("25:00")

    def test_time_to_minutes(self):
        assert time_to_minutes("01:30") == 90
        assert time_to_minutes(time(9, 0)) == 540


class TestValidation:
    """Date/time format checks."""

    @pytest.mark.parametrize("value", ["2025-06-10", "2028-02-29"])
    def test_valid_dates(self, value):
        assert is_valid_date(value)

    @pytest.mark.parametrize("value", ["2025-02-30", "2025-6-10", "10/06/2025", "", None])
    def test_invalid_dates(self, value):
        assert not is_valid_date(value)

    @pytest.mark.parametrize("value", ["00:00", "09:30", "23:59"])
    def test_valid_times(self, value):
        assert is_valid_time(value)

    @pytest.mark.parametrize("value", ["9:30", "24:00", "12:60", "10:00 AM", "", None])
    def test_invalid_times(self, value):
        assert not is_valid_time(value)

    def test_earlier_today_is_past(self):
        now = datetime(2030, 1, 7, 10, 0)
        assert is_appointment_in_past("2030-01-07", "09:59", now)
        assert not is_appointment_in_past("2030-01-07", "10:00", now)
        assert not is_appointment_in_past("2030-01-08", "09:00", now)

    def test_working_hours_exclude_end(self):
        assert is_within_working_hours("09:00")
        assert is_within_working_hours("16:59")
        assert not is_within_working_hours("17:00")
        assert not is_within_working_hours("08:59")
        assert is_within_working_hours("19:00", start_hour=8, end_hour=20)


class TestCalendarHelpers:
    """Weekday, end time and status helpers."""

    def test_calculate_end_time(self):
        assert calculate_end_time("16:30") == "17:00"
        assert calculate_end_time("09:45", 45) == "10:30"

    def test_weekend_and_day_name(self):
        assert is_weekend("2030-01-05")
        assert not is_weekend("2030-01-07")
        assert get_day_name("2030-01-07") == "Monday"

    def test_status_message(self):
        assert get_status_message("no-show") == "Patient did not show up"
        assert get_status_message("archived") == "Unknown status"

    def test_format_hour(self):
        assert format_hour(9) == "9 AM"
        assert format_hour(17) == "5 PM"
        assert format_hour(12) == "12 PM"
        assert format_hour(0) == "12 AM"
