"""Tests for office-hours helpers."""

from datetime import datetime

from designdesk.queue.hours import format_time_12h, is_business_hours


def test_weekday_office_hours():
    monday_morning = datetime(2024, 3, 4, 8, 0)
    assert is_business_hours(monday_morning)
    assert is_business_hours(datetime(2024, 3, 8, 16, 59))


def test_outside_office_hours():
    assert not is_business_hours(datetime(2024, 3, 4, 7, 59))
    assert not is_business_hours(datetime(2024, 3, 4, 17, 0))
    assert not is_business_hours(datetime(2024, 3, 9, 10, 0))  # Saturday
    assert not is_business_hours(datetime(2024, 3, 10, 10, 0))  # Sunday


def test_format_time_12h():
    assert format_time_12h(datetime(2024, 3, 4, 0, 5)) == "12:05 AM"
    assert format_time_12h(datetime(2024, 3, 4, 8, 30)) == "8:30 AM"
    assert format_time_12h(datetime(2024, 3, 4, 12, 0)) == "12:00 PM"
    assert format_time_12h(datetime(2024, 3, 4, 17, 45)) == "5:45 PM"
