"""Office hours during which the design team works the queue."""

from datetime import datetime

BUSINESS_DAYS = range(0, 5)  # Monday..Friday
OPENING_HOUR = 8
CLOSING_HOUR = 17


def is_business_hours(when: datetime | None = None) -> bool:
    """Whether the given local time falls within office hours (Mon-Fri, 8:00-17:00)."""
    when = when or datetime.now()
    return when.weekday() in BUSINESS_DAYS and OPENING_HOUR <= when.hour < CLOSING_HOUR


def format_time_12h(when: datetime) -> str:
    """Format a time as '8:05 AM' for queue displays."""
    hour12 = when.hour % 12 or 12
    suffix = "PM" if when.hour >= 12 else "AM"
    return f"{hour12}:{when.minute:02d} {suffix}"
