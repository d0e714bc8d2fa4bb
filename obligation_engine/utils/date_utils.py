"""Date manipulation utilities"""

import calendar
from datetime import date, timedelta
from typing import Union


def add_months(from_date: date, months: int) -> date:
    """Add calendar months, clamping the day to the end of a shorter target month"""
    month_index = from_date.month - 1 + months
    year = from_date.year + month_index // 12
    month = month_index % 12 + 1
    last_day = calendar.monthrange(year, month)[1]
    return date(year, month, min(from_date.day, last_day))


def add_days(from_date: date, days: int) -> date:
    return from_date + timedelta(days=days)


def days_between(a: date, b: date) -> int:
    """Absolute number of calendar days between two dates"""
    return abs((a - b).days)


def parse_iso_date(value: Union[date, str]) -> date:
    """
    Accept a date or an ISO-8601 YYYY-MM-DD string.

    Raises:
        ValueError: If the value is neither a date nor a parseable string
    """
    # datetime is a date subclass; keep only the calendar part
    if isinstance(value, date):
        return date(value.year, value.month, value.day)
    if isinstance(value, str):
        return date.fromisoformat(value.strip())
    raise ValueError(f"Expected a date or ISO date string, got {type(value).__name__}")
