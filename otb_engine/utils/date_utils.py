# otb_engine/utils/date_utils.py
from datetime import date, datetime

DAYS_PER_WEEK = 7

def convert_to_date(value) -> date:
    """Convert a date, datetime or ISO string to a date.

    Args:
        value: Value to convert

    Returns:
        Date object
    """
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return date.fromisoformat(str(value))

def whole_weeks_between(start, end) -> int:
    """Number of whole weeks from start to end, never negative.

    Args:
        start: Start date
        end: End date

    Returns:
        Whole weeks between the dates (0 if end is not after start)
    """
    days = (convert_to_date(end) - convert_to_date(start)).days
    return max(0, days // DAYS_PER_WEEK)

def weeks_between(start, end) -> float:
    """Fractional weeks from start to end, never negative."""
    days = (convert_to_date(end) - convert_to_date(start)).days
    return max(0.0, days / DAYS_PER_WEEK)
