"""Date helpers shared by the weather store and repository.

All forecast dates are calendar days in UTC. "Today" is the current date
truncated to midnight UTC and is recomputed on every call.
"""

from datetime import date, datetime, timezone
from typing import Any


def normalized_utc_date_for_today() -> date:
    """Current calendar day in UTC."""
    return datetime.now(timezone.utc).date()


def normalize_date(value: Any) -> date:
    """Convert a date-like value to a UTC calendar day.

    Args:
        value (Any): A datetime.date, a datetime.datetime (naive values are
            taken as UTC, aware values are converted to UTC) or a "YYYY-MM-DD"
            string.

    Raises:
        ValueError: When a string is not a valid ISO date.
        TypeError: When the value is of an unsupported type.

    Returns:
        date: The normalized calendar day.
    """
    if isinstance(value, datetime):
        if value.tzinfo is not None:
            value = value.astimezone(timezone.utc)
        return value.date()
    elif isinstance(value, date):
        return value
    elif isinstance(value, str):
        return datetime.strptime(value.strip(), "%Y-%m-%d").date()
    else:
        raise TypeError(
            f"Expected {date}, {datetime} or str in YYYY-MM-DD format. Got {type(value)} instead."
        )
