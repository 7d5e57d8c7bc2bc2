from __future__ import annotations

from datetime import date, datetime, timezone
from typing import Optional, Union

DueDateInput = Union[date, datetime, str]


# PUBLIC_INTERFACE
def utc_now() -> datetime:
    """Return the current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


# PUBLIC_INTERFACE
def to_utc_datetime(value: Union[datetime, str]) -> datetime:
    """
    Normalize a stored timestamp into an aware UTC datetime.

    Accepts a datetime (naive values are taken as UTC) or an ISO8601 string.
    """
    if isinstance(value, str):
        value = datetime.fromisoformat(value.strip())
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


# PUBLIC_INTERFACE
def parse_due_date(value: Optional[DueDateInput]) -> Optional[date]:
    """
    Normalize due date input into a calendar day.
    - None or an empty string clears the due date.
    - A datetime is truncated to its date.
    - A string must be an ISO8601 date, or a datetime whose date part is kept.
    """
    if value is None:
        return None

    if isinstance(value, datetime):
        return value.date()

    if isinstance(value, date):
        return value

    if isinstance(value, str):
        s = value.strip()
        if not s:
            return None
        try:
            return date.fromisoformat(s)
        except ValueError:
            try:
                return datetime.fromisoformat(s).date()
            except ValueError as e:
                raise ValueError(
                    "Invalid due_date format. Use an ISO8601 date (e.g., '2025-01-31')."
                ) from e

    raise ValueError("Invalid type for due_date; expected date, datetime, or ISO8601 string.")
