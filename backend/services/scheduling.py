from datetime import datetime
from typing import Optional

from backend.database import to_naive_utc

INVALID_INTERVAL_MESSAGE = 'End time must be after start time'


class InvalidIntervalError(ValueError):
    pass


def validate_interval(start_time: datetime, end_time: datetime) -> None:
    if to_naive_utc(end_time) <= to_naive_utc(start_time):
        raise InvalidIntervalError(INVALID_INTERVAL_MESSAGE)


def resolve_interval(
    existing_start: datetime,
    existing_end: datetime,
    new_start: Optional[datetime] = None,
    new_end: Optional[datetime] = None,
) -> tuple[datetime, datetime]:
    """Effective bounds after a partial update, checked before anything is written."""
    start_time = to_naive_utc(new_start) if new_start is not None else existing_start
    end_time = to_naive_utc(new_end) if new_end is not None else existing_end
    validate_interval(start_time, end_time)
    return start_time, end_time
