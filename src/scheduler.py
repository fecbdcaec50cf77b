"""Slot scheduling: map a batch of messages onto future send times."""
import re
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from typing import List, Optional, Tuple, Union

from src import settings
from src.errors import InvalidScheduleParameters

# Monday=0 .. Thursday=3. Friday through Sunday are never used.
ALLOWED_WEEKDAYS = frozenset({0, 1, 2, 3})

_TIME_RE = re.compile(r"^(\d{1,2}):(\d{2})$")


@dataclass(frozen=True)
class ScheduleParams:
    """Constraints for one scheduling batch."""

    start_date: date
    window_start: str  # "HH:MM"
    window_end: str  # "HH:MM"
    daily_limit: int

    @classmethod
    def from_settings(cls, start_date: Union[str, date, None] = None,
                      window_start: Optional[str] = None,
                      window_end: Optional[str] = None,
                      daily_limit: Optional[int] = None):
        """Build params from configuration; any argument given overrides its setting."""
        raw_date = start_date or settings.START_DATE
        if isinstance(raw_date, str):
            try:
                raw_date = date.fromisoformat(raw_date)
            except ValueError as e:
                raise InvalidScheduleParameters(f"Invalid start date: {raw_date!r}") from e

        return cls(
            start_date=raw_date,
            window_start=window_start or settings.SEND_WINDOW_START,
            window_end=window_end or settings.SEND_WINDOW_END,
            daily_limit=daily_limit if daily_limit is not None else settings.DAILY_LIMIT,
        )


def parse_time_of_day(value: str) -> int:
    """Parse "HH:MM" into minutes after midnight."""
    match = _TIME_RE.match(value.strip()) if isinstance(value, str) else None
    if not match:
        raise InvalidScheduleParameters(f"Time of day must be HH:MM, got {value!r}")

    hours, minutes = int(match.group(1)), int(match.group(2))
    if hours > 23 or minutes > 59:
        raise InvalidScheduleParameters(f"Time of day out of range: {value!r}")
    return hours * 60 + minutes


def is_allowed_day(day: date) -> bool:
    return day.weekday() in ALLOWED_WEEKDAYS


def next_allowed_day(day: date) -> date:
    """Return `day` itself or the first allowed weekday after it."""
    while not is_allowed_day(day):
        day += timedelta(days=1)
    return day


def _validate(count: int, params: ScheduleParams) -> Tuple[int, int]:
    if count < 0:
        raise InvalidScheduleParameters(f"Count must not be negative: {count}")
    if not isinstance(params.daily_limit, int) or params.daily_limit <= 0:
        raise InvalidScheduleParameters(
            f"Daily limit must be a positive integer: {params.daily_limit!r}"
        )

    start_mins = parse_time_of_day(params.window_start)
    end_mins = parse_time_of_day(params.window_end)
    if end_mins <= start_mins:
        raise InvalidScheduleParameters(
            f"Send window is empty: {params.window_start}-{params.window_end}"
        )
    return start_mins, end_mins


def schedule(count: int, params: ScheduleParams, now: Optional[datetime] = None) -> List[int]:
    """
    Produce `count` send times (epoch ms, local time) in non-decreasing order.

    Slots are spread evenly across the send window, `daily_limit` per allowed
    weekday, starting no earlier than today. All input is validated before
    the first slot is computed.

    Args:
        count: Number of slots wanted
        params: Window, quota and start date
        now: Reference time used to clamp past start dates (defaults to now)

    Returns:
        List of epoch millisecond timestamps, one per item
    """
    start_mins, end_mins = _validate(count, params)
    if count == 0:
        return []

    today = (now or datetime.now()).date()
    current = max(params.start_date, today)
    current = next_allowed_day(current)

    interval = (end_mins - start_mins) / params.daily_limit

    slots = []
    day_count = 0
    for _ in range(count):
        if day_count >= params.daily_limit:
            current = next_allowed_day(current + timedelta(days=1))
            day_count = 0

        hours, minutes = divmod(int(start_mins + interval * day_count), 60)
        slot = datetime.combine(current, time(hour=hours, minute=minutes))
        slots.append(int(slot.timestamp() * 1000))
        day_count += 1

    return slots
