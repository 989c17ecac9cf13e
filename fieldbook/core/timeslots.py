"""Time-of-day and weekday helpers shared by the booking services."""
import re
from datetime import date, datetime, time as dt_time, timedelta
from typing import Iterable, List, Optional

import pytz

from fieldbook.core.config import settings

WEEKDAYS = ("monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday")

_HHMM = re.compile(r"^([01]\d|2[0-3]):([0-5]\d)$")


def is_hhmm(value: str) -> bool:
    return isinstance(value, str) and bool(_HHMM.match(value))


def to_minutes(value) -> int:
    """Convert an "HH:MM" string or a time to minutes since midnight."""
    if isinstance(value, dt_time):
        return value.hour * 60 + value.minute
    match = _HHMM.match(value or "")
    if not match:
        raise ValueError(f"Invalid time of day '{value}', expected HH:MM")
    return int(match.group(1)) * 60 + int(match.group(2))


def minutes_to_str(minutes: int) -> str:
    return f"{minutes // 60:02d}:{minutes % 60:02d}"


def minutes_to_time(minutes: int) -> dt_time:
    return dt_time(hour=minutes // 60, minute=minutes % 60)


def weekday_name(day: date) -> str:
    return WEEKDAYS[day.weekday()]


def business_tz():
    return pytz.timezone(settings.BUSINESS_TIMEZONE)


def now_local(now: Optional[datetime] = None) -> datetime:
    """Current time in the business timezone."""
    if now is None:
        now = datetime.now(pytz.UTC)
    elif now.tzinfo is None:
        now = now.replace(tzinfo=pytz.UTC)
    return now.astimezone(business_tz())


def today_local(now: Optional[datetime] = None) -> date:
    return now_local(now).date()


def local_instant(day: date, at: dt_time) -> datetime:
    """Combine a date and a time of day into an aware instant in the business timezone."""
    return business_tz().localize(datetime.combine(day, at))


def weekly_dates(
    start_date: date, weekdays: Iterable[str], weeks: int, skip: Iterable[date] = ()
) -> List[date]:
    """Dates falling on ``weekdays`` in the ``weeks`` weeks starting at ``start_date``."""
    wanted = {day.lower() for day in weekdays}
    skipped = set(skip)
    days = (start_date + timedelta(days=offset) for offset in range(weeks * 7))
    return [day for day in days if weekday_name(day) in wanted and day not in skipped]


def consecutive_dates(start_date: date, end_date: date) -> List[date]:
    """Every date from ``start_date`` to ``end_date`` inclusive."""
    return [start_date + timedelta(days=offset) for offset in range((end_date - start_date).days + 1)]
