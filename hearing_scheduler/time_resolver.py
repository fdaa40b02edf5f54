"""
Time Resolver
=============

Turns the local scheduling fields of a hearing (calendar date, wall-clock time,
IANA timezone, duration) into an absolute [start_at, end_at) pair in UTC.

Pure functions only - no I/O, no ambient "now".
"""

import re
from datetime import date, datetime, time, timedelta, timezone
from typing import Optional, Tuple, Union
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from .clock import Clock
from .errors import ValidationError

DEFAULT_DURATION_MINUTES = 60

DateInput = Union[date, datetime, str]

_TIME_RE = re.compile(
    r"^(?P<hour>\d{1,2}):(?P<minute>\d{2})(?::(?P<second>\d{2}))?"
    r"\s*(?P<meridiem>[AaPp]\.?[Mm]\.?)?$"
)
_ISO_DATE_RE = re.compile(r"^(\d{4}-\d{2}-\d{2})")


def parse_date(value: DateInput) -> date:
    """
    Parse a calendar date.

    Accepts a date, a datetime (its time part is ignored) or an ISO string
    ("2025-06-01" or "2025-06-01T00:00:00Z", of which only the date is used).
    """
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        match = _ISO_DATE_RE.match(value.strip())
        if match:
            try:
                return date.fromisoformat(match.group(1))
            except ValueError:
                pass
    raise ValidationError(f"Invalid hearing date: {value!r}", {"field": "hearingDate"})


def parse_local_time(value: str) -> time:
    """
    Parse "HH:MM" (24-hour, optional seconds) or "h:MM AM/PM" (12-hour).
    """
    if not isinstance(value, str):
        raise ValidationError(f"Invalid hearing time: {value!r}", {"field": "hearingTime"})

    match = _TIME_RE.match(value.strip())
    if not match:
        raise ValidationError(f"Invalid hearing time: {value!r}", {"field": "hearingTime"})

    hour = int(match.group("hour"))
    minute = int(match.group("minute"))
    second = int(match.group("second") or 0)
    meridiem = match.group("meridiem")

    if meridiem:
        if not 1 <= hour <= 12:
            raise ValidationError(f"Invalid hearing time: {value!r}", {"field": "hearingTime"})
        is_pm = meridiem.lower().startswith("p")
        hour = hour % 12 + (12 if is_pm else 0)

    if hour > 23 or minute > 59 or second > 59:
        raise ValidationError(f"Invalid hearing time: {value!r}", {"field": "hearingTime"})

    return time(hour, minute, second)


def get_zone(name: str) -> ZoneInfo:
    if not name or not isinstance(name, str):
        raise ValidationError("Timezone is required", {"field": "timezone"})
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError):
        raise ValidationError(f"Unknown timezone: {name!r}", {"field": "timezone"})


def _validate_duration(duration_minutes: Optional[int]) -> int:
    if duration_minutes is None:
        return DEFAULT_DURATION_MINUTES
    if isinstance(duration_minutes, bool) or not isinstance(duration_minutes, int):
        raise ValidationError(f"Invalid duration: {duration_minutes!r}", {"field": "duration"})
    if duration_minutes <= 0:
        raise ValidationError("Duration must be a positive number of minutes", {"field": "duration"})
    return duration_minutes


def resolve_local_date(value: DateInput, local_time: Optional[str], tz_name: str) -> datetime:
    """
    Resolve one wall-clock moment to an aware UTC datetime.

    Nonexistent local times (DST gap) move forward by the gap; ambiguous ones
    take the first occurrence (zoneinfo fold=0).
    """
    day = parse_date(value)
    wall = parse_local_time(local_time) if local_time else time(0, 0)
    zone = get_zone(tz_name)
    local = datetime.combine(day, wall).replace(tzinfo=zone)
    try:
        return local.astimezone(timezone.utc)
    except OverflowError:
        raise ValidationError(f"Hearing date out of range: {day.isoformat()}", {"field": "hearingDate"})


def resolve(
    value: DateInput,
    local_time: str,
    tz_name: str,
    duration_minutes: Optional[int] = DEFAULT_DURATION_MINUTES,
) -> Tuple[datetime, datetime]:
    """
    Resolve a hearing's local fields to (start_at, end_at), both aware UTC.

    Raises:
        ValidationError: unparseable date/time, unknown zone, non-positive duration
    """
    duration = _validate_duration(duration_minutes)
    if not local_time:
        raise ValidationError("Hearing time is required", {"field": "hearingTime"})

    start_at = resolve_local_date(value, local_time, tz_name)
    try:
        end_at = start_at + timedelta(minutes=duration)
    except OverflowError:
        raise ValidationError("Duration runs past the supported date range", {"field": "duration"})

    if not start_at < end_at:
        raise ValidationError("Hearing must end after it starts", {"field": "duration"})

    return start_at, end_at


def local_today(clock: Clock, tz_name: str) -> date:
    """Today's calendar date in the given zone, according to the clock."""
    return clock.now().astimezone(get_zone(tz_name)).date()
