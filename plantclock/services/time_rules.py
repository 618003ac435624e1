"""
Time rules shared by the reconciliation engine.
Handles hour rounding, time-of-day parsing, weekday numbering and the
server clock in the plants' local timezone.
"""
import math
import re
from datetime import date, datetime, time, timedelta
from decimal import Decimal, ROUND_HALF_UP
from typing import Optional, Union
import pytz
from ..config import settings

HUNDREDTH = Decimal("0.01")
ZERO_HOURS = Decimal("0.00")
_MICROS_PER_HOUR = Decimal(3_600_000_000)
_HHMM_RE = re.compile(r"^\s*(\d{1,2}):(\d{2})(?::(\d{2}))?\s*$")


def round_hours(value: Union[Decimal, float, int]) -> Decimal:
    """
    Round an hour figure to two decimals, half-up.

    Args:
        value: Hours as Decimal, float or int

    Returns:
        Decimal quantized to 0.01
    """
    if not isinstance(value, Decimal):
        value = Decimal(str(value))
    return value.quantize(HUNDREDTH, rounding=ROUND_HALF_UP)


def delta_hours(delta: timedelta) -> Decimal:
    """Exact hours in a timedelta (not rounded)."""
    return Decimal(delta // timedelta(microseconds=1)) / _MICROS_PER_HOUR


def hours_between(start: datetime, end: datetime) -> Decimal:
    return delta_hours(end - start)


def parse_time_of_day(value: Union[str, time, None], default: Optional[time] = None) -> Optional[time]:
    """
    Parse "HH:MM" or "HH:MM:SS" into a time.

    Args:
        value: String, time, or None
        default: Returned when value is empty or unparsable

    Returns:
        Parsed time or default
    """
    if value is None:
        return default
    if isinstance(value, time):
        return value
    match = _HHMM_RE.match(str(value))
    if not match:
        return default
    hour, minute, second = int(match.group(1)), int(match.group(2)), int(match.group(3) or 0)
    if hour > 23 or minute > 59 or second > 59:
        return default
    return time(hour, minute, second)


def format_hhmm(value: Optional[time]) -> Optional[str]:
    return value.strftime("%H:%M") if value else None


def format_local_datetime(value: Optional[datetime]) -> Optional[str]:
    return value.strftime("%Y-%m-%d %H:%M:%S") if value else None


def minutes_of_day(value: time) -> int:
    return value.hour * 60 + value.minute


def time_from_minutes(total_minutes: int) -> time:
    total_minutes = total_minutes % (24 * 60)
    return time(total_minutes // 60, total_minutes % 60)


def weekday_number(day: date) -> int:
    """Weekday with 0=Sunday .. 6=Saturday, the numbering used by the plants' shift tables."""
    return day.isoweekday() % 7


def shift_duration_hours(start_time: time, end_time: time) -> Decimal:
    """Scheduled hours of a shift, wrapping past midnight when end is earlier than start."""
    start_min = minutes_of_day(start_time)
    end_min = minutes_of_day(end_time)
    if end_min < start_min:
        end_min += 24 * 60
    return round_hours(Decimal(end_min - start_min) / Decimal(60))


def late_minutes(
    first_entry: datetime,
    work_date: date,
    start_time: time,
    tolerance_minutes: Optional[int] = 0,
) -> int:
    """
    Minutes the first entry falls after the scheduled start.

    Args:
        first_entry: First inferred entry of the logical day
        work_date: Logical work date the entry belongs to
        start_time: Scheduled shift start (local)
        tolerance_minutes: Grace window; arrivals within it count as on time

    Returns:
        Whole minutes late, or 0 when on time or within tolerance
    """
    shift_start = datetime.combine(work_date, start_time)
    diff = math.floor((first_entry - shift_start).total_seconds() / 60)
    if diff <= (tolerance_minutes or 0):
        return 0
    return diff


def now_local(timezone_str: Optional[str] = None) -> datetime:
    """
    Current wall-clock time in the plants' timezone, as a naive datetime.

    Scan instants are stored as naive local times, so "now" has to be
    expressed the same way before it is compared with them.
    """
    try:
        tz = pytz.timezone(timezone_str or settings.tz_default)
    except pytz.UnknownTimeZoneError:
        tz = pytz.UTC
    return datetime.now(pytz.UTC).astimezone(tz).replace(tzinfo=None)


def today_local(timezone_str: Optional[str] = None) -> date:
    return now_local(timezone_str).date()
