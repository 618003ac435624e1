"""
Day classification.
Combines one employee-day of matched sessions with the resolved schedule to
produce worked hours, overtime and a status code.
"""
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from decimal import Decimal
from enum import Enum
from typing import AbstractSet, Optional, Sequence, Tuple

from ..config import settings
from .sessions import DayScans, Session
from .shift_resolver import ShiftSchedule
from .time_rules import ZERO_HOURS, delta_hours, round_hours, weekday_number


class DayStatus(str, Enum):
    present = "A"
    late = "R"  # Set by report rules, never by classify_day
    absent = "F"
    holiday = "H"
    non_workday = "N"
    extra = "E"


@dataclass(frozen=True)
class DayRecord:
    employee_id: str
    date: date
    status: DayStatus
    is_workday: bool
    is_holiday: bool = False
    sessions: Tuple[Session, ...] = ()
    worked_hours: Decimal = ZERO_HOURS
    overtime_hours: Decimal = ZERO_HOURS
    first_entry: Optional[datetime] = None
    last_exit: Optional[datetime] = None
    entries_count: int = 0
    exits_count: int = 0
    scan_count: int = 0
    has_open_entry: bool = False
    plants_used: Tuple[int, ...] = field(default_factory=tuple)

    @property
    def status_code(self) -> str:
        return self.status.value

    @property
    def is_present(self) -> bool:
        return self.entries_count > 0


def shift_end_instant(work_date: date, schedule: ShiftSchedule) -> datetime:
    """Scheduled end of the shift that starts on work_date; next calendar day for night shifts."""
    end = datetime.combine(work_date, schedule.end_time)
    if schedule.crosses_midnight:
        end += timedelta(days=1)
    return end


def compute_overtime(
    sessions: Sequence[Session],
    schedule: ShiftSchedule,
    work_date: date,
    min_minutes: Optional[int] = None,
) -> Decimal:
    """
    Overtime on a scheduled workday.

    Only time after the scheduled shift end counts. A session that starts
    after the end counts in full; one that ends before it counts nothing.
    Each session's overtime is rounded to 0.01 before summing. Day totals
    under min_minutes are treated as clock drift and dropped.

    Args:
        sessions: Matched sessions of the day
        schedule: Resolved schedule
        work_date: Logical work date
        min_minutes: Noise threshold (default from settings)

    Returns:
        Overtime hours rounded to 0.01
    """
    if min_minutes is None:
        min_minutes = settings.overtime_min_minutes
    shift_end = shift_end_instant(work_date, schedule)

    overtime = timedelta(0)
    overtime_hours = ZERO_HOURS
    for session in sessions:
        if session.exit > shift_end:
            extra = session.exit - max(session.entry, shift_end)
            overtime += extra
            overtime_hours += round_hours(delta_hours(extra))

    if overtime < timedelta(minutes=min_minutes):
        return ZERO_HOURS
    return round_hours(overtime_hours)


def classify_day(
    employee_id: str,
    work_date: date,
    schedule: ShiftSchedule,
    holidays: AbstractSet[date] = frozenset(),
    day_scans: Optional[DayScans] = None,
) -> DayRecord:
    """
    Build the DayRecord for one employee on one logical date.

    Holidays are H, days outside the schedule are N (or E when worked), and
    a scheduled workday is F without sessions and A with them. Hours worked
    on H/N/E days count in full as overtime.
    """
    is_holiday = work_date in holidays
    is_workday = schedule.is_workday(weekday_number(work_date))

    sessions: Tuple[Session, ...] = ()
    worked = ZERO_HOURS
    extra = {}
    if day_scans is not None:
        normalized = day_scans.normalized
        sessions = day_scans.match.sessions
        worked = day_scans.match.total_hours
        extra = dict(
            first_entry=normalized.entries[0] if normalized.entries else None,
            last_exit=normalized.exits[-1] if normalized.exits else None,
            entries_count=len(normalized.entries),
            exits_count=len(normalized.exits),
            scan_count=day_scans.raw_count,
            has_open_entry=normalized.has_open_entry,
            plants_used=tuple(sorted(day_scans.plants)),
        )

    if is_holiday:
        status = DayStatus.holiday
        overtime = worked
    elif not is_workday:
        status = DayStatus.extra if sessions else DayStatus.non_workday
        overtime = worked
    elif not sessions:
        status = DayStatus.absent
        overtime = ZERO_HOURS
    else:
        status = DayStatus.present
        overtime = compute_overtime(sessions, schedule, work_date)

    return DayRecord(
        employee_id=employee_id,
        date=work_date,
        status=status,
        is_workday=is_workday and not is_holiday,
        is_holiday=is_holiday,
        sessions=sessions,
        worked_hours=round_hours(worked),
        overtime_hours=round_hours(overtime),
        **extra,
    )
