"""
Night-shift date remapping.

A 22:00-06:00 worker's exit scan lands on the next calendar date. Without
remapping, the prior day shows an open entry (or a Falta) and the next day an
orphaned exit. Scans earlier than the employee's boundary time-of-day are
attributed to the previous logical work-day.
"""
from datetime import date, datetime, time, timedelta
from typing import Dict, Mapping, Optional

from ..config import settings
from .shift_resolver import ShiftSchedule
from .time_rules import minutes_of_day, time_from_minutes


def night_shift_boundary(schedule: Optional[ShiftSchedule], grace_minutes: Optional[int] = None) -> Optional[time]:
    """
    Boundary time-of-day for a schedule that crosses midnight.

    The grace keeps a slightly late exit on the shift it closes: with a
    22:00-06:00 shift an exit scanned at 06:05 still belongs to the night
    that started the previous evening.

    Args:
        schedule: Resolved schedule, or None
        grace_minutes: Minutes added past the shift end (default from settings)

    Returns:
        end_time + grace, capped at the shift start; None for day schedules
    """
    if schedule is None or not schedule.crosses_midnight:
        return None
    if grace_minutes is None:
        grace_minutes = settings.night_shift_grace_minutes
    boundary = minutes_of_day(schedule.end_time) + max(0, grace_minutes)
    boundary = min(boundary, minutes_of_day(schedule.start_time))
    return time_from_minutes(boundary)


def build_night_shift_boundaries(
    schedules: Mapping[str, ShiftSchedule],
    grace_minutes: Optional[int] = None,
) -> Dict[str, time]:
    """Boundaries for the employees whose resolved schedule crosses midnight."""
    boundaries: Dict[str, time] = {}
    for employee_id, schedule in schedules.items():
        boundary = night_shift_boundary(schedule, grace_minutes)
        if boundary is not None:
            boundaries[employee_id] = boundary
    return boundaries


def remap_scan_date(work_date: date, instant: datetime, boundary: Optional[time]) -> date:
    """
    Logical work date of a scan.

    work_date is either the scan's calendar date or a date this function
    already returned; in the latter case it is returned unchanged.
    """
    if boundary is None:
        return work_date
    if work_date != instant.date():
        return work_date
    if instant.time() < boundary:
        return work_date - timedelta(days=1)
    return work_date


def logical_date(instant: datetime, boundary: Optional[time]) -> date:
    return remap_scan_date(instant.date(), instant, boundary)
