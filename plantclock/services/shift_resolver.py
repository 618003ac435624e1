"""
Shift resolution.

Roster sync registers the same person at every plant they badge at, each time
with that plant's boilerplate shift. Only a minority (drivers, office staff)
have a genuinely different schedule, so resolution is:

1. a manual override always wins;
2. otherwise the most recently synced row, unless a "more specific" row
   exists (non-default start time, or an office/driver marker in the name);
3. otherwise the generic Monday-Friday 06:00-15:30 schedule.
"""
import json
from dataclasses import dataclass
from datetime import time
from enum import Enum
from typing import FrozenSet, Iterable, List, Optional, Sequence

import structlog

from ..config import settings
from .time_rules import parse_time_of_day

logger = structlog.get_logger(__name__)

WEEKDAYS = frozenset(range(7))


class ScheduleSource(str, Enum):
    synced = "synced"
    manual = "manual"
    default = "default"


@dataclass(frozen=True)
class ShiftSchedule:
    name: str
    start_time: time
    end_time: time
    tolerance_minutes: int = 0
    workdays: FrozenSet[int] = frozenset({1, 2, 3, 4, 5})  # 0=Sunday
    source: ScheduleSource = ScheduleSource.synced
    source_plant_id: Optional[int] = None

    @property
    def is_manual(self) -> bool:
        return self.source == ScheduleSource.manual

    @property
    def crosses_midnight(self) -> bool:
        return self.start_time.hour > self.end_time.hour

    def is_workday(self, weekday: int) -> bool:
        return weekday in self.workdays


def default_workdays() -> FrozenSet[int]:
    days = frozenset(d for d in settings.default_workdays if d in WEEKDAYS)
    return days or frozenset({1, 2, 3, 4, 5})


def parse_workdays(raw, employee_id: Optional[str] = None) -> FrozenSet[int]:
    """
    Parse a workday set stored as a JSON list ("[1,2,3,4,5]") or any iterable of ints.
    Malformed values fall back to Monday-Friday.
    """
    if raw is None or raw == "":
        return default_workdays()
    try:
        values = json.loads(raw) if isinstance(raw, str) else raw
        days = frozenset(int(d) for d in values)
    except (TypeError, ValueError):
        logger.warning("shift_workdays_malformed", employee_id=employee_id, raw=str(raw))
        return default_workdays()
    if not days or not days <= WEEKDAYS:
        logger.warning("shift_workdays_malformed", employee_id=employee_id, raw=str(raw))
        return default_workdays()
    return days


def default_schedule() -> ShiftSchedule:
    return ShiftSchedule(
        name=settings.default_shift_name,
        start_time=parse_time_of_day(settings.default_shift_start, time(6, 0)),
        end_time=parse_time_of_day(settings.default_shift_end, time(15, 30)),
        tolerance_minutes=0,
        workdays=default_workdays(),
        source=ScheduleSource.default,
    )


def is_more_specific(
    candidate: ShiftSchedule,
    default_start: Optional[time] = None,
    markers: Optional[Sequence[str]] = None,
) -> bool:
    """
    A candidate is more specific than the boilerplate default when its start
    differs from the default start, or its name carries a role marker.
    """
    if default_start is None:
        default_start = parse_time_of_day(settings.default_shift_start, time(6, 0))
    if markers is None:
        markers = settings.specific_shift_markers
    if candidate.start_time != default_start:
        return True
    name = (candidate.name or "").lower()
    return any(marker.lower() in name for marker in markers if marker)


def resolve_shift(candidates: Iterable[ShiftSchedule]) -> ShiftSchedule:
    """
    Pick the effective schedule for one employee.

    Args:
        candidates: Schedule rows in load order, oldest first

    Returns:
        The manual override if present, else the most specific synced row
        (most recent first), else the generic default schedule
    """
    rows: List[ShiftSchedule] = list(candidates)
    if not rows:
        return default_schedule()

    for row in rows:
        if row.is_manual:
            return row

    synced = [row for row in rows if row.source == ScheduleSource.synced]
    if not synced:
        return default_schedule()

    newest_first = list(reversed(synced))
    chosen = newest_first[0]
    if len(newest_first) > 1:
        for row in newest_first:
            if is_more_specific(row):
                chosen = row
                break
    return chosen
