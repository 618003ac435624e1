"""
Attendance pipeline.

Entry point for every report surface. Storage is reached only through the
reader objects passed in, read once per run; everything after that is pure
computation over immutable values, so concurrent requests need no locking
and pollers simply re-run the whole pipeline.
"""
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from decimal import Decimal
from typing import Dict, Iterable, List, Mapping, Optional, Sequence, Set, Tuple

import structlog

from .day_classifier import DayRecord, DayStatus, classify_day
from .night_shift import build_night_shift_boundaries, logical_date
from .scan_inference import DirectionStrategy, ScanEvent, get_direction_strategy
from .sessions import DayScans, Session, reconcile_scans
from .shift_resolver import ShiftSchedule, resolve_shift
from .time_rules import ZERO_HOURS, hours_between, round_hours
from .validation import ValidationRecord, audit_day, natural_key, sort_validation_records

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class EmployeeInfo:
    employee_id: str
    name: Optional[str] = None
    role: Optional[str] = None
    department: Optional[str] = None

    @property
    def display_name(self) -> str:
        return self.name or f"Employee #{self.employee_id}"


class ScanReader:
    def read_scans(self, start: date, end: date, employee_ids: Optional[Sequence[str]] = None) -> List[ScanEvent]:
        """Scans whose calendar date falls in [start, end], merged across active plants."""
        raise NotImplementedError


class ScheduleReader:
    def read_candidates(
        self, start: date, end: date, employee_ids: Optional[Sequence[str]] = None
    ) -> Dict[str, List[ShiftSchedule]]:
        """Schedule candidates effective in [start, end], per employee, oldest load first."""
        raise NotImplementedError


class HolidayReader:
    def read_holidays(self, start: date, end: date) -> Set[date]:
        raise NotImplementedError


class EmployeeDirectory:
    def read_employees(self, employee_ids: Optional[Sequence[str]] = None) -> Dict[str, EmployeeInfo]:
        raise NotImplementedError

    def plant_names(self) -> Dict[int, str]:
        return {}


@dataclass(frozen=True)
class EmployeeDays:
    employee: EmployeeInfo
    schedule: ShiftSchedule
    days: Tuple[DayRecord, ...]
    scans_by_day: Mapping[date, DayScans] = field(default_factory=dict)


@dataclass(frozen=True)
class LiveEmployee:
    employee: EmployeeInfo
    schedule: ShiftSchedule
    day_scans: DayScans
    record: DayRecord
    worked_hours: Decimal
    last_scan: ScanEvent

    @property
    def is_active(self) -> bool:
        return self.day_scans.normalized.has_open_entry

    @property
    def sessions(self) -> Tuple[Session, ...]:
        return self.day_scans.match.sessions


def date_range(start: date, end: date) -> List[date]:
    days = []
    current = start
    while current <= end:
        days.append(current)
        current += timedelta(days=1)
    return days


class AttendancePipeline:
    def __init__(
        self,
        scans: ScanReader,
        schedules: ScheduleReader,
        holidays: HolidayReader,
        directory: EmployeeDirectory,
        strategy: Optional[DirectionStrategy] = None,
    ):
        self.scans = scans
        self.schedules = schedules
        self.holidays = holidays
        self.directory = directory
        self.strategy = strategy or get_direction_strategy()

    # Loading

    def _load(self, start: date, end: date, employee_ids: Optional[Sequence[str]]):
        # One extra calendar day so a night-shift exit after the window end is still seen
        raw_scans = self.scans.read_scans(start, end + timedelta(days=1), employee_ids)
        candidates = self.schedules.read_candidates(start, end, employee_ids)
        holidays = set(self.holidays.read_holidays(start, end))
        employees = self.directory.read_employees(employee_ids)
        return raw_scans, candidates, holidays, employees

    @staticmethod
    def resolve_schedules(
        employee_ids: Iterable[str],
        candidates: Mapping[str, Sequence[ShiftSchedule]],
    ) -> Dict[str, ShiftSchedule]:
        return {emp: resolve_shift(candidates.get(emp, ())) for emp in employee_ids}

    @staticmethod
    def bucket_scans(
        scans: Iterable[ScanEvent],
        schedules: Mapping[str, ShiftSchedule],
        start: date,
        end: date,
    ) -> Dict[str, Dict[date, List[ScanEvent]]]:
        """Group scans by employee and logical date, dropping dates outside [start, end]."""
        boundaries = build_night_shift_boundaries(schedules)
        buckets: Dict[str, Dict[date, List[ScanEvent]]] = defaultdict(lambda: defaultdict(list))
        for scan in scans:
            work_date = logical_date(scan.instant, boundaries.get(scan.employee_id))
            if start <= work_date <= end:
                buckets[scan.employee_id][work_date].append(scan)
        return buckets

    def _employee_ids(
        self,
        scans: Sequence[ScanEvent],
        employees: Mapping[str, EmployeeInfo],
        employee_ids: Optional[Sequence[str]],
        include_roster: bool,
    ) -> List[str]:
        if employee_ids:
            ids = set(employee_ids)
        else:
            ids = {s.employee_id for s in scans}
            if include_roster:
                ids.update(employees)
        return sorted(ids, key=natural_key)

    # Reports

    def day_records(
        self,
        start: date,
        end: date,
        employee_ids: Optional[Sequence[str]] = None,
        include_roster: bool = True,
    ) -> List[EmployeeDays]:
        """
        DayRecords for every employee and every date in [start, end].

        Args:
            start: First logical date
            end: Last logical date (inclusive)
            employee_ids: Restrict to these employees
            include_roster: Also report directory employees without scans

        Returns:
            One EmployeeDays per employee, natural employee-id order
        """
        raw_scans, candidates, holidays, employees = self._load(start, end, employee_ids)
        ids = self._employee_ids(raw_scans, employees, employee_ids, include_roster)
        schedules = self.resolve_schedules(ids, candidates)
        buckets = self.bucket_scans(raw_scans, schedules, start, end)
        if not employee_ids:
            # Scans read from the look-ahead day alone do not put an employee in the window
            ids = [emp for emp in ids if emp in buckets or (include_roster and emp in employees)]
        days = date_range(start, end)

        results: List[EmployeeDays] = []
        for emp in ids:
            schedule = schedules[emp]
            by_day = buckets.get(emp, {})
            reconciled = {d: reconcile_scans(scans, strategy=self.strategy) for d, scans in by_day.items()}
            records = tuple(
                classify_day(emp, d, schedule, holidays, reconciled.get(d))
                for d in days
            )
            results.append(EmployeeDays(
                employee=employees.get(emp) or EmployeeInfo(employee_id=emp),
                schedule=schedule,
                days=records,
                scans_by_day=reconciled,
            ))

        logger.info(
            "day_records_built",
            start=start.isoformat(),
            end=end.isoformat(),
            employees=len(results),
            scans=len(raw_scans),
        )
        return results

    def live_snapshot(self, day: date, now: datetime) -> List[LiveEmployee]:
        """
        Employees with scans on the logical day.

        Worked hours include the time elapsed since an open entry, when that
        is within 24 hours.
        """
        raw_scans, candidates, holidays, employees = self._load(day, day, None)
        ids = self._employee_ids(raw_scans, employees, None, include_roster=False)
        schedules = self.resolve_schedules(ids, candidates)
        buckets = self.bucket_scans(raw_scans, schedules, day, day)

        snapshot: List[LiveEmployee] = []
        for emp in ids:
            scans = buckets.get(emp, {}).get(day)
            if not scans:
                continue
            day_scans = reconcile_scans(scans, strategy=self.strategy)
            worked = day_scans.match.total_hours
            normalized = day_scans.normalized
            if normalized.has_open_entry:
                elapsed = hours_between(normalized.entries[-1], now)
                if ZERO_HOURS <= elapsed <= Decimal(24):
                    worked = worked + elapsed
            snapshot.append(LiveEmployee(
                employee=employees.get(emp) or EmployeeInfo(employee_id=emp),
                schedule=schedules[emp],
                day_scans=day_scans,
                record=classify_day(emp, day, schedules[emp], holidays, day_scans),
                worked_hours=round_hours(worked),
                last_scan=max(scans, key=lambda s: s.instant),
            ))
        return snapshot

    def validate(self, day: date, include_roster: bool = True) -> List[Tuple[EmployeeInfo, ValidationRecord]]:
        """Validation records for one logical day, invalid first."""
        results = self.day_records(day, day, include_roster=include_roster)
        plant_names = self.directory.plant_names()
        by_id: Dict[str, EmployeeInfo] = {}
        records: List[ValidationRecord] = []
        for employee_days in results:
            record = employee_days.days[0]
            day_scans = employee_days.scans_by_day.get(day)
            if day_scans is None and record.status != DayStatus.absent:
                # Roster employee on a rest day or holiday: nothing to review
                continue
            by_id[record.employee_id] = employee_days.employee
            records.append(audit_day(record, day_scans, plant_names))
        return [(by_id[r.employee_id], r) for r in sort_validation_records(records)]
