"""
Report builders.
Shape pipeline output into the payloads served by the report endpoints.
"""
from datetime import date, datetime
from decimal import Decimal
from typing import Dict, Iterable, List, Optional, Sequence

from ..config import settings
from ..schemas.reports import (
    ActiveEmployee,
    ActiveReport,
    ActiveSummary,
    DailyEmployee,
    DailyReport,
    DailySummary,
    DayInfo,
    LiveEmployeeOut,
    LiveReport,
    LiveSummary,
    PlantHeadcount,
    SessionOut,
    ValidationIssueOut,
    ValidationReport,
    ValidationResult,
    ValidationSummary,
    WeeklyDay,
    WeeklyEmployee,
    WeeklyReport,
    WeeklySummary,
)
from .day_classifier import DayRecord, DayStatus
from .pipeline import AttendancePipeline, LiveEmployee, date_range
from .sessions import Session
from .time_rules import (
    ZERO_HOURS,
    format_hhmm,
    format_local_datetime,
    late_minutes,
    round_hours,
    shift_duration_hours,
    weekday_number,
)

DAY_NAMES = ["Sun", "Mon", "Tue", "Wed", "Thu", "Fri", "Sat"]
NOT_AVAILABLE = "N/A"


def _sessions_out(sessions: Iterable[Session]) -> List[SessionOut]:
    return [
        SessionOut(entry=format_local_datetime(s.entry), exit=format_local_datetime(s.exit), hours=float(s.hours))
        for s in sessions
    ]


def _plant_labels(plant_ids: Iterable[int], plant_names: Dict[int, str]) -> List[str]:
    return [plant_names.get(p, f"Plant {p}") for p in plant_ids]


def _ratio_percent(part: int, whole: int) -> int:
    if whole <= 0:
        return 0
    return int((Decimal(part) * 100 / Decimal(whole)).quantize(Decimal("1"), rounding="ROUND_HALF_UP"))


def apply_report_flags(record: DayRecord, minutes_late: int) -> DayStatus:
    """
    Report-level status: A becomes R when the employee arrived late or left
    an entry open; an F day that still has scans is shown as R (present but
    incomplete).
    """
    if record.status == DayStatus.present and (minutes_late > 0 or record.has_open_entry):
        return DayStatus.late
    if record.status == DayStatus.absent and record.scan_count > 0:
        return DayStatus.late
    return record.status


# Daily


def daily_status(entries: int, exits: int, sessions: int) -> str:
    if entries > exits:
        return "on_shift"
    if sessions > 0:
        return "completed"
    if entries > 0 and exits > 0:
        return "incomplete"
    if exits > entries:
        return "extra_exits"
    return "no_valid_records"


def build_daily_report(pipeline: AttendancePipeline, day: date, employee_number: Optional[str] = None) -> DailyReport:
    employee_ids = [employee_number] if employee_number else None
    results = pipeline.day_records(day, day, employee_ids=employee_ids, include_roster=False)
    plant_names = pipeline.directory.plant_names()

    employees: List[DailyEmployee] = []
    total_hours = ZERO_HOURS
    active = 0
    for employee_days in results:
        record = employee_days.days[0]
        if record.scan_count == 0:
            continue
        status = daily_status(record.entries_count, record.exits_count, len(record.sessions))
        if status == "on_shift":
            active += 1
        total_hours += record.worked_hours
        info = employee_days.employee
        employees.append(DailyEmployee(
            employee_number=info.employee_id,
            employee_name=info.display_name,
            employee_role=info.role or NOT_AVAILABLE,
            department=info.department or NOT_AVAILABLE,
            first_entry=format_local_datetime(record.first_entry),
            last_exit=format_local_datetime(record.last_exit),
            total_entries=record.entries_count,
            total_exits=record.exits_count,
            valid_sessions=len(record.sessions),
            unpaired_entries=max(0, record.entries_count - len(record.sessions)),
            unpaired_exits=max(0, record.exits_count - len(record.sessions)),
            total_worked_hours=float(record.worked_hours),
            status=status,
            plants_used=_plant_labels(record.plants_used, plant_names),
            work_sessions=_sessions_out(record.sessions),
        ))

    return DailyReport(
        date=day,
        summary=DailySummary(
            total_employees=len(employees),
            employees_present=len(employees),
            employees_active=active,
            total_hours_worked=float(round_hours(total_hours)),
        ),
        employees=employees,
    )


# Weekly


def build_weekly_report(
    pipeline: AttendancePipeline,
    start: date,
    end: date,
    employee_number: Optional[str] = None,
    generated_at: Optional[datetime] = None,
) -> WeeklyReport:
    employee_ids = [employee_number] if employee_number else None
    results = pipeline.day_records(start, end, employee_ids=employee_ids, include_roster=True)
    plant_names = pipeline.directory.plant_names()
    complete_min = Decimal(str(settings.complete_day_min_hours))
    days = date_range(start, end)

    employees: List[WeeklyEmployee] = []
    for employee_days in results:
        schedule = employee_days.schedule
        info = employee_days.employee
        daily: Dict[str, WeeklyDay] = {}
        total_hours = ZERO_HOURS
        total_overtime = ZERO_HOURS
        days_present = days_complete = days_absent = days_late = total_late = 0
        workdays_count = 0

        for record in employee_days.days:
            if record.is_workday:
                workdays_count += 1
            minutes_late = 0
            if record.is_workday and record.first_entry is not None:
                minutes_late = late_minutes(
                    record.first_entry, record.date, schedule.start_time, schedule.tolerance_minutes
                )
            status = apply_report_flags(record, minutes_late)

            if record.is_present:
                days_present += 1
                if record.sessions and record.worked_hours >= complete_min:
                    days_complete += 1
            if status == DayStatus.absent:
                days_absent += 1
            if minutes_late > 0:
                days_late += 1
                total_late += minutes_late
            total_hours += record.worked_hours
            total_overtime += record.overtime_hours

            daily[record.date.isoformat()] = WeeklyDay(
                date=record.date,
                day_name=DAY_NAMES[weekday_number(record.date)],
                status_code=status.value,
                is_workday=record.is_workday,
                is_holiday=record.is_holiday,
                hours=float(record.worked_hours),
                overtime_hours=float(record.overtime_hours),
                late_minutes=minutes_late,
                first_entry=format_local_datetime(record.first_entry),
                last_exit=format_local_datetime(record.last_exit),
                entries_count=record.entries_count,
                exits_count=record.exits_count,
                sessions=_sessions_out(record.sessions),
                plants_used=_plant_labels(record.plants_used, plant_names),
            )

        employees.append(WeeklyEmployee(
            employee_number=info.employee_id,
            employee_name=info.display_name,
            employee_role=info.role or NOT_AVAILABLE,
            department=info.department or NOT_AVAILABLE,
            shift=schedule.name,
            shift_source=schedule.source.value,
            shift_start_time=format_hhmm(schedule.start_time),
            shift_end_time=format_hhmm(schedule.end_time),
            shift_work_days=sorted(schedule.workdays),
            employee_workdays_count=workdays_count,
            expected_daily_hours=float(shift_duration_hours(schedule.start_time, schedule.end_time)),
            daily_data=daily,
            total_hours=float(round_hours(total_hours)),
            total_overtime_hours=float(round_hours(total_overtime)),
            days_present=days_present,
            days_complete=days_complete,
            days_incomplete=days_present - days_complete,
            days_absent=days_absent,
            total_late_minutes=total_late,
            days_late=days_late,
            attendance_rate=_ratio_percent(min(days_present, workdays_count), workdays_count),
        ))

    return WeeklyReport(
        start_date=start,
        end_date=end,
        workdays=[
            DayInfo(date=d, day_name=DAY_NAMES[weekday_number(d)], day_number=d.day, day_of_week=weekday_number(d))
            for d in days
        ],
        summary=_weekly_summary(employees, len(days)),
        employees=employees,
        generated_at=format_local_datetime(generated_at or datetime.now()),
    )


def _weekly_summary(employees: Sequence[WeeklyEmployee], total_days: int) -> WeeklySummary:
    count = len(employees)
    total_hours = round_hours(sum((Decimal(str(e.total_hours)) for e in employees), ZERO_HOURS))
    total_overtime = round_hours(sum((Decimal(str(e.total_overtime_hours)) for e in employees), ZERO_HOURS))
    perfect = sum(
        1 for e in employees
        if e.days_absent == 0 and e.days_late == 0 and e.days_incomplete == 0 and e.days_present >= e.employee_workdays_count
    )
    with_issues = sum(
        1 for e in employees
        if e.days_incomplete > 0 or e.days_absent > 0 or e.days_late > 0
    )
    average_hours = round_hours(total_hours / count) if count else ZERO_HOURS
    average_rate = round_hours(Decimal(sum(e.attendance_rate for e in employees)) / count) if count else ZERO_HOURS
    return WeeklySummary(
        total_employees=count,
        total_days=total_days,
        total_employee_workdays=sum(e.employee_workdays_count for e in employees),
        total_hours=float(total_hours),
        total_overtime_hours=float(total_overtime),
        average_hours_per_employee=float(average_hours),
        employees_with_perfect_attendance=perfect,
        employees_with_issues=with_issues,
        average_attendance_rate=float(average_rate),
    )


# Live & active


def _live_employee_out(entry: LiveEmployee, plant_names: Dict[int, str]) -> LiveEmployeeOut:
    normalized = entry.day_scans.normalized
    info = entry.employee
    last_plant = entry.last_scan.source_plant_id
    return LiveEmployeeOut(
        employee_number=info.employee_id,
        employee_name=info.display_name,
        employee_role=info.role or NOT_AVAILABLE,
        department=info.department or NOT_AVAILABLE,
        last_action="entry" if entry.is_active else "exit",
        last_timestamp=format_local_datetime(entry.last_scan.instant),
        last_plant=plant_names.get(last_plant) if last_plant is not None else None,
        plants_today=_plant_labels(sorted(entry.day_scans.plants), plant_names),
        total_entries=len(normalized.entries),
        total_exits=len(normalized.exits),
        is_active=entry.is_active,
        first_entry=format_local_datetime(normalized.entries[0] if normalized.entries else None),
        last_exit=format_local_datetime(normalized.exits[-1] if normalized.exits else None),
        worked_hours=float(entry.worked_hours),
        sessions=_sessions_out(entry.sessions),
        shift_name=entry.schedule.name,
        shift_start_time=format_hhmm(entry.schedule.start_time),
        shift_end_time=format_hhmm(entry.schedule.end_time),
    )


def build_live_report(
    pipeline: AttendancePipeline,
    day: date,
    now: datetime,
    plants: Sequence = (),
) -> LiveReport:
    """
    Live monitor payload. Callers poll and rebuild it from scratch every time.

    Args:
        pipeline: Attendance pipeline
        day: Logical day being monitored
        now: Current local time (naive)
        plants: Active Plant rows, for per-plant head counts
    """
    snapshot = pipeline.live_snapshot(day, now)
    plant_names = pipeline.directory.plant_names()
    everyone = [_live_employee_out(e, plant_names) for e in snapshot]
    active = [e for e in everyone if e.is_active]
    completed = [e for e in everyone if not e.is_active]

    headcount: Dict[int, int] = {}
    for entry in snapshot:
        for plant_id in entry.day_scans.plants:
            headcount[plant_id] = headcount.get(plant_id, 0) + 1

    return LiveReport(
        date=day,
        timestamp=format_local_datetime(now),
        poll_seconds=settings.live_poll_seconds,
        summary=LiveSummary(
            total_employees_today=len(everyone),
            currently_active=len(active),
            completed=len(completed),
        ),
        active_employees=active,
        completed_employees=completed,
        all_employees_today=everyone,
        plant_summary=[
            PlantHeadcount(id=p.id, name=p.name, ip_address=p.ip_address, employees_today=headcount.get(p.id, 0))
            for p in plants
        ],
    )


def build_active_report(pipeline: AttendancePipeline, day: date, now: datetime) -> ActiveReport:
    snapshot = pipeline.live_snapshot(day, now)
    plant_names = pipeline.directory.plant_names()
    active: List[ActiveEmployee] = []
    for entry in snapshot:
        if not entry.is_active:
            continue
        info = entry.employee
        normalized = entry.day_scans.normalized
        active.append(ActiveEmployee(
            employee_number=info.employee_id,
            employee_name=info.display_name,
            employee_role=info.role or NOT_AVAILABLE,
            department=info.department or NOT_AVAILABLE,
            current_work_hours=float(entry.worked_hours),
            first_entry=format_local_datetime(normalized.entries[0] if normalized.entries else None),
            last_activity=format_local_datetime(entry.last_scan.instant),
            total_entries=len(normalized.entries),
            total_exits=len(normalized.exits),
            plants_today=_plant_labels(sorted(entry.day_scans.plants), plant_names),
        ))
    return ActiveReport(
        active_employees=active,
        summary=ActiveSummary(
            active_employees=len(active),
            total_employees_today=len(snapshot),
            total_records_today=sum(e.day_scans.raw_count for e in snapshot),
        ),
    )


# Validation


def build_validation_report(pipeline: AttendancePipeline, day: date) -> ValidationReport:
    plant_names = pipeline.directory.plant_names()
    results: List[ValidationResult] = []
    for info, record in pipeline.validate(day):
        results.append(ValidationResult(
            employee_number=record.employee_id,
            employee_name=info.display_name,
            department=info.department or NOT_AVAILABLE,
            date=record.date,
            status_code=record.status_code,
            is_valid=record.is_valid,
            total_hours=float(record.total_hours),
            total_entries=record.total_entries,
            total_exits=record.total_exits,
            issues=[ValidationIssueOut(code=i.code.value, message=i.message) for i in record.issues],
            plants_used=_plant_labels(record.plants_used, plant_names),
        ))
    valid = sum(1 for r in results if r.is_valid)
    return ValidationReport(
        date=day,
        validation_results=results,
        summary=ValidationSummary(
            total_employees=len(results),
            valid_employees=valid,
            invalid_employees=len(results) - valid,
        ),
    )
