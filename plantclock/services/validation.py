"""
Data validation audit.
Flags anomalies in an employee-day of scans for human review without
changing any computed figure.
"""
import re
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Iterable, List, Optional, Tuple

from ..config import settings
from .day_classifier import DayRecord, DayStatus
from .sessions import DayScans
from .time_rules import ZERO_HOURS


class IssueCode(str, Enum):
    session_over_24h = "SESSION_OVER_24H"
    single_scan = "SINGLE_SCAN"
    no_hours = "NO_HOURS"
    still_clocked_in = "STILL_CLOCKED_IN"
    excessive_hours = "EXCESSIVE_HOURS"
    multiple_plants = "MULTIPLE_PLANTS"
    duplicate_scans = "DUPLICATE_SCANS"
    absent = "ABSENT"


@dataclass(frozen=True)
class ValidationIssue:
    code: IssueCode
    message: str


@dataclass(frozen=True)
class ValidationRecord:
    employee_id: str
    date: date
    status_code: str
    total_hours: Decimal = ZERO_HOURS
    total_entries: int = 0
    total_exits: int = 0
    issues: Tuple[ValidationIssue, ...] = ()
    plants_used: Tuple[int, ...] = field(default_factory=tuple)

    @property
    def is_valid(self) -> bool:
        return not self.issues


def natural_key(value: str):
    """Sort key that orders "2" before "10" and keeps zero-padded numbers in place."""
    key = []
    for part in re.split(r"(\d+)", value or ""):
        if not part:
            continue
        if part.isdigit():
            key.append((0, int(part), part))
        else:
            key.append((1, 0, part.lower()))
    return key


def audit_day(
    record: DayRecord,
    day_scans: Optional[DayScans],
    plant_names: Optional[dict] = None,
    excessive_hours: Optional[float] = None,
    duplicate_min: Optional[int] = None,
) -> ValidationRecord:
    """
    Audit one employee-day.

    Args:
        record: Classified day (status and totals are copied, never changed)
        day_scans: Reconciled scans for the day, or None when there were none
        plant_names: plant id -> display name, for messages
        excessive_hours: Daily total that triggers a warning (default from settings)
        duplicate_min: Removed-scan count that triggers a warning (default from settings)

    Returns:
        ValidationRecord; valid when no issue was raised
    """
    if excessive_hours is None:
        excessive_hours = settings.excessive_hours_threshold
    if duplicate_min is None:
        duplicate_min = settings.duplicate_scan_warning_min
    plant_names = plant_names or {}
    issues: List[ValidationIssue] = []

    if day_scans is None or day_scans.raw_count == 0:
        if record.status == DayStatus.absent:
            issues.append(ValidationIssue(IssueCode.absent, "No scans recorded on a scheduled workday"))
        return ValidationRecord(
            employee_id=record.employee_id,
            date=record.date,
            status_code=record.status_code,
            issues=tuple(issues),
        )

    normalized = day_scans.normalized
    match = day_scans.match

    for rejected in match.rejected:
        issues.append(ValidationIssue(
            IssueCode.session_over_24h,
            f"Session longer than 24 hours detected ({rejected.hours}h from {rejected.entry:%Y-%m-%d %H:%M})",
        ))

    if match.total_hours == ZERO_HOURS:
        if len(normalized.deduped) == 1:
            issues.append(ValidationIssue(IssueCode.single_scan, "Only one scan (no exit can be inferred)"))
        else:
            issues.append(ValidationIssue(IssueCode.no_hours, "No hours computed despite having scans"))

    if match.total_hours > Decimal(str(excessive_hours)):
        issues.append(ValidationIssue(
            IssueCode.excessive_hours,
            f"Excessive hours: {match.total_hours}h (more than {excessive_hours:g}h)",
        ))

    if len(normalized.entries) > len(normalized.exits):
        issues.append(ValidationIssue(IssueCode.still_clocked_in, "Employee still on shift (no exit recorded)"))

    plants = sorted(day_scans.plants)
    if len(plants) > 1:
        names = ", ".join(plant_names.get(p, f"Plant {p}") for p in plants)
        issues.append(ValidationIssue(IssueCode.multiple_plants, f"Scans at multiple plants: {names}"))

    removed = day_scans.raw_count - len(normalized.deduped)
    if removed >= max(1, duplicate_min):
        issues.append(ValidationIssue(IssueCode.duplicate_scans, f"{removed} duplicate scan(s) filtered"))

    return ValidationRecord(
        employee_id=record.employee_id,
        date=record.date,
        status_code=record.status_code,
        total_hours=match.total_hours,
        total_entries=len(normalized.entries),
        total_exits=len(normalized.exits),
        issues=tuple(issues),
        plants_used=tuple(plants),
    )


def sort_validation_records(records: Iterable[ValidationRecord]) -> List[ValidationRecord]:
    """Invalid records first, then by employee id in natural order."""
    return sorted(records, key=lambda r: (r.is_valid, natural_key(r.employee_id)))
