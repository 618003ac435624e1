"""
SQLAlchemy-backed readers for the attendance pipeline.
"""
from datetime import date, datetime, time, timedelta
from typing import Dict, List, Optional, Sequence, Set

from sqlalchemy import and_, or_
from sqlalchemy.orm import Session

from ..models.models import EmployeeName, Holiday, Plant, PlantEntry, ShiftAssignment
from .pipeline import (
    AttendancePipeline,
    EmployeeDirectory,
    EmployeeInfo,
    HolidayReader,
    ScanReader,
    ScheduleReader,
)
from .scan_inference import DirectionStrategy, ScanEvent
from .shift_resolver import ScheduleSource, ShiftSchedule, parse_workdays


def schedule_from_assignment(row: ShiftAssignment) -> ShiftSchedule:
    return ShiftSchedule(
        name=row.shift_name or "",
        start_time=row.start_time,
        end_time=row.end_time,
        tolerance_minutes=row.tolerance_minutes or 0,
        workdays=parse_workdays(row.days, employee_id=row.employee_number),
        source=ScheduleSource.manual if row.is_manual else ScheduleSource.synced,
        source_plant_id=row.source_plant_id,
    )


class SqlScanReader(ScanReader):
    def __init__(self, db: Session):
        self.db = db

    def read_scans(self, start: date, end: date, employee_ids: Optional[Sequence[str]] = None) -> List[ScanEvent]:
        window_start = datetime.combine(start, time.min)
        window_end = datetime.combine(end + timedelta(days=1), time.min)
        query = (
            self.db.query(PlantEntry)
            .join(Plant, PlantEntry.plant_id == Plant.id)
            .filter(
                Plant.is_active.is_(True),
                PlantEntry.timestamp >= window_start,
                PlantEntry.timestamp < window_end,
            )
        )
        if employee_ids:
            query = query.filter(PlantEntry.employee_number.in_(list(employee_ids)))
        rows = query.order_by(PlantEntry.employee_number, PlantEntry.timestamp).all()
        return [
            ScanEvent(
                employee_id=row.employee_number,
                instant=row.timestamp,
                source_plant_id=row.plant_id,
                direction=row.action or None,
            )
            for row in rows
        ]


class SqlScheduleReader(ScheduleReader):
    def __init__(self, db: Session):
        self.db = db

    def read_candidates(
        self, start: date, end: date, employee_ids: Optional[Sequence[str]] = None
    ) -> Dict[str, List[ShiftSchedule]]:
        query = self.db.query(ShiftAssignment).filter(
            ShiftAssignment.active.is_(True),
            or_(ShiftAssignment.start_date.is_(None), ShiftAssignment.start_date <= end),
            or_(ShiftAssignment.end_date.is_(None), ShiftAssignment.end_date >= start),
        )
        if employee_ids:
            query = query.filter(ShiftAssignment.employee_number.in_(list(employee_ids)))
        # Load order: oldest sync first, so the resolver sees the latest row last
        rows = query.order_by(ShiftAssignment.synced_at, ShiftAssignment.id).all()

        candidates: Dict[str, List[ShiftSchedule]] = {}
        for row in rows:
            candidates.setdefault(row.employee_number, []).append(schedule_from_assignment(row))
        return candidates


class SqlHolidayReader(HolidayReader):
    def __init__(self, db: Session):
        self.db = db

    def read_holidays(self, start: date, end: date) -> Set[date]:
        rows = self.db.query(Holiday.holiday_date).filter(
            and_(Holiday.holiday_date >= start, Holiday.holiday_date <= end)
        ).all()
        return {row[0] for row in rows}


class SqlEmployeeDirectory(EmployeeDirectory):
    def __init__(self, db: Session):
        self.db = db

    def read_employees(self, employee_ids: Optional[Sequence[str]] = None) -> Dict[str, EmployeeInfo]:
        query = self.db.query(EmployeeName)
        if employee_ids:
            query = query.filter(EmployeeName.employee_number.in_(list(employee_ids)))
        return {
            row.employee_number: EmployeeInfo(
                employee_id=row.employee_number,
                name=row.employee_name,
                role=row.employee_role,
                department=row.department,
            )
            for row in query.all()
        }

    def plant_names(self) -> Dict[int, str]:
        return {row.id: row.name for row in self.db.query(Plant.id, Plant.name).all()}


def build_pipeline(db: Session, strategy: Optional[DirectionStrategy] = None) -> AttendancePipeline:
    return AttendancePipeline(
        scans=SqlScanReader(db),
        schedules=SqlScheduleReader(db),
        holidays=SqlHolidayReader(db),
        directory=SqlEmployeeDirectory(db),
        strategy=strategy,
    )
