import json
from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from ..db import get_db
from ..models.models import EmployeeName, ShiftAssignment
from ..schemas.shifts import ManualShiftRequest, ShiftAssignmentView, ShiftScheduleOut
from ..services.repository import SqlScheduleReader
from ..services.shift_resolver import ShiftSchedule, resolve_shift
from ..services.time_rules import format_hhmm, parse_time_of_day, today_local

router = APIRouter(prefix="/multi-plant/shift-assignments", tags=["shift-assignments"])


def schedule_out(schedule: ShiftSchedule) -> ShiftScheduleOut:
    return ShiftScheduleOut(
        name=schedule.name,
        start_time=format_hhmm(schedule.start_time),
        end_time=format_hhmm(schedule.end_time),
        tolerance_minutes=schedule.tolerance_minutes,
        work_days=sorted(schedule.workdays),
        source=schedule.source.value,
        source_plant_id=schedule.source_plant_id,
        crosses_midnight=schedule.crosses_midnight,
    )


def _assignment_view(db: Session, employee_number: str) -> ShiftAssignmentView:
    today = today_local()
    candidates = SqlScheduleReader(db).read_candidates(today, today, [employee_number]).get(employee_number, [])
    return ShiftAssignmentView(
        employee_number=employee_number,
        resolved=schedule_out(resolve_shift(candidates)),
        candidates=[schedule_out(c) for c in candidates],
    )


def _manual_row(db: Session, employee_number: str):
    return db.query(ShiftAssignment).filter(
        ShiftAssignment.employee_number == employee_number,
        ShiftAssignment.is_manual.is_(True),
    ).first()


@router.get("/{employee_number}", response_model=ShiftAssignmentView)
def get_shift_assignment(employee_number: str, db: Session = Depends(get_db)):
    known = db.query(EmployeeName).filter(EmployeeName.employee_number == employee_number).first()
    has_rows = db.query(ShiftAssignment.id).filter(ShiftAssignment.employee_number == employee_number).first()
    if not known and not has_rows:
        raise HTTPException(status_code=404, detail="Employee not found")
    return _assignment_view(db, employee_number)


@router.put("/{employee_number}", response_model=ShiftAssignmentView)
def set_manual_shift(employee_number: str, payload: ManualShiftRequest, db: Session = Depends(get_db)):
    row = _manual_row(db, employee_number)
    if row is None:
        row = ShiftAssignment(employee_number=employee_number, is_manual=True, source_plant_id=None)
        db.add(row)
    row.shift_name = payload.shift_name
    row.start_time = parse_time_of_day(payload.start_time)
    row.end_time = parse_time_of_day(payload.end_time)
    row.tolerance_minutes = payload.tolerance_minutes
    row.days = json.dumps(payload.work_days)
    row.start_date = None
    row.end_date = None
    row.active = True
    row.synced_at = datetime.now()
    db.commit()
    return _assignment_view(db, employee_number)


@router.delete("/{employee_number}", response_model=ShiftAssignmentView)
def clear_manual_shift(employee_number: str, db: Session = Depends(get_db)):
    row = _manual_row(db, employee_number)
    if row is None:
        raise HTTPException(status_code=404, detail="No manual shift for this employee")
    db.delete(row)
    db.commit()
    return _assignment_view(db, employee_number)
