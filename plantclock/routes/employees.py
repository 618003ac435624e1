from datetime import datetime, time, timedelta
from typing import Dict, Optional

import structlog
from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy import func, or_
from sqlalchemy.orm import Session

from ..db import get_db
from ..models.models import EmployeeName, Plant, PlantEntry
from ..schemas.employees import (
    BulkEmployeeRequest,
    BulkEmployeeResult,
    DepartmentList,
    DepartmentOut,
    EmployeeList,
    EmployeeOut,
    EmployeeUpdate,
    EmployeeUpsert,
    EntriesReport,
    EntryOut,
    PlantEntrySummary,
)
from ..services.plant_client import is_placeholder_name
from ..services.plant_sync import placeholder_name
from ..services.validation import natural_key
from .plants import get_plant_client_factory
from .reports import check_window, parse_day

router = APIRouter(prefix="/multi-plant", tags=["employees"])
logger = structlog.get_logger(__name__)


def _get_employee(db: Session, employee_number: str) -> EmployeeName:
    row = db.query(EmployeeName).filter(EmployeeName.employee_number == employee_number).first()
    if not row:
        raise HTTPException(status_code=404, detail="Employee not found")
    return row


@router.get("/employees", response_model=EmployeeList)
def list_employees(
    search: Optional[str] = Query(default=None),
    department: Optional[str] = Query(default=None),
    db: Session = Depends(get_db),
):
    query = db.query(EmployeeName)
    if search:
        pattern = f"%{search}%"
        query = query.filter(or_(
            EmployeeName.employee_number.ilike(pattern),
            EmployeeName.employee_name.ilike(pattern),
        ))
    if department:
        query = query.filter(EmployeeName.department == department)
    rows = sorted(query.all(), key=lambda r: natural_key(r.employee_number))
    return EmployeeList(employees=[EmployeeOut.model_validate(r) for r in rows], total=len(rows))


@router.post("/employees", response_model=EmployeeOut)
def save_employee(payload: EmployeeUpsert, db: Session = Depends(get_db)):
    """Create an employee or overwrite the existing directory row"""
    row = db.query(EmployeeName).filter(EmployeeName.employee_number == payload.employee_number).first()
    if row is None:
        row = EmployeeName(employee_number=payload.employee_number)
        db.add(row)
    row.employee_name = payload.employee_name
    row.employee_role = payload.employee_role or None
    row.department = payload.department or None
    row.updated_at = datetime.now()
    db.commit()
    db.refresh(row)
    return row


@router.put("/employees", response_model=BulkEmployeeResult)
def bulk_upsert_employees(payload: BulkEmployeeRequest, db: Session = Depends(get_db)):
    """
    Import a batch of employees.

    Real names replace stored ones but a placeholder never overwrites a
    real name. Role and department only change when a value is given.
    """
    count = 0
    for item in payload.employees:
        if not item.employee_number:
            continue
        row = db.query(EmployeeName).filter(EmployeeName.employee_number == item.employee_number).first()
        if row is None:
            row = EmployeeName(
                employee_number=item.employee_number,
                employee_name=item.employee_name or placeholder_name(item.employee_number),
            )
            db.add(row)
        elif not is_placeholder_name(item.employee_name):
            row.employee_name = item.employee_name
        row.employee_role = item.employee_role or row.employee_role
        row.department = item.department or row.department
        row.updated_at = datetime.now()
        db.flush()
        count += 1
    db.commit()
    logger.info("employees_bulk_upserted", count=count)
    return BulkEmployeeResult(updated=count, message=f"{count} employees updated")


@router.put("/employees/{employee_number}", response_model=EmployeeOut)
def update_employee(employee_number: str, payload: EmployeeUpdate, db: Session = Depends(get_db)):
    row = _get_employee(db, employee_number)
    for key, value in payload.model_dump(exclude_unset=True).items():
        if key == "employee_name" and value is None:
            continue
        setattr(row, key, value)
    row.updated_at = datetime.now()
    db.commit()
    db.refresh(row)
    return row


@router.delete("/employees/{employee_number}")
def delete_employee(employee_number: str, db: Session = Depends(get_db)):
    """Remove the directory row; synced scans for the number are kept"""
    row = _get_employee(db, employee_number)
    db.delete(row)
    db.commit()
    return {"message": "Employee deleted successfully"}


@router.get("/departments", response_model=DepartmentList)
def list_departments(
    db: Session = Depends(get_db),
    client_factory=Depends(get_plant_client_factory),
):
    """
    Departments known across the network.

    Code to name maps from every active plant are merged, first plant
    wins on a shared code. Department names already stored in the
    employee directory are added when no plant reported them.
    """
    merged: Dict[str, str] = {}
    plants = db.query(Plant).filter(Plant.is_active.is_(True)).order_by(Plant.id).all()
    for plant in plants:
        for code, name in client_factory(plant).fetch_departments().items():
            merged.setdefault(code, name)

    known_names = set(merged.values())
    stored = db.query(EmployeeName.department).filter(EmployeeName.department.isnot(None)).distinct().all()
    for (name,) in stored:
        if name and name not in known_names:
            merged.setdefault(name, name)
            known_names.add(name)

    departments = [DepartmentOut(code=code, name=name) for code, name in merged.items()]
    departments.sort(key=lambda d: d.name.casefold())
    return DepartmentList(departments=departments)


@router.get("/entries", response_model=EntriesReport)
def list_entries(
    start_date: Optional[str] = Query(default=None),
    end_date: Optional[str] = Query(default=None),
    employee: Optional[str] = Query(default=None),
    plant_id: Optional[int] = Query(default=None),
    db: Session = Depends(get_db),
):
    """Raw synced scans for a date window, as stored and before any reconciliation"""
    start = parse_day(start_date, "start_date")
    end = parse_day(end_date, "end_date")
    check_window(start, end)
    window_start = datetime.combine(start, time.min)
    window_end = datetime.combine(end + timedelta(days=1), time.min)
    in_window = (PlantEntry.timestamp >= window_start, PlantEntry.timestamp < window_end)

    query = db.query(PlantEntry, Plant.name).join(Plant, PlantEntry.plant_id == Plant.id).filter(*in_window)
    if employee:
        query = query.filter(PlantEntry.employee_number == employee)
    if plant_id is not None:
        query = query.filter(PlantEntry.plant_id == plant_id)
    rows = query.order_by(PlantEntry.employee_number, PlantEntry.timestamp).all()

    entries = [
        EntryOut(
            id=entry.id,
            employee_number=entry.employee_number,
            timestamp=entry.timestamp,
            action=entry.action,
            plant_id=entry.plant_id,
            plant_name=plant_name,
            synced_at=entry.synced_at,
        )
        for entry, plant_name in rows
    ]

    counts = {
        plant: (total, unique)
        for plant, total, unique in db.query(
            PlantEntry.plant_id,
            func.count(PlantEntry.id),
            func.count(func.distinct(PlantEntry.employee_number)),
        ).filter(*in_window).group_by(PlantEntry.plant_id).all()
    }
    plant_summary = [
        PlantEntrySummary(
            id=plant.id,
            name=plant.name,
            entry_count=counts.get(plant.id, (0, 0))[0],
            unique_employees=counts.get(plant.id, (0, 0))[1],
        )
        for plant in db.query(Plant).filter(Plant.is_active.is_(True)).order_by(Plant.name).all()
    ]

    return EntriesReport(
        start_date=start,
        end_date=end,
        entries=entries,
        total_entries=len(entries),
        unique_employees=len({e.employee_number for e in entries}),
        plant_summary=plant_summary,
    )
