"""
Plant synchronization service.
Copies remote scans, employee names and shift assignments into the local store.
"""
from datetime import date, datetime, time, timedelta
from typing import Callable, Dict, List, Optional, Set, Tuple

import httpx
import structlog
from sqlalchemy.orm import Session

from ..models.models import EmployeeName, Plant, PlantEntry, ShiftAssignment
from ..schemas.plants import PlantSyncResult, SyncAllResult
from .plant_client import (
    PlantClient,
    RemoteEmployee,
    RemoteEntry,
    RemoteShiftAssignment,
    is_placeholder_name,
)

logger = structlog.get_logger(__name__)

ClientFactory = Callable[[Plant], PlantClient]


def placeholder_name(employee_number: str) -> str:
    return f"Employee #{employee_number}"


def _existing_entry_keys(db: Session, plant_id: int, start: date, end: date) -> Set[Tuple[str, datetime, str]]:
    window_start = datetime.combine(start, time.min)
    window_end = datetime.combine(end + timedelta(days=1), time.min)
    rows = db.query(PlantEntry.employee_number, PlantEntry.timestamp, PlantEntry.action).filter(
        PlantEntry.plant_id == plant_id,
        PlantEntry.timestamp >= window_start,
        PlantEntry.timestamp < window_end,
    ).all()
    return {(r[0], r[1], r[2]) for r in rows}


def store_entries(db: Session, plant: Plant, entries: List[RemoteEntry], start: date, end: date) -> int:
    """Insert scans not already stored for this plant; returns how many were new"""
    seen = _existing_entry_keys(db, plant.id, start, end)
    inserted = 0
    for entry in entries:
        key = (entry.employee_number, entry.timestamp, entry.action)
        if key in seen:
            continue
        seen.add(key)
        db.add(PlantEntry(
            plant_id=plant.id,
            employee_number=entry.employee_number,
            timestamp=entry.timestamp,
            action=entry.action,
            raw_data=entry.raw or None,
        ))
        inserted += 1
    return inserted


def register_employees(db: Session, plant: Plant, employee_numbers: List[str]) -> None:
    """Create placeholder directory rows for employees seen for the first time"""
    if not employee_numbers:
        return
    known = {
        row[0]
        for row in db.query(EmployeeName.employee_number)
        .filter(EmployeeName.employee_number.in_(employee_numbers))
        .all()
    }
    for number in employee_numbers:
        if number not in known:
            db.add(EmployeeName(
                employee_number=number,
                employee_name=placeholder_name(number),
                source_plant_id=plant.id,
            ))
    db.flush()


def apply_employee_names(db: Session, plant: Plant, employees: List[RemoteEmployee]) -> int:
    """
    Replace placeholder names with real ones. Names that were already
    resolved are left alone; role and department only fill gaps.
    """
    updated = 0
    for remote in employees:
        if is_placeholder_name(remote.employee_name):
            continue
        row = db.query(EmployeeName).filter(EmployeeName.employee_number == remote.employee_number).first()
        if row is None:
            db.add(EmployeeName(
                employee_number=remote.employee_number,
                employee_name=remote.employee_name,
                employee_role=remote.employee_role,
                department=remote.department,
                source_plant_id=plant.id,
            ))
            updated += 1
            continue
        if not is_placeholder_name(row.employee_name):
            continue
        row.employee_name = remote.employee_name
        row.employee_role = remote.employee_role or row.employee_role
        row.department = remote.department or row.department
        row.source_plant_id = plant.id
        updated += 1
    return updated


def apply_shift_assignments(db: Session, plant: Plant, assignments: List[RemoteShiftAssignment]) -> int:
    """Upsert this plant's synced schedule row per employee. Manual rows are never touched."""
    if not assignments:
        return 0
    existing: Dict[str, ShiftAssignment] = {
        row.employee_number: row
        for row in db.query(ShiftAssignment).filter(
            ShiftAssignment.source_plant_id == plant.id,
            ShiftAssignment.is_manual.is_(False),
        ).all()
    }
    now = datetime.now()
    count = 0
    # One row per employee and plant; the last active assignment reported wins
    latest: Dict[str, RemoteShiftAssignment] = {}
    for assignment in assignments:
        if assignment.active or assignment.employee_number not in latest:
            latest[assignment.employee_number] = assignment

    for number, remote in latest.items():
        row = existing.get(number)
        if row is None:
            row = ShiftAssignment(employee_number=number, source_plant_id=plant.id, is_manual=False)
            db.add(row)
        row.remote_shift_id = remote.remote_shift_id
        row.shift_name = remote.shift_name
        row.start_time = remote.start_time
        row.end_time = remote.end_time
        row.tolerance_minutes = remote.tolerance_minutes
        row.days = remote.days
        row.start_date = remote.start_date
        row.end_date = remote.end_date
        row.active = remote.active
        row.synced_at = now
        count += 1
    return count


def sync_plant(
    db: Session,
    plant: Plant,
    start: date,
    end: date,
    client_factory: Optional[ClientFactory] = None,
    dry_run: bool = False,
) -> PlantSyncResult:
    """
    Pull one plant's data for a date window into the local store.

    Name and shift lookups are best effort; a failed scan fetch raises
    httpx.HTTPError and leaves the database untouched.

    Args:
        db: Database session
        plant: Plant row to sync
        start: First day of the window
        end: Last day of the window
        client_factory: Builds the API client (tests inject a mock transport here)
        dry_run: Fetch and count only, roll back instead of committing

    Returns:
        Sync counters for the plant
    """
    client = (client_factory or PlantClient)(plant)
    log = logger.bind(plant_id=plant.id, plant_name=plant.name)
    log.info("plant_sync_started", start=start.isoformat(), end=end.isoformat())

    entries = client.fetch_entries(start, end)
    inserted = store_entries(db, plant, entries, start, end)

    employee_numbers = sorted({e.employee_number for e in entries})
    register_employees(db, plant, employee_numbers)
    names_updated = apply_employee_names(db, plant, client.fetch_employee_names(employee_numbers))
    assignments_updated = apply_shift_assignments(db, plant, client.fetch_shift_assignments())

    if dry_run:
        db.rollback()
    else:
        plant.last_sync = datetime.now()
        db.commit()

    log.info(
        "plant_sync_finished",
        fetched=len(entries),
        inserted=inserted,
        employees_updated=names_updated,
        assignments_updated=assignments_updated,
        dry_run=dry_run,
    )
    return PlantSyncResult(
        plant_id=plant.id,
        plant_name=plant.name,
        success=True,
        entries_fetched=len(entries),
        entries_inserted=inserted,
        employees_updated=names_updated,
        assignments_updated=assignments_updated,
    )


def sync_all_plants(
    db: Session,
    start: date,
    end: date,
    client_factory: Optional[ClientFactory] = None,
    dry_run: bool = False,
) -> SyncAllResult:
    """Sync every active plant; a failing plant is reported and does not stop the rest"""
    plants = db.query(Plant).filter(Plant.is_active.is_(True)).order_by(Plant.id).all()
    results: List[PlantSyncResult] = []
    for plant in plants:
        try:
            results.append(sync_plant(db, plant, start, end, client_factory=client_factory, dry_run=dry_run))
        except httpx.HTTPError as e:
            db.rollback()
            logger.warning("plant_sync_failed", plant_id=plant.id, plant_name=plant.name, error=str(e))
            results.append(PlantSyncResult(plant_id=plant.id, plant_name=plant.name, success=False, error=str(e)))
    return SyncAllResult(results=results, total_inserted=sum(r.entries_inserted for r in results))
