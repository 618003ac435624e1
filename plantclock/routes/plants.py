from datetime import timedelta
from typing import List, Optional

import httpx
import structlog
from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy import func
from sqlalchemy.orm import Session

from ..config import settings
from ..db import get_db
from ..models.models import Plant, PlantEntry
from ..schemas.plants import (
    ConnectionTestResult,
    PlantCreate,
    PlantDeleteResult,
    PlantDetail,
    PlantOut,
    PlantSyncResult,
    PlantUpdate,
    SyncAllResult,
)
from ..services.plant_client import PlantClient
from ..services.plant_sync import sync_all_plants, sync_plant
from ..services.time_rules import today_local
from .reports import check_window, parse_day

# Columns that cannot be cleared through an update
REQUIRED_FIELDS = {"name", "ip_address", "port", "use_https", "is_active"}

router = APIRouter(prefix="/plants", tags=["plants"])
logger = structlog.get_logger(__name__)


def get_plant_client_factory():
    """Overridden in tests to inject a mock transport"""
    return PlantClient


def _sync_window(start_date: Optional[str], end_date: Optional[str]):
    end = parse_day(end_date, "end_date", default=today_local())
    start = parse_day(start_date, "start_date", default=end - timedelta(days=settings.plant_sync_days - 1))
    check_window(start, end)
    return start, end


def _get_plant(db: Session, plant_id: int) -> Plant:
    plant = db.query(Plant).filter(Plant.id == plant_id).first()
    if not plant:
        raise HTTPException(status_code=404, detail="Plant not found")
    return plant


@router.get("", response_model=List[PlantOut])
def list_plants(include_inactive: bool = False, db: Session = Depends(get_db)):
    query = db.query(Plant)
    if not include_inactive:
        query = query.filter(Plant.is_active.is_(True))
    return query.order_by(Plant.name).all()


@router.post("", response_model=PlantOut, status_code=201)
def create_plant(payload: PlantCreate, db: Session = Depends(get_db)):
    plant = Plant(**payload.model_dump())
    db.add(plant)
    db.commit()
    db.refresh(plant)
    return plant


@router.post("/sync-all", response_model=SyncAllResult)
def sync_all(
    start_date: Optional[str] = Query(default=None),
    end_date: Optional[str] = Query(default=None),
    db: Session = Depends(get_db),
    client_factory=Depends(get_plant_client_factory),
):
    start, end = _sync_window(start_date, end_date)
    return sync_all_plants(db, start, end, client_factory=client_factory)


@router.post("/{plant_id}/sync", response_model=PlantSyncResult)
def sync_one(
    plant_id: int,
    start_date: Optional[str] = Query(default=None),
    end_date: Optional[str] = Query(default=None),
    db: Session = Depends(get_db),
    client_factory=Depends(get_plant_client_factory),
):
    plant = _get_plant(db, plant_id)
    if not plant.is_active:
        raise HTTPException(status_code=404, detail="Plant not found or inactive")
    start, end = _sync_window(start_date, end_date)
    try:
        return sync_plant(db, plant, start, end, client_factory=client_factory)
    except httpx.HTTPError as e:
        db.rollback()
        logger.warning("plant_sync_failed", plant_id=plant_id, error=str(e))
        raise HTTPException(status_code=502, detail=f"Sync failed: {e}")


@router.get("/{plant_id}/test", response_model=ConnectionTestResult)
def check_plant_connection(
    plant_id: int,
    db: Session = Depends(get_db),
    client_factory=Depends(get_plant_client_factory),
):
    check = client_factory(_get_plant(db, plant_id)).test_connection()
    return ConnectionTestResult(success=check.success, message=check.message, status_code=check.status_code)


@router.get("/{plant_id}", response_model=PlantDetail)
def get_plant(plant_id: int, db: Session = Depends(get_db)):
    plant = _get_plant(db, plant_id)
    total, earliest, latest = db.query(
        func.count(PlantEntry.id), func.min(PlantEntry.timestamp), func.max(PlantEntry.timestamp)
    ).filter(PlantEntry.plant_id == plant_id).one()
    return PlantDetail(
        **PlantOut.model_validate(plant).model_dump(),
        total_entries=total,
        earliest_entry=earliest,
        latest_entry=latest,
    )


@router.put("/{plant_id}", response_model=PlantOut)
def update_plant(plant_id: int, payload: PlantUpdate, db: Session = Depends(get_db)):
    """Partial update; also how a plant is deactivated without losing its scans"""
    plant = _get_plant(db, plant_id)
    for key, value in payload.model_dump(exclude_unset=True).items():
        if value is None and key in REQUIRED_FIELDS:
            continue
        setattr(plant, key, value)
    db.commit()
    db.refresh(plant)
    logger.info("plant_updated", plant_id=plant_id, is_active=plant.is_active)
    return plant


@router.delete("/{plant_id}", response_model=PlantDeleteResult)
def delete_plant(plant_id: int, db: Session = Depends(get_db)):
    """Delete a plant together with every scan synced from it"""
    plant = _get_plant(db, plant_id)
    name = plant.name
    deleted = db.query(PlantEntry).filter(PlantEntry.plant_id == plant_id).count()
    db.delete(plant)
    db.commit()
    logger.info("plant_deleted", plant_id=plant_id, entries_deleted=deleted)
    return PlantDeleteResult(message=f'Plant "{name}" deleted with {deleted} entries', entries_deleted=deleted)
