from datetime import date, timedelta
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from ..config import settings
from ..db import get_db
from ..models.models import Plant
from ..schemas.reports import ActiveReport, DailyReport, LiveReport, ValidationReport, WeeklyReport
from ..services.repository import build_pipeline
from ..services.reports import (
    build_active_report,
    build_daily_report,
    build_live_report,
    build_validation_report,
    build_weekly_report,
)
from ..services.time_rules import now_local, today_local

router = APIRouter(prefix="/multi-plant", tags=["reports"])


def parse_day(value: Optional[str], param: str, default: Optional[date] = None) -> date:
    if not value:
        if default is None:
            raise HTTPException(status_code=400, detail=f"{param} is required")
        return default
    try:
        return date.fromisoformat(value)
    except ValueError:
        raise HTTPException(status_code=400, detail=f"{param} must be YYYY-MM-DD")


def check_window(start: date, end: date) -> None:
    if end < start:
        raise HTTPException(status_code=400, detail="end_date must not be before start_date")
    if (end - start).days + 1 > settings.report_max_days:
        raise HTTPException(
            status_code=400,
            detail=f"Date range cannot exceed {settings.report_max_days} days",
        )


@router.get("/live", response_model=LiveReport)
def live_monitor(db: Session = Depends(get_db)):
    now = now_local()
    plants = db.query(Plant).filter(Plant.is_active.is_(True)).order_by(Plant.name).all()
    return build_live_report(build_pipeline(db), now.date(), now, plants=plants)


@router.get("/reports/daily", response_model=DailyReport)
def daily_report(
    date_str: Optional[str] = Query(default=None, alias="date"),
    employee: Optional[str] = Query(default=None),
    db: Session = Depends(get_db),
):
    day = parse_day(date_str, "date", default=today_local())
    return build_daily_report(build_pipeline(db), day, employee_number=employee)


@router.get("/reports/weekly", response_model=WeeklyReport)
def weekly_report(
    start_date: Optional[str] = Query(default=None),
    end_date: Optional[str] = Query(default=None),
    employee: Optional[str] = Query(default=None),
    db: Session = Depends(get_db),
):
    start = parse_day(start_date, "start_date", default=today_local())
    end = parse_day(end_date, "end_date", default=start + timedelta(days=settings.weekly_default_span_days))
    check_window(start, end)
    return build_weekly_report(build_pipeline(db), start, end, employee_number=employee, generated_at=now_local())


@router.get("/reports/active", response_model=ActiveReport)
def active_report(db: Session = Depends(get_db)):
    now = now_local()
    return build_active_report(build_pipeline(db), now.date(), now)


@router.get("/reports/validation", response_model=ValidationReport)
def validation_report(
    date_str: Optional[str] = Query(default=None, alias="date"),
    db: Session = Depends(get_db),
):
    day = parse_day(date_str, "date", default=today_local())
    return build_validation_report(build_pipeline(db), day)
