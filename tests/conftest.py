import os

# Must be set before plantclock.config is imported
os.environ["DATABASE_URL"] = "sqlite://"
os.environ.setdefault("AUTO_CREATE_DB", "false")

from datetime import datetime
from typing import Dict, List, Optional, Sequence

import pytest
from fastapi.testclient import TestClient

from plantclock.db import Base, SessionLocal, engine, get_db
from plantclock.models import models  # noqa: F401
from plantclock.services.pipeline import (
    AttendancePipeline,
    EmployeeDirectory,
    EmployeeInfo,
    HolidayReader,
    ScanReader,
    ScheduleReader,
)
from plantclock.services.scan_inference import AlternatingDirection, ScanEvent


def dt(value: str) -> datetime:
    return datetime.strptime(value, "%Y-%m-%d %H:%M")


def scan(employee_id: str, value: str, plant_id: int = 1, direction: Optional[str] = None) -> ScanEvent:
    return ScanEvent(employee_id=employee_id, instant=dt(value), source_plant_id=plant_id, direction=direction)


class FakeScans(ScanReader):
    def __init__(self, scans):
        self.scans = list(scans)

    def read_scans(self, start, end, employee_ids=None):
        return [
            s for s in self.scans
            if start <= s.instant.date() <= end and (not employee_ids or s.employee_id in employee_ids)
        ]


class FakeSchedules(ScheduleReader):
    def __init__(self, candidates=None):
        self.candidates = candidates or {}

    def read_candidates(self, start, end, employee_ids=None):
        return {k: list(v) for k, v in self.candidates.items() if not employee_ids or k in employee_ids}


class FakeHolidays(HolidayReader):
    def __init__(self, holidays=()):
        self.holidays = set(holidays)

    def read_holidays(self, start, end):
        return {d for d in self.holidays if start <= d <= end}


class FakeDirectory(EmployeeDirectory):
    def __init__(self, employees: Optional[Dict[str, EmployeeInfo]] = None, plants: Optional[Dict[int, str]] = None):
        self.employees = employees or {}
        self.plants = plants or {}

    def read_employees(self, employee_ids: Optional[Sequence[str]] = None):
        return {k: v for k, v in self.employees.items() if not employee_ids or k in employee_ids}

    def plant_names(self):
        return dict(self.plants)


@pytest.fixture
def make_pipeline():
    def _make(scans: List[ScanEvent] = (), candidates=None, holidays=(), employees=None, plants=None):
        return AttendancePipeline(
            scans=FakeScans(scans),
            schedules=FakeSchedules(candidates),
            holidays=FakeHolidays(holidays),
            directory=FakeDirectory(employees, plants),
            strategy=AlternatingDirection(),
        )
    return _make


@pytest.fixture
def db():
    Base.metadata.create_all(bind=engine)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def client(db):
    from plantclock.main import app

    def _get_db():
        yield db

    app.dependency_overrides[get_db] = _get_db
    app.state.limiter.reset()
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()
