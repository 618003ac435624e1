from datetime import datetime, date, time
from typing import Optional

from sqlalchemy import (
    String,
    DateTime,
    Date,
    Time,
    Boolean,
    ForeignKey,
    Integer,
    JSON,
    UniqueConstraint,
    Text,
    Index,
)
from sqlalchemy.orm import relationship, Mapped, mapped_column

from ..db import Base


class Plant(Base):
    """Remote time-clock installation whose punches are consolidated here"""
    __tablename__ = "plants"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    ip_address: Mapped[str] = mapped_column(String(255), nullable=False)
    port: Mapped[int] = mapped_column(Integer, default=3000)
    api_base_path: Mapped[Optional[str]] = mapped_column(String(255), default="/api")
    adapter_type: Mapped[str] = mapped_column(String(50), default="generic")  # generic|same_app
    auth_token: Mapped[Optional[str]] = mapped_column(Text)
    use_https: Mapped[bool] = mapped_column(Boolean, default=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, index=True)
    last_sync: Mapped[Optional[datetime]] = mapped_column(DateTime)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.now)
    updated_at: Mapped[Optional[datetime]] = mapped_column(DateTime, onupdate=datetime.now)

    entries = relationship("PlantEntry", back_populates="plant", cascade="all, delete-orphan")


class PlantEntry(Base):
    """Raw badge scan synced from a plant. Never mutated after insert."""
    __tablename__ = "plant_entries"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    plant_id: Mapped[int] = mapped_column(Integer, ForeignKey("plants.id", ondelete="CASCADE"), nullable=False)
    employee_number: Mapped[str] = mapped_column(String(50), nullable=False)
    timestamp: Mapped[datetime] = mapped_column(DateTime, nullable=False)  # Local time, naive
    action: Mapped[str] = mapped_column(String(20), nullable=False, default="")  # As reported by the device, often unreliable
    raw_data: Mapped[Optional[dict]] = mapped_column(JSON)
    synced_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.now)

    plant = relationship("Plant", back_populates="entries")

    __table_args__ = (
        UniqueConstraint("plant_id", "employee_number", "timestamp", "action", name="uq_plant_entry"),
        Index("idx_pe_emp_ts", "employee_number", "timestamp"),
        Index("idx_pe_timestamp", "timestamp"),
        Index("idx_pe_plant", "plant_id"),
    )


class EmployeeName(Base):
    """Employee directory merged from all plants (last sync wins)"""
    __tablename__ = "employee_names"

    employee_number: Mapped[str] = mapped_column(String(50), primary_key=True)
    employee_name: Mapped[str] = mapped_column(String(255), nullable=False)
    employee_role: Mapped[Optional[str]] = mapped_column(String(255))
    department: Mapped[Optional[str]] = mapped_column(String(255))
    source_plant_id: Mapped[Optional[int]] = mapped_column(Integer)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.now, onupdate=datetime.now)


class ShiftAssignment(Base):
    """Schedule candidate for an employee: one synced row per plant, plus an optional manual override"""
    __tablename__ = "shift_assignments"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    employee_number: Mapped[str] = mapped_column(String(50), nullable=False, index=True)
    remote_shift_id: Mapped[Optional[int]] = mapped_column(Integer)
    shift_name: Mapped[Optional[str]] = mapped_column(String(255))
    start_time: Mapped[time] = mapped_column(Time(timezone=False), nullable=False)  # Local time
    end_time: Mapped[time] = mapped_column(Time(timezone=False), nullable=False)  # Local time
    tolerance_minutes: Mapped[int] = mapped_column(Integer, default=0)
    days: Mapped[Optional[str]] = mapped_column(Text, default="[1,2,3,4,5]")  # JSON list, 0=Sunday
    start_date: Mapped[Optional[date]] = mapped_column(Date)
    end_date: Mapped[Optional[date]] = mapped_column(Date)
    active: Mapped[bool] = mapped_column(Boolean, default=True)
    is_manual: Mapped[bool] = mapped_column(Boolean, default=False)
    source_plant_id: Mapped[Optional[int]] = mapped_column(Integer)  # NULL for manual overrides
    synced_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.now)

    __table_args__ = (
        UniqueConstraint("employee_number", "source_plant_id", name="uq_assignment_employee_plant"),
        Index("idx_sa_employee_active", "employee_number", "active"),
    )


class Holiday(Base):
    __tablename__ = "holidays"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    holiday_date: Mapped[date] = mapped_column("date", Date, nullable=False, unique=True)
    name: Mapped[Optional[str]] = mapped_column(String(255))
