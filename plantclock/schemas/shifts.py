from typing import List, Optional

from pydantic import BaseModel, Field, field_validator


class ShiftScheduleOut(BaseModel):
    name: str
    start_time: str
    end_time: str
    tolerance_minutes: int
    work_days: List[int]
    source: str  # synced|manual|default
    source_plant_id: Optional[int] = None
    crosses_midnight: bool


class ShiftAssignmentView(BaseModel):
    employee_number: str
    resolved: ShiftScheduleOut
    candidates: List[ShiftScheduleOut]


class ManualShiftRequest(BaseModel):
    shift_name: str = Field(min_length=1)
    start_time: str  # HH:MM
    end_time: str  # HH:MM
    tolerance_minutes: int = Field(default=0, ge=0, le=240)
    work_days: List[int] = Field(default_factory=lambda: [1, 2, 3, 4, 5])

    @field_validator("start_time", "end_time")
    @classmethod
    def _check_hhmm(cls, v: str) -> str:
        parts = v.strip().split(":")
        if len(parts) < 2 or not all(p.isdigit() for p in parts):
            raise ValueError("time must be HH:MM")
        hour, minute = int(parts[0]), int(parts[1])
        if hour > 23 or minute > 59:
            raise ValueError("time must be HH:MM")
        return f"{hour:02d}:{minute:02d}"

    @field_validator("work_days")
    @classmethod
    def _check_days(cls, v: List[int]) -> List[int]:
        if not v or any(d < 0 or d > 6 for d in v):
            raise ValueError("work_days must be weekday numbers 0-6 (0=Sunday)")
        return sorted(set(v))
