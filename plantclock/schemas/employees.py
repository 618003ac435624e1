from datetime import date, datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class EmployeeOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    employee_number: str
    employee_name: str
    employee_role: Optional[str] = None
    department: Optional[str] = None
    source_plant_id: Optional[int] = None
    updated_at: Optional[datetime] = None


class EmployeeList(BaseModel):
    employees: List[EmployeeOut]
    total: int


class EmployeeUpsert(BaseModel):
    employee_number: str = Field(min_length=1)
    employee_name: str = Field(min_length=1)
    employee_role: Optional[str] = None
    department: Optional[str] = None


class EmployeeUpdate(BaseModel):
    employee_name: Optional[str] = Field(default=None, min_length=1)
    employee_role: Optional[str] = None
    department: Optional[str] = None


class BulkEmployeeItem(BaseModel):
    employee_number: str
    employee_name: Optional[str] = None
    employee_role: Optional[str] = None
    department: Optional[str] = None


class BulkEmployeeRequest(BaseModel):
    employees: List[BulkEmployeeItem] = Field(min_length=1)


class BulkEmployeeResult(BaseModel):
    updated: int
    message: str


class DepartmentOut(BaseModel):
    code: str
    name: str


class DepartmentList(BaseModel):
    departments: List[DepartmentOut]


class EntryOut(BaseModel):
    id: int
    employee_number: str
    timestamp: datetime
    action: str
    plant_id: int
    plant_name: str
    synced_at: Optional[datetime] = None


class PlantEntrySummary(BaseModel):
    id: int
    name: str
    entry_count: int
    unique_employees: int


class EntriesReport(BaseModel):
    start_date: date
    end_date: date
    entries: List[EntryOut]
    total_entries: int
    unique_employees: int
    plant_summary: List[PlantEntrySummary]
