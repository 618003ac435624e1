from datetime import date
from typing import Dict, List, Optional

from pydantic import BaseModel


class SessionOut(BaseModel):
    entry: str
    exit: str
    hours: float


class DailyEmployee(BaseModel):
    employee_number: str
    employee_name: str
    employee_role: str
    department: str
    first_entry: Optional[str] = None
    last_exit: Optional[str] = None
    total_entries: int
    total_exits: int
    valid_sessions: int
    unpaired_entries: int
    unpaired_exits: int
    total_worked_hours: float
    status: str  # on_shift|completed|incomplete|extra_exits|no_valid_records
    plants_used: List[str]
    work_sessions: List[SessionOut]


class DailySummary(BaseModel):
    total_employees: int
    employees_present: int
    employees_active: int
    total_hours_worked: float


class DailyReport(BaseModel):
    date: date
    summary: DailySummary
    employees: List[DailyEmployee]


class DayInfo(BaseModel):
    date: date
    day_name: str
    day_number: int
    day_of_week: int  # 0=Sunday


class WeeklyDay(BaseModel):
    date: date
    day_name: str
    status_code: str  # A|R|F|H|N|E
    is_workday: bool
    is_holiday: bool
    hours: float
    overtime_hours: float
    late_minutes: int = 0
    first_entry: Optional[str] = None
    last_exit: Optional[str] = None
    entries_count: int = 0
    exits_count: int = 0
    sessions: List[SessionOut] = []
    plants_used: List[str] = []


class WeeklyEmployee(BaseModel):
    employee_number: str
    employee_name: str
    employee_role: str
    department: str
    shift: str
    shift_source: str
    shift_start_time: str
    shift_end_time: str
    shift_work_days: List[int]
    employee_workdays_count: int
    expected_daily_hours: float
    daily_data: Dict[str, WeeklyDay]
    total_hours: float
    total_overtime_hours: float
    days_present: int
    days_complete: int
    days_incomplete: int
    days_absent: int
    total_late_minutes: int
    days_late: int
    attendance_rate: int


class WeeklySummary(BaseModel):
    total_employees: int
    total_days: int
    total_employee_workdays: int
    total_hours: float
    total_overtime_hours: float
    average_hours_per_employee: float
    employees_with_perfect_attendance: int
    employees_with_issues: int
    average_attendance_rate: float


class WeeklyReport(BaseModel):
    start_date: date
    end_date: date
    workdays: List[DayInfo]
    summary: WeeklySummary
    employees: List[WeeklyEmployee]
    generated_at: str


class LiveEmployeeOut(BaseModel):
    employee_number: str
    employee_name: str
    employee_role: str
    department: str
    last_action: str  # entry|exit
    last_timestamp: str
    last_plant: Optional[str] = None
    plants_today: List[str]
    total_entries: int
    total_exits: int
    is_active: bool
    first_entry: Optional[str] = None
    last_exit: Optional[str] = None
    worked_hours: float
    sessions: List[SessionOut]
    shift_name: str
    shift_start_time: str
    shift_end_time: str


class PlantHeadcount(BaseModel):
    id: int
    name: str
    ip_address: str
    employees_today: int


class LiveSummary(BaseModel):
    total_employees_today: int
    currently_active: int
    completed: int


class LiveReport(BaseModel):
    date: date
    timestamp: str
    poll_seconds: int
    summary: LiveSummary
    active_employees: List[LiveEmployeeOut]
    completed_employees: List[LiveEmployeeOut]
    all_employees_today: List[LiveEmployeeOut]
    plant_summary: List[PlantHeadcount]


class ActiveEmployee(BaseModel):
    employee_number: str
    employee_name: str
    employee_role: str
    department: str
    current_work_hours: float
    first_entry: Optional[str] = None
    last_activity: str
    total_entries: int
    total_exits: int
    plants_today: List[str]


class ActiveSummary(BaseModel):
    active_employees: int
    total_employees_today: int
    total_records_today: int


class ActiveReport(BaseModel):
    active_employees: List[ActiveEmployee]
    summary: ActiveSummary


class ValidationIssueOut(BaseModel):
    code: str
    message: str


class ValidationResult(BaseModel):
    employee_number: str
    employee_name: str
    department: str
    date: date
    status_code: str
    is_valid: bool
    total_hours: float
    total_entries: int
    total_exits: int
    issues: List[ValidationIssueOut]
    plants_used: List[str]


class ValidationSummary(BaseModel):
    total_employees: int
    valid_employees: int
    invalid_employees: int


class ValidationReport(BaseModel):
    date: date
    validation_results: List[ValidationResult]
    summary: ValidationSummary
