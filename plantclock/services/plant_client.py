"""
Plant API Client
Pulls badge scans, employee names and shift assignments from a remote plant's time clock
"""
from dataclasses import dataclass, field
from datetime import date, datetime, time
from typing import Any, Dict, Iterable, List, Optional

import httpx
import structlog

from ..config import settings

logger = structlog.get_logger(__name__)

PAGE_SIZE = 500
NAME_LOOKUP_BATCH = 10
PLACEHOLDER_NAME_PREFIXES = ("Empleado #", "Employee #")

# Fallback for truncated department codes when /departments needs auth
DEPARTMENT_NAME_MAP: Dict[str, str] = {
    "Alm": "Almacén",
    "alm": "Almacén",
    "car": "Carritos",
    "ch": "Chofer",
    "en": "Ensamble",
    "enf": "Enfermería",
    "ing": "Ingeniería",
    "it": "Tecnología de la Información",
    "mantenimiento": "Mantenimiento",
    "me": "Mecánica",
    "na": "N/A",
    "pin": "Pintura",
    "produccion": "Producción",
    "sol": "Soldadura",
    "administracion": "Administración",
    "contabilidad": "Contabilidad",
    "operaciones": "Operaciones",
    "rh": "Recursos Humanos",
    "seguridad": "Seguridad",
    "ventas": "Ventas",
}


def resolve_department_name(code: Optional[str], remote_map: Optional[Dict[str, str]] = None) -> Optional[str]:
    """Remote map first, then the static fallback, else the code itself"""
    if not code:
        return None
    if remote_map and code in remote_map:
        return remote_map[code]
    return DEPARTMENT_NAME_MAP.get(code, code)


def is_placeholder_name(name: Optional[str]) -> bool:
    return not name or name.startswith(PLACEHOLDER_NAME_PREFIXES)


def parse_remote_timestamp(value: Any) -> Optional[datetime]:
    """Parse a plant timestamp into a naive local datetime; None when unreadable"""
    if not value:
        return None
    text = str(value).strip()
    if text.endswith("Z"):
        text = text[:-1]
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        return None
    return parsed.replace(tzinfo=None)


def _parse_remote_date(value: Any) -> Optional[date]:
    if not value:
        return None
    try:
        return date.fromisoformat(str(value)[:10])
    except ValueError:
        return None


def _parse_remote_time(value: Any) -> Optional[time]:
    if not value:
        return None
    parts = str(value).strip().split(":")
    try:
        hour, minute = int(parts[0]), int(parts[1])
    except (ValueError, IndexError):
        return None
    if not (0 <= hour <= 23 and 0 <= minute <= 59):
        return None
    return time(hour, minute)


@dataclass(frozen=True)
class RemoteEntry:
    employee_number: str
    timestamp: datetime
    action: str
    raw: Dict[str, Any] = field(default_factory=dict, compare=False)


@dataclass(frozen=True)
class RemoteEmployee:
    employee_number: str
    employee_name: str
    employee_role: Optional[str] = None
    department: Optional[str] = None


@dataclass(frozen=True)
class RemoteShiftAssignment:
    employee_number: str
    remote_shift_id: Optional[int]
    shift_name: Optional[str]
    start_time: time
    end_time: time
    tolerance_minutes: int
    days: Optional[str]
    start_date: Optional[date]
    end_date: Optional[date]
    active: bool


@dataclass
class ConnectionCheck:
    success: bool
    message: str
    status_code: Optional[int] = None


class PlantClient:
    """Client for a plant's time clock API"""

    def __init__(self, plant, transport: Optional[httpx.BaseTransport] = None):
        self.plant = plant
        protocol = "https" if plant.use_https else "http"
        self.base_url = f"{protocol}://{plant.ip_address}:{plant.port}{plant.api_base_path or ''}"
        self._transport = transport

    def _headers(self) -> Dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self.plant.auth_token:
            headers["Authorization"] = f"Bearer {self.plant.auth_token}"
        return headers

    def _client(self, timeout: float) -> httpx.Client:
        return httpx.Client(
            timeout=timeout,
            verify=settings.plant_verify_tls,
            headers=self._headers(),
            transport=self._transport,
        )

    def _request(self, method: str, endpoint: str, **kwargs) -> Any:
        """Make HTTP request to the plant API; raises httpx.HTTPError on failure"""
        url = f"{self.base_url}/{endpoint.lstrip('/')}"
        with self._client(settings.plant_request_timeout_s) as client:
            response = client.request(method, url, **kwargs)
            response.raise_for_status()
            return response.json()

    def fetch_entries(self, start: date, end: date) -> List[RemoteEntry]:
        """
        Fetch every badge scan between two dates (inclusive).

        Pages through /barcode-entries until a short page comes back. Records
        outside [start 00:00, end 23:59:59] are dropped even if the plant
        ignored the date filters.

        Args:
            start: First day of the window
            end: Last day of the window

        Returns:
            Scans in the order the plant returned them
        """
        window_start = datetime.combine(start, time.min)
        window_end = datetime.combine(end, time(23, 59, 59))
        entries: List[RemoteEntry] = []
        page = 1
        while True:
            data = self._request(
                "GET",
                "/barcode-entries",
                params={
                    "page": page,
                    "limit": PAGE_SIZE,
                    "startDate": start.isoformat(),
                    "endDate": end.isoformat(),
                },
            )
            # Unfiltered requests answer with "data", filtered ones with "entries"
            records = (data or {}).get("data") or (data or {}).get("entries") or []
            if not records:
                break
            for record in records:
                instant = parse_remote_timestamp(record.get("timestamp"))
                barcode = record.get("barcode")
                if instant is None or barcode in (None, ""):
                    logger.warning("plant_entry_skipped", plant_id=self.plant.id, record=record)
                    continue
                if not (window_start <= instant <= window_end):
                    continue
                entries.append(RemoteEntry(
                    employee_number=str(barcode),
                    timestamp=instant,
                    action=record.get("action") or "Entrada",
                    raw=dict(record),
                ))
            if len(records) < PAGE_SIZE:
                break
            page += 1
        return entries

    def fetch_departments(self) -> Dict[str, str]:
        """Department code to name map; empty when the endpoint is unavailable"""
        try:
            departments = self._request("GET", "/departments")
        except (httpx.HTTPError, ValueError) as e:
            logger.info("plant_departments_unavailable", plant_id=self.plant.id, error=str(e))
            return {}
        if not isinstance(departments, list):
            return {}
        return {d["code"]: d["name"] for d in departments if d.get("code") and d.get("name")}

    def fetch_employee_names(self, employee_numbers: Iterable[str]) -> List[RemoteEmployee]:
        """
        Look up real names for the given employee numbers.

        Placeholder names and failed lookups are skipped.
        """
        numbers = list(employee_numbers)
        if not numbers:
            return []
        departments = self.fetch_departments()
        employees: List[RemoteEmployee] = []
        for i in range(0, len(numbers), NAME_LOOKUP_BATCH):
            for number in numbers[i:i + NAME_LOOKUP_BATCH]:
                try:
                    data = self._request("GET", f"/employees/validate/{number}")
                except (httpx.HTTPError, ValueError) as e:
                    logger.info("plant_employee_lookup_failed", plant_id=self.plant.id, employee=number, error=str(e))
                    continue
                employee = (data or {}).get("employee")
                if not employee or is_placeholder_name(employee.get("name")):
                    continue
                employees.append(RemoteEmployee(
                    employee_number=str(employee.get("number") or number),
                    employee_name=employee["name"],
                    employee_role=employee.get("role") or None,
                    department=resolve_department_name(employee.get("department"), departments),
                ))
        return employees

    def fetch_shift_assignments(self) -> List[RemoteShiftAssignment]:
        """Employee to shift mapping from /storage/shift-assignments; empty on failure"""
        try:
            data = self._request("GET", "/storage/shift-assignments")
        except (httpx.HTTPError, ValueError) as e:
            logger.info("plant_shift_assignments_unavailable", plant_id=self.plant.id, error=str(e))
            return []
        assignments: List[RemoteShiftAssignment] = []
        for row in (data or {}).get("assignments") or []:
            start_time = _parse_remote_time(row.get("start_time"))
            end_time = _parse_remote_time(row.get("end_time"))
            if not row.get("employee_id") or start_time is None or end_time is None:
                logger.warning("plant_shift_assignment_skipped", plant_id=self.plant.id, row=row)
                continue
            shift_id = row.get("shift_id")
            assignments.append(RemoteShiftAssignment(
                employee_number=str(row["employee_id"]),
                remote_shift_id=int(shift_id) if shift_id is not None else None,
                shift_name=row.get("shift_name"),
                start_time=start_time,
                end_time=end_time,
                tolerance_minutes=int(row.get("tolerance_minutes") or 0),
                days=row.get("days"),
                start_date=_parse_remote_date(row.get("start_date")),
                end_date=_parse_remote_date(row.get("end_date")),
                active=bool(row.get("active", 1)),
            ))
        return assignments

    def test_connection(self) -> ConnectionCheck:
        try:
            with self._client(settings.plant_test_timeout_s) as client:
                response = client.get(self.base_url)
        except httpx.TimeoutException:
            return ConnectionCheck(
                success=False,
                message=f"Timeout: could not connect within {settings.plant_test_timeout_s:g} seconds",
            )
        except httpx.HTTPError as e:
            return ConnectionCheck(success=False, message=f"Connection error: {e}")
        if response.is_success:
            return ConnectionCheck(success=True, message="Connection successful", status_code=response.status_code)
        return ConnectionCheck(
            success=False,
            message=f"HTTP {response.status_code}: {response.reason_phrase}",
            status_code=response.status_code,
        )
