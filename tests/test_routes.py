from datetime import datetime, time

import httpx
import pytest

from plantclock.models.models import EmployeeName, Plant, PlantEntry, ShiftAssignment
from plantclock.routes import reports as reports_routes
from plantclock.routes import shift_assignments as shift_routes
from plantclock.routes.plants import get_plant_client_factory
from plantclock.services.plant_client import PlantClient

NOW = datetime(2025, 3, 3, 12, 0)


@pytest.fixture(autouse=True)
def fixed_clock(monkeypatch):
    monkeypatch.setattr(reports_routes, "now_local", lambda *a: NOW)
    monkeypatch.setattr(reports_routes, "today_local", lambda *a: NOW.date())
    monkeypatch.setattr(shift_routes, "today_local", lambda *a: NOW.date())


@pytest.fixture
def seeded(db):
    norte = Plant(name="Norte", ip_address="10.0.0.1", port=3000)
    cerrada = Plant(name="Cerrada", ip_address="10.0.0.9", port=3000, is_active=False)
    db.add_all([norte, cerrada])
    db.flush()
    db.add_all([
        EmployeeName(employee_number="7", employee_name="María Pérez", department="Soldadura"),
        PlantEntry(plant_id=norte.id, employee_number="7", timestamp=datetime(2025, 3, 3, 6, 0), action="Entrada"),
        PlantEntry(plant_id=norte.id, employee_number="7", timestamp=datetime(2025, 3, 3, 15, 30), action="Salida"),
        PlantEntry(plant_id=norte.id, employee_number="8", timestamp=datetime(2025, 3, 3, 6, 5), action="Entrada"),
        PlantEntry(plant_id=cerrada.id, employee_number="9", timestamp=datetime(2025, 3, 3, 6, 0), action="Entrada"),
    ])
    db.commit()
    return {"norte": norte, "cerrada": cerrada}


def test_health(client):
    assert client.get("/health").json() == {"status": "ok"}


def test_daily_report(client, seeded):
    response = client.get("/multi-plant/reports/daily", params={"date": "2025-03-03"})
    assert response.status_code == 200
    body = response.json()
    by_id = {e["employee_number"]: e for e in body["employees"]}
    assert set(by_id) == {"7", "8"}
    assert by_id["7"]["employee_name"] == "María Pérez"
    assert by_id["7"]["total_worked_hours"] == 9.5
    assert by_id["7"]["plants_used"] == ["Norte"]
    assert by_id["8"]["status"] == "on_shift"
    assert response.headers["X-Request-ID"]


def test_bad_date_is_400(client):
    assert client.get("/multi-plant/reports/daily", params={"date": "03/03/2025"}).status_code == 400


def test_weekly_window_limits(client):
    too_long = client.get("/multi-plant/reports/weekly", params={"start_date": "2025-01-01", "end_date": "2025-06-30"})
    assert too_long.status_code == 400
    backwards = client.get("/multi-plant/reports/weekly", params={"start_date": "2025-03-07", "end_date": "2025-03-03"})
    assert backwards.status_code == 400


def test_weekly_report_uses_synced_night_shift(client, db, seeded):
    db.add_all([
        ShiftAssignment(
            employee_number="20", shift_name="Turno Nocturno", start_time=time(22, 0), end_time=time(6, 0),
            days="[1,2,3,4,5]", source_plant_id=seeded["norte"].id,
        ),
        PlantEntry(plant_id=seeded["norte"].id, employee_number="20", timestamp=datetime(2025, 3, 3, 23, 50), action=""),
        PlantEntry(plant_id=seeded["norte"].id, employee_number="20", timestamp=datetime(2025, 3, 4, 6, 5), action=""),
    ])
    db.commit()
    response = client.get(
        "/multi-plant/reports/weekly",
        params={"start_date": "2025-03-03", "end_date": "2025-03-04", "employee": "20"},
    )
    assert response.status_code == 200
    [employee] = response.json()["employees"]
    assert employee["shift"] == "Turno Nocturno"
    assert employee["daily_data"]["2025-03-03"]["hours"] == 6.25
    assert employee["daily_data"]["2025-03-04"]["status_code"] == "F"


def test_weekly_default_window(client, seeded):
    body = client.get("/multi-plant/reports/weekly").json()
    assert body["start_date"] == "2025-03-03"
    assert body["end_date"] == "2025-03-07"


def test_live_and_active(client, seeded):
    live = client.get("/multi-plant/live").json()
    assert live["summary"] == {"total_employees_today": 2, "currently_active": 1, "completed": 1}
    assert [p["name"] for p in live["plant_summary"]] == ["Norte"]
    assert live["poll_seconds"] == 30

    active = client.get("/multi-plant/reports/active").json()
    assert [e["employee_number"] for e in active["active_employees"]] == ["8"]


def test_validation_report(client, seeded):
    body = client.get("/multi-plant/reports/validation", params={"date": "2025-03-03"}).json()
    assert body["summary"]["invalid_employees"] == 1
    assert body["validation_results"][0]["employee_number"] == "8"


def test_manual_shift_lifecycle(client, seeded):
    assert client.get("/multi-plant/shift-assignments/404").status_code == 404

    put = client.put("/multi-plant/shift-assignments/7", json={
        "shift_name": "Oficina", "start_time": "8:00", "end_time": "17:30", "work_days": [5, 1, 1],
    })
    assert put.status_code == 200
    resolved = put.json()["resolved"]
    assert resolved["source"] == "manual"
    assert resolved["start_time"] == "08:00"
    assert resolved["work_days"] == [1, 5]

    view = client.get("/multi-plant/shift-assignments/7").json()
    assert len(view["candidates"]) == 1

    cleared = client.delete("/multi-plant/shift-assignments/7")
    assert cleared.json()["resolved"]["source"] == "default"
    assert client.delete("/multi-plant/shift-assignments/7").status_code == 404


def test_manual_shift_rejects_bad_time(client):
    response = client.put("/multi-plant/shift-assignments/7", json={
        "shift_name": "X", "start_time": "25:00", "end_time": "17:00",
    })
    assert response.status_code == 422


def test_plants_listing_and_sync(client, db, seeded):
    assert [p["name"] for p in client.get("/plants").json()] == ["Norte"]
    assert len(client.get("/plants", params={"include_inactive": True}).json()) == 2

    def handler(request):
        if request.url.path.endswith("/barcode-entries"):
            return httpx.Response(200, json={"entries": [
                {"barcode": "7", "timestamp": "2025-03-03T06:00:00", "action": "Entrada"},
                {"barcode": "7", "timestamp": "2025-03-03T18:00:00", "action": "Salida"},
            ]})
        return httpx.Response(404)

    client.app.dependency_overrides[get_plant_client_factory] = (
        lambda: (lambda plant: PlantClient(plant, transport=httpx.MockTransport(handler)))
    )
    plant_id = seeded["norte"].id
    response = client.post(f"/plants/{plant_id}/sync", params={"start_date": "2025-03-03", "end_date": "2025-03-03"})
    assert response.status_code == 200
    assert response.json()["entries_inserted"] == 1
    assert response.json()["entries_fetched"] == 2

    test = client.get(f"/plants/{plant_id}/test").json()
    assert test["success"] is False
    assert test["status_code"] == 404

    assert client.post(f"/plants/{seeded['cerrada'].id}/sync").status_code == 404
    assert client.get("/plants/999/test").status_code == 404


def test_single_plant_sync_failure_is_502(client, seeded):
    client.app.dependency_overrides[get_plant_client_factory] = (
        lambda: (lambda plant: PlantClient(plant, transport=httpx.MockTransport(lambda r: httpx.Response(500))))
    )
    response = client.post(f"/plants/{seeded['norte'].id}/sync", params={"start_date": "2025-03-03", "end_date": "2025-03-03"})
    assert response.status_code == 502


def test_create_plant(client, db):
    response = client.post("/plants", json={"name": "Oriente", "ip_address": "10.0.0.3"})
    assert response.status_code == 201
    assert response.json()["port"] == 3000
    assert db.query(Plant).count() == 1
