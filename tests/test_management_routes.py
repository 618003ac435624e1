from datetime import datetime

import httpx
import pytest

from plantclock.models.models import EmployeeName, Plant, PlantEntry
from plantclock.routes.plants import get_plant_client_factory
from plantclock.services.plant_client import PlantClient


@pytest.fixture
def seeded(db):
    norte = Plant(name="Norte", ip_address="10.0.0.1", port=3000)
    cerrada = Plant(name="Cerrada", ip_address="10.0.0.9", port=3000, is_active=False)
    db.add_all([norte, cerrada])
    db.flush()
    db.add_all([
        EmployeeName(employee_number="7", employee_name="María Pérez", department="Soldadura"),
        EmployeeName(employee_number="10", employee_name="Juan Soto", department="Pintura"),
        EmployeeName(employee_number="8", employee_name="Employee #8"),
        PlantEntry(plant_id=norte.id, employee_number="7", timestamp=datetime(2025, 3, 3, 6, 0), action="Entrada"),
        PlantEntry(plant_id=norte.id, employee_number="7", timestamp=datetime(2025, 3, 3, 15, 30), action="Salida"),
        PlantEntry(plant_id=norte.id, employee_number="8", timestamp=datetime(2025, 3, 3, 6, 5), action="Entrada"),
        PlantEntry(plant_id=cerrada.id, employee_number="9", timestamp=datetime(2025, 3, 3, 6, 0), action="Entrada"),
    ])
    db.commit()
    return {"norte": norte, "cerrada": cerrada}


def test_plant_detail_counts_entries(client, seeded):
    body = client.get(f"/plants/{seeded['norte'].id}").json()
    assert body["name"] == "Norte"
    assert body["total_entries"] == 3
    assert body["earliest_entry"] == "2025-03-03T06:00:00"
    assert body["latest_entry"] == "2025-03-03T15:30:00"
    assert client.get("/plants/999").status_code == 404


def test_update_plant_deactivates_and_keeps_required_fields(client, seeded):
    plant_id = seeded["norte"].id
    response = client.put(f"/plants/{plant_id}", json={"is_active": False, "port": 4000, "name": None})
    assert response.status_code == 200
    body = response.json()
    assert body["is_active"] is False
    assert body["port"] == 4000
    assert body["name"] == "Norte"
    assert client.get("/plants").json() == []

    assert client.put(f"/plants/{plant_id}", json={"name": ""}).status_code == 422
    assert client.put("/plants/999", json={"port": 1}).status_code == 404


def test_delete_plant_removes_its_entries(client, db, seeded):
    plant_id = seeded["norte"].id
    response = client.delete(f"/plants/{plant_id}")
    assert response.status_code == 200
    assert response.json()["entries_deleted"] == 3
    assert db.query(PlantEntry).count() == 1
    assert db.query(Plant).count() == 1
    assert client.delete(f"/plants/{plant_id}").status_code == 404


def test_employee_directory_listing(client, seeded):
    body = client.get("/multi-plant/employees").json()
    assert [e["employee_number"] for e in body["employees"]] == ["7", "8", "10"]
    assert body["total"] == 3

    search = client.get("/multi-plant/employees", params={"search": "soto"}).json()
    assert [e["employee_number"] for e in search["employees"]] == ["10"]

    by_department = client.get("/multi-plant/employees", params={"department": "Soldadura"}).json()
    assert [e["employee_name"] for e in by_department["employees"]] == ["María Pérez"]


def test_save_employee_creates_then_overwrites(client, db, seeded):
    created = client.post("/multi-plant/employees", json={"employee_number": "11", "employee_name": "Ana Ríos"})
    assert created.status_code == 200
    assert created.json()["department"] is None

    client.post("/multi-plant/employees", json={
        "employee_number": "11", "employee_name": "Ana Ríos Lara", "department": "Calidad",
    })
    row = db.query(EmployeeName).filter(EmployeeName.employee_number == "11").one()
    assert row.employee_name == "Ana Ríos Lara"
    assert row.department == "Calidad"

    assert client.post("/multi-plant/employees", json={"employee_number": "12"}).status_code == 422


def test_bulk_import_never_downgrades_real_names(client, db, seeded):
    response = client.put("/multi-plant/employees", json={"employees": [
        {"employee_number": "7", "employee_name": "Employee #7", "employee_role": "Soldador"},
        {"employee_number": "8", "employee_name": "Pedro Ruiz", "department": "Ensamble"},
        {"employee_number": "12"},
    ]})
    assert response.status_code == 200
    assert response.json()["updated"] == 3

    names = {row.employee_number: row for row in db.query(EmployeeName).all()}
    assert names["7"].employee_name == "María Pérez"
    assert names["7"].employee_role == "Soldador"
    assert names["7"].department == "Soldadura"
    assert names["8"].employee_name == "Pedro Ruiz"
    assert names["8"].department == "Ensamble"
    assert names["12"].employee_name == "Employee #12"

    assert client.put("/multi-plant/employees", json={"employees": []}).status_code == 422


def test_update_and_delete_employee(client, db, seeded):
    response = client.put("/multi-plant/employees/7", json={"employee_role": "Supervisor"})
    assert response.status_code == 200
    assert response.json()["employee_role"] == "Supervisor"
    assert response.json()["employee_name"] == "María Pérez"
    assert client.put("/multi-plant/employees/404", json={"department": "X"}).status_code == 404

    assert client.delete("/multi-plant/employees/7").status_code == 200
    assert client.delete("/multi-plant/employees/7").status_code == 404
    assert db.query(PlantEntry).filter(PlantEntry.employee_number == "7").count() == 2


def test_departments_merge_plants_and_directory(client, seeded):
    calls = []

    def handler(request):
        calls.append(request.url.host)
        if request.url.path.endswith("/departments"):
            return httpx.Response(200, json=[
                {"code": "sol", "name": "Soldadura"},
                {"code": "en", "name": "Ensamble"},
            ])
        return httpx.Response(404)

    client.app.dependency_overrides[get_plant_client_factory] = (
        lambda: (lambda plant: PlantClient(plant, transport=httpx.MockTransport(handler)))
    )
    body = client.get("/multi-plant/departments").json()
    assert body["departments"] == [
        {"code": "en", "name": "Ensamble"},
        {"code": "Pintura", "name": "Pintura"},
        {"code": "sol", "name": "Soldadura"},
    ]
    assert calls == ["10.0.0.1"]


def test_departments_fall_back_to_directory_when_plant_unreachable(client, seeded):
    client.app.dependency_overrides[get_plant_client_factory] = (
        lambda: (lambda plant: PlantClient(plant, transport=httpx.MockTransport(lambda r: httpx.Response(401))))
    )
    body = client.get("/multi-plant/departments").json()
    assert [d["name"] for d in body["departments"]] == ["Pintura", "Soldadura"]


def test_raw_entries_listing(client, seeded):
    response = client.get("/multi-plant/entries", params={"start_date": "2025-03-03", "end_date": "2025-03-03"})
    assert response.status_code == 200
    body = response.json()
    assert [(e["employee_number"], e["timestamp"]) for e in body["entries"]] == [
        ("7", "2025-03-03T06:00:00"),
        ("7", "2025-03-03T15:30:00"),
        ("8", "2025-03-03T06:05:00"),
        ("9", "2025-03-03T06:00:00"),
    ]
    assert body["entries"][0]["plant_name"] == "Norte"
    assert body["entries"][0]["action"] == "Entrada"
    assert body["total_entries"] == 4
    assert body["unique_employees"] == 3
    assert body["plant_summary"] == [
        {"id": seeded["norte"].id, "name": "Norte", "entry_count": 3, "unique_employees": 2},
    ]


def test_raw_entries_filters_and_window(client, seeded):
    params = {"start_date": "2025-03-03", "end_date": "2025-03-03"}
    by_employee = client.get("/multi-plant/entries", params={**params, "employee": "7"}).json()
    assert by_employee["total_entries"] == 2

    by_plant = client.get("/multi-plant/entries", params={**params, "plant_id": seeded["cerrada"].id}).json()
    assert [e["plant_name"] for e in by_plant["entries"]] == ["Cerrada"]

    next_day = client.get("/multi-plant/entries", params={"start_date": "2025-03-04", "end_date": "2025-03-04"}).json()
    assert next_day["entries"] == []
    assert next_day["plant_summary"][0]["entry_count"] == 0

    assert client.get("/multi-plant/entries").status_code == 400
    backwards = client.get("/multi-plant/entries", params={"start_date": "2025-03-05", "end_date": "2025-03-03"})
    assert backwards.status_code == 400
