"""
Cold storage tests: temperature classification, readings, alarms.

Usage:
    python -m pytest backend/tests/test_storage_api.py -v
"""
import pytest
from fastapi import HTTPException

from models import TemperatureStatus, utc_now
from services import cold_chain, reporting

from conftest import run

BASE = "/api/inventory/storage"


def storage_payload(**overrides) -> dict:
    payload = {
        "storage_unit_id": "FR-01",
        "name": "Fridge 1",
        "facility_id": "FAC-1",
        "facility_name": "Central",
        "type": "Refrigerator",
        "temperature": {"min": 2.0, "max": 6.0, "target": 4.0},
        "capacity": {"total": 200, "used": 20},
    }
    payload.update(overrides)
    return payload


def log_reading(client, temperature, **extra):
    return client.post(f"{BASE}/temperature", json={
        "storageUnitId": "FR-01", "facilityId": "FAC-1", "temperature": temperature, **extra
    })


@pytest.fixture
def fridge(client):
    response = client.post(BASE, json=storage_payload())
    assert response.status_code == 200, response.text
    return response.json()


# =============================================================================
# Classification
# =============================================================================

@pytest.mark.parametrize("temperature, expected", [
    (2.0, TemperatureStatus.NORMAL),
    (6.0, TemperatureStatus.NORMAL),
    (6.8, TemperatureStatus.WARNING),
    (1.2, TemperatureStatus.WARNING),
    (7.0, TemperatureStatus.CRITICAL),
    (-1.0, TemperatureStatus.CRITICAL),
])
def test_temperature_status(temperature, expected):
    assert cold_chain.temperature_status(temperature, 2.0, 6.0) == expected


def test_reading_stats():
    readings = [
        {"temperature": 4.0, "recorded_at": "2026-01-01T00:00:00+00:00", "status": "Normal"},
        {"temperature": 7.5, "recorded_at": "2026-01-01T02:00:00+00:00", "status": "Critical"},
        {"temperature": 6.5, "recorded_at": "2026-01-01T01:00:00+00:00", "status": "Warning"},
    ]
    stats = cold_chain.reading_stats(readings)
    assert stats["min"] == 4.0
    assert stats["max"] == 7.5
    assert stats["avg"] == 6.0
    assert stats["latest"] == 7.5
    assert stats["warning_count"] == 1
    assert stats["critical_count"] == 1
    assert cold_chain.reading_stats([]) is None


def test_unknown_window_is_400():
    with pytest.raises(HTTPException):
        cold_chain.window_start("2y", None)


# =============================================================================
# Storage registry
# =============================================================================

def test_create_storage_unit(fridge, client):
    assert fridge["status"] == "Operational"
    assert client.get(f"{BASE}/FR-01").json()["name"] == "Fridge 1"
    assert client.post(BASE, json=storage_payload()).status_code == 400


def test_invalid_range_is_400(client):
    response = client.post(BASE, json=storage_payload(temperature={"min": 6, "max": 2, "target": 4}))
    assert response.status_code == 400


def test_capacity_overflow_is_400(client):
    response = client.post(BASE, json=storage_payload(capacity={"total": 10, "used": 11}))
    assert response.status_code == 400


def test_update_storage_unit(fridge, client):
    response = client.put(f"{BASE}/{fridge['id']}", json={"status": "Maintenance"})
    assert response.status_code == 200
    assert response.json()["status"] == "Maintenance"
    assert client.get(BASE, params={"status": "Maintenance"}).json()["total"] == 1


# =============================================================================
# Readings and alarms
# =============================================================================

def test_normal_reading_updates_current_temperature(fridge, client):
    response = log_reading(client, 4.1)
    assert response.status_code == 200
    assert response.json()["reading"]["status"] == "Normal"
    assert response.json()["alarm"] is None
    current = client.get(f"{BASE}/FR-01").json()["current_temperature"]
    assert current["value"] == 4.1
    assert current["status"] == "Normal"


def test_reading_for_unknown_unit_is_404(client):
    assert log_reading(client, 4.0).status_code == 404


def test_critical_reading_opens_single_alarm(fridge, client, db):
    first = log_reading(client, 9.0).json()
    second = log_reading(client, 10.0).json()

    assert first["alarm"]["status"] == "Active"
    assert second["alarm"] is None
    log = run(db.storage_logs.find_one({"storage_unit_id": "FR-01"}))
    assert len(log["alarm_history"]) == 1
    assert len(log["readings"]) == 2


def test_explicit_status_is_kept(fridge, client):
    response = log_reading(client, 4.0, status="Warning")
    assert response.json()["reading"]["status"] == "Warning"


def test_acknowledge_alarm(fridge, client):
    log_reading(client, 9.0)

    response = client.put(f"{BASE}/FR-01/alarms/0/acknowledge")
    assert response.status_code == 200
    assert response.json()["status"] == "Acknowledged"

    assert client.put(f"{BASE}/FR-01/alarms/0/acknowledge").status_code == 409
    assert client.put(f"{BASE}/FR-01/alarms/5/acknowledge").status_code == 404

    # Acknowledged alarms still suppress new ones
    assert log_reading(client, 11.0).json()["alarm"] is None


def test_temperature_history(fridge, client):
    log_reading(client, 4.0)
    log_reading(client, 6.6)

    body = client.get(f"{BASE}/temperature", params={"storageUnitId": "FR-01", "range": "1h"}).json()
    unit = body["storage_units"][0]
    assert [r["temperature"] for r in unit["readings"]] == [6.6, 4.0]
    assert unit["stats"]["count"] == 2
    assert unit["stats"]["warning_count"] == 1

    assert client.get(f"{BASE}/temperature", params={"range": "2y"}).status_code == 400


def test_dashboard_lists_temperature_alerts(fridge, client):
    log_reading(client, 12.0)
    alerts = client.get("/api/inventory/dashboard").json()["temperature_alerts"]
    assert alerts[0]["storage_unit_id"] == "FR-01"
    assert alerts[0]["status"] == "Critical"


def test_storage_conditions_report(fridge, client, db):
    log_reading(client, 4.0)
    log_reading(client, 9.5)

    data = run(reporting.generate_report_data(db, "storage-conditions", "7d", ["all"], utc_now()))

    assert data["summary"]["total_readings"] == 2
    assert data["summary"]["total_alarms"] == 1
    assert data["summary"]["temperature_stats"]["out_of_range_percentage"] == 50.0
    assert data["storage_units"][0]["stats"]["critical_count"] == 1


# =============================================================================
# Maintenance
# =============================================================================

def log_maintenance(client, **overrides):
    payload = {
        "storageUnitId": "FR-01",
        "facilityId": "FAC-1",
        "maintenanceType": "Calibration",
        "performedBy": "Tech A",
        "description": "Probe recalibrated",
    }
    payload.update(overrides)
    return client.post(f"{BASE}/maintenance", json=payload)


def test_log_maintenance_defaults(fridge, client, db):
    response = log_maintenance(client, parts=[{"part_name": "Probe", "quantity": 1}])
    assert response.status_code == 200, response.text
    record = response.json()["record"]
    assert record["status"] == "Completed"
    assert record["result"] == "Pass"
    assert record["parts"][0]["part_name"] == "Probe"

    log = run(db.storage_logs.find_one({"storage_unit_id": "FR-01"}))
    assert len(log["maintenance_history"]) == 1
    assert run(db.audit_logs.count_documents({"action": "maintenance"})) == 1


def test_maintenance_for_unknown_unit_is_404(client):
    assert log_maintenance(client).status_code == 404


def test_maintenance_requires_known_type_and_performer(fridge, client):
    assert log_maintenance(client, maintenanceType="Cleaning").status_code == 400
    assert log_maintenance(client, performedBy="").status_code == 400


def test_list_maintenance_filters_by_type_and_status(fridge, client):
    log_maintenance(client)
    log_maintenance(client, maintenanceType="Repair", status="Scheduled", description="Door seal")
    log_reading(client, 4.0)

    everything = client.get(f"{BASE}/maintenance").json()
    assert everything["total"] == 2

    repairs = client.get(f"{BASE}/maintenance", params={"type": "Repair"}).json()
    records = repairs["storage_units"][0]["maintenance_records"]
    assert [r["description"] for r in records] == ["Door seal"]

    completed = client.get(f"{BASE}/maintenance", params={"status": "Completed", "storageUnitId": "FR-01"}).json()
    assert completed["total"] == 1

    none = client.get(f"{BASE}/maintenance", params={"type": "Inspection"}).json()
    assert none == {"storage_units": [], "total": 0}
