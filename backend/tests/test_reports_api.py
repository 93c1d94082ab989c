"""
Report generation HTTP API tests.

Usage:
    python -m pytest backend/tests/test_reports_api.py -v
"""
from conftest import as_role

BASE = "/api/inventory/reports"


def test_generate_and_fetch_report(client, insert_unit):
    insert_unit(blood_type="O-")
    insert_unit(blood_type="A+")

    response = client.post(f"{BASE}/generate", json={"reportType": "critical-shortage", "timeRange": "current"})
    assert response.status_code == 200
    report = response.json()
    assert report["report_id"] == "RPT-CRI-000001"
    assert report["title"] == "Critical Shortage Analysis"
    assert report["status"] == "completed"
    assert len(report["data"]["shortage_analysis"]) == 8

    fetched = client.get(f"{BASE}/{report['report_id']}").json()
    assert fetched["data"]["summary"] == report["data"]["summary"]


def test_list_reports_omits_data(client):
    client.post(f"{BASE}/generate", json={"reportType": "inventory-summary", "timeRange": "30d", "title": "Monthly"})
    client.post(f"{BASE}/generate", json={"reportType": "supply-forecast", "timeRange": "30d"})

    body = client.get(BASE).json()
    assert body["pagination"]["total"] == 2
    assert all("data" not in r for r in body["reports"])

    only = client.get(BASE, params={"type": "inventory-summary"}).json()
    assert [r["title"] for r in only["reports"]] == ["Monthly"]


def test_custom_range_requires_start_date(client, db):
    response = client.post(f"{BASE}/generate", json={"reportType": "expiry-analysis", "timeRange": "custom"})
    assert response.status_code == 400
    assert client.get(BASE).json()["pagination"]["total"] == 0


def test_unknown_report_type_is_400(client):
    response = client.post(f"{BASE}/generate", json={"reportType": "everything", "timeRange": "7d"})
    assert response.status_code == 400


def test_unknown_blood_type_is_400(client):
    response = client.post(f"{BASE}/generate", json={
        "reportType": "inventory-summary", "timeRange": "7d", "bloodTypes": ["Q+"]
    })
    assert response.status_code == 400


def test_staff_cannot_generate_reports(client, current_user):
    as_role(current_user, "staff")
    response = client.post(f"{BASE}/generate", json={"reportType": "inventory-summary", "timeRange": "7d"})
    assert response.status_code == 403


def test_missing_report_is_404(client):
    assert client.get(f"{BASE}/RPT-NOPE").status_code == 404
