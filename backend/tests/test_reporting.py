"""
Aggregation reporter tests.

Usage:
    python -m pytest backend/tests/test_reporting.py -v
"""
from datetime import datetime, timedelta, timezone

import pytest
from fastapi import HTTPException

from models import to_iso
from services import reporting

from conftest import run

NOW = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


# =============================================================================
# Pure helpers
# =============================================================================

def test_wastage_rate():
    assert reporting.wastage_rate(10, 5, 100) == 15.0
    assert reporting.wastage_rate(1, 0, 3) == 33.33
    assert reporting.wastage_rate(4, 2, 0) == 0.0


def test_days_of_supply():
    assert reporting.days_of_supply(30, 30) == 30.0
    assert reporting.days_of_supply(10, 60) == 5.0
    assert reporting.days_of_supply(12, 0) == 30.0
    assert reporting.days_of_supply(0, 0) == 0.0


def test_shortage_status_thresholds():
    assert reporting.CRITICAL_SHORTAGE_THRESHOLDS["O-"] == 20
    assert reporting.CRITICAL_SHORTAGE_THRESHOLDS["AB-"] == 5
    assert reporting.shortage_status(9, 20) == "Critical"
    assert reporting.shortage_status(10, 20) == "Low"
    assert reporting.shortage_status(20, 20) == "Normal"


def test_counts_to_mapping_zero_fills_and_labels_missing_keys():
    rows = [{"_id": "A+", "count": 3}, {"_id": None, "count": 2}]
    mapping = reporting.counts_to_mapping(rows, ["A+", "O-"])
    assert mapping == {"A+": 3, "O-": 0, "Unassigned": 2}


def test_group_count_pipeline():
    pipeline = reporting.group_count_pipeline("location.facility", {"status": "Available"})
    assert pipeline[0] == {"$match": {"status": "Available"}}
    assert pipeline[1] == {"$group": {"_id": "$location.facility", "count": {"$sum": 1}}}
    assert reporting.group_count_pipeline("status")[0]["$group"]["_id"] == "$status"


def test_bucket_collection_dates():
    units = [
        {"collection_date": to_iso(datetime(2026, 1, 5, 8, tzinfo=timezone.utc))},
        {"collection_date": to_iso(datetime(2026, 1, 5, 20, tzinfo=timezone.utc))},
        {"collection_date": to_iso(datetime(2026, 2, 1, tzinfo=timezone.utc))},
        {"collection_date": None},
    ]
    assert reporting.bucket_collection_dates(units, "day") == {"2026-01-05": 2, "2026-02-01": 1}
    assert reporting.bucket_collection_dates(units, "month") == {"2026-01": 2, "2026-02": 1}


def test_resolve_time_range():
    start, end = reporting.resolve_time_range("30d", NOW)
    assert end == NOW
    assert start == NOW - timedelta(days=30)

    start, _ = reporting.resolve_time_range("current", NOW)
    assert start == datetime(2026, 3, 1, tzinfo=timezone.utc)


def test_custom_time_range_needs_start():
    with pytest.raises(HTTPException) as exc:
        reporting.resolve_time_range("custom", NOW)
    assert exc.value.status_code == 400


def test_blood_type_filter():
    assert reporting.blood_type_filter(["all"]) == {}
    assert reporting.blood_type_filter(["O-", "A+"]) == {"blood_type": {"$in": ["O-", "A+"]}}
    with pytest.raises(HTTPException):
        reporting.blood_type_filter(["Z+"])


# =============================================================================
# Database aggregations
# =============================================================================

def test_dashboard_summary(db, insert_unit):
    insert_unit(now=NOW, blood_type="O-", expiration_date=NOW + timedelta(hours=30))
    insert_unit(now=NOW, blood_type="O-", expiration_date=NOW + timedelta(days=5))
    insert_unit(now=NOW, blood_type="A+", expiration_date=NOW + timedelta(days=20))
    insert_unit(now=NOW, blood_type="A+", status="Quarantined")

    summary = run(reporting.dashboard_summary(db, NOW))

    assert summary["by_blood_type"] == {"A+": 2, "O-": 2}
    assert summary["by_status"] == {"Available": 3, "Quarantined": 1}
    assert summary["expiring_units"] == {"soon": 2, "very_close": 1}
    low = {row["blood_type"]: row["count"] for row in summary["critical_levels"]}
    assert low["O-"] == 2
    assert low["AB-"] == 0
    assert summary["temperature_alerts"] == []


def test_expiry_tracking_groups_by_tier(db, insert_unit):
    insert_unit(now=NOW, blood_type="O-", expiration_date=NOW + timedelta(days=2))
    insert_unit(now=NOW, blood_type="O-", expiration_date=NOW + timedelta(days=6))
    insert_unit(now=NOW, blood_type="B+", expiration_date=NOW + timedelta(days=12))
    insert_unit(now=NOW, blood_type="B+", expiration_date=NOW + timedelta(days=25))
    insert_unit(now=NOW, blood_type="B+", expiration_date=NOW + timedelta(days=40))
    insert_unit(now=NOW, blood_type="B+", expiration_date=NOW + timedelta(days=3), status="Reserved")

    result = run(reporting.expiry_tracking(db, NOW, days=30))

    assert result["stats"]["total_expiring"] == 4
    assert result["stats"]["by_criteria"] == {"expired": 0, "critical": 1, "warning": 1, "caution": 1, "normal": 1}
    assert result["stats"]["by_blood_type"]["O-"] == 2
    assert result["stats"]["by_blood_type"]["B+"] == 2
    assert result["expiry_groups"]["critical"][0]["days_remaining"] == 2

    reserved = run(reporting.expiry_tracking(db, NOW, days=30, status="Reserved"))
    assert reserved["stats"]["total_expiring"] == 1


def test_blood_type_distribution_is_zero_filled(db, insert_unit):
    insert_unit(now=NOW, blood_type="AB-")
    insert_unit(now=NOW, blood_type="AB-")
    insert_unit(now=NOW, blood_type="O+", status="Discarded")

    result = run(reporting.blood_type_distribution(db))

    assert result["total"] == 2
    assert len(result["distribution"]) == 8
    ab_neg = next(r for r in result["distribution"] if r["blood_type"] == "AB-")
    assert ab_neg["current_level"] == 2
    assert ab_neg["status"] == "Critical"
    assert ab_neg["percentage"] == 100.0


def test_expiry_analysis_wastage(db, insert_unit):
    in_period = NOW - timedelta(days=3)
    for _ in range(2):
        insert_unit(now=NOW, status="Available", status_history=[
            {"status": "Expired", "timestamp": to_iso(in_period), "updated_by": "x", "notes": ""}
        ])
    insert_unit(now=NOW, status="Available", status_history=[
        {"status": "Discarded", "timestamp": to_iso(in_period), "updated_by": "x", "notes": ""}
    ])
    for _ in range(7):
        insert_unit(now=NOW, created_at=in_period)
    # Outside the 7 day window
    insert_unit(now=NOW, status="Available", status_history=[
        {"status": "Expired", "timestamp": to_iso(NOW - timedelta(days=20)), "updated_by": "x", "notes": ""}
    ])

    data = run(reporting.generate_report_data(db, "expiry-analysis", "7d", ["all"], NOW))

    assert data["summary"]["expired_units"] == 2
    assert data["summary"]["discarded_units"] == 1
    assert data["summary"]["total_processed"] == 10
    assert data["summary"]["wastage_rate"] == 30.0
    assert data["period"]["start"] == to_iso(NOW - timedelta(days=7))


def test_supply_forecast(db, insert_unit):
    for _ in range(6):
        insert_unit(now=NOW, blood_type="A-")
    for _ in range(3):
        insert_unit(now=NOW, blood_type="A-", status="Transfused", status_history=[
            {"status": "Transfused", "timestamp": to_iso(NOW - timedelta(days=4)), "updated_by": "x", "notes": ""}
        ])

    data = run(reporting.generate_report_data(db, "supply-forecast", "30d", ["A-"], NOW))

    assert len(data["by_blood_type"]) == 1
    row = data["by_blood_type"][0]
    assert row["available"] == 6
    assert row["used_last_30_days"] == 3
    assert row["days_of_supply"] == 60.0
    assert row["status"] == "Critical"


def test_critical_shortage_report(db, insert_unit):
    for _ in range(12):
        insert_unit(now=NOW, blood_type="B-")

    data = run(reporting.generate_report_data(db, "critical-shortage", "current", ["B-", "AB+"], NOW))

    rows = {r["blood_type"]: r for r in data["shortage_analysis"]}
    assert rows["B-"]["status"] == "Normal"
    assert rows["AB+"]["status"] == "Critical"
    assert rows["AB+"]["shortage"] == 10
    assert data["summary"] == {"critical_count": 1, "low_count": 0, "normal_count": 1}


def test_inventory_summary_report(db, insert_unit):
    insert_unit(now=NOW, blood_type="O+")
    insert_unit(now=NOW, blood_type="O+", status="Reserved")
    insert_unit(now=NOW, blood_type="A+")

    data = run(reporting.generate_report_data(db, "inventory-summary", "30d", ["O+"], NOW))

    assert data["summary"]["total_units"] == 2
    assert data["summary"]["available_units"] == 1
    assert [r["blood_type"] for r in data["by_blood_type"]] == ["O+"]
    assert data["by_blood_type"][0]["reserved"] == 1


def test_historical_trends_buckets_collections(db, insert_unit):
    insert_unit(now=NOW, collection_date=NOW - timedelta(days=2))
    insert_unit(now=NOW, collection_date=NOW - timedelta(days=2, hours=1))
    insert_unit(now=NOW, collection_date=NOW - timedelta(days=1))

    data = run(reporting.generate_report_data(db, "historical-trends", "7d", ["all"], NOW))

    assert data["granularity"] == "day"
    assert data["summary"]["total_donations"] == 3
    assert data["trends"] == [
        {"period": "2026-02-27", "collections": 2},
        {"period": "2026-02-28", "collections": 1},
    ]


def test_unit_stats_group_by_facility(db, insert_unit):
    insert_unit(now=NOW, location={"facility": "Central", "storage_unit": "F1"})
    insert_unit(now=NOW, location={"facility": "Central", "storage_unit": "F2"})
    insert_unit(now=NOW)

    stats = run(reporting.unit_stats(db, NOW))

    assert stats["total_units"] == 3
    assert stats["by_facility"] == {"Unassigned": 1, "Central": 2}
    o_pos = next(r for r in stats["by_blood_type"] if r["type"] == "O+")
    assert o_pos["available"] == 3
