"""
Inventory aggregation and report generation.

Counts are produced with ``$group`` pipelines over ``blood_units``; derived
figures (wastage rate, days of supply, shortage status) are computed from
those counts by the pure helpers at the top of this module.
"""
import logging
from collections import OrderedDict
from datetime import datetime, timedelta
from typing import Dict, Iterable, List, Optional, Tuple

from fastapi import HTTPException

from models import (
    BLOOD_TYPES, UNIT_STATUSES, TERMINAL_STATUSES, UnitStatus, ReportType, TimeRange,
    TemperatureStatus, to_iso, parse_iso
)
from services import expiry
from services.cold_chain import reading_stats

logger = logging.getLogger(__name__)

# Minimum available units per blood type before supply is flagged
CRITICAL_SHORTAGE_THRESHOLDS = OrderedDict([
    ("O-", 20),
    ("O+", 30),
    ("A-", 15),
    ("A+", 25),
    ("B-", 10),
    ("B+", 20),
    ("AB-", 5),
    ("AB+", 10),
])

USAGE_WINDOW_DAYS = 30
DAYS_OF_SUPPLY_CEILING = 30

UNASSIGNED = "Unassigned"

GROUPABLE_FIELDS = {
    "blood_type": "blood_type",
    "status": "status",
    "facility": "location.facility",
    "component_type": "component_type",
}


# ============ PURE HELPERS ============

def group_count_pipeline(field: str, match: Optional[dict] = None) -> List[dict]:
    pipeline = []
    if match:
        pipeline.append({"$match": match})
    pipeline.append({"$group": {"_id": f"${field}", "count": {"$sum": 1}}})
    pipeline.append({"$sort": {"_id": 1}})
    return pipeline


def counts_to_mapping(rows: Iterable[dict], keys: Optional[Iterable[str]] = None) -> Dict[str, int]:
    """Turn ``[{_id, count}]`` rows into a mapping, zero-filling ``keys``."""
    mapping = OrderedDict((k, 0) for k in keys) if keys is not None else OrderedDict()
    for row in rows:
        key = row["_id"] if row["_id"] is not None else UNASSIGNED
        mapping[key] = mapping.get(key, 0) + row["count"]
    return mapping


def bucket_key(value: datetime, granularity: str) -> str:
    if granularity == "day":
        return value.strftime("%Y-%m-%d")
    if granularity == "week":
        year, week, _ = value.isocalendar()
        return f"{year}-W{week:02d}"
    if granularity == "month":
        return value.strftime("%Y-%m")
    raise ValueError(f"Unknown granularity: {granularity}")


def bucket_collection_dates(units: Iterable[dict], granularity: str = "day") -> Dict[str, int]:
    """Group-by-and-count units on their collection date."""
    buckets: Dict[str, int] = {}
    for unit in units:
        collected = parse_iso(unit.get("collection_date"))
        if collected is None:
            continue
        key = bucket_key(collected, granularity)
        buckets[key] = buckets.get(key, 0) + 1
    return OrderedDict(sorted(buckets.items()))


def wastage_rate(expired: int, discarded: int, total_processed: int) -> float:
    """Percentage of processed units lost to expiry or discard."""
    if total_processed <= 0:
        return 0.0
    return round((expired + discarded) / total_processed * 100, 2)


def days_of_supply(
    available: int,
    used_in_window: int,
    window_days: int = USAGE_WINDOW_DAYS,
    ceiling: int = DAYS_OF_SUPPLY_CEILING,
) -> float:
    """Available units divided by the average daily usage over the window."""
    if used_in_window <= 0:
        return float(ceiling) if available > 0 else 0.0
    daily_usage = used_in_window / window_days
    return round(available / daily_usage, 1)


def shortage_status(count: int, threshold: int) -> str:
    if count < threshold * 0.5:
        return "Critical"
    if count < threshold:
        return "Low"
    return "Normal"


def shortage_analysis(available_by_type: Dict[str, int], blood_types: Optional[Iterable[str]] = None) -> List[dict]:
    selected = list(blood_types) if blood_types else list(CRITICAL_SHORTAGE_THRESHOLDS)
    rows = []
    for blood_type in selected:
        threshold = CRITICAL_SHORTAGE_THRESHOLDS[blood_type]
        current = available_by_type.get(blood_type, 0)
        rows.append({
            "blood_type": blood_type,
            "current_level": current,
            "threshold": threshold,
            "shortage": max(threshold - current, 0),
            "status": shortage_status(current, threshold),
        })
    return rows


def resolve_time_range(time_range: TimeRange, now: datetime, start: Optional[datetime] = None) -> Tuple[datetime, datetime]:
    time_range = TimeRange(time_range)
    if time_range == TimeRange.CURRENT:
        return now.replace(hour=0, minute=0, second=0, microsecond=0), now
    if time_range == TimeRange.CUSTOM:
        if start is None:
            raise HTTPException(status_code=400, detail="startDate is required for a custom time range")
        start = parse_iso(start)
        if start > now:
            raise HTTPException(status_code=400, detail="startDate must be in the past")
        return start, now
    days = {
        TimeRange.LAST_7_DAYS: 7,
        TimeRange.LAST_30_DAYS: 30,
        TimeRange.LAST_90_DAYS: 90,
        TimeRange.LAST_YEAR: 365,
    }[time_range]
    return now - timedelta(days=days), now


def blood_type_filter(blood_types: Optional[Iterable[str]]) -> dict:
    """Mongo filter for a list of blood types; ``all`` or empty selects every type."""
    selected = [bt for bt in (blood_types or []) if bt != "all"]
    if not selected:
        return {}
    unknown = [bt for bt in selected if bt not in BLOOD_TYPES]
    if unknown:
        raise HTTPException(
            status_code=400,
            detail={"message": "Invalid blood type", "errors": {"bloodTypes": f"Unknown blood types: {', '.join(unknown)}"}},
        )
    return {"blood_type": {"$in": selected}}


def history_event_match(statuses: List[str], start: datetime, end: datetime) -> dict:
    """Units whose history records a transition into ``statuses`` inside the period."""
    return {
        "status_history": {
            "$elemMatch": {
                "status": {"$in": statuses},
                "timestamp": {"$gte": to_iso(start), "$lte": to_iso(end)},
            }
        }
    }


def expiring_between(start: datetime, end: datetime) -> dict:
    return {"expiration_date": {"$gt": to_iso(start), "$lte": to_iso(end)}}


# ============ DATABASE AGGREGATIONS ============

async def group_counts(db, field: str, match: Optional[dict] = None, keys: Optional[Iterable[str]] = None) -> Dict[str, int]:
    rows = await db.blood_units.aggregate(group_count_pipeline(field, match)).to_list(None)
    return counts_to_mapping(rows, keys)


async def status_matrix(db, match: Optional[dict] = None) -> Dict[str, Dict[str, int]]:
    """Counts per blood type and status, zero-filled on both axes."""
    pipeline = []
    if match:
        pipeline.append({"$match": match})
    pipeline.append({"$group": {"_id": {"blood_type": "$blood_type", "status": "$status"}, "count": {"$sum": 1}}})
    rows = await db.blood_units.aggregate(pipeline).to_list(None)

    matrix = OrderedDict((bt, OrderedDict((s, 0) for s in UNIT_STATUSES)) for bt in BLOOD_TYPES)
    for row in rows:
        bt = row["_id"].get("blood_type")
        status = row["_id"].get("status")
        if bt in matrix and status in matrix[bt]:
            matrix[bt][status] += row["count"]
    return matrix


async def dashboard_summary(db, now: datetime) -> dict:
    by_blood_type = await group_counts(db, "blood_type")
    by_status = await group_counts(db, "status")
    available = await group_counts(db, "blood_type", {"status": UnitStatus.AVAILABLE.value})

    critical_levels = [
        {"blood_type": bt, "count": available.get(bt, 0), "threshold": threshold}
        for bt, threshold in CRITICAL_SHORTAGE_THRESHOLDS.items()
        if available.get(bt, 0) < threshold
    ]
    critical_levels.sort(key=lambda x: x["count"])

    available_query = {"status": UnitStatus.AVAILABLE.value}
    expiring_units = {
        "soon": await db.blood_units.count_documents({**available_query, **expiring_between(now, now + expiry.SOON_WINDOW)}),
        "very_close": await db.blood_units.count_documents({**available_query, **expiring_between(now, now + expiry.VERY_CLOSE_WINDOW)}),
    }

    storage_units = await db.storage_units.find({
        "status": "Operational",
        "current_temperature.status": {"$in": [TemperatureStatus.WARNING.value, TemperatureStatus.CRITICAL.value]},
    }, {"_id": 0}).to_list(None)
    temperature_alerts = [
        {
            "storage_unit_id": unit["storage_unit_id"],
            "location": f"{unit.get('facility_name')} - {unit.get('name')}",
            "current_temp": unit["current_temperature"].get("value"),
            "min_temp": unit["temperature"]["min"],
            "max_temp": unit["temperature"]["max"],
            "status": unit["current_temperature"]["status"],
        }
        for unit in storage_units
    ]

    return {
        "by_blood_type": by_blood_type,
        "by_status": by_status,
        "critical_levels": critical_levels,
        "expiring_units": expiring_units,
        "temperature_alerts": temperature_alerts,
        "generated_at": to_iso(now),
    }


async def expiry_tracking(
    db,
    now: datetime,
    days: int = 30,
    status: str = UnitStatus.AVAILABLE.value,
    blood_type: Optional[str] = None,
) -> dict:
    """Units expiring within ``days`` bucketed by the expiry classifier."""
    query = {
        "status": status,
        "expiration_date": {"$gte": to_iso(now), "$lte": to_iso(now + timedelta(days=days))},
    }
    if blood_type:
        query["blood_type"] = blood_type

    units = await db.blood_units.find(query, {"_id": 0}).sort("expiration_date", 1).to_list(None)
    buckets = expiry.bucket_units(units, now, group_by_blood_type=True)

    return {
        "stats": {
            "total_expiring": len(units),
            "by_criteria": buckets["counts"],
            "by_blood_type": {
                bt: sum(counts.values()) for bt, counts in buckets["by_blood_type"].items()
            },
            "by_blood_type_and_tier": buckets["by_blood_type"],
        },
        "expiry_groups": buckets["groups"],
        "window_days": days,
    }


async def blood_type_distribution(db, status: str = UnitStatus.AVAILABLE.value) -> dict:
    counts = await group_counts(db, "blood_type", {"status": status}, keys=BLOOD_TYPES)
    total = sum(counts.values())
    distribution = []
    for row in shortage_analysis(counts, BLOOD_TYPES):
        row["percentage"] = round(row["current_level"] / total * 100, 1) if total else 0.0
        distribution.append(row)
    return {"status": status, "total": total, "distribution": distribution}


async def unit_stats(db, now: datetime, granularity: str = "month") -> dict:
    matrix = await status_matrix(db)
    expiring = await group_counts(
        db, "blood_type",
        {"status": UnitStatus.AVAILABLE.value, **expiring_between(now, now + expiry.SOON_WINDOW)},
        keys=BLOOD_TYPES,
    )
    recent = await db.blood_units.find(
        {"collection_date": {"$gte": to_iso(now - timedelta(days=365))}},
        {"_id": 0, "collection_date": 1},
    ).to_list(None)

    return {
        "total_units": await db.blood_units.count_documents({}),
        "available_units": await db.blood_units.count_documents({"status": UnitStatus.AVAILABLE.value}),
        "by_blood_type": [
            {"type": bt, "total": sum(row.values()), **{s.lower(): n for s, n in row.items()}}
            for bt, row in matrix.items()
        ],
        "by_status": await group_counts(db, "status", keys=UNIT_STATUSES),
        "by_facility": await group_counts(db, GROUPABLE_FIELDS["facility"]),
        "by_component_type": await group_counts(db, "component_type"),
        "by_collection_period": bucket_collection_dates(recent, granularity),
        "expiring_soon": {"total": sum(expiring.values()), "by_blood_type": expiring},
    }


# ============ REPORTS ============

async def inventory_summary(db, bt_query: dict, start: datetime, end: datetime, now: datetime) -> dict:
    matrix = await status_matrix(db, bt_query or None)
    selected = set(bt_query.get("blood_type", {}).get("$in", BLOOD_TYPES))

    changes = {
        "new_donations": await db.blood_units.count_documents(
            {**bt_query, "created_at": {"$gte": to_iso(start), "$lte": to_iso(end)}}
        ),
    }
    for status in TERMINAL_STATUSES:
        changes[status.lower()] = await db.blood_units.count_documents(
            {**bt_query, **history_event_match([status], start, end)}
        )

    expiring_soon = await db.blood_units.count_documents({
        **bt_query, "status": UnitStatus.AVAILABLE.value, **expiring_between(now, now + expiry.SOON_WINDOW)
    })

    by_blood_type = [
        {"blood_type": bt, "total": sum(row.values()), **{s.lower(): n for s, n in row.items()}}
        for bt, row in matrix.items() if bt in selected
    ]
    return {
        "summary": {
            "total_units": sum(r["total"] for r in by_blood_type),
            "available_units": sum(r["available"] for r in by_blood_type),
            "expiring_soon": expiring_soon,
            "changes": changes,
        },
        "by_blood_type": by_blood_type,
    }


async def expiry_analysis(db, bt_query: dict, start: datetime, end: datetime, now: datetime) -> dict:
    units = await db.blood_units.find({
        **bt_query,
        "status": UnitStatus.AVAILABLE.value,
        "expiration_date": {"$gte": to_iso(now), "$lte": to_iso(now + timedelta(days=30))},
    }, {"_id": 0, "blood_type": 1, "expiration_date": 1}).to_list(None)

    windows = OrderedDict([("seven_days", 7), ("fourteen_days", 14), ("thirty_days", 30)])
    by_blood_type = OrderedDict()
    for unit in units:
        days = expiry.days_until_expiry(unit["expiration_date"], now)
        row = by_blood_type.setdefault(unit["blood_type"], {key: 0 for key in windows})
        for key, limit in windows.items():
            if days <= limit:
                row[key] += 1

    expired = await db.blood_units.count_documents({**bt_query, **history_event_match([UnitStatus.EXPIRED.value], start, end)})
    discarded = await db.blood_units.count_documents({**bt_query, **history_event_match([UnitStatus.DISCARDED.value], start, end)})
    processed = await db.blood_units.count_documents({
        **bt_query,
        "$or": [
            history_event_match(TERMINAL_STATUSES, start, end),
            {"status": UnitStatus.AVAILABLE.value, "created_at": {"$gte": to_iso(start), "$lte": to_iso(end)}},
        ],
    })

    return {
        "summary": {
            "wastage_rate": wastage_rate(expired, discarded, processed),
            "expired_units": expired,
            "discarded_units": discarded,
            "total_processed": processed,
            "total_expiring": {key: sum(r[key] for r in by_blood_type.values()) for key in windows},
        },
        "by_blood_type": [{"blood_type": bt, **row} for bt, row in sorted(by_blood_type.items())],
    }


async def critical_shortage(db, bt_query: dict) -> dict:
    available = await group_counts(db, "blood_type", {**bt_query, "status": UnitStatus.AVAILABLE.value})
    selected = bt_query.get("blood_type", {}).get("$in")
    analysis = shortage_analysis(available, [bt for bt in CRITICAL_SHORTAGE_THRESHOLDS if not selected or bt in selected])
    critical = sum(1 for r in analysis if r["status"] == "Critical")
    low = sum(1 for r in analysis if r["status"] == "Low")
    return {
        "summary": {"critical_count": critical, "low_count": low, "normal_count": len(analysis) - critical - low},
        "shortage_analysis": analysis,
    }


async def supply_forecast(db, bt_query: dict, now: datetime) -> dict:
    window_start = now - timedelta(days=USAGE_WINDOW_DAYS)
    available = await group_counts(db, "blood_type", {**bt_query, "status": UnitStatus.AVAILABLE.value})
    used = await group_counts(
        db, "blood_type", {**bt_query, **history_event_match([UnitStatus.TRANSFUSED.value], window_start, now)}
    )
    selected = bt_query.get("blood_type", {}).get("$in", BLOOD_TYPES)

    rows = []
    for bt in BLOOD_TYPES:
        if bt not in selected:
            continue
        rows.append({
            "blood_type": bt,
            "available": available.get(bt, 0),
            "used_last_30_days": used.get(bt, 0),
            "average_daily_usage": round(used.get(bt, 0) / USAGE_WINDOW_DAYS, 2),
            "days_of_supply": days_of_supply(available.get(bt, 0), used.get(bt, 0)),
            "status": shortage_status(available.get(bt, 0), CRITICAL_SHORTAGE_THRESHOLDS[bt]),
        })
    return {
        "summary": {
            "window_days": USAGE_WINDOW_DAYS,
            "total_available": sum(r["available"] for r in rows),
            "total_used": sum(r["used_last_30_days"] for r in rows),
            "days_of_supply": days_of_supply(sum(r["available"] for r in rows), sum(r["used_last_30_days"] for r in rows)),
        },
        "by_blood_type": rows,
    }


async def historical_trends(db, bt_query: dict, start: datetime, end: datetime) -> dict:
    granularity = "day" if (end - start) <= timedelta(days=31) else "week" if (end - start) <= timedelta(days=120) else "month"
    collected = await db.blood_units.find(
        {**bt_query, "collection_date": {"$gte": to_iso(start), "$lte": to_iso(end)}},
        {"_id": 0, "collection_date": 1, "blood_type": 1},
    ).to_list(None)
    transfused = await db.blood_units.count_documents({**bt_query, **history_event_match([UnitStatus.TRANSFUSED.value], start, end)})
    wasted = await db.blood_units.count_documents(
        {**bt_query, **history_event_match([UnitStatus.EXPIRED.value, UnitStatus.DISCARDED.value], start, end)}
    )

    by_type = OrderedDict()
    for unit in collected:
        by_type[unit["blood_type"]] = by_type.get(unit["blood_type"], 0) + 1

    return {
        "summary": {"total_donations": len(collected), "total_usage": transfused, "total_wastage": wasted},
        "granularity": granularity,
        "trends": [{"period": k, "collections": v} for k, v in bucket_collection_dates(collected, granularity).items()],
        "collections_by_blood_type": by_type,
    }


async def storage_conditions(db, start: datetime, end: datetime) -> dict:
    logs = await db.storage_logs.find({}, {"_id": 0}).to_list(None)
    units = []
    total_readings = 0
    out_of_range = 0
    total_alarms = 0
    for log in logs:
        readings = [
            r for r in log.get("readings", [])
            if to_iso(start) <= r["recorded_at"] <= to_iso(end)
        ]
        alarms = [
            a for a in log.get("alarm_history", [])
            if to_iso(start) <= a["triggered_at"] <= to_iso(end)
        ]
        stats = reading_stats(readings)
        total_readings += len(readings)
        out_of_range += (stats["warning_count"] + stats["critical_count"]) if stats else 0
        total_alarms += len(alarms)
        units.append({
            "storage_unit_id": log["storage_unit_id"],
            "facility_id": log["facility_id"],
            "readings": len(readings),
            "alarms": len(alarms),
            "stats": stats,
        })

    return {
        "summary": {
            "total_units": len(units),
            "total_readings": total_readings,
            "total_alarms": total_alarms,
            "temperature_stats": {
                "out_of_range_count": out_of_range,
                "out_of_range_percentage": round(out_of_range / total_readings * 100, 2) if total_readings else 0.0,
            },
        },
        "storage_units": units,
    }


async def generate_report_data(
    db,
    report_type: ReportType,
    time_range: TimeRange,
    blood_types: Optional[List[str]],
    now: datetime,
    start_date: Optional[datetime] = None,
) -> dict:
    bt_query = blood_type_filter(blood_types)
    start, end = resolve_time_range(time_range, now, start_date)
    report_type = ReportType(report_type)
    logger.info("Generating %s report for %s..%s", report_type.value, to_iso(start), to_iso(end))

    if report_type == ReportType.INVENTORY_SUMMARY:
        data = await inventory_summary(db, bt_query, start, end, now)
    elif report_type == ReportType.EXPIRY_ANALYSIS:
        data = await expiry_analysis(db, bt_query, start, end, now)
    elif report_type == ReportType.HISTORICAL_TRENDS:
        data = await historical_trends(db, bt_query, start, end)
    elif report_type == ReportType.STORAGE_CONDITIONS:
        data = await storage_conditions(db, start, end)
    elif report_type == ReportType.CRITICAL_SHORTAGE:
        data = await critical_shortage(db, bt_query)
    else:
        data = await supply_forecast(db, bt_query, now)

    data["period"] = {"start": to_iso(start), "end": to_iso(end)}
    return data
