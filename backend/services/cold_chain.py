"""
Storage temperature monitoring.

A reading inside the unit's configured range is Normal. Outside the range,
readings within 20% of the range width are a Warning and anything further is
Critical. A Critical reading opens an alarm on the storage log unless one is
already Active or Acknowledged.

Maintenance records live on the same storage log in ``maintenance_history``.
"""
import logging
from datetime import datetime, timedelta
from typing import List, Optional
import uuid

from fastapi import HTTPException

from models import (
    StorageReading, StorageAlarm, TemperatureStatus, AlarmStatus, TemperatureLogCreate,
    MaintenanceRecord, MaintenanceCreate, MaintenanceType, MaintenanceStatus,
    utc_now, to_iso, to_document
)
from models.audit import AuditAction, AuditModule
from services.audit_service import AuditService
from services.auth import actor_name

logger = logging.getLogger(__name__)

WARNING_MARGIN = 0.2

TEMPERATURE_WINDOWS = {
    "1h": timedelta(hours=1),
    "6h": timedelta(hours=6),
    "24h": timedelta(hours=24),
    "7d": timedelta(days=7),
    "30d": timedelta(days=30),
}

OPEN_ALARM_STATUSES = [AlarmStatus.ACTIVE.value, AlarmStatus.ACKNOWLEDGED.value]


def temperature_status(temperature: float, minimum: float, maximum: float) -> TemperatureStatus:
    if minimum <= temperature <= maximum:
        return TemperatureStatus.NORMAL
    margin = (maximum - minimum) * WARNING_MARGIN
    if minimum - margin <= temperature <= maximum + margin:
        return TemperatureStatus.WARNING
    return TemperatureStatus.CRITICAL


def has_open_alarm(log: Optional[dict]) -> bool:
    if not log:
        return False
    return any(a.get("status") in OPEN_ALARM_STATUSES for a in log.get("alarm_history", []))


def reading_stats(readings: List[dict]) -> Optional[dict]:
    if not readings:
        return None
    temps = [r["temperature"] for r in readings]
    return {
        "count": len(temps),
        "min": min(temps),
        "max": max(temps),
        "avg": round(sum(temps) / len(temps), 2),
        "latest": max(readings, key=lambda r: r["recorded_at"])["temperature"],
        "warning_count": sum(1 for r in readings if r.get("status") == TemperatureStatus.WARNING.value),
        "critical_count": sum(1 for r in readings if r.get("status") == TemperatureStatus.CRITICAL.value),
    }


def window_start(time_range: str, now: datetime) -> datetime:
    if time_range not in TEMPERATURE_WINDOWS:
        raise HTTPException(
            status_code=400,
            detail=f"Invalid timeRange. Must be one of: {', '.join(TEMPERATURE_WINDOWS)}",
        )
    return now - TEMPERATURE_WINDOWS[time_range]


async def find_storage_unit(db, ref: str) -> dict:
    unit = await db.storage_units.find_one(
        {"$or": [{"id": ref}, {"storage_unit_id": ref}]}, {"_id": 0}
    )
    if not unit:
        raise HTTPException(status_code=404, detail="Storage unit not found")
    return unit


async def record_reading(db, body: TemperatureLogCreate, user: dict, now: Optional[datetime] = None) -> dict:
    """Append a reading to the storage log and refresh the unit's current temperature."""
    now = now or utc_now()
    unit = await db.storage_units.find_one(
        {"storage_unit_id": body.storage_unit_id, "facility_id": body.facility_id}, {"_id": 0}
    )
    if not unit:
        raise HTTPException(status_code=404, detail="Storage unit not found")

    status = body.status or temperature_status(
        body.temperature, unit["temperature"]["min"], unit["temperature"]["max"]
    )
    reading = StorageReading(
        temperature=body.temperature,
        humidity=body.humidity,
        recorded_at=now,
        recorded_by=actor_name(user),
        status=status,
        notes=body.notes,
    )
    log_key = {"storage_unit_id": body.storage_unit_id, "facility_id": body.facility_id}

    await db.storage_logs.update_one(
        log_key,
        {
            "$push": {"readings": to_document(reading.model_dump())},
            "$setOnInsert": {"id": str(uuid.uuid4()), "created_at": to_iso(now)},
            "$set": {"updated_at": to_iso(now)},
        },
        upsert=True,
    )

    alarm = None
    if status == TemperatureStatus.CRITICAL:
        log = await db.storage_logs.find_one(log_key, {"_id": 0, "alarm_history": 1})
        if has_open_alarm(log):
            logger.info("Critical reading on %s; alarm already open", body.storage_unit_id)
        else:
            alarm = StorageAlarm(
                triggered_at=now,
                description=(
                    f"Temperature {body.temperature} outside range "
                    f"{unit['temperature']['min']} to {unit['temperature']['max']}"
                ),
            )
            await db.storage_logs.update_one(
                log_key, {"$push": {"alarm_history": to_document(alarm.model_dump())}}
            )
            logger.warning("Temperature alarm raised on %s: %s", body.storage_unit_id, alarm.description)

    await db.storage_units.update_one(
        {"id": unit["id"]},
        {"$set": {
            "current_temperature": {"value": body.temperature, "updated_at": to_iso(now), "status": status.value},
            "updated_at": to_iso(now),
        }},
    )

    await AuditService.log(
        db, AuditAction.TEMPERATURE_READING, AuditModule.STORAGE, user,
        record_id=unit["id"], record_type="storage_unit",
        new_values={"temperature": body.temperature, "status": status.value},
    )
    return {
        "storage_unit_id": body.storage_unit_id,
        "reading": to_document(reading.model_dump()),
        "alarm": to_document(alarm.model_dump()) if alarm else None,
    }


async def temperature_history(
    db,
    now: datetime,
    time_range: str = "24h",
    storage_unit_id: Optional[str] = None,
    facility_id: Optional[str] = None,
    limit: int = 100,
) -> dict:
    """Readings newer than the window start, newest first, with per-unit stats."""
    since = to_iso(window_start(time_range, now))
    query = {}
    if storage_unit_id:
        query["storage_unit_id"] = storage_unit_id
    if facility_id:
        query["facility_id"] = facility_id

    logs = await db.storage_logs.find(query, {"_id": 0}).to_list(None)
    units = []
    for log in logs:
        readings = sorted(
            (r for r in log.get("readings", []) if r["recorded_at"] >= since),
            key=lambda r: r["recorded_at"],
            reverse=True,
        )
        units.append({
            "storage_unit_id": log["storage_unit_id"],
            "facility_id": log["facility_id"],
            "readings": readings[:limit],
            "stats": reading_stats(readings),
            "alarms": [
                {**a, "index": i} for i, a in enumerate(log.get("alarm_history", []))
                if a.get("status") in OPEN_ALARM_STATUSES
            ],
        })
    return {"time_range": time_range, "since": since, "storage_units": units}


async def acknowledge_alarm(db, storage_unit_ref: str, index: int, user: dict, now: Optional[datetime] = None) -> dict:
    now = now or utc_now()
    unit = await find_storage_unit(db, storage_unit_ref)
    log_key = {"storage_unit_id": unit["storage_unit_id"], "facility_id": unit["facility_id"]}
    log = await db.storage_logs.find_one(log_key, {"_id": 0, "alarm_history": 1})
    alarms = (log or {}).get("alarm_history", [])
    if index < 0 or index >= len(alarms):
        raise HTTPException(status_code=404, detail="Alarm not found")
    if alarms[index].get("status") != AlarmStatus.ACTIVE.value:
        raise HTTPException(status_code=409, detail=f"Alarm is already {alarms[index].get('status')}")

    await db.storage_logs.update_one(log_key, {"$set": {
        f"alarm_history.{index}.status": AlarmStatus.ACKNOWLEDGED.value,
        f"alarm_history.{index}.acknowledged_by": actor_name(user),
        f"alarm_history.{index}.acknowledged_at": to_iso(now),
    }})
    logger.info("Alarm %d on %s acknowledged by %s", index, unit["storage_unit_id"], user.get("id"))

    await AuditService.log(
        db, AuditAction.ALARM_ACKNOWLEDGED, AuditModule.STORAGE, user,
        record_id=unit["id"], record_type="storage_unit",
        metadata={"alarm_index": index},
    )
    return {
        **alarms[index],
        "status": AlarmStatus.ACKNOWLEDGED.value,
        "acknowledged_by": actor_name(user),
        "acknowledged_at": to_iso(now),
    }


async def record_maintenance(db, body: MaintenanceCreate, user: dict, now: Optional[datetime] = None) -> dict:
    """Append a maintenance record to the storage log of an existing unit."""
    now = now or utc_now()
    unit = await db.storage_units.find_one(
        {"storage_unit_id": body.storage_unit_id, "facility_id": body.facility_id}, {"_id": 0}
    )
    if not unit:
        raise HTTPException(status_code=404, detail="Storage unit not found")

    record = MaintenanceRecord(
        **body.model_dump(exclude={"storage_unit_id", "facility_id", "notes"}),
        performed_at=now,
        notes=body.notes or "",
        recorded_by=actor_name(user),
    )
    doc = to_document(record.model_dump())
    await db.storage_logs.update_one(
        {"storage_unit_id": body.storage_unit_id, "facility_id": body.facility_id},
        {
            "$push": {"maintenance_history": doc},
            "$setOnInsert": {"id": str(uuid.uuid4()), "created_at": to_iso(now)},
            "$set": {"updated_at": to_iso(now)},
        },
        upsert=True,
    )
    logger.info(
        "%s maintenance on %s recorded by %s (%s)",
        doc["maintenance_type"], body.storage_unit_id, user.get("id"), doc["result"]
    )

    await AuditService.log(
        db, AuditAction.MAINTENANCE, AuditModule.STORAGE, user,
        record_id=unit["id"], record_type="storage_unit",
        new_values={"maintenance_type": doc["maintenance_type"], "status": doc["status"], "result": doc["result"]},
    )
    return {"storage_unit_id": body.storage_unit_id, "facility_id": body.facility_id, "record": doc}


async def maintenance_records(
    db,
    storage_unit_id: Optional[str] = None,
    facility_id: Optional[str] = None,
    maintenance_type: Optional[MaintenanceType] = None,
    status: Optional[MaintenanceStatus] = None,
) -> dict:
    """Maintenance records per storage log; logs with no matching record are left out."""
    query = {}
    if storage_unit_id:
        query["storage_unit_id"] = storage_unit_id
    if facility_id:
        query["facility_id"] = facility_id

    logs = await db.storage_logs.find(query, {"_id": 0}).sort("storage_unit_id", 1).to_list(None)
    units = []
    for log in logs:
        records = [
            r for r in log.get("maintenance_history", [])
            if (not maintenance_type or r.get("maintenance_type") == maintenance_type.value)
            and (not status or r.get("status") == status.value)
        ]
        if records:
            units.append({
                "storage_unit_id": log["storage_unit_id"],
                "facility_id": log["facility_id"],
                "maintenance_records": records,
            })
    return {"storage_units": units, "total": sum(len(u["maintenance_records"]) for u in units)}
