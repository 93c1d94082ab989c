"""
Cold Storage API
Storage unit registry, temperature logging, alarm handling and maintenance
"""
from fastapi import APIRouter, HTTPException, Depends, Query
from typing import Optional
import logging

from database import get_db
from models import (
    StorageUnit, StorageUnitCreate, StorageUnitUpdate, TemperatureLogCreate, MaintenanceCreate,
    StorageType, StorageStatus, MaintenanceType, MaintenanceStatus, utc_now, to_iso, to_document
)
from models.audit import AuditModule
from services import get_current_user
from services.audit_service import audit_create, audit_update, audit_delete
from services import cold_chain
from middleware import ManageInventory, require_admin

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/inventory/storage", tags=["Storage"])


@router.get("")
async def list_storage_units(
    facility_id: Optional[str] = Query(None, alias="facilityId"),
    storage_type: Optional[StorageType] = Query(None, alias="type"),
    status: Optional[StorageStatus] = None,
    db=Depends(get_db),
    current_user: dict = Depends(get_current_user)
):
    query = {}
    if facility_id:
        query["facility_id"] = facility_id
    if storage_type:
        query["type"] = storage_type.value
    if status:
        query["status"] = status.value

    units = await db.storage_units.find(query, {"_id": 0}).sort("storage_unit_id", 1).to_list(None)
    return {"storage_units": units, "total": len(units)}


@router.post("")
async def create_storage_unit(data: StorageUnitCreate, db=Depends(get_db), current_user: dict = Depends(ManageInventory)):
    if await db.storage_units.find_one({"storage_unit_id": data.storage_unit_id}, {"_id": 1}):
        raise HTTPException(status_code=400, detail=f"Storage unit {data.storage_unit_id} already exists")

    unit = StorageUnit(**data.model_dump(), created_by=current_user.get("id"))
    doc = to_document(unit.model_dump())
    await db.storage_units.insert_one(doc)
    doc.pop("_id", None)

    await audit_create(db, AuditModule.STORAGE, current_user, unit.id, "storage_unit", {"storage_unit_id": unit.storage_unit_id})
    return doc


@router.post("/temperature")
async def log_temperature(data: TemperatureLogCreate, db=Depends(get_db), current_user: dict = Depends(ManageInventory)):
    return await cold_chain.record_reading(db, data, current_user)


@router.get("/temperature")
async def get_temperature_history(
    storage_unit_id: Optional[str] = Query(None, alias="storageUnitId"),
    facility_id: Optional[str] = Query(None, alias="facilityId"),
    time_range: str = Query("24h", alias="range"),
    limit: int = Query(100, ge=1, le=1000),
    db=Depends(get_db),
    current_user: dict = Depends(get_current_user)
):
    return await cold_chain.temperature_history(
        db, utc_now(), time_range, storage_unit_id=storage_unit_id, facility_id=facility_id, limit=limit
    )


@router.post("/maintenance")
async def log_maintenance(data: MaintenanceCreate, db=Depends(get_db), current_user: dict = Depends(ManageInventory)):
    return await cold_chain.record_maintenance(db, data, current_user)


@router.get("/maintenance")
async def get_maintenance_records(
    storage_unit_id: Optional[str] = Query(None, alias="storageUnitId"),
    facility_id: Optional[str] = Query(None, alias="facilityId"),
    maintenance_type: Optional[MaintenanceType] = Query(None, alias="type"),
    status: Optional[MaintenanceStatus] = None,
    db=Depends(get_db),
    current_user: dict = Depends(get_current_user)
):
    return await cold_chain.maintenance_records(
        db, storage_unit_id=storage_unit_id, facility_id=facility_id,
        maintenance_type=maintenance_type, status=status,
    )


@router.get("/{storage_ref}")
async def get_storage_unit(storage_ref: str, db=Depends(get_db), current_user: dict = Depends(get_current_user)):
    return await cold_chain.find_storage_unit(db, storage_ref)


@router.put("/{storage_ref}")
async def update_storage_unit(
    storage_ref: str,
    data: StorageUnitUpdate,
    db=Depends(get_db),
    current_user: dict = Depends(ManageInventory)
):
    unit = await cold_chain.find_storage_unit(db, storage_ref)
    updates = to_document(data.model_dump(exclude_unset=True))
    if not updates:
        raise HTTPException(status_code=400, detail="No fields to update")

    updates["updated_at"] = to_iso(utc_now())
    updates["updated_by"] = current_user.get("id")
    await db.storage_units.update_one({"id": unit["id"]}, {"$set": updates})
    await audit_update(
        db, AuditModule.STORAGE, current_user, unit["id"], "storage_unit",
        old_values={k: unit.get(k) for k in updates if k not in ("updated_at", "updated_by")},
        new_values=updates,
    )
    return await cold_chain.find_storage_unit(db, unit["id"])


@router.delete("/{storage_ref}")
async def delete_storage_unit(storage_ref: str, db=Depends(get_db), current_user: dict = Depends(require_admin)):
    unit = await cold_chain.find_storage_unit(db, storage_ref)
    await db.storage_units.delete_one({"id": unit["id"]})
    await audit_delete(db, AuditModule.STORAGE, current_user, unit["id"], "storage_unit", {"storage_unit_id": unit["storage_unit_id"]})
    return {"status": "success", "message": f"Storage unit {unit['storage_unit_id']} deleted"}


@router.put("/{storage_ref}/alarms/{index}/acknowledge")
async def acknowledge_alarm(
    storage_ref: str,
    index: int,
    db=Depends(get_db),
    current_user: dict = Depends(ManageInventory)
):
    return await cold_chain.acknowledge_alarm(db, storage_ref, index, current_user)
