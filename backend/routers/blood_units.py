"""
Blood Unit API
Intake, lookup, edits and status transitions for individual blood units
"""
from fastapi import APIRouter, HTTPException, Depends, Query
from typing import Optional
from datetime import datetime
import logging
import math
import re

from database import get_db
from models import (
    BloodUnitCreate, BloodUnitUpdate, StatusUpdate, BatchStatusUpdate,
    TemperatureReadingCreate, TransfusionCreate, TransfusionRecord, TemperatureReading,
    BloodType, utc_now, to_iso, to_document
)
from models.audit import AuditModule
from services import get_current_user, actor_name, generate_qr_base64
from services.audit_service import audit_update, audit_delete
from services import expiry, lifecycle, reporting
from middleware import ManageInventory, require_admin

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/inventory/blood-units", tags=["Blood Units"])

MAX_PAGE_SIZE = 100


@router.get("")
async def list_blood_units(
    blood_type: Optional[BloodType] = Query(None, alias="bloodType"),
    status: Optional[str] = None,
    expiring_before: Optional[datetime] = Query(None, alias="expiringBefore"),
    location: Optional[str] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=MAX_PAGE_SIZE),
    db=Depends(get_db),
    current_user: dict = Depends(get_current_user)
):
    """List blood units, newest collection first"""
    query = {}
    if blood_type:
        query["blood_type"] = blood_type.value
    if status:
        query["status"] = lifecycle.validate_status(status).value
    if expiring_before:
        query["expiration_date"] = {"$lte": to_iso(expiring_before)}
    if location:
        query["location.facility"] = {"$regex": re.escape(location), "$options": "i"}

    total = await db.blood_units.count_documents(query)
    units = await db.blood_units.find(query, {"_id": 0}).sort(
        "collection_date", -1
    ).skip((page - 1) * limit).limit(limit).to_list(limit)

    now = utc_now()
    return {
        "units": [expiry.annotate(u, now) for u in units],
        "pagination": {
            "total": total,
            "page": page,
            "limit": limit,
            "pages": math.ceil(total / limit) if total else 0,
        },
    }


@router.post("")
async def create_blood_unit(
    data: BloodUnitCreate,
    db=Depends(get_db),
    current_user: dict = Depends(ManageInventory)
):
    if data.donor_id and not await db.donors.find_one({"id": data.donor_id}, {"_id": 1}):
        raise HTTPException(status_code=400, detail="Donor not found")
    return await lifecycle.register_unit(db, data, current_user)


@router.get("/stats")
async def get_blood_unit_stats(
    granularity: str = Query("month", pattern="^(day|week|month)$"),
    db=Depends(get_db),
    current_user: dict = Depends(get_current_user)
):
    """Counts by blood type, status, facility, component and collection period"""
    return await reporting.unit_stats(db, utc_now(), granularity)


@router.put("/batch-status")
async def batch_update_status(
    data: BatchStatusUpdate,
    db=Depends(get_db),
    current_user: dict = Depends(ManageInventory)
):
    return await lifecycle.batch_update_status(db, data.unit_ids, data.status, current_user, notes=data.notes)


@router.get("/{unit_ref}")
async def get_blood_unit(unit_ref: str, db=Depends(get_db), current_user: dict = Depends(get_current_user)):
    unit = await lifecycle.find_unit(db, unit_ref)
    return expiry.annotate(unit, utc_now())


@router.put("/{unit_ref}")
async def update_blood_unit(
    unit_ref: str,
    data: BloodUnitUpdate,
    db=Depends(get_db),
    current_user: dict = Depends(ManageInventory)
):
    """Edit location, component type or notes"""
    unit = await lifecycle.find_unit(db, unit_ref)
    updates = to_document(data.model_dump(exclude_unset=True))
    if not updates:
        raise HTTPException(status_code=400, detail="No editable fields supplied")
    updates["updated_at"] = to_iso(utc_now())

    await db.blood_units.update_one({"id": unit["id"]}, {"$set": updates})
    await audit_update(
        db, AuditModule.BLOOD_UNITS, current_user, unit["id"], "blood_unit",
        old_values={k: unit.get(k) for k in updates if k != "updated_at"},
        new_values=updates,
    )
    return await lifecycle.find_unit(db, unit["id"])


@router.delete("/{unit_ref}")
async def delete_blood_unit(unit_ref: str, db=Depends(get_db), current_user: dict = Depends(require_admin)):
    unit = await lifecycle.find_unit(db, unit_ref)
    await db.blood_units.delete_one({"id": unit["id"]})
    logger.warning("Unit %s deleted by %s", unit["unit_id"], current_user.get("id"))
    await audit_delete(
        db, AuditModule.BLOOD_UNITS, current_user, unit["id"], "blood_unit",
        old_values={"unit_id": unit["unit_id"], "status": unit.get("status")},
    )
    return {"status": "success", "message": f"Blood unit {unit['unit_id']} deleted"}


@router.put("/{unit_ref}/status")
async def update_blood_unit_status(
    unit_ref: str,
    data: StatusUpdate,
    db=Depends(get_db),
    current_user: dict = Depends(ManageInventory)
):
    return await lifecycle.update_unit_status(db, unit_ref, data.status, current_user, notes=data.notes)


@router.post("/{unit_ref}/temperature")
async def add_temperature_reading(
    unit_ref: str,
    data: TemperatureReadingCreate,
    db=Depends(get_db),
    current_user: dict = Depends(ManageInventory)
):
    unit = await lifecycle.find_unit(db, unit_ref)
    reading = to_document(TemperatureReading(
        temperature=data.temperature, recorded_by=actor_name(current_user), notes=data.notes
    ).model_dump())

    await db.blood_units.update_one(
        {"id": unit["id"]},
        {"$push": {"temperature_history": reading}, "$set": {"updated_at": reading["recorded_at"]}}
    )
    return {"status": "success", "unit_id": unit["unit_id"], "reading": reading}


@router.post("/{unit_ref}/transfuse")
async def transfuse_blood_unit(
    unit_ref: str,
    data: TransfusionCreate,
    db=Depends(get_db),
    current_user: dict = Depends(ManageInventory)
):
    record = TransfusionRecord(
        recipient_id=data.recipient_id,
        transfusion_date=data.transfusion_date or utc_now(),
        hospital=data.hospital,
        physician=data.physician,
        notes=data.notes,
    )
    return await lifecycle.record_transfusion(db, unit_ref, record, current_user)


@router.get("/{unit_ref}/label")
async def get_blood_unit_label(unit_ref: str, db=Depends(get_db), current_user: dict = Depends(get_current_user)):
    """QR label for a unit (base64 PNG)"""
    unit = await lifecycle.find_unit(db, unit_ref)
    return {
        "unit_id": unit["unit_id"],
        "blood_type": unit["blood_type"],
        "expiration_date": unit["expiration_date"],
        "qr_code": generate_qr_base64(unit["unit_id"]),
    }
