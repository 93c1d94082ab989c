"""
Blood unit status transitions.

Every transition validates the requested status against the fixed allow-list,
sets the current status and appends one entry to ``status_history``. History
is only ever written with ``$push``.

Marking a unit ``Expired`` while its stored expiration date is still in the
future moves ``expiration_date`` to the moment of the transition. The date it
replaces is kept once in ``original_expiration_date`` so the shelf-life date
is never lost.
"""
import logging
from datetime import datetime
from typing import List, Optional

from fastapi import HTTPException
from pymongo import ReturnDocument

from models import (
    BloodUnit, BloodUnitCreate, UnitStatus, UNIT_STATUSES, StatusHistoryEntry, TransfusionRecord,
    utc_now, to_iso, parse_iso, to_document
)
from models.audit import AuditAction, AuditModule
from services.audit_service import AuditService
from services.auth import actor_name
from services.ids import generate_unit_id

logger = logging.getLogger(__name__)

TRANSFUSABLE_STATUSES = [UnitStatus.AVAILABLE.value, UnitStatus.RESERVED.value]


def unit_lookup(unit_ref: str) -> dict:
    return {"$or": [{"id": unit_ref}, {"unit_id": unit_ref}]}


async def find_unit(db, unit_ref: str) -> dict:
    unit = await db.blood_units.find_one(unit_lookup(unit_ref), {"_id": 0})
    if not unit:
        raise HTTPException(status_code=404, detail="Blood unit not found")
    return unit


def validate_status(value) -> UnitStatus:
    if not value:
        raise HTTPException(
            status_code=400,
            detail={"message": "Status is required", "errors": {"status": "Status is required"}},
        )
    if value not in UNIT_STATUSES:
        raise HTTPException(
            status_code=400,
            detail={
                "message": "Invalid status value",
                "errors": {"status": f"'{value}' is not one of {', '.join(UNIT_STATUSES)}"},
                "allowed": UNIT_STATUSES,
            },
        )
    return UnitStatus(value)


def build_history_entry(status: UnitStatus, actor: str, notes: Optional[str], now: datetime) -> dict:
    entry = StatusHistoryEntry(status=status, timestamp=now, updated_by=actor, notes=notes or "")
    return to_document(entry.model_dump())


def expiration_override(unit: dict, status: UnitStatus, now: datetime) -> dict:
    """Fields to $set when an Expired transition pulls a future expiration back to now."""
    if status != UnitStatus.EXPIRED:
        return {}
    expiration = parse_iso(unit.get("expiration_date"))
    if expiration is None or expiration <= now:
        return {}
    fields = {"expiration_date": to_iso(now)}
    if not unit.get("original_expiration_date"):
        fields["original_expiration_date"] = unit["expiration_date"]
    return fields


async def update_unit_status(
    db,
    unit_ref: str,
    status,
    user: dict,
    notes: Optional[str] = None,
    now: Optional[datetime] = None,
    extra_fields: Optional[dict] = None,
) -> dict:
    """Apply one status transition to a single unit and return the updated document."""
    new_status = validate_status(status)
    unit = await find_unit(db, unit_ref)
    now = now or utc_now()

    set_fields = {"status": new_status.value, "updated_at": to_iso(now)}
    set_fields.update(expiration_override(unit, new_status, now))
    if extra_fields:
        set_fields.update(extra_fields)

    updated = await db.blood_units.find_one_and_update(
        {"id": unit["id"]},
        {
            "$set": set_fields,
            "$push": {"status_history": build_history_entry(new_status, actor_name(user), notes, now)},
        },
        projection={"_id": 0},
        return_document=ReturnDocument.AFTER,
    )
    if updated is None:
        raise HTTPException(status_code=404, detail="Blood unit not found")

    if "expiration_date" in set_fields:
        logger.warning(
            "Unit %s marked Expired before its expiration date; expiration moved from %s to %s",
            unit["unit_id"], unit["expiration_date"], set_fields["expiration_date"]
        )
    logger.info("Unit %s status %s -> %s by %s", unit["unit_id"], unit.get("status"), new_status.value, user.get("id"))

    await AuditService.log(
        db, AuditAction.STATUS_CHANGE, AuditModule.BLOOD_UNITS, user,
        record_id=unit["id"], record_type="blood_unit",
        old_values={"status": unit.get("status"), "expiration_date": unit.get("expiration_date")},
        new_values=set_fields,
        description=f"Status of {unit['unit_id']} changed to {new_status.value}",
    )
    return updated


async def batch_update_status(
    db,
    unit_refs,
    status,
    user: dict,
    notes: Optional[str] = None,
    now: Optional[datetime] = None,
) -> dict:
    """
    Apply one status transition to many units.

    Each unit's document is written exactly once, so its status, history and
    any expiration override change together. Units whose expiration must move
    are written one ``update_one`` at a time; the rest share one
    ``update_many``. There is no atomicity across documents.

    Refs are resolved before counting: two refs naming the same unit (its
    ``id`` and its ``unit_id``) count as one unit. Refs matching no unit are
    reported in ``missing_unit_ids``.
    """
    if not isinstance(unit_refs, list) or len(unit_refs) == 0:
        raise HTTPException(
            status_code=400,
            detail={
                "message": "Unit IDs array is required and must not be empty",
                "errors": {"unitIds": "Unit IDs array is required and must not be empty"},
            },
        )
    new_status = validate_status(status)
    now = now or utc_now()

    refs: List[str] = list(dict.fromkeys(str(ref) for ref in unit_refs))
    found = await db.blood_units.find(
        {"$or": [{"id": {"$in": refs}}, {"unit_id": {"$in": refs}}]},
        {"_id": 0, "id": 1, "unit_id": 1, "status": 1, "expiration_date": 1, "original_expiration_date": 1},
    ).to_list(None)

    matched = set()
    for doc in found:
        matched.add(doc["id"])
        matched.add(doc.get("unit_id"))
    missing = [ref for ref in refs if ref not in matched]

    set_fields = {"status": new_status.value, "updated_at": to_iso(now)}
    history = {"status_history": build_history_entry(new_status, actor_name(user), notes, now)}

    overridden = []
    plain_ids = []
    for doc in found:
        override = expiration_override(doc, new_status, now)
        if override:
            overridden.append((doc, override))
        else:
            plain_ids.append(doc["id"])

    units_updated = 0
    for doc, override in overridden:
        result = await db.blood_units.update_one(
            {"id": doc["id"]},
            {"$set": {**set_fields, **override}, "$push": history},
        )
        units_updated += result.modified_count
        logger.warning(
            "Unit %s marked Expired before its expiration date; expiration moved from %s to %s",
            doc["unit_id"], doc["expiration_date"], override["expiration_date"]
        )

    if plain_ids:
        result = await db.blood_units.update_many(
            {"id": {"$in": plain_ids}}, {"$set": set_fields, "$push": history}
        )
        units_updated += result.modified_count

    if units_updated != len(found):
        logger.warning(
            "Batch status %s: %d units matched but %d modified", new_status.value, len(found), units_updated
        )
    logger.info(
        "Batch status %s by %s: %d updated, %d not found",
        new_status.value, user.get("id"), units_updated, len(missing)
    )

    await AuditService.log(
        db, AuditAction.BATCH_STATUS_CHANGE, AuditModule.BLOOD_UNITS, user,
        record_type="blood_unit",
        new_values={"status": new_status.value},
        description=f"Batch status change to {new_status.value}",
        metadata={"unit_ids": [doc["id"] for doc in found], "missing_unit_ids": missing},
    )

    return {
        "message": f"Updated {units_updated} blood units",
        "units_updated": units_updated,
        "units_not_found": len(missing),
        "missing_unit_ids": missing,
    }


async def record_transfusion(db, unit_ref: str, record: TransfusionRecord, user: dict, now: Optional[datetime] = None) -> dict:
    """Attach a transfusion record and move the unit to Transfused."""
    unit = await find_unit(db, unit_ref)
    if unit.get("status") not in TRANSFUSABLE_STATUSES:
        raise HTTPException(
            status_code=409,
            detail=f"Only Available or Reserved units can be transfused (unit is {unit.get('status')})",
        )

    updated = await update_unit_status(
        db, unit["id"], UnitStatus.TRANSFUSED.value, user,
        notes=record.notes or f"Transfused to recipient {record.recipient_id}",
        now=now,
        extra_fields={"transfusion_record": to_document(record.model_dump())},
    )
    await AuditService.log(
        db, AuditAction.TRANSFUSE, AuditModule.BLOOD_UNITS, user,
        record_id=unit["id"], record_type="blood_unit",
        new_values={"recipient_id": record.recipient_id, "hospital": record.hospital},
        description=f"Unit {unit['unit_id']} transfused",
    )
    return updated


async def register_unit(db, data: BloodUnitCreate, user: dict, now: Optional[datetime] = None) -> dict:
    """
    Intake of a new unit. Units always enter as Quarantined with one history
    entry recording the intake.
    """
    now = now or utc_now()
    unit_id = data.unit_id or await generate_unit_id(db)
    if await db.blood_units.find_one({"unit_id": unit_id}, {"_id": 1}):
        raise HTTPException(status_code=400, detail=f"Blood unit {unit_id} already exists")

    unit = BloodUnit(
        **data.model_dump(exclude={"unit_id"}),
        unit_id=unit_id,
        status=UnitStatus.QUARANTINED,
        status_history=[
            StatusHistoryEntry(status=UnitStatus.QUARANTINED, timestamp=now, updated_by=actor_name(user), notes="Unit received")
        ],
        created_at=now,
        updated_at=now,
        created_by=user.get("id"),
    )
    doc = to_document(unit.model_dump())
    await db.blood_units.insert_one(doc)
    doc.pop("_id", None)

    logger.info("Unit %s registered (%s, %s)", unit_id, doc["blood_type"], doc["component_type"])
    await AuditService.log(
        db, AuditAction.CREATE, AuditModule.BLOOD_UNITS, user,
        record_id=unit.id, record_type="blood_unit",
        new_values={"unit_id": unit_id, "blood_type": doc["blood_type"], "donor_id": doc["donor_id"]},
        description=f"Registered blood unit {unit_id}",
    )
    return doc
