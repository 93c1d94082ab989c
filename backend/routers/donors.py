"""
Donor Management API
Donor registry and donation intake
"""
from fastapi import APIRouter, HTTPException, Depends, Query
from typing import Optional
import logging
import math
import re

from database import get_db
from models import (
    Donor, DonorCreate, DonorUpdate, DonationCreate, BloodUnitCreate,
    BloodType, DonorStatus, BLOOD_TYPES, utc_now, to_iso, to_document
)
from models.audit import AuditModule
from services import get_current_user, generate_donor_id
from services.audit_service import audit_create, audit_update, audit_delete
from services import lifecycle, reporting
from services.eligibility import donation_eligibility
from middleware import ManageDonors, require_admin

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/donors", tags=["Donors"])


async def find_donor(db, donor_ref: str) -> dict:
    donor = await db.donors.find_one({"$or": [{"id": donor_ref}, {"donor_id": donor_ref}]}, {"_id": 0})
    if not donor:
        raise HTTPException(status_code=404, detail="Donor not found")
    return donor


@router.get("")
async def list_donors(
    search: Optional[str] = None,
    blood_type: Optional[BloodType] = Query(None, alias="bloodType"),
    status: Optional[DonorStatus] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    db=Depends(get_db),
    current_user: dict = Depends(get_current_user)
):
    query = {}
    if search:
        pattern = {"$regex": re.escape(search), "$options": "i"}
        query["$or"] = [
            {"first_name": pattern},
            {"last_name": pattern},
            {"email": pattern},
            {"donor_id": pattern},
        ]
    if blood_type:
        query["blood_type"] = blood_type.value
    if status:
        query["status"] = status.value

    total = await db.donors.count_documents(query)
    donors = await db.donors.find(query, {"_id": 0}).sort(
        [("last_name", 1), ("first_name", 1)]
    ).skip((page - 1) * limit).limit(limit).to_list(limit)

    return {
        "donors": donors,
        "pagination": {"total": total, "page": page, "limit": limit, "pages": math.ceil(total / limit) if total else 0},
    }


@router.post("")
async def create_donor(data: DonorCreate, db=Depends(get_db), current_user: dict = Depends(ManageDonors)):
    email = data.email.lower()
    if await db.donors.find_one({"email": email}, {"_id": 1}):
        raise HTTPException(status_code=400, detail="A donor with this email already exists")

    donor = Donor(
        **data.model_dump(exclude={"email"}),
        email=email,
        donor_id=await generate_donor_id(db),
        created_by=current_user.get("id"),
    )
    doc = to_document(donor.model_dump())
    await db.donors.insert_one(doc)
    doc.pop("_id", None)

    logger.info("Donor %s registered", donor.donor_id)
    await audit_create(db, AuditModule.DONORS, current_user, donor.id, "donor", {"donor_id": donor.donor_id})
    return doc


@router.get("/stats")
async def get_donor_stats(db=Depends(get_db), current_user: dict = Depends(get_current_user)):
    by_blood_type = await db.donors.aggregate(reporting.group_count_pipeline("blood_type")).to_list(None)
    by_status = await db.donors.aggregate(reporting.group_count_pipeline("status")).to_list(None)
    return {
        "total_donors": await db.donors.count_documents({}),
        "by_blood_type": reporting.counts_to_mapping(by_blood_type, BLOOD_TYPES),
        "by_status": reporting.counts_to_mapping(by_status, [s.value for s in DonorStatus]),
        "repeat_donors": await db.donors.count_documents({"donation_count": {"$gt": 1}}),
    }


@router.get("/{donor_ref}")
async def get_donor(donor_ref: str, db=Depends(get_db), current_user: dict = Depends(get_current_user)):
    return await find_donor(db, donor_ref)


@router.put("/{donor_ref}")
async def update_donor(
    donor_ref: str,
    data: DonorUpdate,
    db=Depends(get_db),
    current_user: dict = Depends(ManageDonors)
):
    donor = await find_donor(db, donor_ref)
    updates = to_document(data.model_dump(exclude_unset=True))
    if not updates:
        raise HTTPException(status_code=400, detail="No fields to update")

    if "email" in updates:
        updates["email"] = updates["email"].lower()
        clash = await db.donors.find_one({"email": updates["email"], "id": {"$ne": donor["id"]}}, {"_id": 1})
        if clash:
            raise HTTPException(status_code=400, detail="A donor with this email already exists")

    updates["updated_at"] = to_iso(utc_now())
    await db.donors.update_one({"id": donor["id"]}, {"$set": updates})
    await audit_update(
        db, AuditModule.DONORS, current_user, donor["id"], "donor",
        old_values={k: donor.get(k) for k in updates if k != "updated_at"},
        new_values=updates,
    )
    return await find_donor(db, donor["id"])


@router.delete("/{donor_ref}")
async def delete_donor(donor_ref: str, db=Depends(get_db), current_user: dict = Depends(require_admin)):
    donor = await find_donor(db, donor_ref)
    await db.donors.delete_one({"id": donor["id"]})
    await audit_delete(db, AuditModule.DONORS, current_user, donor["id"], "donor", {"donor_id": donor["donor_id"]})
    return {"status": "success", "message": f"Donor {donor['donor_id']} deleted"}


@router.get("/{donor_ref}/eligibility")
async def get_donor_eligibility(donor_ref: str, db=Depends(get_db), current_user: dict = Depends(get_current_user)):
    donor = await find_donor(db, donor_ref)
    return donation_eligibility(donor, utc_now())


@router.get("/{donor_ref}/donations")
async def get_donor_donations(donor_ref: str, db=Depends(get_db), current_user: dict = Depends(get_current_user)):
    donor = await find_donor(db, donor_ref)
    units = await db.blood_units.find({"donor_id": donor["id"]}, {"_id": 0}).sort("collection_date", -1).to_list(None)
    return {"donor_id": donor["donor_id"], "donation_count": donor.get("donation_count", 0), "donations": units}


@router.post("/{donor_ref}/donations")
async def record_donation(
    donor_ref: str,
    data: DonationCreate,
    db=Depends(get_db),
    current_user: dict = Depends(ManageDonors)
):
    """Record a donation; the collected unit enters inventory as Quarantined"""
    donor = await find_donor(db, donor_ref)
    eligibility = donation_eligibility(donor, utc_now())
    if not eligibility["is_eligible"]:
        logger.info("Donation refused for donor %s: %s", donor["donor_id"], eligibility["reason"])
        raise HTTPException(
            status_code=409,
            detail={"message": eligibility["reason"], "next_eligible_date": eligibility["next_eligible_date"]},
        )

    unit = await lifecycle.register_unit(
        db,
        BloodUnitCreate(
            unit_id=data.unit_id,
            donor_id=donor["id"],
            blood_type=donor["blood_type"],
            component_type=data.component_type,
            collection_date=data.collection_date,
            quantity=data.quantity,
            location=data.location,
            notes=data.notes,
        ),
        current_user,
    )

    await db.donors.update_one(
        {"id": donor["id"]},
        {
            "$inc": {"donation_count": 1},
            "$set": {"last_donation_date": unit["collection_date"], "updated_at": to_iso(utc_now())},
        }
    )
    logger.info("Donation %s recorded for donor %s", unit["unit_id"], donor["donor_id"])
    return unit
