from fastapi import APIRouter, Depends
from datetime import timedelta

from database import get_db
from models import UnitStatus, DonorStatus, utc_now, to_iso
from services import get_current_user
from services import reporting

router = APIRouter(tags=["Dashboard & Utilities"])


@router.get("/dashboard/stats")
async def get_dashboard_stats(db=Depends(get_db), current_user: dict = Depends(get_current_user)):
    now = utc_now()
    today = now.replace(hour=0, minute=0, second=0, microsecond=0)

    todays_donations = await db.blood_units.count_documents({
        "donor_id": {"$ne": None},
        "collection_date": {"$gte": to_iso(today)}
    })

    total_donors = await db.donors.count_documents({})
    active_donors = await db.donors.count_documents({"status": DonorStatus.ACTIVE.value})

    available_units = await db.blood_units.count_documents({"status": UnitStatus.AVAILABLE.value})

    quarantine_count = await db.blood_units.count_documents({"status": UnitStatus.QUARANTINED.value})

    expiring_count = await db.blood_units.count_documents({
        "status": UnitStatus.AVAILABLE.value,
        **reporting.expiring_between(now, now + timedelta(days=7))
    })

    by_group = await db.blood_units.aggregate(
        reporting.group_count_pipeline("blood_type", {"status": UnitStatus.AVAILABLE.value})
    ).to_list(None)

    return {
        "todays_donations": todays_donations,
        "total_donors": total_donors,
        "active_donors": active_donors,
        "available_units": available_units,
        "expiring_within_7_days": expiring_count,
        "in_quarantine": quarantine_count,
        "inventory_by_blood_type": {item["_id"]: item["count"] for item in by_group if item["_id"]},
    }


@router.get("/")
async def root():
    return {"status": "healthy", "service": "Blood Bank Management System API"}
