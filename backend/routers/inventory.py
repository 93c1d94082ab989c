"""
Inventory Overview API
Dashboard counts, expiry tracking and blood type distribution
"""
from fastapi import APIRouter, Depends, Query
from typing import Optional

from database import get_db
from models import BloodType, UnitStatus, utc_now
from services import get_current_user
from services import lifecycle, reporting

router = APIRouter(prefix="/inventory", tags=["Inventory"])


@router.get("/dashboard")
async def get_inventory_dashboard(db=Depends(get_db), current_user: dict = Depends(get_current_user)):
    """Counts by type and status, low stock, expiring units and temperature alerts"""
    return await reporting.dashboard_summary(db, utc_now())


@router.get("/expiry-tracking")
async def get_expiry_tracking(
    days: int = Query(30, ge=1, le=365),
    status: str = UnitStatus.AVAILABLE.value,
    blood_type: Optional[BloodType] = Query(None, alias="bloodType"),
    db=Depends(get_db),
    current_user: dict = Depends(get_current_user)
):
    status = lifecycle.validate_status(status).value
    return await reporting.expiry_tracking(
        db, utc_now(), days=days, status=status, blood_type=blood_type.value if blood_type else None
    )


@router.get("/blood-type-distribution")
async def get_blood_type_distribution(
    status: str = UnitStatus.AVAILABLE.value,
    db=Depends(get_db),
    current_user: dict = Depends(get_current_user)
):
    status = lifecycle.validate_status(status).value
    return await reporting.blood_type_distribution(db, status)
