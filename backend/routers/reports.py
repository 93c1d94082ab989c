from fastapi import APIRouter, HTTPException, Depends, Query
from typing import Optional
import logging
import math

from database import get_db
from models import (
    Report, ReportRequest, ReportType, ReportStatus, REPORT_TITLES, REPORT_DESCRIPTIONS,
    utc_now, to_iso, to_document
)
from models.audit import AuditAction, AuditModule
from services import get_current_user, generate_report_id
from services.audit_service import AuditService
from services import reporting
from middleware import GenerateReports

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/inventory/reports", tags=["Reports"])


@router.post("/generate")
async def generate_report(
    data: ReportRequest,
    db=Depends(get_db),
    current_user: dict = Depends(GenerateReports)
):
    now = utc_now()
    # Reject bad filters before anything is stored
    reporting.blood_type_filter(data.blood_types)
    reporting.resolve_time_range(data.time_range, now, data.start_date)

    report = Report(
        report_id=await generate_report_id(db, data.report_type.value),
        title=data.title or REPORT_TITLES[data.report_type],
        type=data.report_type,
        time_range=data.time_range,
        parameters={
            "blood_types": data.blood_types,
            "start_date": to_iso(data.start_date) if data.start_date else None,
        },
        description=REPORT_DESCRIPTIONS[data.report_type],
        created_by=current_user.get("id"),
        created_at=now,
    )
    doc = to_document(report.model_dump())
    await db.reports.insert_one(doc)

    try:
        report_data = await reporting.generate_report_data(
            db, data.report_type, data.time_range, data.blood_types, now, data.start_date
        )
    except Exception as e:
        logger.exception("Report %s failed", report.report_id)
        await db.reports.update_one(
            {"report_id": report.report_id},
            {"$set": {"status": ReportStatus.FAILED.value, "error": str(e)}}
        )
        raise HTTPException(status_code=500, detail=f"Failed to generate report {report.report_id}")

    updates = {
        "status": ReportStatus.COMPLETED.value,
        "data": report_data,
        "completed_at": to_iso(utc_now()),
    }
    await db.reports.update_one({"report_id": report.report_id}, {"$set": updates})

    await AuditService.log(
        db, AuditAction.GENERATE_REPORT, AuditModule.REPORTS, current_user,
        record_id=report.report_id, record_type="report",
        metadata={"type": data.report_type.value, "time_range": data.time_range.value},
    )

    doc.pop("_id", None)
    doc.update(updates)
    return doc


@router.get("")
async def list_reports(
    report_type: Optional[ReportType] = Query(None, alias="type"),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    db=Depends(get_db),
    current_user: dict = Depends(get_current_user)
):
    """Report headers without their data, newest first"""
    query = {}
    if report_type:
        query["type"] = report_type.value

    total = await db.reports.count_documents(query)
    reports = await db.reports.find(query, {"_id": 0, "data": 0}).sort(
        "created_at", -1
    ).skip((page - 1) * limit).limit(limit).to_list(limit)

    return {
        "reports": reports,
        "pagination": {"total": total, "page": page, "limit": limit, "pages": math.ceil(total / limit) if total else 0},
    }


@router.get("/{report_id}")
async def get_report(report_id: str, db=Depends(get_db), current_user: dict = Depends(get_current_user)):
    report = await db.reports.find_one({"$or": [{"id": report_id}, {"report_id": report_id}]}, {"_id": 0})
    if not report:
        raise HTTPException(status_code=404, detail="Report not found")
    return report
