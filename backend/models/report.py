from pydantic import BaseModel, Field, ConfigDict
from typing import Optional, List
from datetime import datetime
import uuid
from .base import utc_now
from .enums import ReportType, ReportStatus, TimeRange

REPORT_TITLES = {
    ReportType.INVENTORY_SUMMARY: "Inventory Summary",
    ReportType.EXPIRY_ANALYSIS: "Blood Expiry Analysis",
    ReportType.HISTORICAL_TRENDS: "Inventory Trends Analysis",
    ReportType.STORAGE_CONDITIONS: "Storage Conditions Report",
    ReportType.CRITICAL_SHORTAGE: "Critical Shortage Analysis",
    ReportType.SUPPLY_FORECAST: "Days of Supply Forecast",
}

REPORT_DESCRIPTIONS = {
    ReportType.INVENTORY_SUMMARY: "Overview of current blood inventory levels, including all blood types and their availability.",
    ReportType.EXPIRY_ANALYSIS: "Analysis of blood units expiring in the near future, grouped by expiry window and blood type.",
    ReportType.HISTORICAL_TRENDS: "Collections, transfusions and wastage over the selected time period.",
    ReportType.STORAGE_CONDITIONS: "Temperature readings and alarms per storage unit over the selected time period.",
    ReportType.CRITICAL_SHORTAGE: "Blood types currently in critical shortage or below target levels.",
    ReportType.SUPPLY_FORECAST: "Estimated days of supply per blood type from the trailing 30-day transfusion rate.",
}

class Report(BaseModel):
    model_config = ConfigDict(extra="ignore")
    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    report_id: str
    title: str
    type: ReportType
    time_range: TimeRange
    parameters: dict = {}
    description: str = ""
    status: ReportStatus = ReportStatus.PENDING
    error: Optional[str] = None
    data: Optional[dict] = None
    created_by: Optional[str] = None
    created_at: datetime = Field(default_factory=utc_now)
    completed_at: Optional[datetime] = None

class ReportRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)
    report_type: ReportType = Field(alias="reportType")
    time_range: TimeRange = Field(alias="timeRange")
    blood_types: List[str] = Field(default=["all"], alias="bloodTypes")
    start_date: Optional[datetime] = Field(default=None, alias="startDate")
    title: Optional[str] = None
