"""
Audit Log Models
Audit trail for writes to donors, blood units, storage and users.
"""
from pydantic import BaseModel, Field
from datetime import datetime
from typing import Optional
from enum import Enum
import uuid
from .base import utc_now


class AuditAction(str, Enum):
    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"

    LOGIN = "login"
    LOGIN_FAILED = "login_failed"
    REGISTER = "register"

    STATUS_CHANGE = "status_change"
    BATCH_STATUS_CHANGE = "batch_status_change"
    TRANSFUSE = "transfuse"
    TEMPERATURE_READING = "temperature_reading"
    ALARM_ACKNOWLEDGED = "alarm_acknowledged"
    MAINTENANCE = "maintenance"

    GENERATE_REPORT = "generate_report"


class AuditModule(str, Enum):
    AUTH = "auth"
    USERS = "users"
    DONORS = "donors"
    BLOOD_UNITS = "blood_units"
    STORAGE = "storage"
    REPORTS = "reports"


class AuditLog(BaseModel):
    """Audit log entry for a single action."""
    id: str = Field(default_factory=lambda: str(uuid.uuid4()))

    user_id: Optional[str] = None
    user_name: Optional[str] = None
    user_email: Optional[str] = None
    user_role: Optional[str] = None

    action: AuditAction
    module: AuditModule
    record_id: Optional[str] = None
    record_type: Optional[str] = None  # e.g., "donor", "blood_unit"
    description: Optional[str] = None

    old_values: Optional[dict] = None
    new_values: Optional[dict] = None

    ip_address: Optional[str] = None
    user_agent: Optional[str] = None
    request_method: Optional[str] = None
    request_path: Optional[str] = None

    timestamp: datetime = Field(default_factory=utc_now)
    metadata: Optional[dict] = None
