from .enums import (
    UserRole, UserStatus, DonorStatus, BloodType, UnitStatus, ComponentType,
    ExpiryTier, StorageType, StorageStatus, TemperatureStatus, AlarmStatus,
    MaintenanceType, MaintenanceStatus, MaintenanceResult,
    ReportType, ReportStatus, TimeRange,
    BLOOD_TYPES, UNIT_STATUSES, TERMINAL_STATUSES
)
from .base import utc_now, as_utc, to_iso, parse_iso, to_document
from .blood_unit import (
    BloodUnit, BloodUnitCreate, BloodUnitUpdate, StorageLocation, StatusHistoryEntry,
    TemperatureReading, TransfusionRecord, StatusUpdate, BatchStatusUpdate,
    TemperatureReadingCreate, TransfusionCreate, SHELF_LIFE_DAYS
)
from .donor import Donor, DonorCreate, DonorUpdate, DonationCreate
from .storage import (
    StorageUnit, StorageUnitCreate, StorageUnitUpdate, StorageReading, StorageAlarm,
    CurrentTemperature, TemperatureLogCreate, MaintenancePart, MaintenanceRecord, MaintenanceCreate
)
from .user import (
    User, UserCreate, UserUpdate, ProfileUpdate, UserResponse, TokenResponse,
    Permissions, permissions_for_role
)
from .report import Report, ReportRequest, REPORT_TITLES, REPORT_DESCRIPTIONS
from .audit import AuditLog, AuditAction, AuditModule
