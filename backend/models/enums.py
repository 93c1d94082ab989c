from enum import Enum

class UserRole(str, Enum):
    ADMIN = "admin"
    MANAGER = "manager"
    TECHNICIAN = "technician"
    STAFF = "staff"
    DONOR_COORDINATOR = "donor_coordinator"

class UserStatus(str, Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"
    PENDING = "pending"

class DonorStatus(str, Enum):
    ACTIVE = "Active"
    DEFERRED = "Deferred"
    INACTIVE = "Inactive"

class BloodType(str, Enum):
    A_POSITIVE = "A+"
    A_NEGATIVE = "A-"
    B_POSITIVE = "B+"
    B_NEGATIVE = "B-"
    AB_POSITIVE = "AB+"
    AB_NEGATIVE = "AB-"
    O_POSITIVE = "O+"
    O_NEGATIVE = "O-"

class UnitStatus(str, Enum):
    AVAILABLE = "Available"
    RESERVED = "Reserved"
    QUARANTINED = "Quarantined"
    DISCARDED = "Discarded"
    TRANSFUSED = "Transfused"
    EXPIRED = "Expired"

class ComponentType(str, Enum):
    WHOLE_BLOOD = "Whole Blood"
    PLASMA = "Plasma"
    PLATELETS = "Platelets"
    RBC = "RBC"
    CRYOPRECIPITATE = "Cryoprecipitate"

class ExpiryTier(str, Enum):
    EXPIRED = "expired"
    CRITICAL = "critical"
    WARNING = "warning"
    CAUTION = "caution"

class StorageType(str, Enum):
    REFRIGERATOR = "Refrigerator"
    FREEZER = "Freezer"
    ROOM_TEMPERATURE = "Room Temperature Storage"
    DEEP_FREEZER = "Deep Freezer"
    TRANSPORT_COOLER = "Transport Cooler"
    OTHER = "Other"

class StorageStatus(str, Enum):
    OPERATIONAL = "Operational"
    MAINTENANCE = "Maintenance"
    MALFUNCTION = "Malfunction"
    OFFLINE = "Offline"

class TemperatureStatus(str, Enum):
    NORMAL = "Normal"
    WARNING = "Warning"
    CRITICAL = "Critical"

class AlarmStatus(str, Enum):
    ACTIVE = "Active"
    ACKNOWLEDGED = "Acknowledged"
    RESOLVED = "Resolved"

class MaintenanceType(str, Enum):
    ROUTINE = "Routine"
    REPAIR = "Repair"
    CALIBRATION = "Calibration"
    INSPECTION = "Inspection"

class MaintenanceStatus(str, Enum):
    SCHEDULED = "Scheduled"
    IN_PROGRESS = "In Progress"
    COMPLETED = "Completed"
    CANCELLED = "Cancelled"

class MaintenanceResult(str, Enum):
    PASS = "Pass"
    FAIL = "Fail"
    PARTIAL = "Partial"

class ReportType(str, Enum):
    INVENTORY_SUMMARY = "inventory-summary"
    EXPIRY_ANALYSIS = "expiry-analysis"
    HISTORICAL_TRENDS = "historical-trends"
    STORAGE_CONDITIONS = "storage-conditions"
    CRITICAL_SHORTAGE = "critical-shortage"
    SUPPLY_FORECAST = "supply-forecast"

class ReportStatus(str, Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"

class TimeRange(str, Enum):
    CURRENT = "current"
    LAST_7_DAYS = "7d"
    LAST_30_DAYS = "30d"
    LAST_90_DAYS = "90d"
    LAST_YEAR = "1y"
    CUSTOM = "custom"


BLOOD_TYPES = [bt.value for bt in BloodType]
UNIT_STATUSES = [s.value for s in UnitStatus]
TERMINAL_STATUSES = [UnitStatus.TRANSFUSED.value, UnitStatus.DISCARDED.value, UnitStatus.EXPIRED.value]
