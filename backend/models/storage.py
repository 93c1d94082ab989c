from pydantic import BaseModel, Field, ConfigDict, model_validator
from typing import Optional, List
from datetime import datetime
import uuid
from .base import utc_now
from .enums import (
    StorageType, StorageStatus, TemperatureStatus, AlarmStatus, BloodType,
    MaintenanceType, MaintenanceStatus, MaintenanceResult
)

class TemperatureRange(BaseModel):
    min: float
    max: float
    target: float
    units: str = "Celsius"

    @model_validator(mode="after")
    def _check_bounds(self):
        if self.min >= self.max:
            raise ValueError("temperature.min must be lower than temperature.max")
        if not self.min <= self.target <= self.max:
            raise ValueError("temperature.target must lie within min and max")
        return self

class StorageCapacity(BaseModel):
    total: int = Field(gt=0)
    used: int = Field(default=0, ge=0)
    units: str = "Units"

    @model_validator(mode="after")
    def _used_within_total(self):
        if self.used > self.total:
            raise ValueError("capacity.used cannot exceed capacity.total")
        return self

class CurrentTemperature(BaseModel):
    value: Optional[float] = None
    updated_at: datetime = Field(default_factory=utc_now)
    status: TemperatureStatus = TemperatureStatus.NORMAL

class StorageUnit(BaseModel):
    model_config = ConfigDict(extra="ignore")
    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    storage_unit_id: str
    name: str
    facility_id: str
    facility_name: str
    type: StorageType
    temperature: TemperatureRange
    capacity: StorageCapacity
    blood_types: List[BloodType] = []
    status: StorageStatus = StorageStatus.OPERATIONAL
    current_temperature: Optional[CurrentTemperature] = None
    notes: Optional[str] = None
    created_at: datetime = Field(default_factory=utc_now)
    created_by: Optional[str] = None
    updated_at: datetime = Field(default_factory=utc_now)
    updated_by: Optional[str] = None

class StorageUnitCreate(BaseModel):
    storage_unit_id: str
    name: str
    facility_id: str
    facility_name: str
    type: StorageType
    temperature: TemperatureRange
    capacity: StorageCapacity
    blood_types: List[BloodType] = []
    status: StorageStatus = StorageStatus.OPERATIONAL
    notes: Optional[str] = None

class StorageUnitUpdate(BaseModel):
    model_config = ConfigDict(extra="forbid")
    name: Optional[str] = None
    facility_name: Optional[str] = None
    type: Optional[StorageType] = None
    temperature: Optional[TemperatureRange] = None
    capacity: Optional[StorageCapacity] = None
    blood_types: Optional[List[BloodType]] = None
    status: Optional[StorageStatus] = None
    notes: Optional[str] = None

class StorageReading(BaseModel):
    temperature: float
    humidity: Optional[float] = None
    recorded_at: datetime = Field(default_factory=utc_now)
    recorded_by: Optional[str] = None
    status: TemperatureStatus = TemperatureStatus.NORMAL
    notes: Optional[str] = None

class StorageAlarm(BaseModel):
    alarm_type: str = "Temperature"
    severity: str = "High"
    triggered_at: datetime = Field(default_factory=utc_now)
    description: str
    status: AlarmStatus = AlarmStatus.ACTIVE
    acknowledged_by: Optional[str] = None
    acknowledged_at: Optional[datetime] = None

class TemperatureLogCreate(BaseModel):
    storage_unit_id: str = Field(alias="storageUnitId")
    facility_id: str = Field(alias="facilityId")
    temperature: float
    humidity: Optional[float] = None
    status: Optional[TemperatureStatus] = None
    notes: Optional[str] = None

    model_config = ConfigDict(populate_by_name=True)

class MaintenancePart(BaseModel):
    part_name: Optional[str] = None
    part_number: Optional[str] = None
    quantity: Optional[int] = None

class MaintenanceRecord(BaseModel):
    maintenance_type: MaintenanceType
    performed_by: str
    performed_at: datetime = Field(default_factory=utc_now)
    description: str
    parts: List[MaintenancePart] = []
    next_maintenance_date: Optional[datetime] = None
    status: MaintenanceStatus = MaintenanceStatus.COMPLETED
    result: MaintenanceResult = MaintenanceResult.PASS
    notes: str = ""
    recorded_by: Optional[str] = None

class MaintenanceCreate(BaseModel):
    storage_unit_id: str = Field(alias="storageUnitId")
    facility_id: str = Field(alias="facilityId")
    maintenance_type: MaintenanceType = Field(alias="maintenanceType")
    performed_by: str = Field(alias="performedBy", min_length=1)
    description: str = Field(min_length=1)
    parts: List[MaintenancePart] = []
    next_maintenance_date: Optional[datetime] = Field(default=None, alias="nextMaintenanceDate")
    status: MaintenanceStatus = MaintenanceStatus.COMPLETED
    result: MaintenanceResult = MaintenanceResult.PASS
    notes: Optional[str] = None

    model_config = ConfigDict(populate_by_name=True)
