from pydantic import BaseModel, Field, ConfigDict, PositiveInt, field_validator, model_validator
from typing import List, Optional
from datetime import datetime, timedelta
import uuid
from .base import utc_now, as_utc
from .enums import BloodType, UnitStatus, ComponentType

# Whole blood shelf life between collection and expiration
SHELF_LIFE_DAYS = 42


class StorageLocation(BaseModel):
    model_config = ConfigDict(extra="ignore")
    facility: Optional[str] = None
    storage_unit: Optional[str] = None
    shelf: Optional[str] = None
    position: Optional[str] = None

    def label(self) -> str:
        parts = [self.facility, self.storage_unit, self.shelf, self.position]
        return " / ".join(p for p in parts if p)


def normalize_location(value):
    """An absent or all-empty location is stored as None."""
    if value is None:
        return None
    if isinstance(value, StorageLocation):
        value = value.model_dump()
    if isinstance(value, dict) and not any(value.get(k) for k in StorageLocation.model_fields):
        return None
    return value


class StatusHistoryEntry(BaseModel):
    status: UnitStatus
    timestamp: datetime = Field(default_factory=utc_now)
    updated_by: Optional[str] = None
    notes: str = ""


class TemperatureReading(BaseModel):
    temperature: float
    recorded_at: datetime = Field(default_factory=utc_now)
    recorded_by: Optional[str] = None
    notes: Optional[str] = None


class TransfusionRecord(BaseModel):
    recipient_id: str
    transfusion_date: datetime = Field(default_factory=utc_now)
    hospital: Optional[str] = None
    physician: Optional[str] = None
    notes: Optional[str] = None


class BloodUnit(BaseModel):
    model_config = ConfigDict(extra="ignore")
    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    unit_id: str = ""
    donor_id: Optional[str] = None
    blood_type: BloodType
    component_type: ComponentType = ComponentType.WHOLE_BLOOD
    collection_date: datetime = Field(default_factory=utc_now)
    expiration_date: datetime
    original_expiration_date: Optional[datetime] = None
    quantity: PositiveInt
    status: UnitStatus = UnitStatus.QUARANTINED
    location: Optional[StorageLocation] = None
    status_history: List[StatusHistoryEntry] = []
    temperature_history: List[TemperatureReading] = []
    transfusion_record: Optional[TransfusionRecord] = None
    notes: Optional[str] = None
    created_at: datetime = Field(default_factory=utc_now)
    created_by: Optional[str] = None
    updated_at: datetime = Field(default_factory=utc_now)

    @field_validator("location", mode="before")
    @classmethod
    def _empty_location(cls, value):
        return normalize_location(value)


class BloodUnitCreate(BaseModel):
    unit_id: Optional[str] = None
    donor_id: Optional[str] = None
    blood_type: BloodType
    component_type: ComponentType = ComponentType.WHOLE_BLOOD
    collection_date: Optional[datetime] = None
    expiration_date: Optional[datetime] = None
    quantity: PositiveInt
    location: Optional[StorageLocation] = None
    notes: Optional[str] = None

    @field_validator("location", mode="before")
    @classmethod
    def _empty_location(cls, value):
        return normalize_location(value)

    @field_validator("collection_date", "expiration_date")
    @classmethod
    def _to_utc(cls, value):
        return as_utc(value) if value is not None else None

    @model_validator(mode="after")
    def _derive_expiration(self):
        if self.collection_date is None:
            self.collection_date = utc_now()
        if self.expiration_date is None:
            self.expiration_date = self.collection_date + timedelta(days=SHELF_LIFE_DAYS)
        elif self.expiration_date <= self.collection_date:
            raise ValueError("expiration_date must be after collection_date")
        return self


class BloodUnitUpdate(BaseModel):
    """Editable fields only; quantity, status and dates have no update path."""
    model_config = ConfigDict(extra="forbid")
    location: Optional[StorageLocation] = None
    component_type: Optional[ComponentType] = None
    notes: Optional[str] = None

    @field_validator("location", mode="before")
    @classmethod
    def _empty_location(cls, value):
        return normalize_location(value)


class StatusUpdate(BaseModel):
    # Kept as a plain string so the allow-list check reports a field-level 400
    status: Optional[str] = None
    notes: Optional[str] = None


class BatchStatusUpdate(BaseModel):
    model_config = ConfigDict(populate_by_name=True)
    unit_ids: Optional[List[str]] = Field(default=None, alias="unitIds")
    status: Optional[str] = None
    notes: Optional[str] = None


class TemperatureReadingCreate(BaseModel):
    temperature: float
    notes: Optional[str] = None


class TransfusionCreate(BaseModel):
    recipient_id: str
    transfusion_date: Optional[datetime] = None
    hospital: Optional[str] = None
    physician: Optional[str] = None
    notes: Optional[str] = None
