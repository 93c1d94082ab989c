from pydantic import BaseModel, Field, ConfigDict, EmailStr, PositiveInt, field_validator
from typing import Optional
from datetime import datetime, date
import uuid
from .base import utc_now
from .blood_unit import StorageLocation, normalize_location
from .enums import DonorStatus, BloodType, ComponentType

class Address(BaseModel):
    street: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    zip_code: Optional[str] = None
    country: Optional[str] = None

class EmergencyContact(BaseModel):
    name: str
    relationship: str
    phone: str

class Donor(BaseModel):
    model_config = ConfigDict(extra="ignore")
    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    donor_id: str = ""
    first_name: str
    last_name: str
    gender: str
    date_of_birth: date
    blood_type: BloodType
    email: EmailStr
    phone: str
    address: Optional[Address] = None
    emergency_contact: Optional[EmergencyContact] = None
    status: DonorStatus = DonorStatus.ACTIVE
    registration_date: datetime = Field(default_factory=utc_now)
    last_donation_date: Optional[datetime] = None
    donation_count: int = 0
    notes: Optional[str] = None
    created_at: datetime = Field(default_factory=utc_now)
    created_by: Optional[str] = None
    updated_at: datetime = Field(default_factory=utc_now)

class DonorCreate(BaseModel):
    first_name: str
    last_name: str
    gender: str
    date_of_birth: date
    blood_type: BloodType
    email: EmailStr
    phone: str
    address: Optional[Address] = None
    emergency_contact: Optional[EmergencyContact] = None
    notes: Optional[str] = None

    @field_validator("gender")
    @classmethod
    def _known_gender(cls, value):
        if value not in ("Male", "Female", "Other"):
            raise ValueError("gender must be one of Male, Female, Other")
        return value

class DonorUpdate(BaseModel):
    model_config = ConfigDict(extra="forbid")
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[EmailStr] = None
    address: Optional[Address] = None
    emergency_contact: Optional[EmergencyContact] = None
    status: Optional[DonorStatus] = None
    notes: Optional[str] = None

class DonationCreate(BaseModel):
    """Intake of a donation; produces a quarantined blood unit."""
    unit_id: Optional[str] = None
    quantity: PositiveInt = 450
    component_type: ComponentType = ComponentType.WHOLE_BLOOD
    collection_date: Optional[datetime] = None
    location: Optional[StorageLocation] = None
    notes: Optional[str] = None

    @field_validator("location", mode="before")
    @classmethod
    def _empty_location(cls, value):
        return normalize_location(value)
