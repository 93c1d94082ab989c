from pydantic import BaseModel, Field, ConfigDict, EmailStr, field_validator
from typing import Optional
from datetime import datetime
import uuid
from .base import utc_now
from .enums import UserRole, UserStatus

class Permissions(BaseModel):
    can_manage_donors: bool = False
    can_manage_recipients: bool = False
    can_manage_inventory: bool = False
    can_generate_reports: bool = False
    can_manage_users: bool = False
    can_view_sensitive_data: bool = False

ROLE_PERMISSIONS = {
    UserRole.ADMIN: Permissions(
        can_manage_donors=True, can_manage_recipients=True, can_manage_inventory=True,
        can_generate_reports=True, can_manage_users=True, can_view_sensitive_data=True,
    ),
    UserRole.MANAGER: Permissions(
        can_manage_donors=True, can_manage_recipients=True, can_manage_inventory=True,
        can_generate_reports=True, can_view_sensitive_data=True,
    ),
    UserRole.TECHNICIAN: Permissions(can_manage_inventory=True),
    UserRole.DONOR_COORDINATOR: Permissions(can_manage_donors=True, can_generate_reports=True),
    UserRole.STAFF: Permissions(),
}

def permissions_for_role(role: UserRole) -> dict:
    return ROLE_PERMISSIONS[UserRole(role)].model_dump()

class User(BaseModel):
    model_config = ConfigDict(extra="ignore")
    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    email: EmailStr
    password_hash: str
    name: str
    role: UserRole = UserRole.STAFF
    status: UserStatus = UserStatus.ACTIVE
    department: Optional[str] = None
    contact_number: Optional[str] = None
    permissions: Permissions = Field(default_factory=Permissions)
    last_login: Optional[datetime] = None
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)

    @field_validator("email")
    @classmethod
    def _lower_email(cls, value):
        return value.lower()

class UserCreate(BaseModel):
    email: EmailStr
    password: str = Field(min_length=8)
    name: str
    department: Optional[str] = None
    contact_number: Optional[str] = None

class UserUpdate(BaseModel):
    model_config = ConfigDict(extra="forbid")
    name: Optional[str] = None
    role: Optional[UserRole] = None
    status: Optional[UserStatus] = None
    department: Optional[str] = None
    contact_number: Optional[str] = None
    password: Optional[str] = Field(default=None, min_length=8)

class ProfileUpdate(BaseModel):
    model_config = ConfigDict(extra="forbid")
    name: Optional[str] = None
    contact_number: Optional[str] = None

class UserResponse(BaseModel):
    model_config = ConfigDict(extra="ignore")
    id: str
    email: str
    name: str
    role: UserRole
    status: UserStatus
    department: Optional[str] = None
    contact_number: Optional[str] = None
    permissions: Permissions

class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    user: UserResponse
