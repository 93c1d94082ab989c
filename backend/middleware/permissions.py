"""
Role and permission checks.

Each role carries a fixed set of permission flags (see models.user). The
dependencies here resolve the caller through get_current_user, so a missing or
invalid token is a 401 and a missing flag or role is a 403.
"""
import logging
from typing import Iterable

from fastapi import Depends, HTTPException, status

from models import UserRole, Permissions, permissions_for_role
from services import get_current_user

logger = logging.getLogger(__name__)

PERMISSION_FLAGS = list(Permissions.model_fields)


def user_permissions(user: dict) -> dict:
    """Stored flags for the user, falling back to the defaults of their role."""
    if user.get("permissions"):
        return user["permissions"]
    try:
        return permissions_for_role(user.get("role"))
    except ValueError:
        return Permissions().model_dump()


def has_permission(user: dict, permission: str) -> bool:
    return bool(user_permissions(user).get(permission))


class RequirePermission:
    """
    Dependency that admits users holding a permission flag.

    Usage:
        @router.post("")
        async def create(current_user: dict = Depends(ManageInventory)):
    """

    def __init__(self, permission: str):
        if permission not in PERMISSION_FLAGS:
            raise ValueError(f"Unknown permission: {permission}")
        self.permission = permission

    async def __call__(self, current_user: dict = Depends(get_current_user)) -> dict:
        if not has_permission(current_user, self.permission):
            logger.info("User %s denied: missing %s", current_user.get("id"), self.permission)
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Insufficient permissions. Required: {self.permission}",
            )
        return current_user


class RequireRole:
    """Dependency that admits users whose role is one of ``roles``."""

    def __init__(self, roles: Iterable[UserRole]):
        self.roles = {UserRole(r).value for r in roles}

    async def __call__(self, current_user: dict = Depends(get_current_user)) -> dict:
        if current_user.get("role") not in self.roles:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Insufficient role permissions.",
            )
        return current_user


require_admin = RequireRole([UserRole.ADMIN])
ManageInventory = RequirePermission("can_manage_inventory")
ManageDonors = RequirePermission("can_manage_donors")
ManageUsers = RequirePermission("can_manage_users")
GenerateReports = RequirePermission("can_generate_reports")
