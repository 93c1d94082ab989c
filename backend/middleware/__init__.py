"""
Middleware package for Blood Bank Management System.
"""
from .permissions import (
    user_permissions,
    has_permission,
    RequirePermission,
    RequireRole,
    require_admin,
    ManageInventory,
    ManageDonors,
    ManageUsers,
    GenerateReports,
)

__all__ = [
    'user_permissions',
    'has_permission',
    'RequirePermission',
    'RequireRole',
    'require_admin',
    'ManageInventory',
    'ManageDonors',
    'ManageUsers',
    'GenerateReports',
]
