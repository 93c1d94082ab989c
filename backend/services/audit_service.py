"""
Audit trail for blood bank writes.

Every status change, intake, storage event and account action lands in
``audit_logs`` with the acting user and the values it touched. Credentials
never reach the trail: password and token fields are replaced before insert.
"""
import logging
from typing import Any, Optional
from fastapi import Request

from models import to_document
from models.audit import AuditLog, AuditAction, AuditModule

logger = logging.getLogger(__name__)

REDACTED = "[REDACTED]"


def redact(values: Any) -> Any:
    """Mask credential fields at any depth, including inside lists."""
    if isinstance(values, dict):
        return {
            key: REDACTED if key.lower() in AuditService.SENSITIVE_FIELDS else redact(value)
            for key, value in values.items()
        }
    if isinstance(values, list):
        return [redact(value) for value in values]
    return values


class AuditService:
    SENSITIVE_FIELDS = {"password", "password_hash", "access_token", "token", "secret_key"}

    @staticmethod
    async def log(
        db,
        action: AuditAction,
        module: AuditModule,
        user: Optional[dict] = None,
        record_id: Optional[str] = None,
        record_type: Optional[str] = None,
        description: Optional[str] = None,
        old_values: Optional[dict] = None,
        new_values: Optional[dict] = None,
        request: Optional[Request] = None,
        metadata: Optional[dict] = None
    ) -> str:
        """
        Insert one audit entry and return its id.

        ``user`` is the acting user document; it is ``None`` for failed logins
        where no account matched. ``request`` is only passed by the auth routes,
        which record the caller's address and path.
        """
        actor = user or {}
        audit_log = AuditLog(
            user_id=actor.get("id"),
            user_name=actor.get("name"),
            user_email=actor.get("email"),
            user_role=actor.get("role"),
            action=action,
            module=module,
            record_id=record_id,
            record_type=record_type,
            description=description,
            old_values=to_document(redact(old_values)) if old_values else None,
            new_values=to_document(redact(new_values)) if new_values else None,
            metadata=metadata,
            **request_details(request),
        )

        await db.audit_logs.insert_one(to_document(audit_log.model_dump()))
        logger.debug("audit %s %s %s by %s", module.value, action.value, record_id, audit_log.user_email)
        return audit_log.id


def request_details(request: Optional[Request]) -> dict:
    if request is None:
        return {}
    return {
        "ip_address": request.client.host if request.client else None,
        "user_agent": request.headers.get("user-agent", "")[:500],
        "request_method": request.method,
        "request_path": request.url.path,
    }


async def audit_create(db, module: AuditModule, user: dict, record_id: str, record_type: str, new_values: dict, **kwargs):
    return await AuditService.log(
        db, AuditAction.CREATE, module, user,
        record_id=record_id, record_type=record_type, new_values=new_values,
        description=f"Created {record_type} {record_id}", **kwargs
    )


async def audit_update(db, module: AuditModule, user: dict, record_id: str, record_type: str, old_values: dict, new_values: dict, **kwargs):
    return await AuditService.log(
        db, AuditAction.UPDATE, module, user,
        record_id=record_id, record_type=record_type, old_values=old_values, new_values=new_values,
        description=f"Updated {record_type} {record_id}", **kwargs
    )


async def audit_delete(db, module: AuditModule, user: dict, record_id: str, record_type: str, old_values: dict = None, **kwargs):
    return await AuditService.log(
        db, AuditAction.DELETE, module, user,
        record_id=record_id, record_type=record_type, old_values=old_values,
        description=f"Deleted {record_type} {record_id}", **kwargs
    )
