"""
Audit logging service
"""
from sqlalchemy.orm import Session
from app.models.audit_log import AuditLog
from app.utils.datetime_utils import now_utc
from app.utils.json_serializer import sanitize_for_json
from typing import Optional, Dict, Any


def log_audit(
    db: Session,
    actor_id: Optional[int],
    action: str,
    entity_type: str,
    entity_id: Optional[int] = None,
    meta: Optional[Dict[str, Any]] = None
) -> AuditLog:
    """
    Append an audit log entry to the current unit of work

    The entry is flushed but not committed, so it lands (or rolls back)
    together with the state change it describes.

    Args:
        db: Database session
        actor_id: ID of the user performing the action; None for SYSTEM actions
        action: Action type (e.g., "BALANCE_RESERVE", "LEAVE_REQUEST_CANCELLED")
        entity_type: Type of entity (e.g., "leave_requests", "leave_balances")
        entity_id: ID of the affected entity (optional)
        meta: before/after values and context (optional)

    Returns:
        Created AuditLog instance
    """
    audit_log = AuditLog(
        actor_id=actor_id,
        action=action,
        entity_type=entity_type,
        entity_id=entity_id,
        meta_json=sanitize_for_json(meta) if meta is not None else None,
        created_at=now_utc()
    )
    db.add(audit_log)
    db.flush()
    return audit_log
