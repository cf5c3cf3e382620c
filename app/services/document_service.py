"""
Leave document payload and signature repair
"""
import logging
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from app.models.document import DocumentStatus
from app.models.leave import LeaveRequest, LeaveStatus
from app.services import signature_service
from app.services.audit_service import log_audit

logger = logging.getLogger(__name__)


def build_document_payload(db: Session, leave_request: LeaveRequest) -> Dict[str, Any]:
    """Field values and signature slots a renderer needs to produce the leave form."""
    employee = leave_request.employee
    document = leave_request.document
    requirements = signature_service.signature_requirements(db, leave_request)
    return {
        "leave_request_id": leave_request.id,
        "request_number": leave_request.request_number,
        "employee_id": employee.id,
        "employee_name": employee.name,
        "employee_code": employee.emp_code,
        "department": employee.department.name if employee.department else None,
        "leave_type": leave_request.leave_type.name,
        "leave_type_code": leave_request.leave_type.code,
        "from_date": leave_request.from_date,
        "to_date": leave_request.to_date,
        "selected_dates": leave_request.selected_dates,
        "total_days": leave_request.total_days,
        "reason": leave_request.reason,
        "status": leave_request.status,
        "document_status": document.status if document else DocumentStatus.DRAFT,
        "signature_requirements": requirements,
        "signatures": [
            {
                "role": sig.signer_role,
                "signer_id": sig.signer_id,
                "signature_data": sig.signature_data,
                "signed_at": sig.signed_at,
            }
            for sig in (document.signatures if document else [])
        ],
    }


def regenerate_documents(
    db: Session,
    actor_id: Optional[int] = None,
    leave_request_ids: Optional[List[int]] = None,
) -> Dict[str, Any]:
    """
    Re-run signature backfill for APPROVED requests (all, or the given ids).

    Each request commits on its own so one broken document does not block the rest.
    """
    query = db.query(LeaveRequest.id).filter(LeaveRequest.status == LeaveStatus.APPROVED)
    if leave_request_ids:
        query = query.filter(LeaveRequest.id.in_(leave_request_ids))
    ids = [row[0] for row in query.order_by(LeaveRequest.id).all()]

    result = {"processed": 0, "signatures_added": 0, "completed": 0, "failed": [], "warnings": []}
    for leave_request_id in ids:
        try:
            leave_request = db.query(LeaveRequest).filter(LeaveRequest.id == leave_request_id).first()
            added = signature_service.backfill_signatures(db, leave_request, actor_id=actor_id)
            completed = signature_service.refresh_document_status(db, leave_request)
            db.commit()
        except Exception as exc:
            db.rollback()
            logger.error("document regeneration failed: leave_request_id=%s error=%s", leave_request_id, exc)
            result["failed"].append(leave_request_id)
            result["warnings"].append(f"Document for leave request {leave_request_id} could not be regenerated")
            continue
        result["processed"] += 1
        result["signatures_added"] += added
        result["completed"] += int(completed)

    log_audit(
        db,
        actor_id=actor_id,
        action="DOCUMENTS_REGENERATED",
        entity_type="generated_documents",
        meta={
            "requested_ids": leave_request_ids,
            "processed": result["processed"],
            "signatures_added": result["signatures_added"],
            "failed": result["failed"],
        },
    )
    db.commit()
    logger.info(
        "documents regenerated: processed=%s signatures_added=%s failed=%s",
        result["processed"], result["signatures_added"], len(result["failed"]),
    )
    return result
