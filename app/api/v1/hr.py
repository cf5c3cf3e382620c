"""
HR endpoints: supporting-document verification gate
"""
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from app.core.deps import get_db, get_notifier, require_capability_dep
from app.models.employee import Employee
from app.schemas.leave import LeaveOperationOut, LeaveRequestOut, VerifyDocumentsRequest
from app.services import leave_request_service as leave_requests
from app.services.notification_service import Notifier

router = APIRouter()


@router.post("/leave-requests/{leave_request_id}/verify-documents", response_model=LeaveOperationOut)
async def verify_documents_endpoint(
    leave_request_id: int,
    payload: VerifyDocumentsRequest,
    db: Session = Depends(get_db),
    current_user: Employee = Depends(require_capability_dep("can_verify_documents")),
    notifier: Notifier = Depends(get_notifier),
):
    """
    Record HR's verdict on supporting documents

    approved=true opens the approval chain; approved=false rejects the request
    and releases its reservation.
    """
    result = leave_requests.verify_documents(
        db=db,
        leave_request_id=leave_request_id,
        hr_actor=current_user,
        approved=payload.approved,
        notes=payload.notes,
        notifier=notifier,
    )
    return LeaveOperationOut(
        leave_request=LeaveRequestOut.model_validate(result.leave_request),
        message=result.message,
        warnings=result.warnings,
    )
