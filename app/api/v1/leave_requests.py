"""
Leave request endpoints
"""
from typing import Optional
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from app.core.deps import get_db, get_current_user, get_notifier
from app.models.employee import Employee
from app.models.leave import LeaveStatus
from app.schemas.leave import (
    CancelRequest,
    LeaveCreateRequest,
    LeaveDocumentOut,
    LeaveListResponse,
    LeaveOperationOut,
    LeaveRequestOut,
    SignatureRequirementOut,
    SignatureRequirementsResponse,
)
from app.services import leave_request_service as leave_requests
from app.services.document_service import build_document_payload
from app.services.notification_service import Notifier
from app.services.signature_service import signature_requirements

router = APIRouter()


def _operation_out(result: leave_requests.LeaveOperationResult) -> LeaveOperationOut:
    return LeaveOperationOut(
        leave_request=LeaveRequestOut.model_validate(result.leave_request),
        message=result.message,
        warnings=result.warnings,
    )


@router.post("", response_model=LeaveOperationOut, status_code=201)
async def create_leave_request_endpoint(
    payload: LeaveCreateRequest,
    db: Session = Depends(get_db),
    current_user: Employee = Depends(get_current_user),
    notifier: Notifier = Depends(get_notifier),
):
    """
    Raise a leave request for the calling employee (creates PENDING request)

    Validations:
    - Date order (from_date <= to_date), same calendar year
    - Selected dates inside the range; only working days are counted
    - No overlap with PENDING/APPROVED requests
    - Enough available balance (reserved immediately)
    """
    result = leave_requests.create_leave_request(
        db=db,
        requester=current_user,
        leave_type_id=payload.leave_type_id,
        from_date=payload.from_date,
        to_date=payload.to_date,
        selected_dates=payload.selected_dates,
        reason=payload.reason,
        selected_peer_id=payload.selected_peer_id,
        employee_signature=payload.employee_signature,
        notifier=notifier,
    )
    return _operation_out(result)


@router.get("/my", response_model=LeaveListResponse)
async def list_my_leave_requests_endpoint(
    status: Optional[LeaveStatus] = Query(None, description="Filter by status"),
    db: Session = Depends(get_db),
    current_user: Employee = Depends(get_current_user),
):
    """List the calling employee's leave requests, newest first."""
    items = leave_requests.list_my_requests(db, current_user.id, status)
    return LeaveListResponse(
        items=[LeaveRequestOut.model_validate(req) for req in items],
        total=len(items),
    )


@router.get("/{leave_request_id}", response_model=LeaveRequestOut)
async def get_leave_request_endpoint(
    leave_request_id: int,
    db: Session = Depends(get_db),
    current_user: Employee = Depends(get_current_user),
):
    """Visible to the requester, anyone on the approval chain, and HR/ADMIN."""
    return leave_requests.get_leave_request(db, leave_request_id, current_user)


@router.post("/{leave_request_id}/cancel", response_model=LeaveOperationOut)
async def cancel_leave_request_endpoint(
    leave_request_id: int,
    payload: Optional[CancelRequest] = None,
    db: Session = Depends(get_db),
    current_user: Employee = Depends(get_current_user),
    notifier: Notifier = Depends(get_notifier),
):
    """
    Cancel your own request

    PENDING requests can always be cancelled; APPROVED ones only before the
    leave starts. Cancelling twice returns the cancelled request unchanged.
    """
    result = leave_requests.cancel_leave_request(
        db=db,
        leave_request_id=leave_request_id,
        actor=current_user,
        reason=payload.reason if payload else None,
        administrative=False,
        notifier=notifier,
    )
    return _operation_out(result)


@router.get("/{leave_request_id}/signature-requirements", response_model=SignatureRequirementsResponse)
async def signature_requirements_endpoint(
    leave_request_id: int,
    db: Session = Depends(get_db),
    current_user: Employee = Depends(get_current_user),
):
    """Resolved signature slots for the leave document."""
    leave_request = leave_requests.get_leave_request(db, leave_request_id, current_user)
    return SignatureRequirementsResponse(
        leave_request_id=leave_request.id,
        items=[SignatureRequirementOut.model_validate(req) for req in signature_requirements(db, leave_request)],
    )


@router.get("/{leave_request_id}/document", response_model=LeaveDocumentOut)
async def leave_document_endpoint(
    leave_request_id: int,
    db: Session = Depends(get_db),
    current_user: Employee = Depends(get_current_user),
):
    """Field values and signatures for rendering the leave form."""
    leave_request = leave_requests.get_leave_request(db, leave_request_id, current_user)
    payload = build_document_payload(db, leave_request)
    payload["signature_requirements"] = [
        SignatureRequirementOut.model_validate(req) for req in payload["signature_requirements"]
    ]
    return LeaveDocumentOut(**payload)
