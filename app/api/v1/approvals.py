"""
Approval endpoints
"""
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from app.core.deps import get_db, get_current_user, get_notifier
from app.models.employee import Employee
from app.schemas.leave import (
    ApprovalDecisionRequest,
    ApprovalLevelOut,
    DecisionAction,
    LeaveOperationOut,
    LeaveRequestOut,
    PendingApprovalItem,
    PendingApprovalResponse,
)
from app.services import leave_request_service as leave_requests
from app.services.notification_service import Notifier

router = APIRouter()


@router.get("/pending", response_model=PendingApprovalResponse)
async def list_pending_approvals_endpoint(
    db: Session = Depends(get_db),
    current_user: Employee = Depends(get_current_user),
):
    """
    Approval levels waiting on the calling employee

    Only active levels are listed: earlier ordinals decided, HR document gate
    passed, and not handed over through escalation.
    """
    levels = leave_requests.list_pending_for_approver(db, current_user.id)
    return PendingApprovalResponse(
        items=[
            PendingApprovalItem(
                level=ApprovalLevelOut.model_validate(lvl),
                leave_request=LeaveRequestOut.model_validate(lvl.leave_request),
            )
            for lvl in levels
        ],
        total=len(levels),
    )


@router.post("/{level_id}/decision", response_model=LeaveOperationOut)
async def decide_approval_endpoint(
    level_id: int,
    payload: ApprovalDecisionRequest,
    db: Session = Depends(get_db),
    current_user: Employee = Depends(get_current_user),
    notifier: Notifier = Depends(get_notifier),
):
    """
    Approve or reject one approval level

    On approval:
    - The captured signature is attached to the leave document
    - When every level is approved, reserved days move to used and the request is APPROVED

    On rejection:
    - The request is REJECTED and remaining pending levels are closed
    - Reserved days are released

    Repeating the same decision is a no-op; a different decision on a decided level is 409.
    """
    result = leave_requests.decide_approval(
        db=db,
        level_id=level_id,
        approver=current_user,
        approve=payload.action == DecisionAction.APPROVE,
        comments=payload.comments,
        signature_data=payload.signature_data,
        notifier=notifier,
    )
    return LeaveOperationOut(
        leave_request=LeaveRequestOut.model_validate(result.leave_request),
        message=result.message,
        warnings=result.warnings,
    )
