"""
Admin leave request actions.
"""
from typing import Optional
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.core.deps import get_db, get_notifier, require_capability_dep
from app.models.employee import Employee
from app.schemas.leave import CancelRequest, LeaveOperationOut, LeaveRequestOut
from app.services import leave_request_service as leave_requests
from app.services.notification_service import Notifier

router = APIRouter()


@router.post("/{leave_request_id}/cancel", response_model=LeaveOperationOut)
async def admin_cancel_leave_request(
    leave_request_id: int,
    payload: Optional[CancelRequest] = None,
    db: Session = Depends(get_db),
    current_user: Employee = Depends(require_capability_dep("can_admin_cancel")),
    notifier: Notifier = Depends(get_notifier),
):
    """
    Cancel any employee's request (HR/ADMIN).

    Same rules as self-cancel: PENDING, or APPROVED before the start date.
    """
    result = leave_requests.cancel_leave_request(
        db=db,
        leave_request_id=leave_request_id,
        actor=current_user,
        reason=payload.reason if payload else None,
        administrative=True,
        notifier=notifier,
    )
    return LeaveOperationOut(
        leave_request=LeaveRequestOut.model_validate(result.leave_request),
        message=result.message,
        warnings=result.warnings,
    )
