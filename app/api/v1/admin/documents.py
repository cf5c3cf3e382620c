"""
Admin document maintenance.
"""
from typing import Optional
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.core.deps import get_db, require_capability_dep
from app.models.employee import Employee
from app.schemas.leave import RegenerateDocumentsRequest, RegenerateDocumentsResponse
from app.services.document_service import regenerate_documents

router = APIRouter()


@router.post("/regenerate", response_model=RegenerateDocumentsResponse)
async def admin_regenerate_documents(
    payload: Optional[RegenerateDocumentsRequest] = None,
    db: Session = Depends(get_db),
    current_user: Employee = Depends(require_capability_dep("can_manage_balances")),
):
    """
    Re-attach historical approval signatures missing from APPROVED requests'
    documents and mark complete documents COMPLETED.
    """
    return regenerate_documents(
        db,
        actor_id=current_user.id,
        leave_request_ids=payload.leave_request_ids if payload else None,
    )
