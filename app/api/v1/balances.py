"""
Leave balance endpoints
"""
from typing import List, Optional
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from app.core.deps import get_db, get_current_user
from app.models.employee import Employee
from app.models.leave import LeaveBalance
from app.schemas.balance import BalanceListResponse, LeaveBalanceOut
from app.services import balance_ledger_service as ledger
from app.utils.datetime_utils import now_utc

router = APIRouter()


def balance_items(balances: List[LeaveBalance]) -> List[LeaveBalanceOut]:
    items = []
    for bal in balances:
        item = LeaveBalanceOut.model_validate(bal)
        item.leave_type_code = bal.leave_type.code if bal.leave_type else None
        items.append(item)
    return items


@router.get("/me", response_model=BalanceListResponse)
async def my_balances_endpoint(
    year: Optional[int] = Query(None, description="Calendar year (defaults to the current year)"),
    db: Session = Depends(get_db),
    current_user: Employee = Depends(get_current_user),
):
    """Ledger rows for the calling employee."""
    year = year or now_utc().year
    balances = ledger.get_balances(db, current_user.id, year)
    return BalanceListResponse(employee_id=current_user.id, year=year, items=balance_items(balances))
