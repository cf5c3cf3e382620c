"""
Admin leave balances: inspect, initialize, year-end carry forward, expiry.
"""
from typing import Optional
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from app.api.v1.balances import balance_items
from app.core.deps import get_db, require_capability_dep
from app.core.exceptions import NotFoundError
from app.db.transaction import run_in_transaction
from app.models.employee import Employee
from app.schemas.balance import (
    BalanceListResponse,
    ExpireCarryForwardRequest,
    ExpireCarryForwardResponse,
    InitializeBalancesRequest,
    YearEndRequest,
    YearEndResponse,
)
from app.services import balance_ledger_service as ledger
from app.utils.datetime_utils import now_utc

router = APIRouter()


@router.get("/{employee_id}", response_model=BalanceListResponse)
async def admin_employee_balances(
    employee_id: int,
    year: Optional[int] = Query(None, description="Calendar year (defaults to the current year)"),
    db: Session = Depends(get_db),
    current_user: Employee = Depends(require_capability_dep("can_manage_balances")),
):
    """Ledger rows for one employee."""
    if db.query(Employee.id).filter(Employee.id == employee_id).first() is None:
        raise NotFoundError(f"Employee with id {employee_id} not found")
    year = year or now_utc().year
    balances = ledger.get_balances(db, employee_id, year)
    return BalanceListResponse(employee_id=employee_id, year=year, items=balance_items(balances))


@router.post("/{employee_id}/initialize", response_model=BalanceListResponse)
async def admin_initialize_balances(
    employee_id: int,
    payload: InitializeBalancesRequest,
    db: Session = Depends(get_db),
    current_user: Employee = Depends(require_capability_dep("can_manage_balances")),
):
    """
    Open ledger rows for every active balance-tracked leave type.

    Entitlement is pro-rated from the join date in the join year. Existing rows
    are left unchanged.
    """
    actor_id = current_user.id
    run_in_transaction(
        db,
        lambda: ledger.initialize_balances(db, employee_id, payload.year, actor_id=actor_id),
        label="initialize balances",
    )
    balances = ledger.get_balances(db, employee_id, payload.year)
    return BalanceListResponse(employee_id=employee_id, year=payload.year, items=balance_items(balances))


@router.post("/year-end", response_model=YearEndResponse)
async def admin_year_end(
    payload: YearEndRequest,
    db: Session = Depends(get_db),
    current_user: Employee = Depends(require_capability_dep("can_manage_balances")),
):
    """
    Carry unused days of ``year`` into ``year + 1`` (capped by MAX_CARRY_FORWARD_DAYS).

    Safe to run more than once.
    """
    actor_id = current_user.id
    return run_in_transaction(
        db,
        lambda: ledger.process_year_end(db, payload.year, actor_id=actor_id),
        label="year end carry forward",
    )


@router.post("/expire-carry-forward", response_model=ExpireCarryForwardResponse)
async def admin_expire_carry_forward(
    payload: ExpireCarryForwardRequest,
    db: Session = Depends(get_db),
    current_user: Employee = Depends(require_capability_dep("can_manage_balances")),
):
    """Lapse carried-forward days once CARRY_FORWARD_EXPIRY_MONTHS have passed."""
    actor_id = current_user.id
    return run_in_transaction(
        db,
        lambda: ledger.expire_carry_forward(db, payload.year, as_of=payload.as_of, actor_id=actor_id),
        label="carry forward expiry",
    )
